"""Tests for Pipe and the pipe() builder.

Validates:
- Chaining and terminal operations end to end
- Move discipline under every err_on_move/move_on_chain combination
- Mixed-input classification in pipe()
- Early release through first()
"""

from __future__ import annotations

import pytest

from lazypipe import (
    InvalidArgumentError,
    Pipe,
    PipeConfig,
    PipeState,
    UseAfterMoveError,
    clear_settings_cache,
    from_iterable,
    pipe,
)
from lazypipe.foundation.testing import TrackedAsyncSource, TrackedSyncSource


async def _later(value: object) -> object:
    return value


def _is_even(x: int) -> bool:
    return x % 2 == 0


# ═════════════════════════════════════════════════════════════════════════════
# Chaining and terminals
# ═════════════════════════════════════════════════════════════════════════════


class TestChaining:
    @pytest.mark.asyncio
    async def test_filter_map_fold(self) -> None:
        total = await Pipe(from_iterable(range(6))).filter(_is_even).map(lambda x, i: x * 10 + i).fold(
            lambda acc, x: acc + x, 0,
        )
        assert total == (0 + 0) + (20 + 1) + (40 + 2)
    
    @pytest.mark.asyncio
    async def test_flat(self) -> None:
        assert await Pipe(from_iterable([1, from_iterable([2]), [3]])).flat().collect() == [1, 2, 3]
    
    @pytest.mark.asyncio
    async def test_skip_then_take(self) -> None:
        assert await Pipe(from_iterable(range(10))).skip(2).take(3).collect() == [2, 3, 4]
    
    @pytest.mark.asyncio
    async def test_chain(self) -> None:
        assert await Pipe([1, 2]).chain(from_iterable([3])).collect() == [1, 2, 3]
    
    @pytest.mark.asyncio
    async def test_combine(self) -> None:
        result = await Pipe([1]).combine([[2], from_iterable([3])]).collect()
        assert sorted(result) == [1, 2, 3]
    
    @pytest.mark.asyncio
    async def test_peek(self) -> None:
        seen: list[int] = []
        assert await Pipe([1, 2]).peek(seen.append).collect() == [1, 2]
        assert seen == [1, 2]
    
    @pytest.mark.asyncio
    async def test_find_and_join(self) -> None:
        assert await Pipe(["a", "bb", "ccc"]).find(lambda s: len(s) > 1) == ("bb", 1)
        assert await Pipe(["a", "b"]).join("+") == "a+b"
    
    @pytest.mark.asyncio
    async def test_for_each(self) -> None:
        seen: list[tuple[int, int]] = []
        await Pipe([7, 8]).for_each(lambda x, i: seen.append((x, i)))
        assert seen == [(7, 0), (8, 1)]
    
    @pytest.mark.asyncio
    async def test_collect_count(self) -> None:
        source = TrackedSyncSource([1, 2, 3])
        assert await Pipe(source).collect(2) == [1, 2]
        assert source.pulls == 2
    
    @pytest.mark.asyncio
    async def test_building_chain_pulls_nothing(self) -> None:
        source = TrackedAsyncSource([1, 2, 3])
        derived = Pipe(source).map(lambda x: x + 1).filter(_is_even).take(1)
        
        assert source.pulls == 0
        assert await derived.collect() == [2]


class TestFirst:
    @pytest.mark.asyncio
    async def test_first_item(self) -> None:
        assert await Pipe(from_iterable([1, 2, 3])).first() == 1
    
    @pytest.mark.asyncio
    async def test_empty_is_none(self) -> None:
        assert await Pipe([]).first() is None
    
    @pytest.mark.asyncio
    async def test_releases_merged_sources(self, await_release: None) -> None:
        slow = TrackedAsyncSource(["late"], delays=1.0)
        
        assert await pipe([1], slow).first() == 1
        slow.assert_released_once()


# ═════════════════════════════════════════════════════════════════════════════
# Move discipline
# ═════════════════════════════════════════════════════════════════════════════


class TestMoveDiscipline:
    @pytest.mark.asyncio
    async def test_chaining_moves_by_default(self) -> None:
        p = Pipe(from_iterable([1, 2, 3]))
        q = p.map(lambda x: x * 2)
        
        assert q is not p
        assert p.state is PipeState.MOVED
        assert await p.collect() == []
        assert await q.collect() == [2, 4, 6]
    
    @pytest.mark.asyncio
    async def test_err_on_move_raises(self) -> None:
        p = Pipe(from_iterable([1]), err_on_move=True)
        p.filter(_is_even)
        
        assert p.state is PipeState.MOVED_WITH_ERROR
        with pytest.raises(UseAfterMoveError, match="use after move") as exc_info:
            await p.collect()
        assert exc_info.value.error.is_ownership_error
        assert exc_info.value.error.operation == "pipe.collect"
    
    @pytest.mark.asyncio
    async def test_derived_pipe_inherits_config(self) -> None:
        p = Pipe([1], err_on_move=True)
        q = p.map(lambda x: x)
        
        assert q.config == p.config == PipeConfig(err_on_move=True, move_on_chain=True)
    
    @pytest.mark.asyncio
    async def test_in_place_chaining_returns_same_instance(self) -> None:
        p = Pipe(from_iterable([1, 2, 3, 4]), move_on_chain=False)
        
        assert p.filter(_is_even) is p
        assert p.map(lambda x: x + 1) is p
        assert p.is_live
        assert await p.collect() == [3, 5]
    
    @pytest.mark.asyncio
    async def test_terminal_moves_even_without_move_on_chain(self) -> None:
        p = Pipe([1, 2], move_on_chain=False)
        
        assert await p.collect() == [1, 2]
        assert p.state is PipeState.MOVED
        assert await p.collect() == []
    
    @pytest.mark.parametrize(
        ("err_on_move", "move_on_chain", "expected"),
        [
            (False, True, []),
            (True, True, UseAfterMoveError),
            (False, False, [2, 4]),
            (True, False, [2, 4]),
        ],
    )
    @pytest.mark.asyncio
    async def test_source_pipe_after_chaining(
        self, err_on_move: bool, move_on_chain: bool, expected: object,
    ) -> None:
        p = Pipe([1, 2], err_on_move=err_on_move, move_on_chain=move_on_chain)
        p.map(lambda x: x * 2)
        
        if expected is UseAfterMoveError:
            with pytest.raises(UseAfterMoveError):
                await p.collect()
        else:
            assert await p.collect() == expected
    
    @pytest.mark.parametrize("err_on_move", [False, True])
    @pytest.mark.asyncio
    async def test_second_terminal_after_first(self, err_on_move: bool) -> None:
        p = Pipe([1], err_on_move=err_on_move)
        await p.collect()
        
        if err_on_move:
            with pytest.raises(UseAfterMoveError):
                await p.fold(lambda acc, x: acc + x, 0)
        else:
            assert await p.fold(lambda acc, x: acc + x, 0) == 0
    
    @pytest.mark.asyncio
    async def test_iterating_does_not_move(self) -> None:
        p = Pipe([1, 2])
        
        assert [x async for x in p] == [1, 2]
        assert p.is_live
        assert await p.collect() == [1, 2]
    
    def test_invalid_count_leaves_pipe_live(self) -> None:
        p = Pipe([1])
        
        with pytest.raises(InvalidArgumentError):
            p.take(-1)
        assert p.is_live
    
    def test_flags_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LAZYPIPE_PIPE_ERR_ON_MOVE", "true")
        monkeypatch.setenv("LAZYPIPE_PIPE_MOVE_ON_CHAIN", "false")
        clear_settings_cache()
        
        p = Pipe([1])
        assert p.err_on_move is True
        assert p.move_on_chain is False
        assert Pipe([1], err_on_move=False).err_on_move is False
    
    def test_repr(self) -> None:
        assert repr(Pipe([1])) == "Pipe(state=live, err_on_move=False, move_on_chain=True)"


# ═════════════════════════════════════════════════════════════════════════════
# Builder
# ═════════════════════════════════════════════════════════════════════════════


class TestPipeBuilder:
    @pytest.mark.asyncio
    async def test_mixed_inputs(self) -> None:
        result = await pipe(1, from_iterable([2, 3]), _later([4])).collect()
        assert sorted(result) == [1, 2, 3, 4]
    
    @pytest.mark.asyncio
    async def test_deferred_scalar(self) -> None:
        assert await pipe(_later(5)).collect() == [5]
    
    @pytest.mark.asyncio
    async def test_text_is_single_item(self) -> None:
        assert await pipe("text").collect() == ["text"]
    
    @pytest.mark.asyncio
    async def test_no_inputs(self) -> None:
        assert await pipe().collect() == []
    
    def test_flags_forwarded(self) -> None:
        p = pipe([1], err_on_move=True, move_on_chain=False)
        assert p.config == PipeConfig(err_on_move=True, move_on_chain=False)
    
    @pytest.mark.asyncio
    async def test_pipe_over_text_iterates_characters(self) -> None:
        assert await Pipe("ab").collect() == ["a", "b"]
    
    @pytest.mark.parametrize("source", [5, 1.5, None])
    def test_pipe_requires_sequence(self, source: object) -> None:
        with pytest.raises(InvalidArgumentError):
            Pipe(source)  # type: ignore[arg-type]
