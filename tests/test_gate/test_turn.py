"""Tests for per-turn coordination."""

import asyncio
from pathlib import Path

import pytest

from tollgate.tools.base import ToolResult, ToolStatus
from tollgate.gate import Turn
from tollgate.gate.turn import PathLock


class TestTurn:
    """Test Turn."""

    def test_ids_are_unique(self):
        assert Turn().id != Turn().id
        assert Turn("t1").id == "t1"

    def test_path_lock_per_path(self):
        turn = Turn()

        assert turn.path_lock(Path("/a")) is turn.path_lock(Path("/a"))
        assert turn.path_lock(Path("/a")) is not turn.path_lock(Path("/b"))

    def test_error_fails_turn(self):
        turn = Turn()

        turn.record(ToolResult.error_result("c1", "boom"))

        assert turn.failed is True

    def test_soft_outcomes_do_not_fail_turn(self):
        turn = Turn()

        turn.record(ToolResult(call_id="c1", status=ToolStatus.DENIED, is_error=True))
        turn.record(ToolResult(call_id="c2", status=ToolStatus.CANCELLED, is_error=True))
        turn.record(ToolResult.success_result("c3", "ok"))

        assert turn.failed is False
        assert [r.call_id for r in turn.results] == ["c1", "c2", "c3"]

    def test_track(self):
        turn = Turn()
        turn.track("c1")
        turn.track("c2")

        assert turn.call_ids == ["c1", "c2"]
        assert "calls=2" in repr(turn)


class TestPathLock:
    """Test PathLock."""

    @pytest.mark.asyncio
    async def test_readers_share(self):
        lock = PathLock()

        async with lock.shared():
            async with lock.shared():
                assert "readers=2" in repr(lock)

        assert lock.locked is False

    @pytest.mark.asyncio
    async def test_writer_excludes_readers(self):
        lock = PathLock()
        order = []

        async def read():
            async with lock.shared():
                order.append("read")

        async with lock.exclusive():
            reader = asyncio.create_task(read())
            await asyncio.sleep(0.01)
            assert not reader.done()
            order.append("write")

        await reader
        assert order == ["write", "read"]

    @pytest.mark.asyncio
    async def test_writer_waits_for_readers(self):
        lock = PathLock()
        order = []

        async def write():
            async with lock.exclusive():
                order.append("write")

        async with lock.shared():
            writer = asyncio.create_task(write())
            await asyncio.sleep(0.01)
            assert not writer.done()
            order.append("read")

        await writer
        assert order == ["read", "write"]

    @pytest.mark.asyncio
    async def test_arrival_order(self):
        """A reader arriving behind a waiting writer does not overtake it."""
        lock = PathLock()
        order = []

        async def hold(name, context):
            async with context:
                order.append(name)
                await asyncio.sleep(0.01)

        async with lock.shared():
            writer = asyncio.create_task(hold("write", lock.exclusive()))
            await asyncio.sleep(0.01)
            reader = asyncio.create_task(hold("read", lock.shared()))
            await asyncio.sleep(0.01)
            assert order == []

        await asyncio.gather(writer, reader)
        assert order == ["write", "read"]

    @pytest.mark.asyncio
    async def test_cancelled_waiter_is_skipped(self):
        lock = PathLock()

        async def read():
            async with lock.shared():
                pass

        async with lock.exclusive():
            waiter = asyncio.create_task(lock.exclusive().__aenter__())
            reader = asyncio.create_task(read())
            await asyncio.sleep(0.01)
            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter

        await asyncio.wait_for(reader, 1)
        assert lock.locked is False
