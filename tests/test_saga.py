"""
tests/test_saga.py -- Unit tests for Saga and KeyedLocks.

Sync tests drive the coroutines with asyncio.run(); the suite does not
depend on an async pytest plugin.
"""

from __future__ import annotations

import asyncio

import pytest

from projects.locks import KeyedLocks
from projects.saga import Saga


class Boom(Exception):
    pass


class TestSaga:
    def test_success_runs_deferred_not_compensations(self) -> None:
        log: list[str] = []

        async def run() -> None:
            async with Saga("ok") as saga:
                value = await saga.step("first", lambda: 1, compensate=lambda v: log.append(f"undo {v}"))
                saga.defer("cleanup", lambda: log.append("deferred"))
                assert value == 1

        asyncio.run(run())
        assert log == ["deferred"]

    def test_failure_compensates_newest_first_and_reraises(self) -> None:
        log: list[str] = []

        async def run() -> None:
            async with Saga("fails") as saga:
                await saga.step("a", lambda: "A", compensate=lambda v: log.append(f"undo {v}"))
                await saga.step("b", lambda: "B", compensate=lambda v: log.append(f"undo {v}"))
                saga.defer("cleanup", lambda: log.append("deferred"))
                raise Boom()

        with pytest.raises(Boom):
            asyncio.run(run())
        assert log == ["undo B", "undo A"]

    def test_failing_step_is_not_compensated(self) -> None:
        log: list[str] = []

        def explode() -> None:
            raise Boom()

        async def run() -> None:
            async with Saga("step fails") as saga:
                await saga.step("a", lambda: "A", compensate=lambda v: log.append(f"undo {v}"))
                await saga.step("b", explode, compensate=lambda v: log.append("undo b"))

        with pytest.raises(Boom):
            asyncio.run(run())
        assert log == ["undo A"]

    def test_compensation_failure_does_not_mask_original_error(self) -> None:
        def bad_undo(_value) -> None:
            raise OSError("disk gone")

        async def run() -> None:
            async with Saga("masked?") as saga:
                await saga.step("a", lambda: "A", compensate=bad_undo)
                raise Boom()

        with pytest.raises(Boom):
            asyncio.run(run())

    def test_deferred_failure_does_not_fail_saga(self) -> None:
        def bad_cleanup() -> None:
            raise OSError("disk gone")

        async def run() -> str:
            async with Saga("cleanup fails") as saga:
                result = await saga.step("a", lambda: "A")
                saga.defer("cleanup", bad_cleanup)
            return result

        assert asyncio.run(run()) == "A"


class TestKeyedLocks:
    def test_same_key_is_serialized(self) -> None:
        locks = KeyedLocks()
        events: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold(1):
                events.append(f"{name} in")
                await asyncio.sleep(0.01)
                events.append(f"{name} out")

        async def run() -> None:
            await asyncio.gather(worker("a"), worker("b"))

        asyncio.run(run())
        assert events == ["a in", "a out", "b in", "b out"]

    def test_different_keys_overlap(self) -> None:
        locks = KeyedLocks()
        events: list[str] = []

        async def worker(key: int) -> None:
            async with locks.hold(key):
                events.append(f"{key} in")
                await asyncio.sleep(0.01)
                events.append(f"{key} out")

        async def run() -> None:
            await asyncio.gather(worker(1), worker(2))

        asyncio.run(run())
        assert events[:2] == ["1 in", "2 in"]

    def test_unused_locks_are_forgotten(self) -> None:
        locks = KeyedLocks()

        async def run() -> None:
            async with locks.hold("x"):
                assert len(locks) == 1
            assert len(locks) == 0

        asyncio.run(run())
