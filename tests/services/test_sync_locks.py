from __future__ import annotations

import asyncio

import pytest

from course_tracker.services.sync_locks import KeyedLocks


def test_same_pair_is_mutually_exclusive() -> None:
    locks = KeyedLocks()
    events: list[str] = []

    async def _critical(name: str) -> None:
        async with locks.hold("user-1", "course-1"):
            events.append(f"{name}:in")
            await asyncio.sleep(0.01)
            events.append(f"{name}:out")

    async def _run() -> None:
        await asyncio.gather(_critical("a"), _critical("b"))

    asyncio.run(_run())

    assert events == ["a:in", "a:out", "b:in", "b:out"]


def test_different_pairs_do_not_contend() -> None:
    locks = KeyedLocks()
    events: list[str] = []

    async def _critical(user_id: str) -> None:
        async with locks.hold(user_id, "course-1"):
            events.append(f"{user_id}:in")
            await asyncio.sleep(0.01)
            events.append(f"{user_id}:out")

    async def _run() -> None:
        await asyncio.gather(_critical("a"), _critical("b"))

    asyncio.run(_run())

    assert events[:2] == ["a:in", "b:in"]


def test_registry_is_emptied_after_release() -> None:
    locks = KeyedLocks()

    async def _run() -> int:
        async with locks.hold("user-1", "course-1"):
            held = len(locks)
        return held

    assert asyncio.run(_run()) == 1
    assert len(locks) == 0


def test_registry_is_emptied_after_exception() -> None:
    locks = KeyedLocks()

    async def _run() -> None:
        async with locks.hold("user-1", "course-1"):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(_run())

    assert len(locks) == 0
