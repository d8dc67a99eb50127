from __future__ import annotations

import asyncio

from course_tracker.services.task_queue import (
    COURSE_RESYNC,
    PROGRESS_EVENTS,
    InMemoryTaskQueue,
    RedisTaskQueue,
)


def test_queue_is_fifo() -> None:
    queue = InMemoryTaskQueue()

    async def _run():
        await queue.enqueue(PROGRESS_EVENTS, {"n": 1})
        await queue.enqueue(PROGRESS_EVENTS, {"n": 2})
        first = await queue.dequeue(PROGRESS_EVENTS)
        second = await queue.dequeue(PROGRESS_EVENTS)
        return first, second, await queue.dequeue(PROGRESS_EVENTS)

    first, second, empty = asyncio.run(_run())
    assert first.payload == {"n": 1}
    assert second.payload == {"n": 2}
    assert empty is None


def test_enqueue_records_attempts() -> None:
    queue = InMemoryTaskQueue()
    task = asyncio.run(queue.enqueue(PROGRESS_EVENTS, {}, attempts=2))
    assert task.attempts == 2
    assert task.queue == PROGRESS_EVENTS
    assert asyncio.run(queue.queue_length(PROGRESS_EVENTS)) == 1


class _FakeRedisList:
    def __init__(self) -> None:
        self.lists: dict[str, list[str]] = {}

    async def lpush(self, key, value):
        self.lists.setdefault(key, []).insert(0, value)

    async def brpop(self, key, timeout=0):
        items = self.lists.get(key)
        if not items:
            return None
        return key, items.pop()

    async def llen(self, key):
        return len(self.lists.get(key, []))


def test_redis_queue_round_trips_task_fields() -> None:
    redis = _FakeRedisList()
    queue = RedisTaskQueue(redis)

    async def _run():
        sent = await queue.enqueue(COURSE_RESYNC, {"course_id": "c-1"}, attempts=1)
        length = await queue.queue_length(COURSE_RESYNC)
        return sent, length, await queue.dequeue(COURSE_RESYNC, timeout=1)

    sent, length, received = asyncio.run(_run())
    assert length == 1
    assert received == sent
    assert list(redis.lists) == ["course-tracker:queue:course_resync"]


def test_redis_queue_empty_dequeue_returns_none() -> None:
    queue = RedisTaskQueue(_FakeRedisList())
    assert asyncio.run(queue.dequeue(PROGRESS_EVENTS, timeout=1)) is None
