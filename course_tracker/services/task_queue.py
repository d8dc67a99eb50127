"""Work queues between the API process and the worker.

Backed by Redis lists when REDIS_URL is set: producers LPUSH onto
``course-tracker:queue:<name>`` and the worker BRPOPs, giving FIFO order
per queue.  A task popped by a worker that dies mid-handler is lost;
progress events can afford that because the next sync of the pair
recomputes the aggregate from module records, and a bulk re-sync can be
requested again.

  progress_events           module_completed | content_progress | sync_requested
  course_resync             {course_id}
  achievement_notifications newly unlocked achievements
  certificate_issuance      certificates issued on course completion
"""

from __future__ import annotations

import json
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Protocol, runtime_checkable

from course_tracker.db.redis import redis_pool

PROGRESS_EVENTS = "progress_events"
COURSE_RESYNC = "course_resync"
ACHIEVEMENT_NOTIFICATIONS = "achievement_notifications"
CERTIFICATE_ISSUANCE = "certificate_issuance"


@dataclass(frozen=True, slots=True)
class Task:
    """One queued job.  attempts counts earlier deliveries that failed transiently."""

    id: str
    queue: str
    payload: dict = field(default_factory=dict)
    attempts: int = 0

    @classmethod
    def new(cls, queue: str, payload: dict, attempts: int = 0) -> Task:
        return cls(id=uuid.uuid4().hex, queue=queue, payload=payload, attempts=attempts)

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> Task:
        return cls(**json.loads(raw))


@runtime_checkable
class TaskQueue(Protocol):
    async def enqueue(self, queue: str, payload: dict, *, attempts: int = 0) -> Task: ...
    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None: ...
    async def queue_length(self, queue: str) -> int: ...


class InMemoryTaskQueue:
    """Non-blocking: dequeue on an empty queue returns None immediately."""

    def __init__(self) -> None:
        self._queues: dict[str, deque[Task]] = {}

    async def enqueue(self, queue: str, payload: dict, *, attempts: int = 0) -> Task:
        task = Task.new(queue, payload, attempts)
        self._queues.setdefault(queue, deque()).append(task)
        return task

    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None:
        pending = self._queues.get(queue)
        return pending.popleft() if pending else None

    async def queue_length(self, queue: str) -> int:
        return len(self._queues.get(queue, ()))


class RedisTaskQueue:
    namespace = "course-tracker:queue"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    def _key(self, queue: str) -> str:
        return f"{self.namespace}:{queue}"

    async def enqueue(self, queue: str, payload: dict, *, attempts: int = 0) -> Task:
        task = Task.new(queue, payload, attempts)
        await self._redis.lpush(self._key(queue), task.to_json())
        return task

    async def dequeue(self, queue: str, timeout: int = 5) -> Task | None:
        popped = await self._redis.brpop(self._key(queue), timeout=timeout)
        if popped is None:
            return None
        return Task.from_json(popped[1])

    async def queue_length(self, queue: str) -> int:
        return await self._redis.llen(self._key(queue))


task_queue: TaskQueue = (
    RedisTaskQueue(redis_pool) if redis_pool is not None else InMemoryTaskQueue()
)
