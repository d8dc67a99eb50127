"""Outbound notification collaborator.

The orchestrator calls this only after the aggregate has been persisted,
so a notification never announces state that a failed write discarded.
Delivery (email, push, badges service) is someone else's job: the default
notifier just hands the event to the task queue.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Protocol

from course_tracker.models.progress import Achievement
from course_tracker.services.task_queue import (
    ACHIEVEMENT_NOTIFICATIONS,
    CERTIFICATE_ISSUANCE,
    TaskQueue,
)


class AchievementNotifier(Protocol):
    async def achievements_unlocked(
        self, user_id: str, course_id: str, achievements: tuple[Achievement, ...]
    ) -> None: ...

    async def certificate_issued(
        self, user_id: str, course_id: str, certificate_id: str
    ) -> None: ...


class QueueAchievementNotifier:
    def __init__(self, queue: TaskQueue) -> None:
        self._queue = queue

    async def achievements_unlocked(
        self, user_id: str, course_id: str, achievements: tuple[Achievement, ...]
    ) -> None:
        await self._queue.enqueue(
            ACHIEVEMENT_NOTIFICATIONS,
            {
                "user_id": user_id,
                "course_id": course_id,
                "achievements": [asdict(a) for a in achievements],
            },
        )

    async def certificate_issued(
        self, user_id: str, course_id: str, certificate_id: str
    ) -> None:
        await self._queue.enqueue(
            CERTIFICATE_ISSUANCE,
            {
                "user_id": user_id,
                "course_id": course_id,
                "certificate_id": certificate_id,
            },
        )
