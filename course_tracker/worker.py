"""Background worker: turns queued learning events into progress syncs.

RUN:  python -m course_tracker.worker

Same image as the API, different command:
  api:    uvicorn course_tracker.main:app --host 0.0.0.0 --port 8000
  worker: python -m course_tracker.worker

QUEUES
------
  progress_events            {"type": "module_completed", user_id, course_id,
                              module_id, time_spent?, score?, idempotency_key?}
                             {"type": "content_progress", user_id, course_id,
                              module_id, time_spent?, completion_percentage?,
                              score?, idempotency_key?}
                             {"type": "sync_requested", user_id, course_id}
  course_resync              {course_id}
  achievement_notifications  forwarded to the delivery transport
  certificate_issuance       forwarded to the credential issuer

FAILURE POLICY
--------------
  TransientStoreError   re-enqueued with attempts + 1, up to SYNC_MAX_RETRIES
                        (a module event without an idempotency_key is
                        given "task:<first task id>" before its first
                        delivery, so a retry after the module record was
                        written is applied once)
  DataIntegrityError,
  NotFoundError         logged and dropped
  anything else         logged with traceback and dropped
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from course_tracker.core.config import SETTINGS
from course_tracker.core.errors import ProgressSyncError, TransientStoreError
from course_tracker.core.logging import setup_logging
from course_tracker.core.metrics import QUEUE_DEPTH
from course_tracker.services.module_events import CompletionData, ContentProgressUpdate
from course_tracker.services.progress_sync import sync_orchestrator
from course_tracker.services.task_queue import (
    ACHIEVEMENT_NOTIFICATIONS,
    CERTIFICATE_ISSUANCE,
    COURSE_RESYNC,
    PROGRESS_EVENTS,
    Task,
    task_queue,
)

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("course_tracker.worker")


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


_MODULE_EVENT_TYPES = ("module_completed", "content_progress")


def _keyed_payload(task: Task) -> dict:
    """Give a keyless module event a stable idempotency key.

    The key is the id of the first delivery and travels with every
    re-enqueued copy, so a retry after the module record was already
    written is recognised and not applied twice.
    """
    payload = task.payload
    if (
        task.queue == PROGRESS_EVENTS
        and payload.get("type") in _MODULE_EVENT_TYPES
        and not payload.get("idempotency_key")
    ):
        return {**payload, "idempotency_key": f"task:{task.id}"}
    return payload


def _require(payload: dict, key: str) -> str:
    value = payload.get(key)
    if not value:
        raise ValueError(f"payload missing {key!r}")
    return str(value)


# ---------------------------------------------------------------------------
# Task handlers
# ---------------------------------------------------------------------------


@register_handler(PROGRESS_EVENTS)
async def handle_progress_event(payload: dict) -> None:
    event_type = payload.get("type")
    user_id = _require(payload, "user_id")
    course_id = _require(payload, "course_id")

    if event_type == "module_completed":
        await sync_orchestrator.sync_module_completion(
            user_id,
            course_id,
            _require(payload, "module_id"),
            CompletionData(
                time_spent=int(payload.get("time_spent") or 0),
                score=payload.get("score"),
                idempotency_key=payload.get("idempotency_key"),
            ),
        )
    elif event_type == "content_progress":
        await sync_orchestrator.sync_content_progress(
            user_id,
            course_id,
            _require(payload, "module_id"),
            ContentProgressUpdate(
                time_spent=int(payload.get("time_spent") or 0),
                completion_percentage=payload.get("completion_percentage"),
                score=payload.get("score"),
                idempotency_key=payload.get("idempotency_key"),
            ),
        )
    elif event_type == "sync_requested":
        await sync_orchestrator.sync_one(user_id, course_id)
    else:
        raise ValueError(f"unknown progress event type {event_type!r}")


@register_handler(COURSE_RESYNC)
async def handle_course_resync(payload: dict) -> None:
    results = await sync_orchestrator.sync_all_users_in_course(
        _require(payload, "course_id")
    )
    for result in results:
        if not result.success:
            logger.warning(
                "Re-sync failed user=%s stage=%s error=%s",
                result.user_id,
                result.stage,
                result.error,
            )


@register_handler(ACHIEVEMENT_NOTIFICATIONS)
async def handle_achievement_notification(payload: dict) -> None:
    # Delivery transport lives outside this service.
    logger.info(
        "Achievements unlocked user=%s course=%s types=%s",
        payload.get("user_id"),
        payload.get("course_id"),
        [a.get("type") for a in payload.get("achievements", [])],
    )


@register_handler(CERTIFICATE_ISSUANCE)
async def handle_certificate_issuance(payload: dict) -> None:
    logger.info(
        "Certificate issued certificate=%s user=%s course=%s",
        payload.get("certificate_id"),
        payload.get("user_id"),
        payload.get("course_id"),
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


async def dispatch(task: Task) -> None:
    """Run one task's handler and apply the failure policy."""
    handler = HANDLERS[task.queue]
    payload = _keyed_payload(task)
    extra = {"task_id": task.id, "queue": task.queue}
    try:
        await handler(payload)
    except TransientStoreError as exc:
        if task.attempts >= SETTINGS.sync_max_retries:
            logger.error(
                "Task gave up after %d retries: %s", task.attempts, exc, extra=extra
            )
            return
        await task_queue.enqueue(task.queue, payload, attempts=task.attempts + 1)
        logger.warning(
            "Task re-enqueued after transient failure attempt=%d: %s",
            task.attempts + 1,
            exc,
            extra=extra,
        )
    except ProgressSyncError as exc:
        logger.error("Task dropped: %s", exc, extra=extra)
    except Exception:
        logger.exception("Task failed", extra=extra)
    else:
        logger.info("Task completed", extra=extra)


async def process_one(queue: str, timeout: int = 1) -> bool:
    """Dequeue and dispatch a single task.  Returns False when the queue was empty."""
    task = await task_queue.dequeue(queue, timeout=timeout)
    QUEUE_DEPTH.labels(queue_name=queue).set(await task_queue.queue_length(queue))
    if task is None:
        return False
    await dispatch(task)
    return True


async def run_worker() -> None:
    """Poll all registered queues round-robin and dispatch tasks."""
    queues = list(HANDLERS.keys())
    logger.info("Worker started, listening on queues: %s", queues)

    while True:
        for queue_name in queues:
            await process_one(queue_name)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
