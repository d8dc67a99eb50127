"""Error taxonomy for progress synchronization.

Every error carries the (user_id, course_id) pair and the derivation
stage that raised it, so a failed sync can be localized from one log line:

  DataIntegrityError     the inputs contradict each other (module count
                         mismatch, orphaned or duplicate records).  Fatal
                         for the call; retrying cannot help.
  NotFoundError          the course, module or aggregate does not exist and
                         may not be created in this context.
  TransientStoreError    the backing store failed.  The whole sync is
                         idempotent, so the caller may simply retry it.
  ConcurrencyConflictError
                         another writer persisted the aggregate between our
                         read and our write.  Retried inside the orchestrator.
"""

from __future__ import annotations


class ProgressSyncError(Exception):
    def __init__(
        self,
        message: str,
        *,
        user_id: str | None = None,
        course_id: str | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.course_id = course_id
        self.stage = stage

    def bind(self, *, user_id: str, course_id: str, stage: str) -> ProgressSyncError:
        """Fill in whatever context the raising code did not know."""
        self.user_id = self.user_id or user_id
        self.course_id = self.course_id or course_id
        self.stage = self.stage or stage
        return self

    def __str__(self) -> str:
        context = " ".join(
            f"{name}={value}"
            for name, value in (
                ("user_id", self.user_id),
                ("course_id", self.course_id),
                ("stage", self.stage),
            )
            if value is not None
        )
        return f"{self.message} [{context}]" if context else self.message


class DataIntegrityError(ProgressSyncError):
    pass


class NotFoundError(ProgressSyncError):
    pass


class TransientStoreError(ProgressSyncError):
    pass


class ConcurrencyConflictError(TransientStoreError):
    pass
