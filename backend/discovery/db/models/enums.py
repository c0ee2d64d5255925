"""Status vocabularies for sessions and engagement documents."""

from enum import StrEnum


class SessionStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Forward-only ordering; a status write may never lower the rank.
SESSION_STATUS_RANK: dict[str, int] = {
    SessionStatus.PENDING: 0,
    SessionStatus.IN_PROGRESS: 1,
    SessionStatus.COMPLETED: 2,
}


class DocumentStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
