# mailroom/outbox/results.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EnqueueStatus(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    STORAGE_ERROR = "storage_error"


@dataclass(frozen=True)
class EnqueueResult:
    status: EnqueueStatus
    job_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Duplicate counts as success: the email for this event is already queued."""
        return self.status in (EnqueueStatus.CREATED, EnqueueStatus.DUPLICATE)

    @property
    def created(self) -> bool:
        return self.status is EnqueueStatus.CREATED

    @property
    def duplicate(self) -> bool:
        return self.status is EnqueueStatus.DUPLICATE


@dataclass
class BatchSummary:
    claimed: int = 0
    sent: int = 0
    retried: int = 0
    gave_up: int = 0

    def to_dict(self) -> dict:
        return {
            "claimed": self.claimed,
            "sent": self.sent,
            "retried": self.retried,
            "gave_up": self.gave_up,
        }
