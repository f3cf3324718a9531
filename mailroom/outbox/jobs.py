# mailroom/outbox/jobs.py
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Any, Dict


@dataclass(frozen=True)
class OutboxJob:
    id: int                            # Assigned by DB, claim and ordering key
    job_type: str                      # 'application_approved', 'approved_broadcast'
    correlation_key: Optional[str]     # Business entity that caused the job
    payload: Any                       # Rendered message, validated by the worker
    status: str                        # 'pending', 'processing', 'sent', 'failed'
    attempts: int                      # Send attempts made before this snapshot
    last_error: Optional[str]
    last_error_detail: Optional[str]
    next_attempt_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    processing_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "OutboxJob":
        return cls(
            id=row.id,
            job_type=row.job_type,
            correlation_key=row.correlation_key,
            payload=row.payload,
            status=row.status,
            attempts=row.attempts,
            last_error=row.last_error,
            last_error_detail=row.last_error_detail,
            next_attempt_at=row.next_attempt_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
            processing_at=row.processing_at,
            sent_at=row.sent_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        from mailroom.datetime_utils import format_iso
        return {
            "id": self.id,
            "job_type": self.job_type,
            "correlation_key": self.correlation_key,
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "next_attempt_at": format_iso(self.next_attempt_at),
            "processing_at": format_iso(self.processing_at),
        }
