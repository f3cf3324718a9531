# mailroom/outbox/store.py
"""
Outbox Store: the only code that writes ``email_outbox`` rows.

Every state change is a single conditional UPDATE guarded by the row's
current status, so concurrent callers (scheduler, cron trigger, admin
trigger) never need a lock of their own. Two callers racing for the same row
get exactly one successful update between them.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from mailroom.datetime_utils import utcnow
from mailroom.logging_config import get_logger
from mailroom.models import EmailOutbox, OutboxStatus, db
from mailroom.outbox.jobs import OutboxJob
from mailroom.outbox.results import EnqueueResult, EnqueueStatus

logger = get_logger(__name__)

PENDING = OutboxStatus.PENDING.value
PROCESSING = OutboxStatus.PROCESSING.value
SENT = OutboxStatus.SENT.value
FAILED = OutboxStatus.FAILED.value


class OutboxStore:
    """Durable storage and state transitions for email outbox jobs"""

    @staticmethod
    def _existing_id(job_type: str, correlation_key: Optional[str]) -> Optional[int]:
        if correlation_key is None:
            return None
        row = (
            db.session.query(EmailOutbox.id)
            .filter_by(job_type=job_type, correlation_key=correlation_key)
            .first()
        )
        return row.id if row is not None else None

    @staticmethod
    def _insert(job_type: str, correlation_key: Optional[str], payload: Dict[str, Any]) -> int:
        now = utcnow()
        row = EmailOutbox(
            job_type=job_type,
            correlation_key=correlation_key,
            payload=payload,
            status=PENDING,
            attempts=0,
            next_attempt_at=None,
            created_at=now,
            updated_at=now,
        )
        with db.session.begin_nested():
            db.session.add(row)
        return row.id

    @staticmethod
    def enqueue(job_type: str, correlation_key: Optional[str], payload: Dict[str, Any],
                commit: bool = True) -> EnqueueResult:
        """
        Insert a new pending job.

        The insert runs inside a SAVEPOINT so it can share the caller's open
        transaction (``commit=False``) without a failed insert poisoning it.
        With ``commit=False`` a storage error is reported but the caller's
        transaction is left for the caller to commit or roll back.

        Returns:
            EnqueueResult: created (with job_id), duplicate when a job already
            exists for (job_type, correlation_key), or storage_error.

        Raises:
            ValueError: If payload is None
        """
        if payload is None:
            raise ValueError("Outbox payload is required")

        status = EnqueueStatus.DUPLICATE
        try:
            job_id = OutboxStore._existing_id(job_type, correlation_key)
            if job_id is None:
                try:
                    job_id = OutboxStore._insert(job_type, correlation_key, payload)
                    status = EnqueueStatus.CREATED
                except IntegrityError:
                    # Lost a race with a concurrent enqueue for the same key;
                    # any other constraint violation is a storage error
                    job_id = OutboxStore._existing_id(job_type, correlation_key)
                    if job_id is None:
                        raise
            if commit:
                db.session.commit()
        except SQLAlchemyError as exc:
            if commit:
                db.session.rollback()
            return EnqueueResult(EnqueueStatus.STORAGE_ERROR, error=str(exc))

        return EnqueueResult(status, job_id=job_id)

    @staticmethod
    def _due_filter(now: datetime):
        return (
            EmailOutbox.status == PENDING,
            or_(EmailOutbox.next_attempt_at.is_(None), EmailOutbox.next_attempt_at <= now),
        )

    @staticmethod
    def _select_due_ids(limit: int, now: datetime) -> List[int]:
        rows = (
            db.session.query(EmailOutbox.id)
            .filter(*OutboxStore._due_filter(now))
            .order_by(EmailOutbox.id.asc())
            .limit(limit)
            .all()
        )
        return [row.id for row in rows]

    @staticmethod
    def _claim_one(job_id: int, now: datetime) -> bool:
        """Conditional pending -> processing update. True only for the caller that won the row."""
        changed = (
            EmailOutbox.query
            .filter(EmailOutbox.id == job_id, *OutboxStore._due_filter(now))
            .update(
                {"status": PROCESSING, "processing_at": now, "updated_at": now},
                synchronize_session=False,
            )
        )
        return changed > 0

    @staticmethod
    def claim_due_batch(limit: int, now: Optional[datetime] = None) -> List[OutboxJob]:
        """
        Claim up to ``limit`` due jobs, oldest id first.

        Rows are claimed one at a time with a conditional update; rows another
        caller claimed in the meantime are skipped. Storage errors propagate.

        Returns:
            List of OutboxJob snapshots in ``processing`` state.
        """
        if limit <= 0:
            return []
        now = now or utcnow()

        try:
            claimed_ids = [
                job_id for job_id in OutboxStore._select_due_ids(limit, now)
                if OutboxStore._claim_one(job_id, now)
            ]
            jobs = []
            if claimed_ids:
                # Snapshot inside the claim transaction so no lock outlives it
                rows = (
                    EmailOutbox.query
                    .filter(EmailOutbox.id.in_(claimed_ids))
                    .order_by(EmailOutbox.id.asc())
                    .populate_existing()
                    .all()
                )
                jobs = [OutboxJob.from_row(row) for row in rows]
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        return jobs

    @staticmethod
    def _resolve(job_id: int, values: Dict[str, Any], transition: str) -> bool:
        """Apply a processing -> * transition; a no-op unless the row is still processing."""
        try:
            changed = (
                EmailOutbox.query
                .filter(EmailOutbox.id == job_id, EmailOutbox.status == PROCESSING)
                .update(values, synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            # The row stays in processing; see find_stale_processing
            logger.error(
                "Outbox transition failed",
                outbox_id=job_id,
                transition=transition,
                error=str(exc),
                exc_info=True,
            )
            return False

        if not changed:
            logger.warning("Outbox transition skipped, job not processing",
                           outbox_id=job_id, transition=transition)
        return changed > 0

    @staticmethod
    def mark_sent(job_id: int, attempts: int, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return OutboxStore._resolve(job_id, {
            "status": SENT,
            "attempts": attempts,
            "sent_at": now,
            "last_error": None,
            "last_error_detail": None,
            "next_attempt_at": None,
            "updated_at": now,
        }, "sent")

    @staticmethod
    def mark_retry(job_id: int, attempts: int, error: str, detail: Optional[str],
                   next_attempt_at: datetime, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return OutboxStore._resolve(job_id, {
            "status": PENDING,
            "attempts": attempts,
            "last_error": error,
            "last_error_detail": detail,
            "next_attempt_at": next_attempt_at,
            "updated_at": now,
        }, "retry")

    @staticmethod
    def mark_gave_up(job_id: int, attempts: int, error: str, detail: Optional[str],
                     now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return OutboxStore._resolve(job_id, {
            "status": FAILED,
            "attempts": attempts,
            "last_error": error,
            "last_error_detail": detail,
            "next_attempt_at": None,
            "updated_at": now,
        }, "gave_up")

    @staticmethod
    def get(job_id: int) -> Optional[OutboxJob]:
        row = db.session.get(EmailOutbox, job_id)
        return OutboxJob.from_row(row) if row is not None else None

    @staticmethod
    def status_counts() -> Dict[str, int]:
        """Row count for every status, including statuses with no rows."""
        counts = {status.value: 0 for status in OutboxStatus}
        rows = (
            db.session.query(EmailOutbox.status, func.count(EmailOutbox.id))
            .group_by(EmailOutbox.status)
            .all()
        )
        for status, count in rows:
            counts[status] = count
        return counts

    @staticmethod
    def find_stale_processing(older_than: timedelta, now: Optional[datetime] = None) -> List[OutboxJob]:
        """
        Jobs left in processing longer than ``older_than``, i.e. claimed by a
        worker that died before recording an outcome.
        """
        # TODO: add an operator-triggered sweep that moves these rows back to
        # pending (counting the lost attempt) once a staleness threshold is agreed.
        now = now or utcnow()
        rows = (
            EmailOutbox.query
            .filter(EmailOutbox.status == PROCESSING, EmailOutbox.processing_at < now - older_than)
            .order_by(EmailOutbox.id.asc())
            .all()
        )
        return [OutboxJob.from_row(row) for row in rows]

    @staticmethod
    def recent_failures(limit: int = 20) -> List[OutboxJob]:
        rows = (
            EmailOutbox.query
            .filter(EmailOutbox.status == FAILED)
            .order_by(EmailOutbox.updated_at.desc(), EmailOutbox.id.desc())
            .limit(limit)
            .all()
        )
        return [OutboxJob.from_row(row) for row in rows]
