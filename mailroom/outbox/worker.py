# mailroom/outbox/worker.py
"""
Claim-and-process worker for the email outbox.

One call to ``run_batch_once`` claims a bounded batch of due jobs, sends them
one by one and records each outcome. Calls are independent and keep no state
between invocations, so the scheduler, the cron endpoint and the admin
endpoint can all run a batch at the same time; the store's conditional claim
decides which caller owns each job.
"""
import json
from datetime import datetime
from typing import Optional

from flask import current_app

from mailroom.datetime_utils import utcnow, format_iso
from mailroom.logging_config import OutboxRunContext, get_logger
from mailroom.outbox.backoff import BACKOFF_SCHEDULE, max_attempts, next_attempt_at, validate_schedule
from mailroom.outbox.failures import FailureKind, InvalidPayloadError
from mailroom.outbox.jobs import OutboxJob
from mailroom.outbox.payloads import parse_payload
from mailroom.outbox.results import BatchSummary
from mailroom.outbox.store import OutboxStore

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 10

SENT = "sent"
RETRIED = "retried"
GAVE_UP = "gave_up"


def _error_details(exc: BaseException) -> str:
    return json.dumps({"error_type": type(exc).__name__, "message": str(exc)})


class OutboxWorker:
    """Delivers due outbox jobs and owns the retry policy"""

    def __init__(self, sender, store=OutboxStore, batch_size: int = DEFAULT_BATCH_SIZE,
                 schedule=BACKOFF_SCHEDULE):
        self.sender = sender
        self.store = store
        self.batch_size = batch_size
        self.schedule = validate_schedule(schedule)

    @classmethod
    def from_app(cls, app=None) -> "OutboxWorker":
        """Build a worker from the app's config and registered email sender."""
        app = app or current_app
        sender = app.extensions.get("email_sender")
        if sender is None:
            from mailroom.email.brevo import BrevoSender
            sender = BrevoSender.from_config(app.config)
        return cls(
            sender=sender,
            batch_size=app.config.get("EMAIL_OUTBOX_BATCH_SIZE") or DEFAULT_BATCH_SIZE,
        )

    def run_batch_once(self, now: Optional[datetime] = None) -> BatchSummary:
        """
        Claim and process one batch.

        Failures inside a single job are recorded on that job and never abort
        the batch. A storage error while claiming propagates to the caller;
        the next trigger simply tries again.
        """
        summary = BatchSummary()
        jobs = self.store.claim_due_batch(self.batch_size, now=now)
        summary.claimed = len(jobs)
        if not jobs:
            return summary

        logger.info("Processing claimed outbox jobs", count=len(jobs))
        for job in jobs:
            outcome = self.process_job(job, now=now)
            if outcome == SENT:
                summary.sent += 1
            elif outcome == RETRIED:
                summary.retried += 1
            elif outcome == GAVE_UP:
                summary.gave_up += 1
        return summary

    def process_job(self, job: OutboxJob, now: Optional[datetime] = None) -> Optional[str]:
        """
        Make one delivery attempt for a claimed job.

        Returns:
            'sent', 'retried' or 'gave_up', or None when the store no longer
            held the job in processing and the outcome was not recorded.
        """
        attempts = job.attempts + 1
        log = logger.bind(outbox_id=job.id, job_type=job.job_type, attempts=attempts)

        try:
            try:
                payload = parse_payload(job.job_type, job.payload)
            except InvalidPayloadError as exc:
                log.error("email_outbox_invalid_payload", error=str(exc))
                changed = self.store.mark_gave_up(
                    job.id, attempts, FailureKind.INVALID_PAYLOAD.value, str(exc), now=now
                )
                return GAVE_UP if changed else None

            result = self.sender.send(
                payload.to_email, payload.to_name, payload.subject, payload.body, payload.tags
            )
            if result.ok:
                changed = self.store.mark_sent(job.id, attempts, now=now)
                log.info("email_outbox_sent", skipped=getattr(result, "skipped", False))
                return SENT if changed else None

            failure = result.failure or FailureKind.SEND_FAILED
            return self._record_failure(job, attempts, failure, result.details, now)

        except Exception as exc:
            log.error("email_outbox_send_failed", error=str(exc), exc_info=True)
            return self._record_failure(
                job, attempts, FailureKind.UNEXPECTED_ERROR, _error_details(exc), now
            )

    def _record_failure(self, job: OutboxJob, attempts: int, failure: FailureKind,
                        details: Optional[str], now: Optional[datetime]) -> Optional[str]:
        """Schedule a retry from the backoff schedule, or give up when none is left."""
        log = logger.bind(outbox_id=job.id, job_type=job.job_type, attempts=attempts,
                          error=failure.value)

        next_at = None
        if failure.retryable:
            next_at = next_attempt_at(attempts, now or utcnow(), self.schedule)

        if next_at is None:
            log.error("email_outbox_gave_up", details=details,
                      max_attempts=max_attempts(self.schedule))
            changed = self.store.mark_gave_up(job.id, attempts, failure.value, details, now=now)
            return GAVE_UP if changed else None

        log.warning("email_outbox_retry_scheduled", next_attempt_at=format_iso(next_at))
        changed = self.store.mark_retry(job.id, attempts, failure.value, details, next_at, now=now)
        return RETRIED if changed else None


def run_batch_once(app=None, trigger: str = "manual") -> BatchSummary:
    """
    Run one outbox batch. Safe to call repeatedly and concurrently.

    Args:
        app: Flask app to push a context for (scheduler threads); when None
            the current app context is used
        trigger: 'scheduler', 'cron', 'admin' or 'cli', for logging
    """
    if app is not None:
        with app.app_context():
            return _run(trigger)
    return _run(trigger)


def _run(trigger: str) -> BatchSummary:
    worker = OutboxWorker.from_app()
    with OutboxRunContext(trigger) as run:
        run.summary = worker.run_batch_once()
    return run.summary
