"""
Transactional email outbox.

Business handlers call ``enqueue_email``; the scheduler, the cron endpoint and
the admin endpoint all call ``run_batch_once`` to deliver due jobs.
"""
from mailroom.outbox.enqueue import enqueue_email
from mailroom.outbox.payloads import (
    ApplicationApprovedPayload,
    ApprovedBroadcastPayload,
    JobType,
)
from mailroom.outbox.results import BatchSummary, EnqueueResult, EnqueueStatus
from mailroom.outbox.store import OutboxStore
from mailroom.outbox.worker import OutboxWorker, run_batch_once

__all__ = [
    "ApplicationApprovedPayload",
    "ApprovedBroadcastPayload",
    "BatchSummary",
    "EnqueueResult",
    "EnqueueStatus",
    "JobType",
    "OutboxStore",
    "OutboxWorker",
    "enqueue_email",
    "run_batch_once",
]
