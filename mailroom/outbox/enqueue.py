# mailroom/outbox/enqueue.py
"""
Enqueue API: the only path that creates outbox jobs.

Called synchronously from business-action handlers (application approved,
broadcast mailing) with a fully rendered payload. A duplicate result means
the email for that business event is already queued and is not an error.
"""
from typing import Any, Dict, Optional, Union

from mailroom.logging_config import get_logger, summarize_email
from mailroom.outbox.payloads import EmailPayload, JobType, payload_to_dict, resolve_job_type
from mailroom.outbox.results import EnqueueResult, EnqueueStatus
from mailroom.outbox.store import OutboxStore

logger = get_logger(__name__)


def enqueue_email(job_type: Union[JobType, str], correlation_key: Optional[Any],
                  payload: Union[EmailPayload, Dict[str, Any]],
                  commit: bool = True) -> EnqueueResult:
    """
    Queue an email for delivery by the outbox worker.

    Args:
        job_type: JobType (or its string value)
        correlation_key: Business entity that caused the email, e.g. an
            application id. At most one job exists per (job_type, key).
            None disables the duplicate check.
        payload: Payload dataclass or an equivalent dict, stored as given
        commit: Commit immediately. Pass False to make the enqueue part of
            the caller's transaction so the business change and the email
            are committed together. On storage_error the caller's
            transaction is not rolled back; the caller decides whether to
            commit its own changes or roll everything back.

    Returns:
        EnqueueResult (created, duplicate or storage_error)

    Raises:
        ValueError: If job_type is not a known JobType
    """
    resolved = resolve_job_type(job_type)
    if not isinstance(payload, dict):
        payload = payload_to_dict(payload)
    key = str(correlation_key) if correlation_key is not None else None

    log = logger.bind(
        outbox_type=resolved.value,
        correlation_key=key,
        **summarize_email(payload.get("to_email"))
    )

    result = OutboxStore.enqueue(resolved.value, key, payload, commit=commit)

    if result.status is EnqueueStatus.CREATED:
        log.info("email_outbox_enqueue_success", outbox_id=result.job_id)
    elif result.status is EnqueueStatus.DUPLICATE:
        log.warning("email_outbox_enqueue_duplicate", existing_outbox_id=result.job_id)
    else:
        log.error("email_outbox_enqueue_failed", error=result.error)
    return result
