# tests/outbox/test_enqueue.py
"""
Tests for the enqueue API used by business-action handlers.
"""
import pytest

from mailroom.models import EmailOutbox, db
from mailroom.outbox import ApplicationApprovedPayload, JobType, enqueue_email
from mailroom.outbox.results import EnqueueStatus
from mailroom.outbox.store import OutboxStore
from mailroom.outbox.worker import OutboxWorker
from tests.conftest import NOW, FakeSender


def test_enqueue_then_claim_returns_exactly_that_job(app, approval_payload):
    result = enqueue_email(JobType.APPLICATION_APPROVED, "app-42", approval_payload)

    claimed = OutboxStore.claim_due_batch(10, now=NOW)

    assert result.created
    assert [job.id for job in claimed] == [result.job_id]


def test_second_enqueue_for_same_event_is_duplicate(app, approval_payload):
    first = enqueue_email("application_approved", "app-42", approval_payload)
    second = enqueue_email("application_approved", "app-42", {**approval_payload, "subject": "Again"})

    assert first.status is EnqueueStatus.CREATED
    assert second.status is EnqueueStatus.DUPLICATE
    assert second.ok is True
    rows = EmailOutbox.query.filter_by(job_type="application_approved", correlation_key="app-42").all()
    assert len(rows) == 1
    assert rows[0].payload["subject"] == "Hi"


def test_duplicate_after_delivery_is_still_duplicate(app, approval_payload):
    enqueue_email("application_approved", "app-42", approval_payload)
    OutboxWorker(sender=FakeSender()).run_batch_once(now=NOW)

    again = enqueue_email("application_approved", "app-42", approval_payload)

    assert again.duplicate
    assert EmailOutbox.query.count() == 1


def test_integer_correlation_key_is_stored_as_text(app, approval_payload):
    result = enqueue_email("application_approved", 42, approval_payload)

    assert OutboxStore.get(result.job_id).correlation_key == "42"
    assert enqueue_email("application_approved", "42", approval_payload).duplicate


def test_payload_dataclass_is_serialized(app):
    payload = ApplicationApprovedPayload(
        to_email="a@x.com", subject="Approved", body="Welcome", application_id=42
    )

    result = enqueue_email(JobType.APPLICATION_APPROVED, 42, payload)

    assert OutboxStore.get(result.job_id).payload == {
        "to_email": "a@x.com",
        "subject": "Approved",
        "body": "Welcome",
        "tags": ["application-approved"],
        "application_id": 42,
    }


def test_unknown_job_type_is_rejected(app, approval_payload):
    with pytest.raises(ValueError):
        enqueue_email("newsletter", "app-42", approval_payload)
    assert EmailOutbox.query.count() == 0


def test_enqueue_without_commit_joins_caller_transaction(app, approval_payload):
    """The business change and its email commit or roll back together."""
    result = enqueue_email("application_approved", "app-7", approval_payload, commit=False)
    assert result.created

    db.session.rollback()

    assert EmailOutbox.query.count() == 0


def test_enqueue_without_commit_is_kept_on_caller_commit(app, approval_payload):
    enqueue_email("application_approved", "app-7", approval_payload, commit=False)

    db.session.commit()

    assert EmailOutbox.query.filter_by(correlation_key="app-7").count() == 1


def test_storage_error_without_commit_keeps_caller_transaction(app, approval_payload):
    """A failed enqueue leaves the caller's earlier work for the caller to commit."""
    kept = enqueue_email("application_approved", "app-7", approval_payload, commit=False)
    failed = OutboxStore.enqueue(None, "app-8", approval_payload, commit=False)

    assert kept.created
    assert failed.status is EnqueueStatus.STORAGE_ERROR

    db.session.commit()

    assert EmailOutbox.query.filter_by(correlation_key="app-7").count() == 1
    assert EmailOutbox.query.filter_by(correlation_key="app-8").count() == 0
