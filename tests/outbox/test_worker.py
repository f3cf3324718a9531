# tests/outbox/test_worker.py
"""
Tests for the claim-and-process worker and its retry policy.
"""
from datetime import timedelta
from unittest.mock import patch

from mailroom.email.brevo import SendResult
from mailroom.models import EmailOutbox
from mailroom.outbox.failures import FailureKind
from mailroom.outbox.store import OutboxStore
from mailroom.outbox.worker import OutboxWorker, run_batch_once
from tests.conftest import NOW, FakeSender


def _enqueue(payload, key=None, job_type="application_approved"):
    return OutboxStore.enqueue(job_type, key, payload).job_id


def _worker(sender, **kwargs):
    return OutboxWorker(sender=sender, **kwargs)


def test_empty_batch_is_a_no_op(app):
    sender = FakeSender()

    summary = _worker(sender).run_batch_once(now=NOW)

    assert summary.claimed == 0
    assert sender.calls == []


def test_successful_send_marks_job_sent(app, approval_payload):
    job_id = _enqueue(approval_payload, key="app-42")
    sender = FakeSender()

    summary = _worker(sender).run_batch_once(now=NOW)

    assert summary.to_dict() == {"claimed": 1, "sent": 1, "retried": 0, "gave_up": 0}
    assert sender.calls == [{
        "to_email": "a@x.com",
        "to_name": "Alex",
        "subject": "Hi",
        "body": "Hi",
        "tags": ["application-approved"],
    }]
    job = OutboxStore.get(job_id)
    assert job.status == "sent"
    assert job.attempts == 1
    assert job.next_attempt_at is None
    assert job.last_error is None


def test_first_failure_schedules_retry_in_five_seconds(app, approval_payload):
    job_id = _enqueue(approval_payload, key="app-42")
    sender = FakeSender().fail_always()

    summary = _worker(sender).run_batch_once(now=NOW)

    assert summary.retried == 1
    job = OutboxStore.get(job_id)
    assert job.status == "pending"
    assert job.attempts == 1
    assert job.next_attempt_at == NOW + timedelta(seconds=5)
    assert job.last_error == "send_failed"
    assert job.last_error_detail == "provider 503"


def test_retry_is_not_claimed_before_it_is_due(app, approval_payload):
    _enqueue(approval_payload)
    sender = FakeSender().fail_always()
    worker = _worker(sender)

    worker.run_batch_once(now=NOW)
    early = worker.run_batch_once(now=NOW + timedelta(seconds=4))
    on_time = worker.run_batch_once(now=NOW + timedelta(seconds=5))

    assert early.claimed == 0
    assert on_time.claimed == 1
    assert len(sender.calls) == 2


def test_always_failing_job_gives_up_after_schedule_is_exhausted(app, approval_payload):
    job_id = _enqueue(approval_payload, key="app-42")
    sender = FakeSender().fail_always()
    worker = _worker(sender)

    now = NOW
    history = []
    for _ in range(10):
        worker.run_batch_once(now=now)
        job = OutboxStore.get(job_id)
        history.append(job.attempts)
        now += timedelta(hours=25)

    job = OutboxStore.get(job_id)
    assert job.status == "failed"
    assert job.attempts == 7
    assert job.next_attempt_at is None
    assert job.last_error == "send_failed"
    assert len(sender.calls) == 7
    # Attempts rise by exactly one per attempt and freeze once terminal
    assert history == [1, 2, 3, 4, 5, 6, 7, 7, 7, 7]


def test_short_schedule_gives_up_after_len_plus_one_attempts(app, approval_payload):
    job_id = _enqueue(approval_payload)
    sender = FakeSender().fail_always(FailureKind.TIMEOUT, "timed out")
    worker = _worker(sender, schedule=[timedelta(seconds=1), timedelta(seconds=2)])

    for offset in (0, 10, 20, 30):
        worker.run_batch_once(now=NOW + timedelta(seconds=offset))

    job = OutboxStore.get(job_id)
    assert job.status == "failed"
    assert job.attempts == 3
    assert job.last_error == "timeout"


def test_give_up_log_reports_attempt_limit(app, approval_payload):
    _enqueue(approval_payload)
    sender = FakeSender().fail_always(FailureKind.SEND_FAILED, "provider 503")
    worker = _worker(sender, schedule=[timedelta(seconds=1)])

    with patch("mailroom.outbox.worker.logger") as mock_logger:
        worker.run_batch_once(now=NOW)
        worker.run_batch_once(now=NOW + timedelta(seconds=10))

    mock_logger.bind.return_value.error.assert_any_call(
        "email_outbox_gave_up", details="provider 503", max_attempts=2
    )


def test_invalid_payload_gives_up_without_sending(app):
    job_id = _enqueue({"to_email": "a@x.com", "body": "no subject"})
    sender = FakeSender()

    summary = _worker(sender).run_batch_once(now=NOW)

    assert summary.gave_up == 1
    assert sender.calls == []
    job = OutboxStore.get(job_id)
    assert job.status == "failed"
    assert job.attempts == 1
    assert job.last_error == "invalid_payload"
    assert "subject" in job.last_error_detail
    assert job.next_attempt_at is None


def test_unknown_job_type_gives_up_as_invalid_payload(app, approval_payload):
    job_id = _enqueue(approval_payload, job_type="newsletter")

    _worker(FakeSender()).run_batch_once(now=NOW)

    job = OutboxStore.get(job_id)
    assert job.status == "failed"
    assert job.last_error == "invalid_payload"


def test_unexpected_exception_does_not_abort_the_batch(app, approval_payload):
    ids = [_enqueue({**approval_payload, "to_email": f"user{i}@x.com"}) for i in range(3)]
    sender = FakeSender().queue(SendResult.success(), RuntimeError("boom"), SendResult.success())

    summary = _worker(sender).run_batch_once(now=NOW)

    assert summary.to_dict() == {"claimed": 3, "sent": 2, "retried": 1, "gave_up": 0}
    first, second, third = (OutboxStore.get(job_id) for job_id in ids)
    assert first.status == "sent"
    assert third.status == "sent"
    assert second.status == "pending"
    assert second.attempts == 1
    assert second.last_error == "unexpected_error"
    assert "boom" in second.last_error_detail
    assert second.next_attempt_at == NOW + timedelta(seconds=5)


def test_unexpected_exception_on_last_attempt_gives_up(app, approval_payload):
    job_id = _enqueue(approval_payload)
    sender = FakeSender().queue(RuntimeError("boom"), RuntimeError("boom"))
    worker = _worker(sender, schedule=[timedelta(seconds=1)])

    worker.run_batch_once(now=NOW)
    worker.run_batch_once(now=NOW + timedelta(seconds=1))

    job = OutboxStore.get(job_id)
    assert job.status == "failed"
    assert job.attempts == 2
    assert job.last_error == "unexpected_error"


def test_batch_size_bounds_each_run(app, approval_payload):
    for _ in range(4):
        _enqueue(approval_payload)
    sender = FakeSender()

    summary = _worker(sender, batch_size=3).run_batch_once(now=NOW)

    assert summary.claimed == 3
    assert EmailOutbox.query.filter_by(status="pending").count() == 1


def test_job_resolved_elsewhere_is_not_counted(app, approval_payload):
    job_id = _enqueue(approval_payload)
    job = OutboxStore.claim_due_batch(10, now=NOW)[0]
    OutboxStore.mark_sent(job_id, 1, now=NOW)

    outcome = _worker(FakeSender()).process_job(job, now=NOW)

    assert outcome is None
    assert OutboxStore.get(job_id).attempts == 1


def test_run_batch_once_uses_registered_sender(app, sender, approval_payload):
    _enqueue(approval_payload)

    summary = run_batch_once(app, trigger="test")

    assert summary.sent == 1
    assert len(sender.calls) == 1


def test_run_batch_once_with_delivery_disabled_marks_sent(app, approval_payload):
    """TestingConfig disables delivery, so the real adapter reports a skipped success."""
    job_id = _enqueue(approval_payload)

    summary = run_batch_once(trigger="test")

    assert summary.sent == 1
    assert OutboxStore.get(job_id).status == "sent"
