# tests/outbox/test_payloads.py
import pytest

from mailroom.outbox.failures import FailureKind, InvalidPayloadError
from mailroom.outbox.payloads import (
    ApplicationApprovedPayload,
    ApprovedBroadcastPayload,
    JobType,
    parse_payload,
    payload_to_dict,
    resolve_job_type,
)


def test_parse_application_approved(approval_payload):
    payload = parse_payload("application_approved", {**approval_payload, "application_id": 42})

    assert isinstance(payload, ApplicationApprovedPayload)
    assert payload.to_email == "a@x.com"
    assert payload.application_id == 42
    assert payload.tags == ["application-approved"]


def test_parse_broadcast_keeps_explicit_tags(approval_payload):
    payload = parse_payload(JobType.APPROVED_BROADCAST, {**approval_payload, "tags": ["spring"]})

    assert isinstance(payload, ApprovedBroadcastPayload)
    assert payload.tags == ["spring"]


def test_blank_name_becomes_none(approval_payload):
    payload = parse_payload("approved_broadcast", {**approval_payload, "to_name": "   "})
    assert payload.to_name is None


@pytest.mark.parametrize("missing", ["to_email", "subject", "body"])
def test_missing_required_field_is_invalid(approval_payload, missing):
    raw = dict(approval_payload)
    del raw[missing]
    with pytest.raises(InvalidPayloadError):
        parse_payload("application_approved", raw)


@pytest.mark.parametrize("raw", [None, "not json", ["a@x.com"], 42])
def test_non_object_payload_is_invalid(raw):
    with pytest.raises(InvalidPayloadError):
        parse_payload("application_approved", raw)


def test_address_without_at_sign_is_invalid(approval_payload):
    with pytest.raises(InvalidPayloadError):
        parse_payload("application_approved", {**approval_payload, "to_email": "nobody"})


def test_bad_tags_are_invalid(approval_payload):
    with pytest.raises(InvalidPayloadError):
        parse_payload("approved_broadcast", {**approval_payload, "tags": "one-tag"})


def test_bad_application_id_is_invalid(approval_payload):
    with pytest.raises(InvalidPayloadError):
        parse_payload("application_approved", {**approval_payload, "application_id": "42"})


def test_unknown_job_type_is_an_invalid_payload(approval_payload):
    with pytest.raises(InvalidPayloadError):
        parse_payload("newsletter", approval_payload)


def test_resolve_job_type_rejects_unknown():
    assert resolve_job_type("approved_broadcast") is JobType.APPROVED_BROADCAST
    with pytest.raises(ValueError):
        resolve_job_type("newsletter")


def test_payload_to_dict_drops_empty_optionals():
    payload = ApprovedBroadcastPayload(to_email="a@x.com", subject="S", body="B")
    assert payload_to_dict(payload) == {
        "to_email": "a@x.com",
        "subject": "S",
        "body": "B",
        "tags": ["approved-broadcast"],
    }


def test_only_invalid_payload_is_permanent():
    assert FailureKind.INVALID_PAYLOAD.retryable is False
    assert all(kind.retryable for kind in FailureKind if kind is not FailureKind.INVALID_PAYLOAD)
