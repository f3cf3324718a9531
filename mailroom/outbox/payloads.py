# mailroom/outbox/payloads.py
"""
Payload contracts per job type.

Callers render the message (locale, template) before enqueueing; the payload
is stored as JSON and checked against its job type's contract at the start
of each delivery attempt.
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from mailroom.outbox.failures import InvalidPayloadError


class JobType(str, Enum):
    APPLICATION_APPROVED = "application_approved"
    APPROVED_BROADCAST = "approved_broadcast"


@dataclass(frozen=True)
class ApplicationApprovedPayload:
    to_email: str
    subject: str
    body: str
    to_name: Optional[str] = None
    tags: List[str] = field(default_factory=lambda: ["application-approved"])
    application_id: Optional[int] = None


@dataclass(frozen=True)
class ApprovedBroadcastPayload:
    to_email: str
    subject: str
    body: str
    to_name: Optional[str] = None
    tags: List[str] = field(default_factory=lambda: ["approved-broadcast"])


EmailPayload = Union[ApplicationApprovedPayload, ApprovedBroadcastPayload]

PAYLOAD_TYPES = {
    JobType.APPLICATION_APPROVED: ApplicationApprovedPayload,
    JobType.APPROVED_BROADCAST: ApprovedBroadcastPayload,
}


def resolve_job_type(job_type) -> JobType:
    """Return the JobType for a value, raising ValueError when unknown."""
    if isinstance(job_type, JobType):
        return job_type
    try:
        return JobType(job_type)
    except ValueError:
        raise ValueError(f"Unknown outbox job type: {job_type!r}") from None


def _required_text(raw: Dict[str, Any], key: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayloadError(f"'{key}' must be a non-empty string")
    return value


def _optional_text(raw: Dict[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidPayloadError(f"'{key}' must be a string")
    return value.strip() or None


def _tags(raw: Dict[str, Any]) -> Optional[List[str]]:
    value = raw.get("tags")
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
        raise InvalidPayloadError("'tags' must be a list of strings")
    return list(value)


def parse_payload(job_type, raw) -> EmailPayload:
    """
    Validate a stored payload against the contract for its job type.

    Raises:
        InvalidPayloadError: unknown job type, non-object payload, or a
            missing/malformed field. Never retried.
    """
    try:
        resolved = resolve_job_type(job_type)
    except ValueError as exc:
        raise InvalidPayloadError(str(exc)) from None

    if not isinstance(raw, dict):
        raise InvalidPayloadError("payload must be a JSON object")

    to_email = _required_text(raw, "to_email").strip()
    if "@" not in to_email:
        raise InvalidPayloadError("'to_email' is not an email address")

    fields = {
        "to_email": to_email,
        "subject": _required_text(raw, "subject"),
        "body": _required_text(raw, "body"),
        "to_name": _optional_text(raw, "to_name"),
    }
    tags = _tags(raw)
    if tags is not None:
        fields["tags"] = tags

    if resolved is JobType.APPLICATION_APPROVED:
        application_id = raw.get("application_id")
        if application_id is not None and (
            not isinstance(application_id, int) or isinstance(application_id, bool)
        ):
            raise InvalidPayloadError("'application_id' must be an integer")
        return ApplicationApprovedPayload(application_id=application_id, **fields)
    if resolved is JobType.APPROVED_BROADCAST:
        return ApprovedBroadcastPayload(**fields)
    raise InvalidPayloadError(f"No payload contract for job type {resolved.value!r}")


def payload_to_dict(payload: EmailPayload) -> Dict[str, Any]:
    """Serialize a payload variant to the JSON stored on the outbox row."""
    return {key: value for key, value in asdict(payload).items() if value is not None}
