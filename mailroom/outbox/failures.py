# mailroom/outbox/failures.py
from enum import Enum


class FailureKind(str, Enum):
    """Every way a delivery attempt can fail. Stored as ``last_error``."""
    INVALID_PAYLOAD = "invalid_payload"
    SEND_FAILED = "send_failed"
    TIMEOUT = "timeout"
    UNEXPECTED_ERROR = "unexpected_error"

    @property
    def retryable(self) -> bool:
        return _RETRYABLE[self]


# Must cover every FailureKind member
_RETRYABLE = {
    FailureKind.INVALID_PAYLOAD: False,
    FailureKind.SEND_FAILED: True,
    FailureKind.TIMEOUT: True,
    FailureKind.UNEXPECTED_ERROR: True,
}


class InvalidPayloadError(ValueError):
    """Raised when a job payload does not match its job type's contract."""
