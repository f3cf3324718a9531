# mailroom/email/brevo.py
"""
Brevo transactional email adapter.

Sends one rendered message through the Brevo SMTP API. Every call is bounded
by a request timeout; failures come back as a SendResult instead of raising.
"""
import json
from dataclasses import dataclass
from typing import List, Optional

import requests

from mailroom.logging_config import get_logger, summarize_email
from mailroom.outbox.failures import FailureKind

logger = get_logger(__name__)

MAX_DETAIL_LENGTH = 1000


class EmailConfigurationError(RuntimeError):
    """Raised when the provider credentials or sender are not configured."""


@dataclass(frozen=True)
class SendResult:
    ok: bool
    failure: Optional[FailureKind] = None
    details: Optional[str] = None
    skipped: bool = False

    @classmethod
    def success(cls, skipped: bool = False) -> "SendResult":
        return cls(ok=True, skipped=skipped)

    @classmethod
    def failed(cls, failure: FailureKind, details: Optional[str] = None) -> "SendResult":
        return cls(ok=False, failure=failure, details=details)


def _truncate(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return text if len(text) <= MAX_DETAIL_LENGTH else text[:MAX_DETAIL_LENGTH] + "..."


class BrevoSender:
    """Provider adapter: ``send(to_email, to_name, subject, body, tags)``."""

    def __init__(self, api_key, sender_email, sender_name, reply_to_email=None,
                 api_url="https://api.brevo.com/v3/smtp/email", timeout=10.0,
                 enabled=True, session=None):
        self.api_key = api_key
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.reply_to_email = reply_to_email
        self.api_url = api_url
        self.timeout = timeout
        self.enabled = enabled
        self.session = session or requests

    @classmethod
    def from_config(cls, config) -> "BrevoSender":
        """Build from a Flask config mapping (or any dict with the same keys)."""
        def clean(key):
            value = config.get(key)
            return value.strip() if isinstance(value, str) and value.strip() else None

        return cls(
            api_key=clean("BREVO_API_KEY"),
            sender_email=clean("BREVO_SENDER_EMAIL"),
            sender_name=clean("BREVO_SENDER_NAME"),
            reply_to_email=clean("BREVO_REPLY_TO_EMAIL"),
            api_url=config.get("BREVO_API_URL") or "https://api.brevo.com/v3/smtp/email",
            timeout=config.get("EMAIL_PROVIDER_TIMEOUT_SECONDS") or 10.0,
            enabled=config.get("EMAIL_DELIVERY_ENABLED", True),
        )

    def _require_config(self):
        if not self.api_key or not self.sender_email or not self.sender_name:
            raise EmailConfigurationError(
                "BREVO_API_KEY, BREVO_SENDER_EMAIL, and BREVO_SENDER_NAME must be configured"
            )

    def build_message(self, to_email: str, to_name: Optional[str], subject: str, body: str,
                      tags: Optional[List[str]] = None) -> dict:
        recipient = {"email": to_email}
        if to_name:
            recipient["name"] = to_name
        message = {
            "sender": {"name": self.sender_name, "email": self.sender_email},
            "to": [recipient],
            "subject": subject,
            "textContent": body,
        }
        if tags:
            message["tags"] = list(tags)
        if self.reply_to_email:
            message["replyTo"] = {"email": self.reply_to_email, "name": self.sender_name}
        return message

    def send(self, to_email: str, to_name: Optional[str], subject: str, body: str,
             tags: Optional[List[str]] = None) -> SendResult:
        """
        Send one email.

        Raises:
            EmailConfigurationError: If delivery is enabled but not configured
        """
        if not self.enabled:
            logger.debug("Email delivery disabled, skipping send", **summarize_email(to_email))
            return SendResult.success(skipped=True)

        self._require_config()
        message = self.build_message(to_email, to_name, subject, body, tags)
        log = logger.bind(**summarize_email(to_email))

        try:
            response = self.session.post(
                self.api_url,
                json=message,
                headers={
                    "api-key": self.api_key,
                    "accept": "application/json",
                    "content-type": "application/json",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as exc:
            log.warning("brevo_send_timeout", timeout_seconds=self.timeout)
            return SendResult.failed(FailureKind.TIMEOUT, _truncate(
                json.dumps({"error_type": type(exc).__name__, "message": str(exc)})
            ))
        except requests.exceptions.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            body_text = exc.response.text if exc.response is not None else ""
            log.error("brevo_send_failed", status_code=status_code)
            return SendResult.failed(FailureKind.SEND_FAILED, _truncate(
                json.dumps({"status_code": status_code, "response": body_text})
            ))
        except requests.exceptions.RequestException as exc:
            log.error("brevo_send_failed", error_type=type(exc).__name__, error=str(exc))
            return SendResult.failed(FailureKind.SEND_FAILED, _truncate(
                json.dumps({"error_type": type(exc).__name__, "message": str(exc)})
            ))

        log.info("brevo_send_success")
        return SendResult.success()
