"""
Shared fixtures: a Flask app on in-memory SQLite with a fake email provider.
"""
from datetime import datetime

import pytest

from mailroom import create_app
from mailroom.config import TestingConfig
from mailroom.email.brevo import SendResult
from mailroom.models import db
from mailroom.outbox.failures import FailureKind

NOW = datetime(2026, 3, 1, 12, 0, 0)


class FakeSender:
    """
    Stand-in for the provider adapter.

    Each send pops the next scripted outcome: a SendResult, an exception to
    raise, or a callable taking the recipient. Once the script runs out the
    default outcome is used.
    """

    def __init__(self, default=None):
        self.default = default or SendResult.success()
        self.script = []
        self.calls = []

    def queue(self, *outcomes):
        self.script.extend(outcomes)
        return self

    def fail_always(self, failure=FailureKind.SEND_FAILED, details="provider 503"):
        self.default = SendResult.failed(failure, details)
        return self

    def send(self, to_email, to_name, subject, body, tags=None):
        self.calls.append({
            "to_email": to_email,
            "to_name": to_name,
            "subject": subject,
            "body": body,
            "tags": tags,
        })
        outcome = self.script.pop(0) if self.script else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(to_email)
        return outcome


@pytest.fixture
def app():
    """Create Flask application for testing."""
    app = create_app(TestingConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def sender(app):
    """Fake provider registered on the app, used by every trigger."""
    fake = FakeSender()
    app.extensions["email_sender"] = fake
    return fake


@pytest.fixture
def approval_payload():
    return {
        "to_email": "a@x.com",
        "to_name": "Alex",
        "subject": "Hi",
        "body": "Hi",
    }
