from enum import Enum

from flask_sqlalchemy import SQLAlchemy

from mailroom.datetime_utils import utcnow

db = SQLAlchemy()


class OutboxStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


class EmailOutbox(db.Model):
    """Durable email job. Rows only change state through mailroom.outbox.store."""
    __tablename__ = "email_outbox"
    __table_args__ = (
        db.UniqueConstraint("job_type", "correlation_key", name="uq_email_outbox_type_key"),
        db.Index("ix_email_outbox_due", "status", "next_attempt_at", "id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    job_type = db.Column(db.String(64), nullable=False)
    # NULL keys are not constrained: jobs without a business event never collide
    correlation_key = db.Column(db.String(128), nullable=True)
    payload = db.Column(db.JSON, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=OutboxStatus.PENDING.value)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.String(64), nullable=True)
    last_error_detail = db.Column(db.Text, nullable=True)
    next_attempt_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    processing_at = db.Column(db.DateTime, nullable=True)
    sent_at = db.Column(db.DateTime, nullable=True)

    def __repr__(self):
        return f"<EmailOutbox {self.id} - {self.job_type} - {self.status}>"

