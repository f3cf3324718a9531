"""
Operator commands for the email outbox.

Usage:
    python -m mailroom.scripts.outbox_cli run                 # Deliver one batch now
    python -m mailroom.scripts.outbox_cli status              # Counts, stuck and failed jobs
    python -m mailroom.scripts.outbox_cli canary --to a@x.com # Send a test email directly
"""

import argparse
import sys
from datetime import timedelta

from mailroom.logging_config import get_logger

logger = get_logger(__name__)


def run_once(app):
    """Deliver one batch, exactly as the scheduler would."""
    from mailroom.outbox.worker import run_batch_once

    summary = run_batch_once(app, trigger="cli")
    print(
        f"[INFO] Claimed {summary.claimed}: sent {summary.sent}, "
        f"retry scheduled {summary.retried}, gave up {summary.gave_up}"
    )
    return 0


def show_status(app, stale_seconds=None):
    """Print job counts per status, jobs stuck in processing, and recent give-ups."""
    from mailroom.outbox.store import OutboxStore

    with app.app_context():
        stale_after = timedelta(
            seconds=stale_seconds or app.config.get("EMAIL_OUTBOX_STALE_AFTER_SECONDS", 900)
        )
        counts = OutboxStore.status_counts()
        stale = OutboxStore.find_stale_processing(stale_after)
        failures = OutboxStore.recent_failures(limit=10)

    print("=" * 60)
    print("EMAIL OUTBOX STATUS")
    print("=" * 60)
    for status, count in counts.items():
        print(f"  {status:<12} {count}")

    print(f"\n[INFO] Stuck in processing for more than {int(stale_after.total_seconds())}s: {len(stale)}")
    for job in stale:
        print(f"  #{job.id} {job.job_type} key={job.correlation_key} since {job.processing_at}")

    print(f"\n[INFO] Recent failures: {len(failures)}")
    for job in failures:
        print(f"  #{job.id} {job.job_type} attempts={job.attempts} error={job.last_error}")
    return 1 if stale else 0


def send_canary(app, to_email, to_name=None):
    """Send one email straight through the provider adapter, bypassing the outbox."""
    from mailroom.email.brevo import BrevoSender

    sender = BrevoSender.from_config(app.config)
    if not sender.enabled:
        print("[ERROR] EMAIL_DELIVERY_ENABLED is off; enable it for canary runs.")
        return 2

    result = sender.send(
        to_email,
        to_name,
        "Mailroom canary",
        "This is a delivery check from the mailroom outbox.",
        ["canary"],
    )
    if not result.ok:
        print(f"[ERROR] Canary email failed: {result.failure.value} ({result.details})")
        return 1
    print(f"[INFO] Canary email sent to {to_email}.")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Email outbox operator commands.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Claim and deliver one batch of due jobs.")

    status_parser = subparsers.add_parser("status", help="Show outbox health.")
    status_parser.add_argument(
        "--stale-seconds", type=int, default=None,
        help="Report processing jobs older than this (default: EMAIL_OUTBOX_STALE_AFTER_SECONDS).",
    )

    canary_parser = subparsers.add_parser("canary", help="Send a test email via the provider.")
    canary_parser.add_argument("--to", required=True, dest="to_email")
    canary_parser.add_argument("--name", default=None, dest="to_name")

    args = parser.parse_args(argv)

    from mailroom import create_app
    from mailroom.config import get_config

    # A one-shot command must not start the background scheduler
    config_class = type("CliConfig", (get_config(),), {"EMAIL_OUTBOX_SCHEDULER_ENABLED": False})
    app = create_app(config_class)

    if args.command == "run":
        return run_once(app)
    if args.command == "status":
        return show_status(app, args.stale_seconds)
    return send_canary(app, args.to_email, args.to_name)


if __name__ == "__main__":
    sys.exit(main())
