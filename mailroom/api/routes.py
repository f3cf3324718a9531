"""
Outbox trigger endpoints: the external cron call and the admin panel.

Both run exactly the same batch as the in-process scheduler and may overlap
with it at any time.
"""
from datetime import timedelta

from flask import current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from mailroom.api import api_bp
from mailroom.auth.utils import admin_required, cron_secret_required
from mailroom.logging_config import get_logger
from mailroom.outbox.store import OutboxStore
from mailroom.outbox.worker import run_batch_once

logger = get_logger(__name__)


@api_bp.route("/cron/outbox", methods=["GET", "POST"])
@cron_secret_required
def cron_run_outbox():
    """Run one outbox batch for an authenticated external cron."""
    try:
        summary = run_batch_once(trigger="cron")
    except SQLAlchemyError as e:
        logger.error("Error in /api/cron/outbox", error=str(e), exc_info=True)
        return jsonify({'error': 'server_error'}), 500
    return jsonify({'status': 'ok', **summary.to_dict()}), 200


@api_bp.route("/admin/outbox/run", methods=["POST"])
@admin_required
def admin_run_outbox():
    """Run one outbox batch on demand from the admin panel."""
    try:
        summary = run_batch_once(trigger="admin")
    except SQLAlchemyError as e:
        logger.error("Error in /api/admin/outbox/run", error=str(e), exc_info=True)
        return jsonify({'error': 'server_error'}), 500
    return jsonify({'success': True, **summary.to_dict()}), 200


@api_bp.route("/admin/outbox", methods=["GET"])
@admin_required
def admin_outbox_status():
    """Outbox health for operators: counts per status, stuck jobs, recent give-ups."""
    stale_after = timedelta(seconds=current_app.config.get("EMAIL_OUTBOX_STALE_AFTER_SECONDS", 900))
    try:
        counts = OutboxStore.status_counts()
        stale = OutboxStore.find_stale_processing(stale_after)
        failures = OutboxStore.recent_failures(limit=20)
    except SQLAlchemyError as e:
        logger.error("Error in /api/admin/outbox", error=str(e), exc_info=True)
        return jsonify({'error': 'server_error'}), 500

    return jsonify({
        'counts': counts,
        'stale_processing': [job.to_dict() for job in stale],
        'recent_failures': [job.to_dict() for job in failures],
    }), 200
