import atexit

from flask import Flask

from mailroom.models import db
from mailroom.logging_config import configure_logging, get_logger

# scheduler imports
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.executors.pool import ThreadPoolExecutor

logger = get_logger(__name__)

SCHEDULER_EXTENSION = "outbox_scheduler"
DEFAULT_INTERVAL_SECONDS = 5.0


def init_scheduler(app):
    """Start the periodic outbox trigger for this app, once.

    The job is one caller of ``run_batch_once`` among several (cron and admin
    endpoints); overlapping runs are safe, so a slow batch only delays the
    next tick of this scheduler.

    Returns:
        The running BackgroundScheduler, or None when disabled.
    """
    if not app.config.get("EMAIL_OUTBOX_SCHEDULER_ENABLED", True):
        logger.info("Outbox scheduler disabled by configuration")
        return None

    existing = app.extensions.get(SCHEDULER_EXTENSION)
    if existing is not None:
        return existing

    from mailroom.outbox.worker import run_batch_once

    interval = app.config.get("EMAIL_OUTBOX_INTERVAL_SECONDS") or DEFAULT_INTERVAL_SECONDS
    if interval < 0.1:
        interval = DEFAULT_INTERVAL_SECONDS

    executors = {"default": ThreadPoolExecutor(1)}
    scheduler = BackgroundScheduler(executors=executors, timezone="UTC")

    scheduler.add_job(
        func=run_batch_once,
        kwargs={"app": app, "trigger": "scheduler"},
        trigger="interval",
        seconds=interval,
        id="email_outbox",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    app.extensions[SCHEDULER_EXTENSION] = scheduler
    atexit.register(shutdown_scheduler, app)

    logger.info("Outbox scheduler started", interval_seconds=interval)
    return scheduler


def shutdown_scheduler(app, wait=False):
    """Stop the periodic outbox trigger if it is running."""
    scheduler = app.extensions.pop(SCHEDULER_EXTENSION, None)
    if scheduler is None:
        return
    if scheduler.running:
        scheduler.shutdown(wait=wait)
    logger.info("Outbox scheduler stopped")


def create_app(config_class=None):
    # Import config after dotenv is loaded
    from mailroom.config import get_config
    from mailroom.db_config import configure_database, enable_sqlite_savepoints
    from mailroom.email.brevo import BrevoSender
    from mailroom.api import api_bp

    config_class = config_class or get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(log_level=app.config.get("LOG_LEVEL", "INFO"),
                      log_file=app.config.get("LOG_FILE"))

    # Configure database separately
    configure_database(app)
    db.init_app(app)
    with app.app_context():
        if db.engine.dialect.name == "sqlite":
            enable_sqlite_savepoints(db.engine)

    logger.info("Starting application", environment=config_class.ENV)

    # Provider adapter used by every outbox trigger; tests swap in a fake
    app.extensions["email_sender"] = BrevoSender.from_config(app.config)

    app.register_blueprint(api_bp)

    @app.route("/health")
    def health():
        return {"status": "ok"}, 200

    init_scheduler(app)
    return app
