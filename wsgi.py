from mailroom import create_app

app = create_app()

# Each gunicorn worker runs its own outbox scheduler; that is safe because
# jobs are claimed with a conditional update. Set
# EMAIL_OUTBOX_SCHEDULER_ENABLED=false to rely on the cron trigger only.
