import os
from dotenv import load_dotenv

load_dotenv()


def parse_bool(value, default=False):
    """Parse '1', 'true' or 'yes' (any case) as True; None keeps the default."""
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes")


def parse_number(value, default, cast=float):
    """Parse a numeric environment value, falling back to default when invalid."""
    if value is None:
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        return default


class Config:
    """Base configuration class with common settings."""
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")

    # Brevo transactional email
    BREVO_API_KEY = os.environ.get("BREVO_API_KEY")
    BREVO_SENDER_EMAIL = os.environ.get("BREVO_SENDER_EMAIL")
    BREVO_SENDER_NAME = os.environ.get("BREVO_SENDER_NAME")
    BREVO_REPLY_TO_EMAIL = os.environ.get("BREVO_REPLY_TO_EMAIL")
    BREVO_API_URL = os.environ.get("BREVO_API_URL", "https://api.brevo.com/v3/smtp/email")
    EMAIL_DELIVERY_ENABLED = parse_bool(os.environ.get("EMAIL_DELIVERY_ENABLED"), True)
    EMAIL_PROVIDER_TIMEOUT_SECONDS = parse_number(os.environ.get("EMAIL_PROVIDER_TIMEOUT_SECONDS"), 10.0)

    # Outbox worker
    EMAIL_OUTBOX_BATCH_SIZE = parse_number(os.environ.get("EMAIL_OUTBOX_BATCH_SIZE"), 10, int)
    EMAIL_OUTBOX_INTERVAL_SECONDS = parse_number(os.environ.get("EMAIL_OUTBOX_INTERVAL_SECONDS"), 5.0)
    EMAIL_OUTBOX_SCHEDULER_ENABLED = parse_bool(os.environ.get("EMAIL_OUTBOX_SCHEDULER_ENABLED"), True)
    EMAIL_OUTBOX_STALE_AFTER_SECONDS = parse_number(os.environ.get("EMAIL_OUTBOX_STALE_AFTER_SECONDS"), 900, int)

    # Shared secret for the external cron trigger
    OUTBOX_CRON_SECRET = os.environ.get("OUTBOX_CRON_SECRET")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")


class LocalConfig(Config):
    """Configuration for local development."""
    ENV = "local"
    DEBUG = True


class SandboxConfig(Config):
    """Configuration for sandbox/staging environment."""
    ENV = "sandbox"
    DEBUG = False


class ProductionConfig(Config):
    """Configuration for production environment."""
    ENV = "production"
    DEBUG = False


class TestingConfig(Config):
    """Configuration for the pytest suite."""
    ENV = "testing"
    DEBUG = False
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    EMAIL_DELIVERY_ENABLED = False
    EMAIL_OUTBOX_SCHEDULER_ENABLED = False
    OUTBOX_CRON_SECRET = "test-cron-secret"
    LOG_FILE = None


def get_config():
    """Get the appropriate configuration class based on environment variable.
    
    Environment is determined by FLASK_ENV or ENVIRONMENT variable:
    - 'local' or 'development' -> LocalConfig
    - 'sandbox' or 'staging' -> SandboxConfig
    - 'production' or 'prod' -> ProductionConfig
    - 'testing' or 'test' -> TestingConfig
    
    Defaults to LocalConfig if not set.
    """
    env = (os.environ.get("FLASK_ENV") or os.environ.get("ENVIRONMENT", "local")).lower()
    
    if env in ["local", "development", "dev"]:
        return LocalConfig
    elif env in ["sandbox", "staging", "stage"]:
        return SandboxConfig
    elif env in ["production", "prod"]:
        return ProductionConfig
    elif env in ["testing", "test"]:
        return TestingConfig
    else:
        # Default to local for safety
        return LocalConfig
