"""Database configuration and setup for different environments."""
import os

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def get_database_engine_options():
    """Get database engine options for PostgreSQL connections."""
    from sqlalchemy.pool import QueuePool
    
    return {
        "pool_pre_ping": True,        # Detect and refresh dead connections before use
        "pool_recycle": 280,
        "pool_size": 5,
        "max_overflow": 10,           # Scheduler, cron and admin triggers may overlap
        "pool_timeout": 30,
        "poolclass": QueuePool,
        "connect_args": {
            "sslmode": "require",
            "connect_timeout": 10,
            "application_name": "mailroom",
            "options": "-c statement_timeout=30000"  # 30s max per SQL statement
        },
    }


def normalize_database_url(url):
    """SQLAlchemy expects postgresql:// rather than the legacy postgres:// scheme."""
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def get_local_database_config():
    """Get database configuration for local development.
    
    Returns:
        tuple: (database_uri, engine_options)
    """
    database_uri = os.environ.get("LOCAL_DATABASE_URL") or "sqlite:///mailroom.sqlite"
    engine_options = None
    if database_uri.startswith("sqlite"):
        # Seconds a transaction waits for another trigger's write lock
        engine_options = {"connect_args": {"timeout": SQLITE_BUSY_TIMEOUT_SECONDS}}
    return normalize_database_url(database_uri), engine_options


def get_sandbox_database_config():
    """Get database configuration for sandbox/staging environment.
    
    Raises:
        ValueError: If database URL is not configured
    """
    database_url = os.environ.get("SANDBOX_DATABASE_URL")
    if not database_url:
        raise ValueError("SANDBOX_DATABASE_URL must be set for sandbox environment")
    
    return normalize_database_url(database_url), get_database_engine_options()


def get_production_database_config():
    """Get database configuration for production environment.
    
    Raises:
        ValueError: If database URL is not configured
    """
    database_url = os.environ.get("PRODUCTION_DATABASE_URL") or os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("PRODUCTION_DATABASE_URL or DATABASE_URL must be set for production environment")
    
    return normalize_database_url(database_url), get_database_engine_options()


def get_database_config(environment=None):
    """Get database configuration based on environment.
    
    Args:
        environment: Environment name ('local', 'sandbox', 'production')
                    If None, will be determined from ENVIRONMENT or FLASK_ENV env vars.
    
    Returns:
        tuple: (database_uri, engine_options)
    """
    if environment is None:
        environment = os.environ.get("FLASK_ENV") or os.environ.get("ENVIRONMENT", "local")
    environment = environment.lower()
    
    if environment in ["sandbox", "staging", "stage"]:
        return get_sandbox_database_config()
    elif environment in ["production", "prod"]:
        return get_production_database_config()
    else:
        return get_local_database_config()


def configure_database(app):
    """Configure database settings for the Flask app.
    
    Sets SQLALCHEMY_DATABASE_URI and SQLALCHEMY_ENGINE_OPTIONS on the app
    config based on the current environment, unless the config class already
    pinned a database URI (as TestingConfig does).
    
    Args:
        app: Flask application instance
    """
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config.setdefault("SQLALCHEMY_ECHO", False)

    if app.config.get("SQLALCHEMY_DATABASE_URI"):
        return

    database_uri, engine_options = get_database_config(app.config.get("ENV"))
    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri
    if engine_options:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options


def enable_sqlite_savepoints(engine):
    """Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINTs nest properly.

    The sqlite3 driver otherwise delays BEGIN until the first write, and the
    outermost SAVEPOINT then commits on release instead of joining the
    session's transaction.

    Transactions start with BEGIN IMMEDIATE. A claim reads due rows and then
    updates them; under a deferred BEGIN two overlapping claims both hold a
    read lock, neither can upgrade to a write lock, and SQLite fails one of
    them with "database is locked" without waiting. Taking the write lock up
    front makes overlapping transactions queue on the busy timeout instead.
    """
    from sqlalchemy import event

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
