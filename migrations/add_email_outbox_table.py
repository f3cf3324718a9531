"""
Create the email_outbox table with its uniqueness constraint and due-job index.

Usage:
    python migrations/add_email_outbox_table.py
    python migrations/add_email_outbox_table.py --database-url postgresql://...

The script is idempotent and safe to run multiple times. It inspects the current
schema before attempting to create anything.
"""

import argparse
import os
import sys

from dotenv import load_dotenv

from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import OperationalError, ProgrammingError

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_SQLITE_PATH = os.path.join(ROOT_DIR, "instance", "mailroom.sqlite")

# Load environment variables from a .env file if present
load_dotenv()

TABLE_NAME = "email_outbox"
INDEX_NAME = "ix_email_outbox_due"


def normalize_sqlite_path(path: str) -> str:
    """Return a SQLAlchemy-friendly SQLite URL for the given path."""
    if not os.path.isabs(path):
        path = os.path.join(ROOT_DIR, path)
    return f"sqlite:///{path}"


def infer_database_url(cli_url: str = None) -> str:
    """Figure out which database to hit, honoring CLI and environment defaults."""
    candidates = [
        cli_url,
        os.environ.get("DATABASE_URL"),
        os.environ.get("PRODUCTION_DATABASE_URL"),
        os.environ.get("SANDBOX_DATABASE_URL"),
        os.environ.get("LOCAL_DATABASE_URL"),
    ]

    for value in candidates:
        if not value:
            continue

        value = value.strip()
        if value.startswith("postgres://"):
            # SQLAlchemy expects postgresql://
            return value.replace("postgres://", "postgresql://", 1)

        if value.startswith(("postgresql://", "mysql://", "mariadb://", "sqlite://")):
            return value

        # Treat anything else as a filesystem path to a SQLite DB
        return normalize_sqlite_path(value)

    return normalize_sqlite_path(DEFAULT_SQLITE_PATH)


def table_exists(engine, table_name: str) -> bool:
    return inspect(engine).has_table(table_name)


def index_exists(engine, table_name: str, index_name: str) -> bool:
    """Check if a given index exists on the specified table."""
    indexes = inspect(engine).get_indexes(table_name)
    return any(idx["name"] == index_name for idx in indexes)


def migrate(database_url: str = None) -> bool:
    """Create email_outbox and its index if they are missing."""
    from mailroom.models import EmailOutbox

    db_url = infer_database_url(database_url)
    print(f"Connecting to database: {db_url.split('@')[-1]}")

    if db_url.startswith("sqlite:///"):
        os.makedirs(os.path.dirname(db_url[len("sqlite:///"):]) or ".", exist_ok=True)

    engine = create_engine(db_url)
    table = EmailOutbox.__table__

    try:
        if table_exists(engine, TABLE_NAME):
            print(f"✓ Table '{TABLE_NAME}' already exists.")
        else:
            print(f"Creating table '{TABLE_NAME}'...")
            # Creates the unique constraint and the declared index with it
            table.create(engine)

        if not index_exists(engine, TABLE_NAME, INDEX_NAME):
            print(f"Adding index '{INDEX_NAME}' on (status, next_attempt_at, id)...")
            for index in table.indexes:
                if index.name == INDEX_NAME:
                    index.create(engine)

        if table_exists(engine, TABLE_NAME) and index_exists(engine, TABLE_NAME, INDEX_NAME):
            print(f"✓ '{TABLE_NAME}' is up to date.")
            return True

        print("✗ Migration did not complete. Please verify manually.")
        return False

    except (OperationalError, ProgrammingError) as exc:
        print(f"✗ Database error while creating '{TABLE_NAME}': {exc}")
        return False
    finally:
        engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Create the email_outbox table and its indexes."
    )
    parser.add_argument(
        "--database-url",
        help="Override database URL (otherwise inferred from env or defaults).",
    )
    args = parser.parse_args()

    success = migrate(args.database_url)
    sys.exit(0 if success else 1)
