"""
Migration script to create the pushtrello tables.

Creates raw_payloads, action_records, deferred_jobs and system_logs when they
are missing. Existing tables are left alone, so the script can be re-run.

Run this script with:
    python migrations/create_pushtrello_tables.py

Or from the app context:
    from migrations.create_pushtrello_tables import migrate
    migrate()
"""

import sys
import os

# Add parent directory to path to import pushtrello modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
from sqlalchemy import inspect

load_dotenv()

from pushtrello import create_app
from pushtrello.config import get_config
from pushtrello.models import db, RawPayload, ActionRecord, DeferredJob, SystemLog

TABLES = [RawPayload, ActionRecord, DeferredJob, SystemLog]


def table_exists(table_name):
    """Check if a table exists in the database."""
    inspector = inspect(db.engine)
    return table_name in inspector.get_table_names()


def migrate():
    """Create every pushtrello table that doesn't exist yet."""
    class MigrationConfig(get_config()):
        # Tables are created below, one by one
        AUTO_CREATE_TABLES = False
        RUN_SCHEDULER = False

    app = create_app(MigrationConfig)

    with app.app_context():
        created = 0
        for model in TABLES:
            table_name = model.__tablename__
            if table_exists(table_name):
                print(f"✓ Table '{table_name}' already exists. Skipping.")
                continue

            print(f"Creating '{table_name}' table...")
            try:
                model.__table__.create(db.engine, checkfirst=True)
            except Exception as e:
                print(f"✗ ERROR: Failed to create table '{table_name}': {e}")
                db.session.rollback()
                return False

            if not table_exists(table_name):
                print(f"✗ ERROR: Table '{table_name}' creation verification failed")
                return False

            print(f"✓ Successfully created '{table_name}' table")
            inspector = inspect(db.engine)
            for col in inspector.get_columns(table_name):
                print(f"  - {col['name']}: {col['type']}")
            for idx in inspector.get_indexes(table_name):
                print(f"  - index {idx['name']}: {idx['column_names']}")
            created += 1

        print(f"\nDone. {created} table(s) created.")
        return True


if __name__ == "__main__":
    success = migrate()
    sys.exit(0 if success else 1)
