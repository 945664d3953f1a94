#!/usr/bin/env python3
"""
Apply the database schema (news, paragraphs, scheduler_state).

Safe to run repeatedly; every statement is idempotent.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from core.config import get_config
from core.database import DatabaseFacade
from core.database.schema import MANAGED_TABLES


def apply_migration():
    """Apply the schema to DATABASE_URL."""
    config = get_config()

    print("Database Migration: ingestion schema")
    print("=" * 60)
    print(f"Tables: {', '.join(MANAGED_TABLES)}")

    try:
        with DatabaseFacade(config) as database:
            count = database.migrate()
    except Exception as e:
        print(f"❌ Migration failed: {e}")
        return False

    print(f"✅ Applied {count} statements")
    print("=" * 60)
    print("\nStart the scheduler with:")
    print("python run.py ingest schedule")

    return True


if __name__ == "__main__":
    success = apply_migration()
    sys.exit(0 if success else 1)
