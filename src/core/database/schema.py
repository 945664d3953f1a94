#!/usr/bin/env python3
"""
Database schema.

Idempotent DDL for the tables the ingestion pipeline writes and the read
side queries. Safe to apply on every start.
"""

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS news (
        id SERIAL PRIMARY KEY,
        nhk_id TEXT NOT NULL UNIQUE,
        title TEXT NOT NULL,
        url TEXT NOT NULL,
        published_at TIMESTAMPTZ,
        fetched_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS paragraphs (
        id SERIAL PRIMARY KEY,
        news_id INTEGER NOT NULL REFERENCES news(id) ON DELETE CASCADE,
        position INTEGER NOT NULL,
        raw_text TEXT NOT NULL,
        tokens JSONB NOT NULL DEFAULT '[]'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (news_id, position)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS scheduler_state (
        key TEXT PRIMARY KEY,
        value TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_news_created_at ON news (created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_paragraphs_news_id ON paragraphs (news_id, position)",
]

MANAGED_TABLES = ['news', 'paragraphs', 'scheduler_state']


def apply_schema(connection_manager) -> int:
    """
    Apply the schema in one transaction.

    Args:
        connection_manager: Database connection manager instance

    Returns:
        Number of statements executed
    """
    with connection_manager.transaction() as cursor:
        for statement in SCHEMA_STATEMENTS:
            cursor.execute(statement)
    return len(SCHEMA_STATEMENTS)
