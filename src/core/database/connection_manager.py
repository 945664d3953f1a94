#!/usr/bin/env python3
"""
Database Connection Manager

Owns the single PostgreSQL connection of the process. Statements run in
autocommit mode; multi-statement writes go through transaction(), which
wraps psycopg's own transaction block so the article graph is committed or
rolled back as a unit. A broken connection is replaced on next use.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

import psycopg
from psycopg.rows import dict_row

from core.exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)

APPLICATION_NAME = "keiko-news"


class ConnectionManager:
    """Lazily (re)connecting holder of the content store connection."""

    def __init__(self, config, connect: bool = True):
        """
        Args:
            config: Database section of the configuration (database_url, connection_timeout)
            connect: Connect immediately; False defers until first use
        """
        self.config = config
        self.connection: Optional[psycopg.Connection] = None
        self.reconnects = 0
        if connect:
            self._connect()

    def _connect(self) -> None:
        try:
            self.connection = psycopg.connect(
                self.config.database_url,
                row_factory=dict_row,
                autocommit=True,
                connect_timeout=self.config.connection_timeout,
                application_name=APPLICATION_NAME
            )
        except psycopg.Error as e:
            logger.error(f"Could not connect to the content store: {e}")
            raise DatabaseConnectionError(e) from e

        info = self.connection.info
        logger.debug(f"Connected to {info.host}:{info.port}/{info.dbname} (server {info.server_version})")

    def _is_usable(self) -> bool:
        return self.connection is not None and not self.connection.closed and not self.connection.broken

    def get_connection(self) -> psycopg.Connection:
        """
        Active connection, reconnecting first if the previous one was lost.

        Raises:
            DatabaseConnectionError: If no connection can be established
        """
        if not self._is_usable():
            if self.connection is not None:
                self.reconnects += 1
                logger.warning(f"Content store connection lost, reconnecting (attempt {self.reconnects})")
            self._connect()
        return self.connection

    @contextmanager
    def get_cursor(self):
        """Cursor for single autocommitted statements."""
        with self.get_connection().cursor() as cursor:
            yield cursor

    @contextmanager
    def transaction(self):
        """
        Cursor inside one transaction.

        Everything executed on the yielded cursor becomes visible together
        when the block exits, or not at all if the block raises.
        """
        connection = self.get_connection()
        with connection.transaction():
            with connection.cursor() as cursor:
                yield cursor

    def missing_tables(self, tables: Iterable[str]) -> List[str]:
        """Names from tables that do not exist in the current schema search path."""
        wanted = list(tables)
        with self.get_cursor() as cursor:
            cursor.execute(
                "SELECT table_name FROM information_schema.tables "
                "WHERE table_schema = ANY(current_schemas(false)) AND table_name = ANY(%s)",
                (wanted,)
            )
            present = {row['table_name'] for row in cursor.fetchall()}
        return [table for table in wanted if table not in present]

    def close(self) -> None:
        if self.connection is not None and not self.connection.closed:
            self.connection.close()
            logger.debug("Content store connection closed")

    def health_check(self) -> Dict[str, Any]:
        """
        Round-trip the server and report connection details.

        Returns:
            Health status; 'connected' is False with an 'error' on failure
        """
        try:
            with self.get_cursor() as cursor:
                cursor.execute("SELECT 1 AS ok, current_database() AS dbname")
                row = cursor.fetchone()

            info = self.connection.info
            return {
                'connected': row['ok'] == 1,
                'database': row['dbname'],
                'server_version': info.server_version,
                'reconnects': self.reconnects
            }

        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                'connected': False,
                'error': str(e)
            }

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
