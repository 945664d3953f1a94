#!/usr/bin/env python3
"""
State Database Service

Handles the scheduler's run state: the completion time of the last
successful ingestion pass.
"""

import logging
from datetime import datetime
from typing import Optional

import psycopg

from core.exceptions import DatabaseOperationError

logger = logging.getLogger(__name__)

LAST_RUN_KEY = 'last_run'


class StateService:
    """Service for run state database operations."""

    def __init__(self, connection_manager):
        """
        Initialize state service.

        Args:
            connection_manager: Database connection manager instance
        """
        self.connection_manager = connection_manager

    def get_last_pass_time(self) -> Optional[datetime]:
        """
        Get the completion time of the last successful pass.

        Returns:
            Timestamp, or None if no pass has completed yet
        """
        try:
            with self.connection_manager.get_cursor() as cursor:
                cursor.execute(
                    "SELECT value FROM scheduler_state WHERE key = %s",
                    (LAST_RUN_KEY,)
                )
                row = cursor.fetchone()
                return row['value'] if row else None

        except psycopg.Error as e:
            logger.error(f"Failed to read last pass time: {e}")
            raise DatabaseOperationError('select', 'scheduler_state', e) from e

    def set_last_pass_time(self, timestamp: datetime) -> None:
        """
        Record the completion time of a successful pass.

        Args:
            timestamp: Pass completion time
        """
        try:
            with self.connection_manager.get_cursor() as cursor:
                cursor.execute("""
                    INSERT INTO scheduler_state (key, value, updated_at)
                    VALUES (%s, %s, NOW())
                    ON CONFLICT (key)
                    DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
                """, (LAST_RUN_KEY, timestamp))

            logger.debug(f"Last pass time set to {timestamp.isoformat()}")

        except psycopg.Error as e:
            logger.error(f"Failed to write last pass time: {e}")
            raise DatabaseOperationError('upsert', 'scheduler_state', e) from e

    def clear_last_pass_time(self) -> bool:
        """
        Forget the last pass so the next scheduler start runs immediately.

        Returns:
            True if a state row was removed
        """
        try:
            with self.connection_manager.get_cursor() as cursor:
                cursor.execute("DELETE FROM scheduler_state WHERE key = %s", (LAST_RUN_KEY,))
                removed = cursor.rowcount > 0

            logger.info("Cleared last pass time" if removed else "No last pass time to clear")
            return removed

        except psycopg.Error as e:
            logger.error(f"Failed to clear last pass time: {e}")
            raise DatabaseOperationError('delete', 'scheduler_state', e) from e
