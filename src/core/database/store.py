#!/usr/bin/env python3
"""
Content store contract.

The operations the ingestion orchestrator and scheduler need from
persistent storage. DatabaseFacade implements them on PostgreSQL.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ..models.article import Article


class ContentStore(ABC):
    """Abstract base class for article and run state storage."""

    @abstractmethod
    def exists(self, external_id: str) -> bool:
        """Check whether an article with this external ID is stored."""
        pass

    @abstractmethod
    def insert_article(self, article: Article) -> int:
        """
        Persist an article with all its paragraphs atomically.

        Returns:
            ID assigned to the article

        Raises:
            DuplicateArticleError: If the external ID is already stored
            DatabaseError: If the write fails; nothing is persisted
        """
        pass

    @abstractmethod
    def get_last_pass_time(self) -> Optional[datetime]:
        """Completion time of the last successful pass, None if never run."""
        pass

    @abstractmethod
    def set_last_pass_time(self, timestamp: datetime) -> None:
        """Record the completion time of a successful pass."""
        pass
