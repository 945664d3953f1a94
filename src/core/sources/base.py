#!/usr/bin/env python3
"""
Base classes for article sources.

Defines the abstract interface the ingestion orchestrator reads from, so
the fetching and parsing strategy can change without touching the pass logic.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field


@dataclass
class ArticleBody:
    """Structured extraction of one article page."""
    external_id: str
    url: str
    title: str
    published_at: Optional[datetime] = None
    paragraphs: List[str] = field(default_factory=list)


class ArticleSource(ABC):
    """
    Abstract base class for article sources.

    Implementations list candidate IDs and extract article bodies on demand.
    """

    name = "source"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize article source.

        Args:
            config: Source-specific configuration
        """
        self.config = config or {}

    @abstractmethod
    def list_candidates(self) -> List[str]:
        """
        List external IDs currently available on the source.

        Returns:
            Unique IDs in source order

        Raises:
            SourceListingError: If the listing cannot be obtained
        """
        pass

    @abstractmethod
    def fetch_article(self, external_id: str) -> ArticleBody:
        """
        Extract title, publish date and ordered paragraphs for one ID.

        Args:
            external_id: ID returned by list_candidates

        Returns:
            ArticleBody with non-empty paragraphs only

        Raises:
            SourceError: If the page cannot be fetched or parsed
        """
        pass

    @abstractmethod
    def article_url(self, external_id: str) -> str:
        """Canonical URL of an article."""
        pass

    def health_check(self) -> Dict[str, Any]:
        """
        Check if source is available.

        Returns:
            Health status dictionary
        """
        return {'source': self.name, 'available': True}
