#!/usr/bin/env python3
"""
Database Facade

Provides the unified content store interface on top of the modular
article and state services.
"""

import logging
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional

from .connection_manager import ConnectionManager
from .article_service import ArticleService
from .state_service import StateService
from .schema import apply_schema, MANAGED_TABLES
from .store import ContentStore
from ..models.article import Article

logger = logging.getLogger(__name__)


class DatabaseFacade(ContentStore):
    """
    PostgreSQL content store using modular services.

    The ingestion pipeline writes through exists/insert_article and the run
    state methods; the CLI and external readers use the read side.
    """

    def __init__(self, config, connection_manager: Optional[ConnectionManager] = None):
        """
        Initialize database facade with configuration.

        Args:
            config: Application configuration object
            connection_manager: Existing connection manager (tests)
        """
        self.config = config
        self.connection_manager = connection_manager or ConnectionManager(config.database)

        # Initialize services
        self.articles = ArticleService(self.connection_manager)
        self.state = StateService(self.connection_manager)

    # Article Operations

    def exists(self, external_id: str) -> bool:
        return self.articles.exists(external_id)

    def insert_article(self, article: Article) -> int:
        return self.articles.insert_article(article)

    def list_articles(self, limit: int = 20, offset: int = 0) -> List[Article]:
        """List articles newest first, without paragraphs."""
        return self.articles.list_articles(limit, offset)

    def get_article(self, article_id: int) -> Optional[Article]:
        """Get one article with paragraphs ordered by position."""
        return self.articles.get_article(article_id)

    def get_article_by_external_id(self, external_id: str) -> Optional[Article]:
        return self.articles.get_article_by_external_id(external_id)

    # Run State Operations

    def get_last_pass_time(self) -> Optional[datetime]:
        return self.state.get_last_pass_time()

    def set_last_pass_time(self, timestamp: datetime) -> None:
        self.state.set_last_pass_time(timestamp)

    def clear_last_pass_time(self) -> bool:
        return self.state.clear_last_pass_time()

    # Schema

    def migrate(self) -> int:
        """
        Apply the idempotent schema.

        Returns:
            Number of statements executed
        """
        count = apply_schema(self.connection_manager)
        logger.info(f"Schema applied ({count} statements, tables: {', '.join(MANAGED_TABLES)})")
        return count

    # Health Check

    def get_stats(self) -> Dict[str, Any]:
        """Article counts plus the last pass time."""
        stats = self.articles.get_article_stats()
        stats['last_pass_at'] = self.get_last_pass_time()
        return stats

    def health_check(self) -> Dict[str, Any]:
        """Check database connection and return status info."""
        try:
            health_info = self.connection_manager.health_check()

            if not health_info.get('connected', False):
                return health_info

            missing = self.connection_manager.missing_tables(MANAGED_TABLES)
            health_info['missing_tables'] = missing
            if missing:
                return health_info

            try:
                article_stats = self.articles.get_article_stats()
                health_info['tables'] = {
                    'news': {
                        'count': article_stats.get('total_articles', 0),
                        'recent_24h': article_stats.get('articles_24h', 0)
                    },
                    'paragraphs': {'count': article_stats.get('total_paragraphs', 0)}
                }
            except Exception as e:
                logger.warning(f"Could not get article stats: {e}")
                health_info['tables'] = {'error': str(e)}

            return health_info

        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                'connected': False,
                'error': str(e),
                'timestamp': datetime.now(timezone.utc).isoformat()
            }

    # Connection Management

    def close(self):
        """Close database connection."""
        self.connection_manager.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
