#!/usr/bin/env python3
"""
Article Database Service

Handles all database operations related to ingested articles and their
paragraphs.
"""

import logging
from typing import List, Dict, Any, Optional

import psycopg
from psycopg.types.json import Jsonb

from core.exceptions import DatabaseOperationError, DuplicateArticleError
from core.models.article import Article, Paragraph

logger = logging.getLogger(__name__)

ARTICLE_COLUMNS = "id, nhk_id, title, url, published_at, fetched_at, created_at"


class ArticleService:
    """Service for article-related database operations."""

    def __init__(self, connection_manager):
        """
        Initialize article service.

        Args:
            connection_manager: Database connection manager instance
        """
        self.connection_manager = connection_manager

    def exists(self, external_id: str) -> bool:
        """
        Check whether an article with this external ID is stored.

        Args:
            external_id: Source article ID

        Returns:
            True if the article exists
        """
        try:
            with self.connection_manager.get_cursor() as cursor:
                cursor.execute(
                    "SELECT EXISTS(SELECT 1 FROM news WHERE nhk_id = %s) AS found",
                    (external_id,)
                )
                row = cursor.fetchone()
                return bool(row and row['found'])

        except psycopg.Error as e:
            logger.error(f"Failed to check article {external_id}: {e}")
            raise DatabaseOperationError('select', 'news', e) from e

    def insert_article(self, article: Article) -> int:
        """
        Insert an article with all its paragraphs in one transaction.

        Either the article row and every paragraph row become visible, or
        none of them do.

        Args:
            article: Article with paragraphs and tokens

        Returns:
            Database ID of the new article row

        Raises:
            DuplicateArticleError: If the external ID is already stored
            DatabaseOperationError: If any statement fails
        """
        try:
            with self.connection_manager.transaction() as cursor:
                cursor.execute("""
                    INSERT INTO news (nhk_id, title, url, published_at, fetched_at)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING id
                """, (
                    article.external_id,
                    article.title,
                    article.url,
                    article.published_at,
                    article.fetched_at
                ))
                news_id = cursor.fetchone()['id']

                for paragraph in article.paragraphs:
                    cursor.execute("""
                        INSERT INTO paragraphs (news_id, position, raw_text, tokens)
                        VALUES (%s, %s, %s, %s)
                    """, (
                        news_id,
                        paragraph.position,
                        paragraph.raw_text,
                        Jsonb(paragraph.tokens_to_json())
                    ))

        except psycopg.errors.UniqueViolation as e:
            logger.warning(f"Article {article.external_id} already stored")
            raise DuplicateArticleError(article.external_id) from e
        except psycopg.Error as e:
            logger.error(f"Failed to insert article {article.external_id}: {e}")
            raise DatabaseOperationError('insert', 'news', e) from e

        logger.info(f"Stored article {article.external_id} ({len(article.paragraphs)} paragraphs) as id {news_id}")
        return news_id

    def list_articles(self, limit: int = 20, offset: int = 0) -> List[Article]:
        """
        List articles newest first, without paragraphs.

        Args:
            limit: Maximum number of articles
            offset: Number of articles to skip

        Returns:
            List of Article objects
        """
        try:
            with self.connection_manager.get_cursor() as cursor:
                cursor.execute(f"""
                    SELECT {ARTICLE_COLUMNS}
                    FROM news
                    ORDER BY created_at DESC, id DESC
                    LIMIT %s OFFSET %s
                """, (limit, offset))

                return [self._row_to_article(row) for row in cursor.fetchall()]

        except psycopg.Error as e:
            logger.error(f"Failed to list articles: {e}")
            raise DatabaseOperationError('select', 'news', e) from e

    def get_article(self, article_id: int) -> Optional[Article]:
        """
        Get one article with its paragraphs ordered by position.

        Args:
            article_id: Database ID

        Returns:
            Article or None if not found
        """
        return self._get_article_where("id = %s", article_id)

    def get_article_by_external_id(self, external_id: str) -> Optional[Article]:
        """Get one article with its paragraphs by source ID."""
        return self._get_article_where("nhk_id = %s", external_id)

    def _get_article_where(self, condition: str, value: Any) -> Optional[Article]:
        try:
            with self.connection_manager.get_cursor() as cursor:
                cursor.execute(f"SELECT {ARTICLE_COLUMNS} FROM news WHERE {condition}", (value,))
                row = cursor.fetchone()
                if not row:
                    return None

                article = self._row_to_article(row)
                cursor.execute("""
                    SELECT id, position, raw_text, tokens
                    FROM paragraphs
                    WHERE news_id = %s
                    ORDER BY position
                """, (article.id,))
                article.paragraphs = [Paragraph.from_dict(dict(p)) for p in cursor.fetchall()]
                return article

        except psycopg.Error as e:
            logger.error(f"Failed to get article ({condition} {value}): {e}")
            raise DatabaseOperationError('select', 'news', e) from e

    def get_article_stats(self) -> Dict[str, Any]:
        """
        Get article statistics.

        Returns:
            Dictionary with article statistics
        """
        try:
            with self.connection_manager.get_cursor() as cursor:
                cursor.execute("""
                    SELECT
                        COUNT(*) as total_articles,
                        COUNT(CASE WHEN created_at >= NOW() - INTERVAL '24 hours' THEN 1 END) as articles_24h,
                        COUNT(CASE WHEN created_at >= NOW() - INTERVAL '7 days' THEN 1 END) as articles_7d,
                        MIN(created_at) as oldest_article,
                        MAX(created_at) as newest_article
                    FROM news
                """)
                stats = dict(cursor.fetchone())

                cursor.execute("SELECT COUNT(*) as count FROM paragraphs")
                stats['total_paragraphs'] = cursor.fetchone()['count']

                return stats

        except psycopg.Error as e:
            logger.error(f"Failed to get article stats: {e}")
            raise DatabaseOperationError('select', 'news', e) from e

    @staticmethod
    def _row_to_article(row: Dict[str, Any]) -> Article:
        return Article(
            id=row['id'],
            external_id=row['nhk_id'],
            title=row['title'],
            url=row['url'],
            published_at=row['published_at'],
            fetched_at=row['fetched_at'],
            created_at=row['created_at']
        )
