#!/usr/bin/env python3
"""
Articles command endpoints for browsing stored articles.
"""

import json
import logging
from argparse import Namespace

from .base import BaseCommand

logger = logging.getLogger(__name__)


class ArticlesCommand(BaseCommand):
    """Browse ingested articles."""

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute articles subcommand."""
        try:
            if subcommand == "list":
                return self.list(args)
            elif subcommand == "show":
                return self.show(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except Exception as e:
            return self.handle_error(e, f"articles {subcommand}")

    def list(self, args: Namespace) -> int:
        """List stored articles, newest first."""
        limit = getattr(args, 'limit', 20)
        offset = getattr(args, 'offset', 0)
        if limit <= 0 or offset < 0:
            raise ValueError("--limit must be positive and --offset non-negative")

        articles = self.database.list_articles(limit=limit, offset=offset)
        if not articles:
            print("No articles stored.")
            return 0

        print(f"\n=== Articles ({offset + 1}-{offset + len(articles)}) ===")
        for article in articles:
            published = article.published_at.strftime('%Y-%m-%d') if article.published_at else '----------'
            print(f"[{article.id:>5}] {published} {article.external_id}  {article.title}")
        return 0

    def show(self, args: Namespace) -> int:
        """Show one article with its paragraphs."""
        if not self.validate_args(args, ['article_id']):
            return 1

        identifier = str(args.article_id)
        if identifier.isdigit():
            article = self.database.get_article(int(identifier))
        else:
            article = self.database.get_article_by_external_id(identifier)

        if article is None:
            print(f"❌ Article {identifier} not found")
            return 1

        if getattr(args, 'json', False):
            print(json.dumps(article.to_dict(), ensure_ascii=False, indent=2, default=str))
            return 0

        print(f"\n=== {article.title} ===")
        print(f"🆔 {article.external_id} (id {article.id})")
        print(f"🔗 {article.url}")
        if article.published_at:
            print(f"📅 {article.published_at.strftime('%Y-%m-%d')}")

        for paragraph in article.paragraphs:
            print(f"\n[{paragraph.position}] {paragraph.raw_text}")
            if getattr(args, 'tokens', False):
                for token in paragraph.tokens:
                    print(f"    {token.surface}\t{token.reading}\t{token.base_form}\t{token.gloss}")
        return 0
