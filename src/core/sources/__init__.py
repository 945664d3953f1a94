#!/usr/bin/env python3
"""
Article sources for the ingestion pipeline.

The orchestrator reads through the ArticleSource interface; NHKEasySource
scrapes NHK News Web Easy.
"""

from .base import ArticleBody, ArticleSource
from .nhk_easy import NHKEasySource, parse_japanese_date

__all__ = ['ArticleBody', 'ArticleSource', 'NHKEasySource', 'parse_japanese_date']
