#!/usr/bin/env python3
"""
Core data models for article ingestion.

Contains all data structures used throughout the application.
"""

from .article import Article, Paragraph, Token
from .ingestion import ItemOutcome, ItemStatus, PassResult

__all__ = ['Article', 'Paragraph', 'Token', 'ItemOutcome', 'ItemStatus', 'PassResult']
