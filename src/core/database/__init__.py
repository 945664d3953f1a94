#!/usr/bin/env python3
"""
Database package for the content store.

Provides modular database services with proper separation of concerns.
"""

from .connection_manager import ConnectionManager
from .article_service import ArticleService
from .state_service import StateService
from .store import ContentStore
from .database_facade import DatabaseFacade

__all__ = [
    'ConnectionManager',
    'ArticleService',
    'StateService',
    'ContentStore',
    'DatabaseFacade',
]
