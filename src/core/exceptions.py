#!/usr/bin/env python3
"""
Standardized exception hierarchy for the ingestion pipeline.

Provides specific exception types for the three external collaborators
(source, annotator, store) plus configuration, and the classification
helpers the orchestrator uses to pick a failure granularity.
"""

from typing import Optional, Dict, Any


class KeikoError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            context: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'context': self.context
        }


class PassCancelled(KeikoError):
    """Raised when the stop signal is observed in the middle of a pass."""

    def __init__(self, checkpoint: str):
        super().__init__(f"Ingestion pass cancelled at {checkpoint}", context={'checkpoint': checkpoint})


# Source-related exceptions
class SourceError(KeikoError):
    """Base exception for news source errors."""
    pass


class SourceConnectionError(SourceError):
    """Failed to fetch a page from the news source."""

    def __init__(self, source_name: str, url: str, original_error: Exception):
        message = f"Failed to fetch {url} from {source_name}: {original_error}"
        context = {
            'source_name': source_name,
            'url': url,
            'original_error': str(original_error)
        }
        super().__init__(message, context=context)


class SourceParseError(SourceError):
    """A required element was missing from a source page."""

    def __init__(self, source_name: str, parse_stage: str, detail: str):
        message = f"Failed to parse {parse_stage} from {source_name}: {detail}"
        context = {
            'source_name': source_name,
            'parse_stage': parse_stage,
            'detail': detail
        }
        super().__init__(message, context=context)


class SourceListingError(SourceError):
    """The candidate list could not be obtained. Fatal to the whole pass."""

    def __init__(self, source_name: str, original_error: Exception):
        message = f"Failed to list candidates from {source_name}: {original_error}"
        context = {
            'source_name': source_name,
            'original_error': str(original_error)
        }
        super().__init__(message, context=context)


# Annotation-related exceptions
class AnnotationError(KeikoError):
    """Base exception for annotation (tokenization) errors."""

    rate_limited = False

    def __init__(self, provider: str, model: str, original_error: Exception):
        message = f"Annotation failed via {provider} ({model}): {original_error}"
        context = {
            'provider': provider,
            'model': model,
            'original_error': str(original_error),
            'rate_limited': self.rate_limited
        }
        super().__init__(message, context=context)


class AnnotationRateLimitError(AnnotationError):
    """The annotation service reported a rate-limit or quota condition."""

    rate_limited = True


class AnnotationResponseError(AnnotationError):
    """The annotation service answered with something that is not a token list."""
    pass


# Database-related exceptions
class DatabaseError(KeikoError):
    """Base exception for database errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Failed to connect to database."""

    def __init__(self, original_error: Exception):
        message = f"Failed to connect to database: {original_error}"
        context = {'original_error': str(original_error)}
        super().__init__(message, context=context)


class DatabaseOperationError(DatabaseError):
    """Database operation failed."""

    def __init__(self, operation: str, table: str, original_error: Exception):
        message = f"Database {operation} failed on table {table}: {original_error}"
        context = {
            'operation': operation,
            'table': table,
            'original_error': str(original_error)
        }
        super().__init__(message, context=context)


class DuplicateArticleError(DatabaseError):
    """An article with the same external ID is already stored."""

    def __init__(self, external_id: str):
        super().__init__(f"Article {external_id} already exists", context={'external_id': external_id})


# Configuration-related exceptions
class ConfigurationError(KeikoError):
    """Configuration is invalid or missing."""

    def __init__(self, config_key: str, issue: str):
        message = f"Configuration error for {config_key}: {issue}"
        context = {
            'config_key': config_key,
            'issue': issue
        }
        super().__init__(message, context=context)


# Known quota/rate-limit signatures in annotation service error text
RATE_LIMIT_SIGNATURES = ('429', 'RESOURCE_EXHAUSTED')


class ErrorRecovery:
    """Utilities for classifying errors into failure granularities."""

    @staticmethod
    def is_rate_limit_error(error: Optional[BaseException]) -> bool:
        """
        Check if an error means the annotation service is temporarily unusable.

        Args:
            error: Exception raised by an annotation call

        Returns:
            True for rate-limit/quota conditions
        """
        if error is None:
            return False

        if getattr(error, 'rate_limited', False):
            return True

        status_code = getattr(error, 'status_code', None)
        if status_code is None:
            response = getattr(error, 'response', None)
            status_code = getattr(response, 'status_code', None)
        if status_code == 429:
            return True

        text = str(error)
        return any(signature in text for signature in RATE_LIMIT_SIGNATURES)

