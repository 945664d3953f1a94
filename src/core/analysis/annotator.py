#!/usr/bin/env python3
"""
Annotation boundary.

An annotator turns one paragraph of Japanese text into an ordered list of
tokens. The ingestion orchestrator only depends on this interface; the
OpenAI-compatible implementation lives in integrations.openai_client.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..models.article import Token


class Annotator(ABC):
    """Abstract base class for paragraph tokenizers."""

    provider = "unknown"

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    def tokenize(self, text: str) -> List[Token]:
        """
        Tokenize one paragraph.

        Args:
            text: Ruby-free paragraph text

        Returns:
            Tokens in reading order

        Raises:
            AnnotationRateLimitError: If the service reports a rate limit or quota condition
            AnnotationError: For any other failure, including malformed responses
        """
        pass

    def test_connection(self) -> bool:
        """Check that the service answers at all."""
        return True

    def describe(self) -> Dict[str, Any]:
        return {'provider': self.provider, 'model': self.model}
