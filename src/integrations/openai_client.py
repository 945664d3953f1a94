#!/usr/bin/env python3
"""
OpenAI integration for paragraph tokenization.

Works against the OpenAI API or any OpenAI-compatible endpoint (set
OPENAI_BASE_URL, e.g. Gemini's compatibility endpoint). Responses are
requested with JSON schema enforcement and validated before they become
Token objects. Provider errors are classified into rate-limit and other
annotation failures at this boundary.
"""

import os
import json
import logging
from typing import List, Dict, Optional, Any

import openai
from openai import OpenAI

from core.analysis.annotator import Annotator
from core.exceptions import (
    AnnotationError, AnnotationRateLimitError, AnnotationResponseError, ErrorRecovery
)
from core.models.article import Token
from core.prompts import TokenizationPrompts
from core.schemas import get_schema_by_type
from core.text_sanitizer import preprocess_llm_response

logger = logging.getLogger(__name__)


class OpenAIAnnotator(Annotator):
    """Tokenizer backed by an OpenAI-compatible chat completions API."""

    provider = "openai"

    def __init__(self,
                 api_key: Optional[str] = None,
                 base_url: Optional[str] = None,
                 model: str = "gpt-4o-mini",
                 timeout: int = 60,
                 client: Optional[Any] = None):
        """
        Initialize OpenAI annotator.

        Args:
            api_key: API key. If None, tries to get from environment.
            base_url: OpenAI-compatible endpoint; None for the OpenAI API
            model: Chat model name
            timeout: Request timeout in seconds
            client: Preconstructed client (tests)
        """
        super().__init__(model)
        self.max_tokens = 4096
        self.temperature = 0.0

        if client is not None:
            self.client = client
            return

        api_key = api_key or os.getenv('OPENAI_API_KEY')
        if not api_key:
            raise ValueError("OpenAI API key not provided and not found in OPENAI_API_KEY environment variable")

        # The SDK retries 429s on its own; the pass decides what a rate limit means
        self.client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
        if base_url:
            self.provider = "openai-compatible"

    def _classify_error(self, error: Exception) -> AnnotationError:
        if isinstance(error, openai.RateLimitError) or ErrorRecovery.is_rate_limit_error(error):
            return AnnotationRateLimitError(self.provider, self.model, error)
        return AnnotationError(self.provider, self.model, error)

    def _make_structured_request(self, messages: List[Dict[str, str]], schema: Dict[str, Any],
                                 response_type: str = "unknown") -> str:
        """Make a structured request with JSON schema enforcement and return the message content."""
        logger.debug(f"Making {self.provider} structured API call for {response_type} with {self.model}")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": f"{response_type}_response",
                        "schema": schema,
                        "strict": True
                    }
                }
            )
        except Exception as e:
            classified = self._classify_error(e)
            if classified.rate_limited:
                logger.warning(f"Annotation service rate limited: {e}")
            else:
                logger.error(f"{self.provider} structured API request failed: {e}")
            raise classified from e

        if not getattr(response, 'choices', None):
            raise AnnotationResponseError(self.provider, self.model, ValueError("response has no choices"))

        # Detect truncated responses early
        finish_reason = getattr(response.choices[0], "finish_reason", None)
        if finish_reason == "length":
            logger.error(
                "Response for %s was truncated due to max_tokens=%s",
                response_type,
                self.max_tokens,
            )
            raise AnnotationResponseError(
                self.provider, self.model, ValueError("response truncated (finish_reason=length)")
            )

        usage = getattr(response, 'usage', None)
        if usage is not None:
            logger.debug(
                f"API call successful - tokens: {usage.prompt_tokens} prompt + "
                f"{usage.completion_tokens} completion = {usage.total_tokens} total"
            )

        return response.choices[0].message.content or ""

    def tokenize(self, text: str) -> List[Token]:
        """
        Tokenize one paragraph.

        Args:
            text: Ruby-free paragraph text

        Returns:
            Tokens in reading order
        """
        messages = [
            {"role": "system", "content": TokenizationPrompts.SYSTEM_PROMPT},
            {"role": "user", "content": TokenizationPrompts.get_tokenization_prompt(text)}
        ]

        schema = get_schema_by_type("tokenization")
        content = self._make_structured_request(messages, schema, "tokenization")
        tokens = self.parse_tokens(content)

        if text.strip() and not tokens:
            raise AnnotationResponseError(
                self.provider, self.model, ValueError("empty token list for non-empty paragraph")
            )

        logger.debug(f"Tokenized {len(text)} chars into {len(tokens)} tokens")
        return tokens

    def parse_tokens(self, content: str) -> List[Token]:
        """
        Validate a tokenization response and convert it to Token objects.

        Accepts the {"tokens": [...]} envelope, or a bare list from endpoints
        that do not enforce the schema.

        Raises:
            AnnotationResponseError: If the content is not a well-formed token list
        """
        processed = preprocess_llm_response(content)
        try:
            data = json.loads(processed)
        except (TypeError, ValueError) as e:
            raise AnnotationResponseError(self.provider, self.model, e) from e

        items = data.get('tokens') if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise AnnotationResponseError(
                self.provider, self.model, ValueError("response has no token list")
            )

        tokens = []
        for i, item in enumerate(items):
            if not isinstance(item, dict) or not isinstance(item.get('surface'), str):
                raise AnnotationResponseError(
                    self.provider, self.model, ValueError(f"token {i + 1} has no surface form")
                )
            tokens.append(Token(
                surface=item['surface'],
                reading=str(item.get('reading') or ''),
                base_form=str(item.get('base_form') or ''),
                gloss=str(item.get('gloss') or ''),
            ))
        return tokens

    def test_connection(self) -> bool:
        """Test API connection."""
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "Hello"}],
                max_tokens=5
            )

            if response and response.choices:
                logger.info(f"{self.provider} API connection test successful")
                return True
            else:
                logger.error(f"{self.provider} API connection test failed: no response")
                return False

        except Exception as e:
            logger.error(f"{self.provider} API connection test failed: {e}")
            return False
