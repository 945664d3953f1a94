#!/usr/bin/env python3
"""
Text sanitization utilities for scraped Japanese content.

Normalizes paragraph text pulled out of HTML and cleans up LLM responses
before JSON parsing.
"""

import re
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Line breaks inside markup are layout, not content; Japanese has no word spacing
# but wrapped Latin words keep one space
_LAYOUT_BREAKS = re.compile(r'[ \t]*[\r\n]+[ \t]*')
_ASCII_WORD_CHAR = re.compile(r'[A-Za-z0-9]')
_HORIZONTAL_RUNS = re.compile(r'[ \t]{2,}')
_CODE_FENCE = re.compile(r'^```(?:json)?\s*(.*?)\s*```$', re.DOTALL)

_ZERO_WIDTH = {
    "\u200b": None,  # zero width space
    "\u200c": None,  # zero width non-joiner
    "\u200d": None,  # zero width joiner
    "\ufeff": None,  # byte order mark
}
_ZERO_WIDTH_TRANSLATION = str.maketrans(_ZERO_WIDTH)


def _join_break(match: re.Match) -> str:
    text = match.string
    before = text[match.start() - 1:match.start()]
    after = text[match.end():match.end() + 1]
    if _ASCII_WORD_CHAR.match(before) and _ASCII_WORD_CHAR.match(after):
        return ' '
    return ''


def clean_paragraph_text(text: Optional[str]) -> str:
    """
    Normalize whitespace in text extracted from an HTML paragraph.

    Args:
        text: Raw text content of a paragraph element

    Returns:
        Cleaned text; empty string when nothing meaningful remains
    """
    if not text:
        return ""

    cleaned = text.translate(_ZERO_WIDTH_TRANSLATION)
    cleaned = _LAYOUT_BREAKS.sub(_join_break, cleaned)
    cleaned = _HORIZONTAL_RUNS.sub(' ', cleaned)
    # Full-width spaces at the edges are indentation
    return cleaned.strip().strip('\u3000').strip()


def preprocess_llm_response(raw_response: Optional[str]) -> Optional[str]:
    """
    Preprocess LLM response before JSON parsing.

    This is a safety net for OpenAI-compatible endpoints that wrap
    structured output in a markdown code fence.

    Args:
        raw_response: Raw response from LLM

    Returns:
        Preprocessed response ready for JSON parsing
    """
    if not raw_response:
        return raw_response

    processed = raw_response.strip()
    match = _CODE_FENCE.match(processed)
    if match:
        processed = match.group(1)
        logger.info("Stripped markdown code fence from LLM response")
        logger.debug(
            "Original length: %d, processed length: %d",
            len(raw_response),
            len(processed),
        )

    return processed
