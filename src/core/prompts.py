#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Prompt templates for paragraph tokenization.

The annotator sends one paragraph of simplified Japanese news per request and
expects the tokenization schema from core.schemas back.
"""


class TokenizationPrompts:
    """Collection of prompts for Japanese paragraph tokenization."""

    # ---------- SYSTEM PROMPT ----------
    SYSTEM_PROMPT = (
        "You segment Japanese text for language learners. "
        "Split the paragraph into words in reading order so that joining every "
        "surface form reproduces the paragraph exactly, punctuation included. "
        "For each token give the reading in hiragana, the dictionary form and a "
        "short English gloss. Punctuation and symbols keep their surface as "
        "reading and base form and have an empty gloss. "
        "Return JSON only."
    )

    # ---------- USER PROMPT ----------
    USER_TEMPLATE = (
        "Tokenize this paragraph:\n\n"
        "{paragraph}"
    )

    @classmethod
    def get_tokenization_prompt(cls, paragraph: str) -> str:
        """
        Build the user message for one paragraph.

        Args:
            paragraph: Ruby-free paragraph text

        Returns:
            Prompt text
        """
        return cls.USER_TEMPLATE.format(paragraph=paragraph)
