#!/usr/bin/env python3
"""
Centralized JSON schemas for OpenAI structured outputs.

Structured output requires an object at the top level, so token lists are
wrapped in a {"tokens": [...]} envelope.
"""

from typing import Dict, Any

TOKEN_SCHEMA = {
    "type": "object",
    "properties": {
        "surface": {
            "type": "string",
            "description": "Token exactly as written in the paragraph"
        },
        "reading": {
            "type": "string",
            "description": "Reading in hiragana"
        },
        "base_form": {
            "type": "string",
            "description": "Dictionary form of the word"
        },
        "gloss": {
            "type": "string",
            "description": "Short English translation"
        }
    },
    "required": ["surface", "reading", "base_form", "gloss"],
    "additionalProperties": False
}

# Schema for paragraph tokenization
TOKENIZATION_SCHEMA = {
    "type": "object",
    "properties": {
        "tokens": {
            "type": "array",
            "items": TOKEN_SCHEMA,
            "description": "Tokens in reading order covering the whole paragraph"
        }
    },
    "required": ["tokens"],
    "additionalProperties": False
}


def get_schema_by_type(schema_type: str) -> Dict[str, Any]:
    """
    Get JSON schema by response type.

    Args:
        schema_type: Type of response ("tokenization", "token")

    Returns:
        JSON schema dictionary

    Raises:
        ValueError: If schema_type is not recognized
    """
    schemas = {
        "tokenization": TOKENIZATION_SCHEMA,
        "token": TOKEN_SCHEMA,
    }

    if schema_type not in schemas:
        raise ValueError(f"Unknown schema type: {schema_type}")

    return schemas[schema_type]
