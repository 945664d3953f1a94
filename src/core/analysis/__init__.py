#!/usr/bin/env python3
"""
Paragraph annotation.

Provides the annotator interface the ingestion pipeline tokenizes through.
"""

from .annotator import Annotator

__all__ = ['Annotator']
