#!/usr/bin/env python3
"""
Article data model.

Represents an ingested NHK Easy article: the article row, its ordered
paragraphs and the linguistic tokens each paragraph owns.
"""

from datetime import datetime, timezone
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field


@dataclass
class Token:
    """
    One linguistic unit of a paragraph.

    Tokens have no identity of their own; they are stored as an ordered
    JSON blob on the owning paragraph.
    """
    surface: str
    reading: str = ""
    base_form: str = ""
    gloss: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape stored in the paragraphs table."""
        return {
            'kana': self.surface,
            'furigana': self.reading,
            'base_form': self.base_form,
            'translation': self.gloss
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Token':
        """Create Token from the stored JSON shape."""
        return cls(
            surface=data.get('kana', ''),
            reading=data.get('furigana', ''),
            base_form=data.get('base_form', ''),
            gloss=data.get('translation', '')
        )


@dataclass
class Paragraph:
    """A paragraph of article text with its position and tokens."""
    position: int
    raw_text: str
    tokens: List[Token] = field(default_factory=list)
    id: Optional[int] = None

    def tokens_to_json(self) -> List[Dict[str, Any]]:
        return [token.to_dict() for token in self.tokens]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'position': self.position,
            'raw_text': self.raw_text,
            'tokens': self.tokens_to_json()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Paragraph':
        return cls(
            id=data.get('id'),
            position=data.get('position', 0),
            raw_text=data.get('raw_text', ''),
            tokens=[Token.from_dict(item) for item in data.get('tokens') or []]
        )


@dataclass
class Article:
    """
    A scraped and annotated article.

    `id` and `created_at` are assigned by the store and are None until the
    article has been persisted.
    """
    external_id: str
    title: str
    url: str
    published_at: Optional[datetime] = None
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    paragraphs: List[Paragraph] = field(default_factory=list)
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        """Clean identifiers after initialization."""
        self.external_id = self.external_id.strip()
        self.title = self.title.strip()
        self.url = self.url.strip()

    def has_dense_positions(self) -> bool:
        """Check that paragraph positions are exactly 0..n-1 in order."""
        return [p.position for p in self.paragraphs] == list(range(len(self.paragraphs)))

    def to_dict(self, include_paragraphs: bool = True) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = {
            'id': self.id,
            'nhk_id': self.external_id,
            'title': self.title,
            'url': self.url,
            'published_at': self.published_at.isoformat() if self.published_at else None,
            'fetched_at': self.fetched_at.isoformat() if self.fetched_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
        if include_paragraphs:
            data['paragraphs'] = [p.to_dict() for p in self.paragraphs]
        return data

    def __repr__(self):
        return f"Article(external_id='{self.external_id}', title='{self.title[:30]}', paragraphs={len(self.paragraphs)})"
