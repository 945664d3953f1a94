#!/usr/bin/env python3
"""
Ingestion result models.

Per-candidate outcomes and the aggregate result of one ingestion pass.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field


class ItemStatus(str, Enum):
    """What happened to one candidate ID during a pass."""
    INSERTED = "inserted"
    EXISTS = "exists"
    SKIPPED = "skipped"
    ABORT_PASS = "abort_pass"


@dataclass
class ItemOutcome:
    """Result of processing a single candidate ID."""
    external_id: str
    status: ItemStatus
    reason: str = ""
    paragraph_count: int = 0

    @classmethod
    def inserted(cls, external_id: str, paragraph_count: int) -> 'ItemOutcome':
        return cls(external_id, ItemStatus.INSERTED, paragraph_count=paragraph_count)

    @classmethod
    def exists(cls, external_id: str) -> 'ItemOutcome':
        return cls(external_id, ItemStatus.EXISTS, reason="already stored")

    @classmethod
    def skipped(cls, external_id: str, reason: str) -> 'ItemOutcome':
        return cls(external_id, ItemStatus.SKIPPED, reason=reason)

    @classmethod
    def abort_pass(cls, external_id: str, reason: str) -> 'ItemOutcome':
        return cls(external_id, ItemStatus.ABORT_PASS, reason=reason)

    @property
    def stops_pass(self) -> bool:
        return self.status is ItemStatus.ABORT_PASS


@dataclass
class PassResult:
    """Aggregate result of one ingestion pass."""
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    candidates: int = 0
    outcomes: List[ItemOutcome] = field(default_factory=list)
    rate_limited: bool = False

    def record(self, outcome: ItemOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.stops_pass:
            self.rate_limited = True

    def finish(self) -> 'PassResult':
        self.finished_at = datetime.now(timezone.utc)
        return self

    def _count(self, status: ItemStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def inserted(self) -> int:
        return self._count(ItemStatus.INSERTED)

    @property
    def existing(self) -> int:
        return self._count(ItemStatus.EXISTS)

    @property
    def skipped(self) -> int:
        return self._count(ItemStatus.SKIPPED)

    @property
    def attempted_ids(self) -> List[str]:
        return [outcome.external_id for outcome in self.outcomes]

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/JSON output."""
        return {
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'duration_seconds': round(self.duration_seconds, 2),
            'candidates': self.candidates,
            'inserted': self.inserted,
            'existing': self.existing,
            'skipped': self.skipped,
            'rate_limited': self.rate_limited,
            'outcomes': [
                {
                    'external_id': o.external_id,
                    'status': o.status.value,
                    'reason': o.reason,
                    'paragraph_count': o.paragraph_count
                }
                for o in self.outcomes
            ]
        }

    def summary(self) -> str:
        text = (f"{self.inserted} inserted, {self.existing} existing, "
                f"{self.skipped} skipped of {self.candidates} candidates")
        if self.rate_limited:
            text += " (stopped early: rate limited)"
        return text
