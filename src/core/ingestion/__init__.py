#!/usr/bin/env python3
"""
Ingestion pipeline.

The orchestrator runs single passes; the scheduler repeats them on a
jittered interval.
"""

from .orchestrator import IngestionOrchestrator
from .scheduler import IngestionScheduler, SchedulerState, BASE_INTERVAL, MAX_JITTER

__all__ = [
    'IngestionOrchestrator', 'IngestionScheduler', 'SchedulerState',
    'BASE_INTERVAL', 'MAX_JITTER'
]
