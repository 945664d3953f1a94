#!/usr/bin/env python3
"""
Ingest command endpoints for running ingestion passes.
"""

import json
import logging
import signal
from argparse import Namespace
from contextlib import contextmanager

from .base import BaseCommand
from core.models.ingestion import ItemStatus

logger = logging.getLogger(__name__)

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class IngestCommand(BaseCommand):
    """Run ingestion passes once, on a schedule, or for a single article."""

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute ingest subcommand."""
        try:
            if subcommand == "run":
                return self.run(args)
            elif subcommand == "schedule":
                return self.schedule(args)
            elif subcommand == "article":
                return self.article(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except Exception as e:
            return self.handle_error(e, f"ingest {subcommand}")

    @contextmanager
    def _stop_on_signals(self):
        """Set the shared stop event on SIGINT/SIGTERM while the block runs."""
        stop_event = self.stop_event

        def request_stop(signum, frame):
            if not stop_event.is_set():
                self.logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            stop_event.set()

        previous = {sig: signal.getsignal(sig) for sig in STOP_SIGNALS}
        for sig in STOP_SIGNALS:
            signal.signal(sig, request_stop)
        try:
            yield stop_event
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

    def _migrate_if_requested(self, args: Namespace) -> None:
        if getattr(args, 'migrate', False):
            count = self.database.migrate()
            print(f"✅ Schema applied ({count} statements)")

    def run(self, args: Namespace) -> int:
        """Run one ingestion pass now and record its completion."""
        self._migrate_if_requested(args)
        scheduler = self.scheduler

        with self._stop_on_signals() as stop_event:
            result = scheduler.run_once(stop_event)

        if getattr(args, 'json', False):
            print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
            return 0

        print(f"\n=== Ingestion Pass ===")
        print(f"📥 Candidates: {result.candidates}")
        print(f"✅ Inserted: {result.inserted}")
        print(f"⏭️  Already stored: {result.existing}")
        print(f"⚠️  Skipped: {result.skipped}")
        if result.rate_limited:
            print("🛑 Stopped early: annotation service rate limited")
        print(f"⏱️  Duration: {result.duration_seconds:.1f}s")

        if getattr(args, 'verbose', False):
            for outcome in result.outcomes:
                if outcome.status is not ItemStatus.EXISTS:
                    reason = f" ({outcome.reason})" if outcome.reason else ""
                    print(f"  • {outcome.external_id}: {outcome.status.value}{reason}")

        return 0

    def schedule(self, args: Namespace) -> int:
        """Run the scheduler until SIGINT/SIGTERM."""
        self._migrate_if_requested(args)
        scheduler = self.scheduler

        with self._stop_on_signals() as stop_event:
            scheduler.run(stop_event)

        print(f"👋 Scheduler stopped after {scheduler.passes_run} pass(es)")
        return 0

    def article(self, args: Namespace) -> int:
        """Ingest a single article by its external ID."""
        if not self.validate_args(args, ['external_id']):
            return 1

        with self._stop_on_signals():
            outcome = self.orchestrator.ingest_article(args.external_id)

        if outcome.status is ItemStatus.INSERTED:
            print(f"✅ Stored {outcome.external_id} ({outcome.paragraph_count} paragraphs)")
            return 0
        if outcome.status is ItemStatus.EXISTS:
            print(f"ℹ️  {outcome.external_id} is already stored")
            return 0

        print(f"❌ {outcome.external_id} not stored: {outcome.reason}")
        return 1
