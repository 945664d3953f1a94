#!/usr/bin/env python3
"""
State command endpoints for inspecting and resetting the scheduler's run state.
"""

import logging
from argparse import Namespace

from .base import BaseCommand

logger = logging.getLogger(__name__)


class StateCommand(BaseCommand):
    """Handle run state operations."""

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute state subcommand."""
        try:
            if subcommand == "show":
                return self.show(args)
            elif subcommand == "reset":
                return self.reset(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except Exception as e:
            return self.handle_error(e, f"state {subcommand}")

    def show(self, args: Namespace) -> int:
        """Show last pass time and when the next pass is due."""
        stats = self.scheduler.get_stats()

        print(f"\n=== Scheduler State ===")
        if stats['last_pass_at']:
            print(f"🕐 Last pass: {stats['last_pass_at']} ({stats['elapsed_hours']}h ago)")
        else:
            print("🕐 Last pass: never")

        if stats['due_now']:
            print("▶️  Next pass: due now")
        else:
            print(f"▶️  Next pass: {stats['next_due_at']}")

        print(f"⚙️  Interval: {stats['base_interval_hours']:g}h + up to {stats['max_jitter_minutes']:g}min jitter")

        store_stats = self.database.get_stats()
        print(f"📰 Stored: {store_stats['total_articles']} articles, {store_stats['total_paragraphs']} paragraphs "
              f"({store_stats['articles_24h']} in the last 24h)")
        return 0

    def reset(self, args: Namespace) -> int:
        """Clear the run state so the next scheduler start runs immediately."""
        if not getattr(args, 'force', False):
            print(f"⚠️  This will forget the last pass time; the next start runs a pass immediately")
            confirm = input("Are you sure? (yes/no): ").lower().strip()
            if confirm != 'yes':
                print("❌ Reset cancelled")
                return 0

        removed = self.database.clear_last_pass_time()
        if removed:
            print("✅ Run state cleared")
        else:
            print("ℹ️  No run state recorded")
        return 0
