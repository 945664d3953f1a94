#!/usr/bin/env python3
"""
Health check command for monitoring system status.

Checks configuration, database, the article source and the annotation service.
"""

import logging
from argparse import Namespace

from .base import BaseCommand

logger = logging.getLogger(__name__)


class HealthCommand(BaseCommand):
    """Handle system health monitoring and diagnostics."""

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute health subcommand."""
        try:
            if subcommand == "check":
                return self.check(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except Exception as e:
            return self.handle_error(e, f"health {subcommand}")

    def check(self, args: Namespace) -> int:
        """Run comprehensive health check."""
        print("🏥 System Health Check")
        print("=" * 50)

        overall_healthy = True

        # Configuration validation
        print("\n⚙️  Configuration:")
        try:
            config = self.config
            print(f"  ✅ Configuration valid ({config.environment})")
        except Exception as e:
            print(f"  ❌ Configuration: {e}")
            print("\n" + "=" * 50)
            print("❌ Overall Status: UNHEALTHY")
            return 1

        # Database health
        print("\n📊 Database Status:")
        try:
            health = self.database.health_check()

            if health.get('connected'):
                print(f"  ✅ Database connection: OK ({health.get('database')}, server {health.get('server_version')})")
                if health.get('missing_tables'):
                    print(f"  ❌ Missing tables: {', '.join(health['missing_tables'])} (run with --migrate)")
                    overall_healthy = False
                for table, info in health.get('tables', {}).items():
                    print(f"  📋 {table}: {info}")
            else:
                print("  ❌ Database connection: FAILED")
                print(f"     Error: {health.get('error', 'Unknown error')}")
                overall_healthy = False

        except Exception as e:
            print(f"  ❌ Database check failed: {e}")
            overall_healthy = False

        # Source reachability
        print("\n🌐 Article Source:")
        try:
            status = self.source.health_check()
            if status.get('available'):
                print(f"  ✅ {status['source']}: reachable ({status.get('url')})")
            else:
                print(f"  ❌ {status['source']}: {status.get('error', 'unreachable')}")
                overall_healthy = False
        except Exception as e:
            print(f"  ❌ Source check failed: {e}")
            overall_healthy = False

        # Annotation service
        print("\n🤖 Annotation Service:")
        if not config.has_annotator():
            print("  ❌ OPENAI_API_KEY not configured")
            overall_healthy = False
        else:
            try:
                annotator = self.annotator
                described = annotator.describe()
                if getattr(args, 'test', False):
                    if annotator.test_connection():
                        print(f"  ✅ {described['provider']} ({described['model']}): connection OK")
                    else:
                        print(f"  ❌ {described['provider']} ({described['model']}): connection test failed")
                        overall_healthy = False
                else:
                    print(f"  ✅ {described['provider']} ({described['model']}) configured")
                    print("  ℹ️  Use --test flag to test the connection")
            except Exception as e:
                print(f"  ❌ Annotator setup failed: {e}")
                overall_healthy = False

        # Summary
        print("\n" + "=" * 50)
        if overall_healthy:
            print("✅ Overall Status: HEALTHY")
            return 0
        else:
            print("❌ Overall Status: UNHEALTHY")
            return 1
