#!/usr/bin/env python3
"""
CLI Router for the NHK Easy ingestion pipeline.

Modular command architecture: each top-level command maps to a command
class in the commands package.
"""

import argparse
import logging
import sys
from typing import Optional, List

from commands import get_command, COMMANDS
from core.config import get_config_manager
from core.container import reset_container
from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class CLIRouter:
    """
    CLI router for ingestion commands.

    Command structure:
    - python run.py ingest schedule --migrate
    - python run.py ingest run
    - python run.py state show
    - python run.py articles list --limit 10
    """

    def __init__(self):
        """Initialize CLI router."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            description="NHK News Web Easy ingestion pipeline",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=self._get_examples_text()
        )

        subparsers = parser.add_subparsers(
            dest='command',
            help='Available commands',
            metavar='{command}'
        )

        self._add_ingest_parser(subparsers)
        self._add_state_parser(subparsers)
        self._add_articles_parser(subparsers)
        self._add_health_parser(subparsers)

        return parser

    def _add_ingest_parser(self, subparsers):
        """Add ingest command parser."""
        ingest_parser = subparsers.add_parser(
            'ingest',
            help='Run ingestion passes'
        )

        ingest_subparsers = ingest_parser.add_subparsers(
            dest='subcommand',
            help='Ingestion operations',
            metavar='{run,schedule,article}'
        )

        # Run subcommand
        run_parser = ingest_subparsers.add_parser('run', help='Run one ingestion pass now')
        run_parser.add_argument('--migrate', action='store_true', help='Apply the database schema first')
        run_parser.add_argument('--json', action='store_true', help='Print the pass result as JSON')
        run_parser.add_argument('--verbose', action='store_true', help='List per-article outcomes')

        # Schedule subcommand
        schedule_parser = ingest_subparsers.add_parser('schedule', help='Run passes on a jittered schedule until stopped')
        schedule_parser.add_argument('--migrate', action='store_true', help='Apply the database schema first')

        # Article subcommand
        article_parser = ingest_subparsers.add_parser('article', help='Ingest a single article by ID')
        article_parser.add_argument('external_id', help='Article ID, e.g. ne2025011512345')

    def _add_state_parser(self, subparsers):
        """Add state command parser."""
        state_parser = subparsers.add_parser(
            'state',
            help='Scheduler run state'
        )

        state_subparsers = state_parser.add_subparsers(
            dest='subcommand',
            help='State operations',
            metavar='{show,reset}'
        )

        state_subparsers.add_parser('show', help='Show last pass time and next due time')

        reset_parser = state_subparsers.add_parser('reset', help='Forget the last pass time')
        reset_parser.add_argument('--force', action='store_true', help='Skip confirmation prompt')

    def _add_articles_parser(self, subparsers):
        """Add articles command parser."""
        articles_parser = subparsers.add_parser(
            'articles',
            help='Browse stored articles'
        )

        articles_subparsers = articles_parser.add_subparsers(
            dest='subcommand',
            help='Article operations',
            metavar='{list,show}'
        )

        list_parser = articles_subparsers.add_parser('list', help='List articles, newest first')
        list_parser.add_argument('--limit', type=int, default=20, help='Number of articles (default: 20)')
        list_parser.add_argument('--offset', type=int, default=0, help='Articles to skip (default: 0)')

        show_parser = articles_subparsers.add_parser('show', help='Show one article with paragraphs')
        show_parser.add_argument('article_id', help='Database ID or article ID (ne...)')
        show_parser.add_argument('--tokens', action='store_true', help='Print tokens under each paragraph')
        show_parser.add_argument('--json', action='store_true', help='Print as JSON')

    def _add_health_parser(self, subparsers):
        """Add health command parser."""
        health_parser = subparsers.add_parser(
            'health',
            help='System health monitoring and diagnostics'
        )

        health_subparsers = health_parser.add_subparsers(
            dest='subcommand',
            help='Health operations',
            metavar='{check}'
        )

        check_parser = health_subparsers.add_parser('check', help='Run comprehensive health check')
        check_parser.add_argument('--test', action='store_true', help='Test the annotation service connection')

    def _get_examples_text(self) -> str:
        """Get examples text for help."""
        return """
Examples:
  # Long-running service
  python run.py ingest schedule --migrate

  # Manual runs
  python run.py ingest run --verbose
  python run.py ingest article ne2025011512345

  # Inspection
  python run.py state show
  python run.py articles list --limit 10
  python run.py articles show ne2025011512345 --tokens
  python run.py health check --test

"""

    def route_command(self, args: Optional[List[str]] = None) -> int:
        """
        Route command to appropriate handler.

        Args:
            args: Command line arguments (uses sys.argv if None)

        Returns:
            Exit code
        """
        try:
            if args is None:
                args = sys.argv[1:]

            parsed_args = self.parser.parse_args(args)

            if not parsed_args.command:
                self.parser.print_help()
                return 1

            return self._handle_command(parsed_args)

        except SystemExit as e:
            # argparse calls sys.exit() on error or help
            return e.code if e.code is not None else 0
        except Exception as e:
            logger.error(f"CLI routing error: {e}", exc_info=True)
            return 1

    def _handle_command(self, args: argparse.Namespace) -> int:
        """Handle command structure."""
        logger.debug(f"Handling command: {args.command}")

        if args.command not in COMMANDS:
            available = ', '.join(COMMANDS.keys())
            logger.error(f"Unknown command '{args.command}'. Available: {available}")
            return 1

        subcommand = getattr(args, 'subcommand', None)
        if not subcommand:
            logger.error(f"No subcommand specified for '{args.command}'")
            try:
                self.parser.parse_args([args.command, '--help'])
            except SystemExit:
                pass
            return 1

        try:
            command = get_command(args.command)
            return command.execute(subcommand, args)
        except Exception as e:
            logger.error(f"Error executing {args.command} {subcommand}: {e}", exc_info=True)
            return 1


def main(args: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Loads .env and applies LOG_LEVEL / VERBOSE_LOGGING
    try:
        get_config_manager().update_logging()
    except ConfigurationError as e:
        logger.error(str(e))
        return 22

    router = CLIRouter()
    try:
        return router.route_command(args)
    finally:
        # Closes the database connection and HTTP session if a command opened them
        reset_container()


if __name__ == '__main__':
    exit_code = main()
    sys.exit(exit_code)
