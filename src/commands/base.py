#!/usr/bin/env python3
"""
Base command class for the modular command architecture.

Provides common functionality and interface that all commands inherit.
Uses dependency injection for better testability and maintainability.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional
from argparse import Namespace

from core.container import get_container
from core.exceptions import ConfigurationError, PassCancelled

logger = logging.getLogger(__name__)


class BaseCommand(ABC):
    """
    Base class for all command endpoints.

    Provides access to the wired pipeline components and standard error
    handling. Uses dependency injection container for managing service
    instances.
    """

    def __init__(self, container=None):
        """
        Initialize base command with dependency injection container.

        Args:
            container: Optional container instance. If None, uses global container.
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self._container = container or get_container()

    @property
    def config(self):
        """Get configuration from container."""
        return self._container.get('config')

    @property
    def database(self):
        """Get database instance from container."""
        return self._container.get('database')

    @property
    def source(self):
        return self._container.get('source')

    @property
    def annotator(self):
        return self._container.get('annotator')

    @property
    def orchestrator(self):
        """Get ingestion orchestrator from container."""
        return self._container.get('orchestrator')

    @property
    def scheduler(self):
        """Get ingestion scheduler from container."""
        return self._container.get('scheduler')

    @property
    def stop_event(self):
        """Process-wide shutdown signal shared by every waiting component."""
        return self._container.get('stop_event')

    @abstractmethod
    def execute(self, subcommand: str, args: Namespace) -> int:
        """
        Execute the command with given subcommand and arguments.

        Args:
            subcommand: The specific action to perform
            args: Parsed command line arguments

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        pass

    def get_available_subcommands(self) -> List[str]:
        """
        Get list of available subcommands for this command.

        Returns:
            List of subcommand names
        """
        methods = []
        for attr_name in dir(type(self)):
            if attr_name.startswith('_') or isinstance(getattr(type(self), attr_name), property):
                continue
            if callable(getattr(self, attr_name)) and attr_name not in ('execute', 'get_available_subcommands',
                                                                         'handle_error', 'validate_args'):
                methods.append(attr_name)
        return methods

    def handle_error(self, error: Exception, context: str = "") -> int:
        """
        Standard error handling for commands.

        Args:
            error: The exception that occurred
            context: Additional context about where the error occurred

        Returns:
            Appropriate exit code
        """
        if isinstance(error, (KeyboardInterrupt, PassCancelled)):
            self.logger.info("Command interrupted by user")
            return 130

        error_msg = f"{context}: {error}" if context else str(error)
        if isinstance(error, ConfigurationError):
            self.logger.error(error_msg)
            return 22

        self.logger.error(error_msg, exc_info=True)
        if isinstance(error, ValueError):
            return 22
        return 1

    def validate_args(self, args: Namespace, required_args: Optional[List[str]] = None) -> bool:
        """
        Validate that required arguments are present.

        Args:
            args: Parsed arguments
            required_args: List of required argument names

        Returns:
            True if valid, False otherwise
        """
        if not required_args:
            return True

        missing = []
        for arg_name in required_args:
            if not hasattr(args, arg_name) or getattr(args, arg_name) is None:
                missing.append(arg_name)

        if missing:
            self.logger.error(f"Missing required arguments: {', '.join(missing)}")
            return False

        return True
