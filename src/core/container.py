#!/usr/bin/env python3
"""
Dependency Injection Container

Wires the pipeline's collaborators (config, stop signal, store, fetcher,
source, annotator, orchestrator, scheduler) from configuration. Services
are built on first use; tests and commands can pre-register fakes with
register_instance. shutdown() releases whatever was built, newest first.
"""

import logging
from typing import Any, Dict, Callable, List, TypeVar, Optional
from functools import wraps
from datetime import timedelta
import threading

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Container:
    """Lazily built service registry with ordered teardown."""

    def __init__(self):
        self._factories: Dict[str, Callable] = {}
        self._singletons: Dict[str, Any] = {}
        self._created: List[str] = []
        self._lock = threading.RLock()

    def register_singleton(self, service_name: str, factory: Callable[[], T]) -> None:
        """
        Register a factory whose product is built once and shared.

        Re-registering drops an instance built by the previous factory.
        """
        factory._is_singleton = True
        with self._lock:
            self._factories[service_name] = factory
            self._singletons.pop(service_name, None)

    def register_factory(self, service_name: str, factory: Callable[[], T]) -> None:
        """Register a factory called on every get()."""
        with self._lock:
            self._factories[service_name] = factory

    def register_instance(self, service_name: str, instance: T) -> None:
        """
        Use a ready-made object for a service.

        The container does not own it, so shutdown() leaves it alone.
        """
        with self._lock:
            self._singletons[service_name] = instance

    def get(self, service_name: str) -> Any:
        """
        Resolve a service, building it and its dependencies on first use.

        Raises:
            KeyError: If nothing is registered under service_name
        """
        if service_name in self._singletons:
            return self._singletons[service_name]

        if service_name not in self._factories:
            raise KeyError(f"Service '{service_name}' not registered")

        # Reentrant: factories resolve their own dependencies through get()
        with self._lock:
            factory = self._factories[service_name]
            if not getattr(factory, '_is_singleton', False):
                return factory()

            if service_name not in self._singletons:
                self._singletons[service_name] = factory()
                self._created.append(service_name)
                logger.debug(f"Built '{service_name}'")
            return self._singletons[service_name]

    def has(self, service_name: str) -> bool:
        return service_name in self._factories or service_name in self._singletons

    def shutdown(self) -> None:
        """Close every service the container built itself, in reverse build order."""
        with self._lock:
            while self._created:
                service_name = self._created.pop()
                instance = self._singletons.pop(service_name, None)
                close = getattr(instance, 'close', None)
                if not callable(close):
                    continue
                try:
                    close()
                    logger.debug(f"Closed '{service_name}'")
                except Exception as e:
                    logger.warning(f"Failed to close '{service_name}': {e}")


def singleton(factory_func: Callable[[], T]) -> Callable[[], T]:
    """Mark a factory function as building a shared instance."""
    @wraps(factory_func)
    def wrapper():
        return factory_func()

    wrapper._is_singleton = True
    return wrapper


_container: Optional[Container] = None
_container_lock = threading.Lock()


def get_container() -> Container:
    """Process-wide container with the default services registered."""
    global _container
    if _container is None:
        with _container_lock:
            if _container is None:
                _container = Container()
                _setup_default_services(_container)
    return _container


def reset_container() -> None:
    """Shut down and forget the process-wide container."""
    global _container
    with _container_lock:
        if _container:
            _container.shutdown()
        _container = None


def _setup_default_services(container: Container) -> None:
    """Set up default service registrations with configuration injection."""

    @singleton
    def create_config():
        from core.config import get_config
        return get_config()

    @singleton
    def create_stop_event():
        return threading.Event()

    @singleton
    def create_database():
        from core.database import DatabaseFacade
        return DatabaseFacade(container.get('config'))

    @singleton
    def create_fetcher():
        from core.content import ContentFetcher
        config = container.get('config')
        return ContentFetcher(
            max_retries=config.source.max_retries,
            timeout=config.source.fetch_timeout,
            user_agent=config.source.user_agent,
            stop_event=container.get('stop_event')
        )

    @singleton
    def create_source():
        from core.sources import NHKEasySource
        config = container.get('config')
        return NHKEasySource(
            fetcher=container.get('fetcher'),
            base_url=config.source.base_url,
            news_list_path=config.source.news_list_path or None
        )

    @singleton
    def create_annotator():
        from integrations.openai_client import OpenAIAnnotator
        config = container.get('config')
        if not config.has_annotator():
            raise ValueError("OpenAI API key not configured")
        return OpenAIAnnotator(
            api_key=config.integrations.openai_api_key,
            base_url=config.integrations.openai_base_url,
            model=config.integrations.annotator_model,
            timeout=config.integrations.annotator_timeout
        )

    @singleton
    def create_orchestrator():
        from core.ingestion import IngestionOrchestrator
        config = container.get('config')
        return IngestionOrchestrator(
            source=container.get('source'),
            annotator=container.get('annotator'),
            store=container.get('database'),
            article_delay=config.scheduler.article_delay_seconds,
            paragraph_delay=config.scheduler.paragraph_delay_seconds,
            stop_event=container.get('stop_event')
        )

    @singleton
    def create_scheduler():
        from core.ingestion import IngestionScheduler
        config = container.get('config')
        return IngestionScheduler(
            orchestrator=container.get('orchestrator'),
            store=container.get('database'),
            base_interval=timedelta(hours=config.scheduler.base_interval_hours),
            max_jitter=timedelta(minutes=config.scheduler.max_jitter_minutes),
            timezone_str=config.app.display_timezone
        )

    # Register services
    container.register_singleton('config', create_config)
    container.register_singleton('stop_event', create_stop_event)
    container.register_singleton('database', create_database)
    container.register_singleton('fetcher', create_fetcher)
    container.register_singleton('source', create_source)
    container.register_singleton('annotator', create_annotator)
    container.register_singleton('orchestrator', create_orchestrator)
    container.register_singleton('scheduler', create_scheduler)

    logger.debug("Default services registered in container")

