import threading
from argparse import Namespace
from datetime import datetime, timezone

import pytest

from commands import get_command
from core.container import Container
from core.exceptions import ConfigurationError, PassCancelled
from core.ingestion import IngestionOrchestrator, IngestionScheduler

from conftest import FakeContentStore


@pytest.fixture
def wired(fake_annotator, fake_source_factory):
    """Container holding a real orchestrator and scheduler over fake collaborators."""
    def _wire(articles, existing=()):
        store = FakeContentStore(existing)
        source = fake_source_factory(articles)
        stop_event = threading.Event()
        orchestrator = IngestionOrchestrator(
            source, fake_annotator, store, article_delay=0, paragraph_delay=0, stop_event=stop_event
        )
        container = Container()
        container.register_instance('stop_event', stop_event)
        container.register_instance('database', store)
        container.register_instance('source', source)
        container.register_instance('orchestrator', orchestrator)
        container.register_instance('scheduler', IngestionScheduler(orchestrator, store))
        return container, source, store

    return _wire


def test_ingest_run_reports_and_records_pass(wired, capsys):
    container, _, store = wired({"ne1": ["雪 が 降りました"], "ne2": ["電車 が 遅れました"]}, existing=["ne2"])

    exit_code = get_command('ingest', container).execute('run', Namespace(json=False, verbose=True))

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Inserted: 1" in output
    assert "Already stored: 1" in output
    assert "ne1: inserted" in output
    assert len(store.state_writes) == 1


def test_ingest_run_listing_failure_exits_nonzero(wired, listing_failure):
    container, source, store = wired({})
    source.list_error = listing_failure

    exit_code = get_command('ingest', container).execute('run', Namespace(json=False, verbose=False))

    assert exit_code == 1
    assert store.state_writes == []


def test_ingest_article_already_stored(wired, capsys):
    container, source, _ = wired({"ne1": ["本文"]}, existing=["ne1"])

    exit_code = get_command('ingest', container).execute('article', Namespace(external_id="ne1"))

    assert exit_code == 0
    assert "already stored" in capsys.readouterr().out
    assert source.fetch_calls == []


def test_unknown_subcommand_is_rejected(wired):
    container, _, _ = wired({})

    assert get_command('state', container).execute('explode', Namespace()) == 1


@pytest.mark.parametrize("error,expected", [
    (PassCancelled("between articles"), 130),
    (KeyboardInterrupt(), 130),
    (ConfigurationError("DATABASE_URL", "missing"), 22),
    (ValueError("OpenAI API key not configured"), 22),
    (RuntimeError("boom"), 1),
])
def test_handle_error_exit_codes(wired, error, expected):
    container, _, _ = wired({})

    assert get_command('health', container).handle_error(error, "health check") == expected


def test_get_command_unknown_name():
    with pytest.raises(ValueError):
        get_command('news', Container())


class InspectableStore(FakeContentStore):
    def get_stats(self):
        return {'total_articles': len(self.articles), 'total_paragraphs': 0, 'articles_24h': len(self.articles)}

    def clear_last_pass_time(self):
        had_state, self.last_pass = self.last_pass is not None, None
        return had_state


def test_state_show_and_reset(fake_annotator, fake_source_factory, capsys):
    store = InspectableStore(existing=["ne1", "ne2"])
    orchestrator = IngestionOrchestrator(fake_source_factory({}), fake_annotator, store)
    container = Container()
    container.register_instance('database', store)
    container.register_instance('scheduler', IngestionScheduler(orchestrator, store))
    command = get_command('state', container)

    assert command.execute('show', Namespace()) == 0
    output = capsys.readouterr().out
    assert "Last pass: never" in output
    assert "due now" in output
    assert "Stored: 2 articles" in output

    store.last_pass = datetime(2025, 1, 15, 6, 0, tzinfo=timezone.utc)
    assert command.execute('reset', Namespace(force=True)) == 0
    assert store.last_pass is None
    assert "Run state cleared" in capsys.readouterr().out


@pytest.fixture
def health_container(monkeypatch, fake_connection_manager, fake_annotator, fake_source_factory):
    from core.config import ConfigManager
    from core.database.database_facade import DatabaseFacade

    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    container = Container()
    container.register_instance('config', ConfigManager(env_file_path=None).get_config())
    container.register_instance('database', DatabaseFacade(config=None, connection_manager=fake_connection_manager))
    container.register_instance('source', fake_source_factory({}))
    container.register_instance('annotator', fake_annotator)
    return container


def test_health_check_reports_healthy(health_container, capsys):
    exit_code = get_command('health', health_container).execute('check', Namespace(test=True))

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Database connection: OK (fake" in output
    assert "fake (fake-model): connection OK" in output
    assert "Overall Status: HEALTHY" in output


def test_health_check_flags_missing_tables(health_container, fake_connection_manager, capsys):
    del fake_connection_manager.tables["scheduler_state"]

    exit_code = get_command('health', health_container).execute('check', Namespace(test=False))

    output = capsys.readouterr().out
    assert exit_code == 1
    assert "Missing tables: scheduler_state (run with --migrate)" in output
    assert "Overall Status: UNHEALTHY" in output
