import logging
import threading

import pytest

from conftest import FakeContentStore
from core.exceptions import (
    PassCancelled, SourceConnectionError, SourceListingError, SourceParseError
)
from core.ingestion.orchestrator import IngestionOrchestrator
from core.models.ingestion import ItemStatus


def make_orchestrator(source, annotator, store, stop_event=None):
    return IngestionOrchestrator(
        source=source,
        annotator=annotator,
        store=store,
        article_delay=0,
        paragraph_delay=0,
        stop_event=stop_event,
    )


def test_second_pass_over_same_listing_inserts_nothing(fake_source_factory, fake_annotator, fake_store):
    source = fake_source_factory({
        "ne1": ["一 二", "三"],
        "ne2": ["四"],
    })
    orchestrator = make_orchestrator(source, fake_annotator, fake_store)

    first = orchestrator.run_pass()
    calls_after_first = len(fake_annotator.calls)
    second = orchestrator.run_pass()

    assert first.inserted == 2
    assert second.inserted == 0
    assert second.existing == 2
    assert len(fake_store.articles) == 2
    assert len(fake_annotator.calls) == calls_after_first


def test_existing_articles_are_never_fetched_or_annotated(fake_source_factory, fake_annotator):
    store = FakeContentStore(existing=["ne1", "ne3"])
    source = fake_source_factory({"ne1": ["a"], "ne2": ["b"], "ne3": ["c"]})
    orchestrator = make_orchestrator(source, fake_annotator, store)

    result = orchestrator.run_pass()

    assert source.fetch_calls == ["ne2"]
    assert fake_annotator.calls == ["b"]
    assert [o.status for o in result.outcomes] == [ItemStatus.EXISTS, ItemStatus.INSERTED, ItemStatus.EXISTS]


def test_empty_paragraphs_are_dropped_and_positions_stay_dense(fake_source_factory, fake_annotator, fake_store):
    source = fake_source_factory({"ne1": ["最初", "", "   ", "二番目", "", "三番目"]})
    orchestrator = make_orchestrator(source, fake_annotator, fake_store)

    orchestrator.run_pass()

    article = fake_store.articles["ne1"]
    assert [p.position for p in article.paragraphs] == [0, 1, 2]
    assert [p.raw_text for p in article.paragraphs] == ["最初", "二番目", "三番目"]
    assert article.has_dense_positions()


def test_rate_limit_on_third_article_stops_the_pass(fake_source_factory, fake_annotator, fake_store, caplog):
    caplog.set_level(logging.WARNING, logger="core.ingestion.orchestrator")
    source = fake_source_factory({
        "ne1": ["one"],
        "ne2": ["two"],
        "ne3": ["three", "RATE limited here"],
        "ne4": ["four"],
        "ne5": ["five"],
    })
    orchestrator = make_orchestrator(source, fake_annotator, fake_store)

    result = orchestrator.run_pass()

    assert sorted(fake_store.articles) == ["ne1", "ne2"]
    assert "ne4" not in source.fetch_calls
    assert "ne5" not in source.fetch_calls
    assert result.attempted_ids == ["ne1", "ne2", "ne3"]
    assert result.outcomes[-1].status is ItemStatus.ABORT_PASS
    assert result.rate_limited is True
    assert result.finished_at is not None
    assert "stopping pass early" in caplog.text


def test_unclassified_error_with_quota_text_is_treated_as_rate_limit(fake_source_factory, fake_annotator, fake_store):
    source = fake_source_factory({"ne1": ["one"], "ne2": ["two"]})
    fake_annotator.raise_on_call[1] = RuntimeError("RESOURCE_EXHAUSTED: quota exceeded")
    orchestrator = make_orchestrator(source, fake_annotator, fake_store)

    result = orchestrator.run_pass()

    assert result.rate_limited is True
    assert source.fetch_calls == ["ne1"]
    assert fake_store.articles == {}


def test_annotation_failure_skips_only_that_article(fake_source_factory, fake_annotator, fake_store):
    source = fake_source_factory({"ne1": ["ok", "FAIL here"], "ne2": ["fine"]})
    orchestrator = make_orchestrator(source, fake_annotator, fake_store)

    result = orchestrator.run_pass()

    assert list(fake_store.articles) == ["ne2"]
    assert result.outcomes[0].status is ItemStatus.SKIPPED
    assert "annotation failed" in result.outcomes[0].reason
    assert result.rate_limited is False


@pytest.mark.parametrize("error", [
    SourceConnectionError("fake", "https://example.com/ne1", RuntimeError("timeout")),
    SourceParseError("fake", "body", "no .article-body"),
])
def test_fetch_failure_skips_article(error, fake_source_factory, fake_annotator, fake_store):
    source = fake_source_factory({"ne1": ["a"], "ne2": ["b"]})
    source.fetch_errors["ne1"] = error
    orchestrator = make_orchestrator(source, fake_annotator, fake_store)

    result = orchestrator.run_pass()

    assert result.skipped == 1
    assert result.inserted == 1
    assert fake_annotator.calls == ["b"]


def test_write_failure_skips_article_and_continues(fake_source_factory, fake_annotator, fake_store):
    source = fake_source_factory({"ne1": ["a"], "ne2": ["b"]})
    fake_store.fail_insert_for.add("ne1")
    orchestrator = make_orchestrator(source, fake_annotator, fake_store)

    result = orchestrator.run_pass()

    assert list(fake_store.articles) == ["ne2"]
    assert result.outcomes[0].status is ItemStatus.SKIPPED
    assert "write failed" in result.outcomes[0].reason


def test_failed_existence_check_skips_article(fake_source_factory, fake_annotator, fake_store):
    source = fake_source_factory({"ne1": ["a"], "ne2": ["b"]})
    fake_store.fail_exists_for.add("ne1")
    orchestrator = make_orchestrator(source, fake_annotator, fake_store)

    result = orchestrator.run_pass()

    assert "ne1" not in source.fetch_calls
    assert result.outcomes[0].status is ItemStatus.SKIPPED
    assert result.inserted == 1


def test_duplicate_on_insert_counts_as_existing(fake_source_factory, fake_annotator, fake_store):
    source = fake_source_factory({"ne1": ["a"]})
    orchestrator = make_orchestrator(source, fake_annotator, fake_store)

    original_exists = fake_store.exists
    fake_store.exists = lambda external_id: False
    orchestrator.run_pass()
    result = orchestrator.run_pass()
    fake_store.exists = original_exists

    assert result.outcomes[0].status is ItemStatus.EXISTS
    assert len(fake_store.articles) == 1


def test_listing_failure_propagates(fake_source_factory, fake_annotator, fake_store, listing_failure):
    source = fake_source_factory({})
    source.list_error = listing_failure
    orchestrator = make_orchestrator(source, fake_annotator, fake_store)

    with pytest.raises(SourceListingError):
        orchestrator.run_pass()


def test_stop_event_cancels_between_articles(fake_source_factory, fake_annotator, fake_store):
    stop_event = threading.Event()
    source = fake_source_factory({"ne1": ["a"], "ne2": ["b"]})
    orchestrator = make_orchestrator(source, fake_annotator, fake_store, stop_event)

    original_insert = fake_store.insert_article

    def insert_then_stop(article):
        article_id = original_insert(article)
        stop_event.set()
        return article_id

    fake_store.insert_article = insert_then_stop

    with pytest.raises(PassCancelled):
        orchestrator.run_pass()

    assert list(fake_store.articles) == ["ne1"]
    assert source.fetch_calls == ["ne1"]


def test_stop_event_cancels_between_paragraphs(fake_source_factory, fake_annotator, fake_store):
    stop_event = threading.Event()
    source = fake_source_factory({"ne1": ["a", "b", "c"]})
    orchestrator = make_orchestrator(source, fake_annotator, fake_store, stop_event)

    original_tokenize = fake_annotator.tokenize

    def tokenize_then_stop(text):
        tokens = original_tokenize(text)
        stop_event.set()
        return tokens

    fake_annotator.tokenize = tokenize_then_stop

    with pytest.raises(PassCancelled):
        orchestrator.run_pass()

    assert fake_annotator.calls == ["a"]
    assert fake_store.articles == {}


def test_stop_event_passed_to_run_pass_is_used(fake_source_factory, fake_annotator, fake_store):
    stop_event = threading.Event()
    stop_event.set()
    source = fake_source_factory({"ne1": ["a"]})
    orchestrator = make_orchestrator(source, fake_annotator, fake_store)

    with pytest.raises(PassCancelled):
        orchestrator.run_pass(stop_event)

    assert source.list_calls == 0


def test_ingest_article_honours_existence_check(fake_source_factory, fake_annotator):
    store = FakeContentStore(existing=["ne1"])
    source = fake_source_factory({"ne1": ["a"], "ne2": ["b"]})
    orchestrator = make_orchestrator(source, fake_annotator, store)

    assert orchestrator.ingest_article("ne1").status is ItemStatus.EXISTS
    outcome = orchestrator.ingest_article("ne2")

    assert outcome.status is ItemStatus.INSERTED
    assert outcome.paragraph_count == 1
    assert source.fetch_calls == ["ne2"]
