#!/usr/bin/env python3
"""
Ingestion orchestrator.

Runs one ingestion pass: list candidates, skip the ones already stored,
fetch and tokenize the rest paragraph by paragraph and write each article
atomically. Failures are contained per candidate, except an annotation
rate limit which ends the pass early.
"""

import logging
import threading
from typing import List, Optional

from ..analysis.annotator import Annotator
from ..database.store import ContentStore
from ..exceptions import (
    AnnotationError, DuplicateArticleError, ErrorRecovery, PassCancelled
)
from ..models.article import Article, Paragraph
from ..models.ingestion import ItemOutcome, ItemStatus, PassResult
from ..sources.base import ArticleBody, ArticleSource

logger = logging.getLogger(__name__)


class RateLimitReached(Exception):
    """Internal signal: the annotator is rate limited, stop tokenizing."""

    def __init__(self, original_error: Exception):
        super().__init__(str(original_error))
        self.original_error = original_error


class IngestionOrchestrator:
    """Coordinates source, annotator and store for ingestion passes."""

    def __init__(self,
                 source: ArticleSource,
                 annotator: Annotator,
                 store: ContentStore,
                 article_delay: float = 2.0,
                 paragraph_delay: float = 0.5,
                 stop_event: Optional[threading.Event] = None):
        """
        Initialize orchestrator.

        Args:
            source: Where candidate IDs and article bodies come from
            annotator: Paragraph tokenizer
            store: Persistent article storage
            article_delay: Seconds to pause after each article that was fetched
            paragraph_delay: Seconds to pause between annotation calls
            stop_event: Shutdown signal checked at every safe checkpoint
        """
        self.source = source
        self.annotator = annotator
        self.store = store
        self.article_delay = article_delay
        self.paragraph_delay = paragraph_delay
        self.stop_event = stop_event or threading.Event()

    def _check_stop(self, checkpoint: str) -> None:
        if self.stop_event.is_set():
            raise PassCancelled(checkpoint)

    def _pause(self, seconds: float, checkpoint: str) -> None:
        """Interruptible pacing delay."""
        if seconds > 0 and self.stop_event.wait(seconds):
            raise PassCancelled(checkpoint)
        self._check_stop(checkpoint)

    def run_pass(self, stop_event: Optional[threading.Event] = None) -> PassResult:
        """
        Run one ingestion pass over the source's current candidates.

        Args:
            stop_event: Replaces the orchestrator's stop signal for this and later passes

        Returns:
            PassResult; a pass stopped early by a rate limit is still a successful pass

        Raises:
            SourceListingError: If the candidate list cannot be obtained
            PassCancelled: If the stop signal is observed mid-pass
        """
        if stop_event is not None:
            self.stop_event = stop_event

        result = PassResult()
        self._check_stop("pass start")

        candidates = self.source.list_candidates()
        result.candidates = len(candidates)
        logger.info(f"Ingestion pass started with {len(candidates)} candidates")

        for index, external_id in enumerate(candidates):
            self._check_stop(f"candidate {external_id}")

            outcome = self.process_candidate(external_id)
            result.record(outcome)

            if outcome.stops_pass:
                remaining = len(candidates) - index - 1
                logger.warning(
                    f"Rate limit reached at {external_id}, stopping pass early "
                    f"({remaining} candidates left for the next pass)"
                )
                break

            if outcome.status is not ItemStatus.EXISTS and index < len(candidates) - 1:
                self._pause(self.article_delay, "article delay")

        result.finish()
        logger.info(f"Ingestion pass finished in {result.duration_seconds:.1f}s: {result.summary()}")
        return result

    def process_candidate(self, external_id: str) -> ItemOutcome:
        """
        Process one candidate ID end to end.

        Args:
            external_id: Source article ID

        Returns:
            ItemOutcome describing what happened; never raises for per-item failures

        Raises:
            PassCancelled: If the stop signal is observed
        """
        try:
            if self.store.exists(external_id):
                logger.debug(f"Skipping {external_id}: already stored")
                return ItemOutcome.exists(external_id)
        except PassCancelled:
            raise
        except Exception as e:
            logger.error(f"Existence check failed for {external_id}, skipping: {e}")
            return ItemOutcome.skipped(external_id, f"existence check failed: {e}")

        try:
            body = self.source.fetch_article(external_id)
        except PassCancelled:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch {external_id}, skipping: {e}")
            return ItemOutcome.skipped(external_id, f"fetch failed: {e}")

        try:
            paragraphs = self._annotate(body)
        except RateLimitReached as e:
            return ItemOutcome.abort_pass(external_id, f"rate limited: {e.original_error}")
        except PassCancelled:
            raise
        except Exception as e:
            logger.error(f"Failed to annotate {external_id}, skipping: {e}")
            return ItemOutcome.skipped(external_id, f"annotation failed: {e}")

        article = Article(
            external_id=body.external_id or external_id,
            title=body.title,
            url=body.url,
            published_at=body.published_at,
            paragraphs=paragraphs,
        )

        try:
            self.store.insert_article(article)
        except DuplicateArticleError:
            logger.info(f"{external_id} was stored concurrently, treating as existing")
            return ItemOutcome.exists(external_id)
        except PassCancelled:
            raise
        except Exception as e:
            logger.error(f"Failed to store {external_id}, skipping: {e}")
            return ItemOutcome.skipped(external_id, f"write failed: {e}")

        logger.info(f"Ingested {external_id}: '{article.title}' ({len(paragraphs)} paragraphs)")
        return ItemOutcome.inserted(external_id, len(paragraphs))

    def _annotate(self, body: ArticleBody) -> List[Paragraph]:
        """
        Tokenize every non-empty paragraph in source order.

        Positions are assigned densely from 0 over the kept paragraphs.
        """
        texts = [text for text in body.paragraphs if text and text.strip()]
        paragraphs: List[Paragraph] = []

        for position, text in enumerate(texts):
            if position > 0:
                self._pause(self.paragraph_delay, "paragraph delay")
            else:
                self._check_stop(f"paragraph {position} of {body.external_id}")

            try:
                tokens = self.annotator.tokenize(text)
            except AnnotationError as e:
                if e.rate_limited:
                    raise RateLimitReached(e) from e
                raise
            except PassCancelled:
                raise
            except Exception as e:
                if ErrorRecovery.is_rate_limit_error(e):
                    raise RateLimitReached(e) from e
                raise

            paragraphs.append(Paragraph(position=position, raw_text=text, tokens=tokens))

        return paragraphs

    def ingest_article(self, external_id: str) -> ItemOutcome:
        """
        Ingest a single article on demand, outside of a scheduled pass.

        Honours the same existence check as a pass.
        """
        self._check_stop("single article")
        outcome = self.process_candidate(external_id)
        logger.info(f"Single article {external_id}: {outcome.status.value} {outcome.reason}".rstrip())
        return outcome
