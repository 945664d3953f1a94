import sys
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import psycopg
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Also add the project root to handle absolute imports
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from core.analysis.annotator import Annotator  # noqa: E402
from core.database.store import ContentStore  # noqa: E402
from core.exceptions import (  # noqa: E402
    AnnotationError, AnnotationRateLimitError, DatabaseOperationError, DuplicateArticleError,
    SourceConnectionError, SourceListingError
)
from core.models.article import Article, Token  # noqa: E402
from core.sources.base import ArticleBody, ArticleSource  # noqa: E402


class FakeContentStore(ContentStore):
    def __init__(self, existing: Iterable[str] = ()) -> None:
        self.articles: Dict[str, Article] = {
            external_id: Article(external_id=external_id, title="stored", url=f"https://example.com/{external_id}")
            for external_id in existing
        }
        self.last_pass: Optional[datetime] = None
        self.exists_calls: List[str] = []
        self.fail_exists_for: set = set()
        self.fail_insert_for: set = set()
        self.fail_state_read = False
        self.fail_state_write = False
        self.state_writes: List[datetime] = []

    def exists(self, external_id: str) -> bool:
        self.exists_calls.append(external_id)
        if external_id in self.fail_exists_for:
            raise DatabaseOperationError("select", "news", RuntimeError("connection reset"))
        return external_id in self.articles

    def insert_article(self, article: Article) -> int:
        if article.external_id in self.fail_insert_for:
            raise DatabaseOperationError("insert", "paragraphs", RuntimeError("disk full"))
        if article.external_id in self.articles:
            raise DuplicateArticleError(article.external_id)
        article.id = len(self.articles) + 1
        self.articles[article.external_id] = article
        return article.id

    def get_last_pass_time(self) -> Optional[datetime]:
        if self.fail_state_read:
            raise DatabaseOperationError("select", "scheduler_state", RuntimeError("timeout"))
        return self.last_pass

    def set_last_pass_time(self, timestamp: datetime) -> None:
        if self.fail_state_write:
            raise DatabaseOperationError("upsert", "scheduler_state", RuntimeError("timeout"))
        self.last_pass = timestamp
        self.state_writes.append(timestamp)


class FakeSource(ArticleSource):
    name = "fake"

    def __init__(self, bodies: Optional[Dict[str, ArticleBody]] = None, candidates: Optional[List[str]] = None) -> None:
        super().__init__()
        self.bodies = bodies or {}
        self.candidates = candidates if candidates is not None else list(self.bodies)
        self.list_error: Optional[Exception] = None
        self.fetch_errors: Dict[str, Exception] = {}
        self.fetch_calls: List[str] = []
        self.list_calls = 0

    def article_url(self, external_id: str) -> str:
        return f"https://example.com/news/easy/{external_id}/{external_id}.html"

    def list_candidates(self) -> List[str]:
        self.list_calls += 1
        if self.list_error:
            raise self.list_error
        return list(self.candidates)

    def fetch_article(self, external_id: str) -> ArticleBody:
        self.fetch_calls.append(external_id)
        if external_id in self.fetch_errors:
            raise self.fetch_errors[external_id]
        return self.bodies[external_id]


class FakeAnnotator(Annotator):
    provider = "fake"

    def __init__(self, rate_limit_marker: str = "RATE", failure_marker: str = "FAIL") -> None:
        super().__init__(model="fake-model")
        self.rate_limit_marker = rate_limit_marker
        self.failure_marker = failure_marker
        self.calls: List[str] = []
        self.raise_on_call: Dict[int, Exception] = {}

    def tokenize(self, text: str) -> List[Token]:
        self.calls.append(text)
        call_number = len(self.calls)
        if call_number in self.raise_on_call:
            raise self.raise_on_call[call_number]
        if self.rate_limit_marker in text:
            raise AnnotationRateLimitError(self.provider, self.model, RuntimeError("429 RESOURCE_EXHAUSTED"))
        if self.failure_marker in text:
            raise AnnotationError(self.provider, self.model, RuntimeError("malformed response"))
        return [Token(surface=word, reading=word, base_form=word, gloss="") for word in text.split()]


def make_body(external_id: str, paragraphs: List[str], title: str = "タイトル") -> ArticleBody:
    return ArticleBody(
        external_id=external_id,
        url=f"https://example.com/news/easy/{external_id}/{external_id}.html",
        title=title,
        published_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
        paragraphs=paragraphs,
    )


class FakeCursor:
    """Interprets the handful of statements the database services issue."""

    def __init__(self, manager: "FakeConnectionManager", tables: Dict[str, Any]) -> None:
        self.manager = manager
        self.tables = tables
        self._result: List[Dict[str, Any]] = []
        self.rowcount = 0

    def execute(self, sql: str, params: tuple = ()) -> None:
        statement = " ".join(sql.split())
        self.manager.statements.append(statement)
        self._result = []
        self.rowcount = 0

        if statement.startswith("SELECT EXISTS"):
            self._result = [{"found": any(row["nhk_id"] == params[0] for row in self.tables["news"])}]
        elif statement.startswith("INSERT INTO news"):
            nhk_id, title, url, published_at, fetched_at = params
            if any(row["nhk_id"] == nhk_id for row in self.tables["news"]):
                raise psycopg.errors.UniqueViolation(f"duplicate key value nhk_id={nhk_id}")
            self.manager.next_id += 1
            row = {
                "id": self.manager.next_id, "nhk_id": nhk_id, "title": title, "url": url,
                "published_at": published_at, "fetched_at": fetched_at,
                "created_at": datetime.now(timezone.utc),
            }
            self.tables["news"].append(row)
            self._result = [{"id": row["id"]}]
        elif statement.startswith("INSERT INTO paragraphs"):
            if self.manager.fail_paragraph_insert_at is not None:
                if len(self.tables["paragraphs"]) >= self.manager.fail_paragraph_insert_at:
                    raise psycopg.OperationalError("server closed the connection unexpectedly")
            news_id, position, raw_text, tokens = params
            self.tables["paragraphs"].append({
                "id": len(self.tables["paragraphs"]) + 1, "news_id": news_id, "position": position,
                "raw_text": raw_text, "tokens": tokens.obj,
            })
        elif statement.startswith("SELECT id, position, raw_text, tokens FROM paragraphs"):
            rows = [p for p in self.tables["paragraphs"] if p["news_id"] == params[0]]
            self._result = sorted(rows, key=lambda p: p["position"])
        elif statement.startswith("SELECT id, nhk_id") and "WHERE" in statement:
            column = "id" if "WHERE id" in statement else "nhk_id"
            self._result = [row for row in self.tables["news"] if row[column] == params[0]]
        elif statement.startswith("SELECT id, nhk_id"):
            limit, offset = params
            rows = sorted(self.tables["news"], key=lambda r: (r["created_at"], r["id"]), reverse=True)
            self._result = rows[offset:offset + limit]
        elif statement.startswith("SELECT value FROM scheduler_state"):
            self._result = [{"value": v} for k, v in self.tables["scheduler_state"].items() if k == params[0]]
        elif statement.startswith("INSERT INTO scheduler_state"):
            self.tables["scheduler_state"][params[0]] = params[1]
            self.rowcount = 1
        elif statement.startswith("DELETE FROM scheduler_state"):
            self.rowcount = 1 if self.tables["scheduler_state"].pop(params[0], None) else 0
        elif statement.startswith("SELECT COUNT(*) as total_articles"):
            created = [row["created_at"] for row in self.tables["news"]]
            self._result = [{
                "total_articles": len(created), "articles_24h": len(created), "articles_7d": len(created),
                "oldest_article": min(created, default=None), "newest_article": max(created, default=None),
            }]
        elif statement.startswith("SELECT COUNT(*) as count FROM paragraphs"):
            self._result = [{"count": len(self.tables["paragraphs"])}]
        elif statement.startswith("CREATE"):
            self.manager.ddl.append(statement)
        else:
            raise AssertionError(f"Unexpected statement: {statement}")

    def fetchone(self) -> Optional[Dict[str, Any]]:
        return self._result[0] if self._result else None

    def fetchall(self) -> List[Dict[str, Any]]:
        return list(self._result)


class FakeConnectionManager:
    """In-memory stand-in with commit/rollback semantics for transaction()."""

    def __init__(self) -> None:
        self.tables: Dict[str, Any] = {"news": [], "paragraphs": [], "scheduler_state": {}}
        self.statements: List[str] = []
        self.ddl: List[str] = []
        self.next_id = 0
        self.fail_paragraph_insert_at: Optional[int] = None
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def get_cursor(self):
        yield FakeCursor(self, self.tables)

    @contextmanager
    def transaction(self):
        staged = {
            "news": list(self.tables["news"]),
            "paragraphs": list(self.tables["paragraphs"]),
            "scheduler_state": dict(self.tables["scheduler_state"]),
        }
        saved_next_id = self.next_id
        try:
            yield FakeCursor(self, staged)
        except Exception:
            self.rollbacks += 1
            self.next_id = saved_next_id
            raise
        self.tables.update(staged)
        self.commits += 1

    def health_check(self) -> Dict[str, Any]:
        return {"connected": True, "database": "fake", "server_version": 160000}

    def missing_tables(self, tables: Iterable[str]) -> List[str]:
        return [table for table in tables if table not in self.tables]

    def close(self) -> None:
        pass


@pytest.fixture
def fake_store() -> FakeContentStore:
    return FakeContentStore()


@pytest.fixture
def fake_annotator() -> FakeAnnotator:
    return FakeAnnotator()


@pytest.fixture
def fake_source_factory():
    def _factory(articles: Dict[str, List[str]], candidates: Optional[List[str]] = None) -> FakeSource:
        bodies = {external_id: make_body(external_id, paragraphs) for external_id, paragraphs in articles.items()}
        return FakeSource(bodies, candidates)

    return _factory


@pytest.fixture
def fake_connection_manager() -> FakeConnectionManager:
    return FakeConnectionManager()


@pytest.fixture
def stop_event() -> threading.Event:
    return threading.Event()


@pytest.fixture
def listing_failure() -> SourceListingError:
    return SourceListingError("fake", SourceConnectionError("fake", "https://example.com/", RuntimeError("timeout")))
