"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: environment isolation and cache reset
    - Database Fixtures: in-memory SQLite engine and a ``users`` table
    - Queue Fixtures: recording publisher
    - Document Store Fixtures: in-memory fake of the PyMongo async API

The relational outbox runs unchanged on SQLite through aiosqlite; a
``StaticPool`` keeps every session on the same in-memory database.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

import pytest
from bson import ObjectId
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from outbox_service.core.settings import clear_settings_cache

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from outbox_service.infra.outbox.models import OutboxRecord

# Ensure tests run without external infrastructure
os.environ.setdefault("SQS_QUEUE_URL", "https://sqs.ap-southeast-1.amazonaws.com/000000000000/outbox-test")
os.environ.setdefault("MONGO_DB_NAME", "outbox_test")
os.environ.setdefault("LOG_JSON_LOGS", "false")


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Drop cached settings so monkeypatched environments take effect."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Database Fixtures
# ============================================================================


USERS_DDL = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name VARCHAR(100) NOT NULL,
    email VARCHAR(255) NOT NULL UNIQUE
)
"""


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create async SQLAlchemy engine with in-memory SQLite.

    Yields:
        Async SQLAlchemy engine connected to in-memory SQLite.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def users_table(db_engine: AsyncEngine) -> str:
    """Create the ``users`` business table and return its name."""
    async with db_engine.begin() as conn:
        await conn.execute(text(USERS_DDL))
    return "users"


@pytest.fixture
def fetch_rows(db_engine: AsyncEngine):
    """Return a helper running a raw SELECT and returning rows as dicts.

    Example:
        async def test_rows(fetch_rows):
            rows = await fetch_rows("SELECT * FROM users")
    """

    async def _fetch(sql: str) -> list[dict[str, Any]]:
        async with db_engine.connect() as conn:
            result = await conn.execute(text(sql))
            return [dict(row) for row in result.mappings().all()]

    return _fetch


# ============================================================================
# Queue Fixtures
# ============================================================================


class RecordingPublisher:
    """In-memory publisher that records sends and can fail on demand.

    Attributes:
        sent: Records passed to send(), in order
        fail_for: Event types whose publish raises ``error``
        start_error: Raised by the next start() call only
    """

    def __init__(self, error: Exception | None = None) -> None:
        self.sent: list[OutboxRecord] = []
        self.fail_for: set[str] = set()
        self.fail_all = False
        self.error = error or RuntimeError("Queue unavailable")
        self.started = False
        self.stopped = False
        self.start_calls = 0
        self.start_error: Exception | None = None

    async def start(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            # Fails once, like a transient credentials or endpoint error
            error, self.start_error = self.start_error, None
            raise error
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def send(self, record: OutboxRecord) -> dict[str, str]:
        if self.fail_all or record.event_type in self.fail_for:
            raise self.error
        self.sent.append(record)
        return {"MessageId": f"msg-{len(self.sent)}"}


@pytest.fixture
def publisher() -> RecordingPublisher:
    """Provide a recording publisher that succeeds by default."""
    return RecordingPublisher()


# ============================================================================
# Document Store Fixtures
# ============================================================================


def _matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, condition in query.items():
        value = document.get(key)
        if isinstance(condition, dict) and "$lte" in condition:
            if value is None or value > condition["$lte"]:
                return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    """Subset of ``AsyncCursor``: ``sort()`` and ``async for``."""

    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self._documents = documents

    def sort(self, keys: list[tuple[str, int]]) -> FakeCursor:
        for key, direction in reversed(keys):
            self._documents.sort(key=lambda doc, k=key: doc[k], reverse=direction < 0)
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for document in self._documents:
            yield dict(document)


class FakeCollection:
    """In-memory collection; writes made in a transaction apply on commit."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.documents: dict[Any, dict[str, Any]] = {}
        self.indexes: dict[str, list[tuple[str, int]]] = {}
        self.unique_fields: set[str] = set()
        self.fail_inserts: Exception | None = None
        self.fail_reads: Exception | None = None

    def _write(self, session: FakeSession | None, apply) -> None:
        if session is not None and session.in_transaction:
            session.pending.append(apply)
        else:
            apply()

    async def insert_one(self, document: dict[str, Any], session: FakeSession | None = None):
        if self.fail_inserts is not None:
            raise self.fail_inserts
        document.setdefault("_id", ObjectId())
        for field in self.unique_fields:
            if any(doc.get(field) == document.get(field) for doc in self.documents.values()):
                msg = f"E11000 duplicate key error collection: {self.name} index: {field}_1"
                raise ValueError(msg)

        stored = dict(document)
        self._write(session, lambda: self.documents.__setitem__(stored["_id"], stored))
        return SimpleNamespace(inserted_id=document["_id"], acknowledged=True)

    def find(self, query: dict[str, Any] | None = None) -> FakeCursor:
        if self.fail_reads is not None:
            raise self.fail_reads
        query = query or {}
        return FakeCursor([doc for doc in self.documents.values() if _matches(doc, query)])

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        for document in self.documents.values():
            if _matches(document, query):
                return dict(document)
        return None

    async def update_one(
        self,
        query: dict[str, Any],
        update: dict[str, Any],
        session: FakeSession | None = None,
    ):
        for document in self.documents.values():
            if _matches(document, query):
                document.update(update["$set"])
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def count_documents(self, query: dict[str, Any]) -> int:
        return sum(1 for doc in self.documents.values() if _matches(doc, query))

    async def create_index(self, keys: list[tuple[str, int]], name: str | None = None) -> str:
        index_name = name or "_".join(f"{key}_{direction}" for key, direction in keys)
        self.indexes[index_name] = list(keys)
        return index_name


class FakeDatabase:
    def __init__(self, name: str) -> None:
        self.name = name
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


class FakeSession:
    """Client session running one transaction at a time."""

    def __init__(self) -> None:
        self.in_transaction = False
        self.pending: list[Any] = []
        self.committed = 0
        self.aborted = 0

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def with_transaction(self, callback):
        self.in_transaction = True
        self.pending = []
        try:
            result = await callback(self)
        except Exception:
            self.aborted += 1
            raise
        else:
            for apply in self.pending:
                apply()
            self.committed += 1
            return result
        finally:
            self.in_transaction = False
            self.pending = []


class FakeMongoClient:
    """Subset of ``AsyncMongoClient`` used by the document outbox."""

    def __init__(self) -> None:
        self.databases: dict[str, FakeDatabase] = {}
        self.sessions: list[FakeSession] = []
        self.closed = False

    def __getitem__(self, name: str) -> FakeDatabase:
        if name not in self.databases:
            self.databases[name] = FakeDatabase(name)
        return self.databases[name]

    def start_session(self) -> FakeSession:
        session = FakeSession()
        self.sessions.append(session)
        return session

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def mongo_client() -> FakeMongoClient:
    """Provide an empty in-memory document store client."""
    return FakeMongoClient()
