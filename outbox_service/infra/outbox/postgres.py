"""Relational outbox on SQLAlchemy 2.x async (psycopg3 on PostgreSQL).

The business operation receives the transactional ``AsyncSession`` and the
target table name; the outbox row is inserted through the same session so
both commit or roll back together:

    async def create_user(session: AsyncSession, table_name: str) -> dict:
        result = await session.execute(
            text(f"INSERT INTO {table_name} (name, email) VALUES (:n, :e) RETURNING *"),
            {"n": "John Doe", "e": "john@example.com"},
        )
        return dict(result.mappings().one())

    async with PostgresOutbox(publisher, settings=get_db_settings()) as outbox:
        await outbox.ensure_outbox_storage()
        user = await outbox.execute_with_outbox(
            "users", create_user, {"action": "USER_CREATED"}, "USER_CREATION"
        )
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from outbox_service.core.exceptions import OutboxNotConnectedError
from outbox_service.infra.outbox.base import OutboxBase
from outbox_service.infra.outbox.models import OutboxRecord, OutboxStatus, to_jsonable
from outbox_service.infra.outbox.relay import OutboxRelay

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

    from outbox_service.core.settings.postgres import PostgresSettings
    from outbox_service.infra.messaging.sqs import QueuePublisher

logger = logging.getLogger(__name__)

T = TypeVar("T")

RelationalOperation = Callable[[AsyncSession, str], Awaitable[T]]

# Consistent naming convention for database constraints
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

JSONType = JSON().with_variant(JSONB(), "postgresql")


def build_outbox_table(name: str = "outbox", metadata: MetaData | None = None) -> Table:
    """Describe the outbox table under the configured name."""
    return Table(
        name,
        metadata if metadata is not None else MetaData(naming_convention=NAMING_CONVENTION),
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("event_type", String(255), nullable=False),
        Column("payload", JSONType, nullable=False),
        Column("result", JSONType, nullable=True),
        Column("status", String(50), nullable=False, index=True),
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("processed_at", DateTime(timezone=True), nullable=True),
        Column("error", Text, nullable=True),
        Column("error_at", DateTime(timezone=True), nullable=True),
    )


class PostgresOutboxStore:
    """Outbox row access for the relational backend."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], table: Table) -> None:
        self._sessionmaker = sessionmaker
        self.table = table

    def session(self) -> AsyncSession:
        """Open a new session on the outbox engine."""
        return self._sessionmaker()

    async def insert(
        self,
        session: AsyncSession,
        *,
        event_type: str,
        payload: Any,
        result: Any,
    ) -> int:
        """Insert a PENDING row inside the caller's transaction.

        Returns:
            The new row's primary key
        """
        stmt = insert(self.table).values(
            event_type=event_type,
            payload=payload,
            result=result,
            status=OutboxStatus.PENDING.value,
            created_at=datetime.now(UTC),
        )
        cursor = await session.execute(stmt)
        return cursor.inserted_primary_key[0]

    async def fetch_pending(self) -> Sequence[OutboxRecord]:
        stmt = (
            select(self.table)
            .where(self.table.c.status == OutboxStatus.PENDING.value)
            .order_by(self.table.c.created_at.asc(), self.table.c.id.asc())
        )
        async with self._sessionmaker() as session:
            result = await session.execute(stmt)
            return [OutboxRecord.from_row(row) for row in result.mappings().all()]

    async def mark_processed(self, record_id: Any, processed_at: datetime) -> bool:
        return await self._transition(
            record_id,
            status=OutboxStatus.PROCESSED.value,
            processed_at=processed_at,
        )

    async def mark_failed(self, record_id: Any, error: str, error_at: datetime) -> bool:
        return await self._transition(
            record_id,
            status=OutboxStatus.FAILED.value,
            error=error,
            error_at=error_at,
        )

    async def _transition(self, record_id: Any, **values: Any) -> bool:
        # Only PENDING rows move; terminal rows are left untouched
        stmt = (
            update(self.table)
            .where(
                self.table.c.id == record_id,
                self.table.c.status == OutboxStatus.PENDING.value,
            )
            .values(**values)
        )
        async with self._sessionmaker() as session, session.begin():
            result = await session.execute(stmt)
            return result.rowcount == 1

    async def get(self, record_id: Any) -> OutboxRecord | None:
        async with self._sessionmaker() as session:
            result = await session.execute(select(self.table).where(self.table.c.id == record_id))
            row = result.mappings().one_or_none()
        return OutboxRecord.from_row(row) if row is not None else None

    async def count_by_status(self) -> dict[OutboxStatus, int]:
        stmt = select(self.table.c.status, func.count()).group_by(self.table.c.status)
        counts = dict.fromkeys(OutboxStatus, 0)
        async with self._sessionmaker() as session:
            result = await session.execute(stmt)
            for status, count in result.all():
                counts[OutboxStatus(status)] = count
        return counts


class PostgresOutbox(OutboxBase):
    """Transactional outbox on a relational database.

    The engine is built from ``PostgresSettings`` in ``connect()`` unless one
    is injected; an injected engine is never disposed by ``close()``.
    """

    backend = "postgres"

    def __init__(
        self,
        publisher: QueuePublisher,
        *,
        settings: PostgresSettings | None = None,
        engine: AsyncEngine | None = None,
        collection: str = "outbox",
        drain_after_commit: bool = True,
    ) -> None:
        super().__init__(
            publisher,
            collection=collection,
            drain_after_commit=drain_after_commit,
        )
        if settings is None and engine is None:
            from outbox_service.core.settings import get_db_settings

            settings = get_db_settings()

        self.settings = settings
        self.table = build_outbox_table(collection)
        self._engine = engine
        self._owns_engine = engine is None
        self._store: PostgresOutboxStore | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise OutboxNotConnectedError(self.backend)
        return self._engine

    @property
    def store(self) -> PostgresOutboxStore:
        if self._store is None:
            raise OutboxNotConnectedError(self.backend)
        return self._store

    async def connect(self) -> None:
        if self._store is not None:
            return

        if self._engine is None:
            assert self.settings is not None
            self._engine = create_async_engine(
                self.settings.get_sqlalchemy_url(),
                **self.settings.sqlalchemy_engine_kwargs(),
            )

        # Publisher first: a relay must never run against an unstarted publisher
        try:
            await self._start_publisher()
        except Exception:
            if self._owns_engine:
                await self._engine.dispose()
                self._engine = None
            raise

        sessionmaker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self._store = PostgresOutboxStore(sessionmaker, self.table)
        self._relay = OutboxRelay(self._store, self.publisher)

        logger.info(
            "Postgres outbox connected",
            extra={"table": self.collection, "dialect": self._engine.dialect.name},
        )

    async def close(self) -> None:
        if self._store is None:
            return

        await self._stop_publisher()
        self._store = None
        self._relay = None

        if self._owns_engine and self._engine is not None:
            await self._engine.dispose()
            self._engine = None

        logger.info("Postgres outbox closed", extra={"table": self.collection})

    async def execute_with_outbox(
        self,
        target_name: str,
        operation: RelationalOperation[T],
        event_payload: Any,
        event_type: str,
    ) -> T:
        """Run ``operation(session, target_name)`` and insert its outbox row atomically.

        The event payload and the operation's result are both stored through
        ``to_jsonable``; the result is returned unchanged. Any error
        from the operation or the insert rolls the whole transaction back
        and is re-raised as-is.
        """
        self._validate_arguments(target_name, event_type)
        store = self.store

        try:
            async with store.session() as session, session.begin():
                logger.debug(
                    "Outbox transaction started",
                    extra={"table": target_name, "event_type": event_type},
                )
                result = await operation(session, target_name)
                record_id = await store.insert(
                    session,
                    event_type=event_type,
                    payload=to_jsonable(event_payload),
                    result=to_jsonable(result),
                )
        except Exception:
            logger.exception(
                "Outbox transaction failed",
                extra={"table": target_name, "event_type": event_type},
            )
            raise

        logger.debug(
            "Outbox transaction committed",
            extra={"table": target_name, "event_type": event_type, "record_id": record_id},
        )

        await self._drain_after_commit()
        return result

    async def ensure_outbox_storage(self) -> None:
        """Create the outbox table (and its status index) if it doesn't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(lambda sync_conn: self.table.create(bind=sync_conn, checkfirst=True))
        logger.info("Ensured outbox table exists", extra={"table": self.collection})

    async def count_by_status(self) -> dict[OutboxStatus, int]:
        return await self.store.count_by_status()


__all__ = [
    "PostgresOutbox",
    "PostgresOutboxStore",
    "RelationalOperation",
    "build_outbox_table",
]
