"""Document-store outbox on the PyMongo async API.

The business operation receives the target collection and the active client
session, and must pass ``session=session`` to its writes so they join the
transaction:

    async def create_user(collection, session):
        user = {"name": "John Doe", "email": "john@example.com"}
        await collection.insert_one(user, session=session)
        return user

    async with MongoOutbox(publisher, settings=get_mongo_settings()) as outbox:
        await outbox.execute_with_outbox(
            "users", create_user, {"action": "USER_CREATED"}, "USER_CREATION"
        )

Multi-document transactions need a replica set or sharded cluster.
``with_transaction`` re-runs the whole callback on transient transaction
errors, so the operation may be invoked more than once per call.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from pymongo import ASCENDING, AsyncMongoClient

from outbox_service.core.exceptions import OutboxConfigurationError, OutboxNotConnectedError
from outbox_service.infra.outbox.base import OutboxBase
from outbox_service.infra.outbox.models import OutboxRecord, OutboxStatus, to_jsonable
from outbox_service.infra.outbox.relay import OutboxRelay

if TYPE_CHECKING:
    from collections.abc import Sequence

    from outbox_service.core.settings.mongo import MongoSettings
    from outbox_service.infra.messaging.sqs import QueuePublisher

logger = logging.getLogger(__name__)

T = TypeVar("T")

DocumentOperation = Callable[[Any, Any], Awaitable[T]]

PENDING_INDEX_NAME = "status_createdAt"


class MongoOutboxStore:
    """Outbox document access for the document backend."""

    def __init__(self, collection: Any) -> None:
        self.collection = collection

    async def insert(
        self,
        *,
        event_type: str,
        payload: Any,
        result: Any,
        session: Any,
    ) -> Any:
        """Insert a PENDING document inside the session's transaction.

        Returns:
            The new document's ``_id``
        """
        document = {
            "eventType": event_type,
            "payload": payload,
            "result": result,
            "status": OutboxStatus.PENDING.value,
            "createdAt": datetime.now(UTC),
        }
        inserted = await self.collection.insert_one(document, session=session)
        return inserted.inserted_id

    async def fetch_pending(self) -> Sequence[OutboxRecord]:
        # The cursor loads in batches; the createdAt bound keeps later inserts out of this pass
        read_started = datetime.now(UTC)
        cursor = self.collection.find(
            {"status": OutboxStatus.PENDING.value, "createdAt": {"$lte": read_started}}
        ).sort([("createdAt", ASCENDING), ("_id", ASCENDING)])
        return [OutboxRecord.from_document(document) async for document in cursor]

    async def mark_processed(self, record_id: Any, processed_at: datetime) -> bool:
        return await self._transition(
            record_id,
            {"status": OutboxStatus.PROCESSED.value, "processedAt": processed_at},
        )

    async def mark_failed(self, record_id: Any, error: str, error_at: datetime) -> bool:
        return await self._transition(
            record_id,
            {"status": OutboxStatus.FAILED.value, "error": error, "errorAt": error_at},
        )

    async def _transition(self, record_id: Any, fields: dict[str, Any]) -> bool:
        # Only PENDING documents move; terminal documents are left untouched
        updated = await self.collection.update_one(
            {"_id": record_id, "status": OutboxStatus.PENDING.value},
            {"$set": fields},
        )
        return updated.modified_count == 1

    async def get(self, record_id: Any) -> OutboxRecord | None:
        document = await self.collection.find_one({"_id": record_id})
        return OutboxRecord.from_document(document) if document is not None else None

    async def count_by_status(self) -> dict[OutboxStatus, int]:
        return {
            status: await self.collection.count_documents({"status": status.value})
            for status in OutboxStatus
        }

    async def ensure_indexes(self) -> None:
        await self.collection.create_index(
            [("status", ASCENDING), ("createdAt", ASCENDING)],
            name=PENDING_INDEX_NAME,
        )


class MongoOutbox(OutboxBase):
    """Transactional outbox on MongoDB.

    The client is built from ``MongoSettings`` in ``connect()`` unless one is
    injected; an injected client is never closed by ``close()``.
    """

    backend = "mongo"

    def __init__(
        self,
        publisher: QueuePublisher,
        *,
        settings: MongoSettings | None = None,
        client: Any | None = None,
        db_name: str | None = None,
        collection: str = "outbox",
        drain_after_commit: bool = True,
    ) -> None:
        super().__init__(
            publisher,
            collection=collection,
            drain_after_commit=drain_after_commit,
        )
        if settings is None and client is None:
            from outbox_service.core.settings import get_mongo_settings

            settings = get_mongo_settings()

        self.settings = settings
        self.db_name = db_name or (settings.db_name if settings is not None else None)
        if not self.db_name:
            msg = "MongoDB database name is not configured. Set MONGO_DB_NAME."
            raise OutboxConfigurationError(msg, extra={"setting": "MONGO_DB_NAME"})

        self._client = client
        self._owns_client = client is None
        self._db: Any | None = None
        self._store: MongoOutboxStore | None = None

    @property
    def db(self) -> Any:
        if self._db is None:
            raise OutboxNotConnectedError(self.backend)
        return self._db

    @property
    def store(self) -> MongoOutboxStore:
        if self._store is None:
            raise OutboxNotConnectedError(self.backend)
        return self._store

    async def connect(self) -> None:
        if self._store is not None:
            return

        if self._client is None:
            assert self.settings is not None
            self._client = AsyncMongoClient(self.settings.uri, **self.settings.client_kwargs())

        # Publisher first: a relay must never run against an unstarted publisher
        try:
            await self._start_publisher()
        except Exception:
            if self._owns_client:
                await self._client.close()
                self._client = None
            raise

        self._db = self._client[self.db_name]
        self._store = MongoOutboxStore(self._db[self.collection])
        self._relay = OutboxRelay(self._store, self.publisher)

        logger.info(
            "Mongo outbox connected",
            extra={"database": self.db_name, "collection": self.collection},
        )

    async def close(self) -> None:
        if self._store is None:
            return

        await self._stop_publisher()
        self._store = None
        self._relay = None
        self._db = None

        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

        logger.info("Mongo outbox closed", extra={"database": self.db_name})

    async def execute_with_outbox(
        self,
        target_name: str,
        operation: DocumentOperation[T],
        event_payload: Any,
        event_type: str,
    ) -> T:
        """Run ``operation(collection, session)`` and insert its outbox document atomically.

        The event payload and the operation's result are both stored through
        ``to_jsonable``; the result is returned unchanged. Any error
        from the operation or the insert aborts the transaction and is
        re-raised as-is.
        """
        self._validate_arguments(target_name, event_type)
        store = self.store
        target = self.db[target_name]

        async def _run_in_transaction(session: Any) -> tuple[T, Any]:
            result = await operation(target, session)
            record_id = await store.insert(
                event_type=event_type,
                payload=to_jsonable(event_payload),
                result=to_jsonable(result),
                session=session,
            )
            return result, record_id

        try:
            async with self._client.start_session() as session:
                logger.debug(
                    "Outbox transaction started",
                    extra={"collection": target_name, "event_type": event_type},
                )
                result, record_id = await session.with_transaction(_run_in_transaction)
        except Exception:
            logger.exception(
                "Outbox transaction failed",
                extra={"collection": target_name, "event_type": event_type},
            )
            raise

        logger.debug(
            "Outbox transaction committed",
            extra={
                "collection": target_name,
                "event_type": event_type,
                "record_id": str(record_id),
            },
        )

        await self._drain_after_commit()
        return result

    async def ensure_outbox_storage(self) -> None:
        """Create the ``{status, createdAt}`` index used by drain passes."""
        await self.store.ensure_indexes()
        logger.info(
            "Ensured outbox collection indexes",
            extra={"collection": self.collection, "index": PENDING_INDEX_NAME},
        )

    async def count_by_status(self) -> dict[OutboxStatus, int]:
        return await self.store.count_by_status()


__all__ = ["DocumentOperation", "MongoOutbox", "MongoOutboxStore"]
