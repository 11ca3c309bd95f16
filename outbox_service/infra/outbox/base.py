"""Common contract for the relational and document outbox variants.

Both variants expose the same operations:

- ``connect()`` / ``close()`` (or ``async with``)
- ``execute_with_outbox()``: business operation + PENDING record in one
  transaction, followed by one drain pass
- ``process_outbox()``: one drain pass on demand
- ``ensure_outbox_storage()`` and ``count_by_status()`` for operations

Queue publishing and draining live in composed helpers
(``QueuePublisher`` and ``OutboxRelay``) rather than in this class.

Nothing connects lazily: ``execute_with_outbox()`` and ``process_outbox()``
raise ``OutboxNotConnectedError`` until ``connect()`` has completed, so
connection and publisher start-up errors surface in one place. ``connect()``
starts the publisher before wiring the relay; if that fails, the outbox stays
disconnected and a later ``connect()`` retries from scratch.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Self

from outbox_service.core.exceptions import OutboxNotConnectedError, OutboxValidationError

if TYPE_CHECKING:
    from types import TracebackType

    from outbox_service.infra.messaging.sqs import QueuePublisher
    from outbox_service.infra.outbox.models import DrainSummary, OutboxStatus
    from outbox_service.infra.outbox.relay import OutboxRelay

logger = logging.getLogger(__name__)


class OutboxBase(ABC):
    """Abstract outbox bound to one primary store and one queue publisher.

    Attributes:
        collection: Outbox table/collection name
        drain_after_commit: Run a drain pass after every committed transaction
    """

    backend: ClassVar[str]

    def __init__(
        self,
        publisher: QueuePublisher,
        *,
        collection: str = "outbox",
        drain_after_commit: bool = True,
    ) -> None:
        self.publisher = publisher
        self.collection = collection
        self.drain_after_commit = drain_after_commit
        self._relay: OutboxRelay | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """Open storage connections and start the publisher."""

    @abstractmethod
    async def close(self) -> None:
        """Stop the publisher and release storage connections."""

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._relay is not None

    @property
    def relay(self) -> OutboxRelay:
        if self._relay is None:
            raise OutboxNotConnectedError(self.backend)
        return self._relay

    async def _start_publisher(self) -> None:
        start = getattr(self.publisher, "start", None)
        if start is not None:
            await start()

    async def _stop_publisher(self) -> None:
        stop = getattr(self.publisher, "stop", None)
        if stop is not None:
            await stop()

    # ------------------------------------------------------------------
    # Outbox operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def execute_with_outbox(
        self,
        target_name: str,
        operation: Any,
        event_payload: Any,
        event_type: str,
    ) -> Any:
        """Run ``operation`` and record the event atomically.

        Args:
            target_name: Table/collection the operation acts on
            operation: Async callable performing the business mutation
            event_payload: Event data sent to the queue
            event_type: Event classification

        Returns:
            Whatever ``operation`` returned
        """

    @abstractmethod
    async def ensure_outbox_storage(self) -> None:
        """Create the outbox table/indexes if they don't exist."""

    @abstractmethod
    async def count_by_status(self) -> dict[OutboxStatus, int]:
        """Count outbox records per status."""

    async def process_outbox(self) -> DrainSummary:
        """Publish every PENDING record once.

        Raises:
            OutboxNotConnectedError: If connect() was not awaited.
        """
        return await self.relay.process_outbox()

    async def _drain_after_commit(self) -> None:
        """Drain pass following a commit; failures never reach the caller."""
        if not self.drain_after_commit:
            return
        try:
            await self.process_outbox()
        except Exception:
            logger.exception(
                "Outbox drain pass failed after commit",
                extra={"backend": self.backend, "collection": self.collection},
            )

    @staticmethod
    def _validate_arguments(target_name: str, event_type: str) -> None:
        if not target_name:
            msg = "target_name must be a non-empty table/collection name"
            raise OutboxValidationError(msg, extra={"field": "target_name"})
        if not event_type:
            msg = "event_type must be a non-empty string"
            raise OutboxValidationError(msg, extra={"field": "event_type"})


__all__ = ["OutboxBase"]
