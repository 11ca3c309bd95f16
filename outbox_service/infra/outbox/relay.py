"""Outbox relay: drain PENDING records into the message queue.

One drain pass:
1. Reads every PENDING record (a snapshot; later inserts wait for the next pass)
2. Publishes each record, in store order, through the queue publisher
3. Marks the record PROCESSED on success or FAILED with the error text

A publish failure never aborts the pass. A failure to read the pending
records, or to write a status, does: records updated earlier in the pass keep
their new status and everything else stays PENDING for a later pass.

Overlapping passes are not mutually exclusive, so a record may be published
more than once (at-least-once delivery). Status writes only apply to records
that are still PENDING, which keeps the first terminal status final.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from outbox_service.infra.outbox.models import DrainSummary

if TYPE_CHECKING:
    from collections.abc import Sequence

    from outbox_service.infra.messaging.sqs import QueuePublisher
    from outbox_service.infra.outbox.models import OutboxRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class OutboxStore(Protocol):
    """Read/update access to stored outbox records."""

    async def fetch_pending(self) -> Sequence[OutboxRecord]:
        """Return all PENDING records in delivery order."""
        ...

    async def mark_processed(self, record_id: Any, processed_at: datetime) -> bool:
        """PENDING → PROCESSED. Return False if the record was no longer PENDING."""
        ...

    async def mark_failed(self, record_id: Any, error: str, error_at: datetime) -> bool:
        """PENDING → FAILED. Return False if the record was no longer PENDING."""
        ...


def describe_error(exc: BaseException) -> str:
    """Error text stored on a FAILED record."""
    return str(exc) or type(exc).__name__


class OutboxRelay:
    """Publishes PENDING outbox records and records the outcome per record."""

    def __init__(self, store: OutboxStore, publisher: QueuePublisher) -> None:
        self._store = store
        self._publisher = publisher

    @property
    def store(self) -> OutboxStore:
        return self._store

    @property
    def publisher(self) -> QueuePublisher:
        return self._publisher

    async def process_outbox(self) -> DrainSummary:
        """Run one drain pass over all PENDING records.

        Returns:
            Counters for the pass. Completion means the snapshot was
            exhausted, not that every publish succeeded.
        """
        records = await self._store.fetch_pending()
        summary = DrainSummary()

        if not records:
            return summary

        logger.debug("Processing outbox records", extra={"pending": len(records)})

        for record in records:
            try:
                await self._publisher.send(record)
            except Exception as e:
                error = describe_error(e)
                logger.warning(
                    "Failed to publish outbox record",
                    extra={
                        "record_id": str(record.id),
                        "event_type": record.event_type,
                        "error": error,
                    },
                )
                if await self._store.mark_failed(record.id, error, datetime.now(UTC)):
                    summary.failed += 1
                else:
                    summary.skipped += 1
                continue

            if await self._store.mark_processed(record.id, datetime.now(UTC)):
                summary.processed += 1
                logger.debug(
                    "Outbox record published",
                    extra={"record_id": str(record.id), "event_type": record.event_type},
                )
            else:
                summary.skipped += 1

        logger.info(
            "Outbox drain pass finished",
            extra={
                "processed": summary.processed,
                "failed": summary.failed,
                "skipped": summary.skipped,
            },
        )
        return summary


__all__ = ["OutboxRelay", "OutboxStore", "describe_error"]
