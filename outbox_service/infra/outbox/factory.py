"""Build the configured outbox variant from settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from outbox_service.core.exceptions import OutboxConfigurationError
from outbox_service.core.settings import (
    get_db_settings,
    get_mongo_settings,
    get_outbox_settings,
    get_sqs_settings,
)
from outbox_service.infra.messaging.sqs import SQSPublisher
from outbox_service.infra.outbox.mongo import MongoOutbox
from outbox_service.infra.outbox.postgres import PostgresOutbox

if TYPE_CHECKING:
    from outbox_service.infra.messaging.sqs import QueuePublisher
    from outbox_service.infra.outbox.base import OutboxBase

logger = logging.getLogger(__name__)


def create_outbox(
    backend: str | None = None,
    *,
    publisher: QueuePublisher | None = None,
) -> OutboxBase:
    """Create a PostgresOutbox or MongoOutbox from cached settings.

    Args:
        backend: "postgres" or "mongo"; defaults to OUTBOX_BACKEND
        publisher: Queue publisher; defaults to an SQSPublisher built from SQS_* settings

    Returns:
        An unconnected outbox; await ``connect()`` (or use ``async with``)

    Raises:
        OutboxConfigurationError: For an unknown backend or missing settings.
    """
    outbox_settings = get_outbox_settings()
    backend = backend or outbox_settings.backend
    if backend not in ("postgres", "mongo"):
        msg = f"Unknown outbox backend: {backend!r}"
        raise OutboxConfigurationError(msg, extra={"backend": backend})

    publisher = publisher or SQSPublisher(get_sqs_settings())
    common = {
        "collection": outbox_settings.collection,
        "drain_after_commit": outbox_settings.drain_after_commit,
    }

    outbox: OutboxBase
    if backend == "postgres":
        outbox = PostgresOutbox(publisher, settings=get_db_settings(), **common)
    else:
        outbox = MongoOutbox(publisher, settings=get_mongo_settings(), **common)

    logger.debug("Outbox created", extra={"backend": backend, **common})
    return outbox


__all__ = ["create_outbox"]
