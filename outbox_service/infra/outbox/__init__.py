"""Transactional outbox pattern implementation.

The outbox pattern ensures reliable event publishing by:
1. Writing the event record in the same transaction as the domain change
2. Draining PENDING records to the message queue after the commit
3. Marking each record PROCESSED or FAILED after the publish attempt

This guarantees at-least-once delivery semantics.
"""

from outbox_service.infra.outbox.base import OutboxBase
from outbox_service.infra.outbox.factory import create_outbox
from outbox_service.infra.outbox.models import (
    DrainSummary,
    OutboxRecord,
    OutboxStatus,
    to_jsonable,
)
from outbox_service.infra.outbox.mongo import MongoOutbox, MongoOutboxStore
from outbox_service.infra.outbox.postgres import (
    PostgresOutbox,
    PostgresOutboxStore,
    build_outbox_table,
)
from outbox_service.infra.outbox.relay import OutboxRelay, OutboxStore

__all__ = [
    "DrainSummary",
    "MongoOutbox",
    "MongoOutboxStore",
    "OutboxBase",
    "OutboxRecord",
    "OutboxRelay",
    "OutboxStatus",
    "OutboxStore",
    "PostgresOutbox",
    "PostgresOutboxStore",
    "build_outbox_table",
    "create_outbox",
    "to_jsonable",
]
