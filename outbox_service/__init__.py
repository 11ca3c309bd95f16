"""Transactional outbox with SQS relay for PostgreSQL and MongoDB.

    from outbox_service import create_outbox

    async with create_outbox("postgres") as outbox:
        user = await outbox.execute_with_outbox(
            "users", create_user, {"action": "USER_CREATED"}, "USER_CREATION"
        )
"""

from outbox_service.core.exceptions import (
    OutboxConfigurationError,
    OutboxError,
    OutboxNotConnectedError,
    OutboxValidationError,
    PublishError,
)
from outbox_service.infra.messaging import QueuePublisher, SQSPublisher
from outbox_service.infra.outbox import (
    DrainSummary,
    MongoOutbox,
    OutboxBase,
    OutboxRecord,
    OutboxRelay,
    OutboxStatus,
    PostgresOutbox,
    create_outbox,
)

__version__ = "0.1.0"

__all__ = [
    "DrainSummary",
    "MongoOutbox",
    "OutboxBase",
    "OutboxConfigurationError",
    "OutboxError",
    "OutboxNotConnectedError",
    "OutboxRecord",
    "OutboxRelay",
    "OutboxStatus",
    "OutboxValidationError",
    "PostgresOutbox",
    "PublishError",
    "QueuePublisher",
    "SQSPublisher",
    "create_outbox",
]
