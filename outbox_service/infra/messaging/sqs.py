"""AWS SQS publisher for outbox records.

Each record is sent as one SQS message whose body is the JSON object
``{"id", "eventType", "payload", "result", "timestamp"}``. ``timestamp`` is
the publish time, not the record's creation time.

Example:
    publisher = SQSPublisher(get_sqs_settings())
    await publisher.start()
    response = await publisher.send(record)
    print(response["MessageId"])
    await publisher.stop()
"""

from __future__ import annotations

import contextlib
import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import aioboto3

from outbox_service.core.exceptions import OutboxConfigurationError, PublishError

if TYPE_CHECKING:
    from outbox_service.core.settings.sqs import SQSSettings
    from outbox_service.infra.outbox.models import OutboxRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class QueuePublisher(Protocol):
    """Publish one outbox record; raise on failure."""

    async def send(self, record: OutboxRecord) -> Any: ...


def _utc_timestamp(now: datetime | None = None) -> str:
    moment = now or datetime.now(UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_message(record: OutboxRecord, *, now: datetime | None = None) -> str:
    """Serialize a record into the queue wire format.

    Args:
        record: Outbox record to publish
        now: Publish instant (defaults to the current UTC time)

    Returns:
        JSON string used as the SQS MessageBody
    """
    body = {
        "id": str(record.id),
        "eventType": record.event_type,
        "payload": record.payload,
        "result": record.result,
        "timestamp": _utc_timestamp(now),
    }
    return json.dumps(body, ensure_ascii=False, default=str)


class SQSPublisher:
    """Async SQS publisher backed by one long-lived aioboto3 client.

    The client is opened by ``start()`` and closed by ``stop()``. A client
    passed to the constructor is used as-is and never closed here.

    Attributes:
        queue_url: Target queue URL
    """

    def __init__(self, settings: SQSSettings, *, client: Any | None = None) -> None:
        """Initialize the publisher.

        Args:
            settings: SQS settings with queue URL, region and credentials
            client: Optional pre-built SQS client (tests, shared sessions)

        Raises:
            OutboxConfigurationError: If no queue URL is configured.
        """
        if not settings.is_configured:
            msg = "SQS queue URL is not configured. Set SQS_QUEUE_URL."
            raise OutboxConfigurationError(msg, extra={"setting": "SQS_QUEUE_URL"})

        self.settings = settings
        self.queue_url: str = settings.queue_url  # type: ignore[assignment]
        self._client = client
        self._owns_client = client is None
        self._exit_stack: contextlib.AsyncExitStack | None = None

    @property
    def is_started(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        """Open the SQS client if it isn't open yet."""
        if self._client is not None:
            return

        session = aioboto3.Session()
        stack = contextlib.AsyncExitStack()
        self._client = await stack.enter_async_context(
            session.client("sqs", **self.settings.client_kwargs())
        )
        self._exit_stack = stack
        logger.info(
            "SQS publisher started",
            extra={"queue_url": self.queue_url, "region": self.settings.region},
        )

    async def stop(self) -> None:
        """Close the SQS client opened by start()."""
        if not self._owns_client:
            return

        if self._exit_stack is not None:
            await self._exit_stack.aclose()
            self._exit_stack = None
            logger.info("SQS publisher stopped", extra={"queue_url": self.queue_url})
        self._client = None

    async def send(self, record: OutboxRecord) -> Any:
        """Send one record to the queue.

        Args:
            record: Outbox record to publish

        Returns:
            The SQS ``send_message`` response (includes ``MessageId``)

        Raises:
            PublishError: If start() was not awaited.
            botocore.exceptions.ClientError: Propagated from the SQS client.
        """
        if self._client is None:
            msg = "SQS publisher is not started"
            raise PublishError(msg, extra={"queue_url": self.queue_url})

        return await self._client.send_message(
            QueueUrl=self.queue_url,
            MessageBody=build_message(record),
        )


__all__ = ["QueuePublisher", "SQSPublisher", "build_message"]
