"""Tests for the SQS publisher and its wire format."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId

from outbox_service.core.exceptions import OutboxConfigurationError, PublishError
from outbox_service.core.settings import SQSSettings
from outbox_service.infra.messaging.sqs import QueuePublisher, SQSPublisher, build_message
from outbox_service.infra.outbox.models import OutboxRecord, OutboxStatus

QUEUE_URL = "https://sqs.ap-southeast-1.amazonaws.com/000000000000/outbox"


@pytest.fixture
def sqs_settings() -> SQSSettings:
    return SQSSettings(queue_url=QUEUE_URL, region="ap-southeast-1")


@pytest.fixture
def record() -> OutboxRecord:
    return OutboxRecord(
        id=42,
        event_type="USER_CREATION",
        payload={"action": "USER_CREATED", "name": "José"},
        result={"id": 1, "name": "José"},
        status=OutboxStatus.PENDING,
    )


@pytest.fixture
def sqs_client() -> AsyncMock:
    client = AsyncMock()
    client.send_message.return_value = {"MessageId": "abc-123"}
    return client


class TestBuildMessage:
    def test_wire_format(self, record):
        now = datetime(2024, 3, 1, 8, 30, 15, 123456, tzinfo=UTC)

        body = json.loads(build_message(record, now=now))

        assert body == {
            "id": "42",
            "eventType": "USER_CREATION",
            "payload": {"action": "USER_CREATED", "name": "José"},
            "result": {"id": 1, "name": "José"},
            "timestamp": "2024-03-01T08:30:15.123Z",
        }

    def test_timestamp_converted_to_utc(self, record):
        now = datetime(2024, 3, 1, 16, 0, tzinfo=timezone(timedelta(hours=8)))

        body = json.loads(build_message(record, now=now))

        assert body["timestamp"] == "2024-03-01T08:00:00.000Z"

    def test_object_id_stringified(self):
        oid = ObjectId()
        record = OutboxRecord(id=oid, event_type="E", payload=None, status=OutboxStatus.PENDING)

        body = json.loads(build_message(record))

        assert body["id"] == str(oid)
        assert body["payload"] is None
        assert body["result"] is None
        assert body["timestamp"].endswith("Z")


class TestSQSPublisher:
    def test_requires_queue_url(self, monkeypatch):
        monkeypatch.delenv("SQS_QUEUE_URL", raising=False)

        with pytest.raises(OutboxConfigurationError):
            SQSPublisher(SQSSettings())

    def test_satisfies_protocol(self, sqs_settings):
        assert isinstance(SQSPublisher(sqs_settings), QueuePublisher)

    async def test_send_before_start_raises(self, sqs_settings, record):
        publisher = SQSPublisher(sqs_settings)

        with pytest.raises(PublishError):
            await publisher.send(record)

    async def test_send_with_injected_client(self, sqs_settings, sqs_client, record):
        publisher = SQSPublisher(sqs_settings, client=sqs_client)

        response = await publisher.send(record)

        assert response == {"MessageId": "abc-123"}
        sqs_client.send_message.assert_awaited_once()
        kwargs = sqs_client.send_message.call_args.kwargs
        assert kwargs["QueueUrl"] == QUEUE_URL
        assert json.loads(kwargs["MessageBody"])["eventType"] == "USER_CREATION"

    async def test_client_errors_propagate(self, sqs_settings, sqs_client, record):
        sqs_client.send_message.side_effect = ConnectionError("endpoint unreachable")
        publisher = SQSPublisher(sqs_settings, client=sqs_client)

        with pytest.raises(ConnectionError, match="endpoint unreachable"):
            await publisher.send(record)

    async def test_injected_client_survives_stop(self, sqs_settings, sqs_client):
        publisher = SQSPublisher(sqs_settings, client=sqs_client)

        await publisher.start()
        await publisher.stop()

        assert publisher.is_started

    async def test_start_opens_and_stop_closes_client(self, sqs_settings, sqs_client, record):
        client_cm = MagicMock()
        client_cm.__aenter__ = AsyncMock(return_value=sqs_client)
        client_cm.__aexit__ = AsyncMock(return_value=False)
        session = MagicMock()
        session.client.return_value = client_cm

        with patch("outbox_service.infra.messaging.sqs.aioboto3.Session", return_value=session):
            publisher = SQSPublisher(sqs_settings)
            await publisher.start()
            await publisher.start()

            await publisher.send(record)

            await publisher.stop()

        session.client.assert_called_once_with("sqs", region_name="ap-southeast-1")
        client_cm.__aexit__.assert_awaited_once()
        assert not publisher.is_started
