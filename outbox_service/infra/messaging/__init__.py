"""Queue publishing for outbox records."""

from outbox_service.infra.messaging.sqs import QueuePublisher, SQSPublisher, build_message

__all__ = ["QueuePublisher", "SQSPublisher", "build_message"]
