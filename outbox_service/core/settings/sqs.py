"""AWS SQS settings for the outbox publisher."""

from __future__ import annotations

from typing import Any

from pydantic import Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SQSSettings(BaseSettings):
    """SQS queue and credential settings.

    Environment variables use SQS_ prefix.

    Credentials are optional: when omitted, aioboto3 falls back to the
    default AWS credential chain (env vars, shared config, instance role).
    Set SQS_ENDPOINT_URL to target LocalStack or ElasticMQ.
    """

    queue_url: str | None = Field(
        default=None,
        description="Full URL of the SQS queue receiving outbox events.",
    )
    region: str = Field(
        default="ap-southeast-1",
        min_length=1,
        max_length=50,
        description="AWS region of the queue.",
    )
    access_key_id: str | None = Field(
        default=None,
        description="AWS access key ID (optional).",
    )
    secret_access_key: SecretStr | None = Field(
        default=None,
        description="AWS secret access key (optional).",
    )
    endpoint_url: str | None = Field(
        default=None,
        description="Custom SQS endpoint (LocalStack, ElasticMQ).",
    )

    model_config = SettingsConfigDict(
        env_prefix="SQS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @computed_field  # type: ignore[misc]
    @property
    def is_configured(self) -> bool:
        """Check if a queue URL is available."""
        return bool(self.queue_url)

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``aioboto3.Session().client("sqs", ...)``."""
        kwargs: dict[str, Any] = {"region_name": self.region}
        if self.access_key_id and self.secret_access_key:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key.get_secret_value()
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        return kwargs
