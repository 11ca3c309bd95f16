"""Backend-agnostic outbox record model.

An outbox record is created PENDING inside the business transaction and
moved exactly once to PROCESSED or FAILED by the relay. Both terminal states
are final: nothing in this package moves a record out of them.

Relational rows use snake_case columns; documents keep the camelCase field
names (``eventType``, ``createdAt`` ...) so existing collections stay readable.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class OutboxStatus(StrEnum):
    """Delivery state of an outbox record."""

    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not OutboxStatus.PENDING


@dataclass(frozen=True)
class OutboxRecord:
    """A stored outbox entry as seen by the relay.

    Attributes:
        id: Backend-assigned identifier (integer PK or ObjectId)
        event_type: Caller-supplied event classification
        payload: Caller-supplied event data, opaque to the engine
        result: JSON-compatible output of the business operation
        status: Current delivery state
        created_at: When the record was inserted
        processed_at: When the record was published successfully
        error: Publish failure message
        error_at: When publishing failed
    """

    id: Any
    event_type: str
    payload: Any
    status: OutboxStatus
    created_at: datetime | None = None
    result: Any = None
    processed_at: datetime | None = None
    error: str | None = None
    error_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> OutboxRecord:
        """Build a record from a relational row mapping."""
        return cls(
            id=row["id"],
            event_type=row["event_type"],
            payload=row["payload"],
            result=row.get("result"),
            status=OutboxStatus(row["status"]),
            created_at=row.get("created_at"),
            processed_at=row.get("processed_at"),
            error=row.get("error"),
            error_at=row.get("error_at"),
        )

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> OutboxRecord:
        """Build a record from a MongoDB document."""
        return cls(
            id=document["_id"],
            event_type=document["eventType"],
            payload=document.get("payload"),
            result=document.get("result"),
            status=OutboxStatus(document["status"]),
            created_at=document.get("createdAt"),
            processed_at=document.get("processedAt"),
            error=document.get("error"),
            error_at=document.get("errorAt"),
        )

    def __repr__(self) -> str:
        return (
            f"OutboxRecord("
            f"id={self.id!r}, "
            f"event_type={self.event_type!r}, "
            f"status={self.status.value}"
            f")"
        )


@dataclass
class DrainSummary:
    """Outcome counters of one drain pass.

    ``skipped`` counts records another drain pass finished first.
    """

    processed: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.processed + self.failed + self.skipped


def to_jsonable(value: Any) -> Any:
    """Convert a business-operation result into a JSON-compatible value.

    Handles pydantic models, dataclasses, SQLAlchemy rows, mappings,
    sequences, temporal values and driver result objects that expose
    ``inserted_id``. Anything else is stored as its ``str()``.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(dataclasses.asdict(value))
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if hasattr(value, "_asdict"):
        return to_jsonable(value._asdict())
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (UUID, Decimal)):
        return str(value)

    inserted_id = getattr(value, "inserted_id", None)
    if inserted_id is not None:
        return {"inserted_id": str(inserted_id)}

    return str(value)


__all__ = ["DrainSummary", "OutboxRecord", "OutboxStatus", "to_jsonable"]
