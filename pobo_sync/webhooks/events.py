"""Webhook event model: parses a verified body into a WebhookEnvelope.

Pobo sends::

    {"event": "Products.update", "eshop_id": 42, "timestamp": "2024-01-15 10:30:00"}

Unrecognized event names are kept (EventKind.UNKNOWN + event_name) rather
than rejected, so new server-side events never turn into 400s.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError, field_validator

from pobo_sync.exceptions import MalformedPayloadError
from pobo_sync.webhooks.verification import VerifiedPayload, verify_signature

WEBHOOK_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class EventKind(str, Enum):
    PRODUCTS_UPDATE = "Products.update"
    CATEGORIES_UPDATE = "Categories.update"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, name: str) -> EventKind:
        """Map an event name to a member; anything unrecognized is UNKNOWN."""
        for member in cls:
            if member is not cls.UNKNOWN and member.value == name:
                return member
        return cls.UNKNOWN


@dataclass(frozen=True)
class WebhookEnvelope:
    """A verified, parsed webhook notification."""

    event: EventKind
    event_name: str
    eshop_id: int
    timestamp: datetime
    raw_payload: bytes


class _WebhookBody(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    event: StrictStr
    eshop_id: StrictInt
    timestamp: datetime

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> datetime:
        if not isinstance(value, str):
            raise ValueError("timestamp must be a string")
        try:
            return datetime.strptime(value, WEBHOOK_TIMESTAMP_FORMAT)
        except ValueError:
            return datetime.fromisoformat(value)


def parse_envelope(verified: VerifiedPayload) -> WebhookEnvelope:
    """Build a WebhookEnvelope from a body that passed signature verification.

    Raises:
        TypeError: ``verified`` did not come from verify_signature
        MalformedPayloadError: body is not JSON, or lacks event/eshop_id/timestamp
    """
    if not isinstance(verified, VerifiedPayload):
        raise TypeError("parse_envelope() requires a VerifiedPayload")

    try:
        body = _WebhookBody.model_validate_json(verified.body)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "body" for err in e.errors()})
        raise MalformedPayloadError(f"Invalid webhook payload: {', '.join(fields)}") from e

    return WebhookEnvelope(
        event=EventKind.parse(body.event),
        event_name=body.event,
        eshop_id=body.eshop_id,
        timestamp=body.timestamp,
        raw_payload=verified.body,
    )


class WebhookReceiver:
    """Verify-then-parse entry point bound to one shared secret."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def verify(self, body: bytes, signature: str | None) -> VerifiedPayload:
        return verify_signature(body, signature, self._secret)

    def receive(self, body: bytes, signature: str | None) -> WebhookEnvelope:
        """Raises AuthenticationError before MalformedPayloadError is ever possible."""
        return parse_envelope(self.verify(body, signature))
