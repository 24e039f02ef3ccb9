"""Webhook event dispatcher: routes verified envelopes to event handlers.

Handlers are called as ``handler(eshop_id, timestamp)`` after the HTTP
response has been sent. Webhooks may be redelivered, so handlers must be
idempotent; the dispatcher does not deduplicate.

Failure contract:
- Unknown events are logged and skipped, never dispatched
- A handler exception is logged with full context and swallowed
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Callable

from pobo_sync.webhooks.events import WEBHOOK_TIMESTAMP_FORMAT, EventKind, WebhookEnvelope

EventHandler = Callable[[int, datetime], None]


class DispatchOutcome(str, Enum):
    COMPLETED = "completed"
    HANDLER_FAILED = "handler_failed"
    IGNORED = "ignored"


class WebhookDispatcher:
    """Registry of one handler per EventKind."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._handlers: dict[EventKind, EventHandler] = {}
        self._logger = logger or logging.getLogger(__name__)

    def register(self, kind: EventKind, handler: EventHandler) -> None:
        if kind is EventKind.UNKNOWN:
            raise ValueError("Handlers cannot be registered for unknown events")
        self._handlers[kind] = handler

    def on(self, kind: EventKind) -> Callable[[EventHandler], EventHandler]:
        """Decorator form of register()."""

        def decorator(fn: EventHandler) -> EventHandler:
            self.register(kind, fn)
            return fn

        return decorator

    def handler_for(self, kind: EventKind) -> EventHandler | None:
        return self._handlers.get(kind)

    def dispatch(self, envelope: WebhookEnvelope) -> DispatchOutcome:
        context = {
            "event": envelope.event_name,
            "eshop_id": envelope.eshop_id,
            "timestamp": envelope.timestamp.strftime(WEBHOOK_TIMESTAMP_FORMAT),
        }

        if envelope.event is EventKind.UNKNOWN:
            self._logger.warning("Unknown webhook event", extra={"context": context})
            return DispatchOutcome.IGNORED

        handler = self._handlers.get(envelope.event)
        if handler is None:
            self._logger.warning("No handler registered for webhook event", extra={"context": context})
            return DispatchOutcome.IGNORED

        try:
            handler(envelope.eshop_id, envelope.timestamp)
        except Exception as e:
            self._logger.exception(
                "Webhook handler failed",
                extra={"context": {**context, "handler": getattr(handler, "__name__", repr(handler)), "error": str(e)}},
            )
            return DispatchOutcome.HANDLER_FAILED

        self._logger.info("Webhook processing completed", extra={"context": context})
        return DispatchOutcome.COMPLETED


def default_dispatcher(logger: logging.Logger | None = None) -> WebhookDispatcher:
    """Dispatcher wired with the stock logging handlers for both known events."""
    dispatcher = WebhookDispatcher(logger)
    log = logger or logging.getLogger(__name__)

    def process_product_update(eshop_id: int, timestamp: datetime) -> None:
        log.info(
            "Processing product update",
            extra={"context": {"eshop_id": eshop_id, "timestamp": timestamp.strftime(WEBHOOK_TIMESTAMP_FORMAT)}},
        )

    def process_category_update(eshop_id: int, timestamp: datetime) -> None:
        log.info(
            "Processing category update",
            extra={"context": {"eshop_id": eshop_id, "timestamp": timestamp.strftime(WEBHOOK_TIMESTAMP_FORMAT)}},
        )

    dispatcher.register(EventKind.PRODUCTS_UPDATE, process_product_update)
    dispatcher.register(EventKind.CATEGORIES_UPDATE, process_category_update)
    return dispatcher
