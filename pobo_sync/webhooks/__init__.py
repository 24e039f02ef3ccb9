"""Webhook inbound system.

Receives Pobo change notifications. Each webhook is signature-verified,
parsed into a WebhookEnvelope, acknowledged, and only then dispatched.
"""

from pobo_sync.webhooks.dispatcher import DispatchOutcome, WebhookDispatcher, default_dispatcher
from pobo_sync.webhooks.events import EventKind, WebhookEnvelope, WebhookReceiver, parse_envelope
from pobo_sync.webhooks.handlers import create_app, register_webhook_routes
from pobo_sync.webhooks.verification import VerifiedPayload, verify_signature

__all__ = [
    "DispatchOutcome",
    "EventKind",
    "VerifiedPayload",
    "WebhookDispatcher",
    "WebhookEnvelope",
    "WebhookReceiver",
    "create_app",
    "default_dispatcher",
    "parse_envelope",
    "register_webhook_routes",
    "verify_signature",
]
