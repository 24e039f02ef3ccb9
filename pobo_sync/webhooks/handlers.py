"""Webhook HTTP handlers: FastAPI route for inbound Pobo notifications.

Request flow:
1. Read raw body (needed for HMAC verification)
2. Verify X-Webhook-Signature
3. Parse the envelope
4. Return 200 immediately
5. Dispatch to the event handler as a background task, after the response is sent

Security contract:
- Never return error details to the webhook caller
- 401 only for signature failures, 400 only for malformed verified bodies
- Rejected requests log the payload length, never payload fields
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from pobo_sync.context import AppContext
from pobo_sync.exceptions import AuthenticationError, MalformedPayloadError
from pobo_sync.webhooks.dispatcher import WebhookDispatcher, default_dispatcher
from pobo_sync.webhooks.events import WEBHOOK_TIMESTAMP_FORMAT, WebhookReceiver
from pobo_sync.webhooks.verification import SIGNATURE_HEADER

ACK_BODY = {"status": "ok", "message": "Webhook received"}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"status": "error", "message": message}, status_code=status_code)


async def _handle_webhook(
    request: Request,
    receiver: WebhookReceiver,
    dispatcher: WebhookDispatcher,
    logger: logging.Logger,
) -> JSONResponse:
    """Verify, parse, acknowledge; the dispatch runs once the 200 is on the wire."""
    logger.info(
        "Webhook received",
        extra={
            "context": {
                "ip": request.client.host if request.client else "unknown",
                "user_agent": request.headers.get("user-agent", "unknown"),
            }
        },
    )

    body = b""
    try:
        body = await request.body()
        envelope = receiver.receive(body, request.headers.get(SIGNATURE_HEADER))
    except AuthenticationError as e:
        logger.error(
            "Webhook validation failed",
            extra={"context": {"error": str(e), "payload_length": len(body)}},
        )
        return _error(401, "Invalid signature")
    except MalformedPayloadError as e:
        logger.error(
            "Invalid webhook payload",
            extra={"context": {"error": str(e), "payload_length": len(body)}},
        )
        return _error(400, "Invalid payload")
    except Exception:
        logger.exception("Webhook processing failed")
        return _error(500, "Internal server error")

    logger.info(
        "Webhook verified and parsed",
        extra={
            "context": {
                "event": envelope.event_name,
                "eshop_id": envelope.eshop_id,
                "timestamp": envelope.timestamp.strftime(WEBHOOK_TIMESTAMP_FORMAT),
            }
        },
    )
    return JSONResponse(ACK_BODY, status_code=200, background=BackgroundTask(dispatcher.dispatch, envelope))


def register_webhook_routes(
    app: FastAPI,
    receiver: WebhookReceiver,
    dispatcher: WebhookDispatcher,
    *,
    path: str = "/webhook",
    logger: logging.Logger | None = None,
) -> None:
    """Register the webhook endpoint on ``app``."""
    log = logger or logging.getLogger(__name__)

    @app.post(path)
    async def pobo_webhook(request: Request):
        """Receive Pobo webhooks (signature-verified)."""
        return await _handle_webhook(request, receiver, dispatcher, log)

    log.info("Webhook route registered: %s", path)


def create_app(context: AppContext, dispatcher: WebhookDispatcher | None = None) -> FastAPI:
    """Build the webhook FastAPI app.

    Raises:
        ConfigError: no webhook secret configured
    """
    settings = context.settings.require("webhook_secret")
    app = FastAPI(title="Pobo webhook receiver")

    register_webhook_routes(
        app,
        WebhookReceiver(settings.webhook_secret),
        dispatcher or default_dispatcher(context.child_logger("webhooks.dispatcher")),
        logger=context.child_logger("webhooks.handlers"),
    )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
