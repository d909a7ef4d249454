"""FastAPI webhook gateway.

Handles the platform's subscription handshake and push-delivered messages,
and hands decoded messages to the shared ConversationProcessor.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from core.errors import DedupStoreError, WebhookDecodeError
from core.ports import DedupStorePort
from core.processor import ConversationProcessor
from core.webhook import decode_event, verify_signature, verify_subscription

LOGGER = logging.getLogger(__name__)

HUB_SIGNATURE_HEADER = "X-Hub-Signature-256"


def create_app(
    processor: ConversationProcessor,
    verify_token: str,
    app_secret: Optional[str] = None,
    store: Optional[DedupStorePort] = None,
) -> FastAPI:
    """Create the webhook application around a processor.

    When a store is given it is flushed after every webhook reply, so replies
    survive a crash even when no poll cycle runs.
    """

    app = FastAPI(title="dm-autoresponder webhook")
    app.state.processor = processor

    @app.get("/webhook", response_class=PlainTextResponse)
    async def verify_webhook(request: Request) -> PlainTextResponse:
        params = request.query_params
        challenge = verify_subscription(
            params.get("hub.mode"),
            params.get("hub.verify_token"),
            params.get("hub.challenge"),
            verify_token,
        )
        if challenge is None:
            LOGGER.warning("Webhook verification failed")
            raise HTTPException(status_code=403, detail="Verification failed")

        LOGGER.info("Webhook verified successfully")
        return PlainTextResponse(content=challenge, status_code=200)

    @app.post("/webhook")
    async def webhook_event(request: Request) -> dict:
        body = await request.body()
        if app_secret and not verify_signature(body, request.headers.get(HUB_SIGNATURE_HEADER), app_secret):
            raise HTTPException(status_code=403, detail="Invalid signature")

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            LOGGER.warning("Error decoding webhook payload: %s", exc)
            raise HTTPException(status_code=400, detail="Invalid JSON data")

        LOGGER.debug("Incoming webhook payload: %s", payload)
        try:
            event = decode_event(payload)
        except WebhookDecodeError as exc:
            LOGGER.warning("Unexpected webhook payload: %s", exc)
            raise HTTPException(status_code=400, detail=str(exc))

        if event is None:
            return {"status": "ignored"}

        LOGGER.info("New message from %s", event.sender_id)
        # Send failures are logged by the processor and never surfaced, so the
        # platform does not redeliver the event.
        try:
            replied = await app.state.processor.handle_event(event)
        except Exception:
            LOGGER.exception("Unexpected error replying to %s", event.sender_id)
            replied = False
        if replied and store is not None:
            try:
                await asyncio.to_thread(store.save)
            except DedupStoreError as exc:
                LOGGER.error("Error saving responded users: %s", exc)
        return {"status": "ok"}

    @app.get("/healthz")
    def healthz() -> dict:
        return {"status": "ok"}

    return app


def build_server(app: FastAPI, host: str, port: int) -> uvicorn.Server:
    """Create a uvicorn server that shares the caller's event loop and logging."""

    config = uvicorn.Config(app, host=host, port=port, log_config=None, access_log=False)
    return uvicorn.Server(config)
