"""FastAPI application receiving WhatsApp webhooks."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse

from .actor import DEFAULT_SYSTEM_PROMPT
from .config import load_config, redact
from .dispatcher import NOT_A_MESSAGE, Dispatcher
from .llm import ResponseGenerator, create_generator
from .memory import DiskHistoryStore, HistoryStore, InMemoryHistoryStore
from .models import MAX_MESSAGES
from .whatsapp import DeliveryChannel, create_channel

logger = logging.getLogger(__name__)


# -----------------------------
# Utilities
# -----------------------------
def _configure_logging(cfg: Dict[str, Any]) -> None:
    level = str(cfg.get("server", {}).get("log_level", "info")).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO))


def _get_system_prompt(cfg: Dict[str, Any]) -> str:
    sys_prompt = cfg.get("agent", {}).get("system_prompt") or DEFAULT_SYSTEM_PROMPT
    return str(sys_prompt).strip()


def _make_store(cfg: Dict[str, Any]) -> HistoryStore:
    mem_cfg = cfg.get("memory", {})
    backend = str(mem_cfg.get("backend", "disk")).lower()
    if backend == "memory":
        logger.warning("Using in-memory history; conversations are lost on restart")
        return InMemoryHistoryStore()
    if backend != "disk":
        raise ValueError(f"Unknown memory backend: {backend!r}")
    return DiskHistoryStore(mem_cfg.get("data_dir") or "data/conversations")


def verify_subscription(
    mode: Optional[str], token: Optional[str], expected: Optional[str]
) -> bool:
    return mode == "subscribe" and bool(token) and bool(expected) and token == expected


# -----------------------------
# App factory
# -----------------------------
def create_app(
    config_path: Optional[str] = None,
    *,
    generator: Optional[ResponseGenerator] = None,
    channel: Optional[DeliveryChannel] = None,
    store: Optional[HistoryStore] = None,
) -> FastAPI:
    cfg = load_config(config_path)
    _configure_logging(cfg)
    logger.info("Loaded config: %s", redact(cfg))

    dispatcher = Dispatcher(
        store or _make_store(cfg),
        generator or create_generator(cfg),
        channel or create_channel(cfg),
        system_prompt=_get_system_prompt(cfg),
        max_messages=int(cfg.get("memory", {}).get("max_messages", MAX_MESSAGES)),
    )
    verify_token = str(cfg.get("webhook", {}).get("verify_token") or "")
    if not verify_token:
        logger.warning("webhook.verify_token is not set; verification requests will be rejected")

    app = FastAPI(title="WhatsApp Agent", version="0.1.0")
    app.state.dispatcher = dispatcher
    app.state.config = cfg

    @app.get("/")
    def health() -> Dict[str, Any]:
        return {
            "message": "WhatsApp agent is running!",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/webhook")
    def verify(
        mode: Optional[str] = Query(default=None, alias="hub.mode"),
        token: Optional[str] = Query(default=None, alias="hub.verify_token"),
        challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    ):
        if verify_subscription(mode, token, verify_token):
            logger.info("Webhook verified")
            return PlainTextResponse(challenge or "")
        logger.error("Webhook verification failed")
        return JSONResponse({"error": "Verification failed"}, status_code=403)

    @app.post("/webhook")
    async def receive(request: Request):
        try:
            body = await request.json()
        except ValueError as e:
            logger.error("Error reading webhook body: %s", e)
            return JSONResponse({"error": "Failed to process message"}, status_code=500)

        try:
            # Actors block on their own lock and on network calls; keep them off the loop.
            outcome = await run_in_threadpool(dispatcher.dispatch, body)
        except Exception as e:
            logger.exception("Error processing webhook: %s", e)
            return JSONResponse({"error": "Failed to process message"}, status_code=500)

        if not outcome.handled:
            return {"message": outcome.reason or NOT_A_MESSAGE}
        if outcome.success:
            return {"message": "Message processed successfully"}
        error = outcome.result.error if outcome.result else None
        return JSONResponse({"message": "Processing failed", "error": error}, status_code=500)

    return app
