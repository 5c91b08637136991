"""Liveness endpoint so hosting platforms see a bound port."""

from __future__ import annotations

import logging
import threading

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)

LIVENESS_TEXT = "Invoice automation bot is active and running."


def create_health_app() -> FastAPI:
    """Create the liveness app: fixed text on / and a JSON status on /health."""
    app = FastAPI(title="Invoice Inbox", version="0.1.0")

    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return LIVENESS_TEXT

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def start_health_server(port: int, host: str = "0.0.0.0") -> threading.Thread:
    """Serve the liveness app from a daemon thread and return the thread."""
    config = uvicorn.Config(create_health_app(), host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="health-server", daemon=True)
    thread.start()
    logger.info("Health endpoint listening on port %d", port)
    return thread
