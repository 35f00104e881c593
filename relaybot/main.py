#!/usr/bin/env python3
"""
Relay bot - Entry point.

Runs the Telegram poller in the main thread. With ``API_ENABLED`` the admin
API (health, conversations, search usage) is served from a daemon thread.
"""
import logging
import threading

import uvicorn
from fastapi import FastAPI

from relaybot.api.health import router as health_router
from relaybot.api.sessions import router as sessions_router
from relaybot.api.usage import router as usage_router
from relaybot.bot.poller import run_polling
from relaybot.config import settings
from relaybot.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_api() -> FastAPI:
    """Create the admin API application."""
    app = FastAPI(
        title="Relay Bot Admin API",
        description="Inspect conversations and search credential usage",
        version="1.0.0",
    )
    for router in (health_router, sessions_router, usage_router):
        app.include_router(router)
    return app


def start_api_server() -> threading.Thread:
    """Serve the admin API on ``API_PORT`` from a background thread."""
    app = create_api()
    thread = threading.Thread(
        target=uvicorn.run,
        args=(app,),
        kwargs={"host": "0.0.0.0", "port": settings.API_PORT, "log_level": "info"},
        name="admin-api",
        daemon=True,
    )
    thread.start()
    logger.info(f"API server started on port {settings.API_PORT}")
    return thread


def main() -> None:
    """Main entry point."""
    setup_logging("Bot")
    logger.info(f"Starting relay bot (API enabled: {settings.API_ENABLED})")

    if not settings.TELEGRAM_BOT_TOKEN:
        logger.error("TELEGRAM_BOT_TOKEN is not set, cannot start")
        raise SystemExit(1)

    if settings.API_ENABLED:
        start_api_server()

    # Blocks until the poller is stopped
    run_polling()


if __name__ == "__main__":
    main()
