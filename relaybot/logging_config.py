"""Centralised logging configuration for the bot process.

Usage:
    from relaybot.logging_config import setup_logging, bind_conversation

    # At process startup:
    setup_logging("Bot")

    # While handling one inbound message (done by the inbound router):
    with bind_conversation("123456789"):
        ...

Plain ``logging.getLogger(__name__).info(...)`` calls need no changes:
the ContextFilter stamps the current conversation id on every record.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Iterator

STREAM_HANDLER_NAME = "_relaybot_stream"
FILE_HANDLER_NAME = "_relaybot_file"

NOISY_LOGGERS = ("httpx", "httpcore", "telegram", "telegram.ext", "apscheduler")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")

# ── Context (set per inbound message) ──────────────────────────────────────

conversation_id_var: ContextVar[str] = ContextVar("conversation_id_var", default="")


@contextmanager
def bind_conversation(conversation_id: str) -> Iterator[None]:
    """Tag every log line emitted inside the block with ``conversation_id``."""
    token = conversation_id_var.set(conversation_id)
    try:
        yield
    finally:
        conversation_id_var.reset(token)


# ── Filter: stamps context onto every LogRecord ────────────────────────────

class ContextFilter(logging.Filter):
    """Injects ``role`` and ``conversation_id`` onto each record."""

    def __init__(self, role: str) -> None:
        super().__init__()
        self.role = role

    def filter(self, record: logging.LogRecord) -> bool:
        record.role = self.role  # type: ignore[attr-defined]
        record.conversation_id = conversation_id_var.get()  # type: ignore[attr-defined]
        return True


# ── Formatter: builds [Role][Chat][LEVEL] prefix ───────────────────────────

class ContextFormatter(logging.Formatter):
    """Produces lines like:

    2026-02-17 14:30:00 [Bot][INFO] relaybot.bot.poller:48 - Starting Telegram bot
    2026-02-17 14:30:01 [Bot][Chat 123456789][INFO] relaybot.gateway.loop:97 - Reasoning attempt 1/3
    """

    @staticmethod
    def _prefix(record: logging.LogRecord) -> str:
        role = getattr(record, "role", "")
        conversation_id = getattr(record, "conversation_id", "")
        tags = [role, f"Chat {conversation_id}" if conversation_id else "", record.levelname]
        return "".join(f"[{tag}]" for tag in tags if tag)

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, self.datefmt)
        lines = [
            f"{timestamp} {self._prefix(record)} {record.name}:{record.lineno} - {record.getMessage()}"
        ]

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            lines.append(record.exc_text)
        if record.stack_info:
            lines.append(record.stack_info)
        return "\n".join(lines)


# ── Setup function ─────────────────────────────────────────────────────────

def _attach(root: logging.Logger, handler: logging.Handler, name: str, role: str) -> None:
    handler.name = name
    handler.addFilter(ContextFilter(role))
    handler.setFormatter(ContextFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)


def setup_logging(role: str) -> None:
    """Configure the root logger for *role* (e.g. ``"Bot"``).

    - Adds a stderr StreamHandler (always).
    - Adds a RotatingFileHandler when ``settings.LOG_FILE`` is set.
    - Quiets the HTTP and Telegram client libraries to WARNING.
    - Routes uvicorn through root so the admin API logs share the format.

    Calling it again is a no-op.
    """
    from relaybot.config import settings

    root = logging.getLogger()
    if any(h.name == STREAM_HANDLER_NAME for h in root.handlers):
        return

    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    _attach(root, logging.StreamHandler(sys.stderr), STREAM_HANDLER_NAME, role)

    if settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        _attach(root, file_handler, FILE_HANDLER_NAME, role)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for name in UVICORN_LOGGERS:
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True


def mask_secret(secret: str) -> str:
    """Render a credential by its last four characters only."""
    return f"...{secret[-4:]}" if secret else "<empty>"
