"""Telegram message handler."""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator

from telegram import Update
from telegram.constants import ChatType
from telegram.ext import ContextTypes

from relaybot.gateway import Router
from relaybot.models.schemas import InboundMessage

logger = logging.getLogger(__name__)


class ConversationLocks:
    """One lock per conversation so a chat's messages are handled in order.

    Different conversations never wait on each other.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._holders: dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[None]:
        self._holders[conversation_id] += 1
        try:
            async with self._locks[conversation_id]:
                yield
        finally:
            self._holders[conversation_id] -= 1
            if self._holders[conversation_id] == 0:
                del self._holders[conversation_id]
                self._locks.pop(conversation_id, None)

    def __len__(self) -> int:
        return len(self._locks)


conversation_locks = ConversationLocks()


def to_inbound(update: Update) -> InboundMessage | None:
    """Extract the inbound event from an update, or None when it is not for us."""
    message = update.effective_message
    chat = update.effective_chat
    if message is None or chat is None or not message.text:
        return None
    if chat.type != ChatType.PRIVATE:
        return None
    if update.effective_user is not None and update.effective_user.is_bot:
        return None
    return InboundMessage(conversation_id=str(chat.id), text=message.text)


async def message_handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle incoming text messages, commands included."""
    inbound = to_inbound(update)
    if inbound is None:
        return

    router: Router = context.application.bot_data["router"]

    try:
        await context.bot.send_chat_action(chat_id=inbound.conversation_id, action="typing")
    except Exception as e:
        logger.warning(f"Failed to send typing indicator: {e}")

    async with conversation_locks.hold(inbound.conversation_id):
        await router.handle(inbound)
