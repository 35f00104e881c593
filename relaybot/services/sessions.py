"""Per-conversation history and preference persistence."""
import asyncio
import logging

from pydantic import ValidationError

from relaybot.config import settings
from relaybot.db.repository import KeyValueStore, create_store
from relaybot.exceptions import PersistenceError
from relaybot.models.schemas import ConversationStats, Message, UserPreferences
from relaybot.services.tokens import count_tokens

logger = logging.getLogger(__name__)


class ConversationStore:
    """Durable history (bounded) and preference record for each conversation.

    Read failures degrade to an empty history / default preferences and
    write failures are logged, so storage trouble never aborts a request.
    """

    def __init__(
        self,
        history_store: KeyValueStore | None = None,
        preferences_store: KeyValueStore | None = None,
        history_limit: int | None = None,
    ):
        """Initialize with optional stores (defaults to the configured backend)."""
        self.history_store = history_store or create_store("history")
        self.preferences_store = preferences_store or create_store("preferences")
        self.history_limit = history_limit or settings.HISTORY_LIMIT

    async def get_history(self, conversation_id: str) -> list[dict]:
        """Load persisted turns for a conversation, oldest first."""
        try:
            raw = await asyncio.to_thread(self.history_store.get, conversation_id)
        except PersistenceError as e:
            logger.error(f"Failed to read history for {conversation_id}: {e}")
            return []

        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.error(f"History for {conversation_id} is not a list, ignoring it")
            return []

        history = []
        for entry in raw:
            try:
                history.append(Message.model_validate(entry).model_dump())
            except ValidationError:
                logger.warning(f"Dropping malformed history entry for {conversation_id}")
        return history

    async def set_history(self, conversation_id: str, history: list[dict]) -> None:
        """Replace the history, keeping only the most recent turns."""
        trimmed = history[-self.history_limit:]
        try:
            await asyncio.to_thread(self.history_store.put, conversation_id, trimmed)
        except PersistenceError as e:
            logger.error(f"Failed to save history for {conversation_id}: {e}")

    async def append_exchange(
        self, conversation_id: str, user_text: str, assistant_text: str
    ) -> list[dict]:
        """Record one completed cycle: the user message and the final answer."""
        history = await self.get_history(conversation_id)
        history.append({"role": "user", "content": user_text})
        history.append({"role": "assistant", "content": assistant_text})
        history = history[-self.history_limit:]
        await self.set_history(conversation_id, history)
        logger.info(f"History updated for {conversation_id} ({len(history)} turns)")
        return history

    async def clear_history(self, conversation_id: str) -> bool:
        """Delete the history. Returns True when something was deleted."""
        try:
            deleted = await asyncio.to_thread(self.history_store.delete, conversation_id)
        except PersistenceError as e:
            logger.error(f"Failed to delete history for {conversation_id}: {e}")
            return False
        if deleted:
            logger.info(f"History for {conversation_id} deleted")
        return deleted

    async def get_preferences(self, conversation_id: str) -> UserPreferences:
        """Load the preference record, falling back to defaults."""
        try:
            raw = await asyncio.to_thread(self.preferences_store.get, conversation_id)
        except PersistenceError as e:
            logger.error(f"Failed to read preferences for {conversation_id}: {e}")
            return UserPreferences()

        if raw is None:
            return UserPreferences()

        try:
            prefs = UserPreferences.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Invalid preferences for {conversation_id}, using defaults: {e}")
            return UserPreferences()

        # A half-written menu state is worthless; drop it rather than trap the user
        if prefs.awaiting_model_choice != bool(prefs.available_models):
            logger.warning(f"Inconsistent voice menu state for {conversation_id}, resetting it")
            prefs.clear_model_choice()
        return prefs

    async def save_preferences(self, conversation_id: str, prefs: UserPreferences) -> None:
        try:
            await asyncio.to_thread(
                self.preferences_store.put, conversation_id, prefs.to_record()
            )
        except PersistenceError as e:
            logger.error(f"Failed to save preferences for {conversation_id}: {e}")

    async def get_stats(self, conversation_id: str) -> ConversationStats:
        """Get message count and token estimate of the persisted history."""
        history = await self.get_history(conversation_id)
        return ConversationStats(
            conversation_id=conversation_id,
            message_count=len(history),
            token_count=count_tokens(history) if history else 0,
        )
