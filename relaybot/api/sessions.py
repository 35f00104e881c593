"""Conversation REST API endpoints (history, stats and preferences)."""
from fastapi import APIRouter, Depends

from relaybot.services.sessions import ConversationStore

router = APIRouter(prefix="/conversations", tags=["conversations"])


def get_conversation_store() -> ConversationStore:
    return ConversationStore()


@router.get("/{conversation_id}/stats")
async def get_conversation_stats(
    conversation_id: str, store: ConversationStore = Depends(get_conversation_store)
) -> dict:
    """Get message count and token estimate for a conversation."""
    stats = await store.get_stats(conversation_id)
    return stats.model_dump()


@router.delete("/{conversation_id}")
async def clear_conversation(
    conversation_id: str, store: ConversationStore = Depends(get_conversation_store)
) -> dict:
    """Clear the history of a conversation. Preferences are kept."""
    deleted = await store.clear_history(conversation_id)
    return {"status": "cleared", "conversation_id": conversation_id, "deleted": deleted}


@router.get("/{conversation_id}/messages")
async def get_messages(
    conversation_id: str, store: ConversationStore = Depends(get_conversation_store)
) -> dict:
    """Get the persisted turns of a conversation."""
    messages = await store.get_history(conversation_id)
    return {"conversation_id": conversation_id, "messages": messages, "count": len(messages)}


@router.get("/{conversation_id}/preferences")
async def get_preferences(
    conversation_id: str, store: ConversationStore = Depends(get_conversation_store)
) -> dict:
    """Get the voice preference record of a conversation."""
    prefs = await store.get_preferences(conversation_id)
    return {"conversation_id": conversation_id, **prefs.model_dump()}
