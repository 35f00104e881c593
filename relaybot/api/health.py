"""Health check endpoints."""
import asyncio

from fastapi import APIRouter

from relaybot.config import settings
from relaybot.db.repository import create_store
from relaybot.exceptions import PersistenceError

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {"status": "ok"}


@router.get("/health/detailed")
async def detailed_health_check() -> dict:
    """Detailed health check including storage status."""
    storage_status = "unknown"

    try:
        store = create_store("usage")
        await asyncio.to_thread(store.get, "__health__")
        storage_status = "ok"
    except (PersistenceError, ValueError) as e:
        storage_status = f"error: {str(e)}"

    return {
        "status": "ok",
        "storage": {"backend": settings.STORAGE_BACKEND, "status": storage_status},
        "search_credentials": len(settings.tavily_api_keys_list),
        "tts_enabled": settings.tts_enabled,
        "llm_model": settings.LLM_MODEL,
        "api_enabled": settings.API_ENABLED,
    }
