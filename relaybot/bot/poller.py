"""Telegram polling setup using python-telegram-bot."""
import logging

from telegram import Bot
from telegram.ext import Application, MessageHandler, filters

from relaybot.bot.handlers import message_handler
from relaybot.config import settings
from relaybot.db.repository import create_store
from relaybot.gateway import PreferenceStateMachine, ReasoningLoop, Router
from relaybot.services.ledger import UsageLedger
from relaybot.services.llm import LLMService
from relaybot.services.sessions import ConversationStore
from relaybot.services.telegram import TelegramTransport
from relaybot.services.tts import TTSService
from relaybot.tools.search import SearchService

logger = logging.getLogger(__name__)


def build_services(bot: Bot) -> dict:
    """Wire the stores, clients and gateway components around one bot."""
    store = ConversationStore()
    ledger = UsageLedger(settings.tavily_api_keys_list, create_store("usage"))
    search = SearchService(ledger)
    tts = TTSService()
    llm = LLMService()
    transport = TelegramTransport(bot)

    loop = ReasoningLoop(llm.complete, search, transport, store)
    preferences = PreferenceStateMachine(store, tts, transport)
    router = Router(preferences, loop, store, transport, tts=tts)

    return {
        "store": store,
        "ledger": ledger,
        "search": search,
        "tts": tts,
        "llm": llm,
        "router": router,
    }


async def on_startup(application: Application) -> None:
    """Initialize on startup."""
    services = build_services(application.bot)
    application.bot_data.update(services)

    await services["ledger"].initialize()

    if not settings.tavily_api_keys_list:
        logger.warning("No Tavily API keys configured, web search is disabled")
    if not services["tts"].enabled:
        logger.warning("TTS not configured, replies will be text only")

    logger.info(
        f"Bot started (model={settings.LLM_MODEL}, storage={settings.STORAGE_BACKEND})"
    )


async def on_shutdown(application: Application) -> None:
    """Cleanup on shutdown."""
    for name in ("search", "tts"):
        service = application.bot_data.pop(name, None)
        if service is not None:
            await service.close()

    logger.info("Bot shutdown complete")


def create_application() -> Application:
    """Create and configure the Telegram application."""
    app = (
        Application.builder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .concurrent_updates(True)
        .build()
    )

    # Commands are plain text here; the gateway owns their semantics
    app.add_handler(MessageHandler(filters.TEXT & filters.ChatType.PRIVATE, message_handler))

    # Lifecycle hooks
    app.post_init = on_startup
    app.post_shutdown = on_shutdown

    return app


def run_polling() -> None:
    """Run the bot with polling."""
    logger.info("Starting Telegram bot with polling...")

    app = create_application()
    app.run_polling(allowed_updates=["message"], drop_pending_updates=True)
