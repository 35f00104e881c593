"""
Router: entry point for every inbound chat message.

Routes messages to:
- the preference state machine for commands and pending voice choices
- the reasoning loop for everything else, followed by an optional voice reply
"""

import logging

from relaybot.exceptions import ConfigurationError, ProviderError
from relaybot.gateway.loop import ReasoningLoop
from relaybot.gateway.preferences import PreferenceStateMachine
from relaybot.gateway.transport import Transport
from relaybot.logging_config import bind_conversation
from relaybot.models.schemas import InboundMessage
from relaybot.services.sessions import ConversationStore
from relaybot.services.tts import TTSService

logger = logging.getLogger(__name__)

INTERNAL_ERROR_REPLY = "Lo siento, ocurrió un error interno muy grave. Inténtalo de nuevo."
AUDIO_FAILED_REPLY = (
    "No pude enviarte un mensaje de voz, pero puedes leer mi respuesta arriba."
)


class Router:
    """Dispatches inbound messages and keeps any single failure contained."""

    def __init__(
        self,
        preferences: PreferenceStateMachine,
        loop: ReasoningLoop,
        store: ConversationStore,
        transport: Transport,
        tts: TTSService | None = None,
    ):
        self.preferences = preferences
        self.loop = loop
        self.store = store
        self.transport = transport
        self.tts = tts

    async def handle(self, message: InboundMessage) -> None:
        """Handle one inbound message end to end. Never raises."""
        if not message.text.strip():
            return

        conversation_id = message.conversation_id
        with bind_conversation(conversation_id):
            await self._dispatch(conversation_id, message.text)

    async def _dispatch(self, conversation_id: str, text: str) -> None:
        try:
            logger.info(f"Message received: {text[:100]}")

            if await self.preferences.handle(conversation_id, text):
                return

            result = await self.loop.run(conversation_id, text)
            logger.info(
                f"Cycle finished: {result.model_calls} model calls, "
                f"{result.searches} searches, delivered={result.delivered}"
            )
            await self.send_voice_reply(conversation_id, result.reply)

        except Exception:
            logger.exception("Fatal error while processing message")
            try:
                await self.transport.send(conversation_id, INTERNAL_ERROR_REPLY)
            except Exception:
                logger.exception("Failed to send error message")

    async def send_voice_reply(self, conversation_id: str, text: str) -> None:
        """Speak ``text`` with the conversation's voice, if TTS is configured."""
        if self.tts is None or not self.tts.enabled:
            logger.debug("Voice replies disabled: TTS not configured")
            return

        prefs = await self.store.get_preferences(conversation_id)
        try:
            audio = await self.tts.convert(text, prefs.tts_model)
        except (ProviderError, ConfigurationError) as e:
            logger.warning(f"No audio generated for this reply: {e}")
            return
        except Exception:
            logger.exception("Unexpected error while generating audio, reply stays text only")
            return

        try:
            await self.transport.send_audio(
                conversation_id, audio, mime_type="audio/mpeg", voice_note=True
            )
            logger.info("Voice reply sent")
        except Exception as e:
            logger.error(f"Failed to send voice reply: {e}")
            try:
                await self.transport.send(conversation_id, AUDIO_FAILED_REPLY)
            except Exception as notice_error:
                logger.error(f"Failed to send audio failure notice: {notice_error}")
