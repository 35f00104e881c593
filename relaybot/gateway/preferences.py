"""
Out-of-band chat commands and the voice selection menu.

Per conversation the machine is either NORMAL or AWAITING_MODEL_CHOICE
(persisted in the preference record). While a choice is pending every
message is answered here and never reaches the reasoning loop.
"""

import logging

from relaybot.exceptions import ConfigurationError, ProviderError
from relaybot.gateway.transport import Transport
from relaybot.models.schemas import UserPreferences, VoiceChoice, VoiceModel
from relaybot.services.sessions import ConversationStore
from relaybot.services.tts import TTSService

logger = logging.getLogger(__name__)

CLEAR_COMMANDS = {"/clear"}
VOICE_COMMANDS = {"/modelos", "/voices"}
CANCEL_COMMANDS = {"/cancelar"}
HELP_COMMANDS = {"/start", "/help"}

HISTORY_CLEARED = "Tu historial de conversación ha sido eliminado."
CHOICE_CANCELLED = "Selección de voz cancelada."
NOTHING_TO_CANCEL = "No hay ninguna selección pendiente."
INVALID_CHOICE = (
    "Ups, ese número no es válido. Por favor, elige un número de la lista "
    "o envía /cancelar para salir."
)
VOICE_NOT_CONFIGURED = (
    "El sistema de voz no está configurado en este servidor. "
    "No se pueden obtener modelos de voz."
)
LOOKING_UP_VOICES = "Buscando modelos de voz disponibles, un momento..."
VOICES_UNAVAILABLE = (
    "Lo siento, no pude contactar al servicio de voces en este momento. "
    "Inténtalo de nuevo más tarde."
)
NO_VOICES = "No encontré modelos de voz disponibles en el sistema."
HELP_TEXT = (
    "Hola, soy tu asistente. Escríbeme cualquier pregunta y buscaré en internet "
    "si hace falta.\n\n"
    "Comandos:\n"
    "/clear - Borrar el historial de conversación\n"
    "/modelos o /voices - Elegir la voz de las respuestas de audio\n"
    "/cancelar - Salir de la selección de voz"
)


def format_voice_menu(models: list[VoiceModel]) -> str:
    lines = ["Elige un modelo de voz respondiendo con el número correspondiente:", ""]
    for i, model in enumerate(models, 1):
        lines.append(f"{i}. {model.name}")
        lines.append(f"   {model.description or 'Voz estándar.'}")
    lines.append("")
    lines.append("Envía /cancelar para salir de la selección.")
    return "\n".join(lines)


class PreferenceStateMachine:
    """Handles /clear, /modelos, /cancelar and numbered voice choices."""

    def __init__(self, store: ConversationStore, tts: TTSService, transport: Transport):
        self.store = store
        self.tts = tts
        self.transport = transport

    async def handle(self, conversation_id: str, text: str) -> bool:
        """
        Process ``text`` if it is a command or a pending menu answer.

        Returns:
            True when the message was consumed here, False when it should go
            on to the reasoning loop
        """
        command = text.strip().lower()
        prefs = await self.store.get_preferences(conversation_id)

        if prefs.awaiting_model_choice:
            await self._handle_choice(conversation_id, command, prefs)
            return True

        if command in CLEAR_COMMANDS:
            await self.store.clear_history(conversation_id)
            await self.transport.send(conversation_id, HISTORY_CLEARED)
            return True

        if command in VOICE_COMMANDS:
            await self._offer_voices(conversation_id, prefs)
            return True

        if command in CANCEL_COMMANDS:
            await self.transport.send(conversation_id, NOTHING_TO_CANCEL)
            return True

        if command in HELP_COMMANDS:
            await self.transport.send(conversation_id, HELP_TEXT)
            return True

        return False

    async def _handle_choice(
        self, conversation_id: str, command: str, prefs: UserPreferences
    ) -> None:
        if command in CANCEL_COMMANDS:
            prefs.clear_model_choice()
            await self.store.save_preferences(conversation_id, prefs)
            await self.transport.send(conversation_id, CHOICE_CANCELLED)
            return

        choice = self._resolve_choice(command, prefs.available_models or [])
        if choice is None:
            await self.transport.send(conversation_id, INVALID_CHOICE)
            return

        prefs.tts_model = choice.id
        prefs.clear_model_choice()
        await self.store.save_preferences(conversation_id, prefs)
        await self.transport.send(
            conversation_id, f"¡Perfecto! He configurado tu voz a {choice.name}."
        )
        logger.info(f"Voice model set to {choice.id}")

    @staticmethod
    def _resolve_choice(command: str, choices: list[VoiceChoice]) -> VoiceChoice | None:
        """Map a 1-based menu number to its entry."""
        if not (command.isascii() and command.isdigit()):
            return None
        index = int(command) - 1
        if 0 <= index < len(choices):
            return choices[index]
        return None

    async def _offer_voices(self, conversation_id: str, prefs: UserPreferences) -> None:
        if not self.tts.enabled:
            await self.transport.send(conversation_id, VOICE_NOT_CONFIGURED)
            return

        await self.transport.send(conversation_id, LOOKING_UP_VOICES)
        try:
            models = await self.tts.list_models()
        except (ProviderError, ConfigurationError) as e:
            logger.error(f"Could not list voice models: {e}")
            await self.transport.send(conversation_id, VOICES_UNAVAILABLE)
            return

        if not models:
            await self.transport.send(conversation_id, NO_VOICES)
            return

        prefs.begin_model_choice([VoiceChoice(id=m.id, name=m.name) for m in models])
        await self.store.save_preferences(conversation_id, prefs)
        await self.transport.send(conversation_id, format_voice_menu(models))
