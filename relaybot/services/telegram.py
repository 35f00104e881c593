"""Telegram implementation of the outbound transport."""
import logging

from telegram import Bot, InputFile

logger = logging.getLogger(__name__)

MAX_TELEGRAM_MESSAGE_LENGTH = 4096


def split_message(text: str, max_length: int = MAX_TELEGRAM_MESSAGE_LENGTH) -> list[str]:
    """Split text into chunks Telegram accepts, preferring line boundaries."""
    chunks = []
    while text:
        if len(text) <= max_length:
            chunks.append(text)
            break
        split_at = text.rfind("\n", 0, max_length)
        if split_at <= 0:
            split_at = max_length
        chunks.append(text[:split_at])
        text = text[split_at:].lstrip("\n")
    return chunks or [""]


class TelegramTransport:
    """Sends, edits and voices messages through the Bot API.

    Conversation ids are Telegram chat ids; message handles are message ids.
    """

    def __init__(self, bot: Bot, max_length: int = MAX_TELEGRAM_MESSAGE_LENGTH):
        self.bot = bot
        self.max_length = max_length

    async def send(self, conversation_id: str, text: str) -> int:
        """Send a message (split if too long); returns the first chunk's id."""
        chunks = split_message(text, self.max_length)
        first = await self.bot.send_message(chat_id=conversation_id, text=chunks[0])
        for chunk in chunks[1:]:
            await self.bot.send_message(chat_id=conversation_id, text=chunk)
        return first.message_id

    async def edit(self, conversation_id: str, handle: int, text: str) -> None:
        """Edit a sent message; overflow beyond one message is sent as new ones."""
        chunks = split_message(text, self.max_length)
        await self.bot.edit_message_text(
            chat_id=conversation_id, message_id=handle, text=chunks[0]
        )
        for chunk in chunks[1:]:
            await self.bot.send_message(chat_id=conversation_id, text=chunk)

    async def send_audio(
        self,
        conversation_id: str,
        audio: bytes,
        mime_type: str = "audio/mpeg",
        voice_note: bool = True,
    ) -> None:
        extension = "mp3" if mime_type == "audio/mpeg" else "ogg"
        payload = InputFile(audio, filename=f"reply.{extension}")
        if voice_note:
            await self.bot.send_voice(chat_id=conversation_id, voice=payload)
        else:
            await self.bot.send_audio(chat_id=conversation_id, audio=payload)
        logger.info(f"Audio sent ({len(audio)} bytes, {mime_type})")
