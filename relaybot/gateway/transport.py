"""Outbound contract between the gateway and the messaging transport."""
from typing import Hashable, Protocol

MessageHandle = Hashable


class Transport(Protocol):
    """What the gateway needs from the session driver to talk back to a chat."""

    async def send(self, conversation_id: str, text: str) -> MessageHandle:
        """Send a new text message and return a handle usable with :meth:`edit`."""
        ...

    async def edit(self, conversation_id: str, handle: MessageHandle, text: str) -> None:
        """Replace the text of a previously sent message."""
        ...

    async def send_audio(
        self,
        conversation_id: str,
        audio: bytes,
        mime_type: str = "audio/mpeg",
        voice_note: bool = True,
    ) -> None:
        """Send an audio clip, as a voice note by default."""
        ...
