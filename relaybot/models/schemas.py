"""Pydantic schemas for data validation."""
from typing import Literal

from pydantic import BaseModel

AWAITING_MODEL_CHOICE = "awaiting_model_choice"


class Message(BaseModel):
    """Chat message schema."""

    role: Literal["system", "user", "assistant"]
    content: str


class VoiceChoice(BaseModel):
    """One entry of the numbered voice list shown to the user."""

    id: str
    name: str


class VoiceModel(BaseModel):
    """Voice model as returned by the TTS provider."""

    id: str
    name: str
    description: str | None = None


class UserPreferences(BaseModel):
    """Per-conversation preference record.

    ``available_models`` is set exactly when ``state`` is
    ``awaiting_model_choice``; use :meth:`begin_model_choice` and
    :meth:`clear_model_choice` to move between the two states.
    """

    tts_model: str | None = None
    state: Literal["awaiting_model_choice"] | None = None
    available_models: list[VoiceChoice] | None = None

    @property
    def awaiting_model_choice(self) -> bool:
        return self.state == AWAITING_MODEL_CHOICE

    def begin_model_choice(self, choices: list[VoiceChoice]) -> None:
        if not choices:
            raise ValueError("Cannot await a choice from an empty list")
        self.state = AWAITING_MODEL_CHOICE
        self.available_models = list(choices)

    def clear_model_choice(self) -> None:
        self.state = None
        self.available_models = None

    def to_record(self) -> dict:
        """Serialize without unset fields, matching the on-disk layout."""
        return self.model_dump(exclude_none=True)


class InboundMessage(BaseModel):
    """Text message delivered by the transport."""

    conversation_id: str
    text: str


class ConversationStats(BaseModel):
    """Conversation statistics."""

    conversation_id: str
    message_count: int
    token_count: int


class SearchResult(BaseModel):
    """One source returned by the search provider."""

    title: str | None = None
    url: str | None = None
    content: str | None = None


class SearchResponse(BaseModel):
    """Search provider payload for a single query."""

    answer: str | None = None
    results: list[SearchResult] | None = None
