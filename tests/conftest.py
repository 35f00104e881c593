"""Root conftest: shared fixtures and fakes for relaybot tests."""

from __future__ import annotations

import os

# Keep tests off the filesystem and away from real credentials
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["TAVILY_API_KEYS"] = ""
os.environ["TTS_API_BASE_URL"] = ""
os.environ["TTS_API_TOKEN"] = ""

import pytest

from relaybot.db.repository import MemoryStore
from relaybot.models.schemas import VoiceModel
from relaybot.services.sessions import ConversationStore


class FakeTransport:
    """Records everything sent; handles are increasing integers."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.edits: list[tuple[str, int, str]] = []
        self.audio: list[tuple[str, bytes, str, bool]] = []
        self.fail_sends = 0
        self.fail_edits = 0
        self.fail_audio = False
        self._next_handle = 100

    async def send(self, conversation_id: str, text: str) -> int:
        if self.fail_sends:
            self.fail_sends -= 1
            raise RuntimeError("send failed")
        self.sent.append((conversation_id, text))
        self._next_handle += 1
        return self._next_handle

    async def edit(self, conversation_id: str, handle: int, text: str) -> None:
        if self.fail_edits:
            self.fail_edits -= 1
            raise RuntimeError("edit failed")
        self.edits.append((conversation_id, handle, text))

    async def send_audio(self, conversation_id, audio, mime_type="audio/mpeg", voice_note=True):
        if self.fail_audio:
            raise RuntimeError("audio failed")
        self.audio.append((conversation_id, audio, mime_type, voice_note))

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.sent]


class ScriptedModel:
    """Returns scripted replies in order; exceptions in the script are raised."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.contexts: list[list[dict]] = []

    async def __call__(self, messages: list[dict]) -> str:
        self.contexts.append([dict(m) for m in messages])
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def calls(self) -> int:
        return len(self.contexts)


class FakeSearcher:
    def __init__(self, result: str = "RESULTS"):
        self.result = result
        self.batches: list[list[str]] = []

    async def search(self, queries: list[str]) -> str:
        self.batches.append(list(queries))
        return self.result


class FakeTTS:
    def __init__(self, enabled=True, models=None, list_error=None, convert_error=None):
        self.enabled = enabled
        self.models = models if models is not None else [
            VoiceModel(id="m1", name="Laura", description="Voz femenina"),
            VoiceModel(id="m2", name="Pedro"),
            VoiceModel(id="m3", name="Ana", description="Voz suave"),
        ]
        self.list_error = list_error
        self.convert_error = convert_error
        self.conversions: list[tuple[str, str | None]] = []

    async def list_models(self):
        if self.list_error:
            raise self.list_error
        return list(self.models)

    async def convert(self, text, model=None):
        if self.convert_error:
            raise self.convert_error
        self.conversions.append((text, model))
        return b"audio-bytes"


@pytest.fixture
def history_store():
    return MemoryStore()


@pytest.fixture
def preferences_store():
    return MemoryStore()


@pytest.fixture
def store(history_store, preferences_store):
    return ConversationStore(history_store, preferences_store, history_limit=20)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def searcher():
    return FakeSearcher()


@pytest.fixture
def tts():
    return FakeTTS()


@pytest.fixture
def scripted():
    """Factory for a model that replies from a script."""
    return ScriptedModel


@pytest.fixture
def make_tts():
    return FakeTTS
