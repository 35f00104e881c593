"""Tests for Settings parsing and derived properties."""

from pathlib import Path

from relaybot.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("STORAGE_BACKEND", raising=False)
    s = Settings(_env_file=None)
    assert s.HISTORY_LIMIT == 20
    assert s.MAX_ATTEMPTS == 3
    assert s.STORAGE_BACKEND == "json"
    assert s.tavily_api_keys_list == []


def test_tavily_keys_split_on_pipe():
    s = Settings(_env_file=None, TAVILY_API_KEYS=" key-a | key-b||key-c ")
    assert s.tavily_api_keys_list == ["key-a", "key-b", "key-c"]


def test_tts_enabled_needs_url_and_token():
    assert not Settings(_env_file=None, TTS_API_BASE_URL="http://tts").tts_enabled
    assert Settings(_env_file=None, TTS_API_BASE_URL="http://tts", TTS_API_TOKEN="t").tts_enabled


def test_data_directories():
    s = Settings(_env_file=None, DATA_DIR="/srv/bot")
    assert s.history_dir == Path("/srv/bot/chat_histories")
    assert s.preferences_dir == Path("/srv/bot/user_preferences")
    assert s.usage_dir == Path("/srv/bot")


def test_env_override(monkeypatch):
    monkeypatch.setenv("MAX_ATTEMPTS", "5")
    assert Settings(_env_file=None).MAX_ATTEMPTS == 5
