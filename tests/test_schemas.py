"""Tests for the preference record model."""

import pytest

from relaybot.models.schemas import UserPreferences, VoiceChoice


class TestUserPreferences:
    def test_begin_and_clear(self):
        prefs = UserPreferences(tts_model="m1")
        prefs.begin_model_choice([VoiceChoice(id="m2", name="Pedro")])
        assert prefs.awaiting_model_choice
        assert prefs.to_record()["state"] == "awaiting_model_choice"

        prefs.clear_model_choice()
        assert not prefs.awaiting_model_choice
        assert prefs.to_record() == {"tts_model": "m1"}

    def test_empty_menu_rejected(self):
        with pytest.raises(ValueError):
            UserPreferences().begin_model_choice([])

    def test_default_record_is_empty(self):
        assert UserPreferences().to_record() == {}
