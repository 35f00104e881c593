"""Application configuration using Pydantic settings."""
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Telegram
    TELEGRAM_BOT_TOKEN: str = ""

    # LLM Configuration
    LLM_PROVIDER: str = "openai_compatible"  # openai, anthropic, openai_compatible
    LLM_MODEL: str = "models/gemini-1.5-pro-latest"
    LLM_API_KEY: str = ""
    LLM_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    LLM_TEMPERATURE: float = 0.6

    # Tavily (web search), keys separated by "|"
    TAVILY_API_KEYS: str = ""
    TAVILY_BASE_URL: str = "https://api.tavily.com"

    # Text-to-speech
    TTS_API_BASE_URL: str = ""
    TTS_API_TOKEN: str = ""
    TTS_MODEL: str = "es_MX-laura_v2"
    TTS_TIMEOUT: float = 3600.0

    # Storage
    STORAGE_BACKEND: str = "json"  # json, sqlite, memory
    DATA_DIR: str = "data"
    DB_PATH: str = "relaybot.db"

    # Reasoning loop
    HISTORY_LIMIT: int = 20
    MAX_ATTEMPTS: int = 3

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""
    LOG_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5

    # Optional API
    API_ENABLED: bool = False
    API_PORT: int = 8080

    @property
    def tavily_api_keys_list(self) -> list[str]:
        """Parse search credentials into a list, keeping configured order."""
        if not self.TAVILY_API_KEYS:
            return []
        return [key.strip() for key in self.TAVILY_API_KEYS.split("|") if key.strip()]

    @property
    def tts_enabled(self) -> bool:
        """TTS needs both an endpoint and a token."""
        return bool(self.TTS_API_BASE_URL and self.TTS_API_TOKEN)

    @property
    def history_dir(self) -> Path:
        return Path(self.DATA_DIR) / "chat_histories"

    @property
    def preferences_dir(self) -> Path:
        return Path(self.DATA_DIR) / "user_preferences"

    @property
    def usage_dir(self) -> Path:
        return Path(self.DATA_DIR)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience alias
settings = get_settings()
