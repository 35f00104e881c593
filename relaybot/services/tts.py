"""Text-to-speech API client."""
import logging

import httpx

from relaybot.config import settings
from relaybot.exceptions import ConfigurationError, ProviderError
from relaybot.models.schemas import VoiceModel

logger = logging.getLogger(__name__)

MAX_TTS_LENGTH = 100_000


def truncate_for_tts(text: str, max_length: int = MAX_TTS_LENGTH) -> str:
    """Cut overly long text and mark the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    logger.warning(
        f"Text too long for TTS ({len(text)} characters), truncating to {max_length}"
    )
    return text[:max_length] + "..."


class TTSService:
    """Asynchronous client for the voice synthesis server."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        default_model: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.TTS_API_BASE_URL).rstrip("/")
        self.token = token if token is not None else settings.TTS_API_TOKEN
        self.default_model = default_model or settings.TTS_MODEL
        self.timeout = timeout or settings.TTS_TIMEOUT
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.token)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}

    def _require_enabled(self) -> None:
        if not self.enabled:
            raise ConfigurationError("TTS_API_BASE_URL or TTS_API_TOKEN not set")

    async def list_models(self) -> list[VoiceModel]:
        """
        Fetch the voices offered by the server.

        Returns an empty list when the server answers without success.

        Raises:
            ConfigurationError: TTS is not configured
            ProviderError: the server could not be reached or answered badly
        """
        self._require_enabled()
        url = f"{self.base_url}/models"
        logger.info(f"Requesting voice models from {url}")

        try:
            client = await self._get_client()
            response = await client.get(url, headers=self._headers(), timeout=30.0)
            response.raise_for_status()
            data = response.json()
            if not data.get("success"):
                return []
            return [VoiceModel.model_validate(model) for model in data.get("models") or []]

        except httpx.HTTPStatusError as e:
            logger.error(f"Voice model listing failed: HTTP {e.response.status_code}")
            raise ProviderError("Voice model listing failed", e.response.status_code) from e
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error(f"Voice model listing failed: {e}")
            raise ProviderError(f"Voice model listing failed: {e}") from e

    async def convert(self, text: str, model: str | None = None) -> bytes:
        """
        Synthesize speech for ``text``.

        Args:
            text: Text to speak (truncated past MAX_TTS_LENGTH characters)
            model: Voice model id; defaults to the configured voice

        Returns:
            Encoded audio bytes (MPEG)
        """
        self._require_enabled()
        model_id = model or self.default_model
        logger.info(f"Using voice model '{model_id}'")

        try:
            client = await self._get_client()
            response = await client.post(
                f"{self.base_url}/convert",
                headers=self._headers(),
                json={"text": truncate_for_tts(text), "model": model_id},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.content

        except httpx.HTTPStatusError as e:
            logger.error(
                f"TTS conversion failed: HTTP {e.response.status_code} - {e.response.text[:500]}"
            )
            raise ProviderError("TTS conversion failed", e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error(f"TTS conversion failed: {e}")
            raise ProviderError(f"TTS conversion failed: {e}") from e

    async def close(self) -> None:
        """Close HTTP client if owned."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
