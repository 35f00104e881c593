"""Tests for the LangChain-backed LLM service."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from relaybot.exceptions import ProviderError
from relaybot.services.llm import (
    LLMService,
    _content_to_text,
    _message_to_langchain,
    create_llm,
    strip_thinking_tags,
)


class TestMessageConversion:
    def test_roles(self):
        assert isinstance(_message_to_langchain({"role": "system", "content": "s"}), SystemMessage)
        assert isinstance(_message_to_langchain({"role": "assistant", "content": "a"}), AIMessage)
        assert isinstance(_message_to_langchain({"role": "user", "content": "u"}), HumanMessage)

    def test_content_blocks_flattened(self):
        content = [{"type": "text", "text": "Hola "}, {"type": "image"}, "mundo"]
        assert _content_to_text(content) == "Hola mundo"

    def test_thinking_block_removed(self):
        assert strip_thinking_tags("<think>hmm\nok</think>\nbuscar: clima") == "buscar: clima"


class TestComplete:
    @pytest.mark.asyncio
    async def test_returns_stripped_reply(self):
        service = LLMService(llm=FakeListChatModel(responses=["  buscar: clima  "]))
        reply = await service.complete([{"role": "user", "content": "¿clima?"}])
        assert reply == "buscar: clima"

    @pytest.mark.asyncio
    async def test_sends_all_turns(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(return_value=AIMessage(content="ok"))
        service = LLMService(llm=llm)

        await service.complete(
            [
                {"role": "system", "content": "prompt"},
                {"role": "user", "content": "hola"},
            ]
        )

        sent = llm.ainvoke.call_args[0][0]
        assert [type(m) for m in sent] == [SystemMessage, HumanMessage]

    @pytest.mark.asyncio
    async def test_error_carries_status_code(self):
        error = Exception("rate limited")
        error.status_code = 429
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=error)

        with pytest.raises(ProviderError) as exc:
            await LLMService(llm=llm).complete([{"role": "user", "content": "hola"}])

        assert exc.value.status_code == 429

    @pytest.mark.asyncio
    async def test_error_without_status(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=RuntimeError("down"))

        with pytest.raises(ProviderError) as exc:
            await LLMService(llm=llm).complete([{"role": "user", "content": "hola"}])

        assert exc.value.status_code is None


class TestCreateLLM:
    def test_openai_compatible_uses_base_url(self):
        with patch("relaybot.services.llm.settings") as mock_settings:
            mock_settings.LLM_PROVIDER = "openai_compatible"
            mock_settings.LLM_MODEL = "models/gemini-1.5-pro-latest"
            mock_settings.LLM_TEMPERATURE = 0.6
            mock_settings.LLM_API_KEY = "k"
            mock_settings.LLM_BASE_URL = "https://llm.test/v1/"

            with patch("langchain_openai.ChatOpenAI") as chat_openai:
                create_llm()

        kwargs = chat_openai.call_args.kwargs
        assert kwargs["model"] == "models/gemini-1.5-pro-latest"
        assert kwargs["temperature"] == 0.6
        assert kwargs["base_url"] == "https://llm.test/v1/"

    def test_unknown_provider(self):
        with patch("relaybot.services.llm.settings") as mock_settings:
            mock_settings.LLM_PROVIDER = "carrier-pigeon"
            mock_settings.LLM_MODEL = "m"
            mock_settings.LLM_TEMPERATURE = 0.0
            with pytest.raises(ValueError):
                create_llm()
