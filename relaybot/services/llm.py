"""LangChain LLM service used by the reasoning loop."""
import logging
import re

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from relaybot.config import settings
from relaybot.exceptions import ProviderError

logger = logging.getLogger(__name__)

_ROLE_TO_MESSAGE: dict[str, type[BaseMessage]] = {
    "system": SystemMessage,
    "assistant": AIMessage,
    "user": HumanMessage,
}
_THINKING_BLOCK = re.compile(r"<think>.*?</think>", flags=re.DOTALL)


def _message_to_langchain(msg: dict) -> BaseMessage:
    """Convert a stored chat turn to a LangChain message (unknown roles count as user)."""
    message_cls = _ROLE_TO_MESSAGE.get(msg.get("role", "user"), HumanMessage)
    return message_cls(content=msg.get("content", ""))


def _content_to_text(content) -> str:
    """Flatten LangChain message content (string or content blocks) to text."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def strip_thinking_tags(text: str) -> str:
    """Remove <think>...</think> blocks some reasoning models prepend."""
    return _THINKING_BLOCK.sub("", text).strip()


def create_llm(
    model: str | None = None,
    temperature: float | None = None,
    **kwargs,
) -> BaseChatModel:
    """
    Create the chat model for the configured provider.

    ``openai_compatible`` (the default) talks to any OpenAI-style endpoint
    at ``LLM_BASE_URL``, which is how Gemini is reached.

    Args:
        model: Override model name (defaults to settings.LLM_MODEL)
        temperature: Override temperature (defaults to settings.LLM_TEMPERATURE)
        **kwargs: Additional kwargs passed to the LLM constructor
    """
    provider = settings.LLM_PROVIDER.lower()
    options = {
        "model": model or settings.LLM_MODEL,
        "temperature": temperature if temperature is not None else settings.LLM_TEMPERATURE,
        **kwargs,
    }

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(api_key=settings.LLM_API_KEY, **options)

    if provider not in ("openai", "openai_compatible"):
        raise ValueError(f"Unknown LLM provider: {provider}")

    from langchain_openai import ChatOpenAI

    if provider == "openai_compatible":
        # Local servers often take no key, but the client insists on one
        options["api_key"] = settings.LLM_API_KEY or "not-needed"
        options["base_url"] = settings.LLM_BASE_URL
    else:
        options["api_key"] = settings.LLM_API_KEY
    return ChatOpenAI(**options)


class LLMService:
    """Async LLM service wrapping LangChain for the bot's event loop."""

    def __init__(self, llm: BaseChatModel | None = None):
        self.llm = llm or create_llm()

    async def complete(self, messages: list[dict]) -> str:
        """
        Send the conversation and return the model's reply text.

        Raises:
            ProviderError: the model call failed (``status_code`` is set when
                the provider reported one, e.g. 429 under rate limiting)
        """
        lc_messages = [_message_to_langchain(m) for m in messages]
        try:
            response = await self.llm.ainvoke(lc_messages)
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            logger.error(f"LLM call failed (status={status_code}): {e}")
            raise ProviderError(f"LLM call failed: {e}", status_code) from e

        reply = strip_thinking_tags(_content_to_text(response.content))
        logger.info(f"LLM reply/action: {reply[:200]}")
        return reply
