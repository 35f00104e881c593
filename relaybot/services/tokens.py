"""Token estimates for conversation context logging and stats."""
from functools import lru_cache

import tiktoken

# ~4 tokens per message for role/formatting overhead
MESSAGE_OVERHEAD_TOKENS = 4


@lru_cache
def _get_encoding() -> tiktoken.Encoding:
    # cl100k_base is close enough for the Gemini/OpenAI-style models we talk to
    return tiktoken.get_encoding("cl100k_base")


def count_text_tokens(text: str) -> int:
    """Count tokens in a text string."""
    return len(_get_encoding().encode(text))


def count_tokens(messages: list[dict]) -> int:
    """Estimate the prompt size of a list of chat turns."""
    return sum(
        MESSAGE_OVERHEAD_TOKENS + count_text_tokens(message.get("content", ""))
        for message in messages
    )
