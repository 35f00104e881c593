"""Parsing of the model's plain-text action protocol.

The model either answers the user directly or asks for web searches by
replying ``buscar: query one | query two``. :func:`parse_reply` turns the
raw reply into a tagged action so the reasoning loop never has to look at
string prefixes itself.
"""
from dataclasses import dataclass

SEARCH_MARKER = "buscar:"
QUERY_SEPARATOR = "|"


@dataclass(frozen=True)
class Answer:
    """Final answer for the user."""

    text: str


@dataclass(frozen=True)
class SearchRequest:
    """Request to run one or more web searches before answering."""

    queries: tuple[str, ...]
    raw: str


ModelAction = Answer | SearchRequest


def parse_reply(reply: str) -> ModelAction:
    """
    Classify a model reply.

    A reply that starts with the search marker (any case) and names at
    least one non-blank query becomes a :class:`SearchRequest`. Anything
    else, including a marker with no usable query, is an :class:`Answer`
    carrying the reply verbatim.
    """
    if reply.lower().startswith(SEARCH_MARKER):
        remainder = reply[len(SEARCH_MARKER):]
        queries = tuple(
            query.strip() for query in remainder.split(QUERY_SEPARATOR) if query.strip()
        )
        if queries:
            return SearchRequest(queries=queries, raw=reply)
    return Answer(text=reply)
