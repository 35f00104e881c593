"""Web search using Tavily, with per-invocation credential rotation."""
import asyncio
import logging
from dataclasses import dataclass

import httpx

from relaybot.config import settings
from relaybot.exceptions import NoCredentialsConfigured
from relaybot.models.schemas import SearchResponse
from relaybot.services.ledger import UsageLedger

logger = logging.getLogger(__name__)

SEARCH_UNAVAILABLE = (
    "Error: No se pudo realizar la búsqueda porque el servicio no está configurado."
)
SEARCH_FAILED = "Error: No se pudieron completar las búsquedas."


@dataclass
class QueryOutcome:
    """Result of one query: either a provider response or an error description."""

    query: str
    response: SearchResponse | None = None
    error: str | None = None


def format_results(outcomes: list[QueryOutcome]) -> str:
    """Consolidate per-query outcomes into one text block, in query order."""
    lines = ["Resultados de las búsquedas múltiples:", ""]
    for i, outcome in enumerate(outcomes, 1):
        lines.append(f'--- Búsqueda {i}: "{outcome.query}" ---')
        if outcome.response is None:
            lines.append(f"Error en esta búsqueda: {outcome.error}")
            lines.append("")
            continue

        lines.append(f"Respuesta directa: {outcome.response.answer or 'No disponible'}")
        if outcome.response.results:
            lines.append("Fuentes:")
            for j, result in enumerate(outcome.response.results, 1):
                lines.append(f"{j}. [{result.title or ''}]({result.url or ''}):")
                lines.append(f"   - {result.content or ''}")
        else:
            lines.append("No se encontraron fuentes.")
        lines.append("")

    return "\n".join(lines) + "\n"


class SearchService:
    """Runs a batch of queries in parallel against Tavily.

    One credential is charged per call to :meth:`search`, however many
    queries it carries and however many of them fail.
    """

    def __init__(
        self,
        ledger: UsageLedger,
        http_client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        max_results: int = 5,
    ):
        self.ledger = ledger
        self._client = http_client
        self._owns_client = http_client is None
        self.base_url = (base_url or settings.TAVILY_BASE_URL).rstrip("/")
        self.max_results = max_results

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=60.0)
        return self._client

    async def search(self, queries: list[str]) -> str:
        """
        Search the web for every query and consolidate the answers.

        Args:
            queries: Non-empty list of search queries

        Returns:
            Consolidated results, or a single error string when searching
            is unavailable or the batch as a whole failed
        """
        if not queries:
            raise ValueError("At least one search query is required")

        try:
            api_key = await self.ledger.acquire()
        except NoCredentialsConfigured:
            logger.warning("No Tavily API keys configured, cannot search")
            return SEARCH_UNAVAILABLE

        logger.info(f"Running {len(queries)} web searches: {', '.join(queries)}")

        try:
            client = await self._get_client()
            outcomes = await asyncio.gather(
                *(self._search_one(client, api_key, query) for query in queries)
            )
        except Exception as e:
            logger.exception(f"Search batch failed: {e}")
            return SEARCH_FAILED

        failed = sum(1 for outcome in outcomes if outcome.response is None)
        if failed:
            logger.warning(f"{failed}/{len(outcomes)} searches failed")
        return format_results(list(outcomes))

    async def _search_one(
        self, client: httpx.AsyncClient, api_key: str, query: str
    ) -> QueryOutcome:
        try:
            response = await client.post(
                f"{self.base_url}/search",
                json={
                    "api_key": api_key,
                    "query": query,
                    "search_depth": "advanced",
                    "include_answer": True,
                    "max_results": self.max_results,
                },
            )
            response.raise_for_status()
            return QueryOutcome(
                query=query, response=SearchResponse.model_validate(response.json())
            )

        except httpx.HTTPStatusError as e:
            logger.error(f"Tavily HTTP {e.response.status_code} for '{query}'")
            return QueryOutcome(query=query, error=e.response.text or str(e))
        except httpx.HTTPError as e:
            logger.error(f"Tavily request failed for '{query}': {e}")
            return QueryOutcome(query=query, error=str(e) or type(e).__name__)
        except ValueError as e:
            logger.error(f"Unreadable Tavily response for '{query}': {e}")
            return QueryOutcome(query=query, error="Respuesta inválida del servicio de búsqueda")

    async def close(self) -> None:
        """Close HTTP client if owned."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
