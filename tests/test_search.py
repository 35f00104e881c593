"""Tests for SearchService against a mocked Tavily API."""

import json

import httpx
import pytest

from relaybot.db.repository import MemoryStore
from relaybot.models.schemas import SearchResponse, SearchResult
from relaybot.services.ledger import USAGE_KEY, UsageLedger
from relaybot.tools.search import (
    SEARCH_FAILED,
    SEARCH_UNAVAILABLE,
    QueryOutcome,
    SearchService,
    format_results,
)

BASE_URL = "https://tavily.test"


def tavily_handler(requests: list):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        if body["query"] == "falla":
            return httpx.Response(500, text="upstream exploded")
        return httpx.Response(
            200,
            json={
                "answer": f"respuesta a {body['query']}",
                "results": [
                    {"title": "Fuente", "url": "https://ex.com", "content": "texto"},
                ],
            },
        )

    return handler


@pytest.fixture
def usage_store():
    return MemoryStore()


@pytest.fixture
def requests_seen():
    return []


@pytest.fixture
def service(usage_store, requests_seen):
    ledger = UsageLedger(["key-A", "key-B"], usage_store)
    client = httpx.AsyncClient(transport=httpx.MockTransport(tavily_handler(requests_seen)))
    return SearchService(ledger, http_client=client, base_url=BASE_URL)


class TestSearch:
    @pytest.mark.asyncio
    async def test_one_credential_charged_per_batch(self, service, usage_store, requests_seen):
        await service.search(["uno", "dos", "tres"])

        assert usage_store.get(USAGE_KEY) == {"key-A": 1, "key-B": 0}
        assert {r["api_key"] for r in requests_seen} == {"key-A"}
        assert sorted(r["query"] for r in requests_seen) == ["dos", "tres", "uno"]

    @pytest.mark.asyncio
    async def test_request_shape(self, service, requests_seen):
        await service.search(["uno"])

        assert requests_seen == [
            {
                "api_key": "key-A",
                "query": "uno",
                "search_depth": "advanced",
                "include_answer": True,
                "max_results": 5,
            }
        ]

    @pytest.mark.asyncio
    async def test_results_in_query_order(self, service):
        text = await service.search(["uno", "dos"])

        assert text.startswith("Resultados de las búsquedas múltiples:")
        assert text.index('Búsqueda 1: "uno"') < text.index('Búsqueda 2: "dos"')
        assert "Respuesta directa: respuesta a uno" in text
        assert "1. [Fuente](https://ex.com):" in text

    @pytest.mark.asyncio
    async def test_failed_query_does_not_sink_batch(self, service, usage_store):
        text = await service.search(["falla", "dos"])

        assert "Error en esta búsqueda: upstream exploded" in text
        assert "Respuesta directa: respuesta a dos" in text
        assert usage_store.get(USAGE_KEY)["key-A"] == 1

    @pytest.mark.asyncio
    async def test_rotates_between_batches(self, service, requests_seen):
        await service.search(["uno"])
        await service.search(["dos"])

        assert [r["api_key"] for r in requests_seen] == ["key-A", "key-B"]

    @pytest.mark.asyncio
    async def test_no_credentials(self, requests_seen):
        store = MemoryStore()
        client = httpx.AsyncClient(transport=httpx.MockTransport(tavily_handler(requests_seen)))
        service = SearchService(UsageLedger([], store), http_client=client, base_url=BASE_URL)

        assert await service.search(["uno"]) == SEARCH_UNAVAILABLE
        assert requests_seen == []
        assert store.get(USAGE_KEY) is None

    @pytest.mark.asyncio
    async def test_empty_query_list_rejected(self, service):
        with pytest.raises(ValueError):
            await service.search([])

    @pytest.mark.asyncio
    async def test_network_error_recorded_per_query(self, usage_store):
        def handler(request):
            raise httpx.ConnectError("no route")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        service = SearchService(UsageLedger(["k"], usage_store), http_client=client, base_url=BASE_URL)

        text = await service.search(["uno"])

        assert "Error en esta búsqueda: no route" in text

    @pytest.mark.asyncio
    async def test_unreadable_body(self, usage_store):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        )
        service = SearchService(UsageLedger(["k"], usage_store), http_client=client, base_url=BASE_URL)

        text = await service.search(["uno"])

        assert "Error en esta búsqueda: Respuesta inválida" in text

    @pytest.mark.asyncio
    async def test_unexpected_failure_gives_batch_error(self, service, monkeypatch):
        async def explode(*args):
            raise RuntimeError("bug")

        monkeypatch.setattr(service, "_search_one", explode)

        assert await service.search(["uno"]) == SEARCH_FAILED

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self, service):
        await service.close()
        assert not service._client.is_closed


class TestFormatResults:
    def test_no_sources(self):
        text = format_results([QueryOutcome(query="q", response=SearchResponse(answer=None))])
        assert "Respuesta directa: No disponible" in text
        assert "No se encontraron fuentes." in text

    def test_missing_fields_render_blank(self):
        response = SearchResponse(answer="a", results=[SearchResult()])
        text = format_results([QueryOutcome(query="q", response=response)])
        assert "1. []():" in text
