"""Tests for the gateway registry and provider gateways."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from searchevals.errors import NotFoundError
from searchevals.gateways import GatewayRegistry, default_registry
from searchevals.gateways.gemini import GeminiSearchGateway
from searchevals.gateways.parallel import ParallelGateway
from searchevals.gateways.perplexity import PerplexityGateway
from searchevals.gateways.tavily import TavilyGateway
from searchevals.gateways.you import YouGateway


def _mock_client(body=None, method="post", exc=None):
    resp = MagicMock()
    resp.json.return_value = body or {}
    resp.raise_for_status = MagicMock()
    client = AsyncMock()
    call = getattr(client, method)
    if exc is not None:
        call.side_effect = exc
    else:
        call.return_value = resp
    return client


def _gateway(cls, client, **kw):
    return cls(api_key="test-key", client_factory=lambda: client, token_counter=lambda d: 42, **kw)


class TestRegistry:
    def test_resolve(self):
        gw = TavilyGateway()
        assert GatewayRegistry({"tavily": gw}).resolve("tavily") is gw

    def test_unknown_name_lists_available(self):
        reg = GatewayRegistry({"tavily": TavilyGateway(), "you": YouGateway()})
        with pytest.raises(NotFoundError) as exc_info:
            reg.resolve("bing")
        msg = str(exc_info.value)
        assert "'bing'" in msg
        assert "tavily, you" in msg

    def test_not_found_is_lookup_error(self):
        with pytest.raises(LookupError):
            GatewayRegistry({}).resolve("x")

    def test_default_registry_names(self):
        assert default_registry().names() == ["gemini", "parallel", "perplexity", "tavily", "you"]

    def test_required_env(self):
        reg = default_registry()
        assert reg.required_env("tavily") == ["TAVILY_API_KEY"]
        assert reg.required_env("unknown") == []

    def test_missing_credentials(self):
        reg = default_registry()
        assert reg.missing_credentials("parallel", {}) == ["PARALLEL_API_KEY"]
        assert reg.missing_credentials("parallel", {"PARALLEL_API_KEY": "x"}) == []
        assert reg.missing_credentials("unknown", {}) == []

    def test_explicit_api_key_satisfies_credentials(self):
        reg = GatewayRegistry({"you": YouGateway(api_key="k")})
        assert reg.missing_credentials("you", {}) == []

    def test_get_schema(self):
        reg = default_registry()
        assert reg.get_schema("tavily") == TavilyGateway.parameters
        assert "search_recency_filter" in reg.get_schema("perplexity")

    def test_get_schema_duck_typed_and_unknown(self):
        reg = GatewayRegistry({"fake": object()})
        assert reg.get_schema("fake") == {}
        with pytest.raises(NotFoundError):
            reg.get_schema("bing")

    def test_default_registry_reads_keys_from_environ(self):
        reg = default_registry({"TAVILY_API_KEY": "from-mapping"})
        assert reg.resolve("tavily").api_key == "from-mapping"
        assert reg.missing_credentials("tavily", {}) == []
        assert reg.missing_credentials("parallel", {}) == ["PARALLEL_API_KEY"]

    def test_duck_typed_gateway_has_no_requirements(self):
        reg = GatewayRegistry({"fake": object()})
        assert reg.missing_credentials("fake", {}) == []
        assert reg.validate_parameters("fake", {"x": 1}) == []

    @pytest.mark.asyncio
    async def test_aclose_closes_clients(self):
        client = _mock_client({})
        gw = _gateway(TavilyGateway, client)
        await gw.search("q", {})
        await GatewayRegistry({"tavily": gw}).aclose()
        client.aclose.assert_awaited_once()


class TestParameterSchema:
    def test_valid(self):
        assert TavilyGateway.validate_parameters({"search_depth": "advanced", "include_answer": True}) == []

    def test_unknown_key(self):
        [err] = YouGateway.validate_parameters({"limit": 3})
        assert "unknown parameter 'limit'" in err

    def test_wrong_type(self):
        [err] = ParallelGateway.validate_parameters({"max_results": "2"})
        assert "must be int" in err

    def test_perplexity_recency(self):
        assert PerplexityGateway.validate_parameters({"search_recency_filter": "week"}) == []
        [err] = PerplexityGateway.validate_parameters({"search_recency_filter": "decade"})
        assert "search_recency_filter" in err


class TestSearchGateways:
    @pytest.mark.asyncio
    async def test_tavily_success(self):
        client = _mock_client({"results": [], "request_id": "req-1"})
        resp = await _gateway(TavilyGateway, client).search("q", {"search_depth": "advanced"})
        assert resp.error is None
        assert resp.data == {"results": [], "request_id": "req-1"}
        assert resp.request_id == "req-1"
        assert resp.token_count == 42
        payload = client.post.call_args.kwargs["json"]
        assert payload["query"] == "q"
        assert payload["search_depth"] == "advanced"
        assert payload["max_results"] == 5

    @pytest.mark.asyncio
    async def test_failure_captured_not_raised(self):
        client = _mock_client(exc=httpx.ConnectError("connection refused"))
        resp = await _gateway(TavilyGateway, client).search("q", {})
        assert resp.data is None
        assert resp.token_count == 0
        assert "connection refused" in resp.error

    @pytest.mark.asyncio
    async def test_token_count_failure_keeps_data(self):
        def broken_counter(data):
            raise ValueError("Encountered text corresponding to disallowed special token")

        client = _mock_client({"results": [{"content": "<|endoftext|>"}], "request_id": "req-2"})
        gw = TavilyGateway(api_key="k", client_factory=lambda: client, token_counter=broken_counter)
        resp = await gw.search("q", {})
        assert resp.error is None
        assert resp.data == {"results": [{"content": "<|endoftext|>"}], "request_id": "req-2"}
        assert resp.request_id == "req-2"
        assert resp.token_count == 0

    @pytest.mark.asyncio
    async def test_missing_key_captured(self, monkeypatch):
        monkeypatch.delenv("TAVILY_API_KEY", raising=False)
        resp = await TavilyGateway().search("q", {})
        assert "TAVILY_API_KEY" in resp.error

    @pytest.mark.asyncio
    async def test_client_built_once(self):
        client = _mock_client({})
        factory = MagicMock(return_value=client)
        gw = TavilyGateway(api_key="k", client_factory=factory, token_counter=len)
        await gw.search("a", {})
        await gw.search("b", {})
        assert factory.call_count == 1

    @pytest.mark.asyncio
    async def test_parallel_payload(self):
        client = _mock_client({"search_id": "s-1", "results": []})
        resp = await _gateway(ParallelGateway, client).search("q", {"max_results": 5})
        payload = client.post.call_args.kwargs["json"]
        assert payload["search_queries"] == ["q"]
        assert payload["max_results"] == 5
        assert payload["excerpts"] == {"max_chars_per_result": 4000}
        assert resp.request_id == "s-1"

    @pytest.mark.asyncio
    async def test_you_query_params(self):
        client = _mock_client({"metadata": {"search_uuid": "u-1"}}, method="get")
        resp = await _gateway(YouGateway, client).search("q", {"count": 5, "freshness": "week"})
        params = client.get.call_args.kwargs["params"]
        assert params == {"query": "q", "count": 5, "freshness": "week"}
        assert resp.request_id == "u-1"

    @pytest.mark.asyncio
    async def test_perplexity_optional_fields(self):
        client = _mock_client({"id": "p-1", "results": []})
        resp = await _gateway(PerplexityGateway, client).search("q", {"country": "US"})
        payload = client.post.call_args.kwargs["json"]
        assert payload == {"query": "q", "max_results": 5, "country": "US"}
        assert resp.request_id == "p-1"

    @pytest.mark.asyncio
    async def test_gemini_extracts_text_and_grounding(self):
        body = {
            "responseId": "g-1",
            "candidates": [{
                "content": {"parts": [{"text": "Hello "}, {"text": "world"}]},
                "groundingMetadata": {"webSearchQueries": ["q"]},
            }],
        }
        client = _mock_client(body)
        resp = await _gateway(GeminiSearchGateway, client).search("q", {"model": "gemini-x"})
        assert client.post.call_args.args[0] == "/v1beta/models/gemini-x:generateContent"
        assert resp.data["text"] == "Hello world"
        assert resp.data["grounding_metadata"] == {"webSearchQueries": ["q"]}
        assert resp.request_id == "g-1"

    @pytest.mark.asyncio
    async def test_http_status_error_captured(self):
        resp_obj = MagicMock()
        resp_obj.raise_for_status.side_effect = httpx.HTTPStatusError(
            "429 Too Many Requests", request=MagicMock(), response=MagicMock()
        )
        client = AsyncMock()
        client.post.return_value = resp_obj
        resp = await _gateway(TavilyGateway, client).search("q", {})
        assert "429" in resp.error
