"""Tests for data models."""

from searchevals.models import QueryResult, RunResult, SearchConfig, SearchQuery, SearchResponse


def _config():
    return SearchConfig(id="tavily-basic", gateway="tavily", parameters={"max_results": 5})


class TestQueryResult:
    def test_build_embeds_query_and_config(self):
        q = SearchQuery(text="Q", ground_truth="A", valid_from="2025-01-01T00:00:00Z")
        resp = SearchResponse(data={"x": 1}, latency_ms=10, token_count=3)
        r = QueryResult.build(q, _config(), "2025-01-02T00:00:00.000Z", resp)
        assert r.query == "Q"
        assert r.ground_truth == "A"
        assert r.valid_from == "2025-01-01T00:00:00Z"
        assert r.config_id == "tavily-basic"
        assert r.gateway == "tavily"
        assert r.parameters == {"max_results": 5}
        assert r.has_error is False

    def test_has_error_follows_response_error(self):
        resp = SearchResponse(data=None, latency_ms=0, token_count=0, error="bad")
        r = QueryResult.build(SearchQuery(text="Q"), _config(), "t", resp)
        assert r.has_error is True

    def test_parameters_copied(self):
        config = _config()
        r = QueryResult.build(SearchQuery(text="Q"), config, "t",
                              SearchResponse(data=None, latency_ms=0, token_count=0))
        config.parameters["max_results"] = 99
        assert r.parameters == {"max_results": 5}

    def test_dict_omits_absent_fields(self):
        r = QueryResult.build(SearchQuery(text="Q"), _config(), "t",
                              SearchResponse(data=None, latency_ms=0, token_count=0))
        d = r.to_dict()
        assert "ground_truth" not in d
        assert "valid_until" not in d
        assert "error" not in d["response"]
        assert d["has_error"] is False

    def test_open_ended_survives_serialization(self):
        q = SearchQuery(text="Q", valid_from="2025-01-01T00:00:00Z", open_ended=True)
        r = QueryResult.build(q, _config(), "t", SearchResponse(data=None, latency_ms=0, token_count=0))
        d = r.to_dict()
        assert "valid_until" in d and d["valid_until"] is None
        assert QueryResult.from_dict(d).open_ended is True


class TestRunResult:
    def test_from_dict(self):
        run = RunResult.from_dict({
            "id": "2025-01-30T00-00-00.000Z",
            "executed_at": "2025-01-30T00:00:00.000Z",
            "results": [{
                "query": "Q", "config_id": "c", "gateway": "g", "parameters": {},
                "executed_at": "2025-01-30T00:00:00.001Z",
                "response": {"data": None, "latency_ms": 4, "token_count": 0, "error": "x"},
                "has_error": True,
            }],
        })
        assert run.error_count == 1
        assert run.results[0].response.error == "x"
        assert run.results[0].open_ended is False
