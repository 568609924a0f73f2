"""Tests for the JSON result store."""

import json

import pytest

from searchevals.errors import NotFoundError
from searchevals.models import QueryResult, RunResult, SearchConfig, SearchQuery, SearchResponse
from searchevals.store import ResultStore


def _make_result(**kw):
    query = SearchQuery(text=kw.pop("query", "Q"), ground_truth=kw.pop("ground_truth", "A"))
    config = SearchConfig(id="tavily-basic", gateway="tavily", parameters={"max_results": 5})
    response = SearchResponse(data={"results": []}, latency_ms=150, token_count=20, error=kw.pop("error", None))
    return QueryResult.build(query, config, "2025-01-30T00:00:00.001Z", response)


def _make_run(run_id="2025-01-30T00-00-00.000Z", results=None):
    return RunResult(id=run_id, executed_at="2025-01-30T00:00:00.000Z",
                     results=results if results is not None else [_make_result()])


@pytest.fixture
def store(tmp_path):
    return ResultStore(tmp_path / "results", tmp_path / "evals")


class TestResultStore:
    def test_save_and_get_run(self, store):
        path = store.save_run(_make_run())
        assert path.name == "2025-01-30T00-00-00.000Z.json"
        loaded = store.get_run("2025-01-30T00-00-00.000Z")
        assert loaded is not None
        assert loaded.results[0].config_id == "tavily-basic"
        assert loaded.results[0].response.latency_ms == 150

    def test_directory_created(self, store):
        assert not store.results_dir.exists()
        store.save_run(_make_run())
        assert store.results_dir.is_dir()

    def test_artifact_layout(self, store):
        path = store.save_run(_make_run(results=[_make_result(error="timeout")]))
        data = json.loads(path.read_text())
        assert set(data) == {"id", "executed_at", "results"}
        [r] = data["results"]
        assert r["has_error"] is True
        assert r["response"]["error"] == "timeout"
        assert r["parameters"] == {"max_results": 5}

    def test_no_temp_files_left(self, store):
        store.save_run(_make_run())
        assert [p.name for p in store.results_dir.iterdir()] == ["2025-01-30T00-00-00.000Z.json"]

    def test_get_run_not_found(self, store):
        assert store.get_run("2000-01-01T00-00-00.000Z") is None

    def test_find_latest(self, store):
        for rid in ("2025-01-09T23-59-59.999Z", "2025-01-10T00-00-00.000Z", "2024-12-31T00-00-00.000Z"):
            store.save_run(_make_run(rid, results=[]))
        assert store.find_latest().name == "2025-01-10T00-00-00.000Z.json"

    def test_find_latest_ignores_unrecognized_files(self, store):
        store.save_run(_make_run("2025-01-10T00-00-00.000Z", results=[]))
        (store.results_dir / "zzz-notes.json").write_text("{}")
        (store.results_dir / "2099-01-01T00-00-00.000Z.txt").write_text("")
        assert store.find_latest().name == "2025-01-10T00-00-00.000Z.json"

    def test_find_latest_empty_dir(self, store):
        store.results_dir.mkdir(parents=True)
        with pytest.raises(NotFoundError):
            store.find_latest()

    def test_find_latest_missing_dir(self, store):
        with pytest.raises(NotFoundError, match="No results files"):
            store.find_latest()

    def test_list_runs_ascending(self, store):
        store.save_run(_make_run("2025-02-01T00-00-00.000Z", results=[]))
        store.save_run(_make_run("2025-01-01T00-00-00.000Z", results=[]))
        assert [p.stem for p in store.list_runs()] == [
            "2025-01-01T00-00-00.000Z", "2025-02-01T00-00-00.000Z",
        ]

    def test_save_evaluation_overwrites(self, store):
        artifact = store.save_run(_make_run())
        first = store.save_evaluation(artifact, "first")
        second = store.save_evaluation(artifact, "second")
        assert first == second
        assert first.parent == store.evals_dir
        assert first.name == artifact.name
        assert second.read_text() == "second"
