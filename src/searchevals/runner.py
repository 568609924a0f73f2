"""Runner — executes every runnable query against every runnable config."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from searchevals.gateways import GatewayRegistry, describe_error, elapsed_ms
from searchevals.loader import load_queries
from searchevals.models import QueryResult, RunResult, SearchConfig, SearchQuery, SearchResponse
from searchevals.store import ResultStore
from searchevals.validation import validate_queries
from searchevals.validity import filter_runnable, format_timestamp, make_run_id

logger = logging.getLogger(__name__)

ResultCallback = Callable[[int, int, QueryResult], None]


def select_runnable_configs(
    configs: Sequence[SearchConfig],
    registry: GatewayRegistry,
    environ: Mapping[str, str],
) -> List[SearchConfig]:
    """Drop configs whose gateway credentials are missing, once per config."""
    runnable = []
    for config in configs:
        missing = registry.missing_credentials(config.gateway, environ)
        if missing:
            logger.warning("Skipping config %s (missing %s)", config.id, ", ".join(missing))
            continue
        runnable.append(config)
    return runnable


async def execute_query(
    query: SearchQuery, config: SearchConfig, registry: GatewayRegistry
) -> QueryResult:
    """Run one (query, config) pair.

    A gateway that raises, or a gateway name that does not resolve, is
    recorded the same way as an error the gateway returned itself.
    """
    start = time.perf_counter()
    executed_at = format_timestamp(datetime.now(timezone.utc))
    try:
        gateway = registry.resolve(config.gateway)
        response = gateway.search(query.text, config.parameters)
        if asyncio.iscoroutine(response) or asyncio.isfuture(response):
            response = await response
    except Exception as exc:
        response = SearchResponse(
            data=None, latency_ms=elapsed_ms(start), token_count=0,
            error=describe_error(exc),
        )
    return QueryResult.build(query, config, executed_at, response)


async def run_all(
    configs: Sequence[SearchConfig],
    *,
    registry: GatewayRegistry,
    queries: Optional[Sequence[Any]] = None,
    queries_dir: Union[str, Path, None] = None,
    now: Optional[datetime] = None,
    environ: Optional[Mapping[str, str]] = None,
    parallel: int = 1,
    on_result: Optional[ResultCallback] = None,
    store: Optional[ResultStore] = None,
) -> RunResult:
    """Run the query x config matrix and return the run artifact.

    ``queries`` takes raw entries directly; otherwise they are read from
    ``queries_dir``. ``now`` is captured once and decides the validity
    window for every query. At most ``parallel`` calls are in flight;
    the default of 1 keeps calls strictly sequential, which is what keeps
    provider rate limits and ``executed_at`` ordering intact. Results are
    always ordered query-major, config-minor.
    """
    if parallel < 1:
        raise ValueError("parallel must be >= 1")

    now = now or datetime.now(timezone.utc)
    run_id = make_run_id(now)
    environ = os.environ if environ is None else environ
    logger.info("Starting evaluation run: %s", run_id)

    runnable_configs = select_runnable_configs(configs, registry, environ)
    run = RunResult(id=run_id, executed_at=format_timestamp(now))
    if not runnable_configs:
        logger.warning("No runnable configs. Set missing API keys to run evaluations.")
        if store is not None:
            store.save_run(run)
        return run

    if queries is None:
        if queries_dir is None:
            raise ValueError("Either queries or queries_dir is required")
        queries = load_queries(queries_dir)
    logger.info("Loaded %d total queries", len(queries))

    valid_queries = validate_queries(queries)
    runnable_queries = filter_runnable(valid_queries, now)
    skipped = len(valid_queries) - len(runnable_queries)
    if skipped:
        logger.info("Skipped %d queries outside validity window", skipped)

    pairs = [(q, c) for q in runnable_queries for c in runnable_configs]
    total = len(pairs)
    logger.info(
        "Running %d queries x %d configs = %d combinations",
        len(runnable_queries), len(runnable_configs), total,
    )

    gate = asyncio.Semaphore(parallel)
    completed = 0

    async def _dispatch(query: SearchQuery, config: SearchConfig) -> QueryResult:
        nonlocal completed
        async with gate:
            result = await execute_query(query, config, registry)
        completed += 1
        if on_result is not None:
            on_result(completed, total, result)
        return result

    if parallel == 1:
        results = [await _dispatch(q, c) for q, c in pairs]
    else:
        results = list(await asyncio.gather(*(_dispatch(q, c) for q, c in pairs)))

    run.results = results
    if store is not None:
        store.save_run(run)
    return run


def _group_counts(results: Sequence[QueryResult], key: Callable[[QueryResult], str]) -> Dict[str, Dict[str, int]]:
    groups: Dict[str, Dict[str, int]] = {}
    for r in results:
        g = groups.setdefault(key(r), {"total": 0, "successful": 0, "errors": 0})
        g["total"] += 1
        if r.has_error:
            g["errors"] += 1
        else:
            g["successful"] += 1
    return groups


def summarize(run: RunResult) -> Dict[str, Any]:
    """Success/error counts overall, per config and per gateway."""
    results = run.results
    ok = [r for r in results if not r.has_error]
    return {
        "total": len(results),
        "successful": len(ok),
        "errors": len(results) - len(ok),
        "avg_latency_ms": sum(r.response.latency_ms for r in ok) / len(ok) if ok else 0.0,
        "avg_tokens": sum(r.response.token_count for r in ok) / len(ok) if ok else 0.0,
        "by_config": _group_counts(results, lambda r: r.config_id),
        "by_gateway": _group_counts(results, lambda r: r.gateway),
    }
