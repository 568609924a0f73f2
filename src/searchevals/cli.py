"""CLI entry point for search-evals."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click
import httpx
from dotenv import load_dotenv
from pydantic import ValidationError

from searchevals import __version__
from searchevals.config import Settings
from searchevals.errors import GradingError, NotFoundError
from searchevals.gateways import GatewayRegistry, default_registry
from searchevals.grading import LLMGrader, ParseOutcome
from searchevals.loader import LoadError, load_configs
from searchevals.progress import ProgressReporter
from searchevals.runner import run_all, summarize
from searchevals.store import ResultStore


def build_registry() -> GatewayRegistry:
    return default_registry()


@click.group()
@click.version_option(version=__version__, prog_name="searchevals")
@click.option("--log-level", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Logging level for diagnostics on stderr.")
@click.pass_context
def cli(ctx: click.Context, log_level: str) -> None:
    """search-evals — measure how search provider APIs answer a fixed query set."""
    load_dotenv(override=False)
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    try:
        ctx.obj = Settings()
    except ValidationError as e:
        click.echo(f"Error: invalid environment settings:\n{e}", err=True)
        sys.exit(1)


async def _run_and_close(registry: GatewayRegistry, coro):
    try:
        return await coro
    finally:
        await registry.aclose()


@cli.command()
@click.option("--configs", "configs_path", default=None, help="YAML file of search configs.")
@click.option("--queries-dir", default=None, help="Directory holding the query sources.")
@click.option("--results-dir", default=None, help="Directory run artifacts are written to.")
@click.option("--evals-dir", default=None, help="Directory grading output is written to.")
@click.option("--with-eval", is_flag=True, help="Grade the run with the LLM after it completes.")
@click.option("--parallel", default=None, type=int, help="Max concurrent provider calls (default 1).")
@click.option("--verbose", "-v", is_flag=True, help="Show every call, not only errors.")
@click.pass_obj
def run(
    settings: Settings,
    configs_path: Optional[str],
    queries_dir: Optional[str],
    results_dir: Optional[str],
    evals_dir: Optional[str],
    with_eval: bool,
    parallel: Optional[int],
    verbose: bool,
) -> None:
    """Run every runnable query against every runnable config."""
    parallel = settings.parallel if parallel is None else parallel
    if parallel < 1:
        click.echo("Error: --parallel must be at least 1.", err=True)
        sys.exit(1)

    registry = build_registry()
    try:
        configs = load_configs(configs_path or settings.configs_path, registry)
    except LoadError as e:
        click.echo(f"Error loading configs: {e}", err=True)
        sys.exit(1)

    missing = sorted({
        key for c in configs for key in registry.missing_credentials(c.gateway, os.environ)
    })
    if missing:
        click.echo(f"Warning: Missing API keys: {', '.join(missing)}", err=True)
        click.echo("Configs requiring missing keys will be skipped. Set them in .env.", err=True)
    if with_eval and not settings.openai_api_key:
        click.echo("Warning: --with-eval specified but OPENAI_API_KEY is not set.", err=True)

    store = ResultStore(results_dir or settings.results_dir, evals_dir or settings.evals_dir)
    progress = ProgressReporter(verbose=verbose)
    try:
        eval_run = asyncio.run(_run_and_close(registry, run_all(
            configs,
            registry=registry,
            queries_dir=queries_dir or settings.queries_dir,
            parallel=parallel,
            on_result=progress.update,
        )))
        path = store.save_run(eval_run)
    except (LoadError, OSError) as e:
        click.echo(f"Fatal error during evaluation: {e}", err=True)
        sys.exit(1)
    finally:
        progress.finish()

    click.echo(f"\nResults saved to: {path}")
    _print_summary(eval_run)

    if with_eval:
        click.echo("\nRunning LLM evaluation...")
        if not _grade(settings, store, path):
            sys.exit(1)

    if eval_run.error_count > 0:
        sys.exit(1)


def _print_summary(run) -> None:
    s = summarize(run)
    click.echo(f"\n{'='*60}")
    click.echo("RUN SUMMARY")
    click.echo(f"{'='*60}")
    click.echo(f"Run ID: {run.id}")
    click.echo(f"Total results: {s['total']}  Successful: {s['successful']}  Errors: {s['errors']}")
    if s["successful"]:
        click.echo(f"Average latency: {s['avg_latency_ms']:.0f}ms  Average tokens: {s['avg_tokens']:.0f}")

    for title, key in (("Results by config:", "by_config"), ("Results by gateway:", "by_gateway")):
        if not s[key]:
            continue
        click.echo(f"\n{title}")
        for name, counts in s[key].items():
            line = f"  {name:<24} {counts['successful']}/{counts['total']} successful"
            if counts["errors"]:
                line += click.style(f"  ({counts['errors']} errors)", fg="red")
            click.echo(line)
    click.echo(f"{'='*60}")


def _grade(settings: Settings, store: ResultStore, artifact: Path) -> bool:
    grader = LLMGrader(
        model=settings.eval_model,
        api_key=settings.openai_api_key,
        api_url=settings.openai_api_url,
        instructions_path=settings.instructions_path,
        store=store,
    )
    try:
        report = asyncio.run(grader.grade(artifact))
    except (GradingError, LoadError, OSError, httpx.HTTPError) as e:
        click.echo(f"Error during evaluation: {e}", err=True)
        return False

    click.echo(f"Evaluation written to: {report.path}")
    if report.outcome is ParseOutcome.VALID and report.records:
        avg = sum(r.score for r in report.records) / len(report.records)
        click.echo(f"Graded {len(report.records)} results, average score {avg:.1f}/10")
    elif report.outcome is not ParseOutcome.VALID:
        click.echo(f"Warning: grading output is {report.outcome.value}; kept raw for inspection.", err=True)
    return True


@cli.command()
@click.argument("artifact", required=False, type=click.Path(dir_okay=False))
@click.option("--results-dir", default=None, help="Directory searched for the latest run.")
@click.option("--evals-dir", default=None, help="Directory grading output is written to.")
@click.pass_obj
def grade(settings: Settings, artifact: Optional[str], results_dir: Optional[str], evals_dir: Optional[str]) -> None:
    """Grade ARTIFACT, or the most recent run if none is given."""
    if not settings.openai_api_key:
        click.echo("Error: OPENAI_API_KEY is not set in environment.", err=True)
        click.echo("Set it in .env or export it before running.", err=True)
        sys.exit(1)

    store = ResultStore(results_dir or settings.results_dir, evals_dir or settings.evals_dir)
    if artifact:
        path = Path(artifact).resolve()
    else:
        try:
            path = store.find_latest()
        except NotFoundError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    click.echo(f"Evaluating: {path}")
    if not _grade(settings, store, path):
        sys.exit(1)


@cli.command("list")
@click.option("--results-dir", default=None, help="Directory holding run artifacts.")
@click.option("--evals-dir", default=None, help="Directory holding grading output.")
@click.option("--limit", default=20, show_default=True, help="Max number of runs to show.")
@click.pass_obj
def list_runs(settings: Settings, results_dir: Optional[str], evals_dir: Optional[str], limit: int) -> None:
    """List stored runs, newest first."""
    if limit <= 0:
        click.echo("Error: --limit must be positive.", err=True)
        sys.exit(1)

    store = ResultStore(results_dir or settings.results_dir, evals_dir or settings.evals_dir)
    paths = list(reversed(store.list_runs()))[:limit]
    if not paths:
        click.echo("No runs found.")
        return

    click.echo(f"\n{'Run ID':<28} {'Results':<9} {'Errors':<8} {'Graded'}")
    click.echo("-" * 56)
    for p in paths:
        try:
            r = store.load_run(p)
        except (OSError, ValueError, KeyError) as e:
            click.echo(f"{p.stem:<28} unreadable: {e}")
            continue
        graded = "yes" if store.eval_path_for(p).exists() else "no"
        click.echo(f"{r.id:<28} {len(r.results):<9} {r.error_count:<8} {graded}")
    click.echo()


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Emit JSON instead of a table.")
def gateways(as_json: bool) -> None:
    """List registered gateways and whether their credentials are set."""
    registry = build_registry()
    rows = []
    for name in registry.names():
        keys = registry.required_env(name)
        missing = registry.missing_credentials(name, os.environ)
        rows.append({"gateway": name, "env": keys, "ready": not missing})

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return
    for row in rows:
        status = click.style("ready", fg="green") if row["ready"] else click.style("missing key", fg="red")
        click.echo(f"  {row['gateway']:<12} {', '.join(row['env']) or '-':<22} {status}")
