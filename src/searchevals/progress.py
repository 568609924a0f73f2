"""Progress reporting for runs — a rich progress bar plus error lines."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from searchevals.models import QueryResult


class ProgressReporter:
    """Tracks (query, config) calls as they complete."""

    def __init__(self, console: Optional[Console] = None, verbose: bool = False) -> None:
        self._console = console or Console(stderr=True)
        self._verbose = verbose
        self._progress: Optional[Progress] = None
        self._task = None

    def start(self, total: int) -> None:
        self._progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=self._console,
        )
        self._task = self._progress.add_task("Searching", total=total)
        self._progress.start()

    def update(self, completed: int, total: int, result: QueryResult) -> None:
        if self._progress is None:
            self.start(total)
        label = escape(f"{result.query[:40]} → {result.config_id}")
        self._progress.update(self._task, completed=completed, description=label)  # type: ignore[union-attr]
        if result.has_error:
            self._progress.console.print(  # type: ignore[union-attr]
                f"[red]✗[/red] [{completed}/{total}] {label}: {escape(str(result.response.error))}"
            )
        elif self._verbose:
            self._progress.console.print(  # type: ignore[union-attr]
                f"[green]✓[/green] [{completed}/{total}] {label}: "
                f"{result.response.latency_ms}ms, {result.response.token_count} tokens"
            )

    def finish(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
