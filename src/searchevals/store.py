"""JSON file store for run artifacts and their evaluations."""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import List, Optional

from searchevals.errors import NotFoundError
from searchevals.models import RunResult

# Run ids look like 2025-01-30T00-00-00.000Z
_RUN_FILE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}(\.\d{3})?Z\.json$")


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class ResultStore:
    """Directory-backed store; one JSON file per run, keyed by run id."""

    def __init__(
        self, results_dir: str | Path = "results", evals_dir: str | Path = "evals"
    ) -> None:
        self.results_dir = Path(results_dir)
        self.evals_dir = Path(evals_dir)

    def path_for(self, run_id: str) -> Path:
        return self.results_dir / f"{run_id}.json"

    def save_run(self, run: RunResult) -> Path:
        """Write the run artifact in one atomic step and return its path."""
        path = self.path_for(run.id)
        _write_atomic(path, json.dumps(run.to_dict(), indent=2, default=str))
        return path

    def load_run(self, path: str | Path) -> RunResult:
        with open(path, encoding="utf-8") as f:
            return RunResult.from_dict(json.load(f))

    def get_run(self, run_id: str) -> Optional[RunResult]:
        """Load a run by id, or None if it was never stored."""
        path = self.path_for(run_id)
        if not path.exists():
            return None
        return self.load_run(path)

    def list_runs(self) -> List[Path]:
        """Stored run artifacts in chronological order."""
        if not self.results_dir.is_dir():
            return []
        return sorted(
            p for p in self.results_dir.iterdir()
            if p.is_file() and _RUN_FILE.match(p.name)
        )

    def find_latest(self) -> Path:
        """Return the most recent run artifact.

        Raises:
            NotFoundError: If no run artifact is stored.
        """
        runs = self.list_runs()
        if not runs:
            raise NotFoundError(f"No results files found in {self.results_dir}/")
        return runs[-1]

    def eval_path_for(self, artifact_path: str | Path) -> Path:
        return self.evals_dir / Path(artifact_path).name

    def save_evaluation(self, artifact_path: str | Path, text: str) -> Path:
        """Persist grading output under the artifact's file name, replacing any earlier one."""
        path = self.eval_path_for(artifact_path)
        _write_atomic(path, text)
        return path
