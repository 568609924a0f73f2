"""Grading pass — scores a stored run against ground truth with an LLM."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import httpx

from searchevals.errors import GradingError
from searchevals.loader import LoadError
from searchevals.models import GradeRecord, QueryResult, RunResult
from searchevals.store import ResultStore

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_INSTRUCTIONS = "EVALUATOR_INSTRUCTIONS.md"


class ParseOutcome(Enum):
    VALID = "valid"
    WRONG_SHAPE = "wrong_shape"
    UNPARSABLE = "unparsable"


@dataclass
class GradeReport:
    """Where the grading went and how well the LLM followed the format."""
    path: Path
    outcome: ParseOutcome
    gradable: int
    records: List[GradeRecord] = field(default_factory=list)


def select_gradable(run: RunResult) -> List[QueryResult]:
    """Results that have ground truth and did not error."""
    return [r for r in run.results if r.ground_truth is not None and not r.has_error]


def build_prompt(instructions: str, results: Sequence[QueryResult]) -> str:
    payload = json.dumps([r.to_dict() for r in results], indent=2, default=str)
    return f"{instructions}\n\n## Results to Evaluate\n\n{payload}"


def _to_record(item: Any) -> Optional[GradeRecord]:
    if not isinstance(item, dict):
        return None
    score = item.get("score")
    if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 10:
        return None
    config_id, query, reasoning = item.get("config_id"), item.get("query"), item.get("reasoning")
    if not all(isinstance(v, str) for v in (config_id, query, reasoning)):
        return None
    return GradeRecord(config_id=config_id, query=query, score=score, reasoning=reasoning)


def parse_grades(text: str) -> Tuple[ParseOutcome, List[GradeRecord]]:
    """Best-effort parse of LLM output into grade records.

    Only used to decide how loudly to log; the raw text is persisted
    whatever the outcome.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return ParseOutcome.UNPARSABLE, []
    if not isinstance(data, list):
        return ParseOutcome.WRONG_SHAPE, []

    records = [_to_record(item) for item in data]
    if any(r is None for r in records):
        return ParseOutcome.WRONG_SHAPE, [r for r in records if r is not None]
    return ParseOutcome.VALID, records  # type: ignore[return-value]


@dataclass
class LLMGrader:
    """Send gradable results plus grading instructions to a chat-completions API."""

    model: str = "gpt-4o"
    api_key: str = ""
    api_url: str = DEFAULT_API_URL
    instructions_path: Union[str, Path] = DEFAULT_INSTRUCTIONS
    store: Optional[ResultStore] = None
    timeout: float = 120.0
    max_completion_tokens: int = 8192

    def _read_instructions(self) -> str:
        path = Path(self.instructions_path)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise LoadError(f"Cannot read grading instructions {path}: {e}") from e

    async def _complete(self, prompt: str) -> str:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "max_completion_tokens": self.max_completion_tokens,
                    "messages": [{"role": "user", "content": prompt}],
                },
                timeout=self.timeout,
            )
            resp.raise_for_status()

        try:
            body = resp.json()
            choices = body.get("choices") or [{}]
            content = (choices[0].get("message") or {}).get("content") or ""
        except (ValueError, AttributeError, IndexError, KeyError, TypeError) as e:
            raise GradingError(f"Unexpected chat-completions response from {self.api_url}: {e}") from e
        if not isinstance(content, str):
            raise GradingError(
                f"Unexpected chat-completions response from {self.api_url}: "
                f"content is {type(content).__name__}"
            )
        return content

    async def grade(self, artifact_path: Union[str, Path]) -> GradeReport:
        """Grade one run artifact and persist the LLM's output.

        The output is written under the evals directory with the same file
        name as the artifact, replacing any earlier grading.

        Raises:
            LoadError: If the artifact or the instructions cannot be read.
            httpx.HTTPError: If the LLM request fails.
            GradingError: If no API key is configured, or the LLM response
                is not chat-completions JSON.
        """
        if not self.api_key:
            raise GradingError("OPENAI_API_KEY is not set")

        artifact_path = Path(artifact_path)
        store = self.store or ResultStore()
        try:
            run = store.load_run(artifact_path)
        except (OSError, ValueError, KeyError) as e:
            raise LoadError(f"Cannot read run artifact {artifact_path}: {e}") from e
        instructions = self._read_instructions()

        gradable = select_gradable(run)
        logger.info("Grading %d of %d results from %s", len(gradable), len(run.results), artifact_path.name)
        if gradable:
            logger.info("Using model: %s", self.model)
            output = await self._complete(build_prompt(instructions, gradable))
        else:
            logger.warning("No gradable results in %s; writing an empty evaluation", artifact_path.name)
            output = "[]"

        outcome, records = parse_grades(output)
        if outcome is ParseOutcome.UNPARSABLE:
            logger.warning("LLM output is not valid JSON. Writing raw output.")
        elif outcome is ParseOutcome.WRONG_SHAPE:
            logger.warning(
                "LLM output is JSON but not a list of grade records (%d usable). Writing raw output.",
                len(records),
            )

        path = store.save_evaluation(artifact_path, output)
        logger.info("Evaluation written to: %s", path)
        return GradeReport(path=path, outcome=outcome, gradable=len(gradable), records=records)
