"""Structural validation of raw query entries."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from searchevals.models import SearchQuery
from searchevals.validity import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

MAX_LISTED_WARNINGS = 10

_MISSING = object()

# Accepted spellings per field, camelCase first as authored in query files.
_ALIASES = {
    "text": ("query", "text"),
    "ground_truth": ("groundTruth", "ground_truth"),
    "valid_from": ("validFrom", "valid_from"),
    "valid_until": ("validUntil", "valid_until"),
}


def _get(entry: Dict[str, Any], name: str) -> Any:
    for key in _ALIASES[name]:
        if key in entry:
            return entry[key]
    return _MISSING


def _normalize_bound(value: Any) -> Optional[str]:
    if isinstance(value, date):
        return format_timestamp(parse_timestamp(value))
    return value


def _is_timestamp(value: Any) -> bool:
    try:
        parse_timestamp(value)
    except ValueError:
        return False
    return True


def _check(entry: Any, label: str) -> Tuple[Optional[SearchQuery], Optional[str]]:
    """Validate one entry. Returns (query, None) or (None, reason)."""
    if not isinstance(entry, dict):
        return None, f"{label} is not a mapping."

    text = _get(entry, "text")
    if not isinstance(text, str) or not text.strip():
        return None, f'{label} has an invalid or empty "query" field.'

    ground_truth = _get(entry, "ground_truth")
    if ground_truth is not _MISSING and not isinstance(ground_truth, str):
        return None, f'{label} has a non-string "groundTruth".'

    valid_from = _get(entry, "valid_from")
    if valid_from is _MISSING or valid_from == "":
        valid_from = None
    if valid_from is not None and not _is_timestamp(valid_from):
        return None, f'{label} has invalid "validFrom": {valid_from}'

    valid_until = _get(entry, "valid_until")
    open_ended = valid_until is None
    if valid_until is _MISSING:
        valid_until = None
    elif valid_until is not None and not _is_timestamp(valid_until):
        return None, f'{label} has invalid "validUntil": {valid_until}'

    if valid_from is not None and valid_until is not None:
        if parse_timestamp(valid_from) > parse_timestamp(valid_until):
            return None, f"{label} has validFrom after validUntil."

    return SearchQuery(
        text=text,
        ground_truth=None if ground_truth is _MISSING else ground_truth,
        valid_from=_normalize_bound(valid_from),
        valid_until=_normalize_bound(valid_until),
        open_ended=open_ended,
    ), None


def validate_queries(raw: Sequence[Any]) -> List[SearchQuery]:
    """Filter raw entries down to structurally valid queries.

    Rejected entries are dropped and reported in a single aggregated
    warning; a malformed entry never aborts the run.
    """
    valid: List[SearchQuery] = []
    rejections: List[str] = []

    for i, entry in enumerate(raw):
        query, reason = _check(entry, f"Query #{i + 1}")
        if query is None:
            rejections.append(reason or f"Query #{i + 1} is invalid.")
        else:
            valid.append(query)

    if rejections:
        lines = [f"  - {r}" for r in rejections[:MAX_LISTED_WARNINGS]]
        if len(rejections) > MAX_LISTED_WARNINGS:
            lines.append(f"  - ...and {len(rejections) - MAX_LISTED_WARNINGS} more.")
        logger.warning(
            "Skipped %d invalid queries:\n%s", len(rejections), "\n".join(lines)
        )

    return valid
