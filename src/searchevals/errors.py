"""Exception types shared across search-evals."""

from __future__ import annotations


class SearchEvalsError(Exception):
    """Base class for search-evals errors."""


class NotFoundError(SearchEvalsError, LookupError):
    """Raised when a named gateway or stored artifact does not exist."""


class GradingError(SearchEvalsError):
    """Raised when the grading pass cannot be started."""
