"""Token counting for raw provider payloads."""

from __future__ import annotations

import functools
import json
import os
from typing import Any

import tiktoken

TOKEN_MODEL_ENV = "SEARCH_EVALS_TOKEN_MODEL"
DEFAULT_TOKEN_MODEL = "gpt-4"


@functools.lru_cache(maxsize=None)
def get_encoder(model: str) -> "tiktoken.Encoding":
    """Return the tiktoken encoding for ``model``."""
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError as e:
        raise ValueError(f"Invalid {TOKEN_MODEL_ENV} {model!r}: {e}") from e


def count_tokens(data: Any, model: str | None = None) -> int:
    """Count tokens in a string, or in the JSON rendering of any other value.

    Special-token text such as ``<|endoftext|>`` in a payload is counted as
    ordinary text.
    """
    model = model or os.environ.get(TOKEN_MODEL_ENV, DEFAULT_TOKEN_MODEL)
    text = data if isinstance(data, str) else json.dumps(data, default=str)
    return len(get_encoder(model).encode(text, disallowed_special=()))
