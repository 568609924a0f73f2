"""Loaders for query sources and the YAML configuration set."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml

from searchevals.gateways import GatewayRegistry
from searchevals.models import SearchConfig

logger = logging.getLogger(__name__)

QUERY_SOURCES = ("queries-static.json", "queries-temporal.json")


class LoadError(Exception):
    """Raised when a query source or config file cannot be loaded."""


def _read_query_source(path: Path) -> List[Any]:
    if not path.exists():
        raise LoadError(f"Query source not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise LoadError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise LoadError(f"Cannot read {path}: {e}") from e

    if not isinstance(data, list):
        raise LoadError(f"Query source {path} must contain a JSON array, got {type(data).__name__}")
    return data


def load_queries(queries_dir: Union[str, Path]) -> List[Any]:
    """Load the static and temporal query sources and concatenate them.

    Entries are returned raw; structural checks happen in
    ``searchevals.validation``.

    Raises:
        LoadError: If a source is missing, unreadable or not a JSON array.
    """
    directory = Path(queries_dir)
    queries: List[Any] = []
    for name in QUERY_SOURCES:
        queries.extend(_read_query_source(directory / name))
    return queries


def load_configs(
    path: Union[str, Path], registry: Optional[GatewayRegistry] = None
) -> List[SearchConfig]:
    """Load search configurations from a YAML file.

    The file holds either a list of configs or a mapping with a
    ``configs`` list. Each config needs ``id`` and ``gateway``; its
    ``parameters`` are checked against the gateway's schema when the
    gateway is registered. Unknown gateways are left for the runner to
    report per call.

    Raises:
        LoadError: If the file is missing, invalid YAML, or fails validation.
    """
    filepath = Path(path)
    if not filepath.exists():
        raise LoadError(f"Config file not found: {path}")

    try:
        with open(filepath, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise LoadError(f"Invalid YAML in {path}: {e}") from e

    if isinstance(data, dict):
        if "configs" not in data:
            raise LoadError("Config file missing required field: 'configs'")
        data = data["configs"]
    if not isinstance(data, list) or len(data) == 0:
        raise LoadError("'configs' must be a non-empty list")

    configs = []
    seen = set()
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise LoadError(f"Config {i} must be a mapping")
        for key in ("id", "gateway"):
            if not isinstance(item.get(key), str) or not item[key].strip():
                raise LoadError(f"Config {i} missing required field: {key!r}")

        parameters = item.get("parameters") or {}
        if not isinstance(parameters, dict):
            raise LoadError(f"Config '{item['id']}' parameters must be a mapping")

        if registry is not None:
            errors = registry.validate_parameters(item["gateway"], parameters)
            if errors:
                raise LoadError(
                    f"Config '{item['id']}' has invalid parameters for gateway "
                    f"'{item['gateway']}': {'; '.join(errors)}"
                )

        if item["id"] in seen:
            logger.warning("Duplicate config id %r; results will share the id", item["id"])
        seen.add(item["id"])

        configs.append(SearchConfig(
            id=item["id"],
            gateway=item["gateway"],
            parameters=parameters,
        ))

    return configs
