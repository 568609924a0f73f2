"""Core data models for search-evals."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class SearchQuery:
    """A question, its expected answer and an optional validity window."""
    text: str
    ground_truth: Optional[str] = None
    valid_from: Optional[str] = None
    valid_until: Optional[str] = None
    # valid_until given as an explicit null: true now, no known expiry
    open_ended: bool = False

    @property
    def is_temporal(self) -> bool:
        return bool(self.valid_from or self.valid_until or self.open_ended)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"query": self.text}
        if self.ground_truth is not None:
            data["ground_truth"] = self.ground_truth
        if self.valid_from is not None:
            data["valid_from"] = self.valid_from
        if self.valid_until is not None or self.open_ended:
            data["valid_until"] = self.valid_until
        return data


@dataclass
class SearchConfig:
    """One way of calling one gateway."""
    id: str
    gateway: str
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchResponse:
    """Raw outcome of a single gateway call."""
    data: Any
    latency_ms: int
    token_count: int
    request_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "data": self.data,
            "latency_ms": self.latency_ms,
            "token_count": self.token_count,
        }
        if self.request_id is not None:
            data["request_id"] = self.request_id
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchResponse":
        return cls(
            data=data.get("data"),
            latency_ms=int(data.get("latency_ms", 0)),
            token_count=int(data.get("token_count", 0)),
            request_id=data.get("request_id"),
            error=data.get("error"),
        )


@dataclass
class QueryResult:
    """Self-contained result of running one query against one config."""
    query: str
    ground_truth: Optional[str]
    valid_from: Optional[str]
    valid_until: Optional[str]
    open_ended: bool
    config_id: str
    gateway: str
    parameters: Dict[str, Any]
    executed_at: str
    response: SearchResponse
    has_error: bool

    @classmethod
    def build(
        cls,
        query: SearchQuery,
        config: SearchConfig,
        executed_at: str,
        response: SearchResponse,
    ) -> "QueryResult":
        """Embed the full query and config context next to the response."""
        return cls(
            query=query.text,
            ground_truth=query.ground_truth,
            valid_from=query.valid_from,
            valid_until=query.valid_until,
            open_ended=query.open_ended,
            config_id=config.id,
            gateway=config.gateway,
            parameters=dict(config.parameters),
            executed_at=executed_at,
            response=response,
            has_error=response.error is not None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"query": self.query}
        if self.ground_truth is not None:
            data["ground_truth"] = self.ground_truth
        if self.valid_from is not None:
            data["valid_from"] = self.valid_from
        if self.valid_until is not None or self.open_ended:
            data["valid_until"] = self.valid_until
        data.update({
            "config_id": self.config_id,
            "gateway": self.gateway,
            "parameters": self.parameters,
            "executed_at": self.executed_at,
            "response": self.response.to_dict(),
            "has_error": self.has_error,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryResult":
        response = SearchResponse.from_dict(data.get("response") or {})
        return cls(
            query=data["query"],
            ground_truth=data.get("ground_truth"),
            valid_from=data.get("valid_from"),
            valid_until=data.get("valid_until"),
            open_ended="valid_until" in data and data["valid_until"] is None,
            config_id=data["config_id"],
            gateway=data["gateway"],
            parameters=data.get("parameters", {}),
            executed_at=data["executed_at"],
            response=response,
            has_error=bool(data.get("has_error", response.error is not None)),
        )


@dataclass
class RunResult:
    """A complete evaluation run, persisted as one artifact."""
    id: str
    executed_at: str
    results: List[QueryResult] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if r.has_error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "executed_at": self.executed_at,
            "results": [r.to_dict() for r in self.results],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunResult":
        return cls(
            id=data["id"],
            executed_at=data["executed_at"],
            results=[QueryResult.from_dict(r) for r in data.get("results", [])],
        )


@dataclass
class GradeRecord:
    """LLM verdict for one gradable result."""
    config_id: str
    query: str
    score: int
    reasoning: str
