"""Gateway protocol and registry for search-evals.

A gateway translates a generic parameter bag into one provider's search
call. The runner only ever talks to gateways through ``GatewayRegistry``.
"""

from __future__ import annotations

import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import httpx

from searchevals.errors import NotFoundError
from searchevals.models import SearchResponse
from searchevals.tokens import count_tokens

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], httpx.AsyncClient]
TokenCounter = Callable[[Any], int]


def elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def describe_error(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class SearchGateway(ABC):
    """Base class for provider gateways.

    Subclasses declare ``name``, the credential ``env_key``, the accepted
    ``parameters`` schema and implement ``_send``. The HTTP client is built
    on first use by ``client_factory`` and reused for the process lifetime.
    """

    name: str = ""
    env_key: Optional[str] = None
    base_url: str = ""
    parameters: Dict[str, Tuple[type, ...]] = {}

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        client_factory: Optional[ClientFactory] = None,
        token_counter: TokenCounter = count_tokens,
        timeout: float = 60.0,
    ) -> None:
        self._api_key = api_key
        self._client_factory = client_factory or self._default_client
        self._client: Optional[httpx.AsyncClient] = None
        self._count_tokens = token_counter
        self.timeout = timeout

    @property
    def api_key(self) -> str:
        key = self._api_key or (os.environ.get(self.env_key, "") if self.env_key else "")
        if not key:
            raise RuntimeError(f"{self.env_key} environment variable is not set")
        return key

    def missing_credentials(self, environ: Mapping[str, str]) -> List[str]:
        if self._api_key or not self.env_key:
            return []
        return [] if environ.get(self.env_key) else [self.env_key]

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.auth_headers(),
            timeout=self.timeout,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @classmethod
    def validate_parameters(cls, params: Mapping[str, Any]) -> List[str]:
        """Check a parameter bag against the declared schema."""
        errors = []
        for key, value in params.items():
            if key not in cls.parameters:
                errors.append(
                    f"unknown parameter {key!r} (allowed: {', '.join(sorted(cls.parameters))})"
                )
                continue
            types = cls.parameters[key]
            if (isinstance(value, bool) and bool not in types) or not isinstance(value, types):
                expected = " or ".join(t.__name__ for t in types)
                errors.append(
                    f"parameter {key!r} must be {expected}, got {type(value).__name__}"
                )
        return errors

    async def search(self, query: str, parameters: Mapping[str, Any]) -> SearchResponse:
        """Run one search. Provider failures are captured, never raised.

        A payload that cannot be token-counted is still kept, with a count of 0.
        """
        start = time.perf_counter()
        try:
            data, request_id = await self._send(query, parameters)
        except Exception as exc:
            return SearchResponse(
                data=None, latency_ms=elapsed_ms(start), token_count=0,
                error=describe_error(exc),
            )
        latency_ms = elapsed_ms(start)

        try:
            token_count = self._count_tokens(data)
        except Exception as exc:
            logger.warning("Token count failed for %s response: %s", self.name, describe_error(exc))
            token_count = 0
        return SearchResponse(
            data=data, latency_ms=latency_ms, token_count=token_count,
            request_id=request_id,
        )

    @abstractmethod
    async def _send(
        self, query: str, parameters: Mapping[str, Any]
    ) -> Tuple[Any, Optional[str]]:
        """Call the provider; return (raw payload, request id)."""


class GatewayRegistry:
    """Name-keyed lookup of gateway instances, fixed for a run."""

    def __init__(self, gateways: Mapping[str, Any]) -> None:
        self._gateways = dict(gateways)

    def __contains__(self, name: object) -> bool:
        return name in self._gateways

    def names(self) -> List[str]:
        return sorted(self._gateways)

    def resolve(self, name: str) -> Any:
        """Return the gateway registered under ``name``.

        Raises:
            NotFoundError: If no gateway has that name.
        """
        try:
            return self._gateways[name]
        except KeyError:
            raise NotFoundError(
                f"Unknown gateway: {name!r}. Available gateways: {', '.join(self.names())}"
            ) from None

    def required_env(self, name: str) -> List[str]:
        env_key = getattr(self._gateways.get(name), "env_key", None)
        return [env_key] if env_key else []

    def missing_credentials(self, name: str, environ: Mapping[str, str]) -> List[str]:
        """Credentials the named gateway needs but cannot find.

        Unknown names report nothing; they fail later at resolution.
        """
        gateway = self._gateways.get(name)
        check = getattr(gateway, "missing_credentials", None)
        if check is None:
            return []
        return check(environ)

    def get_schema(self, name: str) -> Dict[str, Tuple[type, ...]]:
        """Parameter schema of the named gateway; empty when it declares none.

        Raises:
            NotFoundError: If no gateway has that name.
        """
        return dict(getattr(self.resolve(name), "parameters", None) or {})

    def validate_parameters(self, name: str, params: Mapping[str, Any]) -> List[str]:
        validate = getattr(self._gateways.get(name), "validate_parameters", None)
        if validate is None:
            return []
        return validate(params)

    async def aclose(self) -> None:
        for gateway in self._gateways.values():
            close = getattr(gateway, "aclose", None)
            if close is not None:
                await close()


def gateway_classes() -> Dict[str, type]:
    from searchevals.gateways.gemini import GeminiSearchGateway
    from searchevals.gateways.parallel import ParallelGateway
    from searchevals.gateways.perplexity import PerplexityGateway
    from searchevals.gateways.tavily import TavilyGateway
    from searchevals.gateways.you import YouGateway

    return {
        cls.name: cls
        for cls in (TavilyGateway, ParallelGateway, YouGateway, PerplexityGateway, GeminiSearchGateway)
    }


def default_registry(environ: Optional[Mapping[str, str]] = None, **kwargs: Any) -> GatewayRegistry:
    """Build a registry holding one instance of every built-in gateway.

    With ``environ``, each gateway's key is read from that mapping once,
    here, instead of from ``os.environ`` at call time.
    """
    gateways = {}
    for name, cls in gateway_classes().items():
        if environ is not None and cls.env_key and "api_key" not in kwargs:
            gateways[name] = cls(environ.get(cls.env_key) or None, **kwargs)
        else:
            gateways[name] = cls(**kwargs)
    return GatewayRegistry(gateways)
