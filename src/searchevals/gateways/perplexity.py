"""Perplexity search gateway."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from searchevals.gateways import SearchGateway

RECENCY_FILTERS = {"hour", "day", "week", "month", "year"}


class PerplexityGateway(SearchGateway):
    """POST /search against the Perplexity API."""

    name = "perplexity"
    env_key = "PERPLEXITY_API_KEY"
    base_url = "https://api.perplexity.ai"
    parameters = {
        "max_results": (int,),
        "max_tokens_per_page": (int,),
        "search_recency_filter": (str,),
        "country": (str,),
        "search_domain_filter": (list,),
    }

    @classmethod
    def validate_parameters(cls, params: Mapping[str, Any]):
        errors = super().validate_parameters(params)
        recency = params.get("search_recency_filter")
        if isinstance(recency, str) and recency not in RECENCY_FILTERS:
            errors.append(
                f"parameter 'search_recency_filter' must be one of {sorted(RECENCY_FILTERS)}"
            )
        return errors

    async def _send(
        self, query: str, parameters: Mapping[str, Any]
    ) -> Tuple[Any, Optional[str]]:
        payload: Dict[str, Any] = {
            "query": query,
            "max_results": parameters.get("max_results", 5),
        }
        for key in ("max_tokens_per_page", "search_recency_filter", "country", "search_domain_filter"):
            if parameters.get(key):
                payload[key] = parameters[key]

        resp = await self.client.post("/search", json=payload)
        resp.raise_for_status()
        data = resp.json()
        return data, data.get("id")
