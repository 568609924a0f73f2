"""Parallel Web Systems search gateway."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from searchevals.gateways import SearchGateway

SEARCH_BETA = "search-extract-2025-10-10"


class ParallelGateway(SearchGateway):
    """POST /v1beta/search against the Parallel API."""

    name = "parallel"
    env_key = "PARALLEL_API_KEY"
    base_url = "https://api.parallel.ai"
    parameters = {
        "max_results": (int,),
        "max_chars_per_result": (int,),
        "objective": (str,),
    }

    def auth_headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key, "parallel-beta": SEARCH_BETA}

    async def _send(
        self, query: str, parameters: Mapping[str, Any]
    ) -> Tuple[Any, Optional[str]]:
        payload: Dict[str, Any] = {
            "search_queries": [query],
            "max_results": parameters.get("max_results", 2),
            "excerpts": {
                "max_chars_per_result": parameters.get("max_chars_per_result", 4000),
            },
        }
        if "objective" in parameters:
            payload["objective"] = parameters["objective"]

        resp = await self.client.post("/v1beta/search", json=payload)
        resp.raise_for_status()
        data = resp.json()
        return data, data.get("search_id") or data.get("request_id")
