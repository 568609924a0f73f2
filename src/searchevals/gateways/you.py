"""You.com search gateway."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from searchevals.gateways import SearchGateway


class YouGateway(SearchGateway):
    """GET /v1/search against the You.com index API."""

    name = "you"
    env_key = "YOU_API_KEY"
    base_url = "https://ydc-index.io"
    parameters = {
        "count": (int,),
        "freshness": (str,),
        "country": (str,),
        "safesearch": (str,),
    }

    def auth_headers(self) -> Dict[str, str]:
        return {"X-API-Key": self.api_key}

    async def _send(
        self, query: str, parameters: Mapping[str, Any]
    ) -> Tuple[Any, Optional[str]]:
        params: Dict[str, Any] = {"query": query, "count": parameters.get("count", 10)}
        for key in ("freshness", "country", "safesearch"):
            if parameters.get(key):
                params[key] = parameters[key]

        resp = await self.client.get("/v1/search", params=params)
        resp.raise_for_status()
        data = resp.json()
        metadata = data.get("metadata") or {}
        return data, metadata.get("search_uuid")
