"""Tavily search gateway."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from searchevals.gateways import SearchGateway


class TavilyGateway(SearchGateway):
    """POST /search against the Tavily API."""

    name = "tavily"
    env_key = "TAVILY_API_KEY"
    base_url = "https://api.tavily.com"
    parameters = {
        "search_depth": (str,),
        "include_answer": (bool, str),
        "include_raw_content": (bool, str),
        "include_image_descriptions": (bool,),
        "include_favicon": (bool,),
        "max_results": (int,),
        "topic": (str,),
        "time_range": (str,),
    }

    async def _send(
        self, query: str, parameters: Mapping[str, Any]
    ) -> Tuple[Any, Optional[str]]:
        payload: Dict[str, Any] = {
            "query": query,
            "search_depth": parameters.get("search_depth", "basic"),
            "include_answer": parameters.get("include_answer", False),
            "include_raw_content": parameters.get("include_raw_content", False),
            "include_image_descriptions": parameters.get("include_image_descriptions", False),
            "include_favicon": parameters.get("include_favicon", True),
            "max_results": parameters.get("max_results", 5),
        }
        for key in ("topic", "time_range"):
            if key in parameters:
                payload[key] = parameters[key]

        resp = await self.client.post("/search", json=payload)
        resp.raise_for_status()
        data = resp.json()
        return data, data.get("request_id")
