"""Gemini gateway using Google Search grounding."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from searchevals.gateways import SearchGateway

DEFAULT_MODEL = "gemini-3-flash-preview"


class GeminiSearchGateway(SearchGateway):
    """generateContent with the google_search tool enabled.

    The recorded payload keeps the answer text, the candidates and the
    grounding metadata of the first candidate.
    """

    name = "gemini"
    env_key = "GEMINI_API_KEY"
    base_url = "https://generativelanguage.googleapis.com"
    parameters = {"model": (str,)}

    def auth_headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.api_key}

    async def _send(
        self, query: str, parameters: Mapping[str, Any]
    ) -> Tuple[Any, Optional[str]]:
        model = parameters.get("model", DEFAULT_MODEL)
        resp = await self.client.post(
            f"/v1beta/models/{model}:generateContent",
            json={
                "contents": [{"parts": [{"text": query}]}],
                "tools": [{"google_search": {}}],
            },
        )
        resp.raise_for_status()
        body = resp.json()

        candidates = body.get("candidates") or []
        first = candidates[0] if candidates else {}
        parts = (first.get("content") or {}).get("parts") or []
        data = {
            "text": "".join(p.get("text", "") for p in parts),
            "candidates": candidates,
            "grounding_metadata": first.get("groundingMetadata"),
        }
        return data, body.get("responseId")
