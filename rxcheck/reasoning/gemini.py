from typing import Any, Dict

from ..errors import UpstreamError
from ..transport import request_with_error_handling
from .base import ChatProvider


class GeminiProvider(ChatProvider):
    """POST {base_url}/models/{model}:generateContent?key=..."""

    name = "gemini"

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_tokens,
            },
        }

    def complete(self, prompt: str) -> str:
        resp = request_with_error_handling(
            "POST",
            f"{self.config.base_url}/models/{self.config.model}:generateContent",
            service=self.name,
            session=self.session,
            timeout=self.timeout,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            params={"key": self.config.api_key},
            json=self.build_payload(prompt),
        )
        try:
            data = resp.json()
            parts = data["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamError("gemini returned an unexpected response shape") from e
        if not isinstance(parts, list):
            raise UpstreamError("gemini returned an unexpected response shape")
        # Non-text parts are skipped; an empty reply degrades to Unknown downstream.
        return "".join(
            p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
        )
