from typing import Any, Dict

from ..errors import UpstreamError
from ..logger import get_logger
from ..transport import request_with_error_handling
from .base import ChatProvider

logger = get_logger()


class OpenAICompatibleProvider(ChatProvider):
    """POST {base_url}/chat/completions with bearer auth."""

    name = "openai-compatible"

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
        }

    def complete(self, prompt: str) -> str:
        resp = request_with_error_handling(
            "POST",
            f"{self.config.base_url}/chat/completions",
            service=self.name,
            session=self.session,
            timeout=self.timeout,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            json=self.build_payload(prompt),
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamError(f"{self.name} returned an unexpected response shape") from e
        if not isinstance(content, str):
            logger.warning("Non-text reply content", provider=self.name, content_type=type(content).__name__)
            return ""
        return content


class DeepSeekProvider(OpenAICompatibleProvider):
    name = "deepseek"


class OpenAIProvider(OpenAICompatibleProvider):
    name = "openai"
