"""
Reasoning providers for pairwise interaction verdicts.

The provider is picked once at startup from Settings and injected into the
InteractionEngine; nothing re-reads the choice per call.
"""

from typing import Dict, Optional, Type

import requests

from ..config import Settings
from ..errors import ValidationError
from .base import ChatProvider, ReasoningService
from .gemini import GeminiProvider
from .openai_compat import DeepSeekProvider, OpenAIProvider

PROVIDERS: Dict[str, Type[ChatProvider]] = {
    "deepseek": DeepSeekProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def create_reasoning_service(settings: Settings, session: Optional[requests.Session] = None) -> ReasoningService:
    provider_cls = PROVIDERS.get(settings.provider.name)
    if provider_cls is None:
        raise ValidationError(f"Unsupported reasoning provider '{settings.provider.name}'")
    return provider_cls(
        settings.provider,
        timeout=settings.ai_timeout,
        max_retries=settings.max_retries,
        session=session,
    )


__all__ = [
    "ChatProvider",
    "DeepSeekProvider",
    "GeminiProvider",
    "OpenAIProvider",
    "PROVIDERS",
    "ReasoningService",
    "create_reasoning_service",
]
