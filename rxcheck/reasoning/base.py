from abc import ABC, abstractmethod
from typing import Optional

import requests

from ..config import ProviderConfig
from ..errors import MalformedResponseError, TransientError
from ..logger import get_logger
from ..retry import CircuitBreaker
from ..schema import VerdictPayload
from .prompt import build_interaction_prompt, parse_verdict

logger = get_logger()


class ReasoningService(ABC):
    """Produces an interaction verdict for two drug descriptions.

    evaluate raises TransientError / UpstreamError when the service cannot be
    reached. A reply that cannot be parsed is not an error: it degrades to an
    Unknown verdict.
    """

    name = "reasoning"

    @abstractmethod
    def evaluate(self, description_a: str, description_b: str) -> VerdictPayload:
        raise NotImplementedError


class ChatProvider(ReasoningService):
    """A reasoning service backed by a chat-completion HTTP API.

    Subclasses implement complete(prompt) -> reply text. Calls go through a
    circuit breaker so that a batch of pairs stops calling a provider that is
    down and fails the remaining pairs fast.
    """

    def __init__(
        self,
        config: ProviderConfig,
        timeout: float = 30.0,
        max_retries: int = 2,
        base_delay: float = 1.0,
        session: Optional[requests.Session] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.config = config
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = session or requests.Session()
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60,
            expected_exception=TransientError,
            name=self.name,
        )

    @abstractmethod
    def complete(self, prompt: str) -> str:
        raise NotImplementedError

    def evaluate(self, description_a: str, description_b: str) -> VerdictPayload:
        prompt = build_interaction_prompt(description_a, description_b)
        raw = self.breaker.call(self.complete, prompt)
        try:
            return parse_verdict(raw)
        except MalformedResponseError as e:
            logger.warning(
                "Unparseable reply from reasoning service",
                provider=self.name,
                error=str(e),
                reply=(e.raw or "")[:200],
            )
            return VerdictPayload()
