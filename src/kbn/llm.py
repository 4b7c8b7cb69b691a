"""Claude completions for query expansion and answer synthesis."""

import asyncio
import logging
from typing import Any

import anthropic

from .config import LLMConfig
from .errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

API_KEY_MESSAGE = (
    "LLM API key not configured. Set ANTHROPIC_API_KEY or llm.api_key in config.yaml."
)


class LLMClient:
    """Thin async wrapper over the Anthropic Messages API.

    Credential problems surface as ConfigurationError, every other failure
    as ProviderError, so callers never inspect error text.
    """

    def __init__(self, config: LLMConfig, client: Any = None):
        self.model = config.model
        self.temperature = config.temperature
        self.max_tokens = config.max_tokens
        self.timeout = config.timeout
        self._api_key = config.api_key
        self._client = client

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError(API_KEY_MESSAGE)
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key, timeout=self.timeout)
        return self._client

    async def complete(self, messages: list[dict[str, str]], system: str | None = None) -> str:
        """Generate text for an ordered list of {"role", "content"} messages."""
        params: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": messages,
        }
        if system:
            params["system"] = system

        client = self.client
        try:
            response = await asyncio.wait_for(client.messages.create(**params), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(f"LLM request timed out after {self.timeout}s", cause=e) from e
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise ConfigurationError(API_KEY_MESSAGE, context={"model": self.model}, cause=e) from e
        except anthropic.APIError as e:
            raise ProviderError(f"LLM request failed: {e}", context={"model": self.model}, cause=e) from e

        text = "".join(block.text for block in response.content if block.type == "text")
        logger.debug("LLM returned %d characters", len(text))
        return text

    async def prompt(self, prompt: str) -> str:
        """Single-turn convenience around complete()."""
        return await self.complete([{"role": "user", "content": prompt}])
