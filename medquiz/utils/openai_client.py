"""
Lazy-initialized OpenAI client to prevent import-time errors
when OPENAI_API_KEY is not set, plus the text generator used by the
question generation loop.
"""

import os
import logging
from typing import Optional

import httpx
from openai import OpenAI

from medquiz import config
from medquiz.utils.api_retry import RetryConfig, openai_retry

logger = logging.getLogger(__name__)

_client: Optional[OpenAI] = None

# Timeout configuration: 60s total request, 10s connect
DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)

SYSTEM_PROMPT = (
    "Tu es un expert en pédagogie médicale qui rédige des QCM pour des étudiants "
    "de PASS et de LAS. Tu réponds uniquement en JSON valide."
)


def get_openai_client() -> OpenAI:
    """
    Get a lazily-initialized OpenAI client with timeout configuration.

    Raises:
        ValueError: If OPENAI_API_KEY is not set
    """
    global _client

    if _client is None:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError(
                "OPENAI_API_KEY environment variable is not set. "
                "Please set it before using AI features."
            )
        _client = OpenAI(api_key=api_key, timeout=DEFAULT_TIMEOUT)

    return _client


def reset_client() -> None:
    """Reset the client (useful for testing or when API key changes)."""
    global _client
    _client = None


class OpenAITextGenerator:
    """
    ``generate_text(prompt) -> str`` backed by OpenAI chat completions in JSON mode.

    Rate limits and transient server errors are retried with backoff; the
    exception is re-raised once retries are exhausted.
    """

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: str = config.OPENAI_MODEL,
        temperature: float = config.OPENAI_TEMPERATURE,
        max_tokens: int = config.OPENAI_MAX_TOKENS,
        retry_config: Optional[RetryConfig] = None,
    ):
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._complete = openai_retry(retry_config)(self._complete_once)

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    def generate_text(self, prompt: str) -> str:
        return self._complete(prompt)

    def __call__(self, prompt: str) -> str:
        return self.generate_text(prompt)

    def _complete_once(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content or ""
        logger.debug(f"OpenAI response ({self.model}): {len(content)} chars")
        return content
