"""Chat completion client for the hosted language model (OpenRouter)."""

import logging
import re

import httpx

from studyflow.config import get_settings, is_configured
from studyflow.errors import UpstreamError

settings = get_settings()
logger = logging.getLogger(__name__)


class LLMError(UpstreamError):
    """The language model call failed or returned nothing usable."""


def strip_code_fences(content: str) -> str:
    """Prefer the body of a fenced block when the model wrapped its answer in one."""
    s = (content or "").strip()
    m = re.search(r"```(?:\w+)?\s*([\s\S]*?)```", s)
    if m and m.group(1).strip():
        return m.group(1).strip()
    return s


class LLMClient:
    """Thin wrapper over an OpenAI-compatible `/chat/completions` endpoint."""

    def __init__(self, api_key: str | None = None, base_url: str | None = None, model: str | None = None):
        self.api_key = api_key if api_key is not None else settings.openrouter_api_key
        self.base_url = (base_url or settings.openrouter_base_url).rstrip("/")
        self.model = model or settings.openrouter_model

    @property
    def is_configured(self) -> bool:
        return is_configured(self.api_key)

    async def complete(
        self,
        system_prompt: str,
        user_content: str,
        max_tokens: int = 800,
        temperature: float = 0.7,
    ) -> str:
        """
        Run one chat completion and return the assistant text.

        Raises LLMError when the key is missing, the call fails, the status is
        not 2xx, or the response carries no content. There is no retry.
        """
        if not self.is_configured:
            raise LLMError("Language model API key not configured")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": settings.openrouter_referer,
            "X-Title": settings.app_name,
        }

        try:
            async with httpx.AsyncClient(timeout=settings.llm_timeout_seconds) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions", json=payload, headers=headers
                )
        except httpx.HTTPError as e:
            logger.error(f"Language model request failed: {e}")
            raise LLMError(f"Language model request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Language model error {response.status_code}: {response.text[:500]}")
            raise LLMError(f"Language model error: {response.status_code}")

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMError("Malformed response from language model") from e

        if not content or not content.strip():
            raise LLMError("Empty response from language model")
        return content.strip()


# Singleton instance
llm_client = LLMClient()
