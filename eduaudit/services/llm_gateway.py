"""
LLM Gateway — OpenAI Chat Completions over httpx.

One shared AsyncClient per application (owned by the composition root,
closed at shutdown). Every failure on the way to a completion string is
raised as ProviderUnavailable; interpreting the string is the caller's job.
"""

import asyncio

import httpx
import structlog

from eduaudit.errors import ProviderUnavailable

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class LLMGateway:
    """Gateway for the chat completions endpoint — non-streaming."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
        )
        if not self.api_key:
            logger.warning("openai_api_key_missing", msg="Audit generation will be unavailable")

    async def complete(
        self,
        system: str,
        user: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> str:
        """
        Run one chat completion and return the assistant message content.

        Raises ProviderUnavailable on missing credentials, timeout, non-2xx,
        connection errors, or an unexpected response envelope.
        """
        if not self.api_key:
            raise ProviderUnavailable("OPENAI_API_KEY environment variable is not set")

        payload: dict = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await asyncio.wait_for(
                self._client.post("/chat/completions", json=payload, headers=headers),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error("llm_timeout", model=model, timeout=self.timeout)
            raise ProviderUnavailable(f"Model call timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error("llm_transport_error", model=model, error=str(e))
            raise ProviderUnavailable(f"Model call failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                "llm_api_error",
                model=model,
                status=response.status_code,
                body=response.text[:500],
            )
            raise ProviderUnavailable(f"Provider returned HTTP {response.status_code}")

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("llm_bad_envelope", model=model, body=response.text[:500])
            raise ProviderUnavailable("Provider response missing message content") from e

        if content is None:
            raise ProviderUnavailable("Provider returned an empty message")

        usage = data.get("usage") or {}
        logger.info(
            "llm_completion",
            model=model,
            json_mode=json_mode,
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
        )
        return content

    async def aclose(self) -> None:
        await self._client.aclose()
