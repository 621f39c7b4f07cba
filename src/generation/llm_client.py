"""
Chat-completions client for the generative text service.

Talks to any OpenAI-compatible endpoint (`{base_url}/v1/chat/completions`)
and returns the first choice's message content. Every failure mode
(timeout, non-2xx, malformed envelope) is raised as GenerationError so
callers have a single exception to route to their fallback path.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from loguru import logger

from config import Settings
from src.core.exceptions import GenerationError


class ChatCompletionClient:
    """HTTP client for an OpenAI-compatible chat-completions API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str | None = None,
        timeout_seconds: float = 30.0,
        retry_attempts: int = 1,
        temperature: float | None = None,
        backoff_seconds: float = 1.0,
        deadline_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Service root, without the /v1 suffix
            api_key: Bearer token
            model: Model name; omitted from requests when None
            timeout_seconds: Upper bound for each connect, read and write phase
            retry_attempts: Attempts on timeout, 5xx or connection error
            temperature: Default sampling temperature
            backoff_seconds: Base for exponential backoff between attempts
            deadline_seconds: Upper bound for one complete() call, retries and
                backoff included. Defaults to timeout_seconds.
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.retry_attempts = max(1, retry_attempts)
        self.temperature = temperature
        self.backoff_seconds = backoff_seconds
        self.deadline_seconds = deadline_seconds if deadline_seconds is not None else timeout_seconds
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> ChatCompletionClient | None:
        """Build a client from settings, or None when no service is configured."""
        if not settings.has_ai_configured():
            return None
        return cls(
            base_url=settings.llm_base_url or "",
            api_key=settings.llm_api_key or "",
            model=settings.llm_model,
            timeout_seconds=settings.llm_timeout_seconds,
            retry_attempts=settings.llm_retry_attempts,
            temperature=settings.llm_temperature,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1/chat/completions"

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    def _build_payload(
        self,
        prompt: str,
        temperature: float | None,
        max_tokens: int | None,
        system: str | None = None,
    ) -> dict[str, Any]:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        payload: dict[str, Any] = {
            "messages": messages,
            "stream": False,
        }
        if self.model:
            payload["model"] = self.model
        if temperature is None:
            temperature = self.temperature
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    @staticmethod
    def _extract_content(data: Any) -> str:
        """First choice's message content, or GenerationError if the envelope is off."""
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError(f"Malformed completion envelope: missing {e}") from e
        if not isinstance(content, str):
            raise GenerationError(
                f"Malformed completion envelope: content is {type(content).__name__}"
            )
        return content

    async def complete(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        system: str | None = None,
    ) -> str:
        """
        Send one prompt and return the raw completion text.

        The whole call, retries included, is bounded by deadline_seconds.

        Raises:
            GenerationError: On timeout, HTTP error or malformed envelope
        """
        payload = self._build_payload(prompt, temperature, max_tokens, system)
        try:
            return await asyncio.wait_for(self._post_with_retries(payload), self.deadline_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"Completion exceeded the {self.deadline_seconds}s deadline")
            raise GenerationError(
                f"Completion exceeded the {self.deadline_seconds}s deadline"
            ) from e

    async def _post_with_retries(self, payload: dict[str, Any]) -> str:
        last_error: Exception | None = None

        for attempt in range(self.retry_attempts):
            try:
                response = await self.client.post(self.endpoint, json=payload)
                response.raise_for_status()
                try:
                    data = response.json()
                except ValueError as e:
                    raise GenerationError("Completion response is not JSON") from e
                return self._extract_content(data)

            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(
                    f"Completion timeout after {self.timeout_seconds}s on attempt "
                    f"{attempt + 1}/{self.retry_attempts}"
                )

            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code < 500:
                    # Don't retry on 4xx client errors
                    logger.error(f"Completion client error: {e.response.status_code}")
                    raise GenerationError(
                        f"Completion request rejected with status {e.response.status_code}"
                    ) from e
                logger.warning(
                    f"Completion server error {e.response.status_code} on attempt "
                    f"{attempt + 1}/{self.retry_attempts}"
                )

            except httpx.RequestError as e:
                last_error = e
                logger.warning(
                    f"Completion request error on attempt {attempt + 1}/{self.retry_attempts}: {e}"
                )

            if attempt < self.retry_attempts - 1:
                await asyncio.sleep(self.backoff_seconds * 2**attempt)

        error_msg = f"Completion failed after {self.retry_attempts} attempt(s)"
        logger.error(f"{error_msg}: {last_error!r}")
        raise GenerationError(f"{error_msg}: {last_error!r}") from last_error

    async def health_check(self) -> bool:
        """True if the service root answers at all."""
        try:
            response = await self.client.get(self.base_url, timeout=5.0)
            return response.status_code < 500
        except httpx.HTTPError:
            return False
