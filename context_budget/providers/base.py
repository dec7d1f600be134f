"""LLM Provider base class with shared retry logic."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod

import httpx

from ..types import LLMProviderError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = [1.0, 2.0, 4.0]


class BaseProvider(ABC):
    """Abstract base for LLM providers. Subclasses override hook methods;
    the retry loop in ``complete()`` / ``acomplete()`` is shared."""

    _timeout: float = 60.0

    def __init__(
        self,
        model: str,
        temperature: float = 0.3,
        transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None,
        retry_backoff: list[float] | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.last_usage: dict = {}  # populated after each completion
        self._transport = transport
        self._retry_backoff = retry_backoff if retry_backoff is not None else RETRY_BACKOFF
        self._last_error: LLMProviderError | None = None

    # -- hook methods subclasses must implement --

    @abstractmethod
    def _provider_name(self) -> str: ...

    @abstractmethod
    def _get_url(self) -> str: ...

    @abstractmethod
    def _get_headers(self) -> dict: ...

    @abstractmethod
    def _build_payload(self, system: str, user: str, max_tokens: int) -> dict: ...

    @abstractmethod
    def _extract_text(self, data: dict) -> str: ...

    # -- shared retry logic --

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, transport=self._transport)

    def _async_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout, connect=10.0),
            transport=self._transport,
        )

    def _backoff_delay(self, attempt: int) -> float:
        if attempt < MAX_RETRIES - 1 and attempt < len(self._retry_backoff):
            return self._retry_backoff[attempt]
        return 0.0

    def _backoff(self, attempt: int) -> None:
        delay = self._backoff_delay(attempt)
        if delay:
            time.sleep(delay)

    async def _abackoff(self, attempt: int) -> None:
        delay = self._backoff_delay(attempt)
        if delay:
            await asyncio.sleep(delay)

    def _handle_response(self, response: httpx.Response, attempt: int) -> str | None:
        """Return the completion text, or None when the status is retryable."""
        if response.status_code == 200:
            data = response.json()
            self.last_usage = data.get("usage", {})
            return self._extract_text(data)

        error = LLMProviderError(
            f"HTTP {response.status_code}: {response.text}",
            provider=self._provider_name(),
            status_code=response.status_code,
        )
        if response.status_code == 429 or response.status_code >= 500:
            logger.warning(
                "%s returned %d (attempt %d/%d)",
                self._provider_name(), response.status_code, attempt + 1, MAX_RETRIES,
            )
            self._last_error = error
            return None
        raise error

    def _transport_error(self, e: httpx.HTTPError, attempt: int) -> None:
        logger.warning(
            "%s request failed: %s (attempt %d/%d)",
            self._provider_name(), e, attempt + 1, MAX_RETRIES,
        )
        self._last_error = LLMProviderError(f"HTTP error: {e}", provider=self._provider_name())

    def _give_up(self) -> LLMProviderError:
        return self._last_error or LLMProviderError(
            "Max retries exceeded", provider=self._provider_name()
        )

    def complete(self, system: str, user: str, max_tokens: int) -> str:
        """Send a completion request with automatic retry on transient errors."""
        url = self._get_url()
        headers = self._get_headers()
        payload = self._build_payload(system, user, max_tokens)
        self._last_error = None

        for attempt in range(MAX_RETRIES):
            try:
                with self._client() as client:
                    response = client.post(url, headers=headers, json=payload)
            except httpx.HTTPError as e:
                self._transport_error(e, attempt)
                self._backoff(attempt)
                continue

            text = self._handle_response(response, attempt)
            if text is not None:
                return text
            self._backoff(attempt)

        raise self._give_up()

    async def acomplete(self, system: str, user: str, max_tokens: int) -> str:
        """Async ``complete()``: cancelling the awaiting task aborts the request."""
        url = self._get_url()
        headers = self._get_headers()
        payload = self._build_payload(system, user, max_tokens)
        self._last_error = None

        for attempt in range(MAX_RETRIES):
            try:
                async with self._async_client() as client:
                    response = await client.post(url, headers=headers, json=payload)
            except httpx.HTTPError as e:
                self._transport_error(e, attempt)
                await self._abackoff(attempt)
                continue

            text = self._handle_response(response, attempt)
            if text is not None:
                return text
            await self._abackoff(attempt)

        raise self._give_up()
