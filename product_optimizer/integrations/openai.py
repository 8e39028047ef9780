"""OpenAI chat completions client for product content generation.

The generator only needs one thing from the provider: the text of a
single chat completion, or a reason it could not get one. `complete`
therefore never raises for provider trouble. Timeouts, transport errors,
non-2xx responses and an open circuit all come back as a failed
`CompletionResult`, and the generator decides what to do with it.

One attempt is made by default. Retries with exponential backoff apply to
timeouts, transport errors, 429 and 5xx when `openai_max_retries` is
raised. 401/403 and other 4xx responses are never retried.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import httpx

from product_optimizer.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from product_optimizer.core.config import get_settings
from product_optimizer.core.logging import generation_logger, get_logger

logger = get_logger(__name__)

OPENAI_API_URL = "https://api.openai.com"
CHAT_COMPLETIONS_PATH = "/v1/chat/completions"


@dataclass
class CompletionResult:
    """Result of a chat completion request."""

    success: bool
    text: str | None = None
    finish_reason: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    error: str | None = None
    status_code: int | None = None
    timed_out: bool = False
    duration_ms: float = 0.0
    request_id: str | None = None


def _error_message(response: httpx.Response, default: str) -> str:
    """Extract the provider-supplied error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return default


class OpenAIClient:
    """Async client for the OpenAI chat completions endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        max_tokens: int | None = None,
        base_url: str = OPENAI_API_URL,
    ) -> None:
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key. Defaults to settings.
            model: Model name. Defaults to settings (gpt-4o-mini).
            timeout: Request timeout in seconds. Defaults to settings.
            max_retries: Maximum attempts per request. Defaults to settings.
            retry_delay: Base delay between retries. Defaults to settings.
            max_tokens: Maximum response tokens. Defaults to settings.
            base_url: API base URL (OpenAI-compatible endpoints).
        """
        settings = get_settings()

        self._api_key = api_key if api_key is not None else settings.openai_api_key
        self._model = model or settings.openai_model
        self._timeout = timeout or settings.openai_timeout
        self._max_retries = max(1, max_retries or settings.openai_max_retries)
        self._retry_delay = retry_delay if retry_delay is not None else settings.openai_retry_delay
        self._max_tokens = max_tokens or settings.openai_max_tokens
        self._base_url = base_url

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.openai_circuit_failure_threshold,
                recovery_timeout=settings.openai_circuit_recovery_timeout,
            ),
            name="openai",
        )

        self._client: httpx.AsyncClient | None = None
        self._available = bool(self._api_key)

    @property
    def available(self) -> bool:
        """Check if OpenAI is configured (API key present)."""
        return self._available

    @property
    def model(self) -> str:
        return self._model

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self._api_key}",
                },
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("OpenAI client closed")

    async def _backoff(self, attempt: int, reason: str) -> bool:
        """Sleep before the next attempt. Returns False when out of attempts."""
        if attempt >= self._max_retries - 1:
            return False
        delay = self._retry_delay * (2**attempt)
        logger.warning(
            f"OpenAI request attempt {attempt + 1} failed, retrying in {delay}s",
            extra={
                "attempt": attempt + 1,
                "max_retries": self._max_retries,
                "delay_seconds": delay,
                "reason": reason,
            },
        )
        await asyncio.sleep(delay)
        return True

    async def complete(
        self,
        user_prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        """Send a chat completion request.

        Args:
            user_prompt: The user message
            system_prompt: Optional system message
            temperature: Sampling temperature. Defaults to settings.
            max_tokens: Maximum response tokens (overrides default)

        Returns:
            CompletionResult with response text or the failure details
        """
        if not self._available:
            return CompletionResult(
                success=False,
                error="OpenAI not configured (missing API key)",
            )

        if not await self._circuit_breaker.can_execute():
            return CompletionResult(success=False, error="Circuit breaker is open")

        if temperature is None:
            temperature = get_settings().openai_temperature

        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        request_body: dict[str, Any] = {
            "model": self._model,
            "temperature": temperature,
            "max_tokens": max_tokens or self._max_tokens,
            "messages": messages,
        }

        start_time = time.monotonic()
        client = await self._get_client()
        result = CompletionResult(success=False, error="Request failed after all retries")

        for attempt in range(self._max_retries):
            attempt_start = time.monotonic()
            generation_logger.request(self._model, user_prompt, system_prompt, attempt=attempt)

            try:
                response = await client.post(CHAT_COMPLETIONS_PATH, json=request_body)
            except httpx.TimeoutException:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                error_msg = f"Request timed out after {self._timeout}s"
                generation_logger.failure(
                    self._model,
                    error_msg,
                    "Timeout",
                    duration_ms=duration_ms,
                    attempt=attempt,
                )
                await self._circuit_breaker.record_failure()
                result = CompletionResult(
                    success=False,
                    error=error_msg,
                    timed_out=True,
                    duration_ms=duration_ms,
                )
                if await self._backoff(attempt, "timeout"):
                    continue
                break
            except httpx.RequestError as e:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                generation_logger.failure(
                    self._model,
                    str(e),
                    type(e).__name__,
                    duration_ms=duration_ms,
                    attempt=attempt,
                )
                await self._circuit_breaker.record_failure()
                result = CompletionResult(
                    success=False,
                    error=f"Request failed: {e}",
                    duration_ms=duration_ms,
                )
                if await self._backoff(attempt, type(e).__name__):
                    continue
                break

            duration_ms = (time.monotonic() - attempt_start) * 1000
            request_id = response.headers.get("x-request-id")
            status_code = response.status_code

            if status_code == 429:
                retry_after_str = response.headers.get("retry-after")
                retry_after = float(retry_after_str) if retry_after_str else None
                error_msg = _error_message(response, "Rate limit exceeded")
                generation_logger.failure(
                    self._model,
                    error_msg,
                    "RateLimited",
                    duration_ms=duration_ms,
                    status_code=429,
                    attempt=attempt,
                    request_id=request_id,
                    retry_after=retry_after,
                )
                await self._circuit_breaker.record_failure()
                result = CompletionResult(
                    success=False,
                    error=error_msg,
                    status_code=429,
                    duration_ms=duration_ms,
                    request_id=request_id,
                )
                if await self._backoff(attempt, "rate_limit"):
                    continue
                break

            if status_code in (401, 403):
                error_msg = _error_message(response, f"Authentication failed ({status_code})")
                generation_logger.failure(
                    self._model,
                    error_msg,
                    "AuthenticationFailed",
                    duration_ms=duration_ms,
                    status_code=status_code,
                    attempt=attempt,
                    request_id=request_id,
                )
                await self._circuit_breaker.record_failure()
                return CompletionResult(
                    success=False,
                    error=error_msg,
                    status_code=status_code,
                    duration_ms=duration_ms,
                    request_id=request_id,
                )

            if status_code >= 400:
                error_msg = _error_message(response, f"OpenAI request failed ({status_code})")
                generation_logger.failure(
                    self._model,
                    error_msg,
                    "ServerError" if status_code >= 500 else "ClientError",
                    duration_ms=duration_ms,
                    status_code=status_code,
                    attempt=attempt,
                    request_id=request_id,
                )
                result = CompletionResult(
                    success=False,
                    error=error_msg,
                    status_code=status_code,
                    duration_ms=duration_ms,
                    request_id=request_id,
                )
                if status_code >= 500:
                    await self._circuit_breaker.record_failure()
                    if await self._backoff(attempt, "server_error"):
                        continue
                return result

            try:
                response_data = response.json()
            except ValueError:
                await self._circuit_breaker.record_success()
                return CompletionResult(
                    success=False,
                    error="OpenAI response body was not JSON",
                    status_code=status_code,
                    duration_ms=duration_ms,
                    request_id=request_id,
                )

            choices = response_data.get("choices") or []
            message = choices[0].get("message", {}) if choices else {}
            text = message.get("content") if isinstance(message, dict) else None
            finish_reason = choices[0].get("finish_reason") if choices else None
            usage = response_data.get("usage") or {}
            input_tokens = usage.get("prompt_tokens")
            output_tokens = usage.get("completion_tokens")

            generation_logger.success(
                self._model,
                duration_ms,
                text,
                finish_reason=finish_reason,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                request_id=request_id,
            )

            await self._circuit_breaker.record_success()

            return CompletionResult(
                success=True,
                text=text,
                finish_reason=finish_reason,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                status_code=status_code,
                duration_ms=(time.monotonic() - start_time) * 1000,
                request_id=request_id,
            )

        return result


# Global OpenAI client instance
openai_client: OpenAIClient | None = None


async def init_openai() -> OpenAIClient:
    """Initialize the global OpenAI client."""
    global openai_client
    if openai_client is None:
        openai_client = OpenAIClient()
        if openai_client.available:
            logger.info(
                "OpenAI client initialized",
                extra={"model": openai_client.model},
            )
        else:
            logger.info("OpenAI not configured (missing API key)")
    return openai_client


async def close_openai() -> None:
    """Close the global OpenAI client."""
    global openai_client
    if openai_client:
        await openai_client.close()
        openai_client = None


async def get_openai() -> OpenAIClient:
    """Dependency for getting the OpenAI client."""
    global openai_client
    if openai_client is None:
        await init_openai()
    return openai_client  # type: ignore[return-value]
