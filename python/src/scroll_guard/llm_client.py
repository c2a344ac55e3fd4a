"""
Model Client for Scroll Guard.

Sends a rendered prompt to an OpenAI-compatible chat completion endpoint
(OpenRouter by default) and returns the raw text. Every failure surfaces as
ModelTransientError so the pipeline can degrade to the fallback result.

Features:
- AsyncOpenAI over a pooled httpx client
- Per-attempt timeout via asyncio.wait_for
- Exponential backoff with jitter for 429/5xx and connection errors
- Circuit breaker that fails fast after repeated failures
"""

import asyncio
import logging
import random
import time
from typing import Any, Callable

import httpx
import openai
from openai import AsyncOpenAI

from .config import AnalysisConfig
from .errors import ModelTransientError
from .prompt_builder import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 409, 429, 500, 502, 503, 504}
INITIAL_RETRY_DELAY = 1.0
CIRCUIT_BREAKER_THRESHOLD = 5  # Consecutive failed attempts before the circuit opens
CIRCUIT_BREAKER_RESET_SECONDS = 60.0
CONNECTION_TEST_PROMPT = 'Reply with the JSON object {"status": "ok"}'


class CircuitBreaker:
    """
    Stops calling the model after repeated failures.

    closed -> open after `threshold` consecutive failed attempts.
    open -> half_open once `reset_seconds` have passed; the next attempt is a
    trial call. A successful trial closes the circuit, a failed one reopens it.
    """

    def __init__(
        self,
        threshold: int = CIRCUIT_BREAKER_THRESHOLD,
        reset_seconds: float = CIRCUIT_BREAKER_RESET_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.threshold = threshold
        self.reset_seconds = reset_seconds
        self._clock = clock
        self.failure_count = 0
        self._opened_at: float | None = None

    @property
    def state(self) -> str:
        if self._opened_at is None:
            return "closed"
        if self._clock() - self._opened_at >= self.reset_seconds:
            return "half_open"
        return "open"

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.state == "half_open" or self.failure_count >= self.threshold:
            self._opened_at = self._clock()

    def record_success(self) -> None:
        self.failure_count = 0
        self._opened_at = None

    def can_proceed(self) -> bool:
        return self.state != "open"

    def get_status(self) -> dict[str, Any]:
        status: dict[str, Any] = {
            "state": self.state,
            "failure_count": self.failure_count,
            "threshold": self.threshold,
        }
        if self._opened_at is not None:
            status["seconds_until_retry"] = max(
                0.0, round(self.reset_seconds - (self._clock() - self._opened_at), 1)
            )
        return status


def _response_text(response: Any) -> str:
    """Pull the completion text out of a chat response."""
    try:
        if not response.choices:
            return ""
        content = response.choices[0].message.content
    except (AttributeError, IndexError, KeyError, TypeError) as e:
        raise ModelTransientError(f"Malformed model response: {type(e).__name__}: {e}") from e
    if content is None:
        return ""
    if not isinstance(content, str):
        raise ModelTransientError(f"Malformed model response: content is {type(content).__name__}")
    return content


class ModelClient:
    """Thin async wrapper around the classification model."""

    def __init__(
        self,
        config: AnalysisConfig,
        client: AsyncOpenAI | None = None,
        retry_delay_seconds: float = INITIAL_RETRY_DELAY,
        circuit_breaker: CircuitBreaker | None = None,
    ):
        self.config = config
        self.retry_delay_seconds = retry_delay_seconds
        self._http_client: httpx.AsyncClient | None = None

        if client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(config.request_timeout_seconds),
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
            client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.api_base_url,
                http_client=self._http_client,
                max_retries=0,  # retries happen here, with our own backoff
                default_headers={"X-Title": "Scroll Guard"},
            )
        self.client = client

        self._circuit_breaker = circuit_breaker or CircuitBreaker()
        self._call_count = 0
        self._failure_count = 0

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._http_client is not None:
            await self._http_client.aclose()

    def _request_kwargs(self, prompt: str, max_tokens: int | None = None) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "temperature": self.config.temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }
        if self.config.json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    async def send(self, prompt: str, max_tokens: int | None = None) -> str:
        """
        Send a prompt and return the model's raw text.

        Raises:
            ModelTransientError: On timeout, network, quota or auth failure,
                or when the circuit breaker is open
        """
        attempts = max(1, self.config.max_retries + 1)
        last_error = ModelTransientError("Model call failed")

        for attempt in range(attempts):
            # the breaker can open between attempts
            if not self._circuit_breaker.can_proceed():
                raise ModelTransientError("Circuit breaker is open - too many recent failures")

            self._call_count += 1
            try:
                response = await asyncio.wait_for(
                    self.client.chat.completions.create(**self._request_kwargs(prompt, max_tokens)),
                    timeout=self.config.request_timeout_seconds,
                )
                text = _response_text(response)
            except ModelTransientError as e:
                last_error = e
            except asyncio.TimeoutError:
                last_error = ModelTransientError(
                    f"Request timeout after {self.config.request_timeout_seconds}s", retryable=True
                )
            except openai.APIStatusError as e:
                last_error = ModelTransientError(
                    f"Model API error {e.status_code}: {e.message}",
                    retryable=e.status_code in RETRYABLE_STATUS_CODES,
                )
            except openai.APIConnectionError as e:
                last_error = ModelTransientError(f"Model connection error: {e}", retryable=True)
            except (openai.OpenAIError, httpx.HTTPError) as e:
                last_error = ModelTransientError(f"{type(e).__name__}: {e}")
            else:
                self._circuit_breaker.record_success()
                return text

            self._failure_count += 1
            self._circuit_breaker.record_failure()
            logger.warning(
                "Model call failed",
                extra={"attempt": attempt + 1, "retryable": last_error.retryable, "error": str(last_error)},
            )

            if not last_error.retryable or attempt == attempts - 1:
                break

            # Exponential backoff with jitter
            delay = self.retry_delay_seconds * (2 ** attempt) + random.uniform(0, self.retry_delay_seconds)
            await asyncio.sleep(delay)

        raise last_error

    async def test_connection(self) -> bool:
        """Check that the model answers a trivial prompt."""
        try:
            text = await self.send(CONNECTION_TEST_PROMPT, max_tokens=16)
        except ModelTransientError as e:
            logger.error("Model connection test failed", extra={"error": str(e)})
            return False
        return len(text.strip()) > 0

    def get_config(self) -> dict[str, Any]:
        """Client configuration with the API key redacted."""
        return {
            "api_key": "[redacted]",
            "api_base_url": self.config.api_base_url,
            "model": self.config.model,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "request_timeout_seconds": self.config.request_timeout_seconds,
        }

    def get_stats(self) -> dict[str, Any]:
        return {
            "api_calls": self._call_count,
            "failures": self._failure_count,
            "circuit_breaker": self._circuit_breaker.get_status(),
        }
