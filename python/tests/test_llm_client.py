"""
Tests for the model client: retries, timeouts and the circuit breaker.

The AsyncOpenAI client is replaced by a stub exposing chat.completions.create.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from scroll_guard.config import AnalysisConfig
from scroll_guard.errors import ModelTransientError
from scroll_guard.llm_client import CircuitBreaker, ModelClient
from scroll_guard.prompt_builder import SYSTEM_PROMPT

API_URL = "https://openrouter.example/api/v1/chat/completions"


def make_completion(text: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def make_status_error(cls, status: int):
    response = httpx.Response(status, request=httpx.Request("POST", API_URL))
    return cls(f"status {status}", response=response, body=None)


def make_stub(create: AsyncMock) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def make_client(config: AnalysisConfig, create: AsyncMock, **kwargs) -> ModelClient:
    return ModelClient(config, client=make_stub(create), retry_delay_seconds=0, **kwargs)


class TestSend:
    """Successful calls and request shape."""

    @pytest.mark.asyncio
    async def test_returns_text(self, analysis_config):
        create = AsyncMock(return_value=make_completion('{"user_pattern": "Intentional Leisure"}'))
        client = make_client(analysis_config, create)

        text = await client.send("prompt")

        assert text == '{"user_pattern": "Intentional Leisure"}'

    @pytest.mark.asyncio
    async def test_request_shape(self, analysis_config):
        """Test the model, messages and JSON mode sent upstream."""
        create = AsyncMock(return_value=make_completion("{}"))
        client = make_client(analysis_config, create)

        await client.send("classify this")

        kwargs = create.await_args.kwargs
        assert kwargs["model"] == analysis_config.model
        assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert kwargs["messages"][1] == {"role": "user", "content": "classify this"}
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_json_mode_disabled(self, analysis_config):
        analysis_config.json_mode = False
        create = AsyncMock(return_value=make_completion("{}"))
        client = make_client(analysis_config, create)

        await client.send("prompt")

        assert "response_format" not in create.await_args.kwargs

    @pytest.mark.asyncio
    async def test_empty_content_is_empty_string(self, analysis_config):
        client = make_client(analysis_config, AsyncMock(return_value=make_completion(None)))

        assert await client.send("prompt") == ""


class TestRetries:
    """Error mapping and retry behavior."""

    @pytest.mark.asyncio
    async def test_retries_rate_limit_then_succeeds(self, analysis_config):
        """Test that a 429 is retried and the next success returned."""
        create = AsyncMock(
            side_effect=[make_status_error(openai.RateLimitError, 429), make_completion("{}")]
        )
        client = make_client(analysis_config, create)

        assert await client.send("prompt") == "{}"
        assert create.await_count == 2

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_retries(self, analysis_config):
        """Test that persistent 5xx errors raise after max_retries + 1 attempts."""
        create = AsyncMock(side_effect=make_status_error(openai.InternalServerError, 503))
        client = make_client(analysis_config, create)

        with pytest.raises(ModelTransientError) as exc_info:
            await client.send("prompt")

        assert exc_info.value.retryable
        assert create.await_count == analysis_config.max_retries + 1

    @pytest.mark.asyncio
    async def test_auth_error_not_retried(self, analysis_config):
        create = AsyncMock(side_effect=make_status_error(openai.AuthenticationError, 401))
        client = make_client(analysis_config, create)

        with pytest.raises(ModelTransientError, match="401"):
            await client.send("prompt")

        assert create.await_count == 1

    @pytest.mark.asyncio
    async def test_connection_error_retried(self, analysis_config):
        error = openai.APIConnectionError(request=httpx.Request("POST", API_URL))
        create = AsyncMock(side_effect=[error, make_completion("{}")])
        client = make_client(analysis_config, create)

        assert await client.send("prompt") == "{}"

    @pytest.mark.asyncio
    async def test_timeout(self, analysis_config):
        """Test that a slow model call surfaces as ModelTransientError."""
        analysis_config.request_timeout_seconds = 0.01
        analysis_config.max_retries = 0

        async def slow(**kwargs):
            await asyncio.sleep(1)
            return make_completion("{}")

        client = make_client(analysis_config, AsyncMock(side_effect=slow))

        with pytest.raises(ModelTransientError, match="timeout"):
            await client.send("prompt")


class TestCircuitBreaker:
    """Fail fast after repeated failures."""

    @pytest.mark.asyncio
    async def test_open_circuit_skips_model(self, analysis_config):
        analysis_config.max_retries = 0
        create = AsyncMock(side_effect=make_status_error(openai.AuthenticationError, 401))
        client = make_client(analysis_config, create, circuit_breaker=CircuitBreaker(threshold=2))

        for _ in range(2):
            with pytest.raises(ModelTransientError):
                await client.send("prompt")

        with pytest.raises(ModelTransientError, match="Circuit breaker"):
            await client.send("prompt")

        assert create.await_count == 2
        assert client.get_stats()["circuit_breaker"]["state"] == "open"

    @pytest.mark.asyncio
    async def test_circuit_opening_mid_retry_stops_loop(self, analysis_config):
        """Test that retries stop once the breaker opens."""
        create = AsyncMock(side_effect=make_status_error(openai.InternalServerError, 503))
        client = make_client(analysis_config, create, circuit_breaker=CircuitBreaker(threshold=2))

        with pytest.raises(ModelTransientError, match="Circuit breaker"):
            await client.send("prompt")

        assert create.await_count == 2

    def test_half_open_after_reset(self, clock):
        """Test that one trial call is allowed once the reset period has passed."""
        breaker = CircuitBreaker(threshold=1, reset_seconds=60, clock=lambda: clock() / 1000)
        breaker.record_failure()
        assert breaker.state == "open"
        assert not breaker.can_proceed()

        clock.advance(60_000)

        assert breaker.state == "half_open"
        assert breaker.can_proceed()

    def test_failed_trial_call_reopens(self, clock):
        breaker = CircuitBreaker(threshold=3, reset_seconds=60, clock=lambda: clock() / 1000)
        for _ in range(3):
            breaker.record_failure()
        clock.advance(60_000)

        breaker.record_failure()

        assert breaker.state == "open"
        assert breaker.get_status()["seconds_until_retry"] == 60.0

    def test_success_closes_circuit(self):
        breaker = CircuitBreaker(threshold=1)
        breaker.record_failure()

        breaker.record_success()

        assert breaker.state == "closed"
        assert breaker.can_proceed()


class TestResponseExtraction:
    """Malformed SDK responses are model failures, not crashes."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            SimpleNamespace(),
            SimpleNamespace(choices=[SimpleNamespace()]),
            SimpleNamespace(choices=[SimpleNamespace(message=None)]),
            SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=123))]),
            None,
        ],
    )
    async def test_malformed_response(self, analysis_config, response):
        analysis_config.max_retries = 0
        client = make_client(analysis_config, AsyncMock(return_value=response))

        with pytest.raises(ModelTransientError, match="Malformed model response"):
            await client.send("prompt")

        assert client.get_stats()["failures"] == 1

    @pytest.mark.asyncio
    async def test_no_choices_is_empty_text(self, analysis_config):
        client = make_client(analysis_config, AsyncMock(return_value=SimpleNamespace(choices=[])))

        assert await client.send("prompt") == ""


class TestConnectionCheck:

    @pytest.mark.asyncio
    async def test_connection_ok(self, analysis_config):
        client = make_client(analysis_config, AsyncMock(return_value=make_completion('{"status": "ok"}')))

        assert await client.test_connection() is True

    @pytest.mark.asyncio
    async def test_connection_failure(self, analysis_config):
        analysis_config.max_retries = 0
        create = AsyncMock(side_effect=make_status_error(openai.AuthenticationError, 401))
        client = make_client(analysis_config, create)

        assert await client.test_connection() is False

    def test_config_redacts_key(self, analysis_config):
        client = make_client(analysis_config, AsyncMock())

        config = client.get_config()

        assert config["api_key"] == "[redacted]"
        assert "test-api-key" not in str(config)
