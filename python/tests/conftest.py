"""
Pytest configuration and fixtures for Scroll Guard tests.
"""

import random
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from scroll_guard.analysis_pipeline import AnalysisPipeline
from scroll_guard.cache_manager import AnalysisCache
from scroll_guard.common_types import AnalysisResult, RecommendedAction, UserPattern
from scroll_guard.config import AnalysisConfig, ServerConfig
from scroll_guard.llm_client import ModelClient
from scroll_guard.rate_limiter import ClientRateLimiter
from scroll_guard.reward_policy import RewardPolicy
from scroll_guard.server import ServiceInstances
from scroll_guard.structured_output import ResponseParser


HAPPY_RESPONSE = (
    '{"user_pattern":"Deep Focus/Learning","recommended_action":"session_extension",'
    '"addiction_risk":0.1,"educational_value":0.9,"reasoning":"ok"}'
)


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def analysis_config() -> AnalysisConfig:
    """Create a test analysis configuration."""
    return AnalysisConfig(
        api_key="test-api-key",
        api_base_url="https://openrouter.example/api/v1",
        model="google/gemini-2.0-flash-lite-001",
        request_timeout_seconds=5,
        max_retries=2,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> AnalysisCache:
    return AnalysisCache(clock=clock)


@pytest.fixture
def rate_limiter(clock: FakeClock) -> ClientRateLimiter:
    return ClientRateLimiter(clock=clock)


@pytest.fixture
def reward_policy() -> RewardPolicy:
    return RewardPolicy(rng=random.Random(1234))


@pytest.fixture
def parser() -> ResponseParser:
    return ResponseParser()


@pytest.fixture
def model_client() -> MagicMock:
    """A model client whose send() returns a well-formed response."""
    client = MagicMock(spec=ModelClient)
    client.send = AsyncMock(return_value=HAPPY_RESPONSE)
    client.test_connection = AsyncMock(return_value=True)
    client.get_config.return_value = {"api_key": "[redacted]", "model": "google/gemini-2.0-flash-lite-001"}
    client.get_stats.return_value = {"api_calls": 0, "failures": 0}
    return client


@pytest.fixture
def pipeline(model_client: MagicMock, cache: AnalysisCache, reward_policy: RewardPolicy) -> AnalysisPipeline:
    return AnalysisPipeline(model_client, cache, reward_policy)


@pytest.fixture
def instances(
    analysis_config: AnalysisConfig,
    model_client: MagicMock,
    cache: AnalysisCache,
    rate_limiter: ClientRateLimiter,
    pipeline: AnalysisPipeline,
) -> ServiceInstances:
    return ServiceInstances(
        config=analysis_config,
        server_config=ServerConfig(),
        model_client=model_client,
        cache=cache,
        rate_limiter=rate_limiter,
        pipeline=pipeline,
    )


@pytest.fixture
def sample_result() -> AnalysisResult:
    return AnalysisResult(
        user_pattern=UserPattern.DEEP_FOCUS,
        addiction_risk=0.1,
        educational_value=0.9,
        recommended_action=RecommendedAction.SESSION_EXTENSION,
        bonus_scrolls=22,
        reasoning="Reading technical documentation",
    )


@pytest.fixture
def valid_context() -> dict[str, Any]:
    return {
        "scrollCount": 12,
        "maxScrolls": 50,
        "domain": "docs.python.org",
        "timestamp": 1_700_000_000_000,
        "timeOfDay": "morning",
        "scrollTime": 240,
    }


@pytest.fixture
def valid_payload(valid_context: dict[str, Any]) -> dict[str, Any]:
    return {
        "content": "asyncio is a library to write concurrent code using the async/await syntax.",
        "context": valid_context,
    }
