"""
Configuration for Scroll Guard MCP Server

Environment Variables:
- OPENROUTER_API_KEY: Required for content analysis via OpenRouter
- SCROLL_GUARD_MODEL: Model used for classification (default: google/gemini-2.0-flash-lite-001)
- SCROLL_GUARD_TIMEOUT: Seconds before a model call is abandoned (default: 30)
- LOG_LEVEL: DEBUG, INFO, WARNING or ERROR (default: INFO)

OpenRouter:
- Uses OpenAI-compatible API at https://openrouter.ai/api/v1
- Gemini Flash Lite is fast and cheap enough to call once per scroll batch
"""

import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


DEFAULT_MODEL = "google/gemini-2.0-flash-lite-001"


@dataclass
class AnalysisConfig:
    """Configuration for the analysis pipeline and its collaborators."""

    # API Configuration (OpenRouter)
    api_key: str = field(default_factory=lambda: os.getenv("OPENROUTER_API_KEY", ""))
    api_base_url: str = field(
        default_factory=lambda: os.getenv("SCROLL_GUARD_API_BASE_URL", "https://openrouter.ai/api/v1")
    )

    model: str = field(default_factory=lambda: os.getenv("SCROLL_GUARD_MODEL", DEFAULT_MODEL))
    temperature: float = field(
        default_factory=lambda: float(os.getenv("SCROLL_GUARD_TEMPERATURE", "0.7"))
    )
    max_tokens: int = field(
        default_factory=lambda: int(os.getenv("SCROLL_GUARD_MAX_TOKENS", "2048"))
    )

    # Model call limits
    request_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("SCROLL_GUARD_TIMEOUT", "30"))
    )
    max_retries: int = field(
        default_factory=lambda: int(os.getenv("SCROLL_GUARD_MAX_RETRIES", "2"))
    )
    json_mode: bool = field(
        default_factory=lambda: os.getenv("SCROLL_GUARD_JSON_MODE", "true").lower() == "true"
    )

    # Result cache
    cache_ttl_seconds: int = field(
        default_factory=lambda: int(os.getenv("SCROLL_GUARD_CACHE_TTL", "7200"))
    )
    cache_max_size: int = field(
        default_factory=lambda: int(os.getenv("SCROLL_GUARD_CACHE_MAX_SIZE", "1000"))
    )
    cache_eviction_batch: int = 100

    # Per-client rate limiting
    rate_limit_window_seconds: int = field(
        default_factory=lambda: int(os.getenv("SCROLL_GUARD_RATE_WINDOW", "900"))
    )
    rate_limit_max_requests: int = field(
        default_factory=lambda: int(os.getenv("SCROLL_GUARD_RATE_MAX", "100"))
    )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.api_key:
            errors.append("OPENROUTER_API_KEY environment variable not set")

        if not 0.0 <= self.temperature <= 2.0:
            errors.append("temperature must be between 0.0 and 2.0")

        if self.request_timeout_seconds <= 0:
            errors.append("request_timeout_seconds must be positive")

        if self.cache_max_size < 1:
            errors.append("cache_max_size must be at least 1")

        if self.rate_limit_max_requests < 1:
            errors.append("rate_limit_max_requests must be at least 1")

        return errors


@dataclass
class ServerConfig:
    """Configuration for the MCP server."""

    name: str = "scroll-guard"
    version: str = "1.0.0"
    description: str = (
        "MCP server that classifies browsing patterns and grants "
        "bonus scrolls for healthy browsing"
    )
    service_name: str = "scroll-guard-backend"

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    default_client_id: str = "anonymous"


def get_config() -> tuple[AnalysisConfig, ServerConfig]:
    """Get configuration instances."""
    return AnalysisConfig(), ServerConfig()
