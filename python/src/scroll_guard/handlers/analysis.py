"""
Tool Handlers for Scroll Guard MCP Server.

Provides:
- handle_analyze_content: rate-limit, validate and analyze a content snippet
- handle_status: health, configuration and cache statistics
- handle_test_connection: check that the classification model answers
"""

import json
import logging
import time
import uuid
from typing import Any, Callable

from mcp.types import TextContent

from ..common_types import iso_now
from ..errors import RateLimitExceeded, ValidationError

logger = logging.getLogger(__name__)

MAX_CLIENT_ID_LENGTH = 256


def _json_content(payload: dict[str, Any]) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2))]


def _error_content(error: str, message: str, **extra: Any) -> list[TextContent]:
    return _json_content({"error": error, "message": message, "timestamp": iso_now(), **extra})


def _request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _client_id(arguments: dict[str, Any], default: str) -> str:
    client_id = arguments.get("client_id")
    if not isinstance(client_id, str) or not client_id.strip():
        return default
    return client_id.strip()[:MAX_CLIENT_ID_LENGTH]


async def handle_analyze_content(
    arguments: dict[str, Any],
    get_instances: Callable[[], Any],
) -> list[TextContent]:
    """Handle analyze_content tool."""
    instances = get_instances()
    client_id = _client_id(arguments, instances.server_config.default_client_id)

    decision = instances.rate_limiter.allow(client_id)
    if not decision.permitted:
        error = RateLimitExceeded(client_id, decision.retry_after_seconds)
        logger.warning("Rate limit exceeded", extra={"client_id": client_id})
        return _error_content(
            "Too many requests", str(error), retryAfter=error.retry_after_seconds
        )

    payload = {"content": arguments.get("content"), "context": arguments.get("context")}
    try:
        outcome = await instances.pipeline.analyze(payload)
    except ValidationError as e:
        logger.info("Analysis request rejected", extra={"reason": e.message})
        return _error_content("Validation failed", e.message)

    logger.info(
        "Analysis request served",
        extra={
            "client_id": client_id,
            "domain": payload["context"].get("domain"),
            "content_length": len(payload["content"]),
            "source": outcome.source.value,
        },
    )
    response = outcome.to_response(_request_id())
    if outcome.warnings:
        response["warnings"] = list(outcome.warnings)
    return _json_content(response)


async def handle_status(
    arguments: dict[str, Any],
    get_instances: Callable[[], Any],
) -> list[TextContent]:
    """Handle analysis_status tool."""
    instances = get_instances()
    cache_stats = instances.cache.stats()
    if not arguments.get("include_entries"):
        cache_stats.pop("entries", None)

    return _json_content({
        "status": "healthy",
        "service": instances.server_config.service_name,
        "version": instances.server_config.version,
        "timestamp": iso_now(),
        "model": instances.model_client.get_config(),
        "model_stats": instances.model_client.get_stats(),
        "pipeline": instances.pipeline.get_stats(),
        "cache": cache_stats,
        "rate_limiter": instances.rate_limiter.get_stats(),
    })


async def handle_test_connection(
    arguments: dict[str, Any],
    get_instances: Callable[[], Any],
) -> list[TextContent]:
    """Handle test_connection tool."""
    instances = get_instances()
    connected = await instances.model_client.test_connection()
    return _json_content({
        "success": True,
        "connected": connected,
        "model": instances.model_client.get_config()["model"],
        "timestamp": iso_now(),
    })
