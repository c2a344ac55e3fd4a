#!/usr/bin/env python3
"""
Scroll Guard MCP Server

Classifies a browsing session (content snippet plus scroll behavior) into one
of six patterns, recommends an action and grants bonus scrolls.

Tools provided:
- analyze_content: Classify a content snippet and its browsing context
- analysis_status: Check server health, configuration and cache statistics
- test_connection: Check that the classification model answers

The API key is read once at startup; the server refuses to start without it.
Cache and rate-limit state live for the lifetime of the process only.
"""

import asyncio
import logging
import signal
import sys
import time
from dataclasses import dataclass
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from .analysis_pipeline import AnalysisPipeline
from .cache_manager import AnalysisCache
from .config import AnalysisConfig, ServerConfig, get_config
from .handlers import handle_analyze_content, handle_status, handle_test_connection
from .llm_client import ModelClient
from .logging_config import configure_logging
from .rate_limiter import ClientRateLimiter
from .reward_policy import RewardPolicy

logger = logging.getLogger(__name__)


@dataclass
class ServiceInstances:
    """Everything a tool handler needs, wired once per process."""
    config: AnalysisConfig
    server_config: ServerConfig
    model_client: ModelClient
    cache: AnalysisCache
    rate_limiter: ClientRateLimiter
    pipeline: AnalysisPipeline


def build_instances(config: AnalysisConfig, server_config: ServerConfig) -> ServiceInstances:
    """Wire the pipeline and its collaborators from configuration."""
    model_client = ModelClient(config)
    cache = AnalysisCache(
        max_size=config.cache_max_size,
        ttl_ms=config.cache_ttl_seconds * 1000,
        eviction_batch=config.cache_eviction_batch,
    )
    rate_limiter = ClientRateLimiter(
        max_requests=config.rate_limit_max_requests,
        window_ms=config.rate_limit_window_seconds * 1000,
    )
    pipeline = AnalysisPipeline(model_client, cache, RewardPolicy())
    return ServiceInstances(
        config=config,
        server_config=server_config,
        model_client=model_client,
        cache=cache,
        rate_limiter=rate_limiter,
        pipeline=pipeline,
    )


# Global instances
_instances: ServiceInstances | None = None


def get_instances() -> ServiceInstances:
    """Get or create the process-wide service instances."""
    global _instances

    if _instances is None:
        config, server_config = get_config()
        _instances = build_instances(config, server_config)

    return _instances


async def cleanup_resources() -> None:
    """Cleanup resources on shutdown."""
    if _instances is not None:
        try:
            await _instances.model_client.close()
        except Exception as e:
            logger.error("Error closing model client", extra={"error": str(e)})


CONTEXT_SCHEMA = {
    "type": "object",
    "properties": {
        "scrollCount": {"type": "number", "minimum": 0, "description": "Scrolls used so far this session"},
        "maxScrolls": {"type": "number", "exclusiveMinimum": 0, "description": "Scroll allowance for the session"},
        "domain": {"type": "string", "description": "Domain being browsed, e.g. 'news.example.com'"},
        "timestamp": {"type": "number", "description": "Client time in epoch milliseconds"},
        "timeOfDay": {"type": "string", "description": "Human-readable time of day, e.g. 'late evening'"},
        "scrollTime": {"type": "number", "minimum": 0, "description": "Seconds spent scrolling"},
    },
    "required": ["scrollCount", "maxScrolls", "domain", "timestamp", "timeOfDay", "scrollTime"],
}


def create_server() -> Server:
    """Create and configure the MCP server."""
    server = Server("scroll-guard")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return [
            Tool(
                name="analyze_content",
                description=(
                    "Classify a browsing session into one of six patterns "
                    "(Deep Focus/Learning, Active Socializing, Intentional Leisure, "
                    "Casual Browsing/Catch-up, Passive Consumption/Doomscrolling, "
                    "Anxiety-Driven Information Seeking). Returns addiction_risk and "
                    "educational_value on a 0.0-1.0 scale, a recommended action and "
                    "bonus_scrolls. bonus_scrolls always comes from the server's "
                    "reward table, never from the model."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "content": {
                            "type": "string",
                            "description": "Visible text of the page or feed (max 500,000 characters)",
                        },
                        "context": CONTEXT_SCHEMA,
                        "client_id": {
                            "type": "string",
                            "description": "Identifier used for per-client rate limiting",
                        },
                    },
                    "required": ["content", "context"],
                },
            ),
            Tool(
                name="analysis_status",
                description="Check server health, model configuration, cache and rate-limit statistics.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "include_entries": {
                            "type": "boolean",
                            "description": "Include per-entry cache details (truncated keys, age, hits). Default: false",
                        },
                    },
                },
            ),
            Tool(
                name="test_connection",
                description="Send a trivial prompt to the classification model and report whether it answered.",
                inputSchema={"type": "object", "properties": {}},
            ),
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool calls."""
        start_time = time.time()
        arguments = arguments or {}
        try:
            if name == "analyze_content":
                result = await handle_analyze_content(arguments, get_instances)
            elif name == "analysis_status":
                result = await handle_status(arguments, get_instances)
            elif name == "test_connection":
                result = await handle_test_connection(arguments, get_instances)
            else:
                result = [TextContent(type="text", text=f"Unknown tool: {name}")]

            logger.debug(
                "Tool call finished",
                extra={"tool": name, "elapsed_ms": int((time.time() - start_time) * 1000)},
            )
            return result

        except Exception as e:
            logger.exception("Tool call failed", extra={"tool": name})
            return [TextContent(type="text", text=f"Error: {str(e)}")]

    return server


async def _cancel(*tasks: asyncio.Task) -> None:
    for task in tasks:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


def _log_shutdown_summary() -> None:
    if _instances is None:
        return
    cache_stats = _instances.cache.stats()
    logger.info(
        "Server stopped",
        extra={
            "cache_size": cache_stats["size"],
            "cache_hit_rate": round(cache_stats["hit_rate"], 3),
            "rejected_requests": _instances.rate_limiter.get_stats()["rejected_requests"],
            "outcomes": _instances.pipeline.get_stats()["outcomes"],
        },
    )


async def run_server() -> None:
    """Serve over stdio until the client disconnects or SIGTERM/SIGINT arrives."""
    server = create_server()
    stop_requested = asyncio.Event()

    loop = asyncio.get_running_loop()
    signals = (signal.SIGTERM, signal.SIGINT) if sys.platform != "win32" else ()
    for sig in signals:
        loop.add_signal_handler(sig, stop_requested.set)

    try:
        async with stdio_server() as (read_stream, write_stream):
            serving = asyncio.create_task(
                server.run(read_stream, write_stream, server.create_initialization_options()),
                name="mcp-serve",
            )
            stopping = asyncio.create_task(stop_requested.wait(), name="shutdown-signal")

            await asyncio.wait({serving, stopping}, return_when=asyncio.FIRST_COMPLETED)
            if stopping.done():
                logger.info("Shutdown signal received, draining")
            await _cancel(serving, stopping)

            # Surface a transport failure to main() instead of exiting quietly
            if not serving.cancelled() and serving.exception() is not None:
                raise serving.exception()
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
        _log_shutdown_summary()
        await cleanup_resources()


def main():
    """Main entry point."""
    config, server_config = get_config()
    configure_logging(server_config.log_level, server_config.service_name)

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error("Invalid configuration", extra={"error": error})
        sys.exit(1)

    global _instances
    _instances = build_instances(config, server_config)
    logger.info("Server starting", extra={"model": config.model, "version": server_config.version})

    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error("Server error", extra={"error": str(e)})
        sys.exit(1)


if __name__ == "__main__":
    main()
