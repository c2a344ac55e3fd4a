"""
Request Handlers for Scroll Guard MCP Server.

- analysis: analyze_content, analysis_status and test_connection tools
"""

from .analysis import (
    handle_analyze_content,
    handle_status,
    handle_test_connection,
)

__all__ = [
    "handle_analyze_content",
    "handle_status",
    "handle_test_connection",
]
