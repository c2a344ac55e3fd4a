"""
Scroll Guard MCP Server

Balances user autonomy against addictive scrolling. A content snippet and its
browsing context are classified by a language model into one of six
browsing patterns; the server recommends an action and grants bonus scrolls
from a fixed reward table.

The pipeline is built to survive an unreliable model:
- Similar requests are answered from a bounded, TTL-aware cache
- Model output is recovered through cascading JSON extraction and repair
- Any model failure degrades to a conservative fallback result
"""

__version__ = "1.0.0"

from .server import main, create_server
from .analysis_pipeline import AnalysisPipeline
from .cache_manager import AnalysisCache
from .rate_limiter import ClientRateLimiter
from .reward_policy import RewardPolicy
from .structured_output import ResponseParser
from .llm_client import ModelClient

__all__ = [
    "main",
    "create_server",
    "AnalysisPipeline",
    "AnalysisCache",
    "ClientRateLimiter",
    "RewardPolicy",
    "ResponseParser",
    "ModelClient",
]
