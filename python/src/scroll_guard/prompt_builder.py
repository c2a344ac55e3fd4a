"""
Prompt rendering for the classification model.

The rendered string is the only thing that crosses into the model call.
Rendering is deterministic: the same request always yields the same prompt.
"""

from .common_types import AnalysisRequest, RecommendedAction, UserPattern

PROMPT_CONTENT_CHARS = 500

SYSTEM_PROMPT = """You classify web browsing sessions for a digital wellbeing tool.
Reply with exactly one JSON object and nothing else."""

PATTERN_GUIDE = {
    UserPattern.DEEP_FOCUS: "documentation, tutorials, long-form articles read with attention",
    UserPattern.ACTIVE_SOCIALIZING: "social sites with real engagement: comments, messages, profiles",
    UserPattern.INTENTIONAL_LEISURE: "hobbies, trip or purchase planning, reviews",
    UserPattern.CASUAL_BROWSING: "headlines, forums, general-interest catch-up",
    UserPattern.DOOMSCROLLING: "endless feeds or short videos, fast scrolling, little engagement",
    UserPattern.ANXIETY_DRIVEN: "repeatedly checking news, health or forums for alarming updates",
}

ACTION_GUIDE = {
    RecommendedAction.SESSION_EXTENSION: "focused learning worth extending",
    RecommendedAction.GENTLE_REWARD: "healthy, educational browsing",
    RecommendedAction.MAINTAIN_LIMIT: "leisure or socializing within normal bounds",
    RecommendedAction.SHOW_WARNING: "casual browsing near the limit or early doomscrolling signs",
    RecommendedAction.IMMEDIATE_BREAK: "clear doomscrolling or anxiety-driven checking, especially past the limit",
}

RESPONSE_SCHEMA = """{
  "user_pattern": "<one of the patterns above, exact text>",
  "addiction_risk": <number from 0.0 to 1.0>,
  "educational_value": <number from 0.0 to 1.0>,
  "recommended_action": "<one of the actions above, exact text>",
  "reasoning": "<one short sentence, tone matched to the pattern>",
  "break_suggestion": "<short suggestion, or null unless warning or break>"
}"""


def build_prompt(request: AnalysisRequest) -> str:
    """Render a request into the model instruction."""
    ctx = request.context
    snippet = request.content[:PROMPT_CONTENT_CHARS]

    patterns = "\n".join(f'- "{p.value}": {hint}' for p, hint in PATTERN_GUIDE.items())
    actions = "\n".join(f'- "{a.value}": {hint}' for a, hint in ACTION_GUIDE.items())

    return f"""Assess this browsing session.

<context>
Domain: {ctx.domain}
Time of day: {ctx.time_of_day}
Scrolls: {ctx.scroll_count} of {ctx.max_scrolls} allowed
Seconds spent scrolling: {ctx.scroll_time}
</context>

<content>
{snippet}
</content>

Patterns:
{patterns}

Actions:
{actions}

Scores: addiction_risk is high for doomscrolling and anxiety-driven checking,
moderate for casual browsing, low for deep focus. educational_value is high
for deep focus and low for doomscrolling.

Respond with this JSON shape only:
{RESPONSE_SCHEMA}

Do not include a reward or bonus; it is computed from your classification."""
