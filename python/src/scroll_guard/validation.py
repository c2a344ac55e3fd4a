"""
Request validation for the analysis tool.

Hard rules reject the request with a ValidationError naming the first
violated rule. Soft rules only log a warning. A bug inside the validator
itself must never turn into an outage, so unexpected faults are logged and
the request is let through.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from .common_types import AnalysisRequest, BrowsingContext
from .errors import ValidationError

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 500_000
SCROLL_SLACK = 100
REQUIRED_CONTEXT_FIELDS = ("scrollCount", "maxScrolls", "domain", "timestamp", "timeOfDay", "scrollTime")
DOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


@dataclass
class ValidationOutcome:
    """A validated request plus any soft-check warnings."""
    request: AnalysisRequest
    warnings: list[str] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid count or timestamp
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _check_content(payload: dict[str, Any]) -> str:
    content = payload.get("content")
    if content is None:
        raise ValidationError("Missing required field: content", field="content")
    if not isinstance(content, str):
        raise ValidationError('Field "content" must be a string', field="content")
    if not content.strip():
        raise ValidationError('Field "content" cannot be empty', field="content")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(
            f"Content too large. Maximum size is {MAX_CONTENT_LENGTH} characters",
            field="content",
        )
    return content


def _check_context(payload: dict[str, Any]) -> BrowsingContext:
    context = payload.get("context")
    if context is None:
        raise ValidationError("Missing required field: context", field="context")
    if not isinstance(context, dict):
        raise ValidationError('Field "context" must be an object', field="context")

    for name in REQUIRED_CONTEXT_FIELDS:
        if name not in context:
            raise ValidationError(f"Missing required context field: {name}", field=f"context.{name}")

    rules = [
        ("scrollCount", lambda v: _is_number(v) and v >= 0, "a non-negative number"),
        ("maxScrolls", lambda v: _is_number(v) and v > 0, "a positive number"),
        ("domain", _is_non_empty_string, "a non-empty string"),
        ("timestamp", lambda v: _is_number(v) and v > 0, "a positive number"),
        ("timeOfDay", _is_non_empty_string, "a non-empty string"),
        ("scrollTime", lambda v: _is_number(v) and v >= 0, "a non-negative number"),
    ]
    for name, check, expectation in rules:
        if not check(context[name]):
            raise ValidationError(f'Field "context.{name}" must be {expectation}', field=f"context.{name}")

    return BrowsingContext(
        scroll_count=context["scrollCount"],
        max_scrolls=context["maxScrolls"],
        domain=context["domain"].strip(),
        timestamp=context["timestamp"],
        time_of_day=context["timeOfDay"].strip(),
        scroll_time=context["scrollTime"],
    )


def _soft_checks(ctx: BrowsingContext) -> list[str]:
    warnings = []

    if ctx.scroll_count > ctx.max_scrolls + SCROLL_SLACK:
        warnings.append("scrollCount significantly exceeds maxScrolls")
        logger.warning(
            "Validation warning: scrollCount significantly exceeds maxScrolls",
            extra={"scroll_count": ctx.scroll_count, "max_scrolls": ctx.max_scrolls},
        )

    if not DOMAIN_PATTERN.match(ctx.domain):
        warnings.append("domain format unusual")
        logger.warning(
            "Validation warning: domain format unusual but allowing request",
            extra={"domain": ctx.domain},
        )

    return warnings


def validate_request(payload: Any) -> ValidationOutcome:
    """
    Validate a raw analysis payload.

    Args:
        payload: Decoded request body, expected to hold "content" and "context"

    Returns:
        ValidationOutcome with the typed request

    Raises:
        ValidationError: On the first violated rule
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object")

    request = AnalysisRequest(content=_check_content(payload), context=_check_context(payload))

    try:
        warnings = _soft_checks(request.context)
    except Exception as e:
        logger.error("Validation soft checks failed, allowing request", extra={"error": str(e)})
        warnings = []

    return ValidationOutcome(request=request, warnings=warnings)
