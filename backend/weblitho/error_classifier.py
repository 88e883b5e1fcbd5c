"""
Classify raw generation errors into user-facing categories.

Pure Python, no AI. Rules are checked in order against the lowercased
message and the first match wins, so a message mentioning both "429" and
"unauthorized" is a rate limit. No match falls back to the generic
"Generation Failed" category carrying the raw message.

Categories:
- rate_limit
- insufficient_credits
- session_expired
- premium_required
- server_unavailable
- network
- generic
"""

from dataclasses import asdict, dataclass, field
from typing import Optional


@dataclass
class ErrorAction:
    label: str
    kind: str  # retry | plans | login | upgrade


@dataclass
class ErrorInfo:
    category: str
    title: str
    description: str
    severity: str  # error | warning | info
    action: Optional[ErrorAction] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class _Rule:
    needles: list[str]
    category: str
    title: str
    description: str
    severity: str
    action: Optional[ErrorAction] = field(default=None)


RETRY = ErrorAction(label="Try Again", kind="retry")

RULES: list[_Rule] = [
    _Rule(
        needles=["rate limit", "429", "too many"],
        category="rate_limit",
        title="Rate Limit Reached",
        description="You've made too many requests. Please wait a moment before trying again.",
        severity="warning",
        action=RETRY,
    ),
    _Rule(
        needles=["credit", "402", "insufficient"],
        category="insufficient_credits",
        title="Insufficient Credits",
        description="You don't have enough credits for this generation. Consider upgrading your plan.",
        severity="warning",
        action=ErrorAction(label="View Plans", kind="plans"),
    ),
    _Rule(
        needles=["session", "401", "unauthorized", "log in"],
        category="session_expired",
        title="Session Expired",
        description="Your session has expired. Please log in again to continue.",
        severity="error",
        action=ErrorAction(label="Log In", kind="login"),
    ),
    _Rule(
        needles=["paid plan", "403", "upgrade"],
        category="premium_required",
        title="Premium Model",
        description="This model requires a paid plan. Upgrade to access premium features.",
        severity="warning",
        action=ErrorAction(label="Upgrade", kind="upgrade"),
    ),
    _Rule(
        needles=["server", "500", "unavailable", "service"],
        category="server_unavailable",
        title="Service Temporarily Unavailable",
        description="The AI service is experiencing issues. Please try again in a few moments.",
        severity="error",
        action=RETRY,
    ),
    _Rule(
        needles=["network", "connection", "fetch"],
        category="network",
        title="Connection Error",
        description="Unable to connect to the server. Check your internet connection and try again.",
        severity="error",
        action=RETRY,
    ),
]

DEFAULT_DESCRIPTION = "An unexpected error occurred. Please try again."


def _contains_any(haystack: str, needles: list[str]) -> bool:
    return any(n in haystack for n in needles)


def parse_error(error: Optional[str]) -> ErrorInfo:
    """Map a raw error message to a user-facing ErrorInfo. Never returns None."""
    text = (error or "").strip()
    lowered = text.lower()

    for rule in RULES:
        if _contains_any(lowered, rule.needles):
            return ErrorInfo(
                category=rule.category,
                title=rule.title,
                description=rule.description,
                severity=rule.severity,
                action=rule.action,
            )

    return ErrorInfo(
        category="generic",
        title="Generation Failed",
        description=text or DEFAULT_DESCRIPTION,
        severity="error",
        action=RETRY,
    )


def error_message_for_status(status_code: int) -> str:
    """Fallback message for a failed generation response with no JSON body."""
    if status_code == 429:
        return "Rate limit exceeded. Please wait a moment and try again."
    if status_code == 402:
        return "Insufficient credits. Please add more credits."
    if status_code == 403:
        return "This model requires a paid plan. Please upgrade."
    if status_code == 401:
        return "Session expired. Please log in again."
    if status_code >= 500:
        return "AI service temporarily unavailable."
    return "Failed to generate content"
