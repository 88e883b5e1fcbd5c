"""
Generated-code validation with permissive fallbacks.

The validators never fail the caller: an unavailable provider, a non-2xx
answer or unparseable model output all collapse to a default payload with
`valid: true`, so the generation pipeline never hard-stops here.
"""

import json
import logging
import time
from typing import Optional

from weblitho import llm
from weblitho.config import get_settings
from weblitho.json_extract import extract_json_object, strip_code_fences
from weblitho.prompts import CODE_REVIEW_PROMPT, VALIDATOR_PROMPT

logger = logging.getLogger(__name__)

CODE_REVIEW_MODEL = "kwaipilot/kat-coder-pro:free"
LOVABLE_VALIDATOR_MODEL = "google/gemini-2.5-flash-lite"
OPENROUTER_VALIDATOR_MODEL = "qwen/qwen3-coder:free"

MIN_VALIDATION_LENGTH = 100
MAX_ISSUES = 10
MAX_SUGGESTIONS = 5

SEMANTIC_TAGS = ["<header", "<main", "<section", "<footer", "<nav", "<article"]


def default_result(score: int, **extra) -> dict:
    result = {"valid": True, "score": score, "issues": [], "suggestions": [], "security": []}
    result.update(extra)
    return result


def heuristic_validation(code: str) -> dict:
    """Rule-of-thumb review used when no AI provider is reachable."""
    issues = []
    suggestions = []
    security = []
    score = 85

    if "<!DOCTYPE html>" not in code and "export" not in code:
        issues.append("Missing DOCTYPE or module export")
        score -= 5

    if "<img" in code and "alt=" not in code:
        issues.append("Images missing alt attributes")
        score -= 5

    if "onclick=" in code or "onload=" in code:
        security.append("Inline event handlers detected - consider using React event handlers")
        score -= 5

    if "dangerouslySetInnerHTML" in code:
        security.append("dangerouslySetInnerHTML used - ensure content is sanitized")
        score -= 10

    if "min-h-screen" not in code and "h-screen" not in code:
        suggestions.append("Consider adding full-height layout")

    if "md:" not in code and "lg:" not in code:
        suggestions.append("Add responsive breakpoints for better mobile experience")
        score -= 5

    if "Lorem ipsum" in code or "lorem ipsum" in code:
        issues.append("Placeholder text detected - replace with real content")
        score -= 10

    has_aria = "aria-" in code or "role=" in code
    if not has_aria:
        suggestions.append("Add ARIA attributes for better accessibility")

    if not any(tag in code for tag in SEMANTIC_TAGS):
        suggestions.append("Use semantic HTML elements for better structure")
        score -= 5

    if score >= 85:
        design_quality = "excellent"
    elif score >= 70:
        design_quality = "good"
    elif score >= 55:
        design_quality = "average"
    else:
        design_quality = "poor"

    return {
        "valid": len(issues) < 3,
        "score": max(50, score),
        "issues": issues,
        "suggestions": suggestions,
        "security": security,
        "designQuality": design_quality,
        "accessibility": "good" if has_aria else "needs-improvement",
        "validated": True,
        "heuristic": True,
    }


def _clamp_score(value, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(min(100, max(0, value)))


def _as_list(value, limit: Optional[int] = None) -> list:
    if not isinstance(value, list):
        return []
    return value[:limit] if limit is not None else value


def normalize_validation(raw: dict) -> dict:
    """Fill defaults and clamp so every result has a bool `valid` and 0 <= score <= 100."""
    valid = raw.get("valid")
    return {
        "valid": valid if isinstance(valid, bool) else True,
        "score": _clamp_score(raw.get("score"), 80),
        "issues": _as_list(raw.get("issues"), MAX_ISSUES),
        "suggestions": _as_list(raw.get("suggestions"), MAX_SUGGESTIONS),
        "security": _as_list(raw.get("security")),
        "designQuality": raw.get("designQuality") or "good",
        "accessibility": raw.get("accessibility") or "good",
    }


def parse_review_content(content: str) -> Optional[dict]:
    """Strict parse after removing code fences. None if the model did not return a JSON object."""
    try:
        parsed = json.loads(strip_code_fences(content))
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


class ValidationCache:
    """In-process TTL cache keyed on code length plus its head and tail."""

    def __init__(self, ttl_seconds: float):
        self.ttl = ttl_seconds
        self._entries: dict[str, tuple[dict, float]] = {}

    @staticmethod
    def key(code: str) -> str:
        return f"{len(code)}-{code[:100]}-{code[-100:]}"

    def get(self, code: str, now: Optional[float] = None) -> Optional[dict]:
        now = time.time() if now is None else now
        entry = self._entries.get(self.key(code))
        if entry and now - entry[1] < self.ttl:
            return entry[0]
        return None

    def set(self, code: str, result: dict, now: Optional[float] = None):
        now = time.time() if now is None else now
        self._entries[self.key(code)] = (result, now)
        for k in [k for k, (_, ts) in self._entries.items() if now - ts > self.ttl]:
            del self._entries[k]

    def __len__(self):
        return len(self._entries)


_cache: Optional[ValidationCache] = None


def get_cache() -> ValidationCache:
    global _cache
    if _cache is None:
        _cache = ValidationCache(get_settings().validation_cache_ttl)
    return _cache


async def review_code(code) -> dict:
    """Single-model code review (validate-code)."""
    try:
        if not isinstance(code, str):
            raise TypeError("code must be a string")
        messages = [
            {"role": "system", "content": CODE_REVIEW_PROMPT},
            {"role": "user", "content": f"Review this code:\n\n{code[:10000]}"},
        ]
        logger.info("[validate-code] Validating code with %s", CODE_REVIEW_MODEL)
        try:
            content = await llm.chat_completion("openrouter", CODE_REVIEW_MODEL, messages, temperature=0.3)
        except llm.UpstreamError as e:
            logger.error("[validate-code] Upstream error %s", e.status_code)
            return default_result(75, suggestions=["Validation service temporarily unavailable"])

        validation = parse_review_content(content)
        if validation is None:
            logger.info("[validate-code] Could not parse validation response, using defaults")
            return default_result(80)
        result = normalize_validation(validation)
        logger.info("[validate-code] Validation complete: score=%s", result["score"])
        return result
    except Exception as e:
        logger.exception("[validate-code] error")
        return default_result(70, error=str(e))


async def validate_weblitho(code, cache: Optional[ValidationCache] = None) -> dict:
    """Cached, provider-failover validation (weblitho-validate)."""
    start = time.time()
    try:
        if not isinstance(code, str) or len(code) < MIN_VALIDATION_LENGTH:
            return default_result(100, validated=False, message="Code too short for validation")

        cache = cache or get_cache()
        cached = cache.get(code)
        if cached is not None:
            logger.info("[weblitho-validate] Returning cached validation result")
            return {**cached, "cached": True}

        settings = get_settings()
        if not settings.lovable_api_key and not settings.openrouter_key:
            logger.info("[weblitho-validate] No AI API keys available, returning heuristic validation")
            return heuristic_validation(code)

        if settings.lovable_api_key:
            provider, model, limit = "lovable", LOVABLE_VALIDATOR_MODEL, 20000
        else:
            provider, model, limit = "openrouter", OPENROUTER_VALIDATOR_MODEL, 15000

        messages = [
            {"role": "system", "content": VALIDATOR_PROMPT},
            {"role": "user", "content": f"Validate this code:\n\n{code[:limit]}"},
        ]
        logger.info("[weblitho-validate] Calling validator via %s", provider)
        try:
            content = await llm.chat_completion(provider, model, messages)
        except llm.UpstreamError as e:
            logger.error("[weblitho-validate] %s validator API error: %s", provider, e.status_code)
            return heuristic_validation(code)

        parsed = extract_json_object(content)
        if parsed is None:
            logger.error("[weblitho-validate] Failed to parse validation response")
            parsed = heuristic_validation(code)

        result = normalize_validation(parsed)
        result.update({
            "validated": True,
            "provider": provider,
            "duration": int((time.time() - start) * 1000),
        })
        cache.set(code, result)
        logger.info("[weblitho-validate] Score: %s, Duration: %sms", result["score"], result["duration"])
        return result
    except Exception as e:
        logger.exception("[weblitho-validate] error")
        return default_result(75, validated=False, error=str(e))
