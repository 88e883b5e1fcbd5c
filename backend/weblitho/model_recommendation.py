"""
Prompt complexity scoring and model recommendation.

Keyword heuristics only: each keyword table adds (or removes) a fixed
weight per match, then the raw score picks a tier. The reported score is
clamped to 0..100 after the tier has been chosen.
"""

import re
from dataclasses import asdict, dataclass

from weblitho.model_catalog import credit_multiplier


COMPLEXITY_INDICATORS = {
    "simple": [
        "change", "update", "fix", "color", "text", "button", "font", "size",
        "spacing", "margin", "padding", "simple", "basic", "quick",
    ],
    "medium": [
        "add", "create", "section", "hero", "footer", "navbar", "card",
        "form", "gallery", "grid", "list", "animation", "responsive",
    ],
    "complex": [
        "dashboard", "multi-page", "e-commerce", "shop", "saas", "landing",
        "portfolio", "blog", "authentication", "api", "database", "full",
    ],
    "premium": [
        "enterprise", "complete", "professional", "production", "advanced",
        "custom", "complex", "sophisticated", "interactive", "dynamic",
    ],
}

PAGE_INDICATORS = [
    "page", "pages", "home", "about", "contact", "pricing", "features",
    "testimonials", "faq", "blog", "team", "services", "portfolio",
]

FEATURE_INDICATORS = [
    "modal", "slider", "carousel", "tabs", "accordion", "dropdown",
    "search", "filter", "sort", "pagination", "infinite scroll",
    "dark mode", "theme", "localization", "i18n", "seo",
]

# (min raw score, complexity, model id, reason), checked top-down
TIERS = [
    (80, "premium", "deepseek-chimera",
     "Complex multi-page project with advanced features - Premium model recommended for best results"),
    (40, "complex", "qwen3-coder",
     "Full website generation - Pro model provides excellent quality"),
    (10, "medium", "devstral",
     "Component or section creation - Code model is ideal for this"),
]
SIMPLE_TIER = ("simple", "mimo-v2-flash", "Quick modification - Fast model is perfect for speed")


@dataclass
class PromptAnalysis:
    complexity: str  # simple | medium | complex | premium
    score: int
    factors: list[str]
    recommended_model: str
    reason: str

    def to_dict(self) -> dict:
        return asdict(self)


def _matches(text: str, keywords: list[str]) -> list[str]:
    return [k for k in keywords if k in text]


def analyze_prompt(prompt: str) -> PromptAnalysis:
    lowered = (prompt or "").lower()
    words = re.split(r"\s+", lowered)
    score = 0
    factors = []

    simple = _matches(lowered, COMPLEXITY_INDICATORS["simple"])
    if simple:
        score -= len(simple) * 5
        if len(simple) >= 3:
            factors.append("Simple modification request")

    medium = _matches(lowered, COMPLEXITY_INDICATORS["medium"])
    if medium:
        score += len(medium) * 10
        factors.append(f"{len(medium)} component(s) mentioned")

    complex_ = _matches(lowered, COMPLEXITY_INDICATORS["complex"])
    if complex_:
        score += len(complex_) * 20
        factors.append(f"Complex project type: {', '.join(complex_[:2])}")

    premium = _matches(lowered, COMPLEXITY_INDICATORS["premium"])
    if premium:
        score += len(premium) * 30
        factors.append("Premium/enterprise requirements")

    pages = _matches(lowered, PAGE_INDICATORS)
    if len(pages) >= 3:
        score += 25
        factors.append(f"Multi-page website ({len(pages)} pages)")
    elif pages:
        score += len(pages) * 5

    features = _matches(lowered, FEATURE_INDICATORS)
    if features:
        score += len(features) * 15
        factors.append(f"Advanced features: {', '.join(features[:2])}")

    if len(words) > 100:
        score += 30
        factors.append("Detailed requirements")
    elif len(words) > 50:
        score += 15
        factors.append("Moderate detail")
    elif len(words) < 10:
        score -= 20

    complexity, model, reason = SIMPLE_TIER
    for threshold, tier_complexity, tier_model, tier_reason in TIERS:
        if score >= threshold:
            complexity, model, reason = tier_complexity, tier_model, tier_reason
            break

    return PromptAnalysis(
        complexity=complexity,
        score=max(0, min(100, score)),
        factors=factors or ["Basic request"],
        recommended_model=model,
        reason=reason,
    )


def should_recommend(prompt: str) -> bool:
    """Only analyze prompts with some substance (more than 5 characters)."""
    return len((prompt or "").strip()) > 5


def get_model_cost(model_id: str) -> float:
    return credit_multiplier(model_id)
