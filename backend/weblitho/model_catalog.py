"""
Selectable generation models and the upstream they route to.

Free models go through OpenRouter; premium models through the Lovable AI
gateway. Credit multipliers scale the per-generation cost.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelConfig:
    id: str
    label: str
    provider: str  # openrouter | lovable | gemini
    upstream_model: str
    credit_multiplier: float = 1.0
    requires_paid_plan: bool = False


MODELS: dict[str, ModelConfig] = {
    m.id: m
    for m in [
        # Recommendation tiers
        ModelConfig("mimo-v2-flash", "Weblitho Fast", "openrouter", "xiaomi/mimo-v2-flash:free", 1.0),
        ModelConfig("devstral", "Weblitho Code", "openrouter", "mistralai/devstral-2512:free", 1.0),
        ModelConfig("qwen3-coder", "Weblitho Pro", "openrouter", "qwen/qwen3-coder:free", 1.5),
        ModelConfig("deepseek-chimera", "Weblitho Premium", "openrouter", "tngtech/deepseek-r1t2-chimera:free", 2.0),
        # Legacy frontend ids
        ModelConfig("google/gemini-flash-1.5", "DeepSeek R1T2 Chimera", "openrouter", "tngtech/deepseek-r1t2-chimera:free", 1.0),
        ModelConfig("deepseek-free", "DeepSeek (free)", "openrouter", "tngtech/deepseek-r1t2-chimera:free", 1.0),
        ModelConfig("google/gemini-2.0-flash", "Gemini 2.0 Flash", "lovable", "google/gemini-2.0-flash", 1.5, True),
        ModelConfig("google/gemini-2.0-pro", "Gemini 2.0 Pro", "lovable", "google/gemini-2.5-pro", 2.0, True),
        ModelConfig("google/gemini-2.5-flash", "Gemini 2.5 Flash", "lovable", "google/gemini-2.5-flash", 1.5, True),
        ModelConfig("google/gemini-2.5-pro", "Gemini 2.5 Pro", "lovable", "google/gemini-2.5-pro", 2.5, True),
    ]
}

DEFAULT_MODEL_ID = "google/gemini-2.0-flash"


def resolve_model(model_id: str | None) -> ModelConfig:
    """Look up a model, falling back to the default gateway model."""
    if model_id and model_id in MODELS:
        return MODELS[model_id]
    return MODELS[DEFAULT_MODEL_ID]


def credit_multiplier(model_id: str | None) -> float:
    if model_id and model_id in MODELS:
        return MODELS[model_id].credit_multiplier
    return 1.0


def list_models() -> list[dict]:
    return [
        {
            "id": m.id,
            "label": m.label,
            "provider": m.provider,
            "credit_multiplier": m.credit_multiplier,
            "requires_paid_plan": m.requires_paid_plan,
        }
        for m in MODELS.values()
    ]
