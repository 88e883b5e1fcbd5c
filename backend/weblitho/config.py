from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
import os

# Look for .env in the repo root (two levels up from backend/weblitho/)
# In production, env vars are injected directly; .env is optional
_ENV_PATH = os.path.join(os.path.dirname(__file__), "..", "..", ".env")


class Settings(BaseSettings):
    openrouter_key: str = ""
    lovable_api_key: str = ""
    gemini_api_key: str = ""
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Upstream endpoints
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    lovable_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    netlify_api_url: str = "https://api.netlify.com/api/v1"
    vercel_api_url: str = "https://api.vercel.com/v13"

    # Sent to OpenRouter for attribution
    app_referer: str = "https://weblitho.app"
    app_title: str = "Weblitho AI Website Builder"

    llm_timeout: float = 120.0  # seconds
    validation_cache_ttl: int = 300  # seconds

    # Daily credit refill
    credit_reset_interval_hours: int = 24
    run_credit_scheduler: bool = False

    # Image uploads
    storage_bucket: str = "project-assets"
    max_upload_bytes: int = 5 * 1024 * 1024
    max_image_width: int = 1920

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=_ENV_PATH if os.path.exists(_ENV_PATH) else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings():
    return Settings()
