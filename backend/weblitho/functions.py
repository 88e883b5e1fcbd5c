"""
HTTP surface of the serverless functions, mounted under /functions/v1.

Each handler keeps the request/response contract the frontend already
speaks: camelCase JSON bodies, raw OpenAI-style SSE for generations and
`{"error": ...}` bodies on failure.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from weblitho import credits, llm
from weblitho.deploy import deploy_site
from weblitho.json_extract import extract_json_object
from weblitho.model_catalog import resolve_model
from weblitho.prompts import (
    CONTRACT_ACKNOWLEDGEMENT,
    CONTRACT_PROMPT,
    GEMINI_ACKNOWLEDGEMENT,
    GEMINI_HTML_PROMPT,
    OPENROUTER_HTML_PROMPT,
    build_system_prompt,
    contract_user_prompt,
    is_modification,
)
from weblitho.validation import default_result, review_code, validate_weblitho

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

RATE_LIMITED = "Rate limit exceeded. Please try again later."
PAYMENT_REQUIRED = "Payment required. Please add credits."

DEFAULT_OPENROUTER_MODEL = "x-ai/grok-4.1-fast:free"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_CONTRACT_MODEL = "gemini-2.0-flash-exp"
CONTRACT_GENERATION_CONFIG = {
    "temperature": 0.3,
    "topP": 0.95,
    "topK": 40,
    "maxOutputTokens": 8192,
}


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())


class GeneratePageRequest(_CamelModel):
    prompt: str
    conversation_history: list[dict] = Field(default_factory=list, alias="conversationHistory")
    current_code: str | None = Field(default=None, alias="currentCode")
    model: str = "google/gemini-2.0-flash"


class OpenRouterRequest(_CamelModel):
    prompt: str
    conversation_history: list[dict] = Field(default_factory=list, alias="conversationHistory")
    model: str = DEFAULT_OPENROUTER_MODEL


class GeminiRequest(_CamelModel):
    prompt: str
    conversation_history: list[dict] = Field(default_factory=list, alias="conversationHistory")
    model: str | None = None
    api_key: str | None = Field(default=None, alias="apiKey")


class ContractRequest(_CamelModel):
    prompt: str
    contract_type: str = Field(default="ERC20", alias="contractType")
    model: str = DEFAULT_CONTRACT_MODEL


class DeployFile(BaseModel):
    path: str
    content: str


class DeployRequest(_CamelModel):
    provider: str
    access_token: str = Field(default="", alias="accessToken")
    project_name: str = Field(default="", alias="projectName")
    files: list[DeployFile] = Field(default_factory=list)
    html_content: str | None = Field(default=None, alias="htmlContent")


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


def _stream(upstream: llm.UpstreamStream) -> StreamingResponse:
    return StreamingResponse(upstream.iter_bytes(), media_type="text/event-stream")


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

@router.post("/generate-page")
async def generate_page(request: GeneratePageRequest):
    """Proxy a streaming generation to OpenRouter or the Lovable gateway."""
    try:
        config = resolve_model(request.model)
        mode = "MODIFICATION" if is_modification(request.current_code) else "NEW"
        logger.info(
            "[generate-page] requested=%s provider=%s model=%s mode=%s",
            request.model, config.provider, config.upstream_model, mode,
        )
        messages = llm.build_messages(
            build_system_prompt(request.current_code),
            request.conversation_history,
            request.prompt,
        )
        upstream = await llm.open_chat_stream(config.provider, config.upstream_model, messages)
        return _stream(upstream)
    except llm.UpstreamError as e:
        if e.status_code == 429:
            return _error(429, RATE_LIMITED)
        if e.status_code == 402:
            return _error(402, PAYMENT_REQUIRED)
        return _error(500, "AI gateway error", details=e.body)
    except Exception as e:
        logger.error("[generate-page] error: %s", e)
        return _error(500, str(e))


@router.post("/generate-with-openrouter")
async def generate_with_openrouter(request: OpenRouterRequest):
    try:
        messages = llm.build_messages(OPENROUTER_HTML_PROMPT, request.conversation_history, request.prompt)
        logger.info("[generate-with-openrouter] Calling OpenRouter with %s", request.model)
        upstream = await llm.open_chat_stream("openrouter", request.model, messages)
        return _stream(upstream)
    except llm.UpstreamError as e:
        return _error(e.status_code, f"OpenRouter API error: {e.status_code}")
    except Exception as e:
        logger.error("[generate-with-openrouter] error: %s", e)
        return _error(500, str(e))


@router.post("/generate-page-gemini")
async def generate_page_gemini(request: GeminiRequest):
    """Stream from Gemini with the user's own key, re-framed as OpenAI deltas."""
    try:
        if not request.api_key:
            raise ValueError("Gemini API key is required")
        contents = llm.gemini_contents(
            GEMINI_HTML_PROMPT, GEMINI_ACKNOWLEDGEMENT, request.conversation_history, request.prompt,
        )
        upstream = await llm.open_gemini_stream(request.model or DEFAULT_GEMINI_MODEL, contents, request.api_key)
        return StreamingResponse(
            llm.gemini_stream_to_openai(upstream.iter_lines()),
            media_type="text/event-stream",
        )
    except llm.UpstreamError as e:
        return _error(e.status_code, f"Gemini API error: {e.body}")
    except Exception as e:
        logger.error("[generate-page-gemini] error: %s", e)
        return _error(500, str(e))


@router.post("/generate-contract")
async def generate_contract(request: ContractRequest):
    """One-shot Solidity generation; returns the contract JSON the model produced."""
    try:
        user_prompt = contract_user_prompt(request.contract_type, request.prompt)
        if request.model.startswith("google/"):
            messages = llm.build_messages(CONTRACT_PROMPT, [], user_prompt)
            text = await llm.chat_completion("lovable", request.model, messages, temperature=0.3)
        else:
            contents = llm.gemini_contents(CONTRACT_PROMPT, CONTRACT_ACKNOWLEDGEMENT, [], user_prompt)
            text = await llm.gemini_generate(request.model, contents, generation_config=CONTRACT_GENERATION_CONFIG)

        contract = extract_json_object(text)
        if contract is None:
            raise ValueError("Failed to parse contract JSON from AI response")
        return contract
    except llm.UpstreamError as e:
        return _error(e.status_code, f"AI API error: {e.body}")
    except Exception as e:
        logger.error("[generate-contract] error: %s", e)
        return _error(500, str(e))


# ---------------------------------------------------------------------------
# Validation (always 200)
# ---------------------------------------------------------------------------

async def _read_code(request: Request):
    body = await request.json()
    return body.get("code") if isinstance(body, dict) else None


@router.post("/validate-code")
async def validate_code(request: Request):
    try:
        code = await _read_code(request)
    except ValueError as e:
        logger.error("[validate-code] Unreadable request body: %s", e)
        return default_result(70, error=str(e))
    return await review_code(code)


@router.post("/weblitho-validate")
async def weblitho_validate(request: Request):
    try:
        code = await _read_code(request)
    except ValueError as e:
        logger.error("[weblitho-validate] Unreadable request body: %s", e)
        return default_result(75, validated=False, error=str(e))
    return await validate_weblitho(code)


# ---------------------------------------------------------------------------
# Credits & deploys
# ---------------------------------------------------------------------------

@router.post("/reset-daily-credits")
async def reset_daily_credits_endpoint():
    try:
        count = await credits.reset_daily_credits()
    except Exception as e:
        logger.error("[reset-daily-credits] error: %s", e)
        return _error(500, str(e))
    return {
        "success": True,
        "message": f"Reset credits for {count} users",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/deploy-site")
async def deploy_site_endpoint(request: DeployRequest):
    try:
        result = await deploy_site(
            request.provider,
            request.access_token,
            request.project_name,
            [f.model_dump() for f in request.files],
            request.html_content,
        )
    except Exception as e:
        logger.error("[deploy] Deployment error: %s", e)
        return JSONResponse({"success": False, "error": str(e)}, status_code=400)
    logger.info("[deploy] Deployment result: %s", result)
    return result
