"""
Upstream LLM clients: OpenRouter, the Lovable AI gateway and Gemini.

OpenRouter and Lovable speak the OpenAI chat-completions format; Gemini
streams are rewritten into the same `data: {"choices": [...]}` frames so the
frontend only ever parses one format.
"""

import json
import logging
import re
from typing import AsyncIterator, Optional

import httpx

from weblitho.config import get_settings

logger = logging.getLogger(__name__)

_JSON_LINE_RE = re.compile(r"\{.*\}")

GEMINI_GENERATION_CONFIG = {
    "temperature": 0.7,
    "topP": 0.95,
    "topK": 40,
    "maxOutputTokens": 8192,
}


class ConfigurationError(RuntimeError):
    """A required API key or URL is missing."""


class UpstreamError(RuntimeError):
    """The upstream provider answered with a non-2xx status."""

    def __init__(self, provider: str, status_code: int, body: str = ""):
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(f"{provider} API error ({status_code}): {body[:300]}")


def _endpoint(provider: str) -> tuple[str, dict]:
    """Return (url, headers) for an OpenAI-compatible provider."""
    settings = get_settings()
    if provider == "openrouter":
        if not settings.openrouter_key:
            raise ConfigurationError("OPENROUTER_KEY is not configured")
        return settings.openrouter_url, {
            "Authorization": f"Bearer {settings.openrouter_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": settings.app_referer,
            "X-Title": settings.app_title,
        }
    if provider == "lovable":
        if not settings.lovable_api_key:
            raise ConfigurationError("LOVABLE_API_KEY is not configured")
        return settings.lovable_url, {
            "Authorization": f"Bearer {settings.lovable_api_key}",
            "Content-Type": "application/json",
        }
    raise ConfigurationError(f"Unsupported provider: {provider}")


def build_messages(system_prompt: str, history: Optional[list], prompt: str) -> list[dict]:
    return [
        {"role": "system", "content": system_prompt},
        *(history or []),
        {"role": "user", "content": prompt},
    ]


async def chat_completion(
    provider: str,
    model: str,
    messages: list[dict],
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> str:
    """Non-streaming chat completion. Returns the first choice's content ("" if absent)."""
    url, headers = _endpoint(provider)
    body = {"model": model, "messages": messages}
    if temperature is not None:
        body["temperature"] = temperature
    if max_tokens is not None:
        body["max_tokens"] = max_tokens

    async with httpx.AsyncClient(timeout=get_settings().llm_timeout) as client:
        resp = await client.post(url, headers=headers, json=body)

    if resp.status_code >= 400:
        logger.error("[%s] API error %s: %s", provider, resp.status_code, resp.text[:300])
        raise UpstreamError(provider, resp.status_code, resp.text)

    try:
        data = resp.json()
    except ValueError:
        raise UpstreamError(provider, resp.status_code, f"non-JSON response: {resp.text[:300]}")

    choices = (data.get("choices") or []) if isinstance(data, dict) else []
    if not choices:
        return ""
    return (choices[0].get("message") or {}).get("content") or ""


class UpstreamStream:
    """An open streaming response plus the client that owns it.

    Iterating `iter_bytes()` to the end (or abandoning it) closes both.
    """

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response):
        self.client = client
        self.response = response

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.aiter_raw():
                yield chunk
        finally:
            await self.aclose()

    async def iter_lines(self) -> AsyncIterator[str]:
        try:
            async for line in self.response.aiter_lines():
                yield line
        finally:
            await self.aclose()

    async def aclose(self):
        await self.response.aclose()
        await self.client.aclose()


async def _open_stream(provider: str, method: str, url: str, headers: dict, body: dict) -> UpstreamStream:
    client = httpx.AsyncClient(timeout=get_settings().llm_timeout)
    try:
        request = client.build_request(method, url, headers=headers, json=body)
        response = await client.send(request, stream=True)
    except Exception:
        await client.aclose()
        raise

    if response.status_code >= 400:
        text = (await response.aread()).decode("utf-8", errors="replace")
        await response.aclose()
        await client.aclose()
        logger.error("[%s] stream error %s: %s", provider, response.status_code, text[:300])
        raise UpstreamError(provider, response.status_code, text)

    return UpstreamStream(client, response)


async def open_chat_stream(provider: str, model: str, messages: list[dict]) -> UpstreamStream:
    """Start a `stream: true` chat completion; the SSE body is passed through untouched."""
    url, headers = _endpoint(provider)
    return await _open_stream(provider, "POST", url, headers, {
        "model": model,
        "messages": messages,
        "stream": True,
    })


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------

def gemini_contents(system_prompt: str, acknowledgement: str, history: Optional[list], prompt: str) -> list[dict]:
    """Gemini has no system role: send the prompt as a user turn plus a canned model reply."""
    contents = [
        {"role": "user", "parts": [{"text": system_prompt}]},
        {"role": "model", "parts": [{"text": acknowledgement}]},
    ]
    for msg in history or []:
        contents.append({
            "role": "user" if msg.get("role") == "user" else "model",
            "parts": [{"text": msg.get("content", "")}],
        })
    contents.append({"role": "user", "parts": [{"text": prompt}]})
    return contents


def _gemini_key(api_key: Optional[str]) -> str:
    key = api_key or get_settings().gemini_api_key
    if not key:
        raise ConfigurationError("GEMINI_API_KEY is not configured")
    return key


async def gemini_generate(model: str, contents: list[dict], api_key: Optional[str] = None,
                          generation_config: Optional[dict] = None) -> str:
    key = _gemini_key(api_key)
    url = f"{get_settings().gemini_base_url}/{model}:generateContent"
    body = {"contents": contents, "generationConfig": generation_config or GEMINI_GENERATION_CONFIG}

    async with httpx.AsyncClient(timeout=get_settings().llm_timeout) as client:
        resp = await client.post(url, params={"key": key}, json=body)

    if resp.status_code >= 400:
        logger.error("[gemini] API error %s: %s", resp.status_code, resp.text[:300])
        raise UpstreamError("gemini", resp.status_code, resp.text)
    return _gemini_text(resp.json())


async def open_gemini_stream(model: str, contents: list[dict], api_key: Optional[str] = None) -> UpstreamStream:
    key = _gemini_key(api_key)
    url = f"{get_settings().gemini_base_url}/{model}:streamGenerateContent?alt=sse&key={key}"
    return await _open_stream("gemini", "POST", url, {"Content-Type": "application/json"}, {
        "contents": contents,
        "generationConfig": GEMINI_GENERATION_CONFIG,
    })


def _gemini_text(payload) -> str:
    try:
        return payload["candidates"][0]["content"]["parts"][0]["text"] or ""
    except (KeyError, IndexError, TypeError):
        return ""


def openai_delta_frame(text: str) -> str:
    frame = {"choices": [{"delta": {"content": text}, "index": 0}]}
    return f"data: {json.dumps(frame)}\n\n"


async def gemini_stream_to_openai(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Rewrite Gemini stream lines into OpenAI delta frames, ending with [DONE].

    Lines that do not hold a parseable chunk are logged and skipped.
    """
    try:
        async for line in lines:
            if not line.strip():
                continue
            m = _JSON_LINE_RE.search(line)
            if not m:
                continue
            try:
                text = _gemini_text(json.loads(m.group(0)))
            except ValueError as e:
                logger.warning("[gemini] Error parsing chunk: %s", e)
                continue
            if text:
                yield openai_delta_frame(text)
    except httpx.HTTPError as e:
        logger.error("[gemini] Stream error: %s", e)
    yield "data: [DONE]\n\n"
