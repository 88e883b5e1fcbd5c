import json
from typing import AsyncIterator

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_event(event_type: str, data: dict) -> str:
    """Format a Server-Sent Event string."""
    payload = {"type": event_type, **data}
    return f"data: {json.dumps(payload)}\n\n"


def delta_content(line: str) -> str | None:
    """Content of one OpenAI-style `data:` line, "" for non-content lines, None at [DONE]."""
    line = line.strip()
    if not line.startswith("data: "):
        return ""
    payload = line[6:].strip()
    if payload == "[DONE]":
        return None
    try:
        parsed = json.loads(payload)
        return parsed["choices"][0]["delta"].get("content") or ""
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        return ""


async def iter_delta_content(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield non-empty delta contents from an upstream SSE line stream until [DONE]."""
    async for line in lines:
        content = delta_content(line)
        if content is None:
            break
        if content:
            yield content
