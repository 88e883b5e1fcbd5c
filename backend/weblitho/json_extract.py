"""
Best-effort extraction of JSON and HTML from raw LLM output.
Pure Python, no AI. Every function returns something usable; nothing raises
on malformed model output.
"""

import json
import re
from dataclasses import asdict, dataclass, field
from typing import Optional


_FENCE_RE = re.compile(r"```(?:json|html|typescript|tsx|jsx|javascript)?\s*", re.IGNORECASE)
_THINK_RE = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
_PARTIAL_PREVIEW_RE = re.compile(r'"preview"\s*:\s*"([\s\S]*?)(?:"\s*[,}]|\s*$)')
_DOCUMENT_RE = re.compile(r"<!DOCTYPE html>[\s\S]*</html>", re.IGNORECASE)
_HTML_RE = re.compile(r"<html[\s\S]*</html>", re.IGNORECASE)

DOCTYPE = "<!DOCTYPE html>"


@dataclass
class ExtractedOutput:
    preview: str = ""
    files: list[dict] = field(default_factory=list)
    pages: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang line and a trailing ``` from LLM output."""
    text = (text or "").strip()
    text = re.sub(r"^```(?:html|json|jsx|tsx|typescript|javascript)?\s*\n?", "", text)
    text = re.sub(r"\n?```\s*$", "", text.strip())
    return text.strip()


def strip_think_tags(text: str) -> str:
    """Drop <think>...</think> reasoning blocks emitted by DeepSeek-style models."""
    return _THINK_RE.sub("", text or "")


def extract_json_object(raw: Optional[str]) -> Optional[dict]:
    """Try several strategies to pull a JSON object out of model text.

    Returns None when nothing parses to a dict.
    """
    text = (raw or "").strip()
    if not text:
        return None

    # Strategy 1: direct parse
    candidates = [text]
    # Strategy 2: strip code fences
    candidates.append(strip_code_fences(text))
    # Strategy 3: outermost { ... }
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _unescape(value: str) -> str:
    return (
        value.replace("\\n", "\n")
        .replace('\\"', '"')
        .replace("\\t", "\t")
        .replace("\\\\", "\\")
    )


def icon_for_path(path: Optional[str]) -> str:
    if not path or path == "/":
        return "home"
    lowered = path.lower()
    for needle, icon in [
        ("about", "info"),
        ("pricing", "dollar-sign"),
        ("contact", "mail"),
        ("blog", "book-open"),
        ("feature", "star"),
        ("team", "users"),
        ("service", "briefcase"),
    ]:
        if needle in lowered:
            return icon
    return "file-text"


def _files_from(value) -> list[dict]:
    if not isinstance(value, list):
        return []
    return [
        {"path": f["path"], "content": f["content"]}
        for f in value
        if isinstance(f, dict) and isinstance(f.get("path"), str) and isinstance(f.get("content"), str)
    ]


def _pages_from(value) -> list[dict]:
    if not isinstance(value, list):
        return []
    pages = []
    for p in value:
        if not (isinstance(p, dict) and isinstance(p.get("id"), str) and isinstance(p.get("name"), str)):
            continue
        preview = p.get("preview") or ""
        if isinstance(preview, str):
            preview = _unescape(preview)
        pages.append({
            "id": p["id"],
            "name": p["name"],
            "path": p.get("path") or "/",
            "preview": preview,
            "icon": p.get("icon") or icon_for_path(p.get("path")),
            "files": p.get("files"),
        })
    return pages


def extract_output(text: Optional[str]) -> ExtractedOutput:
    """Pull preview HTML, files and pages out of accumulated generation text.

    Order: full JSON payload, partial "preview" string, then raw HTML.
    """
    if not text:
        return ExtractedOutput()

    cleaned = strip_think_tags(text)
    cleaned = _FENCE_RE.sub("", cleaned)
    cleaned = cleaned.strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        try:
            parsed = json.loads(cleaned[start:end + 1])
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            files = _files_from(parsed.get("files"))
            pages = _pages_from(parsed.get("pages"))
            preview = ""
            if isinstance(parsed.get("preview"), str):
                preview = _unescape(parsed["preview"])
            elif pages and pages[0]["preview"]:
                preview = pages[0]["preview"]
            if files or pages or DOCTYPE in preview:
                return ExtractedOutput(
                    preview=preview or wrap_in_html("No preview available"),
                    files=files,
                    pages=pages,
                )

    m = _PARTIAL_PREVIEW_RE.search(cleaned)
    if m:
        html = _unescape(m.group(1))
        if DOCTYPE in html:
            return ExtractedOutput(preview=html)

    m = _DOCUMENT_RE.search(cleaned)
    if m:
        return ExtractedOutput(preview=m.group(0).strip())

    m = _HTML_RE.search(cleaned)
    if m:
        return ExtractedOutput(preview=f"{DOCTYPE}\n{m.group(0).strip()}")

    idx = cleaned.find(DOCTYPE)
    if idx != -1:
        return ExtractedOutput(preview=cleaned[idx:])

    idx = cleaned.find("<html")
    if idx != -1:
        return ExtractedOutput(preview=f"{DOCTYPE}\n{cleaned[idx:]}")

    return ExtractedOutput()


def merge_files(existing: list[dict], new: list[dict]) -> list[dict]:
    """Overlay new files on existing ones by path, keeping first-seen order."""
    if not new:
        return list(existing or [])
    if not existing:
        return list(new)
    merged = {f["path"]: f for f in existing}
    for f in new:
        merged[f["path"]] = f
    return list(merged.values())


def complete_html(html: str) -> str:
    """Close an unterminated document so a partial stream still renders."""
    completed = html
    if "</body>" not in completed:
        completed += "\n</body>"
    if "</html>" not in completed:
        completed += "\n</html>"
    return completed


def wrap_in_html(content: str) -> str:
    return f"""{DOCTYPE}
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Generated Page</title>
  <script src="https://cdn.tailwindcss.com"></script>
  <link href="https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700&display=swap" rel="stylesheet">
</head>
<body class="antialiased bg-gray-950 text-white min-h-screen font-sans">
  {content}
</body>
</html>"""
