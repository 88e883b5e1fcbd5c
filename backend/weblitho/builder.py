"""
Builder session: one prompt against one saved project, streamed as SSE.

Pipeline:
  [A] load project + credits, resolve model ("auto" -> recommendation)
  [B] plan / balance checks
  [C] stream upstream deltas to the client
  [D] extract preview/files/pages (raw text is wrapped), save a new version
  [E] charge credits by output length, done
"""

import logging
import time
from typing import AsyncGenerator, Optional

from weblitho import credits, database, llm
from weblitho.error_classifier import error_message_for_status, parse_error
from weblitho.json_extract import complete_html, extract_output, merge_files, wrap_in_html
from weblitho.model_catalog import resolve_model
from weblitho.model_recommendation import analyze_prompt
from weblitho.prompts import build_system_prompt, is_modification
from weblitho.sse_utils import iter_delta_content, sse_event

logger = logging.getLogger(__name__)

# (chunks received, status message, phase, progress %)
STATUS_PHASES = [
    (0, "Analyzing your request...", "analyzing", 5),
    (2, "Understanding requirements...", "analyzing", 10),
    (5, "Planning website structure...", "planning", 15),
    (10, "Designing component architecture...", "planning", 20),
    (20, "Generating HTML structure...", "building", 30),
    (40, "Building navigation...", "building", 35),
    (60, "Creating hero section...", "building", 45),
    (100, "Adding content sections...", "building", 55),
    (150, "Styling components...", "styling", 65),
    (200, "Applying animations...", "styling", 75),
    (300, "Polishing design details...", "finalizing", 85),
    (400, "Optimizing for responsiveness...", "finalizing", 90),
    (500, "Final touches...", "finalizing", 95),
]

PAID_PLAN_REQUIRED = "This model requires a paid plan. Please upgrade."
INSUFFICIENT_CREDITS = "Insufficient credits. Please add more credits."
MIN_GENERATION_COST_LENGTH = 0


def status_for_chunks(chunk_count: int) -> tuple[str, str, int]:
    """Latest status phase reached after chunk_count chunks."""
    current = STATUS_PHASES[0]
    for phase in STATUS_PHASES:
        if chunk_count >= phase[0]:
            current = phase
        else:
            break
    return current[1], current[2], current[3]


def _error(message: str) -> str:
    return sse_event("error", {"message": message, "info": parse_error(message).to_dict()})


async def run_generation_streaming(
    user_id: str,
    project_id: str,
    prompt: str,
    model: Optional[str] = None,
    history: Optional[list] = None,
) -> AsyncGenerator[str, None]:
    start = time.time()
    history = history or []

    def _elapsed():
        return f"{time.time() - start:.1f}s"

    project = await database.get_project(project_id, user_id)
    if not project:
        yield _error("Project not found")
        yield sse_event("done", {"error": "Project not found"})
        return

    # [A] model resolution
    if not model or model == "auto":
        analysis = analyze_prompt(prompt)
        model = analysis.recommended_model
        yield sse_event("recommendation", analysis.to_dict())
    config = resolve_model(model)

    # [B] plan / balance
    account = await credits.get_credits(user_id)
    if config.requires_paid_plan and account.get("plan") not in credits.PAID_PLANS:
        yield _error(PAID_PLAN_REQUIRED)
        yield sse_event("done", {"error": PAID_PLAN_REQUIRED})
        return
    minimum = credits.calculate_cost(MIN_GENERATION_COST_LENGTH, config.id)
    if (account.get("credits_balance") or 0) < minimum:
        yield _error(INSUFFICIENT_CREDITS)
        yield sse_event("done", {"error": INSUFFICIENT_CREDITS})
        return

    current_code = project.get("preview")
    mode = "modification" if is_modification(current_code) else "new"
    logger.info("[builder] %s: %s via %s/%s", project_id, mode, config.provider, config.upstream_model)
    yield sse_event("step", {"step": "analyzing", "message": "Analyzing your request...", "mode": mode, "model": config.id})

    # [C] stream
    messages = llm.build_messages(build_system_prompt(current_code), history, prompt)
    try:
        stream = await llm.open_chat_stream(config.provider, config.upstream_model, messages)
    except llm.UpstreamError as e:
        message = error_message_for_status(e.status_code)
        yield _error(message)
        yield sse_event("done", {"error": message})
        return
    except Exception as e:
        logger.error("[builder] Upstream failed: %s", e)
        yield _error(str(e))
        yield sse_event("done", {"error": str(e)})
        return

    text = ""
    chunk_count = 0
    last_status = None
    try:
        async for content in iter_delta_content(stream.iter_lines()):
            text += content
            chunk_count += 1
            yield sse_event("chunk", {"content": content})
            status = status_for_chunks(chunk_count)
            if status != last_status:
                last_status = status
                yield sse_event("status", {"status": status[0], "phase": status[1], "progress": status[2]})
    except Exception as e:
        logger.error("[builder] Stream interrupted after %d chunks: %s", chunk_count, e)
        yield _error(f"Stream interrupted: {e}")
        yield sse_event("done", {"error": str(e)})
        return
    finally:
        await stream.aclose()

    # [D] extract + save
    output = extract_output(text)
    if output.preview:
        preview = complete_html(output.preview)
    else:
        logger.info("[builder] %s: no HTML in %d chars of output, wrapping raw text", project_id, len(text))
        preview = wrap_in_html(text.strip())
    pages = output.pages or [{"id": "home", "name": "Home", "path": "/", "preview": preview, "icon": "home"}]
    files = merge_files(project.get("files") or [], output.files)
    chat_history = [
        *(project.get("chat_history") or []),
        {"role": "user", "content": prompt},
        {"role": "assistant", "content": "Website updated" if mode == "modification" else "Website generated"},
    ]
    try:
        await database.update_project(
            project_id,
            {"preview": preview, "files": files, "chat_history": chat_history, "selected_model": config.id},
            create_version=True,
            version_message=prompt[:80],
        )
    except Exception as e:
        logger.error("[builder] %s: saving generation failed: %s", project_id, e)
        yield _error(f"Failed to save project: {e}")
        yield sse_event("done", {"error": str(e)})
        return

    # [E] charge
    cost = credits.calculate_cost(len(text), config.id)
    try:
        charged = await credits.deduct_credits(user_id, cost, description=f"Generation ({config.label})", project_id=project_id)
    except Exception as e:
        logger.error("[builder] %s: charging %s credits failed: %s", project_id, cost, e)
        charged = False
    if not charged:
        yield sse_event("warning", {"message": "Could not deduct credits for this generation"})

    logger.info("[builder] %s done in %s, %d chunks, cost %s", project_id, _elapsed(), chunk_count, cost)
    yield sse_event("done", {
        "preview": preview,
        "files": files,
        "pages": pages,
        "model": config.id,
        "cost": cost,
        "charged": charged,
        "elapsed": _elapsed(),
    })
