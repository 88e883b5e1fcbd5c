import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, ConfigDict

from weblitho import credits, database, images
from weblitho.auth import get_current_user_id
from weblitho.builder import run_generation_streaming
from weblitho.config import get_settings
from weblitho.error_classifier import parse_error
from weblitho.functions import CORS_HEADERS, router as functions_router
from weblitho.model_catalog import list_models
from weblitho.model_recommendation import analyze_prompt, get_model_cost, should_recommend
from weblitho.sse_utils import SSE_HEADERS

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ALLOW_METHODS = "GET, POST, PATCH, DELETE, OPTIONS"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: daily credit refill loop
    task = None
    if get_settings().run_credit_scheduler:
        try:
            task = credits.start_credit_scheduler()
        except Exception as e:
            logger.error("[credit-scheduler] Failed to start: %s", e)
    yield
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


app = FastAPI(title="Weblitho API", lifespan=lifespan)


@app.middleware("http")
async def cors(request: Request, call_next):
    """Preflight gets an empty 200; every other response carries the CORS headers."""
    if request.method == "OPTIONS":
        return Response(status_code=200, headers={**CORS_HEADERS, "Access-Control-Allow-Methods": ALLOW_METHODS})
    response = await call_next(request)
    for key, value in CORS_HEADERS.items():
        response.headers[key] = value
    return response


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("[api] Unhandled error on %s", request.url.path)
    return JSONResponse({"error": str(exc)}, status_code=500, headers=CORS_HEADERS)


app.include_router(functions_router)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class ClassifyRequest(BaseModel):
    error: str | None = None


class RecommendRequest(BaseModel):
    prompt: str = ""


class UpgradeRequest(BaseModel):
    plan: str


class ProjectCreate(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    name: str = "Untitled Project"
    description: str | None = None
    preview: str | None = None
    files: list[dict] = []
    chat_history: list[dict] = []
    selected_model: str | None = None


class ProjectUpdate(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    name: str | None = None
    description: str | None = None
    preview: str | None = None
    files: list[dict] | None = None
    chat_history: list[dict] | None = None
    selected_model: str | None = None
    create_version: bool = True
    version_message: str | None = None


class GenerateRequest(BaseModel):
    prompt: str
    model: str | None = None
    history: list[dict] = []


async def _owned_project(project_id: str, user_id: str) -> dict:
    project = await database.get_project(project_id, user_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/classify-error")
async def classify_error(request: ClassifyRequest):
    """Turn a raw error message into the card the builder shows."""
    return parse_error(request.error).to_dict()


@app.post("/api/recommend-model")
async def recommend_model(request: RecommendRequest):
    if not should_recommend(request.prompt):
        return {"analysis": None}
    analysis = analyze_prompt(request.prompt)
    return {"analysis": analysis.to_dict(), "credit_multiplier": get_model_cost(analysis.recommended_model)}


@app.get("/api/models")
async def models():
    return {"models": list_models()}


# --- Credits ---

@app.get("/api/credits")
async def get_credits(user_id: str = Depends(get_current_user_id)):
    record = await credits.get_credits(user_id)
    plan = credits.plan_for(record.get("plan"))
    return {
        "credits": record,
        "plan": {
            "id": record.get("plan") or "free",
            "name": plan.name,
            "price": plan.price,
            "monthly_credits": plan.monthly_credits,
            "daily_credits": plan.daily_credits,
        },
    }


@app.get("/api/credits/transactions")
async def credit_transactions(limit: int = 50, user_id: str = Depends(get_current_user_id)):
    return {"transactions": await credits.list_transactions(user_id, limit=min(limit, 50))}


@app.post("/api/credits/upgrade")
async def upgrade(request: UpgradeRequest, user_id: str = Depends(get_current_user_id)):
    try:
        record = await credits.upgrade_plan(user_id, request.plan)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"credits": record}


@app.get("/api/credits/cost")
async def credit_cost(output_length: int = 0, model: str | None = None):
    return {"cost": credits.calculate_cost(output_length, model)}


# --- Projects ---

@app.get("/api/projects")
async def list_projects(user_id: str = Depends(get_current_user_id)):
    return {"projects": await database.list_projects(user_id)}


@app.post("/api/projects")
async def create_project(request: ProjectCreate, user_id: str = Depends(get_current_user_id)):
    return await database.create_project(user_id, request.model_dump())


@app.get("/api/projects/{project_id}")
async def get_project(project_id: str, user_id: str = Depends(get_current_user_id)):
    return await _owned_project(project_id, user_id)


@app.patch("/api/projects/{project_id}")
async def update_project(project_id: str, request: ProjectUpdate, user_id: str = Depends(get_current_user_id)):
    await _owned_project(project_id, user_id)
    data = request.model_dump(exclude={"create_version", "version_message"})
    return await database.update_project(
        project_id,
        data,
        create_version=request.create_version,
        version_message=request.version_message,
    )


@app.delete("/api/projects/{project_id}")
async def delete_project(project_id: str, user_id: str = Depends(get_current_user_id)):
    await _owned_project(project_id, user_id)
    await database.delete_project(project_id)
    return {"status": "deleted"}


@app.get("/api/projects/{project_id}/versions")
async def list_versions(project_id: str, user_id: str = Depends(get_current_user_id)):
    await _owned_project(project_id, user_id)
    return {"versions": await database.list_versions(project_id)}


@app.post("/api/projects/{project_id}/versions/{version_id}/restore")
async def restore_version(project_id: str, version_id: str, user_id: str = Depends(get_current_user_id)):
    await _owned_project(project_id, user_id)
    version = await database.get_version(project_id, version_id)
    if not version:
        raise HTTPException(status_code=404, detail="Version not found")
    return await database.restore_version(project_id, version)


@app.post("/api/projects/{project_id}/generate")
async def generate(project_id: str, request: GenerateRequest, user_id: str = Depends(get_current_user_id)):
    """Stream a generation for a saved project as SSE events."""
    await _owned_project(project_id, user_id)
    return StreamingResponse(
        run_generation_streaming(user_id, project_id, request.prompt, request.model, request.history),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# --- Images ---

@app.post("/api/images")
async def upload_image(file: UploadFile = File(...), user_id: str = Depends(get_current_user_id)):
    data = await file.read()
    try:
        return await images.upload_image(user_id, file.filename or "image", file.content_type, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/images")
async def list_images(user_id: str = Depends(get_current_user_id)):
    return {"images": await images.list_images(user_id)}


@app.delete("/api/images/{image_id:path}")
async def delete_image(image_id: str, user_id: str = Depends(get_current_user_id)):
    try:
        await images.delete_image(user_id, image_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"status": "deleted"}


def run():
    import uvicorn

    settings = get_settings()
    uvicorn.run("weblitho.main:app", host=settings.host, port=settings.port)
