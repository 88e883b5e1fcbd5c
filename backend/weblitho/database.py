"""
Supabase client for project and version CRUD.
"""

import logging

from weblitho.config import get_settings

logger = logging.getLogger(__name__)

PROJECT_COLUMNS = "id, user_id, name, description, preview, files, chat_history, selected_model, created_at, updated_at"
DEFAULT_PROJECT_MODEL = "weblitho-fast"


def get_client():
    """Get a Supabase client. Raises if credentials are missing."""
    settings = get_settings()
    url = settings.supabase_url
    key = settings.supabase_service_role_key
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in .env")
    from supabase import create_client
    return create_client(url, key)


def _json_list(value) -> list:
    return value if isinstance(value, list) else []


def _project(row: dict) -> dict:
    """Normalize JSON columns so callers always see lists."""
    return {
        **row,
        "files": _json_list(row.get("files")),
        "chat_history": _json_list(row.get("chat_history")),
        "selected_model": row.get("selected_model") or DEFAULT_PROJECT_MODEL,
    }


def _version(row: dict) -> dict:
    return {**row, "files": _json_list(row.get("files"))}


async def list_projects(user_id: str) -> list:
    client = get_client()
    result = (
        client.table("projects")
        .select(PROJECT_COLUMNS)
        .eq("user_id", user_id)
        .order("updated_at", desc=True)
        .execute()
    )
    return [_project(r) for r in result.data or []]


async def get_project(project_id: str, user_id: str) -> dict:
    """Get a single project owned by user_id, or {} when it does not exist."""
    client = get_client()
    result = (
        client.table("projects")
        .select("*")
        .eq("id", project_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    return _project(result.data[0]) if result.data else {}


async def create_project(user_id: str, data: dict) -> dict:
    """Insert a project. Records version 1 when it starts with a preview or files."""
    client = get_client()
    files = data.get("files") or []
    result = client.table("projects").insert({
        "user_id": user_id,
        "name": data.get("name") or "Untitled Project",
        "description": data.get("description"),
        "preview": data.get("preview"),
        "files": files,
        "chat_history": data.get("chat_history") or [],
        "selected_model": data.get("selected_model") or DEFAULT_PROJECT_MODEL,
    }).execute()
    project = _project(result.data[0]) if result.data else {}

    if project and (data.get("preview") or files):
        client.table("project_versions").insert({
            "project_id": project["id"],
            "version_number": 1,
            "preview": data.get("preview"),
            "files": files,
            "message": "Initial version",
        }).execute()
    return project


async def latest_version_number(project_id: str) -> int:
    client = get_client()
    result = (
        client.table("project_versions")
        .select("version_number")
        .eq("project_id", project_id)
        .order("version_number", desc=True)
        .limit(1)
        .execute()
    )
    return result.data[0]["version_number"] if result.data else 0


async def add_version(project_id: str, preview, files: list, message: str | None = None) -> dict:
    """Append the next version (max + 1) for a project."""
    client = get_client()
    next_version = await latest_version_number(project_id) + 1
    result = client.table("project_versions").insert({
        "project_id": project_id,
        "version_number": next_version,
        "preview": preview,
        "files": files or [],
        "message": message or f"Version {next_version}",
    }).execute()
    return _version(result.data[0]) if result.data else {}


async def update_project(project_id: str, data: dict, create_version: bool = True,
                         version_message: str | None = None) -> dict:
    """Update a project. A new version is recorded when preview or files change."""
    client = get_client()
    update = {
        k: data[k]
        for k in ("name", "description", "preview", "files", "chat_history", "selected_model")
        if data.get(k) is not None
    }
    result = client.table("projects").update(update).eq("id", project_id).execute()

    if create_version and (data.get("preview") or data.get("files")):
        await add_version(project_id, data.get("preview"), data.get("files") or [], version_message)

    return _project(result.data[0]) if result.data else {}


async def delete_project(project_id: str) -> bool:
    client = get_client()
    client.table("projects").delete().eq("id", project_id).execute()
    return True


async def list_versions(project_id: str) -> list:
    client = get_client()
    result = (
        client.table("project_versions")
        .select("*")
        .eq("project_id", project_id)
        .order("version_number", desc=True)
        .execute()
    )
    return [_version(r) for r in result.data or []]


async def get_version(project_id: str, version_id: str) -> dict:
    client = get_client()
    result = (
        client.table("project_versions")
        .select("*")
        .eq("project_id", project_id)
        .eq("id", version_id)
        .limit(1)
        .execute()
    )
    return _version(result.data[0]) if result.data else {}


async def restore_version(project_id: str, version: dict) -> dict:
    """Re-apply an old version's preview and files as a new version."""
    logger.info("[projects] Restoring %s to version %s", project_id, version.get("version_number"))
    return await update_project(
        project_id,
        {"preview": version.get("preview"), "files": version.get("files") or []},
        create_version=True,
        version_message=f"Restored from version {version.get('version_number')}",
    )
