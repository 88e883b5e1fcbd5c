"""
One-click static deploys to Netlify or Vercel with the user's own access token.
"""

import asyncio
import base64
import hashlib
import logging
import re

import httpx

from weblitho.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_SITE_NAME = "weblitho-site"

NETLIFY_POLL_ATTEMPTS = 30
NETLIFY_POLL_INTERVAL = 2.0  # seconds
VERCEL_POLL_ATTEMPTS = 60
VERCEL_POLL_INTERVAL = 3.0  # seconds

HTTP_TIMEOUT = 60.0


class DeployError(Exception):
    """Raised for any deploy failure; the message is returned to the client."""


def site_slug(project_name: str | None) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (project_name or "").lower()).strip("-")
    return slug or DEFAULT_SITE_NAME


def prepare_files_for_deploy(files: list | None, html_content: str | None = None) -> dict:
    """{path: content}. Falls back to a lone index.html when no files are given."""
    deploy_files = {}
    if files:
        for f in files:
            deploy_files[f["path"]] = f["content"]
    elif html_content:
        deploy_files["index.html"] = html_content
    return deploy_files


def file_digests(files: dict) -> tuple[dict, dict]:
    """Netlify manifest: ({"/path": sha1}, {sha1: content})."""
    hashes = {}
    contents = {}
    for path, content in files.items():
        digest = hashlib.sha1(content.encode("utf-8")).hexdigest()
        hashes["/" + path.lstrip("/")] = digest
        contents[digest] = content
    return hashes, contents


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def deploy_to_netlify(access_token: str, project_name: str, files: dict) -> dict:
    api = get_settings().netlify_api_url
    site_name = site_slug(project_name)
    logger.info("[deploy] Starting Netlify deployment of %s", site_name)

    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
        resp = await client.get(f"{api}/sites", headers=_auth(access_token))
        if resp.status_code >= 400:
            raise DeployError(f"Netlify authentication failed: {resp.text}")

        site = next((s for s in resp.json() if s.get("name") == site_name), None)
        if site is None:
            logger.info("[deploy] Creating new Netlify site: %s", site_name)
            resp = await client.post(f"{api}/sites", headers=_auth(access_token), json={"name": site_name})
            if resp.status_code >= 400:
                raise DeployError(f"Failed to create Netlify site: {resp.text}")
            site = resp.json()
        else:
            logger.info("[deploy] Using existing Netlify site: %s", site["id"])

        hashes, contents = file_digests(files)
        resp = await client.post(
            f"{api}/sites/{site['id']}/deploys",
            headers=_auth(access_token),
            json={"files": hashes},
        )
        if resp.status_code >= 400:
            raise DeployError(f"Failed to create deploy: {resp.text}")
        deploy = resp.json()

        for digest in deploy.get("required") or []:
            content = contents.get(digest)
            if content is None:
                continue
            upload = await client.put(
                f"{api}/deploys/{deploy['id']}/files/{digest}",
                headers={**_auth(access_token), "Content-Type": "application/octet-stream"},
                content=content.encode("utf-8"),
            )
            if upload.status_code >= 400:
                # Netlify reports the missing file in the final deploy state
                logger.error("[deploy] Failed to upload %s: %s", digest, upload.text[:300])

        final = deploy
        state = deploy.get("state")
        attempts = 0
        while state != "ready" and attempts < NETLIFY_POLL_ATTEMPTS:
            await asyncio.sleep(NETLIFY_POLL_INTERVAL)
            status = await client.get(f"{api}/deploys/{deploy['id']}", headers=_auth(access_token))
            if status.status_code < 400:
                final = status.json()
                state = final.get("state")
                logger.info("[deploy] Netlify status: %s", state)
            attempts += 1

    return {
        "success": state == "ready",
        "url": final.get("ssl_url") or final.get("url") or f"https://{site_name}.netlify.app",
        "deployId": final.get("id"),
        "siteId": site.get("id"),
        "siteName": site.get("name"),
    }


async def deploy_to_vercel(access_token: str, project_name: str, files: dict) -> dict:
    api = get_settings().vercel_api_url
    name = site_slug(project_name)
    logger.info("[deploy] Starting Vercel deployment of %s", name)

    vercel_files = [
        {"file": path, "data": base64.b64encode(content.encode("utf-8")).decode(), "encoding": "base64"}
        for path, content in files.items()
    ]

    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
        resp = await client.post(
            f"{api}/deployments",
            headers=_auth(access_token),
            json={
                "name": name,
                "files": vercel_files,
                "target": "production",
                "projectSettings": {"framework": None},
            },
        )
        if resp.status_code >= 400:
            raise DeployError(f"Vercel deployment failed: {resp.text}")
        deployment = resp.json()
        logger.info("[deploy] Vercel deployment created: %s", deployment.get("id"))

        final = deployment
        state = deployment.get("readyState")
        attempts = 0
        while state not in ("READY", "ERROR") and attempts < VERCEL_POLL_ATTEMPTS:
            await asyncio.sleep(VERCEL_POLL_INTERVAL)
            status = await client.get(f"{api}/deployments/{deployment['id']}", headers=_auth(access_token))
            if status.status_code < 400:
                final = status.json()
                state = final.get("readyState")
                logger.info("[deploy] Vercel status: %s", state)
            attempts += 1

    return {
        "success": state == "READY",
        "url": f"https://{final.get('url')}",
        "deployId": final.get("id"),
        "projectId": final.get("projectId"),
    }


async def deploy_site(provider: str, access_token: str, project_name: str,
                      files: list | None = None, html_content: str | None = None) -> dict:
    logger.info("[deploy] Deploying to %s - Project: %s", provider, project_name)
    if not access_token:
        raise DeployError(f"{provider} access token is required")

    deploy_files = prepare_files_for_deploy(files, html_content)
    if not deploy_files:
        raise DeployError("No files to deploy")

    if provider == "netlify":
        return await deploy_to_netlify(access_token, project_name, deploy_files)
    if provider == "vercel":
        return await deploy_to_vercel(access_token, project_name, deploy_files)
    raise DeployError(f"Unsupported provider: {provider}")
