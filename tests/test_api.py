"""
Tests for the application routes: auth, credits, projects, generation, images.
"""

import asyncio
import io
import json

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from conftest import FakeStream, delta_lines
from weblitho import database, llm
from weblitho.auth import get_current_user_id
from weblitho.json_extract import wrap_in_html
from weblitho.main import app

PAGE = "<!DOCTYPE html><html><body><h1>Bakery</h1></body></html>"


@pytest.fixture
def client(fake_db):
    app.dependency_overrides[get_current_user_id] = lambda: "u1"
    yield TestClient(app)
    app.dependency_overrides.clear()


def _events(text):
    return [json.loads(line[6:]) for line in text.splitlines() if line.startswith("data: ")]


def _credits(fake_db, plan="pro", balance=10):
    row = fake_db.new_row("user_credits", {"user_id": "u1", "plan": plan, "credits_balance": balance, "monthly_credits": 100})
    fake_db.tables.setdefault("user_credits", []).append(row)
    return row


class TestAuth:

    def test_missing_token(self, fake_db):
        resp = TestClient(app).get("/api/credits")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Session expired. Please log in again."

    def test_invalid_token(self, fake_db):
        resp = TestClient(app).get("/api/credits", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_valid_token(self, fake_db):
        fake_db.tokens["good"] = "u9"
        resp = TestClient(app).get("/api/credits", headers={"Authorization": "Bearer good"})
        assert resp.status_code == 200
        assert resp.json()["credits"]["user_id"] == "u9"


class TestPublicRoutes:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_classify_error(self, client):
        body = client.post("/api/classify-error", json={"error": "401 Unauthorized"}).json()
        assert body["title"] == "Session Expired"

    def test_recommend_model(self, client):
        body = client.post("/api/recommend-model", json={"prompt": "change the button color"}).json()
        assert body["analysis"]["recommended_model"] == "mimo-v2-flash"
        assert body["credit_multiplier"] == 1.0

    def test_recommend_model_skips_short_prompts(self, client):
        assert client.post("/api/recommend-model", json={"prompt": "hi"}).json() == {"analysis": None}

    def test_models(self, client):
        ids = [m["id"] for m in client.get("/api/models").json()["models"]]
        assert "google/gemini-2.0-flash" in ids

    def test_cost(self, client):
        assert client.get("/api/credits/cost", params={"output_length": 6000}).json() == {"cost": 0.8}


class TestCreditRoutes:

    def test_get_creates_free_record(self, client):
        body = client.get("/api/credits").json()
        assert body["plan"]["id"] == "free"
        assert body["credits"]["credits_balance"] == 5

    def test_upgrade(self, client):
        body = client.post("/api/credits/upgrade", json={"plan": "business"}).json()
        assert body["credits"]["plan"] == "business"
        assert body["credits"]["credits_balance"] == 500

    def test_upgrade_unknown_plan(self, client):
        assert client.post("/api/credits/upgrade", json={"plan": "gold"}).status_code == 400

    def test_transactions(self, client, fake_db):
        _credits(fake_db)
        assert client.get("/api/credits/transactions").json() == {"transactions": []}


class TestProjectRoutes:

    def test_crud_and_versions(self, client):
        project = client.post("/api/projects", json={"name": "Site", "preview": PAGE}).json()
        pid = project["id"]

        assert [p["id"] for p in client.get("/api/projects").json()["projects"]] == [pid]

        client.patch(f"/api/projects/{pid}", json={"preview": PAGE.replace("Bakery", "Cafe")})
        versions = client.get(f"/api/projects/{pid}/versions").json()["versions"]
        assert [v["version_number"] for v in versions] == [2, 1]

        first = versions[-1]
        restored = client.post(f"/api/projects/{pid}/versions/{first['id']}/restore").json()
        assert restored["preview"] == PAGE

        assert client.delete(f"/api/projects/{pid}").json() == {"status": "deleted"}
        assert client.get(f"/api/projects/{pid}").status_code == 404

    def test_other_users_project_is_404(self, client):
        other = asyncio.run(database.create_project("someone-else", {"name": "Theirs"}))
        assert client.get(f"/api/projects/{other['id']}").status_code == 404

    def test_missing_version_is_404(self, client):
        pid = client.post("/api/projects", json={"name": "Site"}).json()["id"]
        assert client.post(f"/api/projects/{pid}/versions/nope/restore").status_code == 404


class TestGenerateRoute:

    def _project(self, client):
        return client.post("/api/projects", json={"name": "Site"}).json()["id"]

    def test_full_generation(self, client, fake_db, monkeypatch):
        _credits(fake_db, plan="pro", balance=10)
        calls = []

        async def fake(provider, model, messages):
            calls.append((provider, model))
            return FakeStream(delta_lines(PAGE[:20], PAGE[20:40], PAGE[40:]))

        monkeypatch.setattr(llm, "open_chat_stream", fake)
        pid = self._project(client)

        resp = client.post(f"/api/projects/{pid}/generate", json={"prompt": "A bakery site", "model": "qwen3-coder"})
        events = _events(resp.text)
        types = [e["type"] for e in events]

        assert resp.headers["content-type"].startswith("text/event-stream")
        assert types.count("chunk") == 3
        assert "status" in types
        done = events[-1]
        assert done["type"] == "done"
        assert done["preview"] == PAGE
        assert done["cost"] == 0.3
        assert calls == [("openrouter", "qwen/qwen3-coder:free")]

        versions = asyncio.run(database.list_versions(pid))
        assert versions[0]["message"] == "A bakery site"
        assert fake_db.rows("user_credits")[0]["credits_balance"] == 9.7
        assert fake_db.rows("credit_transactions")[0]["project_id"] == pid

    def test_auto_model_emits_recommendation(self, client, fake_db, monkeypatch):
        _credits(fake_db)

        async def fake(provider, model, messages):
            return FakeStream(delta_lines(PAGE))

        monkeypatch.setattr(llm, "open_chat_stream", fake)
        pid = self._project(client)

        events = _events(client.post(f"/api/projects/{pid}/generate", json={"prompt": "fix the footer text", "model": "auto"}).text)
        assert events[0]["type"] == "recommendation"
        assert events[-1]["model"] == events[0]["recommended_model"]

    def test_paid_model_on_free_plan(self, client, fake_db, monkeypatch):
        _credits(fake_db, plan="free", balance=5)
        monkeypatch.setattr(llm, "open_chat_stream", lambda *a: pytest.fail("should not call upstream"))
        pid = self._project(client)

        events = _events(client.post(f"/api/projects/{pid}/generate", json={"prompt": "x", "model": "google/gemini-2.5-pro"}).text)
        assert events[0]["type"] == "error"
        assert events[0]["info"]["category"] == "premium_required"
        assert events[-1] == {"type": "done", "error": "This model requires a paid plan. Please upgrade."}

    def test_empty_balance(self, client, fake_db):
        _credits(fake_db, plan="free", balance=0)
        pid = self._project(client)

        events = _events(client.post(f"/api/projects/{pid}/generate", json={"prompt": "x", "model": "mimo-v2-flash"}).text)
        assert events[0]["info"]["category"] == "insufficient_credits"

    def test_upstream_rate_limit(self, client, fake_db, monkeypatch):
        _credits(fake_db)

        async def fake(provider, model, messages):
            raise llm.UpstreamError(provider, 429, "slow down")

        monkeypatch.setattr(llm, "open_chat_stream", fake)
        pid = self._project(client)

        events = _events(client.post(f"/api/projects/{pid}/generate", json={"prompt": "x", "model": "devstral"}).text)
        error = next(e for e in events if e["type"] == "error")
        assert error["info"]["category"] == "rate_limit"
        assert events[-1]["type"] == "done"
        assert fake_db.rows("credit_transactions") == []

    def test_no_html_in_output_is_wrapped_and_saved(self, client, fake_db, monkeypatch):
        _credits(fake_db)

        async def fake(provider, model, messages):
            return FakeStream(delta_lines("  Here is your menu: pancakes  "))

        monkeypatch.setattr(llm, "open_chat_stream", fake)
        pid = self._project(client)

        events = _events(client.post(f"/api/projects/{pid}/generate", json={"prompt": "x", "model": "devstral"}).text)
        done = events[-1]
        assert done["type"] == "done"
        assert "error" not in done
        assert done["preview"] == wrap_in_html("Here is your menu: pancakes")
        assert len(asyncio.run(database.list_versions(pid))) == 1

    def test_single_page_output_gets_home_page(self, client, fake_db, monkeypatch):
        _credits(fake_db)

        async def fake(provider, model, messages):
            return FakeStream(delta_lines(PAGE))

        monkeypatch.setattr(llm, "open_chat_stream", fake)
        pid = self._project(client)

        done = _events(client.post(f"/api/projects/{pid}/generate", json={"prompt": "x", "model": "devstral"}).text)[-1]
        assert done["pages"] == [{"id": "home", "name": "Home", "path": "/", "preview": PAGE, "icon": "home"}]

    def test_save_failure_ends_with_error_and_done(self, client, fake_db, monkeypatch):
        _credits(fake_db)

        async def fake(provider, model, messages):
            return FakeStream(delta_lines(PAGE))

        monkeypatch.setattr(llm, "open_chat_stream", fake)
        pid = self._project(client)
        fake_db.failing_ids.add(pid)

        events = _events(client.post(f"/api/projects/{pid}/generate", json={"prompt": "x", "model": "devstral"}).text)
        assert [e["type"] for e in events[-2:]] == ["error", "done"]
        assert "update failed" in events[-1]["error"]
        assert fake_db.rows("credit_transactions") == []

    def test_charge_failure_still_finishes(self, client, fake_db, monkeypatch):
        row = _credits(fake_db)

        async def fake(provider, model, messages):
            return FakeStream(delta_lines(PAGE))

        monkeypatch.setattr(llm, "open_chat_stream", fake)
        pid = self._project(client)
        fake_db.failing_ids.add(row["id"])

        events = _events(client.post(f"/api/projects/{pid}/generate", json={"prompt": "x", "model": "devstral"}).text)
        assert [e["type"] for e in events[-2:]] == ["warning", "done"]
        assert events[-1]["charged"] is False
        assert events[-1]["preview"] == PAGE

    def test_missing_project_is_404(self, client):
        assert client.post("/api/projects/nope/generate", json={"prompt": "x"}).status_code == 404


class TestImageRoutes:

    def _png(self, width, height):
        buf = io.BytesIO()
        Image.new("RGB", (width, height), (200, 100, 50)).save(buf, format="PNG")
        return buf.getvalue()

    def test_upload_downscales_and_lists(self, client, fake_db):
        resp = client.post("/api/images", files={"file": ("wide.png", self._png(3000, 300), "image/png")})
        assert resp.status_code == 200
        image = resp.json()
        assert image["id"].startswith("u1/")
        assert image["id"].endswith(".png")
        assert image["url"].startswith("https://storage.test/project-assets/")

        stored = fake_db.objects[image["id"]]["data"]
        assert Image.open(io.BytesIO(stored)).size == (1920, 192)

        listed = client.get("/api/images").json()["images"]
        assert [i["id"] for i in listed] == [image["id"]]

    def test_rejects_non_images(self, client):
        resp = client.post("/api/images", files={"file": ("notes.txt", b"hello", "text/plain")})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Only image files are allowed"

    def test_rejects_large_files(self, client, set_env):
        set_env(MAX_UPLOAD_BYTES="10")
        resp = client.post("/api/images", files={"file": ("a.png", self._png(10, 10), "image/png")})
        assert resp.status_code == 400

    def test_delete_own_image_only(self, client, fake_db):
        image = client.post("/api/images", files={"file": ("a.png", self._png(10, 10), "image/png")}).json()
        assert client.delete("/api/images/someone/else.png").status_code == 404
        assert client.delete(f"/api/images/{image['id']}").json() == {"status": "deleted"}
        assert fake_db.objects == {}
