"""
Cook Journal Backend — HTTP Surface Tests
===========================================

What:  Cross-cutting API behaviour: error body shape, rate limiting, request
       ids, health, and the upload endpoints.
"""

from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import make_image, register
from cookjournal.config import settings
from cookjournal.main import create_app, field_from_loc, translate_validation_error
from cookjournal.middleware.rate_limit import FixedWindowCounter


class TestErrorShape:

    def test_field_from_loc(self):
        assert field_from_loc(("body", "title")) == "title"
        assert field_from_loc(("body", "images", 0)) == "images[0]"
        assert field_from_loc(("body", "meta", "a", "b")) == "meta.a.b"
        assert field_from_loc(("body",)) is None
        assert field_from_loc(("query", "q")) == "q"

    def test_value_error_uses_validator_message(self):
        err = {
            "type": "value_error",
            "loc": ("body", "title"),
            "msg": "Value error, title is required and must be a non-empty string",
            "ctx": {"error": ValueError("title is required and must be a non-empty string")},
        }
        assert translate_validation_error(err) == {
            "field": "title",
            "message": "title is required and must be a non-empty string",
        }

    def test_missing_field_message(self):
        err = {"type": "missing", "loc": ("body", "email"), "msg": "Field required"}
        assert translate_validation_error(err)["message"] == "email is required"

    @pytest.mark.asyncio
    async def test_invalid_json_is_400(self, client):
        response = await client.post(
            "/api/recipes",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert "errors" in response.json()

    @pytest.mark.asyncio
    async def test_non_object_body_is_400(self, client):
        response = await client.post("/api/recipes", json=["title"])
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] is None

    @pytest.mark.asyncio
    async def test_unknown_route_uses_error_shape(self, client):
        response = await client.get("/api/nope")
        assert response.status_code == 404
        assert response.json() == {"errors": [{"field": None, "message": "Not Found"}]}

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        response = await client.get("/api/recipes", headers={"X-Request-ID": "trace-1"})
        assert response.headers["X-Request-ID"] == "trace-1"
        generated = await client.get("/api/recipes")
        assert generated.headers["X-Request-ID"]


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["database"] == "connected"
        assert body["now"]
        assert body["version"]


class TestUploadEndpoint:

    @pytest.mark.asyncio
    async def test_upload_and_fetch(self, client, upload_dir):
        response = await client.post(
            "/api/uploads",
            files={"file": ("photo.jpg", make_image(1000, 700), "image/jpeg")},
        )
        assert response.status_code == 200
        url = response.json()["url"]
        assert url.startswith("http://testserver/uploads/")
        assert url.endswith(".webp")

        path = url[len("http://testserver"):]
        served = await client.get(path)
        assert served.status_code == 200
        assert served.headers["content-type"] == "image/webp"
        assert served.content[:4] == b"RIFF"

    @pytest.mark.asyncio
    async def test_missing_file(self, client, upload_dir):
        response = await client.post("/api/uploads", data={"other": "x"})
        assert response.status_code == 400
        assert response.json()["errors"] == [{"field": "file", "message": "No file uploaded"}]

    @pytest.mark.asyncio
    async def test_non_image_mime(self, client, upload_dir):
        response = await client.post(
            "/api/uploads", files={"file": ("notes.txt", b"hello", "text/plain")}
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "file"

    @pytest.mark.asyncio
    async def test_corrupt_image_is_500(self, client, upload_dir):
        response = await client.post(
            "/api/uploads", files={"file": ("broken.jpg", b"\xff\xd8garbage", "image/jpeg")}
        )
        assert response.status_code == 500
        assert response.json()["errors"][0]["message"] == "Upload failed"

    @pytest.mark.asyncio
    async def test_oversize(self, client, upload_dir, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_size", 2048)
        response = await client.post(
            "/api/uploads", files={"file": ("big.jpg", b"\x00" * 4096, "image/jpeg")}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_upload_is_404(self, client, upload_dir):
        assert (await client.get("/uploads/123_1.webp")).status_code == 404


class TestFixedWindowCounter:

    def test_allows_up_to_limit_then_blocks(self):
        counter = FixedWindowCounter(limit=2, window=60)
        assert counter.hit("k", now=0) is None
        assert counter.hit("k", now=1) is None
        assert counter.hit("k", now=2) == 58

    def test_window_resets(self):
        counter = FixedWindowCounter(limit=1, window=10)
        assert counter.hit("k", now=0) is None
        assert counter.hit("k", now=5) == 5
        assert counter.hit("k", now=10) is None

    def test_keys_are_independent(self):
        counter = FixedWindowCounter(limit=1, window=10)
        assert counter.hit("a", now=0) is None
        assert counter.hit("b", now=0) is None
        assert counter.hit("a", now=1) is not None


class TestRateLimitMiddleware:

    @pytest_asyncio.fixture
    async def limited(self, db_schema, upload_dir, monkeypatch):
        monkeypatch.setattr(settings, "auth_rate_limit_requests", 2)
        monkeypatch.setattr(settings, "write_rate_limit_requests", 3)
        app = create_app()
        clients = []

        def _make() -> AsyncClient:
            c = AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")
            clients.append(c)
            return c

        yield _make

        for c in clients:
            await c.aclose()

    @pytest.mark.asyncio
    async def test_auth_bucket(self, limited):
        c = limited()
        for _ in range(2):
            r = await c.post("/api/auth/login", json={"email": "x@y.z", "password": "p"})
            assert r.status_code == 401
        blocked = await c.post("/api/auth/login", json={"email": "x@y.z", "password": "p"})

        assert blocked.status_code == 429
        assert int(blocked.headers["Retry-After"]) > 0
        assert blocked.json()["errors"][0]["message"].startswith("Too many requests")

    @pytest.mark.asyncio
    async def test_fresh_cookie_per_login_does_not_reset_auth_bucket(self, limited):
        c = limited()
        statuses = []
        for _ in range(5):
            c.cookies.set("sid", uuid4().hex)
            r = await c.post("/api/auth/login", json={"email": "x@y.z", "password": "p"})
            statuses.append(r.status_code)

        assert statuses == [401, 401, 429, 429, 429]

    @pytest.mark.asyncio
    async def test_write_bucket_spares_reads(self, limited):
        c = limited()
        for i in range(3):
            r = await c.post("/api/recipes", json={"title": f"R{i}"})
            assert r.status_code == 201
        blocked = await c.post("/api/recipes", json={"title": "R3"})
        read = await c.get("/api/recipes")

        assert blocked.status_code == 429
        assert read.status_code == 200
        assert read.json()["total"] == 3

    @pytest.mark.asyncio
    async def test_forged_cookie_counts_against_ip(self, limited):
        c = limited()
        for i in range(3):
            await c.post("/api/recipes", json={"title": f"R{i}"})
        c.cookies.set("sid", uuid4().hex)
        blocked = await c.post("/api/recipes", json={"title": "with forged cookie"})

        assert blocked.status_code == 429

    @pytest.mark.asyncio
    async def test_logged_in_user_has_own_write_budget(self, limited):
        anonymous = limited()
        for i in range(3):
            await anonymous.post("/api/recipes", json={"title": f"R{i}"})
        assert (await anonymous.post("/api/recipes", json={"title": "R3"})).status_code == 429

        cook = limited()
        await register(cook, "cook@example.com")
        allowed = await cook.post("/api/recipes", json={"title": "mine"})

        assert allowed.status_code == 201
