"""
Cook Journal Backend — Auth API Tests
=======================================

What:  Register, login, logout, me, profile update, password change and
       account deletion over HTTP against a real SQLite database.

Test Strategy:
    ✅ Sessions travel in an HTTP-only cookie
    ✅ Emails are trimmed and lowercased; duplicates → 409
    ✅ Login never reveals whether the email exists
    ✅ Logout is idempotent
    ✅ Account deletion takes owned recipes (and their dependents) with it
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from conftest import create_recipe, register
from cookjournal.database import async_session_factory
from cookjournal.models import Attempt, Image, Recipe, User, UserSession
from cookjournal.services.password import hash_password, verify_password


class TestPasswordHashing:

    def test_hash_is_not_plaintext_and_verifies(self):
        hashed = hash_password("pwd")
        assert hashed != "pwd"
        assert hashed.startswith("$2")
        assert verify_password("pwd", hashed)
        assert not verify_password("other", hashed)

    def test_malformed_hash_is_a_mismatch(self):
        assert verify_password("pwd", "not-a-hash") is False


class TestRegister:

    @pytest.mark.asyncio
    async def test_register_returns_user_and_sets_cookie(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"email": "  Cook@Example.COM ", "password": "pwd", "name": "Ana"},
        )

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["email"] == "cook@example.com"
        assert user["name"] == "Ana"
        assert "passwordHash" not in user and "password" not in user
        assert {"id", "createdAt", "updatedAt"} <= set(user)

        set_cookie = response.headers["set-cookie"].lower()
        assert set_cookie.startswith("sid=")
        assert "httponly" in set_cookie

    @pytest.mark.asyncio
    async def test_register_binds_session(self, client):
        await register(client, "a@example.com")
        me = await client.get("/api/auth/me")
        assert me.json()["user"]["email"] == "a@example.com"

    @pytest.mark.asyncio
    async def test_password_is_stored_hashed(self, client):
        await register(client, "a@example.com", password="secret123")
        async with async_session_factory() as db:
            user = (await db.execute(select(User))).scalar_one()
        assert user.password_hash != "secret123"
        assert verify_password("secret123", user.password_hash)

    @pytest.mark.asyncio
    async def test_duplicate_email_is_case_insensitive(self, make_client):
        await register(make_client(), "dup@example.com")
        response = await make_client().post(
            "/api/auth/register", json={"email": "DUP@example.com ", "password": "x"}
        )
        assert response.status_code == 409
        assert response.json()["errors"][0]["field"] == "email"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload, field",
        [
            ({"password": "pwd"}, "email"),
            ({"email": "a@example.com"}, "password"),
            ({"email": "", "password": "pwd"}, "email"),
            ({"email": "a@example.com", "password": ""}, "password"),
            ({"email": "not-an-email", "password": "pwd"}, "email"),
            ({"email": 42, "password": "pwd"}, "email"),
        ],
    )
    async def test_register_validation(self, client, payload, field):
        response = await client.post("/api/auth/register", json=payload)
        assert response.status_code == 400
        assert field in [e["field"] for e in response.json()["errors"]]


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_success(self, make_client):
        await register(make_client(), "a@example.com", password="secret123")
        fresh = make_client()
        response = await fresh.post(
            "/api/auth/login", json={"email": "A@example.com", "password": "secret123"}
        )
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "a@example.com"
        assert (await fresh.get("/api/auth/me")).json()["user"] is not None

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(self, make_client):
        await register(make_client(), "a@example.com", password="secret123")
        client = make_client()

        wrong = await client.post(
            "/api/auth/login", json={"email": "a@example.com", "password": "nope"}
        )
        unknown = await client.post(
            "/api/auth/login", json={"email": "b@example.com", "password": "nope"}
        )

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    @pytest.mark.asyncio
    async def test_login_missing_field(self, client):
        response = await client.post("/api/auth/login", json={"email": "a@example.com"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "password"


class TestSession:

    @pytest.mark.asyncio
    async def test_me_without_session_is_null(self, client):
        response = await client.get("/api/auth/me")
        assert response.status_code == 200
        assert response.json() == {"user": None}

    @pytest.mark.asyncio
    async def test_logout_destroys_session(self, client):
        await register(client, "a@example.com")
        response = await client.post("/api/auth/logout")
        assert response.status_code == 204
        assert (await client.get("/api/auth/me")).json()["user"] is None

        async with async_session_factory() as db:
            assert await db.scalar(select(func.count()).select_from(UserSession)) == 0

    @pytest.mark.asyncio
    async def test_logout_without_session_is_not_an_error(self, client):
        assert (await client.post("/api/auth/logout")).status_code == 204

    @pytest.mark.asyncio
    async def test_unknown_cookie_is_anonymous(self, client):
        client.cookies.set("sid", "forged-token")
        assert (await client.get("/api/auth/me")).json()["user"] is None

    @pytest.mark.asyncio
    async def test_expired_session_is_rejected_and_removed(self, client):
        await register(client, "a@example.com")
        async with async_session_factory() as db:
            session = (await db.execute(select(UserSession))).scalar_one()
            session.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
            await db.commit()

        assert (await client.get("/api/auth/me")).json()["user"] is None
        async with async_session_factory() as db:
            assert await db.scalar(select(func.count()).select_from(UserSession)) == 0


class TestProfile:

    @pytest.mark.asyncio
    async def test_update_requires_session(self, client):
        response = await client.put("/api/auth/me", json={"name": "X"})
        assert response.status_code == 401
        assert response.json()["errors"][0]["field"] == "auth"

    @pytest.mark.asyncio
    async def test_update_name_and_email(self, client):
        await register(client, "a@example.com", name="Old")
        response = await client.put(
            "/api/auth/me", json={"name": "New", "email": " New@Example.com"}
        )
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["name"] == "New"
        assert user["email"] == "new@example.com"

    @pytest.mark.asyncio
    async def test_omitted_fields_are_untouched(self, client):
        await register(client, "a@example.com", name="Keep")
        response = await client.put("/api/auth/me", json={"email": "b@example.com"})
        assert response.json()["user"]["name"] == "Keep"

    @pytest.mark.asyncio
    async def test_email_taken_by_other_user(self, make_client):
        await register(make_client(), "taken@example.com")
        client = make_client()
        await register(client, "mine@example.com")
        response = await client.put("/api/auth/me", json={"email": "TAKEN@example.com"})
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_keeping_own_email_is_fine(self, client):
        await register(client, "a@example.com")
        response = await client.put("/api/auth/me", json={"email": "A@example.com"})
        assert response.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload, field",
        [
            ({"email": "bad"}, "email"),
            ({"email": None}, "email"),
            ({"name": 7}, "name"),
        ],
    )
    async def test_update_validation(self, client, payload, field):
        await register(client, "a@example.com")
        response = await client.put("/api/auth/me", json=payload)
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == field


class TestChangePassword:

    @pytest.mark.asyncio
    async def test_change_password(self, make_client):
        client = make_client()
        await register(client, "a@example.com", password="secret123")
        response = await client.post(
            "/api/auth/change-password",
            json={"currentPassword": "secret123", "newPassword": "better456"},
        )
        assert response.status_code == 200
        assert response.json()["message"]

        fresh = make_client()
        old = await fresh.post(
            "/api/auth/login", json={"email": "a@example.com", "password": "secret123"}
        )
        new = await fresh.post(
            "/api/auth/login", json={"email": "a@example.com", "password": "better456"}
        )
        assert old.status_code == 401
        assert new.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_current_password(self, client):
        await register(client, "a@example.com", password="secret123")
        response = await client.post(
            "/api/auth/change-password",
            json={"currentPassword": "wrong", "newPassword": "better456"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_new_password_too_short(self, client):
        await register(client, "a@example.com", password="secret123")
        response = await client.post(
            "/api/auth/change-password",
            json={"currentPassword": "secret123", "newPassword": "abc"},
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "newPassword"

    @pytest.mark.asyncio
    async def test_confirmation_mismatch(self, client):
        await register(client, "a@example.com", password="secret123")
        response = await client.post(
            "/api/auth/change-password",
            json={
                "currentPassword": "secret123",
                "newPassword": "better456",
                "confirmPassword": "better789",
            },
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "confirmPassword"

    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        response = await client.post(
            "/api/auth/change-password",
            json={"currentPassword": "a", "newPassword": "bbbbbbbb"},
        )
        assert response.status_code == 401


class TestDeleteAccount:

    @pytest.mark.asyncio
    async def test_delete_account_cascades(self, make_client):
        owner = make_client()
        await register(owner, "owner@example.com")
        await create_recipe(owner, title="Mine", body="stir", images=["http://x/1.webp"])

        other = make_client()
        await register(other, "other@example.com")
        kept = await create_recipe(other, title="Theirs", body="bake")

        response = await owner.delete("/api/auth/me")
        assert response.status_code == 204
        assert (await owner.get("/api/auth/me")).json()["user"] is None

        async with async_session_factory() as db:
            emails = (await db.execute(select(User.email))).scalars().all()
            assert emails == ["other@example.com"]
            recipes = (await db.execute(select(Recipe.title))).scalars().all()
            assert recipes == ["Theirs"]
            attempts = (await db.execute(select(Attempt.recipe_id))).scalars().all()
            assert [str(a) for a in attempts] == [kept["id"]]
            assert await db.scalar(select(func.count()).select_from(Image)) == 0
            assert await db.scalar(select(func.count()).select_from(UserSession)) == 1

    @pytest.mark.asyncio
    async def test_delete_requires_session(self, client):
        assert (await client.delete("/api/auth/me")).status_code == 401
