"""
Tests for authentication endpoints (register, login, logout, verify, profile).

These tests verify:
  - Registration creates a user and returns a JWT
  - Duplicate username or email is rejected (409 Conflict)
  - Password confirmation and terms acceptance are enforced (422)
  - Login returns a token and sets the session cookie
  - Wrong password and unknown username give the same 401 (anti-enumeration)
  - The session cookie is accepted in place of the Bearer header
  - Email verification accepts the issued code once
  - Profile updates enforce uniqueness
  - A changed email needs a fresh code; the old one no longer verifies
"""

import pytest

from conftest import MEMBER_PASSWORD, registration_payload


# ---------------------------------------------------------------------------
# Registration Tests
# ---------------------------------------------------------------------------

class TestRegister:
    """Tests for POST /auth/register."""

    async def test_register_success(self, client):
        """A valid registration returns 201 with user info and a token."""
        response = await client.post("/auth/register", json=registration_payload("jane"))
        assert response.status_code == 201
        data = response.json()
        assert data["username"] == "jane"
        assert data["email"] == "jane@example.com"
        assert data["role"] == "USER"
        assert "token" in data
        assert "user_id" in data

    async def test_register_returns_code_when_enabled(self, client):
        response = await client.post("/auth/register", json=registration_payload("jane"))
        code = response.json()["verification_code"]
        assert code is not None
        assert len(code) == 6 and code.isdigit()

    async def test_register_duplicate_username(self, client):
        await client.post("/auth/register", json=registration_payload("jane"))
        response = await client.post(
            "/auth/register",
            json=registration_payload("jane", email="other@example.com"),
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "duplicate_user"

    async def test_register_duplicate_email(self, client):
        await client.post("/auth/register", json=registration_payload("jane"))
        response = await client.post(
            "/auth/register",
            json=registration_payload("janet", email="jane@example.com"),
        )
        assert response.status_code == 409

    async def test_register_password_mismatch(self, client):
        response = await client.post(
            "/auth/register",
            json=registration_payload("jane", confirm_password="Different123!"),
        )
        assert response.status_code == 422

    async def test_register_requires_terms(self, client):
        response = await client.post(
            "/auth/register",
            json=registration_payload("jane", accept_terms=False),
        )
        assert response.status_code == 422

    async def test_register_short_password(self, client):
        response = await client.post(
            "/auth/register",
            json=registration_payload("jane", password="short", confirm_password="short"),
        )
        assert response.status_code == 422

    async def test_register_invalid_email(self, client):
        response = await client.post(
            "/auth/register",
            json=registration_payload("jane", email="not-an-email"),
        )
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Login / Logout Tests
# ---------------------------------------------------------------------------

class TestLogin:
    """Tests for POST /auth/login and POST /auth/logout."""

    async def test_login_success(self, client):
        await client.post("/auth/register", json=registration_payload("jane"))
        response = await client.post(
            "/auth/login",
            json={"username": "jane", "password": MEMBER_PASSWORD},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["username"] == "jane"
        assert "auth_token=" in response.headers["set-cookie"]
        assert "httponly" in response.headers["set-cookie"].lower()

    async def test_login_wrong_password(self, client):
        await client.post("/auth/register", json=registration_payload("jane"))
        response = await client.post(
            "/auth/login",
            json={"username": "jane", "password": "WrongPass999!"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password"

    async def test_login_unknown_username_same_error(self, client):
        """Unknown usernames get the same message as wrong passwords."""
        response = await client.post(
            "/auth/login",
            json={"username": "nobody", "password": MEMBER_PASSWORD},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password"

    async def test_login_records_last_login(self, client):
        await client.post("/auth/register", json=registration_payload("jane"))
        login = await client.post(
            "/auth/login",
            json={"username": "jane", "password": MEMBER_PASSWORD},
        )
        profile = await client.get(
            "/auth/profile",
            headers={"Authorization": f"Bearer {login.json()['token']}"},
        )
        assert profile.json()["last_login_at"] is not None

    async def test_cookie_authenticates(self, client):
        """The session cookie works without an Authorization header."""
        register = await client.post("/auth/register", json=registration_payload("jane"))
        token = register.json()["token"]

        response = await client.get(
            "/auth/profile",
            headers={"Cookie": f"auth_token={token}"},
        )
        assert response.status_code == 200
        assert response.json()["username"] == "jane"

    async def test_logout_clears_cookie(self, client):
        response = await client.post("/auth/logout")
        assert response.status_code == 200
        assert "auth_token=" in response.headers["set-cookie"]

    async def test_no_token_is_unauthenticated(self, client):
        response = await client.get("/auth/profile")
        assert response.status_code == 401
        assert response.json()["error_type"] == "unauthenticated"
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_garbage_token_is_unauthenticated(self, client):
        response = await client.get(
            "/auth/profile",
            headers={"Authorization": "Bearer not.a.jwt"},
        )
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# Verification and Profile Tests
# ---------------------------------------------------------------------------

class TestVerifyAndProfile:
    """Tests for POST /auth/verify and /auth/profile."""

    async def test_verify_with_issued_code(self, client):
        register = await client.post("/auth/register", json=registration_payload("jane"))
        data = register.json()
        headers = {"Authorization": f"Bearer {data['token']}"}

        response = await client.post(
            "/auth/verify", json={"code": data["verification_code"]}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["email_verified"] is True

        # The code is single-use
        again = await client.post(
            "/auth/verify", json={"code": data["verification_code"]}, headers=headers
        )
        assert again.status_code == 400
        assert again.json()["error_type"] == "invalid_verification_code"

    async def test_verify_wrong_code(self, client):
        register = await client.post("/auth/register", json=registration_payload("jane"))
        data = register.json()
        wrong = "000000" if data["verification_code"] != "000000" else "111111"

        response = await client.post(
            "/auth/verify",
            json={"code": wrong},
            headers={"Authorization": f"Bearer {data['token']}"},
        )
        assert response.status_code == 400

    async def test_get_profile(self, authenticated_client):
        response = await authenticated_client.get("/auth/profile")
        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "alice"
        assert data["role"] == "USER"
        assert "hashed_password" not in data

    async def test_update_profile(self, authenticated_client):
        response = await authenticated_client.patch(
            "/auth/profile", json={"first_name": "Alicia"}
        )
        assert response.status_code == 200
        assert response.json()["first_name"] == "Alicia"

    async def test_update_email_resets_verification(self, client):
        """Verify, change the email, then verify the new address with a new code."""
        register = await client.post("/auth/register", json=registration_payload("jane"))
        data = register.json()
        headers = {"Authorization": f"Bearer {data['token']}"}
        first_code = data["verification_code"]

        verified = await client.post(
            "/auth/verify", json={"code": first_code}, headers=headers
        )
        assert verified.json()["email_verified"] is True

        response = await client.patch(
            "/auth/profile", json={"email": "janet@example.com"}, headers=headers
        )
        assert response.status_code == 200
        updated = response.json()
        assert updated["email"] == "janet@example.com"
        assert updated["email_verified"] is False
        new_code = updated["verification_code"]
        assert new_code is not None and len(new_code) == 6

        response = await client.post(
            "/auth/verify", json={"code": new_code}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["email_verified"] is True

    async def test_old_code_does_not_verify_new_email(self, client):
        register = await client.post("/auth/register", json=registration_payload("jane"))
        data = register.json()
        headers = {"Authorization": f"Bearer {data['token']}"}

        response = await client.patch(
            "/auth/profile", json={"email": "janet@example.com"}, headers=headers
        )
        new_code = response.json()["verification_code"]
        if new_code == data["verification_code"]:
            pytest.skip("the fresh code happened to repeat the old one")

        stale = await client.post(
            "/auth/verify", json={"code": data["verification_code"]}, headers=headers
        )
        assert stale.status_code == 400

        profile = await client.get("/auth/profile", headers=headers)
        assert profile.json()["email_verified"] is False

    async def test_name_change_issues_no_code(self, authenticated_client):
        response = await authenticated_client.patch(
            "/auth/profile", json={"last_name": "Smith"}
        )
        assert response.json()["verification_code"] is None

    async def test_update_profile_taken_username(
        self, authenticated_client, second_authenticated_client
    ):
        response = await authenticated_client.patch(
            "/auth/profile", json={"username": "bob"}
        )
        assert response.status_code == 409
