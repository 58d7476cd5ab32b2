"""Tests for the auth endpoints."""

from conftest import PASSWORD, auth_headers

SIGNUP = {"name": "Carol", "email": "carol@acme.io", "password": "hunter22", "phone": "555-0100"}


class TestSignup:
    async def test_signup_creates_customer(self, client):
        response = await client.post("/api/v1/auth/signup", json=SIGNUP)

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["email"] == "carol@acme.io"
        assert user["role"] == "CUSTOMER"
        assert "hashed_password" not in user

    async def test_duplicate_email_is_409(self, client):
        await client.post("/api/v1/auth/signup", json=SIGNUP)
        response = await client.post("/api/v1/auth/signup", json=SIGNUP)

        assert response.status_code == 409
        assert response.json()["code"] == "EmailAlreadyRegistered"

    async def test_weak_password(self, client):
        response = await client.post("/api/v1/auth/signup", json={**SIGNUP, "password": "abcdefgh"})
        assert response.status_code == 400
        assert response.json()["code"] == "WeakPassword"

    async def test_admin_self_signup_forbidden(self, client):
        response = await client.post("/api/v1/auth/signup", json={**SIGNUP, "role": "ADMIN"})
        assert response.status_code == 403

    async def test_malformed_email_is_422(self, client):
        response = await client.post("/api/v1/auth/signup", json={**SIGNUP, "email": "nope"})
        assert response.status_code == 422


class TestLogin:
    async def test_login_returns_token(self, client, customer):
        response = await client.post(
            "/api/v1/auth/login", json={"email": "alice@acme.io", "password": PASSWORD}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["id"] == customer.id

        validate = await client.get(
            "/api/v1/auth/validate", headers={"Authorization": f"Bearer {body['access_token']}"}
        )
        assert validate.status_code == 200
        assert validate.json()["valid"] is True

    async def test_wrong_password(self, client, customer):
        response = await client.post(
            "/api/v1/auth/login", json={"email": "alice@acme.io", "password": "wrongpass1"}
        )
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"


class TestProfile:
    async def test_requires_token(self, client):
        response = await client.get("/api/v1/auth/profile")
        assert response.status_code == 401

    async def test_garbage_token(self, client):
        response = await client.get("/api/v1/auth/profile", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    async def test_get_and_update_profile(self, client, customer):
        response = await client.put(
            "/api/v1/auth/profile", json={"name": "Alice Smith"}, headers=auth_headers(customer)
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Alice Smith"

        response = await client.get("/api/v1/auth/profile", headers=auth_headers(customer))
        assert response.json()["name"] == "Alice Smith"

    async def test_change_password(self, client, customer):
        response = await client.put(
            "/api/v1/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "newpass99"},
            headers=auth_headers(customer),
        )
        assert response.status_code == 200

        login = await client.post(
            "/api/v1/auth/login", json={"email": "alice@acme.io", "password": "newpass99"}
        )
        assert login.status_code == 200

    async def test_change_password_wrong_current(self, client, customer):
        response = await client.put(
            "/api/v1/auth/change-password",
            json={"current_password": "notmine11", "new_password": "newpass99"},
            headers=auth_headers(customer),
        )
        assert response.status_code == 400
