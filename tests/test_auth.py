"""
IRDesk Platform - 认证API测试
"""


async def test_register_returns_token_pair(client):
    response = await client.post(
        "/api/auth/register",
        json={"email": "New.User@Example.com", "password": "secret123", "name": "신규"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["tokenType"] == "Bearer"
    assert body["accessToken"]
    assert body["refreshToken"]
    assert body["user"]["email"] == "new.user@example.com"
    assert body["user"]["name"] == "신규"
    assert set(body["user"]) == {"id", "email", "name", "avatar"}


async def test_register_duplicate_email_conflicts(client, register_user):
    await register_user(email="dup@example.com")
    response = await client.post(
        "/api/auth/register",
        json={"email": "dup@example.com", "password": "secret123", "name": "중복"},
    )
    assert response.status_code == 409
    assert response.json()["error"] == "CONFLICT"


async def test_register_validates_payload(client):
    response = await client.post(
        "/api/auth/register",
        json={"email": "not-an-email", "password": "123", "name": ""},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["path"] == "/api/auth/register"


async def test_login_success_and_failure(client, register_user):
    await register_user(email="login@example.com", password="secret123")

    ok = await client.post("/api/auth/login", json={"email": "login@example.com", "password": "secret123"})
    assert ok.status_code == 200
    assert ok.json()["user"]["email"] == "login@example.com"

    bad = await client.post("/api/auth/login", json={"email": "login@example.com", "password": "wrong-pass"})
    assert bad.status_code == 401
    assert bad.json()["message"] == "Invalid credentials"

    unknown = await client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "secret123"})
    assert unknown.status_code == 401


async def test_me_requires_token(client):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] == "AUTHENTICATION_ERROR"

    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


async def test_me_returns_detailed_profile(client, auth_headers):
    response = await client.get("/api/auth/me", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "owner@example.com"
    assert body["name"] == "김담당"
    assert body["isActive"] is True
    assert body["createdAt"]


async def test_update_profile(client, auth_headers):
    response = await client.patch(
        "/api/auth/profile",
        headers=auth_headers,
        json={"name": "박담당", "avatar": "https://cdn.example.com/a.png"},
    )
    assert response.status_code == 200
    assert response.json()["name"] == "박담당"
    assert response.json()["avatar"] == "https://cdn.example.com/a.png"

    invalid = await client.patch("/api/auth/profile", headers=auth_headers, json={"avatar": "ftp://x"})
    assert invalid.status_code == 400


async def test_refresh_rotates_token(client, auth_session):
    old_refresh = auth_session["refreshToken"]

    response = await client.post("/api/auth/refresh", json={"refreshToken": old_refresh})
    assert response.status_code == 200
    new_refresh = response.json()["refreshToken"]
    assert new_refresh != old_refresh

    replay = await client.post("/api/auth/refresh", json={"refreshToken": old_refresh})
    assert replay.status_code == 401

    again = await client.post("/api/auth/refresh", json={"refreshToken": new_refresh})
    assert again.status_code == 200


async def test_refresh_rejects_access_token(client, auth_session):
    response = await client.post("/api/auth/refresh", json={"refreshToken": auth_session["accessToken"]})
    assert response.status_code == 401


async def test_logout_revokes_refresh_tokens(client, auth_session, auth_headers):
    response = await client.post("/api/auth/logout", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}

    refresh = await client.post("/api/auth/refresh", json={"refreshToken": auth_session["refreshToken"]})
    assert refresh.status_code == 401
