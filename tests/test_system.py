"""
IRDesk Platform - 系统端点与错误响应测试
"""

from backend.app.core.config import settings

ERROR_KEYS = {"statusCode", "error", "message", "details", "path", "timestamp", "request_id"}


async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Welcome to IRDesk Platform"
    assert body["version"] == settings.APP_VERSION


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code in (200, 503)
    body = response.json()
    assert body["status"] in ("healthy", "unhealthy")
    assert {"database", "disk", "memory"} <= set(body["checks"])


async def test_info(client):
    response = await client.get("/info")
    assert response.status_code == 200
    body = response.json()
    assert body["app_name"] == settings.APP_NAME
    assert body["database"] == "sqlite"
    assert body["features"]["upload_base_url"] == settings.UPLOAD_BASE_URL


async def test_metrics(client):
    await client.get("/")
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "irdesk_http_requests_total" in response.text


async def test_request_id_headers(client):
    response = await client.get("/", headers={"X-Request-ID": "req-fixed-1"})
    assert response.headers["X-Request-ID"] == "req-fixed-1"
    assert float(response.headers["X-Process-Time"]) >= 0

    response = await client.get("/")
    assert response.headers["X-Request-ID"].startswith("req_")


async def test_error_body_unauthenticated(client):
    response = await client.get("/api/auth/me", headers={"X-Request-ID": "req-err-1"})
    assert response.status_code == 401
    body = response.json()
    assert set(body) == ERROR_KEYS
    assert body["statusCode"] == 401
    assert body["error"] == "AUTHENTICATION_ERROR"
    assert body["path"] == "/api/auth/me"
    assert body["request_id"] == "req-err-1"
    assert body["timestamp"].endswith("Z")


async def test_error_body_not_found(client, auth_headers):
    response = await client.get("/api/ir/activities/missing", headers=auth_headers)
    assert response.status_code == 404
    body = response.json()
    assert set(body) == ERROR_KEYS
    assert body["error"] == "NOT_FOUND"

    response = await client.get("/api/no-such-route")
    assert response.status_code == 404
    assert response.json()["error"] == "HTTP_ERROR"


async def test_error_body_validation(client):
    response = await client.post("/api/auth/register", json={"email": "bad"})
    assert response.status_code == 400
    body = response.json()
    assert set(body) == ERROR_KEYS
    assert body["error"] == "VALIDATION_ERROR"
    assert isinstance(body["details"], list)
