"""
IRDesk Platform - 文件上传测试
"""

import os

import pytest

from backend.app.core.config import settings


@pytest.mark.parametrize("path", ["/api/uploads", "/api/files/upload"])
async def test_upload_anonymous(client, path):
    response = await client.post(path, files={"file": ("memo.pdf", b"%PDF-1.4 test", "application/pdf")})
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["filename"] == "memo.pdf"
    assert body["size"] == len(b"%PDF-1.4 test")
    assert body["contentType"] == "application/pdf"
    assert body["meta"]["storage"] == "local"
    assert body["meta"]["uploadedBy"] is None
    assert body["meta"]["path"].endswith(".pdf")
    assert body["url"] == f"{settings.UPLOAD_BASE_URL}/{body['meta']['path']}"
    assert os.path.exists(os.path.join(settings.UPLOAD_DIR, body["meta"]["path"]))


async def test_upload_authenticated_with_original_name(client, auth_session, auth_headers):
    response = await client.post(
        "/api/uploads",
        headers=auth_headers,
        files={"file": ("tmp123.xlsx", b"PK\x03\x04data", "application/octet-stream")},
        data={"originalFilename": "2024 IR 일정.xlsx"},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["filename"] == "2024 IR 일정.xlsx"
    assert body["meta"]["uploadedBy"] == str(auth_session["user"]["id"])


async def test_upload_invalid_token_is_anonymous(client):
    response = await client.post(
        "/api/files/upload",
        headers={"Authorization": "Bearer not-a-token"},
        files={"file": ("a.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 201
    assert response.json()["meta"]["uploadedBy"] is None


async def test_upload_errors(client):
    response = await client.post("/api/uploads")
    assert response.status_code == 400
    assert response.json()["error"] == "UPLOAD_ERROR"
    assert response.json()["message"] == "No file uploaded"

    response = await client.post("/api/uploads", files={"file": ("empty.txt", b"", "text/plain")})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid file"
