"""
IRDesk Platform - 自选股与价格提醒测试
"""


async def test_favorites_lifecycle(client, auth_headers):
    empty = await client.get("/api/favorites", headers=auth_headers)
    assert empty.status_code == 200
    assert empty.json() == []

    added = await client.post("/api/favorites/aapl", headers=auth_headers)
    assert added.status_code == 200
    assert added.json() == {"message": "Added to favorites", "symbol": "AAPL"}

    # 重复添加不产生重复项
    await client.post("/api/favorites/AAPL", headers=auth_headers)
    await client.post("/api/favorites/005930", headers=auth_headers)

    listed = await client.get("/api/favorites", headers=auth_headers)
    assert listed.json() == ["AAPL", "005930"]

    check = await client.get("/api/favorites/aapl/check", headers=auth_headers)
    assert check.json() == {"symbol": "AAPL", "isFavorite": True}

    removed = await client.delete("/api/favorites/AAPL", headers=auth_headers)
    assert removed.json()["message"] == "Removed from favorites"

    check = await client.get("/api/favorites/AAPL/check", headers=auth_headers)
    assert check.json()["isFavorite"] is False


async def test_favorites_are_per_user(client, auth_headers, register_user):
    await client.post("/api/favorites/TSLA", headers=auth_headers)

    other = await register_user()
    other_headers = {"Authorization": f"Bearer {other['accessToken']}"}
    response = await client.get("/api/favorites", headers=other_headers)
    assert response.json() == []


async def test_favorites_require_auth(client):
    response = await client.get("/api/favorites")
    assert response.status_code == 401


async def test_create_price_alert(client, auth_headers):
    response = await client.post(
        "/api/alerts",
        headers=auth_headers,
        json={"symbol": "nvda", "targetPrice": "120.50", "condition": "above"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Price alert created"
    assert body["alert"]["symbol"] == "NVDA"
    assert body["alert"]["targetPrice"] == "120.50"
    assert body["alert"]["condition"] == "above"
    assert body["alert"]["isActive"] is True

    listed = await client.get("/api/alerts", headers=auth_headers)
    assert [a["symbol"] for a in listed.json()] == ["NVDA"]


async def test_price_alert_validation(client, auth_headers):
    bad_price = await client.post(
        "/api/alerts",
        headers=auth_headers,
        json={"symbol": "NVDA", "targetPrice": "12.345", "condition": "above"},
    )
    assert bad_price.status_code == 400

    bad_condition = await client.post(
        "/api/alerts",
        headers=auth_headers,
        json={"symbol": "NVDA", "targetPrice": "12", "condition": "equal"},
    )
    assert bad_condition.status_code == 400
