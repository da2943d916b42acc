"""
IRDesk Platform - CRM API测试
"""

from datetime import datetime, timezone


async def _customer(client, headers, **overrides):
    payload = {"customerName": "홍길동", "joinDate": "2024-01-02", "customerGrade": "GENERAL"}
    payload.update(overrides)
    response = await client.post("/api/crm/customers", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _account(client, headers, customer_id, account_no="110-01-000001", balance=1_000_000):
    response = await client.post(
        f"/api/crm/customers/{customer_id}/accounts",
        headers=headers,
        json={"accountNo": account_no, "accountType": "CMA", "balance": balance},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _product(client, headers, name="KB 성장주 펀드", product_type="FUND"):
    response = await client.post(
        "/api/crm/products",
        headers=headers,
        json={"productName": name, "productType": product_type, "riskLevel": "HIGH", "issuer": "KB"},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def test_customer_crud(client, auth_headers):
    created = await _customer(client, auth_headers, email="hong@example.com")
    assert created["customerName"] == "홍길동"
    assert created["customerGrade"] == "GENERAL"
    assert created["status"] == "ACTIVE"
    assert created["joinDate"] == "2024-01-02"

    fetched = await client.get(f"/api/crm/customers/{created['customerId']}", headers=auth_headers)
    assert fetched.json()["data"]["email"] == "hong@example.com"

    updated = await client.put(
        f"/api/crm/customers/{created['customerId']}",
        headers=auth_headers,
        json={"customerGrade": "VIP", "phoneNo": "010-1234-5678"},
    )
    body = updated.json()
    assert body["message"] == "Customer updated successfully"
    assert body["data"]["customerGrade"] == "VIP"
    assert body["data"]["lastContactDate"]

    deleted = await client.delete(f"/api/crm/customers/{created['customerId']}", headers=auth_headers)
    assert deleted.json() == {"data": None, "message": "Customer deleted successfully"}

    missing = await client.get(f"/api/crm/customers/{created['customerId']}", headers=auth_headers)
    assert missing.status_code == 404


async def test_customer_list_filters_and_pagination(client, auth_headers):
    await _customer(client, auth_headers, customerName="홍길동")
    await _customer(client, auth_headers, customerName="김철수", customerGrade="VIP", joinDate="2024-06-01")
    await _customer(client, auth_headers, customerName="홍길순", status="INACTIVE")

    response = await client.get("/api/crm/customers?customerName=홍길&limit=1", headers=auth_headers)
    page = response.json()["data"]
    assert page["pagination"] == {"page": 1, "limit": 1, "total": 2, "totalPages": 2}
    assert len(page["data"]) == 1

    vip = await client.get("/api/crm/customers?customerGrade=VIP", headers=auth_headers)
    assert [c["customerName"] for c in vip.json()["data"]["data"]] == ["김철수"]

    inactive = await client.get("/api/crm/customers?status=INACTIVE", headers=auth_headers)
    assert [c["customerName"] for c in inactive.json()["data"]["data"]] == ["홍길순"]

    joined = await client.get("/api/crm/customers?joinDateFrom=2024-03-01", headers=auth_headers)
    assert [c["customerName"] for c in joined.json()["data"]["data"]] == ["김철수"]

    too_big = await client.get("/api/crm/customers?limit=500", headers=auth_headers)
    assert too_big.status_code == 400


async def test_contacts(client, auth_headers):
    customer = await _customer(client, auth_headers)
    created = await client.post(
        f"/api/crm/customers/{customer['customerId']}/contacts",
        headers=auth_headers,
        json={"contactType": "PHONE", "contactPurpose": "INVESTMENT_INQUIRY", "contactNote": "펀드 문의"},
    )
    assert created.status_code == 201
    assert created.json()["data"]["contactDate"]

    listed = await client.get(f"/api/crm/customers/{customer['customerId']}/contacts", headers=auth_headers)
    assert [c["contactNote"] for c in listed.json()["data"]] == ["펀드 문의"]

    missing = await client.post("/api/crm/customers/999/contacts", headers=auth_headers, json={})
    assert missing.status_code == 404


async def test_accounts(client, auth_headers):
    customer = await _customer(client, auth_headers)
    account = await _account(client, auth_headers, customer["customerId"])
    assert account["balance"] == 1_000_000.0
    assert account["status"] == "ACTIVE"

    duplicate = await client.post(
        f"/api/crm/customers/{customer['customerId']}/accounts",
        headers=auth_headers,
        json={"accountNo": "110-01-000001"},
    )
    assert duplicate.status_code == 409

    updated = await client.put(
        f"/api/crm/accounts/{account['accountId']}", headers=auth_headers, json={"status": "SUSPENDED"}
    )
    assert updated.json()["data"]["status"] == "SUSPENDED"

    listed = await client.get(f"/api/crm/customers/{customer['customerId']}/accounts", headers=auth_headers)
    assert [a["accountNo"] for a in listed.json()["data"]] == ["110-01-000001"]


async def test_products(client, auth_headers):
    product = await _product(client, auth_headers)
    assert product["productType"] == "FUND"

    updated = await client.put(
        f"/api/crm/products/{product['productId']}", headers=auth_headers, json={"riskLevel": "LOW"}
    )
    assert updated.json()["data"]["riskLevel"] == "LOW"

    listed = await client.get("/api/crm/products", headers=auth_headers)
    assert [p["productName"] for p in listed.json()["data"]] == ["KB 성장주 펀드"]

    invalid = await client.post(
        "/api/crm/products", headers=auth_headers, json={"productName": "X", "productType": "CRYPTO"}
    )
    assert invalid.status_code == 400


async def test_transactions_adjust_balance(client, auth_headers):
    customer = await _customer(client, auth_headers)
    account = await _account(client, auth_headers, customer["customerId"])
    product = await _product(client, auth_headers)

    buy = await client.post(
        "/api/crm/transactions",
        headers=auth_headers,
        json={
            "accountId": account["accountId"],
            "productId": product["productId"],
            "tradeType": "BUY",
            "tradeAmount": 300000,
            "tradePrice": 10000,
            "tradeDate": "2024-05-01T00:00:00Z",
        },
    )
    assert buy.status_code == 201
    assert buy.json()["data"]["tradeAmount"] == 300000.0

    sell = await client.post(
        "/api/crm/transactions",
        headers=auth_headers,
        json={
            "accountId": account["accountId"],
            "productId": product["productId"],
            "tradeType": "SELL",
            "tradeAmount": 50000,
            "tradeDate": "2024-06-01T00:00:00Z",
        },
    )
    assert sell.status_code == 201

    accounts = await client.get(f"/api/crm/customers/{customer['customerId']}/accounts", headers=auth_headers)
    assert accounts.json()["data"][0]["balance"] == 750_000.0

    listed = await client.get(
        f"/api/crm/transactions?accountId={account['accountId']}", headers=auth_headers
    )
    assert [t["tradeType"] for t in listed.json()["data"]["data"]] == ["SELL", "BUY"]

    buys = await client.get("/api/crm/transactions?tradeType=BUY", headers=auth_headers)
    assert buys.json()["data"]["pagination"]["total"] == 1

    ranged = await client.get(
        "/api/crm/transactions",
        headers=auth_headers,
        params={"tradeDateFrom": "2024-05-15T00:00:00Z"},
    )
    assert ranged.json()["data"]["pagination"]["total"] == 1

    stats = await client.get("/api/crm/statistics/transactions", headers=auth_headers)
    assert stats.json()["data"] == {
        "totalTransactions": 2,
        "totalVolume": 350000.0,
        "buyTransactions": 1,
        "sellTransactions": 1,
    }


async def test_transaction_validation(client, auth_headers):
    customer = await _customer(client, auth_headers)
    account = await _account(client, auth_headers, customer["customerId"])

    unknown_product = await client.post(
        "/api/crm/transactions",
        headers=auth_headers,
        json={"accountId": account["accountId"], "productId": 999, "tradeType": "BUY", "tradeAmount": 1},
    )
    assert unknown_product.status_code == 404

    negative = await client.post(
        "/api/crm/transactions",
        headers=auth_headers,
        json={"accountId": account["accountId"], "productId": 1, "tradeType": "BUY", "tradeAmount": -5},
    )
    assert negative.status_code == 400


async def test_customer_statistics(client, auth_headers):
    today = datetime.now(timezone.utc).date().isoformat()
    await _customer(client, auth_headers, customerGrade="VIP", joinDate=today)
    await _customer(client, auth_headers, status="INACTIVE")

    response = await client.get("/api/crm/statistics/customers", headers=auth_headers)
    assert response.json()["data"] == {
        "totalCustomers": 2,
        "activeCustomers": 1,
        "vipCustomers": 1,
        "newCustomersThisMonth": 1,
    }


async def test_crm_requires_auth(client):
    response = await client.get("/api/crm/customers")
    assert response.status_code == 401
