"""
IRDesk Platform - 投资者API测试
"""

from backend.app.models.investor import InvestorType, Orientation, Turnover


async def _seed_group(make_country, make_investor, make_snapshot):
    await make_country("US", "미국", "United States")
    await make_country("GB", "영국", "United Kingdom")

    alpha = await make_investor("Alpha Capital", "US")
    alpha_child = await make_investor(
        "Alpha Capital Advisors", "US", parent_id=alpha.id, is_group_representative=False
    )
    beta = await make_investor("Beta Partners", "GB", city="London")

    await make_snapshot(
        alpha.id, 2024, 3,
        group_rank=1, group_child_count=1, s_over_o=5, ord=1000, adr=200,
        turnover=Turnover.HIGH, orientation=Orientation.ACTIVE, investor_type=InvestorType.HEDGE_FUND,
    )
    await make_snapshot(alpha_child.id, 2024, 3, s_over_o=1, ord=300, orientation=Orientation.ACTIVE)
    await make_snapshot(
        beta.id, 2024, 3,
        group_rank=2, group_child_count=0, s_over_o=3, ord=500, adr=100,
        turnover=Turnover.LOW, orientation=Orientation.INACTIVE,
    )
    await make_snapshot(alpha.id, 2024, 2, group_rank=1, s_over_o=4, ord=800, adr=200)
    return alpha, alpha_child, beta


async def test_investors_table_groups_children_under_parent(
    client, auth_headers, make_country, make_investor, make_snapshot
):
    alpha, alpha_child, beta = await _seed_group(make_country, make_investor, make_snapshot)

    response = await client.get("/api/investors/table?year=2024&quarter=3", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 2
    assert [row["rowType"] for row in data["rows"]] == ["PARENT", "CHILD", "PARENT"]
    assert [row["investor"]["id"] for row in data["rows"]] == [alpha.id, alpha_child.id, beta.id]

    parent = data["rows"][0]
    assert parent["group"] == {"rank": 1, "childCount": 1}
    assert parent["investor"]["country"] == {"code": "US", "name": "미국", "city": "New York"}
    assert parent["metrics"]["turnover"] == "HIGH"
    assert parent["metrics"]["investorType"] == "HEDGE_FUND"
    assert data["rows"][1]["parentId"] == alpha.id


async def test_investors_table_filters_and_only_parent(
    client, auth_headers, make_country, make_investor, make_snapshot
):
    await _seed_group(make_country, make_investor, make_snapshot)

    only_parent = await client.get(
        "/api/investors/table?year=2024&quarter=3&onlyParent=true", headers=auth_headers
    )
    assert [row["rowType"] for row in only_parent.json()["data"]["rows"]] == ["PARENT", "PARENT"]

    by_country = await client.get("/api/investors/table?year=2024&quarter=3&country=gb", headers=auth_headers)
    rows = by_country.json()["data"]["rows"]
    assert [row["investor"]["name"] for row in rows] == ["Beta Partners"]

    desc = await client.get(
        "/api/investors/table?year=2024&quarter=3&order=desc&onlyParent=true", headers=auth_headers
    )
    assert [row["group"]["rank"] for row in desc.json()["data"]["rows"]] == [2, 1]

    empty = await client.get("/api/investors/table?year=2020&quarter=1", headers=auth_headers)
    assert empty.json()["data"]["rows"] == []
    assert empty.json()["data"]["total"] == 0


async def test_top_investors(client, auth_headers, make_country, make_investor, make_snapshot):
    await _seed_group(make_country, make_investor, make_snapshot)

    response = await client.get("/api/investors/top?year=2024&quarter=3&topN=1", headers=auth_headers)
    data = response.json()["data"]
    assert data["topN"] == 1
    assert [item["name"] for item in data["investors"]] == ["Alpha Capital"]


async def test_investor_detail_compares_previous_quarter(
    client, auth_headers, make_country, make_investor, make_snapshot
):
    alpha, _, _ = await _seed_group(make_country, make_investor, make_snapshot)

    response = await client.get(f"/api/investors/{alpha.id}", headers=auth_headers)
    assert response.status_code == 200
    detail = response.json()["data"]
    assert detail["id"] == str(alpha.id)
    assert detail["rank"] == "#1"
    assert detail["companyName"] == "Alpha Capital"
    assert detail["country"] == {"name": "미국", "city": "New York", "code": "US"}
    assert detail["turnover"] == "High"
    assert detail["orientation"] == "Active"

    metrics = {item["label"]: item for item in detail["metrics"]}
    assert metrics["% S/O"]["value"] == "5%"
    assert metrics["% S/O"]["change"] == "지난 분기 대비 +25%"
    assert metrics["ORD"]["value"] == "1,000"
    assert metrics["ORD + ADR"]["value"] == "1,200"
    assert metrics["ORD + ADR"]["change"] == "지난 분기 대비 +20%"

    chart = detail["stockHoldingsChart"]
    assert [point["quarter"] for point in chart["data"]] == ["2Q24", "3Q24"]
    assert chart["highlightedQuarters"] == ["3Q24", "2Q24"]


async def test_investor_detail_not_found(client, auth_headers, make_investor):
    missing = await client.get("/api/investors/9999", headers=auth_headers)
    assert missing.status_code == 404

    investor = await make_investor("No Snapshot Fund")
    response = await client.get(f"/api/investors/{investor.id}", headers=auth_headers)
    assert response.status_code == 404


async def test_snapshot_update_records_history(
    client, auth_headers, make_country, make_investor, make_snapshot
):
    alpha, _, _ = await _seed_group(make_country, make_investor, make_snapshot)

    response = await client.patch(
        f"/api/investors/{alpha.id}/snapshot",
        headers=auth_headers,
        json={"year": 2024, "quarter": 3, "sOverO": 6, "turnover": "MEDIUM", "ord": 1000},
    )
    assert response.status_code == 200
    snapshot = response.json()["data"]["snapshot"]
    assert snapshot["sOverO"] == 6
    assert snapshot["turnover"] == "MEDIUM"

    history = await client.get(f"/api/investors/{alpha.id}/history", headers=auth_headers)
    data = history.json()["data"]
    assert data["total"] == 1
    record = data["history"][0]
    assert record["changes"] == {"sOverO": [5, 6], "turnover": ["HIGH", "MEDIUM"]}
    assert record["updatedBy"]["email"] == "owner@example.com"
    assert (record["year"], record["quarter"]) == (2024, 3)


async def test_snapshot_update_without_changes_skips_history(
    client, auth_headers, make_country, make_investor, make_snapshot
):
    alpha, _, _ = await _seed_group(make_country, make_investor, make_snapshot)

    response = await client.patch(
        f"/api/investors/{alpha.id}/snapshot",
        headers=auth_headers,
        json={"year": 2024, "quarter": 3, "sOverO": 5},
    )
    assert response.status_code == 200

    history = await client.get(f"/api/investors/{alpha.id}/history", headers=auth_headers)
    assert history.json()["data"]["total"] == 0


async def test_snapshot_update_missing_period(client, auth_headers, make_investor):
    investor = await make_investor("Gamma")
    response = await client.patch(
        f"/api/investors/{investor.id}/snapshot",
        headers=auth_headers,
        json={"year": 2023, "quarter": 1, "ord": 1},
    )
    assert response.status_code == 404


async def test_update_investor_basic_info(client, auth_headers, make_investor, make_snapshot):
    investor = await make_investor("Delta")
    await make_snapshot(investor.id, 2024, 3, group_rank=4)

    response = await client.patch(
        f"/api/investors/{investor.id}",
        headers=auth_headers,
        json={"name": "Delta Global", "city": "Boston"},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["investor"]["name"] == "Delta Global"
    assert data["investor"]["city"] == "Boston"
    assert data["snapshot"]["groupRank"] == 4


async def test_filters_and_summary_metrics(client, auth_headers, make_country, make_investor, make_snapshot):
    await _seed_group(make_country, make_investor, make_snapshot)

    periods = await client.get("/api/filters/periods", headers=auth_headers)
    assert periods.json()["data"]["periods"] == [
        {"year": 2024, "quarter": 3},
        {"year": 2024, "quarter": 2},
    ]

    dictionaries = await client.get("/api/filters/dictionaries", headers=auth_headers)
    data = dictionaries.json()["data"]
    assert {"code": "US", "name": "미국"} in data["countries"]
    assert "HEDGE_FUND" in data["investorTypes"]
    assert data["orientations"] == ["ACTIVE", "INACTIVE"]

    summary = await client.get("/api/metrics/summary?year=2024&quarter=3", headers=auth_headers)
    metrics = summary.json()["data"]
    assert metrics["totalInvestors"] == 3
    assert metrics["parents"] == 2
    assert metrics["children"] == 1
    assert abs(metrics["activeRate"] - 2 / 3) < 1e-9
    assert metrics["turnoverDist"] == {"LOW": 1, "MEDIUM": 0, "HIGH": 1}


async def test_investor_endpoints_require_auth(client):
    response = await client.get("/api/investors/table?year=2024&quarter=3")
    assert response.status_code == 401


async def test_update_investor_checks_references(client, auth_headers, make_country, make_investor, make_snapshot):
    alpha, _, beta = await _seed_group(make_country, make_investor, make_snapshot)

    unknown_country = await client.patch(f"/api/investors/{alpha.id}", headers=auth_headers, json={"countryCode": "ZZ"})
    assert unknown_country.status_code == 404
    assert unknown_country.json()["error"] == "NOT_FOUND"

    unknown_parent = await client.patch(f"/api/investors/{alpha.id}", headers=auth_headers, json={"parentId": 9999})
    assert unknown_parent.status_code == 404

    own_parent = await client.patch(f"/api/investors/{alpha.id}", headers=auth_headers, json={"parentId": alpha.id})
    assert own_parent.status_code == 400

    null_name = await client.patch(f"/api/investors/{alpha.id}", headers=auth_headers, json={"name": None})
    assert null_name.status_code == 400
    assert null_name.json()["error"] == "VALIDATION_ERROR"

    moved = await client.patch(f"/api/investors/{alpha.id}", headers=auth_headers, json={"countryCode": "gb"})
    assert moved.status_code == 200
    assert moved.json()["data"]["investor"]["country"] == "GB"
