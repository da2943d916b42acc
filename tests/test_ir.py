"""
IRDesk Platform - IR活动API测试
"""

from backend.app.services.ir_service import collect_visitors, generate_id

RANGE = {"start": "2024-01-01T00:00:00Z", "end": "2024-12-31T23:59:59Z"}


def _activity(**overrides):
    payload = {
        "title": "3Q24 NDR",
        "startDatetime": "2024-09-10T01:00:00Z",
        "endDatetime": "2024-09-10T03:00:00Z",
        "category": "EXTERNAL",
        "typePrimary": "NDR",
        "location": "Seoul",
        "kbs": ["이대리"],
        "visitors": [
            "Alpha Capital",
            {"visitorName": "Morgan Broker", "visitorType": "broker", "company": "MS"},
        ],
        "keywords": ["배당", "실적", "배당"],
    }
    payload.update(overrides)
    return payload


async def _create(client, headers, **overrides):
    response = await client.post("/api/ir/activities", headers=headers, json=_activity(**overrides))
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_generate_id_format():
    parts = generate_id("act").split("-")
    assert parts[0] == "act"
    assert parts[1].isdigit()
    assert len(parts[2]) == 7


def test_collect_visitors_dedupes_and_types():
    collected = collect_visitors(["김팀장"], ["Alpha", {"visitor_name": "Alpha"}, {"visitor_name": "GS", "visitor_type": "broker"}])
    assert [(v["visitor_name"], v["visitor_type"].value) for v in collected] == [
        ("김팀장", "kb"),
        ("Alpha", "investor"),
        ("GS", "broker"),
    ]


async def test_create_activity_returns_full_detail(client, auth_headers):
    data = await _create(client, auth_headers)

    assert data["id"].startswith("act-")
    assert data["title"] == "3Q24 NDR"
    assert data["status"] == "SCHEDULED"
    assert data["category"] == "EXTERNAL"
    assert data["startISO"] == "2024-09-10T01:00:00.000Z"
    assert data["allDay"] is False
    assert data["owner"] == "김담당"
    assert data["kbs"] == ["이대리"]
    assert sorted(data["visitors"]) == ["Alpha Capital", "Morgan Broker"]
    assert data["investors"] == ["Alpha Capital"]
    assert data["brokers"] == ["Morgan Broker"]
    assert data["keywords"] == ["배당", "실적"]
    assert data["attachments"] == []
    assert [log["type"] for log in data["logs"]] == ["create"]
    assert data["resolvedAtISO"] is None


async def test_create_activity_validation(client, auth_headers):
    payload = _activity()
    del payload["typePrimary"]
    missing = await client.post("/api/ir/activities", headers=auth_headers, json=payload)
    assert missing.status_code == 400

    bad_category = await client.post("/api/ir/activities", headers=auth_headers, json=_activity(category="MEETING"))
    assert bad_category.status_code == 400

    too_many = await client.post(
        "/api/ir/activities", headers=auth_headers, json=_activity(keywords=["a", "b", "c", "d", "e", "f"])
    )
    assert too_many.status_code == 400


async def test_views_filter_by_range_and_status(client, auth_headers):
    first = await _create(client, auth_headers)
    await _create(client, auth_headers, title="Earnings call", startDatetime="2024-03-05T06:00:00Z", category="INTERNAL")
    await _create(client, auth_headers, title="Old meeting", startDatetime="2023-05-05T06:00:00Z")

    calendar = await client.get("/api/ir/calendar/events", headers=auth_headers, params=RANGE)
    events = calendar.json()["data"]["events"]
    assert [event["title"] for event in events] == ["Earnings call", "3Q24 NDR"]

    internal = await client.get(
        "/api/ir/calendar/events", headers=auth_headers, params={**RANGE, "category": "INTERNAL"}
    )
    assert [event["title"] for event in internal.json()["data"]["events"]] == ["Earnings call"]

    await client.patch(f"/api/ir/activities/{first['id']}/status", headers=auth_headers, json={"status": "COMPLETED"})
    completed = await client.get(
        "/api/ir/list/activities", headers=auth_headers, params={**RANGE, "status": "COMPLETED"}
    )
    listed = completed.json()["data"]
    assert listed["total"] == 1
    assert listed["activities"][0]["investors"] == ["Alpha Capital"]
    assert listed["activities"][0]["owner"] == "김담당"

    everything = await client.get(
        "/api/ir/list/activities",
        headers=auth_headers,
        params={**RANGE, "status": "ALL", "sortBy": "title", "sortOrder": "asc"},
    )
    assert [a["title"] for a in everything.json()["data"]["activities"]] == ["3Q24 NDR", "Earnings call"]

    invalid = await client.get("/api/ir/list/activities", headers=auth_headers, params={**RANGE, "status": "DONE"})
    assert invalid.status_code == 400


async def test_sub_activities_and_timeline(client, auth_headers):
    activity = await _create(
        client,
        auth_headers,
        subActivities=[{"title": "Alpha 미팅", "startDatetime": "2024-09-10T01:00:00Z"}],
    )
    assert activity["subActivities"][0]["category"] == "EXTERNAL"
    assert activity["subActivities"][0]["typePrimary"] == "NDR"

    added = await client.post(
        f"/api/ir/activities/{activity['id']}/sub-activities",
        headers=auth_headers,
        json={"title": "Beta 미팅", "typePrimary": "1:1", "keywords": ["ESG"]},
    )
    assert added.status_code == 201
    sub = added.json()["data"]
    assert sub["id"].startswith("sub-")
    assert sub["displayOrder"] == 1
    assert sub["typePrimary"] == "1:1"

    timeline = await client.get("/api/ir/timeline/activities", headers=auth_headers, params=RANGE)
    item = timeline.json()["data"]["activities"][0]
    assert [s["title"] for s in item["subActivities"]] == ["Alpha 미팅", "Beta 미팅"]


async def test_update_replaces_lists_and_updates_sub_activity(client, auth_headers):
    activity = await _create(client, auth_headers, subActivities=[{"title": "원래 제목"}])
    sub_id = activity["subActivities"][0]["id"]

    response = await client.patch(
        f"/api/ir/activities/{activity['id']}",
        headers=auth_headers,
        json={
            "title": "3Q24 NDR (변경)",
            "visitors": ["Beta Partners"],
            "keywords": ["ESG"],
            "subActivities": [
                {"id": sub_id, "title": "변경된 제목"},
                {"id": "sub-unknown", "title": "무시"},
                {"title": "id 없음"},
            ],
        },
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "3Q24 NDR (변경)"
    assert data["kbs"] == ["이대리"]
    assert data["visitors"] == ["Beta Partners"]
    assert data["keywords"] == ["ESG"]
    assert [s["title"] for s in data["subActivities"]] == ["변경된 제목"]
    assert {log["type"] for log in data["logs"]} == {"create", "update"}


async def test_update_accepts_iso_aliases(client, auth_headers):
    activity = await _create(client, auth_headers)
    response = await client.patch(
        f"/api/ir/activities/{activity['id']}",
        headers=auth_headers,
        json={"startISO": "2024-09-11T01:00:00Z", "endISO": "2024-09-11T02:00:00Z"},
    )
    data = response.json()["data"]
    assert data["startISO"] == "2024-09-11T01:00:00.000Z"
    assert data["endISO"] == "2024-09-11T02:00:00.000Z"


async def test_status_change_sets_resolved_and_logs(client, auth_headers):
    activity = await _create(client, auth_headers)
    response = await client.patch(
        f"/api/ir/activities/{activity['id']}/status", headers=auth_headers, json={"status": "COMPLETED"}
    )
    data = response.json()["data"]
    assert data["status"] == "COMPLETED"
    assert data["resolvedAtISO"]
    status_log = next(log for log in data["logs"] if log["type"] == "status")
    assert status_log["oldValue"] == "SCHEDULED"
    assert status_log["newValue"] == "COMPLETED"

    invalid = await client.patch(
        f"/api/ir/activities/{activity['id']}/status", headers=auth_headers, json={"status": "CANCELLED"}
    )
    assert invalid.status_code == 400


async def test_attachments(client, auth_headers):
    activity = await _create(client, auth_headers)

    uploaded = await client.post(
        f"/api/ir/activities/{activity['id']}/attachments",
        headers=auth_headers,
        files={"file": ("deck.pdf", b"%PDF-1.4 test", "application/pdf")},
    )
    assert uploaded.status_code == 201
    attachment = uploaded.json()["data"]
    assert attachment["id"].startswith("att-")
    assert attachment["name"] == "deck.pdf"
    assert attachment["size"] == len(b"%PDF-1.4 test")
    assert attachment["url"].endswith(".pdf")
    assert attachment["uploadedBy"] == "김담당"

    rejected = await client.post(
        f"/api/ir/activities/{activity['id']}/attachments",
        headers=auth_headers,
        files={"file": ("run.exe", b"MZ", "application/x-msdownload")},
    )
    assert rejected.status_code == 400

    detail = await client.get(f"/api/ir/activities/{activity['id']}", headers=auth_headers)
    data = detail.json()["data"]
    assert [a["name"] for a in data["attachments"]] == ["deck.pdf"]
    assert data["files"] == data["attachments"]
    assert "attachment" in {log["type"] for log in data["logs"]}


async def test_delete_activity(client, auth_headers):
    activity = await _create(client, auth_headers)

    deleted = await client.delete(f"/api/ir/activities/{activity['id']}", headers=auth_headers)
    assert deleted.status_code == 204

    missing = await client.get(f"/api/ir/activities/{activity['id']}", headers=auth_headers)
    assert missing.status_code == 404

    again = await client.delete(f"/api/ir/activities/{activity['id']}", headers=auth_headers)
    assert again.status_code == 404


async def test_insights(client, auth_headers):
    first = await _create(client, auth_headers)
    await _create(
        client,
        auth_headers,
        title="Alpha follow-up",
        startDatetime="2024-11-02T01:00:00Z",
        visitors=[{"visitorName": "Alpha Capital", "company": "Alpha"}],
        keywords=["배당"],
    )
    await client.patch(f"/api/ir/activities/{first['id']}/status", headers=auth_headers, json={"status": "COMPLETED"})

    response = await client.get(
        "/api/ir/insights",
        headers=auth_headers,
        params={"startISO": "2024-01-01T00:00:00Z", "endISO": "2024-12-31T00:00:00Z"},
    )
    assert response.status_code == 200
    data = response.json()["data"]

    assert data["summary"]["totalActivities"] == 2
    assert data["summary"]["uniqueInvestors"] == 1
    assert data["summary"]["activeKbStaff"] == 1

    months = {item["period"]: item for item in data["activityStatsByMonth"]}
    assert months["2024-09"]["byStatus"]["COMPLETED"] == 1
    assert months["2024-11"]["byStatus"]["SCHEDULED"] == 1
    assert [item["period"] for item in data["activityStatsByQuarter"]] == ["2024-Q3", "2024-Q4"]

    assert data["distributionByCategory"] == [{"category": "EXTERNAL", "count": 2, "percentage": 100.0}]
    assert data["topInvestors"][0]["visitorName"] == "Alpha Capital"
    assert data["topInvestors"][0]["activityCount"] == 2
    assert data["staffRanking"][0]["userName"] == "김담당"
    assert data["staffRanking"][0]["asOwner"] == 2
    assert data["topKeywords"][0] == {"keyword": "배당", "count": 2}
    assert data["dateRange"]["startISO"] == "2024-01-01T00:00:00.000Z"


async def test_insights_empty_period(client, auth_headers):
    response = await client.get(
        "/api/ir/insights",
        headers=auth_headers,
        params={"startISO": "2020-01-01T00:00:00Z", "endISO": "2020-02-01T00:00:00Z"},
    )
    data = response.json()["data"]
    assert data["summary"]["totalActivities"] == 0
    assert data["topInvestors"] == []


async def test_update_rejects_null_required_fields(client, auth_headers):
    activity = await _create(client, auth_headers)

    for field in ("title", "startDatetime", "startISO", "category"):
        response = await client.patch(
            f"/api/ir/activities/{activity['id']}", headers=auth_headers, json={field: None}
        )
        assert response.status_code == 400, field
        assert response.json()["error"] == "VALIDATION_ERROR"

    response = await client.patch(
        f"/api/ir/activities/{activity['id']}",
        headers=auth_headers,
        json={"subActivities": [{"title": None}]},
    )
    assert response.status_code == 400

    detail = await client.get(f"/api/ir/activities/{activity['id']}", headers=auth_headers)
    assert detail.json()["data"]["title"] == activity["title"]
