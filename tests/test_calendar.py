"""
IRDesk Platform - 日历API测试
"""


def _event(**overrides):
    payload = {
        "title": "실적 발표 준비",
        "startAt": "2024-07-01T01:00:00Z",
        "endAt": "2024-07-01T02:00:00Z",
        "location": "본사 12층",
    }
    payload.update(overrides)
    return payload


async def _create(client, headers, **overrides):
    response = await client.post("/api/calendar/events", headers=headers, json=_event(**overrides))
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def test_create_event_with_defaults(client, auth_session, auth_headers):
    event = await _create(client, auth_headers)
    assert event["title"] == "실적 발표 준비"
    assert event["eventType"] == "MEETING"
    assert event["status"] == "CONFIRMED"
    assert event["allDay"] is False
    assert event["ownerId"] == auth_session["user"]["id"]
    assert event["startAt"] == "2024-07-01T01:00:00.000Z"


async def test_end_before_start_is_rejected(client, auth_headers):
    response = await client.post(
        "/api/calendar/events",
        headers=auth_headers,
        json=_event(startAt="2024-07-01T05:00:00Z", endAt="2024-07-01T04:00:00Z"),
    )
    assert response.status_code == 400

    event = await _create(client, auth_headers)
    update = await client.put(
        f"/api/calendar/events/{event['eventId']}",
        headers=auth_headers,
        json={"endAt": "2024-06-30T00:00:00Z"},
    )
    assert update.status_code == 400


async def test_list_events_by_overlap(client, auth_headers):
    await _create(client, auth_headers, title="7월 일정")
    await _create(
        client,
        auth_headers,
        title="8월 통화",
        eventType="CALL",
        startAt="2024-08-10T00:00:00Z",
        endAt="2024-08-10T01:00:00Z",
    )
    await _create(
        client,
        auth_headers,
        title="걸친 일정",
        startAt="2024-06-30T00:00:00Z",
        endAt="2024-07-02T00:00:00Z",
        status="TENTATIVE",
    )

    july = await client.get(
        "/api/calendar/events",
        headers=auth_headers,
        params={"from": "2024-07-01T00:00:00Z", "to": "2024-07-31T23:59:59Z"},
    )
    assert [e["title"] for e in july.json()["data"]] == ["7월 일정", "걸친 일정"]

    calls = await client.get("/api/calendar/events", headers=auth_headers, params={"eventType": "CALL"})
    assert [e["title"] for e in calls.json()["data"]] == ["8월 통화"]

    tentative = await client.get("/api/calendar/events", headers=auth_headers, params={"status": "TENTATIVE"})
    assert [e["title"] for e in tentative.json()["data"]] == ["걸친 일정"]


async def test_update_and_history(client, auth_headers):
    event = await _create(client, auth_headers)
    updated = await client.put(
        f"/api/calendar/events/{event['eventId']}",
        headers=auth_headers,
        json={"title": "실적 발표 리허설", "status": "TENTATIVE"},
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["title"] == "실적 발표 리허설"

    history = await client.get(f"/api/calendar/events/{event['eventId']}/history", headers=auth_headers)
    records = history.json()["data"]
    assert [r["action"] for r in records] == ["UPDATE", "CREATE"]
    assert records[0]["before"]["title"] == "실적 발표 준비"
    assert records[0]["after"]["status"] == "TENTATIVE"
    assert records[1]["before"] is None


async def test_delete_keeps_history(client, auth_headers):
    event = await _create(client, auth_headers)

    deleted = await client.delete(f"/api/calendar/events/{event['eventId']}", headers=auth_headers)
    assert deleted.json() == {"status": "SUCCESS"}

    missing = await client.get(f"/api/calendar/events/{event['eventId']}", headers=auth_headers)
    assert missing.status_code == 404

    history = await client.get(f"/api/calendar/events/{event['eventId']}/history", headers=auth_headers)
    assert [r["action"] for r in history.json()["data"]] == ["DELETE", "CREATE"]

    # 不存在的日程删除视为成功
    again = await client.delete(f"/api/calendar/events/{event['eventId']}", headers=auth_headers)
    assert again.json() == {"status": "SUCCESS"}


async def test_update_rejects_null_required_fields(client, auth_headers):
    event = await _create(client, auth_headers)

    for field in ("title", "startAt", "endAt", "allDay"):
        response = await client.put(
            f"/api/calendar/events/{event['id']}", headers=auth_headers, json={field: None}
        )
        assert response.status_code == 400, field
        assert response.json()["error"] == "VALIDATION_ERROR"

    unchanged = await client.get(f"/api/calendar/events/{event['id']}", headers=auth_headers)
    assert unchanged.json()["data"]["title"] == "실적 발표 준비"

    cleared = await client.put(
        f"/api/calendar/events/{event['id']}", headers=auth_headers, json={"location": None}
    )
    assert cleared.status_code == 200
    assert cleared.json()["data"]["location"] is None
