"""
IRDesk Platform - 出差管理API测试
"""

import pytest


@pytest.fixture
async def city(client, auth_headers, make_country):
    await make_country("JP", "일본", "Japan")
    response = await client.post(
        "/api/business-trips/cities",
        headers=auth_headers,
        json={
            "name": "도쿄",
            "nameEn": "Tokyo",
            "countryCode": "jp",
            "timezone": "Asia/Tokyo",
            "latitude": 35.6762,
            "longitude": 139.6503,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _place(client, headers, city_id, name="Park Hotel", place_type="HOTEL"):
    response = await client.post(
        "/api/business-trips/places",
        headers=headers,
        json={"name": name, "type": place_type, "cityId": city_id, "address": "Minato-ku"},
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _visit(client, headers, place_id, start="2024-05-01", end="2024-05-04", **extra):
    response = await client.post(
        "/api/business-trips/visits",
        headers=headers,
        json={"placeId": place_id, "startDate": start, "endDate": end, **extra},
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_city_and_list(client, auth_headers, city):
    assert city["countryCode"] == "JP"
    assert city["nameEn"] == "Tokyo"

    cities = await client.get("/api/business-trips/cities", headers=auth_headers)
    listed = cities.json()
    assert [c["name"] for c in listed] == ["도쿄"]
    assert listed[0]["countryName"] == "일본"


async def test_create_city_requires_known_country(client, auth_headers):
    response = await client.post(
        "/api/business-trips/cities",
        headers=auth_headers,
        json={"name": "파리", "nameEn": "Paris", "countryCode": "FR"},
    )
    assert response.status_code == 404


async def test_place_visit_updates_statistics(client, auth_headers, city):
    hotel = await _place(client, auth_headers, city["id"])
    assert hotel["visitCount"] == 0
    assert hotel["averageRating"] is None
    assert hotel["cityName"] == "도쿄"

    visit = await _visit(client, auth_headers, hotel["id"], companions=["C_LEVEL", "MANAGER"])
    assert visit["nights"] == 3
    assert visit["companions"] == ["C_LEVEL", "MANAGER"]

    explicit = await _visit(client, auth_headers, hotel["id"], start="2024-06-01", end="2024-06-02", nights=0)
    assert explicit["nights"] == 0

    detail = await client.get(f"/api/business-trips/places/{hotel['id']}", headers=auth_headers)
    data = detail.json()
    assert data["visitCount"] == 2
    assert data["lastVisitDate"] == "2024-06-01"
    assert [v["startDate"] for v in data["visits"]] == ["2024-06-01", "2024-05-01"]


async def test_visit_date_validation(client, auth_headers, city):
    hotel = await _place(client, auth_headers, city["id"])
    response = await client.post(
        "/api/business-trips/visits",
        headers=auth_headers,
        json={"placeId": hotel["id"], "startDate": "2024-05-04", "endDate": "2024-05-01"},
    )
    assert response.status_code == 400

    bad_companion = await client.post(
        "/api/business-trips/visits",
        headers=auth_headers,
        json={"placeId": hotel["id"], "startDate": "2024-05-01", "endDate": "2024-05-02", "companions": ["CEO"]},
    )
    assert bad_companion.status_code == 400


async def test_reviews_average_rating(client, auth_headers, city):
    hotel = await _place(client, auth_headers, city["id"])
    visit = await _visit(client, auth_headers, hotel["id"])

    for rating in (5, 4, 4):
        response = await client.post(
            "/api/business-trips/reviews",
            headers=auth_headers,
            json={"placeId": hotel["id"], "visitId": visit["id"], "rating": rating, "content": "좋음"},
        )
        assert response.status_code == 201

    detail = await client.get(f"/api/business-trips/places/{hotel['id']}", headers=auth_headers)
    data = detail.json()
    assert float(data["averageRating"]) == 4.33
    assert [r["rating"] for r in data["visits"][0]["reviews"]] == [5, 4, 4]

    out_of_range = await client.post(
        "/api/business-trips/reviews",
        headers=auth_headers,
        json={"placeId": hotel["id"], "visitId": visit["id"], "rating": 6},
    )
    assert out_of_range.status_code == 400


async def test_review_must_match_place(client, auth_headers, city):
    hotel = await _place(client, auth_headers, city["id"])
    restaurant = await _place(client, auth_headers, city["id"], name="Sushi Dai", place_type="RESTAURANT")
    visit = await _visit(client, auth_headers, hotel["id"])

    response = await client.post(
        "/api/business-trips/reviews",
        headers=auth_headers,
        json={"placeId": restaurant["id"], "visitId": visit["id"], "rating": 5},
    )
    assert response.status_code == 400


async def test_places_by_city_and_map_statistics(client, auth_headers, city):
    hotel = await _place(client, auth_headers, city["id"])
    restaurant = await _place(client, auth_headers, city["id"], name="Sushi Dai", place_type="RESTAURANT")
    await _visit(client, auth_headers, restaurant["id"], start="2024-07-01", end="2024-07-01")

    places = await client.get(f"/api/business-trips/cities/{city['id']}/places", headers=auth_headers)
    assert [p["name"] for p in places.json()["places"]] == ["Sushi Dai", "Park Hotel"]
    assert places.json()["places"][0]["visits"][0]["nights"] == 0

    hotels = await client.get(
        f"/api/business-trips/cities/{city['id']}/places", headers=auth_headers, params={"type": "HOTEL"}
    )
    assert [p["id"] for p in hotels.json()["places"]] == [hotel["id"]]

    stats = await client.get("/api/business-trips/map-statistics", headers=auth_headers)
    item = stats.json()[0]
    assert item["name"] == "도쿄"
    assert float(item["latitude"]) == pytest.approx(35.6762)
    assert item["statistics"] == {
        "totalVisits": 1,
        "hotelCount": 1,
        "restaurantCount": 1,
        "lastVisitDate": "2024-07-01",
    }


async def test_unknown_place_and_city(client, auth_headers):
    missing_place = await client.get("/api/business-trips/places/999", headers=auth_headers)
    assert missing_place.status_code == 404

    missing_city = await client.post(
        "/api/business-trips/places",
        headers=auth_headers,
        json={"name": "X", "type": "HOTEL", "cityId": 999, "address": "nowhere"},
    )
    assert missing_city.status_code == 404
