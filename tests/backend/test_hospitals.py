from datetime import datetime, timedelta, timezone

from httpx import ASGITransport, AsyncClient
from fastapi import status

from src.hospital_api.main import app
from src.hospital_api.services.query import parse_list_query


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def test_create_and_get_hospital_round_trip(admin_headers, hospital_payload):
    async with _client() as ac:
        create_resp = await ac.post("/api/v1/hospitals", json=hospital_payload, headers=admin_headers)
        assert create_resp.status_code == status.HTTP_201_CREATED
        body = create_resp.json()
        assert body["success"] is True
        hospital_id = body["data"]["id"]

        get_resp = await ac.get(f"/api/v1/hospitals/{hospital_id}")
        assert get_resp.status_code == status.HTTP_200_OK
        data = get_resp.json()["data"]
        for key, value in hospital_payload.items():
            assert data[key] == value


async def test_admin_only_writes_require_token_and_admin_role(admin_headers, user_headers, hospital_payload):
    async with _client() as ac:
        no_token = await ac.post("/api/v1/hospitals", json=hospital_payload)
        assert no_token.status_code == status.HTTP_401_UNAUTHORIZED
        assert no_token.json() == {"success": False, "error": "Not authorized to access this route"}

        as_user = await ac.post("/api/v1/hospitals", json=hospital_payload, headers=user_headers)
        assert as_user.status_code == status.HTTP_403_FORBIDDEN
        assert as_user.json()["success"] is False
        assert "user" in as_user.json()["error"]

        as_admin = await ac.post("/api/v1/hospitals", json=hospital_payload, headers=admin_headers)
        assert as_admin.status_code == status.HTTP_201_CREATED


async def test_update_and_delete_are_admin_only(hospital, user_headers, admin_headers):
    async with _client() as ac:
        put_user = await ac.put(f"/api/v1/hospitals/{hospital.id}", json={"tel": "02-1112222"}, headers=user_headers)
        assert put_user.status_code == status.HTTP_403_FORBIDDEN

        delete_anon = await ac.delete(f"/api/v1/hospitals/{hospital.id}")
        assert delete_anon.status_code == status.HTTP_401_UNAUTHORIZED

        put_admin = await ac.put(f"/api/v1/hospitals/{hospital.id}", json={"tel": "02-1112222"}, headers=admin_headers)
        assert put_admin.status_code == status.HTTP_200_OK
        data = put_admin.json()["data"]
        assert data["tel"] == "02-1112222"
        # Untouched fields are preserved on partial updates.
        assert data["name"] == hospital.name


async def test_create_rejects_invalid_fields(admin_headers):
    async with _client() as ac:
        resp = await ac.post(
            "/api/v1/hospitals",
            json={"name": "x" * 51, "postalcode": "1011", "tel": "call me"},
            headers=admin_headers,
        )
    assert resp.status_code == status.HTTP_400_BAD_REQUEST
    body = resp.json()
    assert body["success"] is False
    fields = {err["field"] for err in body["errors"]}
    assert {"name", "address", "postalcode", "tel"} <= fields


async def test_duplicate_hospital_name_is_rejected(hospital, hospital_payload, admin_headers):
    async with _client() as ac:
        resp = await ac.post("/api/v1/hospitals", json=hospital_payload, headers=admin_headers)
    assert resp.status_code == status.HTTP_400_BAD_REQUEST
    assert "already exists" in resp.json()["error"]


async def test_unknown_or_malformed_id_returns_404(admin_headers):
    async with _client() as ac:
        missing = await ac.get("/api/v1/hospitals/00000000-0000-0000-0000-000000000000")
        malformed = await ac.get("/api/v1/hospitals/not-an-id")
        delete_missing = await ac.delete("/api/v1/hospitals/not-an-id", headers=admin_headers)
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert malformed.status_code == status.HTTP_404_NOT_FOUND
    assert delete_missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["success"] is False


async def test_pagination_returns_second_page_with_links(repositories):
    for i in range(1, 26):
        repositories.hospitals.create({"name": f"Hospital {i:02d}", "address": f"{i} Main Rd", "ordinal": i})

    async with _client() as ac:
        resp = await ac.get("/api/v1/hospitals", params={"page": 2, "limit": 10, "sort": "ordinal"})

    assert resp.status_code == status.HTTP_200_OK
    body = resp.json()
    assert body["count"] == 10
    assert [h["ordinal"] for h in body["data"]] == list(range(11, 21))
    assert body["pagination"] == {"next": {"page": 3, "limit": 10}, "prev": {"page": 1, "limit": 10}}


async def test_list_filters_select_and_sort(repositories):
    repositories.hospitals.create({"name": "North", "address": "1 Rd", "province": "Chiang Mai", "ordinal": 5})
    repositories.hospitals.create({"name": "Central", "address": "2 Rd", "province": "Bangkok", "ordinal": 10})
    repositories.hospitals.create({"name": "South", "address": "3 Rd", "province": "Songkhla", "ordinal": 15})

    async with _client() as ac:
        gte = await ac.get("/api/v1/hospitals", params={"ordinal[gte]": "10", "sort": "-ordinal"})
        assert [h["name"] for h in gte.json()["data"]] == ["South", "Central"]

        in_filter = await ac.get(
            "/api/v1/hospitals",
            params={"province[in]": "Bangkok,Chiang Mai", "select": "name", "sort": "name"},
        )
        body = in_filter.json()
        assert [h["name"] for h in body["data"]] == ["Central", "North"]
        assert set(body["data"][0]) == {"id", "name"}

        equality = await ac.get("/api/v1/hospitals", params={"province": "Songkhla"})
        assert [h["name"] for h in equality.json()["data"]] == ["South"]

        bad = await ac.get("/api/v1/hospitals", params={"password[gt]": "a"})
        assert bad.status_code == status.HTTP_400_BAD_REQUEST


async def test_vaccine_centers_project_hospitals_with_a_phone(repositories):
    repositories.hospitals.create({"name": "Beta Clinic", "address": "1 Rd", "tel": "02-2223333", "province": "Bangkok"})
    repositories.hospitals.create({"name": "Alpha Clinic", "address": "2 Rd", "tel": "053-111222"})
    repositories.hospitals.create({"name": "No Phone", "address": "3 Rd"})

    async with _client() as ac:
        resp = await ac.get("/api/v1/hospitals/vacCenters")

    assert resp.status_code == status.HTTP_200_OK
    body = resp.json()
    assert body["count"] == 2
    assert [c["name"] for c in body["data"]] == ["Alpha Clinic", "Beta Clinic"]
    assert set(body["data"][0]) == {"id", "name", "tel", "province"}


async def test_delete_hospital_cascades_appointments(repositories, hospital, regular_user, admin_headers):
    other = repositories.hospitals.create({"name": "Other Hospital", "address": "9 Rd"})
    future = datetime.now(timezone.utc) + timedelta(days=3)
    repositories.appointments.create({"appt_date": future, "user_id": regular_user.id, "hospital_id": hospital.id})
    kept = repositories.appointments.create(
        {"appt_date": future - timedelta(days=10), "user_id": regular_user.id, "hospital_id": other.id}
    )

    async with _client() as ac:
        resp = await ac.delete(f"/api/v1/hospitals/{hospital.id}", headers=admin_headers)
        assert resp.status_code == status.HTTP_200_OK
        assert resp.json() == {"success": True, "data": {}}

        gone = await ac.get(f"/api/v1/hospitals/{hospital.id}")
        assert gone.status_code == status.HTTP_404_NOT_FOUND

    query = parse_list_query([], fields={})
    assert repositories.appointments.find_many(query, hospital_id=hospital.id).total == 0
    remaining = repositories.appointments.find_many(query).items
    assert [a.id for a in remaining] == [kept.id]


async def test_oversized_paging_and_filter_values_are_rejected():
    huge = str(10**20)
    async with _client() as ac:
        for params in ({"limit": huge}, {"page": huge}, {"ordinal[gt]": huge}):
            resp = await ac.get("/api/v1/hospitals", params=params)
            assert resp.status_code == status.HTTP_400_BAD_REQUEST
            assert resp.json()["success"] is False
