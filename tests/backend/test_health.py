import dataclasses
import logging

from httpx import ASGITransport, AsyncClient
from fastapi import status

from src.hospital_api.main import app


async def test_root_health_check():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


async def test_v1_health_check():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/api/v1/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok", "version": "v1"}


async def test_unknown_route_uses_json_error_shape():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/api/v1/does-not-exist")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["success"] is False


class _FailingHospitals:
    def find_many(self, query):
        raise RuntimeError("connection to db-host:5432 lost")


async def test_unexpected_error_returns_generic_500(repositories, caplog):
    app.state.repositories = dataclasses.replace(repositories, hospitals=_FailingHospitals())

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    with caplog.at_level(logging.ERROR, logger="src.hospital_api.errors"):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/api/v1/hospitals")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"success": False, "error": "Server Error"}
    assert "db-host" not in response.text
    record = next(r for r in caplog.records if r.name == "src.hospital_api.errors")
    assert record.exc_info is not None
    assert "Unhandled error on GET /api/v1/hospitals" in record.getMessage()
