import json
import logging

from httpx import ASGITransport, AsyncClient
from fastapi import status

from src.hospital_api.main import app
from src.hospital_api.services.audit.service import audit_service


def test_log_event_emits_json_line(caplog, admin_user):
    with caplog.at_level(logging.INFO, logger="audit"):
        event = audit_service.log_event(
            action="create_hospital",
            resource_type="hospital",
            resource_id="abc",
            user=admin_user,
            extra={"count": 1},
        )

    assert event.subject == f"admin:{admin_user.id}"
    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["action"] == "create_hospital"
    assert payload["extra"] == {"count": 1}


def test_log_event_drops_unserializable_extra(caplog):
    with caplog.at_level(logging.INFO, logger="audit"):
        audit_service.log_event(action="noop", resource_type="test", extra={"obj": object()})

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["extra"] is None
    assert payload["subject"] is None


async def test_login_never_logs_the_password(caplog, regular_user):
    with caplog.at_level(logging.INFO, logger="audit"):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            resp = await ac.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "secret123"})

    assert resp.status_code == status.HTTP_200_OK
    messages = [r.getMessage() for r in caplog.records if r.name == "audit"]
    assert any('"action": "login"' in m for m in messages)
    assert not any("secret123" in m or resp.json()["token"] in m for m in messages)
