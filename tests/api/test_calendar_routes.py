"""
Tests for the calendar HTTP endpoints
"""

from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs, urlparse

import jwt
import pytest
from fastapi.testclient import TestClient

from clinic_sync import config
from clinic_sync.app_factory import create_app
from clinic_sync.calendar.calendar_client import GoogleCalendarClient
from clinic_sync.dependencies import build_calendar_services, get_calendar_services
from clinic_sync.middleware import auth
from tests.fixtures import (
    FakeCalendarService,
    InMemoryAppointmentRepository,
    InMemoryConnectionStore,
    InMemoryStateStore,
)

FRONTEND = "https://app.example.com"


def bearer(user_id: str) -> dict:
    token = jwt.encode({'sub': user_id}, auth.JWT_SECRET, algorithm=auth.JWT_ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def calendar_service():
    return FakeCalendarService()


@pytest.fixture
def services(calendar_service):
    connections = InMemoryConnectionStore({'user-1': 'refresh-1'})
    service = MagicMock()
    service.events.side_effect = calendar_service.events_resource
    return build_calendar_services(
        connections=connections,
        states=InMemoryStateStore(),
        repository=InMemoryAppointmentRepository(),
        client=GoogleCalendarClient(connections, service_factory=lambda credentials: service),
    )


@pytest.fixture
def client(services, monkeypatch):
    monkeypatch.setattr(config, "FRONTEND_URL", FRONTEND)
    monkeypatch.setattr(config, "GOOGLE_REDIRECT_URI", None)
    monkeypatch.setattr(config, "APP_BASE_URL", "https://api.example.com")
    app = create_app(use_lifespan=False)
    app.dependency_overrides[get_calendar_services] = lambda: services
    return TestClient(app)


APPOINTMENT = {
    "id": "appt-1",
    "userId": "user-1",
    "appointmentType": "patient",
    "patientId": "pat-1",
    "patientName": "Ana Pérez",
    "fee": 5000,
    "date": "2026-03-10",
    "startTime": "10:00",
    "endTime": "10:30",
    "duration": 30,
}


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


class TestConnection:

    def test_requires_authentication(self, client):
        assert client.post("/api/google/calendar/connect").status_code == 401
        assert client.get("/api/google/calendar/status").status_code == 401

    def test_rejects_bad_token(self, client):
        response = client.get("/api/google/calendar/status", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_connect_returns_consent_url(self, client):
        response = client.post("/api/google/calendar/connect", headers=bearer("user-2"))

        assert response.status_code == 200
        params = parse_qs(urlparse(response.json()["url"]).query)
        assert params["redirect_uri"] == ["https://api.example.com/api/google/calendar/callback"]
        assert params["prompt"] == ["consent"]

    def test_connect_without_forced_consent(self, client):
        response = client.post(
            "/api/google/calendar/connect", json={"forceConsent": False}, headers=bearer("user-2")
        )
        assert "prompt" not in parse_qs(urlparse(response.json()["url"]).query)

    def test_callback_connects_user(self, client, services):
        url = client.post("/api/google/calendar/connect", headers=bearer("user-2")).json()["url"]
        state = parse_qs(urlparse(url).query)["state"][0]

        with patch.object(services.oauth, "_exchange_code", AsyncMock(return_value={"refresh_token": "r2"})):
            response = client.get(
                "/api/google/calendar/callback",
                params={"code": "c", "state": state},
                follow_redirects=False,
            )

        assert response.status_code == 302
        assert response.headers["location"] == f"{FRONTEND}/agenda?calendar=connected"
        assert client.get("/api/google/calendar/status", headers=bearer("user-2")).json() == {
            "connected": True, "state": "connected",
        }

    @pytest.mark.parametrize("params, reason", [
        ({"error": "access_denied"}, "error"),
        ({"state": "s"}, "invalid"),
        ({"code": "c", "state": "unknown"}, "state"),
    ])
    def test_callback_failures_redirect(self, client, params, reason):
        response = client.get("/api/google/calendar/callback", params=params, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == f"{FRONTEND}/login?calendar={reason}"

    def test_status_disconnected(self, client):
        response = client.get("/api/google/calendar/status", headers=bearer("user-3"))
        assert response.json() == {"connected": False, "state": "disconnected"}

    def test_reconcile(self, client, calendar_service):
        calendar_service.put({
            "id": "evt-g",
            "summary": "Almuerzo",
            "start": {"dateTime": "2026-03-12T13:00:00-03:00"},
            "end": {"dateTime": "2026-03-12T14:00:00-03:00"},
        })

        body = client.post("/api/google/calendar/reconcile", headers=bearer("user-1")).json()

        assert body["skipped"] is False
        assert body["stats"]["created"] == 1


class TestSync:

    def test_create(self, client, services, calendar_service):
        services.repository.rows["appt-1"] = {"id": "appt-1", "user_id": "user-1"}

        response = client.post(
            "/api/calendar/sync",
            json={"appointment": APPOINTMENT, "action": "create", "officeColorId": "2"},
            headers=bearer("user-1"),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert calendar_service.events[body["eventId"]]["colorId"] == "2"

    def test_update_without_link(self, client):
        response = client.post(
            "/api/calendar/sync",
            json={"appointment": APPOINTMENT, "action": "update"},
            headers=bearer("user-1"),
        )

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "invalid_argument"

    def test_not_connected(self, client):
        response = client.post(
            "/api/calendar/sync",
            json={"appointment": {**APPOINTMENT, "userId": "user-9"}, "action": "create"},
            headers=bearer("user-9"),
        )

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "not_connected"

    def test_pull_defaults_to_sync_window(self, client, calendar_service):
        calendar_service.put({"id": "evt-1", "summary": "x"})

        response = client.post("/api/calendar/pull", json={}, headers=bearer("user-1"))

        assert [item["id"] for item in response.json()["items"]] == ["evt-1"]
        list_params = next(call[1] for call in calendar_service.calls if call[0] == "list")
        assert list_params["timeMin"] < list_params["timeMax"]

    def test_database_time_format(self, client, services, calendar_service):
        services.repository.rows["appt-1"] = {"id": "appt-1", "user_id": "user-1"}
        appointment = {**APPOINTMENT, "startTime": "10:00:00", "endTime": "10:30:00"}

        response = client.post(
            "/api/calendar/sync",
            json={"appointment": appointment, "action": "create"},
            headers=bearer("user-1"),
        )

        assert response.status_code == 200
        event = calendar_service.events[response.json()["eventId"]]
        assert event["start"]["dateTime"] == "2026-03-10T10:00:00"
        assert event["end"]["dateTime"] == "2026-03-10T10:30:00"

    def test_unreadable_time(self, client):
        response = client.post(
            "/api/calendar/sync",
            json={"appointment": {**APPOINTMENT, "startTime": "10h"}, "action": "create"},
            headers=bearer("user-1"),
        )

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "invalid_argument"

    def test_appointment_of_another_user(self, client, services, calendar_service):
        services.repository.rows["appt-9"] = {"id": "appt-9", "user_id": "user-2"}
        appointment = {**APPOINTMENT, "id": "appt-9", "userId": "user-2"}

        response = client.post(
            "/api/calendar/sync",
            json={"appointment": appointment, "action": "create"},
            headers=bearer("user-1"),
        )

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "forbidden"
        assert calendar_service.events == {}
        assert "google_calendar_event_id" not in services.repository.rows["appt-9"]
