"""Tests for the reminders HTTP API."""

from datetime import timedelta
from unittest.mock import patch

from assetminder.reminders.errors import StoreError
from assetminder.utils.timezone import utc_now

PREFIX = "/api/v1/reminders"


def _payload(**overrides):
    payload = {
        "owner_id": "user-1",
        "subject_id": "item-1",
        "subject_label": "Laptop Warranty",
        "category": "hardware",
        "due_at": (utc_now() + timedelta(days=30)).isoformat(),
        "preferences": {"push": True, "email": True, "sms": False},
        "contacts": {"tokens": ["tok-1"], "email": "owner@example.com"},
    }
    payload.update(overrides)
    return payload


class TestAuth:
    def test_missing_api_key_is_rejected(self, client):
        response = client.get(f"{PREFIX}/health", headers={"X-API-Key": ""})

        assert response.status_code == 401

    def test_bearer_token_is_accepted(self, client):
        response = client.get(f"{PREFIX}/health", headers={"X-API-Key": "", "Authorization": "Bearer test-key"})

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "reminders"}


class TestRequestReminderEndpoint:
    def test_schedules_enabled_channels(self, client):
        response = client.post(f"{PREFIX}/", json=_payload())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert set(body["scheduled_ids"]) == {"push", "email"}
        assert body["message"] == "Notifications scheduled for Laptop Warranty"

    def test_past_due_is_bad_request(self, client):
        response = client.post(
            f"{PREFIX}/", json=_payload(due_at=(utc_now() - timedelta(hours=1)).isoformat())
        )

        assert response.status_code == 400
        assert "future" in response.json()["detail"]

    def test_no_eligible_channel_is_bad_request(self, client):
        response = client.post(
            f"{PREFIX}/", json=_payload(preferences={"push": False, "email": False, "sms": False})
        )

        assert response.status_code == 400

    def test_store_failure_is_internal_error(self, client):
        with patch(
            "assetminder.reminders.scheduler.create_notification",
            side_effect=StoreError("Insert failed: database is locked"),
        ):
            response = client.post(f"{PREFIX}/", json=_payload())

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"


class TestCancelAndListEndpoints:
    def test_cancel_then_list(self, client):
        client.post(f"{PREFIX}/", json=_payload())

        cancel = client.post(f"{PREFIX}/cancel", json={"subject_id": "item-1"})
        listed = client.get(PREFIX + "/", params={"owner_id": "user-1", "status": "cancelled"})

        assert cancel.status_code == 200
        assert cancel.json()["cancelled_count"] == 2
        assert cancel.json()["message"] == "Cancelled 2 notifications for item"
        assert listed.status_code == 200
        body = listed.json()
        assert body["count"] == 2
        assert {n["channel"] for n in body["notifications"]} == {"push", "email"}

    def test_unknown_status_is_rejected(self, client):
        response = client.get(PREFIX + "/", params={"owner_id": "user-1", "status": "lost"})

        assert response.status_code == 422

    def test_owner_id_is_required(self, client):
        response = client.get(PREFIX + "/")

        assert response.status_code == 422


class TestTestNotificationEndpoint:
    def test_schedules_on_every_contact(self, client):
        response = client.post(
            f"{PREFIX}/test",
            json={"owner_id": "user-1", "contacts": {"email": "owner@example.com", "phone": "+14155550123"}},
        )

        assert response.status_code == 200
        body = response.json()
        assert set(body["scheduled_ids"]) == {"email", "sms"}
        assert "scheduled_time" in body

    def test_without_contacts_is_bad_request(self, client):
        response = client.post(f"{PREFIX}/test", json={"owner_id": "user-1", "contacts": {}})

        assert response.status_code == 400


def test_metrics_endpoint(client):
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "reminders_scheduled_total" in response.text
