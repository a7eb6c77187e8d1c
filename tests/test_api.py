"""Smoke tests for the habits JSON API."""

from __future__ import annotations

import pytest

from conftest import FakeNotifier
from habitpulse import create_app
from habitpulse.config import resolve_config
from habitpulse.models import User


@pytest.fixture
def api_notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def app(tmp_path, monkeypatch, api_notifier):
    monkeypatch.setenv("HABITPULSE_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("HABITPULSE_DATABASE_URL", raising=False)
    config = resolve_config("testing")()

    app = create_app(config=config, notifier=api_notifier)
    yield app
    app.extensions["habitpulse"].shutdown()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def owner(app) -> User:
    return app.extensions["habitpulse"].user_repo.create(User(email="api@example.com", name="Api"))


@pytest.fixture
def headers(owner) -> dict[str, str]:
    return {"X-User-Id": str(owner.id)}


@pytest.fixture
def habit_id(client, headers) -> int:
    response = client.post("/api/habits/", json={"name": "Stretch"}, headers=headers)
    assert response.status_code == 201
    return response.get_json()["id"]


def test_missing_caller_identity(client):
    response = client.get("/api/habits/")

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthenticated"


def test_create_and_list(client, headers, habit_id):
    response = client.get("/api/habits/", headers=headers)

    assert response.status_code == 200
    body = response.get_json()
    assert [h["id"] for h in body] == [habit_id]
    assert body[0]["frequency"] == "daily"
    assert body[0]["reminder_days"] == []


def test_create_rejects_invalid_payload(client, headers):
    response = client.post("/api/habits/", json={"name": ""}, headers=headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "validation_error"


def test_unknown_habit_is_404(client, headers):
    response = client.get("/api/habits/9999", headers=headers)

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_other_users_cannot_see_habit(app, client, habit_id):
    stranger = app.extensions["habitpulse"].user_repo.create(User(email="x@example.com"))

    response = client.get(f"/api/habits/{habit_id}", headers={"X-User-Id": str(stranger.id)})

    assert response.status_code == 404


def test_tick_boxes_and_toggle(client, headers, habit_id):
    boxes = client.get(f"/api/habits/{habit_id}/tick-boxes", headers=headers).get_json()
    assert len(boxes) == 30
    assert boxes[0]["is_locked"] is False

    response = client.post(
        f"/api/habits/{habit_id}/toggle", json={"index": 0, "completed": True}, headers=headers
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body["current_streak"] == 1
    assert body["completions"][0]["date"] == boxes[0]["date"]

    streak = client.get(f"/api/habits/{habit_id}/streak", headers=headers).get_json()
    assert streak["current_streak"] == 1
    assert streak["milestone"]["next"]["days"] == 7


def test_toggle_errors(client, headers, habit_id):
    out_of_range = client.post(
        f"/api/habits/{habit_id}/toggle", json={"index": 30, "completed": True}, headers=headers
    )
    locked = client.post(
        f"/api/habits/{habit_id}/toggle", json={"index": 2, "completed": True}, headers=headers
    )
    malformed = client.post(f"/api/habits/{habit_id}/toggle", json={}, headers=headers)

    assert out_of_range.status_code == 400
    assert out_of_range.get_json()["error"] == "invalid_index"
    assert locked.status_code == 409
    assert locked.get_json()["error"] == "bucket_locked"
    assert malformed.status_code == 400


def test_update_and_delete(client, headers, habit_id):
    response = client.patch(
        f"/api/habits/{habit_id}", json={"name": "Stretch more", "frequency": "weekly"}, headers=headers
    )
    assert response.get_json()["name"] == "Stretch more"
    assert response.get_json()["frequency"] == "weekly"

    assert client.delete(f"/api/habits/{habit_id}", headers=headers).status_code == 204
    assert client.get(f"/api/habits/{habit_id}", headers=headers).status_code == 404


def test_stats_and_dashboard(client, headers, habit_id):
    client.post(f"/api/habits/{habit_id}/toggle", json={"index": 0, "completed": True}, headers=headers)

    stats = client.get(f"/api/habits/{habit_id}/stats", headers=headers).get_json()
    dashboard = client.get("/api/habits/dashboard", headers=headers).get_json()

    assert stats["overview"]["completed_days"] == 1
    assert dashboard["total_habits"] == 1
    assert dashboard["completion_today"] == 100


def test_reminder_settings_round_trip(app, client, headers, habit_id):
    response = client.put(
        f"/api/habits/{habit_id}/reminders",
        json={"reminder_enabled": True, "reminder_time": "06:45", "reminder_days": [1, 2, 3]},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.get_json()["reminder_time"] == "06:45"
    assert app.extensions["habitpulse"].scheduler.is_armed(habit_id)

    current = client.get(f"/api/habits/{habit_id}/reminders", headers=headers).get_json()
    assert current["reminder_days"] == [1, 2, 3]
    assert current["reminder_enabled"] is True


def test_test_reminder(client, headers, habit_id, api_notifier):
    response = client.post(
        f"/api/habits/{habit_id}/reminders/test", json={"custom_message": "Go!"}, headers=headers
    )

    assert response.status_code == 200
    assert response.get_json()["success"] is True
    assert api_notifier.calls[-1]["message_override"] == "Go!"


def test_test_reminder_failure_is_502(client, headers, habit_id, api_notifier):
    api_notifier.success = False
    api_notifier.error = "smtp down"

    response = client.post(f"/api/habits/{habit_id}/reminders/test", headers=headers)

    assert response.status_code == 502
    assert response.get_json() == {"error": "notification_failed", "message": "smtp down"}


class TestCli:
    def test_init_db_creates_demo_user(self, app):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["habitpulse-init-db", "--demo-user", "demo@example.com"])
        second = runner.invoke(args=["habitpulse-init-db", "--demo-user", "demo@example.com"])

        assert first.exit_code == 0
        assert "Created user demo@example.com" in first.output
        assert "already exists" in second.output

    def test_reminders_lists_armed_jobs(self, app, client, headers):
        client.post(
            "/api/habits/", json={"name": "Journal", "reminder_enabled": True}, headers=headers
        )

        result = app.test_cli_runner().invoke(args=["habitpulse-reminders"])

        assert result.exit_code == 0
        assert "1 reminder job(s) armed" in result.output
        assert "Reminder: Journal" in result.output

    def test_test_reminder_command(self, app, habit_id, api_notifier):
        runner = app.test_cli_runner()

        sent = runner.invoke(args=["habitpulse-test-reminder", str(habit_id), "--message", "Hi"])
        missing = runner.invoke(args=["habitpulse-test-reminder", "9999"])

        assert sent.exit_code == 0
        assert "fake-1" in sent.output
        assert api_notifier.calls[0]["is_test"] is True
        assert missing.exit_code != 0
        assert "not found" in missing.output

    def test_delete_user_command(self, app, owner, habit_id):
        runner = app.test_cli_runner()
        context = app.extensions["habitpulse"]

        deleted = runner.invoke(args=["habitpulse-delete-user", str(owner.id), "--yes"])
        missing = runner.invoke(args=["habitpulse-delete-user", str(owner.id), "--yes"])

        assert deleted.exit_code == 0
        assert f"Deleted user {owner.id} and 1 habit(s)" in deleted.output
        assert context.user_repo.get_by_id(owner.id) is None
        assert context.habit_repo.get_by_id(habit_id) is None
        assert missing.exit_code != 0
        assert "not found" in missing.output
