"""Habit routes."""

from __future__ import annotations


from flask import current_app, jsonify, request

from . import bp
from ...errors import AuthenticationError, HabitPulseError, NotificationError
from ...logging_config import get_logger
from ...schemas import ReminderTestRequest, ToggleRequest
from ...services.habits import HabitService, parse_payload

logger = get_logger("api")


def _service() -> HabitService:
    return current_app.extensions["habitpulse"].habit_service


def _caller_id() -> int:
    """Identity of the caller, supplied by the fronting auth layer."""

    raw = request.headers.get("X-User-Id", "").strip()
    if not raw.isdigit():
        raise AuthenticationError("X-User-Id header is missing or not a user id")
    return int(raw)


def _body() -> dict:
    return request.get_json(silent=True) or {}


@bp.errorhandler(HabitPulseError)
def _handle_domain_error(exc: HabitPulseError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.path, exc, exc_info=True)
    return jsonify(exc.to_dict()), exc.status_code


@bp.get("/")
def list_habits():
    """List the caller's habits, newest first."""

    habits = _service().list_habits(_caller_id())
    return jsonify([habit.to_dict() for habit in habits])


@bp.post("/")
def create_habit():
    habit = _service().create_habit(_body(), _caller_id())
    return jsonify(habit.to_dict()), 201


@bp.get("/dashboard")
def dashboard():
    summary = _service().get_dashboard_summary(_caller_id())
    return jsonify(summary.to_dict())


@bp.get("/<int:habit_id>")
def get_habit(habit_id: int):
    return jsonify(_service().get_habit(habit_id, _caller_id()).to_dict())


@bp.patch("/<int:habit_id>")
def update_habit(habit_id: int):
    habit = _service().update_habit(habit_id, _caller_id(), _body())
    return jsonify(habit.to_dict())


@bp.delete("/<int:habit_id>")
def delete_habit(habit_id: int):
    _service().delete_habit(habit_id, _caller_id())
    return "", 204


@bp.get("/<int:habit_id>/tick-boxes")
def tick_boxes(habit_id: int):
    boxes = _service().get_tick_boxes(habit_id, _caller_id())
    return jsonify([box.to_dict() for box in boxes])


@bp.post("/<int:habit_id>/toggle")
def toggle_completion(habit_id: int):
    """Set the completion state of the tick box at ``index``."""

    payload = parse_payload(ToggleRequest, _body())
    habit = _service().toggle_completion(
        habit_id, _caller_id(), payload.bucket_index, payload.completed
    )
    return jsonify(habit.to_dict())


@bp.get("/<int:habit_id>/streak")
def streak(habit_id: int):
    return jsonify(_service().get_streak(habit_id, _caller_id()).to_dict())


@bp.get("/<int:habit_id>/stats")
def stats(habit_id: int):
    return jsonify(_service().get_stats(habit_id, _caller_id()).to_dict())


@bp.get("/<int:habit_id>/reminders")
def reminder_settings(habit_id: int):
    return jsonify(_service().get_habit(habit_id, _caller_id()).reminder_settings())


@bp.put("/<int:habit_id>/reminders")
def update_reminder_settings(habit_id: int):
    habit = _service().update_reminder_settings(habit_id, _caller_id(), _body())
    return jsonify(habit.reminder_settings())


@bp.post("/<int:habit_id>/reminders/test")
def test_reminder(habit_id: int):
    """Send a test reminder now; a notifier failure answers 502."""

    payload = parse_payload(ReminderTestRequest, _body())
    result = _service().test_reminder(
        habit_id, _caller_id(), custom_message=payload.custom_message
    )
    if not result.success:
        raise NotificationError(result.error or "Reminder could not be sent")
    return jsonify(result.to_dict())
