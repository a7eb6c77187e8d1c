"""Flask CLI commands for HabitPulse."""

from __future__ import annotations

import click
from flask import current_app

from .errors import NotFoundError


def _context():
    return current_app.extensions["habitpulse"]


def init_app(app) -> None:
    """Register CLI commands on the Flask app."""

    @app.cli.command("habitpulse-init-db")
    @click.option("--demo-user", "demo_email", default=None, help="Also create a user with this email")
    def habitpulse_init_db(demo_email: str | None) -> None:
        """Create database tables (and optionally a first user)."""

        from .infra.database import init_database
        from .models.user import User

        ctx = _context()
        init_database(ctx.engine)
        click.echo(f"Database ready: {ctx.config.DATABASE_URL}")

        if demo_email:
            existing = ctx.user_repo.get_by_email(demo_email)
            if existing is not None:
                click.echo(f"User {demo_email} already exists (id={existing.id})")
                return
            user = ctx.user_repo.create(User(email=demo_email, name=demo_email.split("@")[0]))
            click.echo(f"Created user {user.email} (id={user.id})")

    @app.cli.command("habitpulse-reminders")
    def habitpulse_reminders() -> None:
        """Arm reminders from the database and list the resulting jobs."""

        ctx = _context()
        armed = ctx.scheduler.sync_all()
        click.echo(f"{armed} reminder job(s) armed")
        for job in ctx.scheduler.active_jobs():
            click.echo(f"  habit {job['habit_id']}: {job['name']} (next run: {job['next_run_time'] or 'pending'})")

    @app.cli.command("habitpulse-test-reminder")
    @click.argument("habit_id", type=int)
    @click.option("--message", default=None, help="Custom message for the test email")
    def habitpulse_test_reminder(habit_id: int, message: str | None) -> None:
        """Send a test reminder for HABIT_ID to its owner."""

        ctx = _context()
        habit = ctx.habit_repo.get_by_id(habit_id)
        if habit is None:
            raise click.ClickException(f"Habit {habit_id} not found")
        user = ctx.user_repo.get_by_id(habit.user_id)
        if user is None:
            raise click.ClickException(f"Owner of habit {habit_id} not found")

        result = ctx.scheduler.send_test(habit, user, custom_message=message)
        if not result.success:
            raise click.ClickException(f"Test reminder failed: {result.error}")
        click.echo(f"Test reminder sent to {user.email} ({result.message_id})")

    @app.cli.command("habitpulse-delete-user")
    @click.argument("user_id", type=int)
    @click.confirmation_option(prompt="Delete this user and all of their habits?")
    def habitpulse_delete_user(user_id: int) -> None:
        """Delete USER_ID with their habits, completions and reminder jobs."""

        try:
            removed = _context().habit_service.delete_user(user_id)
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Deleted user {user_id} and {removed} habit(s)")
