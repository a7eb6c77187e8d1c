"""HabitPulse application factory."""

from __future__ import annotations

import os
from importlib import import_module
from typing import Iterable, Optional

from flask import Flask

from . import cli as _cli
from .config import BaseConfig, resolve_config
from .logging_config import setup_logging

EXTENSION_KEY = "habitpulse"


def _blueprint_paths() -> Iterable[str]:
    """Yield blueprint import paths registered on the app."""

    yield "habitpulse.blueprints.habits"


def create_app(
    config_name: str | None = None,
    *,
    config: Optional[BaseConfig] = None,
    notifier=None,
) -> Flask:
    """Create and configure the Flask application instance.

    Args:
        config_name: "development", "testing" or "default"; falls back to
            ``HABITPULSE_ENV``
        config: Ready-made configuration object, overrides ``config_name``
        notifier: Notifier to use instead of the one selected by the config
    """

    app = Flask(__name__, instance_relative_config=True)
    config_obj = config or resolve_config(config_name or os.getenv("HABITPULSE_ENV"))()
    app.config.from_object(config_obj)
    app.config["HABITPULSE_CONFIG"] = config_obj

    setup_logging(config_obj)

    # Deferred so importing the package does not build mappers or engines
    from .context import create_app_context

    ctx = create_app_context(config_obj, notifier=notifier)
    app.extensions[EXTENSION_KEY] = ctx

    _register_blueprints(app)
    _cli.init_app(app)

    if config_obj.REMINDERS_AUTOSTART:
        ctx.start_reminders()

    return app


def _register_blueprints(app: Flask) -> None:
    """Import and register all blueprints declared in `_blueprint_paths`."""

    for dotted_path in _blueprint_paths():
        module = import_module(dotted_path)
        blueprint = getattr(module, "bp")
        app.register_blueprint(blueprint)


__all__ = ["EXTENSION_KEY", "create_app"]
