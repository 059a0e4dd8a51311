"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from flask import Flask

from readlog.core.config import BaseConfig, get_config
from readlog.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application."""

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from readlog.core import extensions

    extensions.init_app(app)

    # Auth collaborators are built once from config and shared across requests
    from readlog.services.auth import wiring as auth_wiring

    auth_wiring.init_app(app)

    init_logging(app)

    # Proxy headers + CORS
    from readlog.core import web

    web.init_app(app)

    from readlog.api import init_app as init_api

    init_api(app)

    from readlog.core import errors

    errors.init_app(app)

    from readlog import cli as app_cli

    app_cli.init_app(app)

    return app
