"""Command-line interface registration for the Flask application."""

from __future__ import annotations

import click
from flask import Flask
from flask.cli import with_appcontext

from readlog.core.extensions import db

from .roles import roles_cli


@click.command("init-db")
@with_appcontext
def init_db_command() -> None:
    """Create missing tables (existing tables are left untouched)."""
    db.create_all()
    click.echo("Database schema ready.")


def init_app(app: Flask) -> None:
    """Register application-specific CLI commands.

    Parameters
    ----------
    app:
        Flask application instance whose CLI registry receives the
        ``roles`` group and the ``init-db`` command.
    """
    app.cli.add_command(roles_cli)
    app.cli.add_command(init_db_command)
