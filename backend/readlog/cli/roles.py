"""Flask CLI commands for role administration."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from readlog.services._shared.errors import ServiceError
from readlog.services.auth.wiring import get_identity_service

LOGGER = logging.getLogger(__name__)


@click.group("roles")
def roles_cli() -> None:
    """Manage roles embedded in access tokens."""


@roles_cli.command("create")
@click.argument("name")
@with_appcontext
def create_command(name: str) -> None:
    """Create role NAME if it does not exist yet."""
    try:
        role = get_identity_service().ensure_role(name)
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    LOGGER.info("Role ensured", extra={"event": "roles.create"})
    click.echo(f"Role '{role}' ready.")


@roles_cli.command("grant")
@click.argument("identifier")
@click.argument("role")
@with_appcontext
def grant_command(identifier: str, role: str) -> None:
    """Grant ROLE to the user found by email or username IDENTIFIER."""
    identity = get_identity_service()
    user = identity.find_by_email_or_username(identifier)
    if user is None:
        raise click.ClickException(f"No user matches '{identifier}'.")
    try:
        roles = identity.assign_role(user.id, role)
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    LOGGER.info("Role granted", extra={"event": "roles.grant", "user_id": str(user.id)})
    click.echo(f"{user.username}: {', '.join(roles)}")
