"""Credential validation command for authority-broker CLI.

Commands:
    validate - Check basic credentials against the profile API
"""

from __future__ import annotations

import asyncio

import click

from authority_broker.cli.common import build_broker, load_config
from authority_broker.exceptions import PreconditionError
from authority_broker.outcome import FailureKind
from authority_broker.tokens import Credential


@click.command()
@click.option(
    "--target",
    "target_uri",
    required=True,
    help="Target resource URI (e.g. https://dev.azure.com/org)",
)
@click.option("--username", required=True, help="Username")
@click.option(
    "--password",
    envvar="AUTHORITY_BROKER_PASSWORD",
    prompt=True,
    hide_input=True,
    help="Password or token (prompted if omitted)",
)
@click.pass_context
def validate(ctx: click.Context, target_uri: str, username: str, password: str) -> None:
    """Validate basic credentials. Exits with status 1 if they are not accepted."""
    config = load_config(ctx.obj.get("config_path"))
    broker = build_broker(config)

    try:
        outcome = asyncio.run(broker.validate_outcome(target_uri, Credential(username, password)))
    except PreconditionError as e:
        raise click.BadParameter(str(e)) from e

    if outcome.ok:
        click.echo(click.style("Credentials are valid.", fg="green"))
        return

    if outcome.failure is FailureKind.REJECTED:
        raise click.ClickException(f"Credentials were rejected (HTTP {outcome.status_code}).")
    raise click.ClickException(f"Could not validate credentials: {outcome.detail}")
