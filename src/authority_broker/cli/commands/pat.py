"""Personal access token command for authority-broker CLI.

Commands:
    pat - Exchange an access token for a scoped personal access token
"""

from __future__ import annotations

import asyncio

import click

from authority_broker.cli.common import build_broker, load_config
from authority_broker.exceptions import PreconditionError
from authority_broker.tokens import Token, TokenScope, TokenType


@click.command()
@click.option(
    "--target",
    "target_uri",
    required=True,
    help="Target resource URI (e.g. https://dev.azure.com/org)",
)
@click.option(
    "--access-token",
    envvar="AUTHORITY_BROKER_ACCESS_TOKEN",
    required=True,
    help="Access token (or set AUTHORITY_BROKER_ACCESS_TOKEN)",
)
@click.option(
    "--scope",
    "scopes",
    multiple=True,
    default=("vso.code_write",),
    show_default=True,
    help="Scope to request (repeatable)",
)
@click.option("--compact", is_flag=True, help="Request a compact token")
@click.pass_context
def pat(
    ctx: click.Context,
    target_uri: str,
    access_token: str,
    scopes: tuple[str, ...],
    compact: bool,
) -> None:
    """Issue a personal access token and print it.

    Examples:
        authority-broker pat --target https://dev.azure.com/org --scope vso.code_write --compact
    """
    config = load_config(ctx.obj.get("config_path"))
    broker = build_broker(config)

    scope = TokenScope(name for value in scopes for name in value.split())

    try:
        outcome = asyncio.run(
            broker.issue_pat_outcome(
                target_uri,
                Token(access_token, TokenType.ACCESS),
                scope,
                compact=compact,
            )
        )
    except PreconditionError as e:
        raise click.BadParameter(str(e)) from e

    if not outcome.ok or outcome.value is None:
        raise click.ClickException(
            f"Personal access token issuance failed ({outcome.failure.value}): {outcome.detail}"
        )

    click.echo(outcome.value.value)
