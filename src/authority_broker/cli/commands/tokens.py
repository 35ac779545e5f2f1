"""Token acquisition commands for authority-broker CLI.

Commands:
    login   - Acquire tokens through the browser (always prompts)
    refresh - Renew tokens with a refresh token
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import click

from authority_broker.cli.common import build_broker, load_config, pair_to_json
from authority_broker.cli.prompts import browser_code_receiver
from authority_broker.exceptions import PreconditionError
from authority_broker.tokens import Token, TokenType


def _target_options(func: Callable[..., Any]) -> Callable[..., Any]:
    func = click.option("--resource", required=True, help="Resource the token is requested for")(func)
    func = click.option("--client-id", required=True, help="Client application ID")(func)
    func = click.option(
        "--target",
        "target_uri",
        required=True,
        help="Target resource URI (e.g. https://dev.azure.com/org)",
    )(func)
    return func


@click.command()
@_target_options
@click.option("--redirect-uri", required=True, help="Redirect URI registered for the client")
@click.option("--extra-query", default=None, help="Extra query parameters for the authorize request")
@click.option("--no-browser", is_flag=True, help="Don't automatically open browser")
@click.pass_context
def login(
    ctx: click.Context,
    target_uri: str,
    client_id: str,
    resource: str,
    redirect_uri: str,
    extra_query: str | None,
    no_browser: bool,
) -> None:
    """Sign in through the browser and print the token pair as JSON.

    The credential prompt is always shown, even if a sign-in is cached.
    """
    config = load_config(ctx.obj.get("config_path"))
    broker = build_broker(config, code_receiver=browser_code_receiver(no_browser))

    try:
        outcome = broker.acquire_interactive_outcome(target_uri, client_id, resource, redirect_uri, extra_query)
    except PreconditionError as e:
        raise click.BadParameter(str(e)) from e

    if not outcome.ok or outcome.value is None:
        raise click.ClickException(f"Token acquisition failed ({outcome.failure.value}): {outcome.detail}")

    click.echo(pair_to_json(outcome.value))


@click.command()
@_target_options
@click.option(
    "--refresh-token",
    envvar="AUTHORITY_BROKER_REFRESH_TOKEN",
    required=True,
    help="Refresh token (or set AUTHORITY_BROKER_REFRESH_TOKEN)",
)
@click.pass_context
def refresh(
    ctx: click.Context,
    target_uri: str,
    client_id: str,
    resource: str,
    refresh_token: str,
) -> None:
    """Renew tokens with a refresh token and print the pair as JSON."""
    config = load_config(ctx.obj.get("config_path"))
    broker = build_broker(config)

    try:
        outcome = asyncio.run(
            broker.acquire_by_refresh_outcome(
                target_uri,
                client_id,
                resource,
                Token(refresh_token, TokenType.REFRESH),
            )
        )
    except PreconditionError as e:
        raise click.BadParameter(str(e)) from e

    if not outcome.ok or outcome.value is None:
        raise click.ClickException(f"Token refresh failed ({outcome.failure.value}): {outcome.detail}")

    click.echo(pair_to_json(outcome.value))
