"""Configuration commands for authority-broker CLI.

Commands:
    config show - Display effective configuration
    config path - Show config file path
"""

from __future__ import annotations

import json

import click

from authority_broker.cli.common import load_config
from authority_broker.config import get_config_path


@click.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Display the effective configuration as JSON."""
    app_config = load_config(ctx.obj.get("config_path"))
    click.echo(json.dumps(app_config.model_dump(), indent=2))


@config.command()
@click.pass_context
def path(ctx: click.Context) -> None:
    """Show the config file path."""
    config_path = ctx.obj.get("config_path") or get_config_path()
    click.echo(str(config_path))
    if not config_path.exists():
        click.echo("(file does not exist; defaults are used)", err=True)
