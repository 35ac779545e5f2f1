"""Main CLI entry point for authority-broker.

Defines the CLI group and registers all subcommands.

Commands:
    login     - Acquire tokens through the browser
    refresh   - Renew tokens with a refresh token
    pat       - Issue a personal access token from an access token
    validate  - Validate basic credentials
    config    - Configuration management commands
        show - Display effective configuration
        path - Show config file path

Usage:
    authority-broker -h, --help      Show help message
    authority-broker -v, --version   Show version
    authority-broker --config PATH   Use a specific config file

Subcommand help:
    authority-broker COMMAND -h      Show help for a specific command
"""

import sys
from pathlib import Path

import click

from authority_broker import __version__

from .commands.config import config
from .commands.pat import pat
from .commands.tokens import login, refresh
from .commands.validate import validate


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  authority-broker login --target https://dev.azure.com/org \\
    --client-id <client-id> --resource <resource> --redirect-uri <uri>
  authority-broker pat --target https://dev.azure.com/org \\
    --access-token <token> --scope vso.code_write --compact

Environment:
  AUTHORITY_BROKER_ACCESS_TOKEN    Access token for 'pat'
  AUTHORITY_BROKER_REFRESH_TOKEN   Refresh token for 'refresh'
  AUTHORITY_BROKER_PASSWORD        Password for 'validate'
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config file",
)
@click.pass_context
def cli(ctx: click.Context, version: bool, config_path: Path | None) -> None:
    """authority-broker: token and personal access token broker."""
    if version:
        click.echo(f"authority-broker {__version__}")
        sys.exit(0)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(login)
cli.add_command(refresh)
cli.add_command(pat)
cli.add_command(validate)
cli.add_command(config)


def main() -> None:
    """CLI entry point."""
    cli()
