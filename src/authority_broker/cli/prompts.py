"""Interactive prompt helpers for CLI commands.

Provides the code receiver used by the interactive sign-in: it shows the
authorize URL, optionally opens the browser, and asks the user to paste the
URL they were redirected to.
"""

import webbrowser

import click

from authority_broker.engine.oauth import CodeReceiver


def prompt_with_retry(prompt_text: str, *, hide_input: bool = False) -> str:
    """Prompt for a required value, retrying if empty.

    Args:
        prompt_text: Text to show in prompt.
        hide_input: Hide typed characters (for secrets).

    Returns:
        Non-empty string value from user.
    """
    while True:
        value: str = click.prompt(
            prompt_text,
            type=str,
            default="",
            show_default=False,
            hide_input=hide_input,
            err=True,
        )
        if value.strip():
            return value.strip()
        click.echo("  This field is required.", err=True)


def browser_code_receiver(no_browser: bool = False) -> CodeReceiver:
    """Create a code receiver that drives the sign-in through the browser.

    Args:
        no_browser: Only print the URL, don't try to open a browser.

    Returns:
        Callback taking the authorize URL and returning the redirected URL.
    """

    def receive(authorize_url: str) -> str:
        # Instructions go to stderr so stdout stays machine-readable
        click.echo(click.style("Authentication Required", fg="cyan", bold=True), err=True)
        click.echo(err=True)
        click.echo("  Open this URL in your browser and sign in:", err=True)
        click.echo(f"  {click.style(authorize_url, fg='blue', underline=True)}", err=True)
        click.echo(err=True)

        if not no_browser:
            try:
                webbrowser.open(authorize_url)
                click.echo("  Browser opened automatically.", err=True)
            except (OSError, webbrowser.Error) as e:
                click.echo(f"  (Could not open browser automatically: {e})", err=True)
            click.echo(err=True)

        return prompt_with_retry("Paste the URL you were redirected to")

    return receive
