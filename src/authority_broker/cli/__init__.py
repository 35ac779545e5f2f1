"""Command-line interface for authority-broker.

Provides commands for acquiring and refreshing tokens, issuing personal
access tokens, validating credentials and inspecting configuration.
"""

from .main import cli, main

__all__ = ["cli", "main"]
