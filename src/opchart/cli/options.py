"""Shared CLI options."""

from __future__ import annotations

import typer

OutputOption = typer.Option("table", "--output", "-o", help="Output format: table, json, yaml")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
