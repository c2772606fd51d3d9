"""sf-records CLI — entry point.

Generic record access for a Salesforce org over the REST API.
"""

from __future__ import annotations

import logging

import typer

from sf_records.commands.auth_cmd import app as auth_app
from sf_records.commands.records_cmd import app as records_app

app = typer.Typer(
    name="sf-records",
    help="CLI tool for reading and writing Salesforce records.",
    no_args_is_help=True,
)

# Register command groups
app.add_typer(auth_app, name="auth")
app.add_typer(records_app, name="records")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """sf-records — authenticate, query, create and update records."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


if __name__ == "__main__":
    app()
