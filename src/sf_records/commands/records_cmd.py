"""CLI commands for generic record access."""

from __future__ import annotations

import json
from typing import Annotated, Any

import typer
from rich.console import Console

from sf_records.auth import TokenManager
from sf_records.client import SalesforceClient
from sf_records.config import get_config
from sf_records.services.records import RecordService
from sf_records.utils.errors import SalesforceError, handle_error
from sf_records.utils.output import OutputFormat, print_output

console = Console(stderr=True)
app = typer.Typer(name="records", help="Read, create and update records.")


def _build_service(verbose: bool = False, timeout: float | None = None) -> tuple[SalesforceClient, RecordService]:
    try:
        config = get_config()
    except SalesforceError as e:
        handle_error(e)
        raise typer.Exit(1)
    auth = TokenManager(config, timeout=timeout)
    client = SalesforceClient(config, auth, timeout=timeout, verbose=verbose)
    service = RecordService(
        client,
        default_object_type=config.settings.default_object_type,
        object_aliases=config.objects.aliases,
        extra_prefixes=config.objects.prefixes,
    )
    return client, service


def _parse_value(raw: str) -> Any:
    """JSON scalars (numbers, true/false, null) are typed; anything else is a string."""
    try:
        value = json.loads(raw)
    except ValueError:
        return raw
    if isinstance(value, (dict, list)):
        return raw
    return value


def _collect_fields(assignments: list[str] | None, data: str | None) -> dict[str, Any]:
    """Merge a --data JSON object with --set KEY=VALUE pairs (later wins)."""
    fields: dict[str, Any] = {}
    if data:
        try:
            parsed = json.loads(data)
        except ValueError as e:
            raise ValueError(f"--data is not valid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError("--data must be a JSON object")
        fields.update(parsed)
    for item in assignments or []:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=VALUE, got '{item}'")
        fields[key.strip()] = _parse_value(raw)
    return fields


@app.command("get")
def get_record(
    record_id: Annotated[str, typer.Argument(help="Record ID")],
    object_type: Annotated[str | None, typer.Option("--type", "-t", help="Object type (inferred from the ID if omitted)")] = None,
    field: Annotated[list[str] | None, typer.Option("--field", "-f", help="Field to select (repeatable)")] = None,
    timeout: Annotated[float | None, typer.Option("--timeout", help="Request timeout in seconds")] = None,
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Fetch a record by ID."""
    client, service = _build_service(verbose, timeout)
    try:
        if object_type:
            record = service.get_record_by_id(object_type, record_id, field)
        else:
            record = service.get_record(record_id, field)
        print_output(record, output, title=record_id)
    except (SalesforceError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()


@app.command("create")
def create_record(
    object_type: Annotated[str, typer.Option("--type", "-t", help="Object type (API name or alias)")] = ...,
    assignments: Annotated[list[str] | None, typer.Option("--set", "-s", help="Field value as KEY=VALUE (repeatable)")] = None,
    data: Annotated[str | None, typer.Option("--data", "-d", help="Fields as a JSON object")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Show what would be sent without executing")] = False,
    timeout: Annotated[float | None, typer.Option("--timeout", help="Request timeout in seconds")] = None,
    output: Annotated[OutputFormat, typer.Option("--output", "-o")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Create a record."""
    client, service = _build_service(verbose, timeout)
    try:
        fields = _collect_fields(assignments, data)
        if not fields:
            raise ValueError("No fields given; use --set or --data")
        resolved = service.resolve_object_type(object_type)
        if dry_run:
            console.print(f"[yellow]DRY RUN:[/yellow] Would create {resolved}:")
            print_output(fields, output, title=f"{resolved} [DRY RUN]")
            return
        record_id = service.create_record(resolved, fields)
        print_output({"id": record_id, "type": resolved}, output, title="Record Created")
    except (SalesforceError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()


@app.command("update")
def update_record(
    record_id: Annotated[str, typer.Argument(help="Record ID")],
    object_type: Annotated[str | None, typer.Option("--type", "-t", help="Object type (inferred from the ID if omitted)")] = None,
    assignments: Annotated[list[str] | None, typer.Option("--set", "-s", help="Field value as KEY=VALUE (repeatable)")] = None,
    data: Annotated[str | None, typer.Option("--data", "-d", help="Fields as a JSON object")] = None,
    field: Annotated[list[str] | None, typer.Option("--field", "-f", help="Extra field to read back (repeatable)")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Show what would be sent without executing")] = False,
    timeout: Annotated[float | None, typer.Option("--timeout", help="Request timeout in seconds")] = None,
    output: Annotated[OutputFormat, typer.Option("--output", "-o")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Update a record and show its state after the update."""
    client, service = _build_service(verbose, timeout)
    try:
        updates = _collect_fields(assignments, data)
        resolved = service.resolve_object_type(object_type) if object_type else service.classify(record_id)
        if dry_run:
            console.print(f"[yellow]DRY RUN:[/yellow] Would update {resolved} {record_id}:")
            print_output(updates, output, title=f"{resolved} [DRY RUN]")
            return
        record = service.update_record(resolved, record_id, updates, field)
        print_output(record, output, title=f"{resolved} Updated")
    except (SalesforceError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()


@app.command("query")
def query_records(
    soql: Annotated[str, typer.Argument(help="SOQL query")],
    limit: Annotated[int | None, typer.Option("--limit", "-l", help="Stop after this many rows")] = None,
    timeout: Annotated[float | None, typer.Option("--timeout", help="Request timeout in seconds")] = None,
    output: Annotated[OutputFormat, typer.Option("--output", "-o")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Run a SOQL query, following result pages."""
    client, service = _build_service(verbose, timeout)
    try:
        records = service.query_records(soql, max_records=limit)
        console.print(f"[dim]Found {len(records)} records[/dim]")
        print_output(records, output, title="Query Results")
    except (SalesforceError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()


@app.command("classify")
def classify_record(
    record_id: Annotated[str, typer.Argument(help="Record ID")],
    output: Annotated[OutputFormat, typer.Option("--output", "-o")] = OutputFormat.TABLE,
) -> None:
    """Show the object type inferred from a record ID (no network call)."""
    client, service = _build_service()
    try:
        print_output({"id": record_id, "type": service.classify(record_id)}, output, title="Classification")
    finally:
        client.close()
