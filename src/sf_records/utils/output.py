"""Output formatting utilities for CLI results."""

from __future__ import annotations

import csv
import io
import json
import sys
from enum import Enum
from typing import Any

from rich.console import Console
from rich.table import Table

console = Console(stderr=True)


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"
    CSV = "csv"


def format_cell(value: Any) -> str:
    """Render a record value for table/CSV output."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def print_output(
    data: list[dict[str, Any]] | dict[str, Any],
    fmt: OutputFormat = OutputFormat.TABLE,
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print data in the requested format.

    Args:
        data: The data to display (list of dicts or single dict).
        fmt: Output format (table, json, csv).
        columns: Which columns to show in table/csv mode. None = all.
        title: Optional title for table output.
    """
    if fmt == OutputFormat.JSON:
        print_json(data)
    elif fmt == OutputFormat.CSV:
        print_csv(data, columns)
    elif isinstance(data, dict):
        print_record(data, title)
    else:
        print_table(data, columns, title)


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout."""
    json.dump(data, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def print_record(data: dict[str, Any], title: str | None = None) -> None:
    """Print a single record as a two-column field/value table."""
    table = Table(title=title, show_lines=False)
    table.add_column("Field", style="bold")
    table.add_column("Value", overflow="fold")
    for key, value in data.items():
        table.add_row(key, format_cell(value))
    console.print(table)


def print_table(
    data: list[dict[str, Any]],
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print rows as a Rich table."""
    if not data:
        console.print("[dim]No results.[/dim]")
        return

    # Union of keys in first-seen order; rows may omit null fields
    if columns is None:
        columns = []
        for row in data:
            columns.extend(k for k in row if k not in columns)

    table = Table(title=title, show_lines=False)
    for col in columns:
        table.add_column(col, overflow="fold")

    for row in data:
        table.add_row(*[format_cell(row.get(col)) for col in columns])

    console.print(table)


def print_csv(
    data: list[dict[str, Any]] | dict[str, Any],
    columns: list[str] | None = None,
) -> None:
    """Print data as CSV to stdout."""
    if isinstance(data, dict):
        data = [data]

    if not data:
        return

    if columns is None:
        columns = []
        for row in data:
            columns.extend(k for k in row if k not in columns)

    buf = io.StringIO(newline="")
    writer = csv.DictWriter(buf, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    for row in data:
        writer.writerow({k: format_cell(row.get(k)) for k in columns})
    sys.stdout.write(buf.getvalue())
