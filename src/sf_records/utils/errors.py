"""Error taxonomy and structured error output for the CLI boundary."""

from __future__ import annotations

import json
import sys

from rich.console import Console

console = Console(stderr=True)


class SalesforceError(Exception):
    """Base class for every failure raised by sf-records."""

    code = "RUNTIME_ERROR"


class ConfigurationError(SalesforceError):
    """Required settings are missing or invalid. Never retried."""

    code = "CONFIGURATION_ERROR"


class AuthError(SalesforceError):
    """The token endpoint rejected the credentials or returned an unusable payload."""

    code = "AUTH_ERROR"

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RemoteError(SalesforceError):
    """A record call failed: non-2xx status or transport failure."""

    code = "REMOTE_ERROR"

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NotFoundError(SalesforceError):
    """A retrieval query returned zero rows."""

    code = "NOT_FOUND"


# Actionable hints keyed by error substring
_ERROR_HINTS: list[tuple[str, str]] = [
    ("not configured", "Set SF_CLIENT_ID, SF_CLIENT_SECRET and SF_TOKEN_URL in your .env file"),
    ("invalid_client", "Client id/secret rejected — check the connected app credentials"),
    ("invalid_grant", "Username/password rejected — append the security token to the password if required"),
    ("unsupported_grant_type", "The connected app does not allow this grant — check its OAuth policies"),
    ("INVALID_SESSION_ID", "Session expired or revoked — run `sf-records auth refresh`"),
    ("401", "Token may be expired — run `sf-records auth refresh`"),
    ("timed out", "Request timed out — try again or raise SF_REQUEST_TIMEOUT"),
    ("connection", "Connection error — check network connectivity and the instance URL"),
    ("INVALID_FIELD", "A field name is not valid for this object type — check --field values"),
    ("INVALID_TYPE", "Unknown object type — check --type or config/objects.yaml aliases"),
    ("MALFORMED_QUERY", "The query could not be parsed — check SOQL syntax"),
    ("NOT_FOUND", "The record does not exist or is not visible to this user — verify the ID"),
    ("REQUIRED_FIELD_MISSING", "Supply the required fields with --set or --data"),
]


def _get_hint(error_message: str) -> str | None:
    """Match an error message to an actionable hint."""
    lower = error_message.lower()
    for pattern, hint in _ERROR_HINTS:
        if pattern.lower() in lower:
            return hint
    return None


def _error_code(error: Exception) -> str:
    if isinstance(error, SalesforceError):
        return error.code
    if isinstance(error, ValueError):
        return "INVALID_ARGUMENT"
    return "RUNTIME_ERROR"


def handle_error(error: Exception) -> None:
    """Handle an error with structured output to stdout and human-readable output to stderr.

    Outputs a JSON error object to stdout:
    {"error": true, "code": "NOT_FOUND", "kind": "NotFoundError", "message": "...", "hint": "..."}

    Also prints a human-readable error to stderr.
    """
    message = str(error)
    hint = _get_hint(message)
    if isinstance(error, NotFoundError):
        hint = _get_hint("NOT_FOUND")

    error_obj: dict[str, object] = {
        "error": True,
        "code": _error_code(error),
        "kind": type(error).__name__ if isinstance(error, SalesforceError) else "Error",
        "message": message,
    }
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        error_obj["status_code"] = status_code
    if hint:
        error_obj["hint"] = hint

    json.dump(error_obj, sys.stdout)
    sys.stdout.write("\n")

    # Human-readable to stderr
    console.print(f"[red]Error:[/red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
