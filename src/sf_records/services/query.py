"""SOQL builders for record retrieval."""

from __future__ import annotations

import re
from typing import Iterable

# API names: Account, Estimate__c, Owner.Name
_API_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
_FIELD_PATH = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z][A-Za-z0-9_]*)*$")

# Display field for standard objects that have no Name
DISPLAY_FIELDS = {
    "Task": "Subject",
    "Event": "Subject",
    "Case": "CaseNumber",
    "Contract": "ContractNumber",
    "Order": "OrderNumber",
}


def escape_soql(value: str) -> str:
    """Escape a value for embedding inside a single-quoted SOQL literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def default_fields(object_type: str) -> list[str]:
    """Identifier plus display name for an object type."""
    return ["Id", DISPLAY_FIELDS.get(object_type, "Name")]


def validate_object_type(object_type: str) -> str:
    if not object_type or not _API_NAME.match(object_type):
        raise ValueError(f"Invalid object type '{object_type}'")
    return object_type


def normalize_fields(fields: Iterable[str]) -> list[str]:
    """Strip, validate and de-duplicate field names, keeping first-seen order."""
    result: list[str] = []
    for field in fields:
        field = field.strip()
        if not _FIELD_PATH.match(field):
            raise ValueError(f"Invalid field name '{field}'")
        if field not in result:
            result.append(field)
    return result


def build_retrieval_query(
    object_type: str,
    record_id: str,
    fields: Iterable[str] | None = None,
) -> str:
    """Build ``SELECT <fields> FROM <type> WHERE Id = '<id>' LIMIT 1``.

    Args:
        object_type: API name of the object.
        record_id: Record identifier; escaped before embedding.
        fields: Fields to select. Empty or None selects Id and the display name.

    Raises:
        ValueError: If the object type or a field is not a valid API name.
    """
    validate_object_type(object_type)
    selected = normalize_fields(fields or [])
    if not selected:
        selected = default_fields(object_type)
    return (
        f"SELECT {', '.join(selected)} FROM {object_type} "
        f"WHERE Id = '{escape_soql(record_id)}' LIMIT 1"
    )
