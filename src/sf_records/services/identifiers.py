"""Record identifier classification by key prefix."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger(__name__)

PREFIX_LENGTH = 3

# Standard key prefixes. Append only; an existing prefix never changes meaning.
KEY_PREFIXES: Mapping[str, str] = MappingProxyType({
    "001": "Account",
    "003": "Contact",
    "005": "User",
    "006": "Opportunity",
    "00Q": "Lead",
    "500": "Case",
    "701": "Campaign",
    "800": "Contract",
    "00T": "Task",
    "00U": "Event",
    "00D": "Organization",
    "00G": "Group",
    "00e": "Profile",
    "01t": "Product2",
    "01s": "Pricebook2",
    "801": "Order",
    "02i": "Asset",
    "0Q0": "Quote",
    "068": "ContentVersion",
    "069": "ContentDocument",
    "00P": "Attachment",
    "002": "Note",
})


def merge_prefixes(extra: Mapping[str, str] | None) -> dict[str, str]:
    """Extend the standard table without letting extra entries reinterpret it."""
    table = dict(KEY_PREFIXES)
    for prefix, object_type in (extra or {}).items():
        shipped = KEY_PREFIXES.get(prefix)
        if shipped is not None:
            if shipped != object_type:
                logger.warning(
                    "Ignoring prefix %s -> %s: already mapped to %s", prefix, object_type, shipped,
                )
            continue
        table[prefix] = object_type
    return table


def classify_identifier(
    record_id: str | None,
    default: str = "Account",
    extra_prefixes: Mapping[str, str] | None = None,
    table: Mapping[str, str] | None = None,
) -> str:
    """Infer an object type from the first three characters of a record id.

    Unknown prefixes and ids shorter than three characters fall back to
    ``default``. Prefixes are case-sensitive. ``table`` is a complete,
    already merged prefix table and takes precedence over ``extra_prefixes``.
    """
    if not record_id:
        return default
    record_id = record_id.strip()
    if len(record_id) < PREFIX_LENGTH:
        return default

    prefix = record_id[:PREFIX_LENGTH]
    if table is None:
        table = merge_prefixes(extra_prefixes) if extra_prefixes else KEY_PREFIXES
    return table.get(prefix, default)
