"""Generic record access: retrieve, query, create and update records."""

from __future__ import annotations

import logging
from typing import Any, Mapping, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from sf_records.client import SalesforceClient
from sf_records.models.records import CreateResult, QueryResult, Record
from sf_records.services.identifiers import classify_identifier, merge_prefixes
from sf_records.services.query import (
    build_retrieval_query,
    default_fields,
    normalize_fields,
    validate_object_type,
)
from sf_records.utils.errors import NotFoundError, RemoteError
from sf_records.utils.pagination import paginate

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def normalize_record(row: Mapping[str, Any]) -> Record:
    """Project a JSON row onto flat scalar fields.

    Nulls and nested objects/arrays (including the ``attributes`` envelope)
    are omitted. Numbers become floats; bool is checked first since it is an
    int subclass.
    """
    record: Record = {}
    for key, value in row.items():
        if value is None or isinstance(value, (dict, list)):
            continue
        if isinstance(value, str):
            record[key] = value
        elif isinstance(value, bool):
            record[key] = value
        elif isinstance(value, (int, float)):
            record[key] = float(value)
        else:
            record[key] = str(value)
    return record


def _parse_body(response: httpx.Response, model: type[ModelT]) -> ModelT:
    """Parse a successful response body into ``model``.

    Raises:
        RemoteError: The body is not a JSON object of the expected shape.
    """
    try:
        payload = response.json()
    except ValueError as e:
        raise RemoteError(
            f"Response (HTTP {response.status_code}) is not valid JSON",
            status_code=response.status_code,
            body=response.text,
        ) from e
    if not isinstance(payload, dict):
        raise RemoteError(
            f"Response (HTTP {response.status_code}) is not a JSON object",
            status_code=response.status_code,
            body=response.text,
        )
    try:
        return model(**payload)
    except ValidationError as e:
        raise RemoteError(
            f"Response (HTTP {response.status_code}) could not be parsed: {e}",
            status_code=response.status_code,
            body=response.text,
        ) from e


class RecordService:
    """Service for generic record CRUD against the data API."""

    def __init__(
        self,
        client: SalesforceClient,
        default_object_type: str = "Account",
        object_aliases: Mapping[str, str] | None = None,
        extra_prefixes: Mapping[str, str] | None = None,
    ) -> None:
        self._client = client
        self._default_type = default_object_type
        self._aliases = {k.lower(): v for k, v in (object_aliases or {}).items()}
        self._prefixes = merge_prefixes(extra_prefixes)

    def resolve_object_type(self, name: str) -> str:
        """Map a configured alias to its API name; other names pass through."""
        name = name.strip()
        return self._aliases.get(name.lower(), name)

    def classify(self, record_id: str) -> str:
        """Infer the object type of a record id."""
        return classify_identifier(record_id, default=self._default_type, table=self._prefixes)

    def query(self, soql: str, timeout: float | None = None) -> QueryResult:
        """Execute a query and return the first page."""
        response = self._client.get("/query", params={"q": soql}, timeout=timeout)
        return _parse_body(response, QueryResult)

    def query_records(
        self,
        soql: str,
        max_records: int | None = None,
        timeout: float | None = None,
    ) -> list[Record]:
        """Execute a query, following result pages, and normalize every row."""

        def fetch(next_url: str | None) -> dict[str, Any]:
            if next_url is None:
                resp = self._client.get("/query", params={"q": soql}, timeout=timeout)
            else:
                resp = self._client.get(next_url, timeout=timeout)
            return _parse_body(resp, QueryResult).model_dump(by_alias=True)

        rows = paginate(fetch, "records", max_results=max_records)
        return [normalize_record(row) for row in rows]

    def get_record_by_id(
        self,
        object_type: str,
        record_id: str,
        fields: list[str] | None = None,
        timeout: float | None = None,
    ) -> Record:
        """Fetch one record by id.

        Raises:
            NotFoundError: The query returned no rows.
            RemoteError: The query call failed.
        """
        object_type = self.resolve_object_type(object_type)
        soql = build_retrieval_query(object_type, record_id, fields)
        logger.info("Retrieving %s %s", object_type, record_id)

        result = self.query(soql, timeout=timeout)
        if not result.records:
            raise NotFoundError(f"{object_type} not found: {record_id}")
        return normalize_record(result.records[0])

    def get_record(
        self,
        record_id: str,
        fields: list[str] | None = None,
        timeout: float | None = None,
    ) -> Record:
        """Fetch one record, inferring its object type from the id prefix."""
        return self.get_record_by_id(self.classify(record_id), record_id, fields, timeout=timeout)

    def create_record(
        self,
        object_type: str,
        fields: Mapping[str, Any],
        timeout: float | None = None,
    ) -> str:
        """Create a record and return the id the platform assigned."""
        object_type = validate_object_type(self.resolve_object_type(object_type))
        logger.info("Creating %s", object_type)

        response = self._client.post(f"/sobjects/{object_type}", body=dict(fields), timeout=timeout)
        result = _parse_body(response, CreateResult)
        if not result.success or not result.id:
            raise RemoteError(
                f"Create {object_type} failed: {result.errors or 'no id returned'}",
                status_code=response.status_code,
                body=response.text,
            )
        return result.id

    def update_record(
        self,
        object_type: str,
        record_id: str,
        updates: Mapping[str, Any],
        fields: list[str] | None = None,
        timeout: float | None = None,
    ) -> Record:
        """Apply updates to a record, then re-read it.

        The update response has no body, so the returned record comes from a
        confirmatory read that selects ``fields`` (or the defaults) plus every
        updated field.
        """
        if not updates:
            raise ValueError("No fields to update")
        object_type = validate_object_type(self.resolve_object_type(object_type))
        reread = normalize_fields([*(fields or default_fields(object_type)), *updates.keys()])

        logger.info("Updating %s %s: %s", object_type, record_id, ", ".join(updates))
        self._client.patch(
            f"/sobjects/{object_type}/{quote(record_id.strip(), safe='')}", body=dict(updates), timeout=timeout,
        )
        return self.get_record_by_id(object_type, record_id, reread, timeout=timeout)
