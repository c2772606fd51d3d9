"""Record and query result models."""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, Field

# Flat, display-ready projection of one remote row
Record = dict[str, Union[str, float, bool]]


class QueryResult(BaseModel):
    """One page of a query response."""
    total_size: int = Field(default=0, alias="totalSize")
    done: bool = True
    records: list[dict[str, Any]] = Field(default_factory=list)
    next_records_url: str | None = Field(default=None, alias="nextRecordsUrl")

    model_config = {"populate_by_name": True}


class CreateResult(BaseModel):
    """Response body of a record creation call."""
    id: str | None = None
    success: bool = True
    errors: list[Any] = Field(default_factory=list)
