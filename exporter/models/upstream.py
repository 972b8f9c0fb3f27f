"""Envelope returned by the time-series ``/api/v1/query`` endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QueryResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    metric: dict[str, str] = Field(default_factory=dict)
    value: list[Any] = Field(default_factory=list)  # [timestamp, scalar]

    @property
    def scalar(self) -> Any:
        """Raw sample value, ``None`` if the row carries no value."""
        return self.value[1] if len(self.value) > 1 else None


class QueryData(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    result_type: str = Field("", alias="resultType")
    result: list[QueryResult] = Field(default_factory=list)


class QueryResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str = ""
    data: QueryData = Field(default_factory=QueryData)
