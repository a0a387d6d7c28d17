"""Pydantic models for SPARQL JSON results."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SparqlBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class BindingValue(SparqlBaseModel):
    type: str
    value: str
    lang: str | None = Field(default=None, alias="xml:lang")


class SparqlResults(SparqlBaseModel):
    bindings: list[dict[str, BindingValue]] = Field(default_factory=list[dict[str, BindingValue]])


class SparqlResponse(SparqlBaseModel):
    results: SparqlResults = Field(default_factory=SparqlResults)
