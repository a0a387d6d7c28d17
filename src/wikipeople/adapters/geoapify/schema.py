"""Pydantic models for the Geoapify geocoding response."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GeoapifyBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class FeatureProperties(GeoapifyBaseModel):
    lat: float | None = None
    lon: float | None = None
    formatted: str | None = None


class Feature(GeoapifyBaseModel):
    properties: FeatureProperties = Field(default_factory=FeatureProperties)


class GeocodeResponse(GeoapifyBaseModel):
    features: list[Feature] = Field(default_factory=list["Feature"])
