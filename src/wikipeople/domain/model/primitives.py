"""Domain primitives: scalar aliases + small value objects."""

from __future__ import annotations

from dataclasses import dataclass

type PageId = int
type WikidataId = str
type CategoryName = str


@dataclass(frozen=True, slots=True)
class Coordinates:
    lat: float
    lng: float

    def as_wkt(self) -> str:
        """Well-known-text point, longitude first."""
        return f"POINT({self.lng} {self.lat})"
