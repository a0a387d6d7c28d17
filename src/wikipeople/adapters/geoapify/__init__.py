"""Geoapify adapter: best-effort forward geocoding."""

from __future__ import annotations

from .client import GeoapifyGeocoder, clean_address

__all__ = ["GeoapifyGeocoder", "clean_address"]
