"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ImportStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


class SearchType(StrEnum):
    FUZZY = "fuzzy"
    FULLTEXT = "fulltext"
    COMBINED = "combined"
