"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import (
    CategoryMember,
    EncyclopediaSource,
    Fetched,
    Geocoder,
    HumannessReport,
    InfoboxFacts,
    KnowledgeGraphSource,
    PageText,
    PageviewSource,
    PersonDetails,
    Sources,
    Unavailable,
)
from .persistence import ImportLogRepository, PersonRepository, Repository, Scored
from .unit_of_work import (
    PeopleRepositories,
    PeopleUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
    UnitOfWorkFactory,
)

__all__ = [
    "CategoryMember",
    "EncyclopediaSource",
    "Fetched",
    "Geocoder",
    "HumannessReport",
    "ImportLogRepository",
    "InfoboxFacts",
    "KnowledgeGraphSource",
    "PageText",
    "PageviewSource",
    "PeopleRepositories",
    "PeopleUnitOfWork",
    "PersonDetails",
    "PersonRepository",
    "Repository",
    "RepositoryCollection",
    "Scored",
    "Sources",
    "Unavailable",
    "UnitOfWork",
    "UnitOfWorkFactory",
]
