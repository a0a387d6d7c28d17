"""Pydantic models for MediaWiki Action API and pageview payloads (formatversion=2)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class MediaWikiBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ApiError(MediaWikiBaseModel):
    code: str
    info: str = ""


class Continuation(MediaWikiBaseModel):
    cmcontinue: str | None = None
    accontinue: str | None = None


class CategoryMemberPayload(MediaWikiBaseModel):
    pageid: int
    ns: int = 0
    title: str


class AllCategoriesEntry(MediaWikiBaseModel):
    category: str


class PageProps(MediaWikiBaseModel):
    wikibase_item: str | None = None


class OriginalImage(MediaWikiBaseModel):
    source: str


class PagePayload(MediaWikiBaseModel):
    pageid: int | None = None
    title: str | None = None
    missing: bool = False
    pageprops: PageProps | None = None
    extract: str | None = None
    description: str | None = None
    original: OriginalImage | None = None

    _normalize_text = field_validator("extract", "description", mode="before")(_blank_to_none)


class QueryPayload(MediaWikiBaseModel):
    categorymembers: list[CategoryMemberPayload] = Field(default_factory=list["CategoryMemberPayload"])
    allcategories: list[AllCategoriesEntry] = Field(default_factory=list["AllCategoriesEntry"])
    pages: list[PagePayload] = Field(default_factory=list["PagePayload"])


class QueryResponse(MediaWikiBaseModel):
    batchcomplete: bool | None = None
    continuation: Continuation | None = Field(default=None, alias="continue")
    query: QueryPayload = Field(default_factory=QueryPayload)
    error: ApiError | None = None


class ParsePayload(MediaWikiBaseModel):
    pageid: int | None = None
    title: str | None = None
    text: str = ""


class ParseResponse(MediaWikiBaseModel):
    parse: ParsePayload | None = None
    error: ApiError | None = None


class PageviewItem(MediaWikiBaseModel):
    article: str | None = None
    timestamp: str | None = None
    views: int = 0


class PageviewsResponse(MediaWikiBaseModel):
    items: list[PageviewItem] = Field(default_factory=list["PageviewItem"])

    @property
    def total(self) -> int:
        return sum(item.views for item in self.items)
