"""
SCP Data Models

Canonical in-memory representations of SCP wiki pages and search records.

Upstream JSON is loosely typed; every model here is built only through the
normalization helpers at the bottom of this module, which drop values of the
wrong type instead of letting them flow into the data model.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


Collection = Literal["items", "tales", "hubs", "goi"]
ContentFormat = Literal["markdown", "text", "html", "wikitext"]
SearchSort = Literal["relevance", "rating", "created_at"]
RelationType = Literal["reference", "hub"]

ALL_COLLECTIONS: List[str] = ["items", "tales", "hubs", "goi"]


def make_ref(collection: str, key: str) -> str:
    return f"{collection}:{key}"


# ---------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------

class PageRecord(BaseModel):
    """
    Metadata for a single wiki page, registered from a collection index.

    ``ref`` is the internal identity and is never part of serialized output.
    """

    collection: Collection
    key: str = Field(..., min_length=1)
    link: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    page_id: str = Field(..., min_length=1)

    rating: Optional[float] = None
    series: Optional[str] = None
    created_at: Optional[str] = None
    creator: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    history: List[Dict[str, Any]] = Field(default_factory=list)
    references: List[str] = Field(default_factory=list)
    hubs: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    content_file: Optional[str] = None
    raw_content: Optional[str] = None
    raw_source: Optional[str] = None
    scp_number: Optional[int] = None

    model_config = ConfigDict(extra="forbid")

    @property
    def ref(self) -> str:
        return make_ref(self.collection, self.key)


class RelatedPage(BaseModel):
    link: str
    title: str
    url: str
    relation_type: RelationType


# ---------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------

class ContentFormatOptions(BaseModel):
    include_tables: Optional[bool] = None
    include_footnotes: Optional[bool] = None


class ImageRef(BaseModel):
    url: str
    alt: Optional[str] = None


class FormattedContent(BaseModel):
    content: str
    images: List[ImageRef] = Field(default_factory=list)


class ContentSource(BaseModel):
    url: str
    title: str
    page_id: str


class PageContent(BaseModel):
    content: str
    images: List[ImageRef]
    source: ContentSource
    page: PageRecord


class PageAttributionResult(BaseModel):
    authors: List[str]
    attribution_text: str
    page: PageRecord


# ---------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------

class SearchDocument(BaseModel):
    """
    A single page as seen by the search engine.

    Built from content shards, independently of PageRecord.
    """

    id: str
    link: str
    title: str
    url: str
    page_id: str
    rating: float = 0
    tags: List[str] = Field(default_factory=list)
    series: Optional[str] = None
    created_at: str = ""
    creator: Optional[str] = None
    text: str = ""


class SearchParams(BaseModel):
    query: Optional[str] = None
    tags: Optional[List[str]] = None
    series: Optional[str] = None
    created_at_from: Optional[str] = None
    created_at_to: Optional[str] = None
    rating_min: Optional[float] = None
    rating_max: Optional[float] = None
    limit: Optional[float] = None
    sort: Optional[SearchSort] = None


class SearchResult(BaseModel):
    link: str
    title: str
    url: str
    page_id: str
    rating: float
    tags: List[str]
    series: Optional[str] = None
    created_at: str
    creator: Optional[str] = None
    snippet: str


class SearchResponse(BaseModel):
    results: List[SearchResult] = Field(default_factory=list)


# ---------------------------------------------------------------------
# Normalization helpers for upstream JSON
# ---------------------------------------------------------------------

def string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def string_or_empty(value: Any) -> str:
    return value if isinstance(value, str) else ""


def number_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def int_or_none(value: Any) -> Optional[int]:
    number = number_or_none(value)
    if number is None:
        return None
    return int(number)


def list_of_strings(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def list_of_mappings(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def page_id_string(value: Any) -> str:
    """
    Render an upstream page id as a string.

    Numeric ids keep their integer form, so ``1956234`` and ``1956234.0``
    both become ``"1956234"``.
    """
    if isinstance(value, str):
        return value.strip()
    number = number_or_none(value)
    if number is None:
        return ""
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)
