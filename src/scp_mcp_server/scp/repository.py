"""
SCP Repository

Orchestrates the SCP data layer: pulls collection indexes and content shards
through a data source, normalizes them into PageRecord / SearchDocument
records, and answers page resolution, content, related-page, attribution and
search queries.

Index Lifecycle
---------------
Two indexes are built lazily, each at most once per repository instance:

- the page index (lookup tables over collection index documents)
- the search index (full-text engine over content shards)

Each build runs as a single stored task. The task is stored before anything
is awaited, so concurrent first callers all await the same build and observe
the same result or the same failure. A failed build is not retried; construct
a new repository to retry.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

from ..core.errors import (
    AmbiguousError,
    ContentUnavailableError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from .content_formatter import extract_page_text, format_scp_content
from .licensing import build_attribution_text
from .models import (
    ALL_COLLECTIONS,
    ContentFormat,
    ContentFormatOptions,
    ContentSource,
    PageAttributionResult,
    PageContent,
    PageRecord,
    RelatedPage,
    SearchDocument,
    SearchParams,
    SearchResponse,
    int_or_none,
    list_of_mappings,
    list_of_strings,
    make_ref,
    number_or_none,
    page_id_string,
    string_or_empty,
    string_or_none,
)
from .search_engine import ScpSearchEngine

logger = logging.getLogger("scp.repository")

HUBS = "hubs"
ITEMS = "items"


# ---------------------------------------------------------------------
# Data Source Contract
# ---------------------------------------------------------------------

class ScpDataSource(Protocol):
    """The subset of ScpDataClient the repository depends on."""

    async def get_index(self, collection: str) -> Dict[str, Any]: ...

    async def get_content_index(self, collection: str) -> Dict[str, str]: ...

    async def get_content_file(
        self, collection: str, file_name: str
    ) -> Dict[str, Any]: ...


# ---------------------------------------------------------------------
# Page Index
# ---------------------------------------------------------------------

@dataclass
class _PageIndex:
    pages_by_ref: Dict[str, PageRecord] = field(default_factory=dict)
    refs_by_link: Dict[str, List[str]] = field(default_factory=dict)
    refs_by_page_id: Dict[str, List[str]] = field(default_factory=dict)
    item_refs_by_scp_number: Dict[int, List[str]] = field(default_factory=dict)

    def register(self, page: PageRecord) -> None:
        ref = page.ref
        self.pages_by_ref[ref] = page
        self.refs_by_link.setdefault(normalize_link(page.link), []).append(ref)
        self.refs_by_page_id.setdefault(page.page_id, []).append(ref)
        if page.collection == ITEMS and page.scp_number is not None:
            self.item_refs_by_scp_number.setdefault(page.scp_number, []).append(ref)

    def page_for_link(self, link: str) -> Optional[PageRecord]:
        """The page a link points to, or None when missing or ambiguous."""
        refs = self.refs_by_link.get(normalize_link(link), [])
        if len(refs) != 1:
            return None
        return self.pages_by_ref.get(refs[0])


# ---------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------

class ScpRepository:
    """
    Page lookup, content, related pages, attribution and search over the
    SCP dataset.

    All index state is owned by the instance; separate instances never
    share it.
    """

    def __init__(
        self,
        source: ScpDataSource,
        collections: Optional[Sequence[str]] = None,
    ) -> None:
        """
        Parameters
        ----------
        source : ScpDataSource
            Where collection indexes and shards come from (normally an
            ScpDataClient).

        collections : Optional[Sequence[str]]
            Collections to index. Defaults to all four.
        """
        chosen = list(collections) if collections is not None else list(ALL_COLLECTIONS)
        unknown = [c for c in chosen if c not in ALL_COLLECTIONS]
        if unknown:
            raise ValidationError(f"Unknown collection(s): {', '.join(unknown)}")

        self._source = source
        self._collections = chosen

        self._page_index_task: Optional[asyncio.Future] = None
        self._search_index_task: Optional[asyncio.Future] = None

    @property
    def collections(self) -> List[str]:
        return list(self._collections)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search(self, params: SearchParams) -> SearchResponse:
        engine = await self._ensure_search_index()
        return engine.search(params)

    async def resolve_page(
        self,
        link: Optional[str] = None,
        page_id: Optional[str | int] = None,
        scp_number: Optional[int | float] = None,
    ) -> PageRecord:
        """
        Resolve exactly one identifier to a page.

        Raises
        ------
        ValidationError
            If no identifier, or more than one, is given.

        NotFoundError
            If nothing matches.

        AmbiguousError
            If a link or page id matches several pages.
        """
        supplied = [
            name
            for name, value in (
                ("link", link or None),
                ("page_id", page_id),
                ("scp_number", scp_number),
            )
            if value is not None
        ]
        if not supplied:
            raise ValidationError("One of link, page_id, or scp_number is required")
        if len(supplied) > 1:
            raise ValidationError(
                f"Only one of link, page_id, or scp_number may be given (got {', '.join(supplied)})"
            )

        index = await self._ensure_page_index()

        if link:
            ref = _single_ref("link", link, index.refs_by_link.get(normalize_link(link)))
        elif page_id is not None:
            pid = page_id_string(page_id)
            ref = _single_ref("page_id", pid, index.refs_by_page_id.get(pid))
        else:
            ref = _ref_for_scp_number(index, scp_number)

        return index.pages_by_ref[ref]

    async def get_content(
        self,
        format: ContentFormat,
        link: Optional[str] = None,
        page_id: Optional[str | int] = None,
        options: Optional[ContentFormatOptions] = None,
    ) -> PageContent:
        page = await self.resolve_page(link=link, page_id=page_id)
        raw_content, raw_source, images = await self._raw_content(page)

        formatted = format_scp_content(
            format=format,
            raw_content=raw_content,
            raw_source=raw_source,
            images=images,
            options=options,
        )

        return PageContent(
            content=formatted.content,
            images=formatted.images,
            source=ContentSource(url=page.url, title=page.title, page_id=page.page_id),
            page=page,
        )

    async def get_related(self, link: str) -> List[RelatedPage]:
        """
        Pages linked from ``link`` through its references, then its hubs.

        Targets that do not resolve to exactly one page are skipped.
        """
        page = await self.resolve_page(link=link)
        index = await self._ensure_page_index()

        related: List[RelatedPage] = []
        seen = set()
        for relation_type, targets in (("reference", page.references), ("hub", page.hubs)):
            for target in targets:
                target_page = index.page_for_link(target)
                if target_page is None or target_page.link in seen:
                    continue
                seen.add(target_page.link)
                related.append(
                    RelatedPage(
                        link=target_page.link,
                        title=target_page.title,
                        url=target_page.url,
                        relation_type=relation_type,
                    )
                )

        return related

    async def get_attribution(self, link: str) -> PageAttributionResult:
        page = await self.resolve_page(link=link)
        authors = extract_authors(page.creator, page.history)
        return PageAttributionResult(
            authors=authors,
            attribution_text=build_attribution_text(
                url=page.url,
                title=page.title,
                authors=authors,
            ),
            page=page,
        )

    async def warm_up(self) -> None:
        """Build both indexes now instead of on first use."""
        await self._ensure_page_index()
        await self._ensure_search_index()

    def stats(self) -> dict:
        """
        Return index statistics for diagnostics. Unbuilt indexes report None.
        """
        pages = _built_result(self._page_index_task)
        engine = _built_result(self._search_index_task)
        return {
            "collections": self.collections,
            "pages": len(pages.pages_by_ref) if pages is not None else None,
            "search_documents": len(engine) if engine is not None else None,
        }

    # ------------------------------------------------------------------
    # Index Builds
    # ------------------------------------------------------------------

    async def _ensure_page_index(self) -> _PageIndex:
        if self._page_index_task is None:
            self._page_index_task = asyncio.ensure_future(self._build_page_index())
        return await asyncio.shield(self._page_index_task)

    async def _ensure_search_index(self) -> ScpSearchEngine:
        if self._search_index_task is None:
            self._search_index_task = asyncio.ensure_future(self._build_search_index())
        return await asyncio.shield(self._search_index_task)

    async def _build_page_index(self) -> _PageIndex:
        logger.info("Building page index for %s", ",".join(self._collections))
        index = _PageIndex()
        skipped = 0

        for collection in self._collections:
            raw_index = await self._source.get_index(collection)
            for key, entry in _entries(raw_index, f"{collection}/index.json"):
                page = build_page_record(collection, key, entry)
                if page is None:
                    skipped += 1
                    continue
                index.register(page)

        logger.info(
            "Built page index: %d pages across %s (%d entries skipped)",
            len(index.pages_by_ref),
            ",".join(self._collections),
            skipped,
        )
        return index

    async def _build_search_index(self) -> ScpSearchEngine:
        logger.info("Building search index for %s", ",".join(self._collections))
        engine = ScpSearchEngine()

        for collection in self._collections:
            if collection == HUBS:
                raw_index = await self._source.get_index(collection)
                for key, entry in _entries(raw_index, f"{collection}/index.json"):
                    doc = build_search_document(collection, key, entry, prefer_html_text=True)
                    if doc is not None:
                        engine.add(doc)
                continue

            content_index = await self._source.get_content_index(collection)
            shard_names = dict.fromkeys(
                name
                for _, name in _entries(content_index, f"{collection}/content_index.json")
                if isinstance(name, str)
            )

            for shard_name in shard_names:
                shard = await self._source.get_content_file(collection, shard_name)
                for key, entry in _entries(shard, f"{collection}/{shard_name}"):
                    doc = build_search_document(collection, key, entry, prefer_html_text=False)
                    if doc is not None:
                        engine.add(doc)

        logger.info("Built search index: %d documents", len(engine))
        return engine

    async def _raw_content(
        self,
        page: PageRecord,
    ) -> Tuple[Optional[str], Optional[str], List[str]]:
        if page.collection == HUBS:
            return page.raw_content, page.raw_source, page.images

        if not page.content_file:
            raise ContentUnavailableError(f"content_file is missing for page: {page.link}")

        shard = await self._source.get_content_file(page.collection, page.content_file)
        entry = shard.get(page.key) if isinstance(shard, dict) else None
        if not isinstance(entry, dict):
            raise ContentUnavailableError(f"Content not found for page: {page.link}")

        images = list_of_strings(entry.get("images"))
        return (
            string_or_none(entry.get("raw_content")),
            string_or_none(entry.get("raw_source")),
            images or page.images,
        )


# ---------------------------------------------------------------------
# Ingestion Helpers
# ---------------------------------------------------------------------

def normalize_link(link: str) -> str:
    link = link.strip()
    if link.startswith("/"):
        link = link[1:]
    return link.lower()


def canonical_scp_key(scp_number: int | float) -> str:
    if not math.isfinite(scp_number):
        return ""
    return "SCP-" + str(math.trunc(scp_number)).rjust(3, "0")


def _entries(document: Any, label: str) -> Iterator[Tuple[str, Any]]:
    if not isinstance(document, dict):
        raise UpstreamError(f"Expected a JSON object in {label}")
    return iter(document.items())


def _base_fields(entry: Any) -> Optional[Tuple[str, str, str, str]]:
    if not isinstance(entry, dict):
        return None
    link = string_or_empty(entry.get("link"))
    title = string_or_empty(entry.get("title"))
    url = string_or_empty(entry.get("url"))
    page_id = page_id_string(entry.get("page_id"))
    if not (link and title and url and page_id):
        return None
    return link, title, url, page_id


def build_page_record(collection: str, key: str, entry: Any) -> Optional[PageRecord]:
    """
    Normalize one collection index entry, or return None if it is incomplete.
    """
    base = _base_fields(entry)
    if base is None or not key:
        logger.debug("Skipping incomplete index entry %s", make_ref(collection, key))
        return None
    link, title, url, page_id = base

    return PageRecord(
        collection=collection,
        key=key,
        link=link,
        title=title,
        url=url,
        page_id=page_id,
        rating=number_or_none(entry.get("rating")),
        series=string_or_none(entry.get("series")),
        created_at=string_or_none(entry.get("created_at")),
        creator=string_or_none(entry.get("creator")),
        tags=list_of_strings(entry.get("tags")),
        history=list_of_mappings(entry.get("history")),
        references=list_of_strings(entry.get("references")),
        hubs=list_of_strings(entry.get("hubs")),
        images=list_of_strings(entry.get("images")),
        content_file=string_or_none(entry.get("content_file")),
        raw_content=string_or_none(entry.get("raw_content")),
        raw_source=string_or_none(entry.get("raw_source")),
        scp_number=int_or_none(entry.get("scp_number")),
    )


def build_search_document(
    collection: str,
    key: str,
    entry: Any,
    prefer_html_text: bool,
) -> Optional[SearchDocument]:
    """
    Normalize one shard (or hub index) entry into a search document.

    Body text is the HTML-stripped page body when raw HTML exists. Otherwise
    it falls back to the raw source, except for hub pages
    (``prefer_html_text``), which index HTML only.
    """
    base = _base_fields(entry)
    if base is None:
        return None
    link, title, url, page_id = base

    raw_content = string_or_none(entry.get("raw_content"))
    raw_source = string_or_none(entry.get("raw_source"))
    if raw_content:
        text = extract_page_text(raw_content)
    elif prefer_html_text:
        text = ""
    else:
        text = raw_source or ""

    rating = number_or_none(entry.get("rating"))
    return SearchDocument(
        id=make_ref(collection, key),
        link=link,
        title=title,
        url=url,
        page_id=page_id,
        rating=rating if rating is not None else 0,
        tags=list_of_strings(entry.get("tags")),
        series=string_or_none(entry.get("series")),
        created_at=string_or_empty(entry.get("created_at")),
        creator=string_or_none(entry.get("creator")),
        text=text,
    )


def extract_authors(creator: Optional[str], history: List[Dict[str, Any]]) -> List[str]:
    """
    Creator first, then history authors; trimmed, non-empty, first occurrence kept.
    """
    candidates: List[Any] = [creator] + [event.get("author") for event in history]
    authors: List[str] = []
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        name = candidate.strip()
        if name and name not in authors:
            authors.append(name)
    return authors


# ---------------------------------------------------------------------
# Resolution Helpers
# ---------------------------------------------------------------------

def _single_ref(label: str, value: str, refs: Optional[List[str]]) -> str:
    refs = refs or []
    if not refs:
        raise NotFoundError(f"Page not found for {label}: {value}")
    if len(refs) > 1:
        raise AmbiguousError(f"Ambiguous {label}: {value}")
    return refs[0]


def _ref_for_scp_number(index: _PageIndex, scp_number: int | float) -> str:
    # The canonical zero-padded key always wins over other pages that share
    # the ordinal.
    canonical_ref = make_ref(ITEMS, canonical_scp_key(scp_number))
    if canonical_ref in index.pages_by_ref:
        return canonical_ref

    refs: List[str] = []
    if math.isfinite(scp_number):
        refs = index.item_refs_by_scp_number.get(math.trunc(scp_number), [])
    if not refs:
        raise NotFoundError(f"Page not found for scp_number: {scp_number}")
    return min(refs)


def _built_result(task: Optional[asyncio.Future]) -> Any:
    if task is None or not task.done() or task.cancelled() or task.exception():
        return None
    return task.result()
