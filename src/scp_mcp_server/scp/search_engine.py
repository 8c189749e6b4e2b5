"""
SCP Full-Text Search Engine

An in-memory keyword index over SCP pages.

Ranking is BM25 (rank_bm25.BM25Plus) over two fields, title and body text,
with the title weighted twice as much as the body. A parallel by-id table
holds the full documents for filtering, sorting and snippet extraction,
which the ranked index itself cannot express.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from rank_bm25 import BM25Plus

from .models import SearchDocument, SearchParams, SearchResponse, SearchResult

logger = logging.getLogger("scp.search")

DEFAULT_LIMIT = 20
MAX_LIMIT = 50
TITLE_BOOST = 2.0

SNIPPET_LENGTH = 200
SNIPPET_CONTEXT_BEFORE = 80
SNIPPET_CONTEXT_AFTER = 120
SNIPPET_FALLBACK_STEP = 40
ELLIPSIS = "…"

_TOKEN_RE = re.compile(r"\w+")
_WHITESPACE_RE = re.compile(r"\s+")


def tokenize(text: str) -> List[str]:
    return _TOKEN_RE.findall(text.lower())


@dataclass
class _Candidate:
    doc: SearchDocument
    score: Optional[float] = None


@dataclass
class _Filters:
    tags: List[str]
    series: Optional[str]
    created_at_from: Optional[datetime]
    created_at_to: Optional[datetime]
    rating_min: Optional[float]
    rating_max: Optional[float]


class _FieldIndex:
    """BM25 scorer for one field, or nothing when the field has no tokens."""

    def __init__(self, term_counts: List[Counter]) -> None:
        self._bm25: Optional[BM25Plus] = None
        if any(term_counts):
            # Token lists are rebuilt one document at a time while BM25 reads them.
            self._bm25 = BM25Plus(list(c.elements()) for c in term_counts)

    def scores(self, query_tokens: List[str]) -> List[float]:
        if self._bm25 is None:
            return []
        return [float(s) for s in self._bm25.get_scores(query_tokens)]


class ScpSearchEngine:
    """
    Ranked, filterable search over SearchDocument records.

    Documents are added incrementally; the BM25 scorers are rebuilt lazily
    on the first search after a change. Only per-document term counts are
    kept, never the token streams.
    """

    def __init__(self) -> None:
        self._docs: Dict[str, SearchDocument] = {}
        self._positions: Dict[str, int] = {}
        self._ids: List[str] = []
        self._title_terms: List[Counter] = []
        self._text_terms: List[Counter] = []

        self._title_index: Optional[_FieldIndex] = None
        self._text_index: Optional[_FieldIndex] = None
        self._dirty = False

    def __len__(self) -> int:
        return len(self._docs)

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def add(self, doc: SearchDocument) -> None:
        """
        Insert a document. Adding an existing id replaces the old document.
        """
        title_terms = Counter(tokenize(doc.title))
        text_terms = Counter(tokenize(doc.text))

        pos = self._positions.get(doc.id)
        if pos is not None:
            self._title_terms[pos] = title_terms
            self._text_terms[pos] = text_terms
        else:
            self._positions[doc.id] = len(self._ids)
            self._ids.append(doc.id)
            self._title_terms.append(title_terms)
            self._text_terms.append(text_terms)

        self._docs[doc.id] = doc
        self._dirty = True

    def _ensure_ranker(self) -> None:
        if not self._dirty:
            return
        self._title_index = _FieldIndex(self._title_terms)
        self._text_index = _FieldIndex(self._text_terms)
        self._dirty = False
        logger.debug("Rebuilt BM25 scorers over %d documents", len(self._ids))

    def _ranked(self, query: str) -> List[_Candidate]:
        query_tokens = tokenize(query)
        if not query_tokens or not self._ids:
            return []

        self._ensure_ranker()
        title_scores = self._title_index.scores(query_tokens)
        text_scores = self._text_index.scores(query_tokens)

        wanted = set(query_tokens)
        candidates: List[_Candidate] = []
        for pos, doc_id in enumerate(self._ids):
            title_terms = self._title_terms[pos]
            text_terms = self._text_terms[pos]
            if not any(t in title_terms or t in text_terms for t in wanted):
                continue
            score = 0.0
            if title_scores:
                score += TITLE_BOOST * title_scores[pos]
            if text_scores:
                score += text_scores[pos]
            candidates.append(_Candidate(doc=self._docs[doc_id], score=score))

        return candidates

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    def search(self, params: SearchParams) -> SearchResponse:
        sort = params.sort or "relevance"
        limit = clamp_limit(params.limit)
        query = (params.query or "").strip()

        filters = _Filters(
            tags=normalize_tags(params.tags),
            series=(params.series or "").strip() or None,
            created_at_from=parse_date(params.created_at_from),
            created_at_to=parse_date(params.created_at_to),
            rating_min=params.rating_min,
            rating_max=params.rating_max,
        )

        if query:
            candidates = self._ranked(query)
        else:
            candidates = [_Candidate(doc=doc) for doc in self._docs.values()]

        matching = [c for c in candidates if matches_filters(c.doc, filters)]
        ordered = sort_candidates(matching, sort)[:limit]

        return SearchResponse(
            results=[
                SearchResult(
                    link=c.doc.link,
                    title=c.doc.title,
                    url=c.doc.url,
                    page_id=c.doc.page_id,
                    rating=c.doc.rating,
                    tags=c.doc.tags,
                    series=c.doc.series,
                    created_at=c.doc.created_at,
                    creator=c.doc.creator,
                    snippet=make_snippet(c.doc.text, query, rank),
                )
                for rank, c in enumerate(ordered, start=1)
            ]
        )


# ---------------------------------------------------------------------
# Filtering and Sorting
# ---------------------------------------------------------------------

def clamp_limit(limit: Optional[float]) -> int:
    if limit is None or not math.isfinite(limit):
        return DEFAULT_LIMIT
    if limit < 1:
        return 1
    return int(min(limit, MAX_LIMIT))


def normalize_tags(tags: Optional[List[str]]) -> List[str]:
    if not tags:
        return []
    return [t.strip().lower() for t in tags if t.strip()]


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime. Returns None when unparseable.

    Naive values are taken as UTC so that every parsed value is comparable.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def matches_filters(doc: SearchDocument, filters: _Filters) -> bool:
    if filters.series and doc.series != filters.series:
        return False

    if filters.tags:
        doc_tags = {t.lower() for t in doc.tags}
        if any(t not in doc_tags for t in filters.tags):
            return False

    if filters.rating_min is not None and doc.rating < filters.rating_min:
        return False
    if filters.rating_max is not None and doc.rating > filters.rating_max:
        return False

    # Unparseable dates never exclude a document.
    created_at = parse_date(doc.created_at)
    if created_at is not None:
        if filters.created_at_from and created_at < filters.created_at_from:
            return False
        if filters.created_at_to and created_at > filters.created_at_to:
            return False

    return True


def sort_candidates(candidates: List[_Candidate], sort: str) -> List[_Candidate]:
    if sort == "created_at":
        key = lambda c: c.doc.created_at
    elif sort == "rating":
        key = lambda c: c.doc.rating
    else:
        key = lambda c: (c.score or 0.0, c.doc.rating)
    return sorted(candidates, key=key, reverse=True)


# ---------------------------------------------------------------------
# Snippets
# ---------------------------------------------------------------------

def _window(text: str, start: int, end: int) -> str:
    prefix = ELLIPSIS if start > 0 else ""
    suffix = ELLIPSIS if end < len(text) else ""
    return f"{prefix}{text[start:end]}{suffix}"


def _first_term_index(text: str, query: str) -> int:
    lowered = text.lower()
    hits = [
        idx
        for idx in (lowered.find(term) for term in query.lower().split())
        if idx != -1
    ]
    return min(hits) if hits else -1


def make_snippet(text: str, query: str, rank: int) -> str:
    """
    Build a display snippet for one search result.

    ``rank`` is the 1-based result position; it only offsets the fallback
    window used when no query term occurs in the body, so rows that match
    on the title alone do not all show the same prefix.
    """
    normalized = _WHITESPACE_RE.sub(" ", text).strip()
    if not normalized:
        return ""

    if not query:
        return _window(normalized, 0, min(len(normalized), SNIPPET_LENGTH))

    idx = _first_term_index(normalized, query)
    if idx == -1:
        start = min(
            rank * SNIPPET_FALLBACK_STEP,
            max(0, len(normalized) - SNIPPET_LENGTH),
        )
        end = min(len(normalized), start + SNIPPET_LENGTH)
        return _window(normalized, start, end)

    start = max(0, idx - SNIPPET_CONTEXT_BEFORE)
    end = min(len(normalized), idx + SNIPPET_CONTEXT_AFTER)
    return _window(normalized, start, end)

