"""
SCP Data API Client

A caching JSON client for the static SCP Data API.

Key Properties
--------------
- Only URLs under the configured origin and path prefix can be fetched
- Concurrent requests for the same URL share one in-flight fetch
- Responses are cached with their ETag / Last-Modified validators and
  revalidated with conditional GETs
- The cache is an LRU bounded by the total size of cached response bodies
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..core.errors import UpstreamError, ValidationError

logger = logging.getLogger("scp.data")

ERROR_BODY_LIMIT = 200


@dataclass
class CacheEntry:
    value: Any
    size: int
    etag: Optional[str] = None
    last_modified: Optional[str] = None


class ScpDataClient:
    """
    Fetches and caches individual JSON documents from the SCP Data API.

    The client knows nothing about the dataset schema; see ScpRepository for
    that.
    """

    def __init__(
        self,
        max_cache_bytes: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
        origin: Optional[str] = None,
        path_prefix: Optional[str] = None,
    ) -> None:
        """
        Parameters
        ----------
        max_cache_bytes : Optional[int]
            Byte budget for cached response bodies.
            Defaults to settings.max_cache_bytes.

        transport : Optional[httpx.AsyncBaseTransport]
            Transport override, mainly for tests (httpx.MockTransport).

        timeout : Optional[float]
            Per-request timeout in seconds. Defaults to
            settings.http_timeout_seconds.
        """
        self.max_cache_bytes = (
            settings.max_cache_bytes if max_cache_bytes is None else max_cache_bytes
        )
        self._transport = transport
        self._timeout = settings.http_timeout_seconds if timeout is None else timeout

        self._origin = httpx.URL(origin or settings.data_api_origin)
        self._path_prefix = path_prefix or settings.data_api_path_prefix

        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._cache_bytes = 0
        self._in_flight: Dict[str, asyncio.Future] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_json(self, url: str | httpx.URL) -> Any:
        """
        Fetch a JSON document, serving it from cache when still valid.

        Raises
        ------
        ValidationError
            If the URL is outside the allow-listed origin / path prefix.

        UpstreamError
            If the origin returns an unusable response.
        """
        parsed = self._check_allowlisted(url)
        key = str(parsed)

        pending = self._in_flight.get(key)
        if pending is None or pending.done():
            pending = asyncio.ensure_future(self._fetch_with_cache(key))
            self._in_flight[key] = pending
            pending.add_done_callback(
                lambda fut, key=key: self._forget_in_flight(key, fut)
            )

        # Shielded so that one cancelled caller never aborts the shared fetch.
        return await asyncio.shield(pending)

    async def get_index(self, collection: str) -> Dict[str, Any]:
        return await self.get_json(self._collection_url(collection, "index.json"))

    async def get_content_index(self, collection: str) -> Dict[str, str]:
        return await self.get_json(
            self._collection_url(collection, "content_index.json")
        )

    async def get_content_file(
        self,
        collection: str,
        file_name: str,
    ) -> Dict[str, Any]:
        if not file_name.endswith(".json"):
            raise ValidationError("content file name must end with .json")
        return await self.get_json(self._collection_url(collection, file_name))

    def cache_stats(self) -> dict:
        """
        Return cache statistics for diagnostics.
        """
        return {
            "entries": len(self._cache),
            "bytes": self._cache_bytes,
            "max_bytes": self.max_cache_bytes,
            "in_flight": len(self._in_flight),
        }

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _collection_url(self, collection: str, name: str) -> str:
        origin = str(self._origin).rstrip("/")
        return f"{origin}{self._path_prefix}{collection}/{name}"

    def _check_allowlisted(self, url: str | httpx.URL) -> httpx.URL:
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as exc:
            raise ValidationError(f"URL not allowlisted: {url}") from exc

        same_origin = (
            parsed.scheme == self._origin.scheme
            and parsed.host == self._origin.host
            and parsed.port == self._origin.port
        )
        path = parsed.path
        if (
            not same_origin
            or not path.startswith(self._path_prefix)
            or ".." in path.split("/")
        ):
            raise ValidationError(f"URL not allowlisted: {parsed}")

        return parsed

    def _forget_in_flight(self, key: str, fut: asyncio.Future) -> None:
        if self._in_flight.get(key) is fut:
            del self._in_flight[key]

    async def _fetch_with_cache(self, url: str) -> Any:
        cached = self._cache_get(url)

        headers: Dict[str, str] = {}
        if cached is not None and cached.etag:
            headers["If-None-Match"] = cached.etag
        if cached is not None and cached.last_modified:
            headers["If-Modified-Since"] = cached.last_modified

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
            ) as client:
                resp = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("SCP Data API request failed: %s (%s)", url, type(exc).__name__)
            raise UpstreamError(
                f"SCP Data API request failed: {type(exc).__name__}"
            ) from exc

        if resp.status_code == 304:
            if cached is None:
                raise UpstreamError(
                    f"Got 304 but no cache entry exists for: {url}",
                    status=304,
                )
            return cached.value

        if not resp.is_success:
            body = resp.text[:ERROR_BODY_LIMIT]
            logger.warning("SCP Data API returned %s for %s", resp.status_code, url)
            raise UpstreamError(
                f"SCP Data API request failed ({resp.status_code}): {body}",
                status=resp.status_code,
                body=body,
            )

        try:
            value = resp.json()
        except ValueError as exc:
            raise UpstreamError(
                f"SCP Data API returned invalid JSON for: {url}",
                status=resp.status_code,
            ) from exc

        self._cache_set(
            url,
            CacheEntry(
                value=value,
                size=len(resp.content),
                etag=resp.headers.get("etag"),
                last_modified=resp.headers.get("last-modified"),
            ),
        )
        return value

    def _cache_get(self, key: str) -> Optional[CacheEntry]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        self._cache.move_to_end(key)
        return entry

    def _cache_set(self, key: str, entry: CacheEntry) -> None:
        existing = self._cache.pop(key, None)
        if existing is not None:
            self._cache_bytes -= existing.size

        self._cache[key] = entry
        self._cache_bytes += entry.size

        while self._cache_bytes > self.max_cache_bytes and self._cache:
            oldest_key, oldest = self._cache.popitem(last=False)
            self._cache_bytes -= oldest.size
            logger.debug("Evicted %s (%d bytes) from cache", oldest_key, oldest.size)
