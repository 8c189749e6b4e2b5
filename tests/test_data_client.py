import asyncio

import httpx
import pytest

from scp_mcp_server.core.errors import UpstreamError, ValidationError
from scp_mcp_server.scp.data_client import ScpDataClient

ORIGIN = "https://scp-data.example"
PREFIX = "/data/scp/"
INDEX_URL = f"{ORIGIN}{PREFIX}items/index.json"


def make_client(handler, max_cache_bytes=1024 * 1024):
    return ScpDataClient(
        max_cache_bytes=max_cache_bytes,
        transport=httpx.MockTransport(handler),
        timeout=5.0,
        origin=ORIGIN,
        path_prefix=PREFIX,
    )


# ---------------------------------------------------------------------
# Allow-listing
# ---------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url",
    [
        "https://evil.example/data/scp/items/index.json",
        "http://scp-data.example/data/scp/items/index.json",
        "https://scp-data.example:8443/data/scp/items/index.json",
        "https://scp-data.example/other/items/index.json",
        "https://scp-data.example/data/scp/../secrets.json",
        "not a url at all",
    ],
)
async def test_disallowed_urls_never_reach_the_network(url):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={})

    client = make_client(handler)
    with pytest.raises(ValidationError):
        await client.get_json(url)
    assert requests == []


@pytest.mark.asyncio
async def test_collection_urls():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, json={})

    client = make_client(handler)
    await client.get_index("items")
    await client.get_content_index("tales")
    await client.get_content_file("goi", "content_goi.json")

    assert seen == [
        f"{ORIGIN}{PREFIX}items/index.json",
        f"{ORIGIN}{PREFIX}tales/content_index.json",
        f"{ORIGIN}{PREFIX}goi/content_goi.json",
    ]


@pytest.mark.asyncio
async def test_content_file_name_must_be_json():
    client = make_client(lambda request: httpx.Response(200, json={}))
    with pytest.raises(ValidationError):
        await client.get_content_file("items", "content.txt")


# ---------------------------------------------------------------------
# Conditional Revalidation
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_revalidates_with_etag_and_last_modified():
    requests = []

    def handler(request):
        requests.append(request)
        if request.headers.get("if-none-match") == '"v1"':
            return httpx.Response(304)
        return httpx.Response(
            200,
            json={"SCP-173": {"title": "SCP-173"}},
            headers={
                "ETag": '"v1"',
                "Last-Modified": "Wed, 21 Oct 2015 07:28:00 GMT",
            },
        )

    client = make_client(handler)
    first = await client.get_json(INDEX_URL)
    second = await client.get_json(INDEX_URL)

    assert first == second == {"SCP-173": {"title": "SCP-173"}}
    assert len(requests) == 2
    assert "if-none-match" not in requests[0].headers
    assert requests[1].headers["if-none-match"] == '"v1"'
    assert requests[1].headers["if-modified-since"] == "Wed, 21 Oct 2015 07:28:00 GMT"


@pytest.mark.asyncio
async def test_304_without_cache_entry_is_upstream_error():
    client = make_client(lambda request: httpx.Response(304))
    with pytest.raises(UpstreamError) as excinfo:
        await client.get_json(INDEX_URL)
    assert excinfo.value.status == 304


# ---------------------------------------------------------------------
# Upstream Failures
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_non_success_status_is_upstream_error():
    client = make_client(lambda request: httpx.Response(500, text="boom" * 100))
    with pytest.raises(UpstreamError) as excinfo:
        await client.get_json(INDEX_URL)
    assert excinfo.value.status == 500
    assert len(excinfo.value.body) == 200
    assert client.cache_stats()["entries"] == 0


@pytest.mark.asyncio
async def test_transport_error_is_upstream_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(UpstreamError) as excinfo:
        await client.get_json(INDEX_URL)
    assert excinfo.value.status is None


@pytest.mark.asyncio
async def test_invalid_json_is_upstream_error():
    client = make_client(lambda request: httpx.Response(200, content=b"<html>"))
    with pytest.raises(UpstreamError):
        await client.get_json(INDEX_URL)


# ---------------------------------------------------------------------
# In-flight Coalescing
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_concurrent_requests_share_one_fetch():
    release = asyncio.Event()
    requests = []

    async def handler(request):
        requests.append(request)
        await release.wait()
        return httpx.Response(200, json={"ok": True})

    client = make_client(handler)
    first = asyncio.ensure_future(client.get_json(INDEX_URL))
    second = asyncio.ensure_future(client.get_json(INDEX_URL))
    await asyncio.sleep(0.01)
    release.set()

    assert await asyncio.gather(first, second) == [{"ok": True}, {"ok": True}]
    assert len(requests) == 1
    assert client.cache_stats()["in_flight"] == 0


@pytest.mark.asyncio
async def test_concurrent_failure_is_shared():
    release = asyncio.Event()
    requests = []

    async def handler(request):
        requests.append(request)
        await release.wait()
        return httpx.Response(503, text="unavailable")

    client = make_client(handler)
    calls = [asyncio.ensure_future(client.get_json(INDEX_URL)) for _ in range(3)]
    await asyncio.sleep(0.01)
    release.set()

    results = await asyncio.gather(*calls, return_exceptions=True)
    assert all(isinstance(r, UpstreamError) for r in results)
    assert len(requests) == 1


# ---------------------------------------------------------------------
# LRU Cache
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_lru_eviction_by_bytes():
    requests = []
    body = b'{"v": 1}'

    def handler(request):
        requests.append(request)
        etag = f'"{request.url.path}"'
        if request.headers.get("if-none-match") == etag:
            return httpx.Response(304)
        return httpx.Response(200, content=body, headers={"ETag": etag})

    client = make_client(handler, max_cache_bytes=2 * len(body))
    url_a = f"{ORIGIN}{PREFIX}items/a.json"
    url_b = f"{ORIGIN}{PREFIX}items/b.json"
    url_c = f"{ORIGIN}{PREFIX}items/c.json"

    await client.get_json(url_a)
    await client.get_json(url_b)
    await client.get_json(url_a)  # a becomes most recently used
    await client.get_json(url_c)  # evicts b

    stats = client.cache_stats()
    assert stats["entries"] == 2
    assert stats["bytes"] == 2 * len(body)

    requests.clear()
    await client.get_json(url_b)
    assert "if-none-match" not in requests[0].headers


@pytest.mark.asyncio
async def test_oversized_body_is_not_kept():
    client = make_client(
        lambda request: httpx.Response(200, json={"big": "x" * 100}),
        max_cache_bytes=10,
    )
    assert await client.get_json(INDEX_URL) == {"big": "x" * 100}
    assert client.cache_stats()["entries"] == 0
