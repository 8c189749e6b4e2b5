import asyncio
import copy
from collections import Counter

import pytest

from scp_mcp_server.core.errors import UpstreamError
from scp_mcp_server.scp.repository import ScpRepository


SHARD_NAME = "content_series-1.json"

SCP_173_HTML = (
    "<html><body><div id='page-content'>"
    "<p>SCP-173 is a concrete statue. It moves when not observed.</p>"
    "<table><tr><td>Containment cell</td></tr></table>"
    "<p>Note<sup class='footnoteref'>1</sup></p>"
    "<div class='footnotes'>Footnote text</div>"
    "</div></body></html>"
)

INDEXES = {
    "items": {
        "SCP-173": {
            "link": "scp-173",
            "title": "SCP-173",
            "url": "https://scp-wiki.wikidot.com/scp-173",
            "page_id": 1956234,
            "rating": 5000,
            "tags": ["euclid", "scp", "autonomous"],
            "series": "series-1",
            "created_at": "2008-07-25T20:49:00",
            "creator": "Moto42",
            "history": [
                {"author": "Moto42"},
                {"author": " Dr Gears "},
                {"author": ""},
                {"author": 42},
            ],
            "references": ["scp-096", "missing-page", "shared-link"],
            "hubs": ["series-1-hub", "scp-096"],
            "content_file": SHARD_NAME,
            "scp_number": 173,
        },
        "SCP-173-J": {
            "link": "scp-173-j",
            "title": "SCP-173-J",
            "url": "https://scp-wiki.wikidot.com/scp-173-j",
            "page_id": "3",
            "scp_number": 173,
            "content_file": SHARD_NAME,
        },
        "SCP-096": {
            "link": "scp-096",
            "title": "SCP-096",
            "url": "https://scp-wiki.wikidot.com/scp-096",
            "page_id": "2",
            "rating": 3000,
            "scp_number": 96,
            "content_file": SHARD_NAME,
        },
        "SCP-500-B": {
            "link": "scp-500-b",
            "title": "SCP-500-B",
            "url": "https://scp-wiki.wikidot.com/scp-500-b",
            "page_id": "52",
            "scp_number": 500,
        },
        "SCP-500-A": {
            "link": "scp-500-a",
            "title": "SCP-500-A",
            "url": "https://scp-wiki.wikidot.com/scp-500-a",
            "page_id": "51",
            "scp_number": 500,
        },
        "SCP-999": {
            "link": "scp-999",
            "title": "SCP-999",
            "url": "https://scp-wiki.wikidot.com/scp-999",
            "page_id": "999",
            "content_file": SHARD_NAME,
        },
        "SCP-NOFILE": {
            "link": "scp-nofile",
            "title": "SCP-NOFILE",
            "url": "https://scp-wiki.wikidot.com/scp-nofile",
            "page_id": "998",
        },
        "BROKEN": {"link": "broken", "title": "Broken"},
    },
    "tales": {
        "dup-a": {
            "link": "shared-link",
            "title": "Shared Tale",
            "url": "https://scp-wiki.wikidot.com/shared-link",
            "page_id": "10",
        },
    },
    "goi": {
        "dup-b": {
            "link": "Shared-Link",
            "title": "Shared Format",
            "url": "https://scp-wiki.wikidot.com/shared-link-goi",
            "page_id": "10",
        },
    },
    "hubs": {
        "series-1-hub": {
            "link": "series-1-hub",
            "title": "Series I",
            "url": "https://scp-wiki.wikidot.com/scp-series",
            "page_id": "100",
            "raw_content": "<div id='page-content'><p>Index of Series I</p></div>",
            "images": ["https://scp-wiki.wikidot.com/hub-banner.png"],
        },
    },
}

CONTENT_INDEXES = {
    "items": {
        "SCP-173": SHARD_NAME,
        "SCP-096": SHARD_NAME,
        "SCP-173-J": SHARD_NAME,
    },
    "tales": {},
    "goi": {},
}

CONTENT_FILES = {
    ("items", SHARD_NAME): {
        "SCP-173": {
            **INDEXES["items"]["SCP-173"],
            "raw_content": SCP_173_HTML,
            "raw_source": "  [[div]] concrete statue source [[/div]]  ",
            "images": ["https://scp-wiki.wikidot.com/scp-173.jpg"],
        },
        "SCP-096": {
            **INDEXES["items"]["SCP-096"],
            "raw_content": "<div id='page-content'><p>The shy guy.</p></div>",
        },
        "SCP-173-J": {
            **INDEXES["items"]["SCP-173-J"],
            "raw_source": "A joke about the statue.",
        },
    },
}


class FakeDataSource:
    """
    In-memory stand-in for ScpDataClient.

    ``gate`` (an asyncio.Event) holds every call until set, so tests can
    pile up concurrent callers before any build completes.
    """

    def __init__(self, fail_index=False, gate=None):
        self.indexes = copy.deepcopy(INDEXES)
        self.content_indexes = copy.deepcopy(CONTENT_INDEXES)
        self.content_files = copy.deepcopy(CONTENT_FILES)
        self.fail_index = fail_index
        self.gate = gate
        self.calls = Counter()

    async def _wait(self):
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)

    async def get_index(self, collection):
        self.calls["get_index"] += 1
        await self._wait()
        if self.fail_index:
            raise UpstreamError("index unavailable", status=503)
        return self.indexes[collection]

    async def get_content_index(self, collection):
        self.calls["get_content_index"] += 1
        await self._wait()
        return self.content_indexes[collection]

    async def get_content_file(self, collection, file_name):
        self.calls["get_content_file"] += 1
        await self._wait()
        try:
            return self.content_files[(collection, file_name)]
        except KeyError:
            raise UpstreamError(f"missing {collection}/{file_name}", status=404)


@pytest.fixture
def fake_source():
    return FakeDataSource()


@pytest.fixture
def repo(fake_source):
    return ScpRepository(fake_source)
