"""
SCP Data Package

Fetch cache, repository, search engine and content formatter for the SCP
Data API.
"""

from .data_client import ScpDataClient
from .repository import ScpRepository, ScpDataSource
from .search_engine import ScpSearchEngine
from .content_formatter import format_scp_content
from .models import PageRecord, SearchDocument, SearchParams, SearchResponse

__all__ = [
    "ScpDataClient",
    "ScpRepository",
    "ScpDataSource",
    "ScpSearchEngine",
    "format_scp_content",
    "PageRecord",
    "SearchDocument",
    "SearchParams",
    "SearchResponse",
]
