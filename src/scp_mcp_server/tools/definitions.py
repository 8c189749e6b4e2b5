"""
Tool Definitions

This module defines the authoritative tool schemas exposed to tool-calling
clients. These definitions must remain strictly synchronized with:

- tools/base.py (TOOL_REGISTRY)
- tools/scp_tools.py (handler implementations)

Only tools defined here can ever be invoked.
"""

from __future__ import annotations

from typing import Dict, List, Any, Final


# ---------------------------------------------------------------------
# Tool Name Constants (Single Source of Truth)
# ---------------------------------------------------------------------

TOOL_SCP_SEARCH: Final[str] = "scp_search"
TOOL_SCP_GET_PAGE: Final[str] = "scp_get_page"
TOOL_SCP_GET_CONTENT: Final[str] = "scp_get_content"
TOOL_SCP_GET_RELATED: Final[str] = "scp_get_related"
TOOL_SCP_GET_ATTRIBUTION: Final[str] = "scp_get_attribution"


_LINK_PROPERTY: Final[Dict[str, Any]] = {
    "type": "string",
    "description": "Page slug (e.g., 'scp-173').",
    "minLength": 1,
}

_PAGE_ID_PROPERTY: Final[Dict[str, Any]] = {
    "anyOf": [{"type": "string"}, {"type": "integer"}],
    "description": "Wikidot page id.",
}


# ---------------------------------------------------------------------
# Tool Definitions
# ---------------------------------------------------------------------

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": TOOL_SCP_SEARCH,
            "description": (
                "Search SCP Wiki pages via the SCP Data API (CC BY-SA 3.0). "
                "Supports keyword queries plus tag, series, rating and date filters."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Search query."},
                    "site": {
                        "type": "string",
                        "description": "Site/language (currently only 'en').",
                    },
                    "tags": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Filter: every listed tag is required.",
                    },
                    "series": {"type": "string", "description": "Filter: series."},
                    "created_at_from": {
                        "type": "string",
                        "description": "Filter: created_at >= this (ISO string).",
                    },
                    "created_at_to": {
                        "type": "string",
                        "description": "Filter: created_at <= this (ISO string).",
                    },
                    "rating_min": {"type": "number", "description": "Filter: rating >= this."},
                    "rating_max": {"type": "number", "description": "Filter: rating <= this."},
                    "limit": {
                        "type": "number",
                        "description": "Max results (default 20, max 50).",
                    },
                    "sort": {
                        "type": "string",
                        "enum": ["relevance", "rating", "created_at"],
                        "description": "Sort order.",
                    },
                },
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": TOOL_SCP_GET_PAGE,
            "description": "Get a page by link, SCP number, or Wikidot page_id.",
            "parameters": {
                "type": "object",
                "properties": {
                    "link": _LINK_PROPERTY,
                    "scp_number": {
                        "type": "number",
                        "description": "SCP number (e.g., 173).",
                    },
                    "page_id": _PAGE_ID_PROPERTY,
                },
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": TOOL_SCP_GET_CONTENT,
            "description": "Get page content in markdown/text/html/wikitext.",
            "parameters": {
                "type": "object",
                "properties": {
                    "link": _LINK_PROPERTY,
                    "page_id": _PAGE_ID_PROPERTY,
                    "format": {
                        "type": "string",
                        "enum": ["markdown", "text", "html", "wikitext"],
                        "description": "Output format.",
                    },
                    "include_tables": {
                        "type": "boolean",
                        "description": "Whether to include tables.",
                    },
                    "include_footnotes": {
                        "type": "boolean",
                        "description": "Whether to include footnotes.",
                    },
                },
                "required": ["format"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": TOOL_SCP_GET_RELATED,
            "description": "Get related pages based on references/hubs.",
            "parameters": {
                "type": "object",
                "properties": {"link": _LINK_PROPERTY},
                "required": ["link"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": TOOL_SCP_GET_ATTRIBUTION,
            "description": "Generate CC BY-SA 3.0 attribution text for a page.",
            "parameters": {
                "type": "object",
                "properties": {"link": _LINK_PROPERTY},
                "required": ["link"],
                "additionalProperties": False,
            },
        },
    },
]
