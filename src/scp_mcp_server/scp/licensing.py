"""
Licensing and Attribution

SCP Wiki content is published under CC BY-SA 3.0. Every tool response that
carries wiki content also carries the license and an attribution block built
here.
"""

from __future__ import annotations

from typing import Any, Dict, List, Final

SCP_CONTENT_LICENSE: Final[Dict[str, str]] = {
    "name": "CC BY-SA 3.0",
    "url": "https://creativecommons.org/licenses/by-sa/3.0/",
}

SCP_LICENSING_GUIDE_URL: Final[str] = "https://scp-wiki.wikidot.com/licensing-guide"


def build_dataset_attribution() -> Dict[str, Any]:
    return {
        "license": dict(SCP_CONTENT_LICENSE),
        "licensing_guide_url": SCP_LICENSING_GUIDE_URL,
        "notice": (
            "SCP Wiki content is licensed under CC BY-SA 3.0. You must provide "
            "attribution and share-alike when reusing content."
        ),
    }


def build_page_attribution(url: str, title: str, authors: List[str]) -> Dict[str, Any]:
    return {
        **build_dataset_attribution(),
        "source_url": url,
        "title": title,
        "authors": list(authors),
    }


def build_attribution_text(url: str, title: str, authors: List[str]) -> str:
    """
    Human-readable attribution block for quoting a single page.
    """
    author_line = ", ".join(authors) if authors else "(unknown)"
    return "\n".join(
        [
            "Attribution (CC BY-SA 3.0):",
            f"- Title: {title}",
            f"- Authors: {author_line}",
            f"- Source: {url}",
            f"- License: {SCP_CONTENT_LICENSE['name']} ({SCP_CONTENT_LICENSE['url']})",
            f"- Licensing guide: {SCP_LICENSING_GUIDE_URL}",
            "",
            "If you modify the content, you must indicate changes and distribute "
            "your contributions under the same license.",
        ]
    )
