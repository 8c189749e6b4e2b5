"""
Content Formatter

Pure conversion of a page's raw body into one of the supported output
formats. No network or cache access happens here.
"""

from __future__ import annotations

import re
from typing import List, Optional

from bs4 import BeautifulSoup, Tag
from markdownify import ATX, markdownify

from ..core.errors import ContentUnavailableError
from .models import ContentFormat, ContentFormatOptions, FormattedContent, ImageRef

PAGE_BODY_SELECTOR = "#page-content"
FOOTNOTE_SELECTOR = ".footnote, .footnoteref, .footnotes"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_images(images: Optional[List[object]]) -> List[ImageRef]:
    if not images:
        return []
    return [ImageRef(url=u) for u in images if isinstance(u, str) and u]


def extract_page_text(raw_content: str) -> str:
    """
    Plain text of the page body, used for search indexing.
    """
    soup = BeautifulSoup(raw_content, "html.parser")
    body = soup.select_one(PAGE_BODY_SELECTOR)
    return (body if body is not None else soup).get_text().strip()


def _remove_all(elements: List[Tag]) -> None:
    for el in elements:
        el.extract()


def format_scp_content(
    format: ContentFormat,
    raw_content: Optional[str] = None,
    raw_source: Optional[str] = None,
    images: Optional[List[str]] = None,
    options: Optional[ContentFormatOptions] = None,
) -> FormattedContent:
    """
    Render raw page content in the requested format.

    Parameters
    ----------
    format : ContentFormat
        One of ``markdown``, ``text``, ``html`` or ``wikitext``.

    raw_content : Optional[str]
        Rendered HTML of the page. Required for every format but wikitext.

    raw_source : Optional[str]
        Wikidot source of the page. Required for wikitext.

    images : Optional[List[str]]
        Stored image URLs for the page, used when the markup has no images.

    options : Optional[ContentFormatOptions]
        Table and footnote inclusion; both default to True.

    Returns
    -------
    FormattedContent
        Rendered content and the page's image list.

    Raises
    ------
    ContentUnavailableError
        If the raw field the format needs is missing.
    """
    if format == "wikitext":
        if not raw_source:
            raise ContentUnavailableError("wikitext is not available for this page")
        return FormattedContent(
            content=raw_source.strip(),
            images=normalize_images(images),
        )

    if not raw_content:
        raise ContentUnavailableError("html content is not available for this page")

    options = options or ContentFormatOptions()
    include_tables = True if options.include_tables is None else options.include_tables
    include_footnotes = (
        True if options.include_footnotes is None else options.include_footnotes
    )

    soup = BeautifulSoup(raw_content, "html.parser")
    root = soup.select_one(PAGE_BODY_SELECTOR)
    if root is None:
        root = soup.body or soup

    _remove_all(root.find_all(["script", "style"]))
    if not include_tables:
        _remove_all(root.find_all("table"))
    if not include_footnotes:
        _remove_all(root.select(FOOTNOTE_SELECTOR))

    extracted: List[ImageRef] = []
    for img in root.find_all("img"):
        src = img.get("src")
        if src:
            extracted.append(ImageRef(url=src, alt=img.get("alt")))
        img.extract()

    result_images = extracted or normalize_images(images)

    if format == "html":
        content = root.decode_contents().strip()
    elif format == "text":
        content = _WHITESPACE_RE.sub(" ", root.get_text()).strip()
    else:
        content = markdownify(
            root.decode_contents(),
            heading_style=ATX,
            bullets="-",
            strip=["img"],
        ).strip()

    return FormattedContent(content=content, images=result_images)
