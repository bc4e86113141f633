"""
Keyword matching over parsed pages.

The page is parsed once into a title, its visible text and a sequence
of (text, href) link pairs; matching is a pure function over that
sequence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence
from urllib.parse import urljoin

from lxml import etree
from lxml import html as lxml_html

from bidmonitor.core.logging import get_logger

from .state import ResultItem, ResultType, hostname


logger = get_logger("monitor.matching")

BIDDING_TERMS: tuple[str, ...] = ("bid", "tender", "rfp", "procurement")

DEFAULT_TITLE = "Bidding Opportunity"

IGNORED_SCHEMES = ("javascript:", "mailto:", "tel:")


@dataclass(frozen=True)
class Link:
    """An anchor reduced to its visible text and raw href."""

    text: str
    href: str | None


@dataclass(frozen=True)
class ParsedPage:
    """Structured view of an HTML page."""

    title: str
    text: str
    links: tuple[Link, ...]


def normalize_whitespace(text: str | None) -> str:
    """Collapse runs of whitespace into single spaces."""
    if not text:
        return ""
    return " ".join(text.split())


def parse_page(html: str) -> ParsedPage:
    """Parse HTML into title, body text and links.

    Unparseable or empty documents yield an empty page.
    """
    if not html or not html.strip():
        return ParsedPage(title="", text="", links=())

    try:
        tree = lxml_html.fromstring(
            html.encode("utf-8"),
            parser=lxml_html.HTMLParser(encoding="utf-8"),
        )
    except (etree.ParserError, ValueError) as e:
        logger.debug("Failed to parse HTML: %s", e)
        return ParsedPage(title="", text="", links=())

    for node in tree.xpath("//script | //style | //noscript"):
        if node.getparent() is not None:
            node.drop_tree()

    title_el = tree.find(".//title")
    title = normalize_whitespace(title_el.text_content()) if title_el is not None else ""

    body = tree.find(".//body")
    text_root = body if body is not None else tree

    links = tuple(
        Link(text=normalize_whitespace(a.text_content()), href=a.get("href"))
        for a in text_root.iter("a")
    )

    return ParsedPage(
        title=title,
        text=normalize_whitespace(text_root.text_content()),
        links=links,
    )


def passes_keyword_gate(page_text: str, keywords: Sequence[str]) -> bool:
    """An empty filter passes; otherwise any keyword must occur in the text."""
    cleaned = [k.strip().lower() for k in keywords if k and k.strip()]
    if not cleaned:
        return True
    lowered = page_text.lower()
    return any(keyword in lowered for keyword in cleaned)


def is_bidding_link(link: Link, terms: Sequence[str] = BIDDING_TERMS) -> bool:
    """Check a link's text or href for a bidding term (case-insensitive)."""
    if not link.href or not link.href.strip():
        return False
    if link.href.strip().lower().startswith(IGNORED_SCHEMES):
        return False
    haystacks = (link.text.lower(), link.href.lower())
    return any(term in hay for term in terms for hay in haystacks)


def find_bidding_links(
    page: ParsedPage,
    keywords: Sequence[str] = (),
    terms: Sequence[str] = BIDDING_TERMS,
) -> list[Link]:
    """Links worth reporting on a page, in document order."""
    if not passes_keyword_gate(page.text, keywords):
        return []
    return [link for link in page.links if is_bidding_link(link, terms)]


def resolve_href(href: str, page_url: str) -> str:
    href = href.strip()
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(page_url, href)


def build_candidates(
    links: Iterable[Link],
    page_url: str,
    result_type: ResultType = ResultType.MONITOR,
) -> list[ResultItem]:
    """Turn matched links into ResultItem candidates."""
    source = hostname(page_url)
    verb = "monitoring" if result_type == ResultType.MONITOR else "test scan"
    description = f"Found during {verb} of {source}"

    return [
        ResultItem.create(
            title=link.text or DEFAULT_TITLE,
            url=resolve_href(link.href or "", page_url),
            source=source,
            description=description,
            type=result_type,
        )
        for link in links
    ]


def scan_page(
    html: str,
    page_url: str,
    keywords: Sequence[str] = (),
    result_type: ResultType = ResultType.MONITOR,
) -> list[ResultItem]:
    """Parse a page and build candidates for every matching link."""
    page = parse_page(html)
    return build_candidates(find_bidding_links(page, keywords), page_url, result_type)
