from bidmonitor.core.monitor import ResultType, parse_page, scan_page
from bidmonitor.core.monitor.matching import (
    DEFAULT_TITLE,
    Link,
    find_bidding_links,
    is_bidding_link,
    passes_keyword_gate,
    resolve_href,
)


PAGE_URL = "https://city.example.gov/procurement/index.html"


class TestParsePage:
    """Unit tests for HTML parsing"""

    def test_extracts_title_text_and_links(self, tender_page):
        page = parse_page(tender_page)

        assert page.title == "City Procurement"
        assert "Open opportunities" in page.text
        assert [link.text for link in page.links][:3] == ["Bid Notice #1", "Tender Alert", "Contact Us"]

    def test_script_content_is_not_text(self, tender_page):
        page = parse_page(tender_page)
        assert "ignored" not in page.text

    def test_empty_document(self):
        page = parse_page("   ")
        assert page.title == ""
        assert page.links == ()

    def test_fragment_without_body(self):
        page = parse_page('<div><a href="/rfp/7">RFP 7</a></div>')
        assert page.links == (Link(text="RFP 7", href="/rfp/7"),)

    def test_whitespace_collapsed_in_link_text(self):
        page = parse_page('<body><a href="/x">  Tender\n\n   Notice  </a></body>')
        assert page.links[0].text == "Tender Notice"


class TestLinkMatching:
    """Unit tests for bidding link detection"""

    def test_matches_text_case_insensitively(self):
        assert is_bidding_link(Link(text="TENDER documents", href="/docs"))

    def test_matches_href(self):
        assert is_bidding_link(Link(text="Read more", href="/procurement/notices"))

    def test_requires_href(self):
        assert not is_bidding_link(Link(text="Bid Notice", href=None))
        assert not is_bidding_link(Link(text="Bid Notice", href="  "))

    def test_ignores_script_and_mail_links(self):
        assert not is_bidding_link(Link(text="Bid now", href="javascript:void(0)"))
        assert not is_bidding_link(Link(text="Bids", href="mailto:bids@example.gov"))

    def test_unrelated_link(self):
        assert not is_bidding_link(Link(text="Contact Us", href="/c"))


class TestKeywordGate:
    """Unit tests for the page-level keyword filter"""

    def test_empty_filter_passes(self):
        assert passes_keyword_gate("anything", [])
        assert passes_keyword_gate("anything", ["", "   "])

    def test_any_keyword_passes(self):
        assert passes_keyword_gate("Road Construction works", ["bridge", "construction"])

    def test_no_keyword_blocks_whole_page(self, tender_page):
        page = parse_page(tender_page)
        assert find_bidding_links(page, ["dredging"]) == []

    def test_keywords_are_trimmed(self, tender_page):
        page = parse_page(tender_page)
        assert len(find_bidding_links(page, ["  opportunities  "])) == 2


class TestScanPage:
    """Unit tests for candidate building"""

    def test_finds_exactly_the_bidding_links(self, tender_page):
        items = scan_page(tender_page, PAGE_URL)

        assert [item.title for item in items] == ["Bid Notice #1", "Tender Alert"]
        assert items[0].url == "https://city.example.gov/a"
        assert items[1].url == "https://tenders.example.gov/b"

    def test_source_and_description(self, tender_page):
        items = scan_page(tender_page, PAGE_URL)

        assert all(item.source == "city.example.gov" for item in items)
        assert items[0].description == "Found during monitoring of city.example.gov"
        assert items[0].type == ResultType.MONITOR

    def test_test_scan_description(self, tender_page):
        items = scan_page(tender_page, PAGE_URL, result_type=ResultType.TEST)
        assert items[0].description == "Found during test scan of city.example.gov"
        assert items[0].id.startswith("test-")

    def test_empty_link_text_gets_default_title(self):
        items = scan_page('<body><a href="/bids/42"><img src="x.png"></a></body>', PAGE_URL)
        assert items[0].title == DEFAULT_TITLE

    def test_relative_href_resolves_against_page(self):
        assert resolve_href("notices/1", PAGE_URL) == "https://city.example.gov/procurement/notices/1"
        assert resolve_href("/notices/1", PAGE_URL) == "https://city.example.gov/notices/1"
        assert resolve_href("https://other.example/x", PAGE_URL) == "https://other.example/x"

    def test_page_without_matches(self):
        assert scan_page("<body><p>Welcome</p></body>", PAGE_URL) == []
