import pytest

from bidmonitor.core.relay import FetchResult, RelayCallError
from bidmonitor.persistence import StateStore


TENDER_PAGE = """
<html>
  <head><title>City Procurement</title><script>var bid = "ignored";</script></head>
  <body>
    <h1>Open opportunities</h1>
    <a href="/a">Bid Notice #1</a>
    <a href="https://tenders.example.gov/b">Tender Alert</a>
    <a href="/c">Contact Us</a>
    <a href="mailto:bids@example.gov">Email the bid office</a>
  </body>
</html>
"""


class FakeRelayClient:
    """In-memory relay client: replays canned pages and errors in order.

    The last response repeats once the list is exhausted.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [TENDER_PAGE])
        self.calls = []
        self.sent_headers = []
        self.closed = False

    async def fetch(self, url, method="GET", headers=None):
        self.calls.append(url)
        self.sent_headers.append(dict(headers or {}))
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return make_result(url, response)

    async def close(self):
        self.closed = True


def make_result(url, html, content_type="text/html; charset=utf-8", status=200):
    return FetchResult(
        url=url,
        status=status,
        status_text="OK",
        content_type=content_type,
        content=html,
        headers={"content-type": content_type},
        size=len(html.encode("utf-8")),
    )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host environment variables out of config loading"""
    for name in (
        "BIDMONITOR_ENV",
        "BIDMONITOR_CONFIG",
        "BIDMONITOR_RELAY_URL",
        "BIDMONITOR_SITE_USERNAME",
        "BIDMONITOR_SITE_PASSWORD",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def tender_page():
    return TENDER_PAGE


@pytest.fixture
def memory_store():
    """State store backed by a private in-memory SQLite database"""
    return StateStore.from_url("sqlite://")


@pytest.fixture
def fake_client():
    """Factory for FakeRelayClient instances"""
    return FakeRelayClient


@pytest.fixture
def relay_down():
    return RelayCallError(
        "Connection refused - the website may be down or blocking requests",
        status_code=503,
        code="ECONNREFUSED",
    )
