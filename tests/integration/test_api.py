import httpx
import pytest
from fastapi.testclient import TestClient

from bidmonitor.api import create_app
from bidmonitor.core.config import AppConfig, Environment, RelayConfig
from bidmonitor.core.relay import ProxyRelay


UPSTREAM_PAGE = "<html><body><a href='/bids/1'>Bid Notice</a></body></html>"


def upstream(request):
    if request.url.host == "down.example.gov":
        raise httpx.ConnectError("[Errno 111] Connection refused")
    if request.url.path == "/missing":
        return httpx.Response(404, html="<p>not here</p>")
    return httpx.Response(200, html=UPSTREAM_PAGE)


@pytest.fixture
def client():
    relay = ProxyRelay(transport=httpx.MockTransport(upstream))
    with TestClient(create_app(relay=relay)) as test_client:
        yield test_client


class TestFetchEndpoint:
    """Integration tests for POST /fetch"""

    def test_fetch_success(self, client):
        response = client.post("/fetch", json={"url": "https://city.example.gov/tenders"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["url"] == "https://city.example.gov/tenders"
        assert data["status"] == 200
        assert data["statusText"] == "OK"
        assert data["content"] == UPSTREAM_PAGE
        assert data["size"] == len(UPSTREAM_PAGE)
        assert data["timestamp"].endswith("Z")

    def test_upstream_error_status_is_relayed(self, client):
        response = client.post("/fetch", json={"url": "https://city.example.gov/missing"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == 404

    def test_invalid_url(self, client):
        response = client.post("/fetch", json={"url": "city.example.gov"})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "EINVAL"
        assert data["error"] == "Valid URL is required (must start with http:// or https://)"
        assert "timestamp" in data

    def test_missing_url(self, client):
        response = client.post("/fetch", json={"method": "GET"})
        assert response.status_code == 400

    def test_body_not_json(self, client):
        response = client.post(
            "/fetch",
            content="url=https://city.example.gov",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "EINVAL"

    def test_connection_refused(self, client):
        response = client.post("/fetch", json={"url": "https://down.example.gov/"})

        assert response.status_code == 503
        data = response.json()
        assert data == {
            "success": False,
            "error": "Connection refused - the website may be down or blocking requests",
            "code": "ECONNREFUSED",
            "timestamp": data["timestamp"],
        }

    def test_loopback_blocked_in_production(self):
        config = AppConfig(environment=Environment.PRODUCTION)
        with TestClient(create_app(config)) as test_client:
            response = test_client.post("/fetch", json={"url": "http://localhost:3000/fetch"})

        assert response.status_code == 400
        assert "localhost" in response.json()["error"]


class TestOtherMethods:
    """Integration tests for identity, pre-flight and refused methods"""

    def test_get_identity(self, client):
        response = client.get("/fetch")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "online"
        assert data["endpoint"] == "POST /fetch"

    def test_options_preflight(self, client):
        response = client.options("/fetch")

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
        assert response.headers["access-control-max-age"] == "86400"

    @pytest.mark.parametrize("method", ["PUT", "PATCH", "DELETE"])
    def test_method_not_allowed(self, client, method):
        response = client.request(method, "/fetch")

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed. Use POST."}

    def test_health(self, client):
        response = client.get("/health")
        assert response.json() == {"status": "healthy", "service": "BidMonitor API"}


class TestCors:
    """Integration tests for CORS headers"""

    @pytest.mark.parametrize("method, path, body", [
        ("POST", "/fetch", {"url": "https://city.example.gov/"}),
        ("POST", "/fetch", {"url": "bad"}),
        ("GET", "/fetch", None),
        ("PUT", "/fetch", None),
    ])
    def test_every_response_has_cors_headers(self, client, method, path, body):
        response = client.request(method, path, json=body)

        assert response.headers["access-control-allow-origin"] == "*"
        assert "access-control-allow-credentials" not in response.headers

    def test_specific_origin_allows_credentials(self):
        config = AppConfig(relay=RelayConfig(allowed_origin="https://bids.example.gov"))
        relay = ProxyRelay(transport=httpx.MockTransport(upstream))
        with TestClient(create_app(config, relay=relay)) as test_client:
            response = test_client.get("/fetch")

        assert response.headers["access-control-allow-origin"] == "https://bids.example.gov"
        assert response.headers["access-control-allow-credentials"] == "true"
