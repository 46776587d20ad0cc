"""
Integration tests for the demonstration services.
"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from weighted_routing.apps import gateway_service, version_service


@pytest.mark.integration
class TestVersionService:
    """Test the serviceB replica application."""

    def test_health(self):
        client = TestClient(version_service.create_app("v1"))
        response = client.get("/health")

        assert response.status_code == 200
        assert response.content == b""

    @pytest.mark.parametrize("version", ["v1", "v2"])
    def test_version(self, version):
        client = TestClient(version_service.create_app(version))
        assert client.get("/version").json() == {"version": version}

    def test_version_from_environment(self, monkeypatch):
        monkeypatch.setenv("SERVICE_VERSION", "v2")
        client = TestClient(version_service.create_app())
        assert client.get("/version").json() == {"version": "v2"}

    def test_default_version(self):
        client = TestClient(version_service.create_app())
        assert client.get("/version").json() == {"version": "v1"}


@pytest.mark.integration
class TestGatewayService:
    """Test the serviceA gateway application."""

    def test_health(self):
        client = TestClient(gateway_service.create_app("http://backend/version"))
        response = client.get("/health")

        assert response.status_code == 200
        assert response.content == b""

    def test_relays_backend_response(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"version": "v2"})

        app = gateway_service.create_app(
            "http://serviceb.appmesh.local:3000/version", transport=httpx.MockTransport(handler)
        )
        response = TestClient(app).get("/serviceb")

        assert response.status_code == 200
        assert response.json() == {"serviceB": {"version": "v2"}}
        assert seen == ["http://serviceb.appmesh.local:3000/version"]

    def test_connection_error_reported_in_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        app = gateway_service.create_app(
            "http://backend/version", transport=httpx.MockTransport(handler)
        )
        response = TestClient(app).get("/serviceb")

        assert response.status_code == 200
        error = json.loads(response.json()["error"])
        assert error == {"name": "ConnectError", "message": "connection refused"}

    def test_backend_error_status_reported_in_body(self):
        app = gateway_service.create_app(
            "http://backend/version",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        response = TestClient(app).get("/serviceb")

        assert response.status_code == 200
        error = json.loads(response.json()["error"])
        assert error["name"] == "HTTPStatusError"
        assert "503" in error["message"]

    def test_backend_url_from_environment(self, monkeypatch):
        monkeypatch.setenv("SERVICE_B_URL", "http://other:3000/version")
        assert gateway_service.create_app().state.backend_url == "http://other:3000/version"

    def test_default_backend_url(self):
        app = gateway_service.create_app()
        assert app.state.backend_url == gateway_service.DEFAULT_BACKEND_URL

    def test_describe_failure(self):
        assert json.loads(gateway_service.describe_failure(ValueError("bad"))) == {
            "name": "ValueError",
            "message": "bad",
        }
