from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

import wava.replicate.upstream as upstream
from wava.core.config import get_settings
from wava.main import create_app


@pytest.fixture()
def client() -> TestClient:
    return TestClient(create_app())


@pytest.fixture()
def server_token(monkeypatch) -> str:
    monkeypatch.setenv("REPLICATE_API_TOKEN", "r8_test_token")
    get_settings.cache_clear()
    return "r8_test_token"


@pytest.fixture()
def patch_upstream(monkeypatch):
    captured: dict = {"create": [], "get": []}
    responses: dict = {
        "create": (201, {"id": "p1", "status": "starting"}),
        "get": (200, {"id": "p1", "status": "succeeded", "output": ["https://img.test/1.png"]}),
    }

    async def fake_create_prediction(token, version, input_data):
        captured["create"].append((token, version, input_data))
        return responses["create"]

    async def fake_get_prediction(token, prediction_id):
        captured["get"].append((token, prediction_id))
        return responses["get"]

    monkeypatch.setattr(upstream, "create_prediction", fake_create_prediction)
    monkeypatch.setattr(upstream, "get_prediction", fake_get_prediction)

    captured["responses"] = responses
    return captured


def test_preflight_returns_cors_headers(client: TestClient):
    response = client.options("/api/replicate")

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]


def test_missing_token_is_server_error(client: TestClient, patch_upstream):
    response = client.post("/api/replicate", json={"version": "v1", "input": {}})

    assert response.status_code == 500
    assert response.json() == {"error": "Server Error: REPLICATE_API_TOKEN is not configured."}
    assert response.headers["access-control-allow-origin"] == "*"
    assert patch_upstream["create"] == []


def test_create_forwards_version_and_input(client: TestClient, server_token, patch_upstream):
    response = client.post("/api/replicate", json={"version": "v1", "input": {"prompt": "mug"}})

    assert response.status_code == 201
    assert response.json() == {"id": "p1", "status": "starting"}
    assert patch_upstream["create"] == [(server_token, "v1", {"prompt": "mug"})]


def test_create_upstream_failure_maps_to_500(client: TestClient, server_token, patch_upstream):
    patch_upstream["responses"]["create"] = (422, {"detail": "Invalid version or not permitted"})

    response = client.post("/api/replicate", json={"version": "bad", "input": {}})

    assert response.status_code == 500
    assert response.json() == {"error": "Invalid version or not permitted"}


def test_create_without_version_is_rejected(client: TestClient, server_token, patch_upstream):
    response = client.post("/api/replicate", json={"input": {}})

    assert response.status_code == 400
    assert "error" in response.json()
    assert patch_upstream["create"] == []


def test_status_check_returns_job(client: TestClient, server_token, patch_upstream):
    response = client.get("/api/replicate", params={"id": "p1"})

    assert response.status_code == 200
    assert response.json()["status"] == "succeeded"
    assert patch_upstream["get"] == [(server_token, "p1")]


@pytest.mark.parametrize("query", ["", "?id=", "?id=a&id=b"])
def test_status_check_requires_single_id(client: TestClient, server_token, patch_upstream, query):
    response = client.get(f"/api/replicate{query}")

    assert response.status_code == 400
    assert response.json() == {"error": "Missing or invalid prediction ID"}
    assert patch_upstream["get"] == []


def test_status_check_upstream_failure_maps_to_500(client: TestClient, server_token, patch_upstream):
    patch_upstream["responses"]["get"] = (404, {"detail": "Not found."})

    response = client.get("/api/replicate", params={"id": "missing"})

    assert response.status_code == 500
    assert response.json() == {"error": "Not found."}


def test_transport_failure_maps_to_500(client: TestClient, server_token, monkeypatch):
    async def failing_get_prediction(token, prediction_id):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(upstream, "get_prediction", failing_get_prediction)

    response = client.get("/api/replicate", params={"id": "p1"})

    assert response.status_code == 500
    assert response.json() == {"error": "connection refused"}


@pytest.mark.parametrize("method", ["PUT", "PATCH", "DELETE", "TRACE"])
def test_other_methods_are_not_allowed(client: TestClient, server_token, method):
    response = client.request(method, "/api/replicate")

    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}
    assert response.headers["access-control-allow-origin"] == "*"


def test_head_is_not_allowed_and_keeps_cors(client: TestClient, server_token):
    response = client.head("/api/replicate")

    assert response.status_code == 405
    assert response.headers["access-control-allow-origin"] == "*"
