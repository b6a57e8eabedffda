"""Tests validating API CORS configuration."""

from fastapi.testclient import TestClient

from usage_analytics.main import app


client = TestClient(app)


def test_preflight_allows_any_origin_with_api_key_header() -> None:
    response = client.options(
        "/events",
        headers={
            "Origin": "https://customer-site.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type, x-api-key",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "x-api-key" in response.headers["access-control-allow-headers"].lower()


def test_preflight_rejects_unlisted_header() -> None:
    response = client.options(
        "/events",
        headers={
            "Origin": "https://customer-site.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "x-something-else",
        },
    )

    assert response.status_code == 400
