"""Tests for event ingestion and reporting endpoints."""

from __future__ import annotations

from uuid import uuid4

import pytest

from usage_analytics.models.app import ApiKey


def _collect(client, api_key, **body):
    payload = {"event": "login_click", "url": "https://docs.example.com/login"}
    payload.update(body)
    return client.post("/events", json=payload, headers={"x-api-key": api_key})


def test_collect_event(client, registered_app) -> None:
    response = _collect(client, registered_app["apiKey"], device="mobile", ipAddress="10.0.0.1")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Event collected successfully"}
    assert response.headers["X-RateLimit-Limit"] == "100"
    assert response.headers["X-RateLimit-Remaining"] == "99"


def test_collect_updates_last_used(client, registered_app, recorder, db_session) -> None:
    _collect(client, registered_app["apiKey"])
    recorder.drain(timeout=5)

    key = db_session.query(ApiKey).one()
    assert key.last_used_at is not None


def test_missing_api_key(client) -> None:
    response = client.post("/events", json={"event": "view", "url": "/"})
    assert response.status_code == 401
    assert response.json() == {"error": "Missing x-api-key header", "code": "MissingCredential"}


def test_unknown_api_key(client, registered_app) -> None:
    response = _collect(client, "ak_" + "f" * 32)
    assert response.status_code == 401
    assert response.json()["code"] == "InvalidCredential"


@pytest.mark.parametrize("body", [{"event": "view"}, {"url": "/"}, {"event": "", "url": "/"}])
def test_event_and_url_are_required(client, registered_app, body) -> None:
    response = client.post("/events", json=body, headers={"x-api-key": registered_app["apiKey"]})
    assert response.status_code == 400
    assert response.json() == {"error": "Event name and URL are required", "code": "InvalidPayload"}


def test_empty_body_with_valid_key_is_a_bad_request(client, registered_app) -> None:
    response = client.post("/events", headers={"x-api-key": registered_app["apiKey"]})
    assert response.status_code == 400
    assert response.json()["code"] == "InvalidPayload"


def test_hundred_and_first_request_is_rate_limited(client, registered_app, clock) -> None:
    api_key = registered_app["apiKey"]
    for _ in range(100):
        assert _collect(client, api_key).status_code == 200

    response = _collect(client, api_key)
    assert response.status_code == 429
    assert response.json()["code"] == "RateLimited"
    assert response.headers["Retry-After"] == "60"
    assert response.headers["X-RateLimit-Remaining"] == "0"

    clock.advance(61)
    assert _collect(client, api_key).status_code == 200


def test_summary(client, auth_headers, registered_app) -> None:
    api_key = registered_app["apiKey"]
    _collect(client, api_key, ipAddress="10.0.0.1", device="mobile")
    _collect(client, api_key, ipAddress="10.0.0.1", device="desktop")
    _collect(client, api_key, ipAddress="10.0.0.2", device="mobile")

    response = client.get("/events/summary", params={"event": "login_click"}, headers=auth_headers())

    assert response.status_code == 200
    assert response.json() == {
        "event": "login_click",
        "count": 3,
        "uniqueUsers": 2,
        "deviceData": {"mobile": 2, "desktop": 1},
    }


def test_summary_with_date_range_and_app_filter(client, auth_headers, registered_app) -> None:
    api_key = registered_app["apiKey"]
    _collect(client, api_key, timestamp="2025-01-10T00:00:00Z")
    _collect(client, api_key, timestamp="2025-02-10T00:00:00Z")
    _collect(client, api_key, timestamp="2025-03-10T00:00:00Z")

    response = client.get(
        "/events/summary",
        params={
            "event": "login_click",
            "startDate": "2025-02-01T00:00:00Z",
            "endDate": "2025-03-31T00:00:00Z",
            "app": registered_app["app"]["id"],
        },
        headers=auth_headers(),
    )
    assert response.json()["count"] == 2


def test_summary_rejects_bad_input(client, auth_headers, registered_app) -> None:
    missing = client.get("/events/summary", headers=auth_headers())
    assert missing.status_code == 400
    assert missing.json()["code"] == "InvalidInput"

    bad_date = client.get(
        "/events/summary", params={"event": "view", "startDate": "yesterday"}, headers=auth_headers()
    )
    assert bad_date.status_code == 400

    out_of_range = client.get(
        "/events/summary",
        params={"event": "view", "startDate": "0001-01-01T00:00:00+01:00"},
        headers=auth_headers(),
    )
    assert out_of_range.status_code == 400
    assert out_of_range.json() == {"error": "Invalid startDate", "code": "InvalidInput"}


def test_collect_with_out_of_range_timestamp_is_stored(client, auth_headers, registered_app) -> None:
    response = _collect(client, registered_app["apiKey"], timestamp="0001-01-01T00:00:00+01:00")
    assert response.status_code == 200

    summary = client.get("/events/summary", params={"event": "login_click"}, headers=auth_headers())
    assert summary.json()["count"] == 1


def test_summary_for_foreign_app_is_not_found(client, auth_headers, registered_app) -> None:
    response = client.get(
        "/events/summary",
        params={"event": "login_click", "app": registered_app["app"]["id"]},
        headers=auth_headers("owner-2"),
    )
    assert response.status_code == 404
    assert response.json() == {"error": "App not found or unauthorized", "code": "NotFound"}

    unknown = client.get(
        "/events/summary", params={"event": "login_click", "app": str(uuid4())}, headers=auth_headers()
    )
    assert unknown.status_code == 404


def test_summary_requires_caller_identity(client) -> None:
    response = client.get("/events/summary", params={"event": "login_click"})
    assert response.status_code == 401


def test_by_ip(client, auth_headers, registered_app) -> None:
    _collect(
        client,
        registered_app["apiKey"],
        ipAddress="10.0.0.7",
        device="desktop",
        timestamp="2025-02-01T10:00:00Z",
        metadata={"browser": "Chrome", "os": "Windows", "screenSize": "1920x1080"},
    )

    response = client.get("/events/by-ip", params={"ip": "10.0.0.7"}, headers=auth_headers())

    assert response.status_code == 200
    body = response.json()
    assert body["userId"] == "10.0.0.7"
    assert body["totalEvents"] == 1
    assert body["deviceDetails"] == {
        "browser": "Chrome",
        "os": "Windows",
        "screenSize": "1920x1080",
        "device": "desktop",
    }
    assert body["recentEvents"][0]["event"] == "login_click"
    assert body["recentEvents"][0]["timestamp"].startswith("2025-02-01T10:00:00")


def test_by_ip_requires_ip(client, auth_headers) -> None:
    response = client.get("/events/by-ip", headers=auth_headers())
    assert response.status_code == 400
