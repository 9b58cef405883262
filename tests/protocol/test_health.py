from __future__ import annotations

from fastapi.testclient import TestClient

from src.protocol.http.app import create_app


def test_healthz_reports_ok_with_fresh_request_ids() -> None:
    client = TestClient(create_app())
    first = client.get("/healthz")
    second = client.get("/healthz")
    assert first.status_code == 200
    assert first.json() == {"status": "ok"}
    assert first.headers["x-request-id"] != second.headers["x-request-id"]


def test_unknown_route_uses_the_error_envelope() -> None:
    r = TestClient(create_app()).get("/api/nowhere")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"
