"""Tests for the request context middleware.

Verifies that every response gets:
- An X-Request-ID header (generated or echoed from the request)
- Request timing logged
"""

from __future__ import annotations

import logging
import uuid

from fastapi.testclient import TestClient

from portal.middleware.request_context import install_request_id_filter, request_id_var


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    """When no X-Request-ID header is sent, one is generated."""
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    # Should be a valid UUID
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    """When the client sends X-Request-ID, the same value is echoed back."""
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    """Even error responses (401, 404) get an X-Request-ID header."""
    resp = client.get("/v1/modules")  # no token: 401
    assert resp.headers.get("x-request-id") is not None


def test_request_id_reaches_records_from_service_loggers() -> None:
    """A failure logged deep in a service carries the request's ID."""
    records: list[logging.LogRecord] = []

    class _Capture(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            records.append(record)

    root = logging.getLogger()
    handler = _Capture()
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    token = request_id_var.set("req-42")
    try:
        install_request_id_filter()
        logging.getLogger("portal.services.persistence").warning("store write failed")
    finally:
        request_id_var.reset(token)
        root.removeHandler(handler)
        root.setLevel(previous_level)

    assert records[-1].request_id == "req-42"  # type: ignore[attr-defined]
