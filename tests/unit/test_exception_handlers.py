"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

from fastapi.testclient import TestClient

from bandnotify.core.exceptions import _sanitize_validation_errors
from bandnotify.main import app


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw request payloads."""
  errors = [{"type": "value_error", "loc": ("body", "token"), "msg": "Value error, token must not be blank.", "input": "   ", "ctx": {"error": ValueError("token must not be blank."), "input": "   "}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["loc"] == ["body", "token"]
  assert sanitized[0]["ctx"]["error"] == "ValueError: token must not be blank."
  assert "input" not in sanitized[0]["ctx"]


def test_responses_carry_request_id_header() -> None:
  client = TestClient(app)

  response = client.get("/health", headers={"x-request-id": "req-123"})

  assert response.status_code == 200
  assert response.headers["x-request-id"] == "req-123"


def test_client_errors_keep_detail_and_request_id() -> None:
  client = TestClient(app)

  response = client.get("/v1/notifications/unread-count")

  assert response.status_code == 401
  assert response.json()["detail"] == "Missing user identity."
  assert response.json()["requestId"]
