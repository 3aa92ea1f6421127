"""Tests for request logging."""

import logging

import pytest
from fastapi.testclient import TestClient

from app.core.logging_middleware import summarize_error_body


class TestSummarizeErrorBody:
    def test_error_with_details(self) -> None:
        body = b'{"error": "Unable to generate checklist right now.", "details": "busy"}'
        assert summarize_error_body(body) == "Unable to generate checklist right now. (busy)"

    def test_error_only(self) -> None:
        assert summarize_error_body(b'{"error": "No active project."}') == "No active project."

    def test_non_json_body(self) -> None:
        assert summarize_error_body(b"Internal Server Error") == "Internal Server Error"


def test_failed_request_is_logged(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    """Error responses are logged with their error message and still returned."""
    with caplog.at_level(logging.WARNING, logger="tracker.requests"):
        response = client.get("/api/v1/projects/proj-404")
    assert response.status_code == 404
    assert response.json() == {"error": "Project proj-404 not found."}
    assert "GET /api/v1/projects/proj-404 → 404" in caplog.text
    assert "Project proj-404 not found." in caplog.text
