"""Tests for the checklist generation endpoint."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from tracker.openrouter.client import ChecklistGenerationError

PLAN = "Evaluate a retrieval-augmented QA system on legal documents."


def _model(reply: str = "", error: Exception | None = None) -> MagicMock:
    model = MagicMock()
    model.model = "stub/model"
    model.complete = AsyncMock(return_value=reply, side_effect=error)
    return model


# ---------------------------------------------------------------------------
# POST /api/v1/checklist
# ---------------------------------------------------------------------------


@patch("app.api.v1.checklist.make_model_client")
def test_checklist_returns_parsed_items(mock_make: MagicMock, client: TestClient) -> None:
    """A JSON completion is returned as a parsed item list."""
    mock_make.return_value = _model(
        '{"items": [{"category": "Data", "text": "Log dataset version"}]}'
    )

    response = client.post(
        "/api/v1/checklist", json={"researchPlan": PLAN, "projectStage": "pilot"}
    )
    assert response.status_code == 200

    data = response.json()
    assert data["checklist"] == [{"category": "Data", "text": "Log dataset version"}]
    assert data["model"] == "stub/model"
    assert data["projectStage"] == "pilot"
    assert "generatedAt" in data
    assert data["raw"].startswith('{"items"')


@patch("app.api.v1.checklist.make_model_client")
def test_checklist_passes_text_through(mock_make: MagicMock, client: TestClient) -> None:
    """Non-JSON output is returned as text for the client to normalize."""
    mock_make.return_value = _model("- Model: Pin version")
    data = client.post("/api/v1/checklist", json={"researchPlan": PLAN}).json()
    assert data["checklist"] == "- Model: Pin version"
    assert data["projectStage"] == "unspecified"


@patch("app.api.v1.checklist.make_model_client")
def test_checklist_short_plan(mock_make: MagicMock, client: TestClient) -> None:
    """Plans under 25 characters are rejected before any model call."""
    response = client.post("/api/v1/checklist", json={"researchPlan": "x" * 24})
    assert response.status_code == 400
    assert response.json() == {
        "error": "Please provide a research plan with at least 25 characters."
    }
    mock_make.assert_not_called()


def test_checklist_missing_key(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "openrouter_api_key", None)
    response = client.post("/api/v1/checklist", json={"researchPlan": PLAN})
    assert response.status_code == 500
    assert response.json()["error"] == "Missing OPENROUTER_API_KEY. Set it in the environment."


@patch("app.api.v1.checklist.make_model_client")
def test_checklist_upstream_error(mock_make: MagicMock, client: TestClient) -> None:
    """Upstream failures keep their status and carry details."""
    mock_make.return_value = _model(
        error=ChecklistGenerationError(
            429, "Unable to generate checklist right now.", "Rate limited"
        )
    )
    response = client.post("/api/v1/checklist", json={"researchPlan": PLAN})
    assert response.status_code == 429
    assert response.json() == {
        "error": "Unable to generate checklist right now.",
        "details": "Rate limited",
    }


@patch("app.api.v1.checklist.make_model_client")
def test_checklist_empty_reply(mock_make: MagicMock, client: TestClient) -> None:
    mock_make.return_value = _model(
        error=ChecklistGenerationError(502, "LLM returned an empty response. Please retry.")
    )
    response = client.post("/api/v1/checklist", json={"researchPlan": PLAN})
    assert response.status_code == 502
    assert "details" not in response.json()


def test_checklist_invalid_config(client: TestClient) -> None:
    response = client.post(
        "/api/v1/checklist", json={"researchPlan": PLAN, "config": {"topP": 3}}
    )
    assert response.status_code == 422
    assert response.json()["error"] == "Invalid request."
