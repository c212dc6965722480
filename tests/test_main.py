"""Tests for the HTTP API."""

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from mcq_service.api import get_service
from mcq_service.cache import ResultCache
from mcq_service.config import settings
from mcq_service.fallback import ModelFallbackEngine
from mcq_service.main import create_application
from mcq_service.models import CHUNK_DELIMITER
from mcq_service.scheduler import MCQService
from tests.conftest import FakeProvider, RecordingSleep, make_mcq_dict, make_mcq_json


def parse_stream(text: str):
    """Split a streamed body into decoded chunks."""
    return [json.loads(part) for part in text.split(CHUNK_DELIMITER) if part.strip()]


@pytest.fixture
def provider():
    return FakeProvider(default=make_mcq_json(2))


@pytest.fixture
def app(provider):
    application = create_application()
    sleep = RecordingSleep()
    engine = ModelFallbackEngine(provider=provider, models=["model-1"], sleep=sleep)
    service = MCQService(engine=engine, cache=ResultCache(max_size=10), sleep=sleep)
    application.state.service = service
    application.dependency_overrides[get_service] = lambda: service
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


class TestGenerateEndpoint:
    """Tests for POST /api/generate-mcq."""

    def test_streams_batches(self, client):
        response = client.post(
            "/api/generate-mcq",
            json={"studyMaterial": "Enzymes speed up reactions.", "easyCount": 2, "hardCount": 1},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text.endswith(CHUNK_DELIMITER)
        chunks = parse_stream(response.text)
        assert chunks[-1] == {"completed": True}
        assert [c["current"] for c in chunks[:-1]] == [2, 4]
        assert all(c["total"] == 3 for c in chunks[:-1])
        assert chunks[0]["mcqs"][0]["correctAnswer"] == "B"

    def test_multipart_with_file(self, client, provider):
        response = client.post(
            "/api/generate-mcq",
            data={"easyCount": "1", "includeExplanation": "true"},
            files={"file": ("notes.pdf", b"%PDF-1.4 notes", "application/pdf")},
        )

        assert response.status_code == 200
        assert parse_stream(response.text)[-1] == {"completed": True}
        parts = provider.calls[0]["parts"]
        assert parts[1].mime_type == "application/pdf"
        assert parts[1].filename == "notes.pdf"

    def test_validation_error(self, client):
        response = client.post("/api/generate-mcq", json={"studyMaterial": "", "easyCount": 1})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Study Material: Text input cannot be empty",
        }

    def test_invalid_count(self, client):
        response = client.post(
            "/api/generate-mcq", json={"studyMaterial": "text", "easyCount": "lots"}
        )

        assert response.status_code == 400
        assert "MCQ count must be between 0 and 1000" in response.json()["error"]

    def test_malformed_json_body(self, client):
        response = client.post(
            "/api/generate-mcq",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_unsupported_file_type(self, client, provider):
        response = client.post(
            "/api/generate-mcq",
            data={"easyCount": "1"},
            files={"file": ("archive.zip", b"PK\x03\x04", "application/zip")},
        )

        assert response.status_code == 415
        assert "application/zip" in response.json()["error"]
        assert provider.calls == []

    def test_upload_too_large(self, client, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 8)
        response = client.post(
            "/api/generate-mcq",
            data={"easyCount": "1"},
            files={"file": ("notes.txt", b"0123456789", "text/plain")},
        )

        assert response.status_code == 413

    def test_failed_batch_reported_in_stream(self, provider, client):
        provider.script = {"model-1": [Exception("API key not valid")]}

        response = client.post(
            "/api/generate-mcq", json={"studyMaterial": "text", "easyCount": 3}
        )

        assert response.status_code == 200
        chunks = parse_stream(response.text)
        assert "error" in chunks[0]
        assert chunks[-1] == {"completed": True}

    def test_request_id_header(self, client):
        response = client.post(
            "/api/generate-mcq",
            json={"studyMaterial": "text", "easyCount": 1},
            headers={"X-Request-ID": "req-123"},
        )
        assert response.headers["X-Request-ID"] == "req-123"

    def test_completion_logged_after_stream(self, client):
        with patch("mcq_service.middleware.logger") as mock_logger:
            response = client.post(
                "/api/generate-mcq", json={"studyMaterial": "text", "easyCount": 3}
            )

        completed = [
            c for c in mock_logger.info.call_args_list if c.args[0] == "Request completed"
        ]
        assert len(completed) == 1
        fields = completed[0].kwargs["extra"]
        assert fields["status_code"] == 200
        assert fields["path"] == "/api/generate-mcq"
        assert fields["bytes_sent"] == len(response.content)
        assert fields["duration_ms"] >= 0

    def test_client_error_logged_as_warning(self, client):
        with patch("mcq_service.middleware.logger") as mock_logger:
            client.post("/api/solve-mcq", json={"mcqText": ""})

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.kwargs["extra"]["status_code"] == 400


class TestSolveEndpoint:
    """Tests for POST /api/solve-mcq."""

    def test_streams_single_chunk(self, client, provider):
        provider.default = make_mcq_json(3)

        response = client.post(
            "/api/solve-mcq", json={"mcqText": "1. Q? A) a B) b C) c D) d"}
        )

        assert response.status_code == 200
        chunks = parse_stream(response.text)
        assert len(chunks) == 2
        assert chunks[0]["total"] == 3
        assert chunks[0]["current"] == 3
        assert chunks[1] == {"completed": True}

    def test_failure_before_stream_is_json_error(self, client, provider):
        """Test that a solving failure is reported as a single JSON error."""
        provider.default = "[]"

        response = client.post("/api/solve-mcq", json={"mcqText": "1. Q?"})

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "No valid MCQs could be extracted from the AI response",
        }

    def test_all_models_failed(self, client, provider):
        provider.default = Exception("API key not valid")

        response = client.post("/api/solve-mcq", json={"mcqText": "1. Q?"})

        assert response.status_code == 500
        assert response.json()["error"].startswith("All models failed")

    def test_validation_error(self, client):
        response = client.post("/api/solve-mcq", json={"mcqText": ""})
        assert response.status_code == 400
        assert response.json()["error"] == "MCQ Text: Text input cannot be empty"


class TestDownloadPdfEndpoint:
    """Tests for POST /api/download-pdf."""

    def test_returns_pdf(self, client):
        response = client.post(
            "/api/download-pdf",
            json={
                "mcqs": [make_mcq_dict(1), make_mcq_dict(2)],
                "includeExplanation": True,
                "difficulty": "Easy",
            },
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"].startswith('attachment; filename="MCQs_')
        assert response.content.startswith(b"%PDF")

    def test_empty_mcqs(self, client):
        response = client.post("/api/download-pdf", json={"mcqs": []})
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid MCQ data"}

    def test_missing_mcqs(self, client):
        response = client.post("/api/download-pdf", json={})
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_no_object_records(self, client):
        response = client.post("/api/download-pdf", json={"mcqs": ["text", 3]})
        assert response.status_code == 400
        assert response.json()["error"] == "No valid data provided for PDF generation."


class TestHealthEndpoint:
    """Tests for GET /api/health."""

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Server is running"
        assert "timestamp" in data
        assert data["cache"]["policy"] == "fifo"
        assert data["fallback"]["total_calls"] == 0

    def test_health_reports_activity(self, client):
        client.post("/api/generate-mcq", json={"studyMaterial": "text", "easyCount": 1})

        data = client.get("/api/health").json()

        assert data["fallback"]["successful_calls"] == 1
        assert data["cache"]["size"] == 1


class TestErrorHandling:
    """Tests for application-level error handlers."""

    def test_unexpected_error_has_error_id(self, app):
        def broken_service():
            raise RuntimeError("boom")

        app.dependency_overrides[get_service] = broken_service
        client = TestClient(app, raise_server_exceptions=False)

        response = client.post("/api/solve-mcq", json={"mcqText": "1. Q?"})

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Internal server error"
        assert "error_id" in data

    def test_unknown_route(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.json()["success"] is False
