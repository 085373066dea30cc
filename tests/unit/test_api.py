"""Unit tests for the HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from autoquiz.api.deps import get_pipeline
from autoquiz.api.main import app
from autoquiz.extraction import ExtractionCoordinator
from autoquiz.pipeline import AutoCreatePipeline


@pytest.fixture
def pipeline_with(settings, memory_guard, make_generator, fake_extractor):
    """Install a scripted pipeline as the route dependency."""
    installed = {}

    def _install(providers, texts=None):
        pipeline = AutoCreatePipeline(
            coordinator=ExtractionCoordinator(settings=settings, document=fake_extractor(texts or {})),
            generator=make_generator(providers),
            guard=memory_guard,
            settings=settings,
        )
        app.dependency_overrides[get_pipeline] = lambda: pipeline
        installed["pipeline"] = pipeline
        return pipeline

    yield _install
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    # No context manager: the lifespan would build the real pipeline
    return TestClient(app)


FORM = {"numberOfQuestions": "5", "difficulty": "Easy", "language": "English"}


class TestProcessContent:
    """Tests for POST /api/auto-create/process-content."""

    def test_topic_request(self, client, pipeline_with, fake_provider, questions_json):
        pipeline_with([fake_provider("together", [questions_json(5)])])

        response = client.post("/api/auto-create/process-content", data={**FORM, "topicPrompt": "Volcanoes"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert len(body["data"]["questions"]) == 5
        assert body["data"]["metadata"]["remainingUsage"] == 2

    def test_file_upload(self, client, pipeline_with, fake_provider, questions_json):
        pipeline = pipeline_with(
            [fake_provider("together", [questions_json(5)])],
            texts={"notes.txt": "Notes about volcanoes and magma chambers."},
        )

        response = client.post(
            "/api/auto-create/process-content",
            data=FORM,
            files=[("files", ("notes.txt", b"raw bytes", "text/plain"))],
        )

        assert response.status_code == 200
        assert response.json()["data"]["metadata"]["contentType"] == "document"
        assert pipeline.coordinator.document.calls == ["notes.txt"]

    def test_missing_sources_is_400(self, client, pipeline_with, fake_provider):
        pipeline_with([fake_provider("together", [])])

        response = client.post("/api/auto-create/process-content", data=FORM)

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["errorKind"] == "input"

    def test_extraction_failure_is_422(self, client, pipeline_with, fake_provider):
        pipeline_with([fake_provider("together", [])])

        response = client.post(
            "/api/auto-create/process-content",
            data=FORM,
            files=[("files", ("empty.txt", b"unreadable", "text/plain"))],
        )

        assert response.status_code == 422
        assert response.json()["errorKind"] == "extraction"

    def test_generation_failure_is_502(self, client, pipeline_with, fake_provider):
        pipeline_with([fake_provider("together", ["nonsense", "more nonsense"])])

        response = client.post("/api/auto-create/process-content", data={**FORM, "topicPrompt": "Volcanoes"})

        assert response.status_code == 502
        assert response.json()["errorKind"] == "generation"

    def test_quota_is_429(self, client, pipeline_with, fake_provider, memory_guard):
        pipeline_with([fake_provider("together", [])])
        for _ in range(3):
            memory_guard.check_and_increment("testclient")

        response = client.post("/api/auto-create/process-content", data={**FORM, "topicPrompt": "Volcanoes"})

        assert response.status_code == 429
        assert response.json()["errorKind"] == "quota"

    def test_forwarded_for_identity(self, client, pipeline_with, fake_provider, questions_json, memory_guard):
        pipeline_with([fake_provider("together", [questions_json(5)])])

        client.post(
            "/api/auto-create/process-content",
            data={**FORM, "topicPrompt": "Volcanoes"},
            headers={"X-Forwarded-For": "198.51.100.4, 10.0.0.1"},
        )

        assert memory_guard.status("198.51.100.4").current_usage == 1
        assert memory_guard.status("testclient").current_usage == 0


class TestStatusRoutes:
    """Tests for the quota and health routes."""

    def test_usage_status(self, client, pipeline_with, fake_provider, memory_guard):
        pipeline_with([fake_provider("together", [])])
        memory_guard.check_and_increment("testclient")

        body = client.get("/api/auto-create/usage-status").json()

        assert body["success"] is True
        assert body["data"]["currentUsage"] == 1
        assert body["data"]["remaining"] == 2
        assert body["data"]["resetAt"].startswith("2026-03-15T00:00:00")

    def test_usage_stats(self, client, pipeline_with, fake_provider, memory_guard):
        pipeline_with([fake_provider("together", [])])
        memory_guard.check_and_increment("testclient")

        data = client.get("/api/auto-create/usage-stats").json()["data"]

        assert data["today"] == 1
        assert data["thisWeek"] == 1
        assert data["dailyLimit"] == 3

    def test_ai_health(self, client, pipeline_with, fake_provider):
        pipeline_with([fake_provider("together", [], configured=False), fake_provider("gemini", [])])

        data = client.get("/api/auto-create/ai-health").json()["data"]

        assert data["available"] is True
        assert [p["name"] for p in data["providers"]] == ["together", "gemini"]
        assert data["providers"][0]["configured"] is False

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
