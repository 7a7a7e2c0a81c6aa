"""Tests for the HTTP surface."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from storyweaver.app import create_app
from storyweaver.errors import AlreadyProcessing
from storyweaver.models import StoryStatus


class FakeRunner:
    def __init__(self):
        self.running = set()
        self.submitted = []

    def is_running(self, story_id):
        return story_id in self.running

    def submit(self, story_id, input_language=None, narration_language=None):
        if story_id in self.running:
            raise AlreadyProcessing(story_id)
        self.running.add(story_id)
        self.submitted.append((story_id, input_language, narration_language))

    def cancel(self, story_id):
        return story_id in self.running

    async def shutdown(self):
        self.running.clear()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def client(store, runner, output_dir):
    return TestClient(create_app(store=store, runner=runner, output_dir=str(output_dir)))


def _create(client, **overrides):
    payload = {"title": "The Clever Crow", "original_text": "A thirsty crow found a pitcher.", **overrides}
    resp = client.post("/api/stories", json=payload)
    assert resp.status_code == 201
    return resp.json()


class TestStories:

    def test_health(self, client, monkeypatch):
        monkeypatch.setattr("storyweaver.app.ffmpeg_available", lambda: False)
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert body["has_keys"] is False
        assert body["services"]["openai"] is False
        assert body["ffmpeg"] is False

    def test_create_and_fetch(self, client):
        story = _create(client, input_language="hi", narration_language="en")
        assert story["status"] == "pending"
        assert story["input_language"] == "hi"

        resp = client.get(f"/api/stories/{story['id']}")
        assert resp.status_code == 200
        assert resp.json()["title"] == "The Clever Crow"

    def test_create_requires_text(self, client):
        resp = client.post("/api/stories", json={"title": "", "original_text": "x"})
        assert resp.status_code == 422

    def test_list(self, client):
        _create(client)
        _create(client, title="Anansi")
        titles = [s["title"] for s in client.get("/api/stories").json()]
        assert sorted(titles) == ["Anansi", "The Clever Crow"]

    def test_unknown_story_is_404(self, client):
        assert client.get("/api/stories/nope").status_code == 404
        assert client.post("/api/stories/nope/process").status_code == 404
        assert client.post("/api/stories/nope/cancel").status_code == 404

    def test_generated_files_are_served(self, client, output_dir):
        (output_dir / "scene_1_1.png").write_bytes(b"png")
        resp = client.get("/generated/scene_1_1.png")
        assert resp.status_code == 200
        assert resp.content == b"png"


class TestProcessing:

    def test_process_uses_request_languages(self, client, runner):
        story = _create(client)
        resp = client.post(f"/api/stories/{story['id']}/process",
                           json={"input_language": "es", "narration_language": "en"})
        assert resp.status_code == 202
        assert resp.json() == {"story_id": story["id"], "status": "processing"}
        assert runner.submitted == [(story["id"], "es", "en")]

    def test_process_without_body_uses_story_languages(self, client, runner):
        story = _create(client, input_language="fr", narration_language="de")
        assert client.post(f"/api/stories/{story['id']}/process").status_code == 202
        assert runner.submitted == [(story["id"], "fr", "de")]

    def test_double_start_is_409(self, client):
        story = _create(client)
        assert client.post(f"/api/stories/{story['id']}/process").status_code == 202
        assert client.post(f"/api/stories/{story['id']}/process").status_code == 409

    def test_non_pending_story_is_409(self, client, store, runner):
        story = _create(client)
        asyncio.run(store.update_story(story["id"], status=StoryStatus.FAILED, failure_reason="earlier"))
        assert client.post(f"/api/stories/{story['id']}/process").status_code == 409
        assert runner.submitted == []

    def test_cancel(self, client):
        story = _create(client)
        assert client.post(f"/api/stories/{story['id']}/cancel").status_code == 409
        client.post(f"/api/stories/{story['id']}/process")
        resp = client.post(f"/api/stories/{story['id']}/cancel")
        assert resp.status_code == 200
        assert resp.json()["cancelled"] is True
