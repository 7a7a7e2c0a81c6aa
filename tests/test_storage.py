"""Tests for story persistence and the Story write invariants."""

import asyncio
import json

import httpx
import pytest

from storyweaver.errors import InvalidTransition, StoryNotFound
from storyweaver.models import StoryStatus
from storyweaver.storage import KVStoryStore

FORWARD = [
    StoryStatus.SUMMARIZING,
    StoryStatus.GENERATING_AUDIO,
    StoryStatus.GENERATING_IMAGES,
    StoryStatus.CREATING_VIDEO,
    StoryStatus.COMPLETED,
]


def _advance(store, story_id, until):
    async def go():
        for status in FORWARD[: FORWARD.index(until) + 1]:
            await store.update_story(story_id, status=status)
    asyncio.run(go())


class TestInMemoryStore:

    def test_create_and_get(self, store, story_input):
        story = asyncio.run(store.create_story(story_input))
        assert story.status == StoryStatus.PENDING
        assert story.scenes == []
        assert asyncio.run(store.get_story(story.id)) == story

    def test_unknown_story(self, store):
        with pytest.raises(StoryNotFound) as exc:
            asyncio.run(store.get_story("missing"))
        assert "missing" in str(exc.value)

    def test_list_newest_first(self, store, story_input):
        first = asyncio.run(store.create_story(story_input))
        second = asyncio.run(store.create_story(story_input))
        assert [s.id for s in asyncio.run(store.list_stories())] == [second.id, first.id]

    def test_status_moves_one_stage_at_a_time(self, store, story_input):
        story = asyncio.run(store.create_story(story_input))
        with pytest.raises(InvalidTransition):
            asyncio.run(store.update_story(story.id, status=StoryStatus.GENERATING_AUDIO))
        _advance(store, story.id, StoryStatus.COMPLETED)
        assert asyncio.run(store.get_story(story.id)).status == StoryStatus.COMPLETED

    def test_status_never_moves_backwards(self, store, story_input):
        story = asyncio.run(store.create_story(story_input))
        _advance(store, story.id, StoryStatus.GENERATING_IMAGES)
        with pytest.raises(InvalidTransition):
            asyncio.run(store.update_story(story.id, status=StoryStatus.SUMMARIZING))

    def test_failed_from_any_running_stage(self, store, story_input):
        story = asyncio.run(store.create_story(story_input))
        _advance(store, story.id, StoryStatus.GENERATING_AUDIO)
        failed = asyncio.run(store.update_story(story.id, status=StoryStatus.FAILED, failure_reason="boom"))
        assert failed.status == StoryStatus.FAILED
        assert failed.failure_reason == "boom"

    def test_terminal_stories_are_frozen(self, store, story_input):
        story = asyncio.run(store.create_story(story_input))
        _advance(store, story.id, StoryStatus.COMPLETED)
        with pytest.raises(InvalidTransition):
            asyncio.run(store.update_story(story.id, status=StoryStatus.FAILED))
        with pytest.raises(InvalidTransition):
            asyncio.run(store.update_story(story.id, summary="late"))

    def test_references_are_write_once(self, store, story_input):
        story = asyncio.run(store.create_story(story_input))
        asyncio.run(store.update_story(story.id, summary="first"))
        asyncio.run(store.update_story(story.id, summary="first"))
        with pytest.raises(InvalidTransition):
            asyncio.run(store.update_story(story.id, summary="second"))
        with pytest.raises(InvalidTransition):
            asyncio.run(store.update_story(story.id, summary=None))

    def test_unknown_fields_are_rejected(self, store, story_input):
        story = asyncio.run(store.create_story(story_input))
        with pytest.raises(InvalidTransition):
            asyncio.run(store.update_story(story.id, title="renamed"))

    def test_scenes_only_while_generating_images(self, store, story_input):
        story = asyncio.run(store.create_story(story_input))
        with pytest.raises(InvalidTransition):
            asyncio.run(store.create_scene(story.id, 1, "too early", None))
        _advance(store, story.id, StoryStatus.GENERATING_IMAGES)
        scene = asyncio.run(store.create_scene(story.id, 1, "a crow", "/generated/scene_1.png"))
        assert scene.story_id == story.id
        assert scene.number == 1

    def test_scene_numbers_are_dense(self, store, story_input):
        story = asyncio.run(store.create_story(story_input))
        _advance(store, story.id, StoryStatus.GENERATING_IMAGES)
        with pytest.raises(InvalidTransition):
            asyncio.run(store.create_scene(story.id, 2, "skipped one", None))
        asyncio.run(store.create_scene(story.id, 1, "one", None))
        with pytest.raises(InvalidTransition):
            asyncio.run(store.create_scene(story.id, 1, "duplicate", None))
        assert [s.number for s in asyncio.run(store.get_story(story.id)).scenes] == [1]


# ---------------------------------------------------------------------------
# KVStoryStore against an in-process fake of the KV REST API
# ---------------------------------------------------------------------------

def _fake_kv():
    data = {}
    seen_auth = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_auth.append(request.headers.get("Authorization"))
        op = request.url.path.rsplit("/", 1)[1]
        args = json.loads(request.content)
        if op == "set":
            data[args[0]] = args[1]
            return httpx.Response(200, json={"result": "OK"})
        if op == "get":
            return httpx.Response(200, json={"result": data.get(args[0])})
        return httpx.Response(400, json={"error": f"unsupported {op}"})

    return httpx.MockTransport(handler), data, seen_auth


class TestKVStore:

    def test_round_trip_through_kv(self, story_input):
        transport, data, seen_auth = _fake_kv()
        store = KVStoryStore("https://kv.example.com/", "secret", transport=transport)

        story = asyncio.run(store.create_story(story_input))
        asyncio.run(store.update_story(story.id, status=StoryStatus.SUMMARIZING))

        assert f"story:{story.id}" in data
        assert json.loads(data["stories"]) == [story.id]
        loaded = asyncio.run(store.get_story(story.id))
        assert loaded.status == StoryStatus.SUMMARIZING
        assert loaded.title == story_input.title
        assert set(seen_auth) == {"Bearer secret"}

    def test_kv_enforces_invariants(self, story_input):
        transport, _, _ = _fake_kv()
        store = KVStoryStore("https://kv.example.com", "secret", transport=transport)
        story = asyncio.run(store.create_story(story_input))
        with pytest.raises(InvalidTransition):
            asyncio.run(store.update_story(story.id, status=StoryStatus.COMPLETED))

    def test_kv_lists_and_misses(self, story_input):
        transport, _, _ = _fake_kv()
        store = KVStoryStore("https://kv.example.com", "secret", transport=transport)
        asyncio.run(store.create_story(story_input))
        asyncio.run(store.create_story(story_input))
        assert len(asyncio.run(store.list_stories())) == 2
        with pytest.raises(StoryNotFound):
            asyncio.run(store.get_story("nope"))

    def test_kv_requires_credentials(self):
        with pytest.raises(RuntimeError):
            KVStoryStore("", "")
