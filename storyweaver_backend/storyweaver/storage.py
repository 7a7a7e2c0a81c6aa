"""
Story persistence.

The pipeline only needs get/update/create-scene; the HTTP surface also creates
and lists stories. Both stores apply writes through ``Story.apply_update`` and
``Story.with_scene`` so the status and reference invariants hold whichever
backend is in use. Vercel KV lets records survive across processes.
"""
import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx

from .errors import StoryNotFound
from .models import Scene, Story, StoryCreate
from .settings import KV_REST_API_TOKEN, KV_REST_API_URL

logger = logging.getLogger(__name__)


class StoryStore(ABC):
    def __init__(self):
        self._lock = asyncio.Lock()

    @abstractmethod
    async def _load(self, story_id: str) -> Optional[Story]: ...

    @abstractmethod
    async def _save(self, story: Story) -> None: ...

    @abstractmethod
    async def list_stories(self) -> List[Story]: ...

    async def create_story(self, data: StoryCreate) -> Story:
        story = Story(id=str(uuid.uuid4()), **data.model_dump())
        async with self._lock:
            await self._save(story)
        logger.info(f"Created story {story.id}")
        return story

    async def get_story(self, story_id: str) -> Story:
        story = await self._load(story_id)
        if story is None:
            raise StoryNotFound(story_id)
        return story

    async def update_story(self, story_id: str, **fields) -> Story:
        async with self._lock:
            story = (await self.get_story(story_id)).apply_update(**fields)
            await self._save(story)
        if "status" in fields:
            logger.info(f"Story {story_id} -> {story.status.value}")
        return story

    async def create_scene(self, story_id: str, number: int, description: str, image_url: Optional[str]) -> Scene:
        async with self._lock:
            story = (await self.get_story(story_id)).with_scene(number, description, image_url)
            await self._save(story)
        return story.scenes[-1]


class InMemoryStoryStore(StoryStore):
    def __init__(self):
        super().__init__()
        self._stories: Dict[str, Story] = {}

    async def _load(self, story_id: str) -> Optional[Story]:
        return self._stories.get(story_id)

    async def _save(self, story: Story) -> None:
        self._stories[story.id] = story

    async def list_stories(self) -> List[Story]:
        return sorted(self._stories.values(), key=lambda s: s.created_at, reverse=True)


class KVStoryStore(StoryStore):
    """Stories as JSON under ``story:<id>`` in Vercel KV, with an id index under ``stories``."""

    INDEX_KEY = "stories"

    def __init__(self, url: str = KV_REST_API_URL, token: str = KV_REST_API_TOKEN, timeout: float = 10,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__()
        if not url or not token:
            raise RuntimeError("KV_REST_API_URL and KV_REST_API_TOKEN must both be set")
        self.url = url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json"
        }

    async def _command(self, *args) -> Optional[str]:
        op, rest = args[0], list(args[1:])
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(f"{self.url}/{op}", headers=self._headers(), json=rest)
            response.raise_for_status()
            return response.json().get("result")

    async def _load(self, story_id: str) -> Optional[Story]:
        raw = await self._command("get", f"story:{story_id}")
        if not raw:
            return None
        return Story.model_validate_json(raw)

    async def _save(self, story: Story) -> None:
        await self._command("set", f"story:{story.id}", story.model_dump_json())
        ids = await self._ids()
        if story.id not in ids:
            await self._command("set", self.INDEX_KEY, json.dumps(ids + [story.id]))

    async def _ids(self) -> List[str]:
        raw = await self._command("get", self.INDEX_KEY)
        return json.loads(raw) if raw else []

    async def list_stories(self) -> List[Story]:
        stories = []
        for story_id in await self._ids():
            story = await self._load(story_id)
            if story is not None:
                stories.append(story)
        return sorted(stories, key=lambda s: s.created_at, reverse=True)


def default_store() -> StoryStore:
    if KV_REST_API_URL and KV_REST_API_TOKEN:
        logger.info("KV storage enabled")
        return KVStoryStore()
    logger.warning("KV storage not configured - falling back to in-memory storage")
    return InMemoryStoryStore()
