import asyncio
import logging
from typing import Optional

import httpx

from .models import Story, StoryStatus
from .settings import POLL_INTERVAL_S

logger = logging.getLogger(__name__)


async def wait_for_story(
    base_url: str,
    story_id: str,
    interval: float = POLL_INTERVAL_S,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Story:
    """Re-read a story until it is completed or failed.

    Raises TimeoutError when ``timeout`` seconds pass first and lets HTTP
    errors (including 404 for unknown stories) propagate.
    """
    loop = asyncio.get_running_loop()
    deadline = None if timeout is None else loop.time() + timeout
    last_status = None

    async with httpx.AsyncClient(base_url=base_url, transport=transport, timeout=30) as client:
        while True:
            resp = await client.get(f"/api/stories/{story_id}")
            resp.raise_for_status()
            story = Story.model_validate(resp.json())

            if story.status != last_status:
                logger.info(f"Story {story_id}: {story.status.value}")
                last_status = story.status
            if story.status.terminal:
                return story

            if deadline is not None and loop.time() + interval > deadline:
                raise TimeoutError(f"story {story_id} still {story.status.value} after {timeout}s")
            await asyncio.sleep(interval)
