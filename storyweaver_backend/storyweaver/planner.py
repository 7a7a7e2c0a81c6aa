import logging
import re
from typing import List, Optional

from .adapters import SceneWriter
from .languages import language_name
from .models import Outcome
from .prompts import SCENE_TEMPLATES
from .settings import SCENE_COUNT

logger = logging.getLogger(__name__)

# "1.", "2)", "- ", "* ", "• " at the start of a line
_ENUMERATION = re.compile(r"^\s*(?:\d+\s*[.)]|[-*•])\s*")


def parse_scene_lines(content: str) -> List[str]:
    scenes = []
    for line in content.splitlines():
        if not line.strip():
            continue
        cleaned = _ENUMERATION.sub("", line, count=1).strip()
        if cleaned:
            scenes.append(cleaned)
    return scenes


def template_scenes(language: str) -> List[str]:
    return [t.format(language=language) for t in SCENE_TEMPLATES]


class ScenePlanner:
    def __init__(self, writer: Optional[SceneWriter] = None, count: int = SCENE_COUNT):
        self.writer = writer
        self.count = count

    async def plan(self, summary: str, input_language: str) -> Outcome[List[str]]:
        """Up to ``count`` scene descriptions, in story order."""
        name = language_name(input_language)
        if self.writer is None:
            return Outcome.fallback(template_scenes(name)[: self.count], "no scene planning service configured")

        try:
            content = await self.writer.decompose(summary, name, self.count)
        except Exception as e:
            logger.warning(f"Scene planning failed, using template scenes: {e!r}")
            return Outcome.fallback(template_scenes(name)[: self.count], f"scene planning failed: {e!r}")

        scenes = parse_scene_lines(content)[: self.count]
        if not scenes:
            logger.warning("Scene planner returned no usable lines, using template scenes")
            return Outcome.fallback(template_scenes(name)[: self.count], "scene planner returned no scenes")
        logger.info(f"Planned {len(scenes)} scenes")
        return Outcome.ok(scenes)
