from datetime import datetime, timezone
from enum import Enum
from typing import Generic, List, Optional, TypeVar
from pydantic import BaseModel, Field

from .errors import InvalidTransition

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StoryStatus(str, Enum):
    PENDING = "pending"
    SUMMARIZING = "summarizing"
    GENERATING_AUDIO = "generating_audio"
    GENERATING_IMAGES = "generating_images"
    CREATING_VIDEO = "creating_video"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (StoryStatus.COMPLETED, StoryStatus.FAILED)


STAGE_SEQUENCE = [
    StoryStatus.PENDING,
    StoryStatus.SUMMARIZING,
    StoryStatus.GENERATING_AUDIO,
    StoryStatus.GENERATING_IMAGES,
    StoryStatus.CREATING_VIDEO,
    StoryStatus.COMPLETED,
]


def can_transition(current: StoryStatus, new: StoryStatus) -> bool:
    """A story moves one stage forward at a time, or fails from any non-terminal stage."""
    if current.terminal:
        return False
    if new == StoryStatus.FAILED:
        return True
    return STAGE_SEQUENCE.index(new) == STAGE_SEQUENCE.index(current) + 1


class Scene(BaseModel):
    story_id: str
    number: int = Field(ge=1)
    description: str
    image_url: Optional[str] = None


# Fields written once and never cleared, even when the story later fails.
REFERENCE_FIELDS = ("summary", "audio_url", "video_url", "preview_url")
UPDATABLE_FIELDS = ("status", "failure_reason") + REFERENCE_FIELDS


class Story(BaseModel):
    id: str
    title: str
    original_text: str
    input_language: str = "en"
    narration_language: str = "en"
    status: StoryStatus = StoryStatus.PENDING
    summary: Optional[str] = None
    audio_url: Optional[str] = None
    video_url: Optional[str] = None
    preview_url: Optional[str] = None
    failure_reason: Optional[str] = None
    scenes: List[Scene] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def apply_update(self, **fields) -> "Story":
        """Return a copy with ``fields`` applied, enforcing the status and reference invariants."""
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise InvalidTransition(f"fields not updatable: {sorted(unknown)}")
        if self.status.terminal:
            raise InvalidTransition(f"story {self.id} is {self.status.value}; no further writes")

        if "status" in fields:
            new_status = StoryStatus(fields["status"])
            if not can_transition(self.status, new_status):
                raise InvalidTransition(f"story {self.id}: {self.status.value} -> {new_status.value} not allowed")
            fields["status"] = new_status

        for name in REFERENCE_FIELDS:
            if name not in fields:
                continue
            current = getattr(self, name)
            if current is not None and fields[name] != current:
                raise InvalidTransition(f"story {self.id}: {name} is already set")

        return self.model_copy(update={**fields, "updated_at": _now()})

    def with_scene(self, number: int, description: str, image_url: Optional[str]) -> "Story":
        if self.status != StoryStatus.GENERATING_IMAGES:
            raise InvalidTransition(f"story {self.id}: scenes are only created while generating images")
        if number != len(self.scenes) + 1:
            raise InvalidTransition(f"story {self.id}: scene {number} breaks numbering (have {len(self.scenes)})")
        scene = Scene(story_id=self.id, number=number, description=description, image_url=image_url)
        return self.model_copy(update={"scenes": [*self.scenes, scene], "updated_at": _now()})


class StoryCreate(BaseModel):
    title: str = Field(min_length=1)
    original_text: str = Field(min_length=1)
    input_language: str = "en"
    narration_language: str = "en"


class ProcessRequest(BaseModel):
    input_language: str = "en"
    narration_language: str = "en"


class Outcome(BaseModel, Generic[T]):
    """A value from an upstream adapter, tagged when it is a fallback rather than the real thing."""
    value: T
    degraded: bool = False
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value):
        return cls(value=value)

    @classmethod
    def fallback(cls, value, reason: str):
        return cls(value=value, degraded=True, reason=reason)


class PipelineRun(BaseModel):
    story_id: str
    title: str
    original_text: str
    input_language: str = "en"
    narration_language: str = "en"
    total_duration: int = 180
    summary: Optional[str] = None
    audio_url: Optional[str] = None
    scenes: List[Scene] = Field(default_factory=list)
    video_url: Optional[str] = None
    preview_url: Optional[str] = None
