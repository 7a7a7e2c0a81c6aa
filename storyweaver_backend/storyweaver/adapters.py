"""
Capability interfaces the pipeline consumes, and their default implementations.

Each default tries the real upstream service when it is configured and falls
back to a locally computable value otherwise, so a run always terminates with
usable output. Fallbacks come back as degraded ``Outcome`` values; they are
never raised.
"""
import asyncio
import logging
from typing import Optional, Protocol

from . import llm
from .artifacts import artifact_path, is_placeholder, public_ref
from .elevenlabs_client import tts_available, tts_to_bytes
from .image_renderer import SceneImageRenderer
from .languages import language_name
from .models import Outcome
from .prompts import TEMPLATE_SUMMARY
from .replicate_client import create_and_wait_image, replicate_available
from .settings import OUTPUT_DIR, PLACEHOLDER_AUDIO_URL, UPSTREAM_TIMEOUT_S
from .translate_client import translate_text, translation_available

logger = logging.getLogger(__name__)


class Summarizer(Protocol):
    async def summarize(self, text: str, input_language: str, narration_language: str) -> Outcome[str]: ...


class Narrator(Protocol):
    async def synthesize(self, text: str, language: str) -> Outcome[str]: ...


class ImageSource(Protocol):
    async def generate_image(self, description: str, language: str, ordinal: int) -> Outcome[str]: ...


class SceneWriter(Protocol):
    async def decompose(self, summary: str, language: str, count: int) -> str: ...


class StorySummarizer:
    """OpenAI summary when configured; otherwise a templated summary, translated when Google is configured."""

    def __init__(self, use_llm: Optional[bool] = None, use_translation: Optional[bool] = None, timeout: float = UPSTREAM_TIMEOUT_S):
        self.use_llm = llm.llm_available() if use_llm is None else use_llm
        self.use_translation = translation_available() if use_translation is None else use_translation
        self.timeout = timeout

    async def summarize(self, text: str, input_language: str, narration_language: str) -> Outcome[str]:
        input_name = language_name(input_language)
        output_name = language_name(narration_language)

        if self.use_llm:
            try:
                summary = await asyncio.wait_for(
                    asyncio.to_thread(llm.summarize_text, text, input_name, output_name), self.timeout
                )
                return Outcome.ok(summary)
            except Exception as e:
                logger.warning(f"Summarization failed, using template summary: {e!r}")
                reason = f"summarization failed: {e!r}"
        else:
            reason = "no summarization service configured"

        summary = TEMPLATE_SUMMARY.format(input_language=input_name, output_language=output_name, preview=text[:150])
        if self.use_translation and input_language != narration_language:
            try:
                translated = await asyncio.wait_for(translate_text(summary, narration_language), self.timeout)
            except Exception as e:
                logger.warning(f"Translation of template summary failed: {e!r}")
                translated = None
            summary = translated or summary
        return Outcome.fallback(summary, reason)


class OpenAISceneWriter:
    def __init__(self, timeout: float = UPSTREAM_TIMEOUT_S):
        self.timeout = timeout

    async def decompose(self, summary: str, language: str, count: int) -> str:
        return await asyncio.wait_for(asyncio.to_thread(llm.decompose_scenes, summary, language, count), self.timeout)


def default_scene_writer() -> Optional[SceneWriter]:
    return OpenAISceneWriter() if llm.llm_available() else None


class ElevenLabsNarrator:
    """Narration audio written to the output directory, or the placeholder sentinel."""

    def __init__(self, output_dir=OUTPUT_DIR, enabled: Optional[bool] = None, timeout: float = UPSTREAM_TIMEOUT_S):
        self.output_dir = output_dir
        self.enabled = tts_available() if enabled is None else enabled
        self.timeout = timeout

    async def synthesize(self, text: str, language: str) -> Outcome[str]:
        if not self.enabled:
            return Outcome.fallback(PLACEHOLDER_AUDIO_URL, "no text-to-speech service configured")
        if not text.strip():
            return Outcome.fallback(PLACEHOLDER_AUDIO_URL, "nothing to narrate")
        try:
            logger.info(f"Requesting {language_name(language)} narration from ElevenLabs")
            audio_bytes = await asyncio.wait_for(tts_to_bytes(text), self.timeout)
            path = artifact_path(self.output_dir, "narration", "mp3")
            await asyncio.to_thread(path.write_bytes, audio_bytes)
            logger.info(f"Saved narration to {path}")
            return Outcome.ok(public_ref(path))
        except Exception as e:
            logger.warning(f"Narration failed, continuing without audio: {e!r}")
            return Outcome.fallback(PLACEHOLDER_AUDIO_URL, f"narration failed: {e!r}")


class SceneImageSource:
    """Replicate images when configured; procedural rendering otherwise or when Replicate fails."""

    def __init__(self, renderer: Optional[SceneImageRenderer] = None, use_replicate: Optional[bool] = None, timeout: float = UPSTREAM_TIMEOUT_S):
        self.renderer = renderer or SceneImageRenderer()
        self.use_replicate = replicate_available() if use_replicate is None else use_replicate
        self.timeout = timeout

    async def generate_image(self, description: str, language: str, ordinal: int) -> Outcome[str]:
        if self.use_replicate:
            try:
                url = await asyncio.wait_for(create_and_wait_image(description), self.timeout)
                return Outcome.ok(url)
            except Exception as e:
                logger.warning(f"Image generation failed for scene {ordinal}, rendering procedurally: {e!r}")
                reason = f"image generation failed: {e!r}"
        else:
            reason = "no image generation service configured"

        ref = await asyncio.to_thread(self.renderer.render, description, ordinal, language_name(language))
        if is_placeholder(ref):
            reason = f"{reason}; procedural render failed"
        return Outcome.fallback(ref, reason)
