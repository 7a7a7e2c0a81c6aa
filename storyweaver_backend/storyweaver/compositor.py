"""
Video composition.

Turns a title and an ordered list of rendered scenes (plus optional narration)
into one MP4 of bounded length:

  [title card, TITLE_DURATION_S] + [scene 1..n, floor((total - title) / n) each]

Every segment is a still frame written to a per-composition temp directory,
looped for its duration by ffmpeg's concat filter, then deleted. Narration,
when it is a real file rather than the placeholder sentinel, is muxed onto
the concatenated track with ``-shortest``.
"""
import asyncio
import io
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import httpx
from PIL import Image, ImageDraw
from pydantic import BaseModel

from .artifacts import artifact_name, artifact_path, is_placeholder, is_remote, local_path, public_ref
from .drawing import draw_text_at, draw_wrapped_block, fill_diagonal_gradient, load_font, text_measure, wrap_text
from .media import ConcatPlan, Segment, ffmpeg_concat_segments
from .models import Scene
from .settings import (
    FFMPEG_TIMEOUT_S, FPS, MAX_CONCURRENT_ENCODES, OUTPUT_DIR, PLACEHOLDER_VIDEO_URL, TEMP_DIR,
    TITLE_DURATION_S, UPSTREAM_TIMEOUT_S, VIDEO_DURATION_S, VIDEO_HEIGHT, VIDEO_SUBTITLE, VIDEO_WIDTH,
)

logger = logging.getLogger(__name__)

TITLE_GRADIENT = [(0.0, "#667eea"), (1.0, "#764ba2")]
FALLBACK_GRADIENT = [(0.0, "#4facfe"), (1.0, "#00f2fe")]
CAPTION_BAND_HEIGHT = 180


def plan_durations(scene_count: int, total_duration: int = VIDEO_DURATION_S, title_duration: int = TITLE_DURATION_S) -> List[int]:
    """Title duration followed by one equal, rounded-down duration per scene."""
    if scene_count < 1:
        raise ValueError("cannot compose a video without scenes")
    per_scene = (total_duration - title_duration) // scene_count
    if per_scene < 1:
        raise ValueError(f"{total_duration}s cannot fit a {title_duration}s title and {scene_count} scenes")
    return [title_duration] + [per_scene] * scene_count


def fit_rect(img_w: int, img_h: int, canvas_w: int, canvas_h: int) -> Tuple[int, int, int, int]:
    """(x, y, w, h) placing an image centred inside the canvas without cropping or distortion."""
    aspect = img_w / img_h
    canvas_aspect = canvas_w / canvas_h
    if aspect > canvas_aspect:
        w, h = canvas_w, round(canvas_w / aspect)
        return 0, (canvas_h - h) // 2, w, h
    w, h = round(canvas_h * aspect), canvas_h
    return (canvas_w - w) // 2, 0, w, h


def render_title_card(title: str, width: int = VIDEO_WIDTH, height: int = VIDEO_HEIGHT, subtitle: str = VIDEO_SUBTITLE) -> Image.Image:
    img = Image.new("RGB", (width, height))
    fill_diagonal_gradient(img, TITLE_GRADIENT)
    draw = ImageDraw.Draw(img, "RGBA")

    font = load_font(80, bold=True)
    lines = wrap_text(title, width - 320, text_measure(draw, font))
    draw_wrapped_block(draw, lines, width / 2, height / 2, 100, font, "white")
    draw_text_at(draw, subtitle, width / 2, height * 0.74, load_font(40), (255, 255, 255, 204))
    return img


def render_scene_frame(image: Image.Image, description: str, width: int = VIDEO_WIDTH, height: int = VIDEO_HEIGHT) -> Image.Image:
    frame = Image.new("RGB", (width, height), "black")
    x, y, w, h = fit_rect(image.width, image.height, width, height)
    frame.paste(image.convert("RGB").resize((w, h), Image.Resampling.LANCZOS), (x, y))

    draw = ImageDraw.Draw(frame, "RGBA")
    band_top = height - CAPTION_BAND_HEIGHT
    draw.rectangle([0, band_top, width, height], fill=(0, 0, 0, 178))
    font = load_font(36)
    lines = wrap_text(description, width - 120, text_measure(draw, font))
    draw_wrapped_block(draw, lines, width / 2, band_top + CAPTION_BAND_HEIGHT / 2, 45, font, "white")
    return frame


def render_fallback_frame(number: int, description: str, width: int = VIDEO_WIDTH, height: int = VIDEO_HEIGHT) -> Image.Image:
    img = Image.new("RGB", (width, height))
    fill_diagonal_gradient(img, FALLBACK_GRADIENT)
    draw = ImageDraw.Draw(img)
    draw_text_at(draw, f"Scene {number}", width / 2, height * 0.41, load_font(60, bold=True), "white")
    draw_text_at(draw, description, width / 2, height * 0.59, load_font(40), "white")
    return img


def render_storyboard(title: str, descriptions: Sequence[str], total_duration: int, width: int = VIDEO_WIDTH, height: int = VIDEO_HEIGHT) -> Image.Image:
    """Single still summarising the video: title, length and up to four scene tiles."""
    img = Image.new("RGB", (width, height))
    fill_diagonal_gradient(img, TITLE_GRADIENT)
    draw = ImageDraw.Draw(img, "RGBA")

    draw_text_at(draw, title, width / 2, 150, load_font(60, bold=True), "white")
    minutes, seconds = divmod(total_duration, 60)
    draw_text_at(draw, f"Duration: {minutes}:{seconds:02d} minutes", width / 2, 210, load_font(30), (255, 255, 255, 204))

    tile_w, tile_h = 400, 200
    start_x = (width - (tile_w * 2 + 100)) / 2
    tile_font = load_font(18)
    for i, description in enumerate(descriptions[:4]):
        x = start_x + (i % 2) * (tile_w + 100)
        y = 300 + (i // 2) * (tile_h + 100)
        draw.rectangle([x, y, x + tile_w, y + tile_h], fill=(255, 255, 255, 26))
        draw_text_at(draw, f"Scene {i + 1}", x + 20, y + 40, load_font(24, bold=True), "white", align="left")
        lines = wrap_text(description, tile_w - 40, text_measure(draw, tile_font))
        for j, line in enumerate(lines[:6]):
            draw_text_at(draw, line, x + 20, y + 70 + j * 22, tile_font, (255, 255, 255, 230), align="left")
    return img


class VideoMetadata(BaseModel):
    title: str
    duration: int
    scenes: int
    format: str = "MP4"
    resolution: str
    fps: int
    has_audio: bool
    created: datetime


@dataclass
class CompositionResult:
    video_url: str
    metadata: VideoMetadata
    segments: List[Segment] = field(default_factory=list)
    preview_url: Optional[str] = None
    degraded: bool = False
    reason: Optional[str] = None


class VideoCompositor:
    def __init__(
        self,
        output_dir=OUTPUT_DIR,
        temp_dir=TEMP_DIR,
        width: int = VIDEO_WIDTH,
        height: int = VIDEO_HEIGHT,
        fps: int = FPS,
        title_duration: int = TITLE_DURATION_S,
        max_concurrent_encodes: int = MAX_CONCURRENT_ENCODES,
        ffmpeg_timeout: float = FFMPEG_TIMEOUT_S,
        fetch_timeout: float = UPSTREAM_TIMEOUT_S,
    ):
        self.output_dir = output_dir
        self.temp_dir = temp_dir
        self.width = width
        self.height = height
        self.fps = fps
        self.title_duration = title_duration
        self.ffmpeg_timeout = ffmpeg_timeout
        self.fetch_timeout = fetch_timeout
        self._encode_slots = asyncio.Semaphore(max_concurrent_encodes)

    async def compose(self, title: str, scenes: Sequence[Scene], audio_url: Optional[str] = None, total_duration: int = VIDEO_DURATION_S) -> CompositionResult:
        durations = plan_durations(len(scenes), total_duration, self.title_duration)
        logger.info(f"Composing '{title}': {len(scenes)} scenes, durations={durations}")

        os.makedirs(self.temp_dir, exist_ok=True)
        work_dir = Path(tempfile.mkdtemp(prefix="compose_", dir=self.temp_dir))
        segments: List[Segment] = []
        audio_path = self._usable_audio(audio_url)
        degraded, reason = False, None
        try:
            title_path = work_dir / artifact_name("title", "png")
            card = await asyncio.to_thread(render_title_card, title, self.width, self.height)
            await asyncio.to_thread(card.save, title_path, "PNG")
            segments.append(Segment(str(title_path), durations[0], label="title"))

            for scene, duration in zip(scenes, durations[1:]):
                segments.append(await asyncio.to_thread(self._scene_segment, scene, duration, work_dir))

            output = artifact_path(self.output_dir, "video", "mp4")
            plan = ConcatPlan(segments, str(output), total_duration, audio_path, self.fps)
            plan.validate()
            try:
                async with self._encode_slots:
                    await asyncio.to_thread(ffmpeg_concat_segments, plan, self.ffmpeg_timeout)
                video_url = public_ref(output)
                logger.info(f"Video created: {output}")
            except Exception as e:
                logger.error(f"Video encoding failed: {e}")
                video_url = PLACEHOLDER_VIDEO_URL
                degraded, reason = True, f"encoding failed: {e}"
        finally:
            self._cleanup(segments, work_dir)

        preview_url = await asyncio.to_thread(self._storyboard, title, [s.description for s in scenes], total_duration)
        metadata = VideoMetadata(
            title=title,
            duration=sum(durations),
            scenes=len(scenes),
            resolution=f"{self.width}x{self.height}",
            fps=self.fps,
            has_audio=audio_path is not None,
            created=datetime.now(timezone.utc),
        )
        logger.info(f"Video metadata: {metadata.model_dump_json()}")
        return CompositionResult(video_url, metadata, segments, preview_url, degraded, reason)

    def _usable_audio(self, audio_url: Optional[str]) -> Optional[str]:
        if is_placeholder(audio_url):
            logger.info("No narration available, composing a silent video")
            return None
        if is_remote(audio_url):
            return audio_url
        path = local_path(audio_url, self.output_dir)
        if path is None or not path.exists():
            logger.warning(f"Narration {audio_url} not found locally, composing a silent video")
            return None
        return str(path)

    def _load_image(self, ref: Optional[str]) -> Image.Image:
        if is_placeholder(ref):
            raise FileNotFoundError(f"scene has no rendered image ({ref})")
        if is_remote(ref):
            resp = httpx.get(ref, timeout=self.fetch_timeout, follow_redirects=True)
            resp.raise_for_status()
            source = io.BytesIO(resp.content)
        else:
            path = local_path(ref, self.output_dir)
            if path is None or not path.exists():
                raise FileNotFoundError(f"image {ref} not found")
            source = path
        with Image.open(source) as img:
            img.load()
            return img.convert("RGB")

    def _scene_segment(self, scene: Scene, duration: int, work_dir: Path) -> Segment:
        fallback = False
        try:
            frame = render_scene_frame(self._load_image(scene.image_url), scene.description, self.width, self.height)
        except Exception as e:
            logger.warning(f"Could not load image for scene {scene.number} ({e}), using fallback frame")
            frame = render_fallback_frame(scene.number, scene.description, self.width, self.height)
            fallback = True
        path = work_dir / artifact_name("segment", "png", scene.number)
        frame.save(path, "PNG")
        return Segment(str(path), duration, label=f"Scene {scene.number}", fallback=fallback)

    def _storyboard(self, title: str, descriptions: List[str], total_duration: int) -> Optional[str]:
        try:
            img = render_storyboard(title, descriptions, total_duration, self.width, self.height)
            path = artifact_path(self.output_dir, "video_preview", "png")
            img.save(path, "PNG")
            return public_ref(path)
        except Exception as e:
            logger.warning(f"Storyboard preview failed: {e}")
            return None

    def _cleanup(self, segments: List[Segment], work_dir: Path):
        for seg in segments:
            try:
                os.remove(seg.path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Cleanup error for {seg.path}: {e}")
        try:
            work_dir.rmdir()
        except OSError as e:
            logger.warning(f"Could not remove temp dir {work_dir}: {e}")
