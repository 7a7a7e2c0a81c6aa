import logging, subprocess
from dataclasses import dataclass
from typing import List, Optional
from .errors import FilterGraphError
from .settings import FPS, FFMPEG_TIMEOUT_S

logger = logging.getLogger(__name__)

@dataclass
class Segment:
    """One still frame shown for ``duration`` whole seconds."""
    path: str
    duration: int
    label: str = ""
    fallback: bool = False

@dataclass
class ConcatPlan:
    segments: List[Segment]
    output_path: str
    total_duration: int
    audio_path: Optional[str] = None
    fps: int = FPS

    @property
    def audio_index(self) -> Optional[int]:
        return len(self.segments) if self.audio_path else None

    def validate(self):
        if not self.segments:
            raise FilterGraphError("at least one segment is required")
        for i, seg in enumerate(self.segments):
            if not seg.path:
                raise FilterGraphError(f"segment {i} has no image")
            if not isinstance(seg.duration, int) or seg.duration < 1:
                raise FilterGraphError(f"segment {i} duration must be a positive whole number, got {seg.duration!r}")
        if self.total_duration < 1:
            raise FilterGraphError("total duration must be positive")
        if self.fps < 1:
            raise FilterGraphError("fps must be positive")

    def filter_graph(self) -> str:
        self.validate()
        n = len(self.segments)
        video_inputs = "".join(f"[{i}:v]" for i in range(n))
        return f"{video_inputs}concat=n={n}:v=1:a=0[outv]"

    def command(self) -> List[str]:
        graph = self.filter_graph()
        cmd = ["ffmpeg", "-y"]
        for seg in self.segments:
            cmd += ["-loop", "1", "-t", str(seg.duration), "-i", seg.path]
        if self.audio_path:
            cmd += ["-i", self.audio_path]
        cmd += ["-filter_complex", graph, "-map", "[outv]"]
        if self.audio_path:
            cmd += ["-map", f"{self.audio_index}:a", "-c:a", "aac", "-shortest"]
        cmd += [
            "-c:v", "libx264", "-preset", "medium", "-crf", "23",
            "-pix_fmt", "yuv420p", "-r", str(self.fps),
            "-t", str(self.total_duration),
            self.output_path,
        ]
        return cmd

def ffmpeg_concat_segments(plan: ConcatPlan, timeout: float = FFMPEG_TIMEOUT_S):
    _run(plan.command(), timeout=timeout)

def ffmpeg_available() -> bool:
    try:
        proc = subprocess.run(["ffmpeg", "-version"], capture_output=True, text=True, timeout=5)
        return proc.returncode == 0
    except (OSError, subprocess.TimeoutExpired):
        return False

def _run(cmd: List[str], timeout: float = FFMPEG_TIMEOUT_S):
    logger.info(f"Running FFmpeg command: {' '.join(cmd)}")
    try:
        proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise RuntimeError(f"FFmpeg timed out after {timeout}s")
    if proc.returncode != 0:
        error_msg = proc.stderr.decode("utf-8", errors="ignore")
        logger.error(f"FFmpeg command failed with return code {proc.returncode}")
        raise RuntimeError(f"FFmpeg failed: {error_msg[-500:]}")
    logger.info("FFmpeg command completed successfully")
