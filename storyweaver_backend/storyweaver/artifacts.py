"""
Naming and resolution of generated artifacts.

Everything the pipeline produces lands in one flat output directory as
``<kind>_<ordinal?>_<timestamp>.<ext>`` and is referenced publicly as
``/generated/<filename>``. References may also be remote URLs (upstream image
generation) or placeholder sentinels when a stage degraded.
"""
import os
import time
from pathlib import Path
from typing import Optional

from .settings import PUBLIC_URL_PREFIX


def artifact_name(kind: str, ext: str, ordinal: Optional[int] = None) -> str:
    # time_ns keeps names unique across concurrent runs rendering the same ordinal
    stamp = time.time_ns()
    if ordinal is None:
        return f"{kind}_{stamp}.{ext}"
    return f"{kind}_{ordinal}_{stamp}.{ext}"


def artifact_path(output_dir, kind: str, ext: str, ordinal: Optional[int] = None) -> Path:
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    return out / artifact_name(kind, ext, ordinal)


def public_ref(path) -> str:
    return f"{PUBLIC_URL_PREFIX}/{Path(path).name}"


def is_remote(ref: str) -> bool:
    return ref.startswith("http://") or ref.startswith("https://")


def is_placeholder(ref: Optional[str]) -> bool:
    return not ref or "placeholder" in ref


def local_path(ref: str, output_dir) -> Optional[Path]:
    """Map a ``/generated/...`` reference or a plain filesystem path to a local file path."""
    if not ref or is_remote(ref):
        return None
    if ref.startswith(PUBLIC_URL_PREFIX + "/"):
        return Path(output_dir) / ref[len(PUBLIC_URL_PREFIX) + 1:]
    if os.path.isabs(ref) or os.path.exists(ref):
        return Path(ref)
    return None
