import os
import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest

# Settings are read at import time; keep generated files out of the working tree
# and make sure no developer credentials switch on real upstream calls.
os.environ.setdefault("STORYWEAVER_OUTPUT_DIR", tempfile.mkdtemp(prefix="storyweaver_out_"))
os.environ.setdefault("STORYWEAVER_TEMP_DIR", tempfile.mkdtemp(prefix="storyweaver_tmp_"))
for _key in ("KV_REST_API_URL", "KV_REST_API_TOKEN", "OPENAI_API_KEY", "GOOGLE_CLOUD_API_KEY",
             "REPLICATE_API_TOKEN", "ELEVENLABS_API_KEY", "ELEVENLABS_VOICE_ID"):
    os.environ.pop(_key, None)

from storyweaver.models import StoryCreate  # noqa: E402
from storyweaver.storage import InMemoryStoryStore  # noqa: E402


@pytest.fixture
def store():
    return InMemoryStoryStore()


@pytest.fixture
def story_input():
    return StoryCreate(
        title="The Clever Crow",
        original_text="A thirsty crow found a pitcher with a little water at the bottom. "
                      "It dropped pebbles in one by one until the water rose and it could drink.",
        input_language="en",
        narration_language="en",
    )


@pytest.fixture
def output_dir(tmp_path):
    path = tmp_path / "generated"
    path.mkdir()
    return path


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    """Replace the ffmpeg subprocess; records every command and writes a stub output file."""
    calls = []
    state = SimpleNamespace(calls=calls, returncode=0)

    def fake_run(cmd, stdout=None, stderr=None, timeout=None, **kwargs):
        calls.append(list(cmd))
        if state.returncode == 0:
            Path(cmd[-1]).write_bytes(b"\x00\x00\x00\x18ftypmp42")
        return SimpleNamespace(returncode=state.returncode, stdout=b"", stderr=b"Conversion failed!")

    monkeypatch.setattr("storyweaver.media.subprocess.run", fake_run)
    return state
