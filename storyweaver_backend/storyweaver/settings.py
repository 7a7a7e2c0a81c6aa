import os
import tempfile
from dotenv import load_dotenv
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Load .env file if it exists (for local development)
env_path = os.path.join(os.path.dirname(__file__), "..", ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)
    logger.info("Loaded .env file for local development")
else:
    logger.info("No .env file found, using environment variables")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
GOOGLE_CLOUD_API_KEY = os.getenv("GOOGLE_CLOUD_API_KEY", "")
REPLICATE_API_TOKEN = os.getenv("REPLICATE_API_TOKEN", "")
REPLICATE_MODEL_VERSION = os.getenv("REPLICATE_MODEL_VERSION", "")
ELEVENLABS_API_KEY = os.getenv("ELEVENLABS_API_KEY", "")
ELEVENLABS_VOICE_ID = os.getenv("ELEVENLABS_VOICE_ID", "")

REPLICATE_POLL_INTERVAL_MS = int(os.getenv("REPLICATE_POLL_INTERVAL_MS", "1500"))
REPLICATE_POLL_TIMEOUT_S = int(os.getenv("REPLICATE_POLL_TIMEOUT_S", "120"))

# Optional: Vercel KV for story records shared across processes
KV_REST_API_URL = os.getenv("KV_REST_API_URL", "").strip()
KV_REST_API_TOKEN = os.getenv("KV_REST_API_TOKEN", "").strip()

# Flat artifact directory, served under PUBLIC_URL_PREFIX
OUTPUT_DIR = os.getenv("STORYWEAVER_OUTPUT_DIR", os.path.join(os.getcwd(), "generated"))
PUBLIC_URL_PREFIX = "/generated"
TEMP_DIR = os.getenv("STORYWEAVER_TEMP_DIR", os.path.join(tempfile.gettempdir(), "storyweaver"))

VIDEO_WIDTH = int(os.getenv("VIDEO_WIDTH", "1920"))
VIDEO_HEIGHT = int(os.getenv("VIDEO_HEIGHT", "1080"))
FPS = int(os.getenv("FPS", "30"))
VIDEO_DURATION_S = int(os.getenv("VIDEO_DURATION_S", "180"))
TITLE_DURATION_S = int(os.getenv("TITLE_DURATION_S", "5"))
SCENE_COUNT = int(os.getenv("SCENE_COUNT", "4"))
IMAGE_SIZE = 1024
VIDEO_SUBTITLE = os.getenv("VIDEO_SUBTITLE", "AI StoryWeaver")

PLACEHOLDER_AUDIO_URL = "/api/placeholder-audio.mp3"
PLACEHOLDER_VIDEO_URL = "/api/placeholder-video.mp4"

UPSTREAM_TIMEOUT_S = float(os.getenv("UPSTREAM_TIMEOUT_S", "90"))
FFMPEG_TIMEOUT_S = float(os.getenv("FFMPEG_TIMEOUT_S", "600"))
MAX_CONCURRENT_RUNS = int(os.getenv("MAX_CONCURRENT_RUNS", "2"))
MAX_CONCURRENT_ENCODES = int(os.getenv("MAX_CONCURRENT_ENCODES", "1"))
POLL_INTERVAL_S = float(os.getenv("POLL_INTERVAL_S", "2"))

# Comma-separated list of allowed origins for CORS (e.g., "https://app.example.com,https://www.example.com").
_allowed_origins_env = os.getenv("ALLOWED_ORIGINS", "").strip()
if _allowed_origins_env:
    ALLOWED_ORIGINS = [o.strip() for o in _allowed_origins_env.split(",") if o.strip()]
else:
    ALLOWED_ORIGINS = ["*"]


def configured_services() -> dict:
    return {
        "openai": bool(OPENAI_API_KEY),
        "google_translate": bool(GOOGLE_CLOUD_API_KEY),
        "elevenlabs": bool(ELEVENLABS_API_KEY and ELEVENLABS_VOICE_ID),
        "replicate": bool(REPLICATE_API_TOKEN),
        "kv": bool(KV_REST_API_URL and KV_REST_API_TOKEN),
    }


def has_all_keys() -> bool:
    # Every upstream is optional; this only reports whether the pipeline will run undegraded.
    keys_present = all([OPENAI_API_KEY, REPLICATE_API_TOKEN, ELEVENLABS_API_KEY, ELEVENLABS_VOICE_ID])
    if not keys_present:
        missing = []
        if not OPENAI_API_KEY: missing.append("OPENAI_API_KEY")
        if not REPLICATE_API_TOKEN: missing.append("REPLICATE_API_TOKEN")
        if not ELEVENLABS_API_KEY: missing.append("ELEVENLABS_API_KEY")
        if not ELEVENLABS_VOICE_ID: missing.append("ELEVENLABS_VOICE_ID")
        logger.warning(f"Missing API keys, degraded fallbacks will be used: {', '.join(missing)}")
    return keys_present
