import os, httpx, asyncio, logging
from typing import Tuple
from .settings import UPSTREAM_TIMEOUT_S

logger = logging.getLogger(__name__)

TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
TTS_MODEL = "eleven_multilingual_v2"
VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.75}
OUTPUT_FORMAT = "mp3_22050_32"

def tts_available() -> bool:
    return bool(os.getenv("ELEVENLABS_API_KEY", "") and os.getenv("ELEVENLABS_VOICE_ID", ""))

def _credentials() -> Tuple[str, str]:
    api_key = os.getenv("ELEVENLABS_API_KEY", "")
    voice_id = os.getenv("ELEVENLABS_VOICE_ID", "")
    if not api_key or not voice_id:
        raise RuntimeError("ELEVENLABS_API_KEY and ELEVENLABS_VOICE_ID must be set; please configure your .env")
    return api_key, voice_id

async def tts_to_bytes(text: str, max_retries: int = 3) -> bytes:
    """MP3 narration for ``text``. Only 429 responses are retried, with 1, 2, 4... second waits."""
    api_key, voice_id = _credentials()
    # the multilingual model picks the narration language up from the text itself
    payload = {
        "text": text,
        "model_id": TTS_MODEL,
        "voice_settings": VOICE_SETTINGS,
        "optimize_streaming_latency": 2,
        "output_format": OUTPUT_FORMAT,
    }
    headers = {"xi-api-key": api_key, "Content-Type": "application/json"}

    attempt = 0
    while True:
        async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT_S) as client:
            r = await client.post(TTS_URL.format(voice_id=voice_id), headers=headers, json=payload)
        if r.status_code != 429:
            r.raise_for_status()
            logger.info(f"ElevenLabs returned {len(r.content)} bytes of audio")
            return r.content
        if attempt >= max_retries:
            logger.error(f"ElevenLabs rate limit exceeded after {attempt + 1} attempts")
            r.raise_for_status()
        wait_time = 2 ** attempt
        attempt += 1
        logger.warning(f"ElevenLabs rate limited (429), retrying in {wait_time}s (attempt {attempt + 1}/{max_retries + 1})")
        await asyncio.sleep(wait_time)
