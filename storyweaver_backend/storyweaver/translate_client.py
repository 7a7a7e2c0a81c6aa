import os, httpx, logging
from typing import Optional
from .settings import UPSTREAM_TIMEOUT_S

logger = logging.getLogger(__name__)

TRANSLATE_URL = "https://translation.googleapis.com/language/translate/v2"

def translation_available() -> bool:
    return bool(os.getenv("GOOGLE_CLOUD_API_KEY", ""))

async def translate_text(text: str, target_language: str) -> Optional[str]:
    """Translate ``text`` into ``target_language`` (a language code). Returns None when unavailable."""
    api_key = os.getenv("GOOGLE_CLOUD_API_KEY", "")
    if not api_key:
        return None
    try:
        async with httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT_S) as client:
            r = await client.post(
                TRANSLATE_URL,
                params={"key": api_key},
                json={"q": text, "target": target_language, "format": "text"},
            )
            if r.status_code >= 400:
                logger.error(f"Translation API error {r.status_code}: {r.text}")
                return None
            data = r.json()
    except httpx.HTTPError as e:
        logger.error(f"Translation request failed: {e}")
        return None
    translations = (data.get("data") or {}).get("translations") or []
    if not translations:
        return None
    return translations[0].get("translatedText") or None
