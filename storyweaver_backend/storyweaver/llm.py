import os, logging
from .prompts import SUMMARY_SYSTEM_PROMPT, TRANSLATING_SUMMARY_SYSTEM_PROMPT, SCENES_SYSTEM_PROMPT
from .settings import OPENAI_MODEL, UPSTREAM_TIMEOUT_S

logger = logging.getLogger(__name__)

_client = None

def llm_available() -> bool:
    return bool(os.getenv("OPENAI_API_KEY", ""))

def _get_client():
    global _client
    if _client is None:
        from openai import OpenAI
        api_key = os.getenv("OPENAI_API_KEY", "")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set; please configure your .env")
        _client = OpenAI(api_key=api_key, timeout=UPSTREAM_TIMEOUT_S, max_retries=0)
    return _client

def _complete(system_prompt: str, user_content: str, max_tokens: int) -> str:
    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_content},
    ]
    try:
        client = _get_client()
        resp = client.chat.completions.create(
            model=OPENAI_MODEL,
            messages=messages,
            temperature=0.4,
            max_tokens=max_tokens,
        )
        content = resp.choices[0].message.content or ""
        logger.info("Successfully received response from OpenAI")
        return content
    except Exception as e:
        logger.error(f"OpenAI API call failed: {str(e)}")
        raise

def summarize_text(text: str, input_language: str, output_language: str) -> str:
    """Summarize ``text`` in 2-3 sentences; language arguments are human-readable names."""
    logger.info(f"Calling OpenAI API to summarize story ({input_language} -> {output_language})")
    if input_language == output_language:
        prompt = SUMMARY_SYSTEM_PROMPT.format(output_language=output_language)
    else:
        prompt = TRANSLATING_SUMMARY_SYSTEM_PROMPT.format(input_language=input_language, output_language=output_language)
    content = _complete(prompt, text, max_tokens=300).strip()
    if not content:
        raise RuntimeError("OpenAI returned an empty summary")
    return content

def decompose_scenes(summary: str, language: str, count: int) -> str:
    """Ask for ``count`` visual beats; returns the raw completion, one scene per line."""
    logger.info(f"Calling OpenAI API to plan {count} scenes")
    prompt = SCENES_SYSTEM_PROMPT.format(count=count, language=language)
    return _complete(prompt, summary, max_tokens=400)
