"""
Hosted LLM client.

Any OpenAI-compatible chat-completions endpoint works; the default base URL
points at Groq. One request per call, no retries: callers treat AI output as
best-effort and fall back on failure.
"""

import logging
from typing import Optional

from openai import APIError, OpenAI

from core.config import settings

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """The model could not produce a response."""


def get_llm_client() -> Optional[OpenAI]:
    """
    FastAPI dependency returning a configured client, or None when no API key
    is set. Tests override this dependency with a fake.
    """
    if not settings.LLM_API_KEY:
        return None
    return OpenAI(
        api_key=settings.LLM_API_KEY,
        base_url=settings.LLM_BASE_URL,
        timeout=settings.LLM_TIMEOUT_S,
        max_retries=0,
    )


def complete_json(
    client: Optional[OpenAI],
    prompt: str,
    temperature: float = 0.7,
    max_tokens: int = 500,
) -> str:
    """Send `prompt` as the system message and return the raw JSON-mode text."""
    if client is None:
        raise LLMError("LLM_API_KEY not configured")

    try:
        response = client.chat.completions.create(
            model=settings.LLM_MODEL,
            messages=[{"role": "system", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )
    except APIError as e:
        logger.error(f"LLM request failed ({settings.LLM_MODEL}): {e}")
        raise LLMError("AI service request failed") from e

    content = response.choices[0].message.content if response.choices else None
    if not content:
        raise LLMError("Empty model response")
    return content
