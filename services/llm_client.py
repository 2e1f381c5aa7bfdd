# services/llm_client.py
import os
import json
import base64
from typing import Dict, Any, List, Optional

import structlog
from openai import OpenAI, APIError, RateLimitError, APITimeoutError

# ENV:
# OPENAI_API_KEY=<...>           (no key -> AI steps are skipped)
# OPENAI_BASE_URL                (optional proxy/gateway)
# OPENAI_MODEL=gpt-4o-mini

_DEFAULT_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
_BASE_URL = os.getenv("OPENAI_BASE_URL", None)

logger = structlog.get_logger(__name__)

_client: Optional[OpenAI] = None


def is_configured() -> bool:
    return bool(os.getenv("OPENAI_API_KEY"))


def _get_client() -> OpenAI:
    global _client
    if _client is None:
        if _BASE_URL:
            _client = OpenAI(base_url=_BASE_URL, api_key=os.getenv("OPENAI_API_KEY"))
        else:
            _client = OpenAI(api_key=os.getenv("OPENAI_API_KEY"))
    return _client


def call_llm_json(messages: List[Dict[str, Any]], model: Optional[str] = None, timeout: int = 30) -> Dict[str, Any]:
    """
    Call the model in JSON mode and return the parsed object.
    Any provider or decoding failure returns {} so callers can fall back.
    """
    if not is_configured():
        return {}
    client = _get_client()
    try:
        resp = client.chat.completions.create(
            model=model or _DEFAULT_MODEL,
            messages=messages,
            response_format={"type": "json_object"},
            temperature=0.0,
            timeout=timeout,
        )
        content = resp.choices[0].message.content or "{}"
        parsed = json.loads(content)
        return parsed if isinstance(parsed, dict) else {}
    except (APIError, RateLimitError, APITimeoutError, ValueError) as e:
        logger.warning("llm_call_failed", error=str(e), model=model or _DEFAULT_MODEL)
        return {}


def image_part(data: bytes, mime_type: str) -> Dict[str, Any]:
    """Chat content part carrying an inline image."""
    encoded = base64.b64encode(data).decode("ascii")
    return {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}}
