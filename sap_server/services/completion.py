"""
SAP Server — Completion Service
Proxies a single user prompt to OpenRouter chat completions.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from sap_server.core.config import settings

logger = logging.getLogger(__name__)


class CompletionError(RuntimeError):
    """The completion API answered without a usable choice."""


@dataclass
class Completion:
    content: str
    model: str
    usage: Optional[dict] = None


async def generate_completion(
    prompt: str,
    model: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Completion:
    """
    Send one user message to OpenRouter and return the first choice.

    Raises CompletionError when the response has no choices; transport and
    HTTP errors from httpx propagate unchanged.
    """
    if not settings.OPENROUTER_API_KEY:
        raise ValueError("OPENROUTER_API_KEY is not configured")

    model_name = model or settings.DEFAULT_COMPLETION_MODEL
    headers = {
        "Authorization": f"Bearer {settings.OPENROUTER_API_KEY}",
        "Content-Type": "application/json",
        "HTTP-Referer": settings.BRAND_URL,
        "X-Title": settings.APP_NAME,
    }

    start_time = time.time()
    async with httpx.AsyncClient(timeout=settings.COMPLETION_TIMEOUT_SECONDS, transport=transport) as client:
        response = await client.post(
            f"{settings.OPENROUTER_BASE_URL}/chat/completions",
            headers=headers,
            json={
                "model": model_name,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": settings.COMPLETION_MAX_TOKENS,
            },
        )

    data = response.json()
    choices = data.get("choices") if isinstance(data, dict) else None
    if not choices:
        logger.warning(f"No choices from {model_name} ({response.status_code}): {response.text[:200]}")
        raise CompletionError(f"No completion returned by {model_name}")

    processing_time = int((time.time() - start_time) * 1000)
    logger.info(f"Completion from {model_name} in {processing_time}ms")
    return Completion(
        content=choices[0]["message"]["content"],
        model=model_name,
        usage=data.get("usage"),
    )
