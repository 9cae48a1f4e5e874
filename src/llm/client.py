"""
Chat client for OpenAI-compatible APIs (Moonshot/Kimi, DeepSeek, GLM, etc.).
"""

from __future__ import annotations

import logging
import os
import random
import time
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from openai import OpenAI

# Load .env file if it exists
project_root = Path(__file__).resolve().parents[2]
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)


DEFAULT_BASE_URL = "https://api.moonshot.cn/v1"
DEFAULT_MODEL = "moonshot-v1-128k"

logger = logging.getLogger(__name__)


def _resolve_client_params(
    model_name: Optional[str] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
) -> tuple[str, str, str]:
    """Resolve model, api_key, base_url from args or env."""
    model = model_name or os.getenv("LLM_MODEL", DEFAULT_MODEL)
    key = api_key or os.getenv("LLM_API_KEY", "")
    base = base_url or os.getenv("LLM_BASE_URL", DEFAULT_BASE_URL)
    return model, key, base


class ChatClient:
    """OpenAI-compatible chat completion client with rate-limit backoff."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.model_name, key, self.base_url = _resolve_client_params(
            model_name=model_name, api_key=api_key, base_url=base_url
        )
        if not key:
            raise ValueError("API key required. Set LLM_API_KEY.")
        self.client = OpenAI(base_url=self.base_url, api_key=key)

    def chat(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 2048,
        temperature: float = 0.7,
        max_retries: int = 3,
    ) -> str:
        """
        Send one chat completion request and return the reply text.

        Rate-limit errors are retried with exponential backoff; any other
        failure is logged and yields an empty string so callers can fall
        back to canned text.
        """
        retry_count = 0
        while True:
            try:
                response = self.client.chat.completions.create(
                    model=self.model_name,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                )
                if not response.choices:
                    logger.warning("Empty response from API")
                    return ""
                return (response.choices[0].message.content or "").strip()

            except Exception as e:
                error_str = str(e)
                if "429" not in error_str and "rate limit" not in error_str.lower():
                    logger.error("Error calling API: %s", e)
                    return ""
                retry_count += 1
                if retry_count >= max_retries:
                    logger.warning("Rate limit exceeded after %s retries. Giving up.", max_retries)
                    return ""
                backoff = (2 ** retry_count) + random.uniform(0, 1)
                logger.warning(
                    "Rate limit hit (429). Retrying in %s s (attempt %s/%s)",
                    round(backoff, 1),
                    retry_count,
                    max_retries,
                )
                time.sleep(backoff)


def create_client(
    model_name: Optional[str] = None,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
) -> ChatClient:
    """Create an OpenAI-compatible chat client."""
    return ChatClient(model_name=model_name, api_key=api_key, base_url=base_url)
