"""Lazily constructed google-genai client."""

from __future__ import annotations

from functools import lru_cache

from google import genai

from policydesk.config import get_settings
from policydesk.errors import ConfigurationError


@lru_cache(maxsize=1)
def get_client() -> genai.Client:
    """Build the Gemini client on first use. Call reset_client() after config changes."""
    api_key = get_settings().gemini_api_key
    if not api_key:
        raise ConfigurationError(
            "Gemini API key is not configured (POLICYDESK_GEMINI__API_KEY or GEMINI_API_KEY)"
        )
    return genai.Client(api_key=api_key)


def reset_client() -> None:
    get_client.cache_clear()
