"""Factory for chat model clients.

Maps a ``(provider, model, api_key)`` triple to a client. There is no
environment-variable fallback for keys: every call must carry one.
"""

from __future__ import annotations

import logging

from storechat.config.loader import ConfigError
from storechat.llm.openai_compat import OpenAICompatibleClient

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "google"
DEFAULT_MODEL = "gemini-2.5-flash"

PROVIDER_BASE_URLS: dict[str, str | None] = {
    "openai": None,
    "deepseek": "https://api.deepseek.com/v1",
    "groq": "https://api.groq.com/openai/v1",
    "openrouter": "https://openrouter.ai/api/v1",
    "google": "https://generativelanguage.googleapis.com/v1beta/openai/",
}

# "grok" was the historical name the UI used for the Groq backend
PROVIDER_ALIASES = {"grok": "groq", "gemini": "google"}


class MissingAPIKeyError(ConfigError):
    """Raised when a chat model is requested without an API key."""

    def __init__(self, provider: str):
        super().__init__(
            f"No API key provided for {provider}. Please provide an API key in the request."
        )
        self.provider = provider


def resolve_provider(provider: str | None) -> str:
    """Normalise a provider name, falling back to the default provider."""
    if not provider:
        return DEFAULT_PROVIDER
    name = provider.strip().lower()
    name = PROVIDER_ALIASES.get(name, name)
    if name not in PROVIDER_BASE_URLS:
        logger.warning("Unknown provider '%s', using %s", provider, DEFAULT_PROVIDER)
        return DEFAULT_PROVIDER
    return name


def create_chat_model(
    provider: str | None,
    model: str | None,
    api_key: str | None,
    temperature: float = 1.0,
    timeout: int = 120,
) -> OpenAICompatibleClient:
    """Create a chat model client.

    Args:
        provider: One of openai, deepseek, groq, openrouter, google.
            Unknown names fall back to google.
        model: Model name; defaults to gemini-2.5-flash.
        api_key: Caller-supplied key for the provider.
        temperature: Sampling temperature.
        timeout: Request timeout in seconds.

    Returns:
        A client bound to the provider endpoint.

    Raises:
        MissingAPIKeyError: If ``api_key`` is empty.
    """
    name = resolve_provider(provider)
    if not api_key or not api_key.strip():
        raise MissingAPIKeyError(provider or name)

    headers = None
    if name == "openrouter":
        headers = {"X-Title": "storechat"}

    return OpenAICompatibleClient(
        model=model or DEFAULT_MODEL,
        api_key=api_key,
        base_url=PROVIDER_BASE_URLS[name],
        timeout=timeout,
        temperature=temperature,
        default_headers=headers,
    )
