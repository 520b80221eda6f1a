"""Unified LLM client supporting Anthropic and OpenAI-compatible providers."""

from __future__ import annotations

import os
from typing import Any, List, Optional

import anthropic
import openai

from .errors import SuggestionServiceError

_PROVIDER_BASE_URLS: dict[str, str] = {
    "moonshot": "https://api.moonshot.ai/v1",
    "deepseek": "https://api.deepseek.com/v1",
    "lmstudio": "http://localhost:1234/v1",
}

# Maps provider name to its required environment variable.
# None means no API key is required (e.g. LM Studio running locally).
_PROVIDER_ENV_VARS: dict[str, Optional[str]] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "moonshot": "MOONSHOT_API_KEY",
    "openai": "OPENAI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "lmstudio": None,
}

# OpenAI models that reject max_tokens in favour of max_completion_tokens.
_COMPLETION_TOKEN_PREFIXES = (
    "gpt-5",
    "o1",
    "o3",
    "o4",
    "gpt-4.1",
    "gpt-4o",
    "computer-use",
)


def get_api_key(provider: str, caller: str = "em-assist") -> str:
    """Return the API key for *provider* from the environment.

    Raises SuggestionServiceError if the required environment variable is not
    set.  LM Studio does not require an API key and always returns a
    placeholder.
    """
    env_var = _PROVIDER_ENV_VARS.get(provider, "ANTHROPIC_API_KEY")
    if env_var is None:
        return "lm-studio"
    api_key = os.environ.get(env_var)
    if not api_key:
        raise SuggestionServiceError(f"{caller}: {env_var} is not set.")
    return api_key


def make_client(
    provider: str,
    api_key: str,
    timeout: float = 60.0,
    base_url: Optional[str] = None,
) -> Any:
    """Create and return an LLM client for *provider*.

    For OpenAI-compatible providers (moonshot, openai, deepseek, lmstudio), the
    base URL is resolved from *base_url* (if given) or the built-in default for the
    provider.
    """
    if provider == "anthropic":
        return anthropic.Anthropic(api_key=api_key, timeout=timeout)
    resolved_url = base_url or _PROVIDER_BASE_URLS.get(provider)
    return openai.OpenAI(api_key=api_key, base_url=resolved_url, timeout=timeout)


def _token_param(model: str) -> str:
    """Return the name of the output-token limit parameter for an OpenAI model."""
    if model.startswith(_COMPLETION_TOKEN_PREFIXES):
        return "max_completion_tokens"
    return "max_tokens"


def call_chat(
    client: Any,
    provider: str,
    model: str,
    max_tokens: int,
    messages: list,
    system: Optional[str] = None,
    temperature: float = 0.0,
    caller: str = "em-assist",
) -> List[str]:
    """Send a plain chat request; return the text of every response choice.

    Raises SuggestionServiceError on API errors.  An empty list means the
    provider answered without any text.
    """
    if provider == "anthropic":
        create_kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }
        if system:
            create_kwargs["system"] = system
        try:
            response = client.messages.create(**create_kwargs)
        except anthropic.APIError as exc:
            raise SuggestionServiceError(
                f"{caller}: Anthropic API error: {exc}"
            ) from exc
        text = "".join(
            block.text for block in response.content if block.type == "text"
        )
        return [text] if text.strip() else []

    full_messages = list(messages)
    if system:
        full_messages.insert(0, {"role": "system", "content": system})
    create_kwargs = {
        "model": model,
        _token_param(model): max_tokens,
        "temperature": temperature,
        "messages": full_messages,
    }
    if provider == "moonshot":
        create_kwargs["extra_body"] = {"thinking": {"type": "disabled"}}
    try:
        response = client.chat.completions.create(**create_kwargs)
    except openai.APIError as exc:
        raise SuggestionServiceError(f"{caller}: {provider} API error: {exc}") from exc
    return [
        choice.message.content
        for choice in response.choices or []
        if choice.message.content and choice.message.content.strip()
    ]
