"""
Shared chat-completion client for LLM workflow nodes.

Each call may target a different OpenAI-compatible endpoint (per-node
base URL, key and model overrides), so a short-lived SDK client is built
per request. Azure OpenAI resources are detected from the host name and
use the model name as the deployment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlparse

from openai import AsyncAzureOpenAI, AsyncOpenAI

from entities.shared.protocols import DeltaCallback, ModelConfig

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a professional assistant."

_AZURE_HOST_MARKER = "openai.azure.com"


class ConfigurationError(Exception):
    """Raised when AI credentials or the base URL are missing or unusable."""


@dataclass(frozen=True, slots=True)
class ModelDefaults:
    """Process-wide model settings that LLM nodes may override."""

    base_url: str = ""
    api_key: str = ""
    model: str = "gpt-4o-mini"
    temperature: float = 0.2


def normalize_base_url(raw: str) -> tuple[str, bool]:
    """Normalize a configured base URL.

    Adds ``https://`` when no scheme is given and appends ``/v1`` to
    OpenAI-compatible roots that do not already end with it.

    Args:
        raw: Base URL as configured.

    Returns:
        Tuple of (normalized URL, whether it is an Azure OpenAI resource).

    Raises:
        ConfigurationError: If the URL is blank, still holds a ``${...}``
            placeholder, or cannot be parsed.
    """
    text = (raw or "").strip()
    if not text:
        raise ConfigurationError("AI base URL is not configured")
    if "${" in text:
        raise ConfigurationError("AI base URL contains an unresolved placeholder")

    parsed = urlparse(text)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        text = "https://" + text.lstrip("/")
        if not urlparse(text).netloc:
            raise ConfigurationError(f"Invalid AI base URL: {raw}")

    base = text.rstrip("/")
    if _AZURE_HOST_MARKER in base.lower():
        return base, True
    if not base.lower().endswith("/v1"):
        base = f"{base}/v1"
    return base, False


def resolve_model_config(
    defaults: ModelDefaults,
    *,
    base_url: str | None = None,
    api_key: str | None = None,
    model: str | None = None,
    temperature: float | None = None,
) -> ModelConfig:
    """Merge per-node overrides over process defaults.

    Args:
        defaults: Process-wide model settings.
        base_url: Node override for the API root.
        api_key: Node override for the credential.
        model: Node override for the model name.
        temperature: Node override for the temperature.

    Returns:
        Fully resolved ``ModelConfig``.

    Raises:
        ConfigurationError: If no base URL or API key is available.
    """
    resolved_key = (api_key or defaults.api_key or "").strip()
    raw_base = base_url or defaults.base_url
    if not (raw_base or "").strip() or not resolved_key:
        raise ConfigurationError(
            "Missing AI credentials: configure a base URL and API key, "
            "or override them on the node."
        )

    normalized, azure = normalize_base_url(raw_base)
    return ModelConfig(
        base_url=normalized,
        api_key=resolved_key,
        model=model or defaults.model,
        temperature=defaults.temperature if temperature is None else temperature,
        azure=azure,
    )


def _messages(system_prompt: str, user_prompt: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


class OpenAIChatClient:
    """``ChatCompletionService`` backed by the openai SDK.

    Args:
        azure_api_version: API version used for Azure OpenAI resources.
    """

    def __init__(self, azure_api_version: str) -> None:
        self._azure_api_version = azure_api_version

    def _create_client(self, config: ModelConfig) -> AsyncOpenAI:
        # Retries are disabled; a failed call surfaces to the workflow as-is
        if config.azure:
            return AsyncAzureOpenAI(
                azure_endpoint=config.base_url,
                api_key=config.api_key,
                api_version=self._azure_api_version,
                max_retries=0,
            )
        return AsyncOpenAI(base_url=config.base_url, api_key=config.api_key, max_retries=0)

    async def complete(self, config: ModelConfig, system_prompt: str, user_prompt: str) -> str:
        """Return the full completion text for one system/user exchange."""
        logger.info("Chat completion: model=%s azure=%s", config.model, config.azure)
        async with self._create_client(config) as client:
            response = await client.chat.completions.create(
                model=config.model,
                messages=_messages(system_prompt, user_prompt),
                temperature=config.temperature,
            )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def stream_complete(
        self,
        config: ModelConfig,
        system_prompt: str,
        user_prompt: str,
        on_delta: DeltaCallback,
    ) -> None:
        """Stream a completion, forwarding each non-empty content fragment."""
        logger.info("Streaming chat completion: model=%s azure=%s", config.model, config.azure)
        async with self._create_client(config) as client:
            stream = await client.chat.completions.create(
                model=config.model,
                messages=_messages(system_prompt, user_prompt),
                temperature=config.temperature,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    await on_delta(delta)
