"""
AI provider chat clients

One IProviderChat implementation per request format:
- OpenAI-compatible chat completions (openai, groq, deepseek, local)
- Anthropic messages API
- Gemini generateContent

All of them take the same {"role", "content"} message list and return the
assistant reply text.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from config.providers import ANTHROPIC, GEMINI, OPENAI_COMPATIBLE, ProviderConfig, load_provider_configs
from constants import ChatDefaults
from exceptions import ProviderError, ValidationError
from services.interfaces import IProviderChat

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class HttpProviderChat(IProviderChat):
    """Shared request plumbing for HTTP providers."""

    def __init__(self, config: ProviderConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.name = config.name
        self._transport = transport

    def is_configured(self) -> bool:
        return self.config.is_configured()

    def _model(self, options: Dict[str, Any]) -> str:
        return options.get("model") or self.config.model

    async def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.is_configured():
            raise ProviderError(self.name, f"{self.name} is not properly configured")

        try:
            async with httpx.AsyncClient(
                timeout=ChatDefaults.REQUEST_TIMEOUT_SECONDS,
                transport=self._transport,
            ) as client:
                response = await client.post(url, headers={**headers, **self.config.headers}, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"{self.name} API timeout")
            raise ProviderError(self.name, f"{self.name} API request timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"{self.name} API request failed: {e}")
            raise ProviderError(self.name, f"{self.name} API request failed: {e}") from e

        if response.status_code == 401:
            raise ProviderError(self.name, f"Invalid {self.name} API key")
        if response.status_code == 429:
            raise ProviderError(self.name, f"{self.name} rate limit exceeded. Please try again later.")
        if response.status_code != 200:
            logger.error(f"{self.name} API error: {response.status_code} - {response.text}")
            raise ProviderError(self.name, f"{self.name} API error (HTTP {response.status_code})")

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.name, f"{self.name} returned a non-JSON body") from e


class OpenAICompatibleChat(HttpProviderChat):
    """Chat completions endpoint (OpenAI, Groq, DeepSeek, Ollama and friends)."""

    async def chat(self, messages: List[Dict[str, str]], options: Dict[str, Any]) -> str:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        result = await self._post(
            f"{self.config.endpoint.rstrip('/')}/chat/completions",
            headers,
            {
                "model": self._model(options),
                "messages": messages,
                "temperature": options.get("temperature", ChatDefaults.TEMPERATURE),
                "max_tokens": options.get("max_tokens", ChatDefaults.MAX_TOKENS),
            },
        )
        try:
            return result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"Unexpected {self.name} response shape") from e


class AnthropicChat(HttpProviderChat):
    """Messages API; the system prompt travels outside the message list."""

    async def chat(self, messages: List[Dict[str, str]], options: Dict[str, Any]) -> str:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        conversation = [m for m in messages if m["role"] != "system"]

        payload = {
            "model": self._model(options),
            "messages": conversation,
            "max_tokens": options.get("max_tokens", ChatDefaults.MAX_TOKENS),
            "temperature": options.get("temperature", ChatDefaults.TEMPERATURE),
        }
        if system:
            payload["system"] = system

        result = await self._post(
            f"{self.config.endpoint.rstrip('/')}/messages",
            {
                "x-api-key": self.config.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            payload,
        )
        return "".join(
            block.get("text", "") for block in result.get("content", []) if block.get("type") == "text"
        )


class GeminiChat(HttpProviderChat):
    """generateContent; system instructions are folded into the first user turn."""

    @staticmethod
    def _contents(messages: List[Dict[str, str]]) -> List[Dict[str, Any]]:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        contents = []
        for message in messages:
            if message["role"] == "system":
                continue
            text = message["content"]
            if system and not contents and message["role"] == "user":
                text = f"[System Instructions]\n{system}\n\n[User Message]\n{text}"
            role = "user" if message["role"] == "user" else "model"
            contents.append({"role": role, "parts": [{"text": text}]})
        return contents

    async def chat(self, messages: List[Dict[str, str]], options: Dict[str, Any]) -> str:
        result = await self._post(
            f"{self.config.endpoint.rstrip('/')}/models/{self._model(options)}:generateContent",
            {"Content-Type": "application/json", "x-goog-api-key": self.config.api_key},
            {
                "contents": self._contents(messages),
                "generationConfig": {
                    "temperature": options.get("temperature", ChatDefaults.TEMPERATURE),
                    "maxOutputTokens": options.get("max_tokens", ChatDefaults.MAX_TOKENS),
                },
            },
        )
        candidates = result.get("candidates") or []
        if not candidates:
            raise ProviderError(self.name, "Gemini returned no candidates")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)


PROVIDER_CLASSES = {
    OPENAI_COMPATIBLE: OpenAICompatibleChat,
    ANTHROPIC: AnthropicChat,
    GEMINI: GeminiChat,
}


def get_provider(
    name: str,
    configs: Optional[Dict[str, ProviderConfig]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> IProviderChat:
    """
    Build the chat client for a provider key.

    Raises:
        ValidationError: Unknown provider name
    """
    configs = configs if configs is not None else load_provider_configs()
    config = configs.get(name)
    if config is None:
        raise ValidationError(f"Invalid provider: {name}", invalid_fields={"provider": name})
    return PROVIDER_CLASSES[config.kind](config, transport=transport)


def configured_providers(configs: Optional[Dict[str, ProviderConfig]] = None) -> List[str]:
    """Names of providers that have credentials/endpoints."""
    configs = configs if configs is not None else load_provider_configs()
    return [name for name, config in configs.items() if config.is_configured()]
