import asyncio
import json

import httpx
import pytest

from config.providers import load_provider_configs
from exceptions import ProviderError, ValidationError
from services.providers import (
    AnthropicChat,
    GeminiChat,
    OpenAICompatibleChat,
    configured_providers,
    get_provider,
)

MESSAGES = [
    {"role": "system", "content": "You generate commands."},
    {"role": "user", "content": "make it gray"},
]
OPTIONS = {"temperature": 0, "max_tokens": 50}

ENV = {
    "OPENAI_API_KEY": "sk-test",
    "ANTHROPIC_API_KEY": "ak-test",
    "GEMINI_API_KEY": "gk-test",
    "LOCAL_LLM_ENDPOINT": "http://localhost:11434/v1",
}


def recording_transport(body, status_code=200):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=body)

    return httpx.MockTransport(handler), requests


def chat(client):
    return asyncio.run(client.chat(MESSAGES, OPTIONS))


def test_load_provider_configs_from_environment():
    configs = load_provider_configs(ENV)

    assert configs["openai"].is_configured()
    assert configs["local"].is_configured()
    assert configs["local"].endpoint == "http://localhost:11434/v1"
    assert not configs["groq"].is_configured()
    assert configs["openai"].safe_view()["apiKey"] == "***"
    assert set(configured_providers(configs)) == {"openai", "anthropic", "gemini", "local"}


def test_unknown_provider_rejected():
    with pytest.raises(ValidationError):
        get_provider("nope", configs=load_provider_configs(ENV))


def test_openai_compatible_request_and_reply():
    transport, requests = recording_transport({"choices": [{"message": {"content": "{\"command\": null}"}}]})
    client = get_provider("openai", configs=load_provider_configs(ENV), transport=transport)

    assert isinstance(client, OpenAICompatibleChat)
    assert chat(client) == "{\"command\": null}"

    request = requests[0]
    assert str(request.url) == "https://api.openai.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    payload = json.loads(request.content)
    assert payload["messages"] == MESSAGES
    assert payload["max_tokens"] == 50


def test_anthropic_moves_system_prompt_out_of_messages():
    transport, requests = recording_transport({"content": [{"type": "text", "text": "hello"}]})
    client = get_provider("anthropic", configs=load_provider_configs(ENV), transport=transport)

    assert isinstance(client, AnthropicChat)
    assert chat(client) == "hello"

    request = requests[0]
    assert request.headers["x-api-key"] == "ak-test"
    payload = json.loads(request.content)
    assert payload["system"] == "You generate commands."
    assert payload["messages"] == [{"role": "user", "content": "make it gray"}]


def test_gemini_folds_system_prompt_into_first_user_turn():
    transport, requests = recording_transport({"candidates": [{"content": {"parts": [{"text": "ok"}]}}]})
    client = get_provider("gemini", configs=load_provider_configs(ENV), transport=transport)

    assert isinstance(client, GeminiChat)
    assert chat(client) == "ok"

    payload = json.loads(requests[0].content)
    assert requests[0].url.path.endswith(":generateContent")
    assert len(payload["contents"]) == 1
    assert payload["contents"][0]["parts"][0]["text"].startswith("[System Instructions]")


@pytest.mark.parametrize("status_code,message", [
    (401, "Invalid openai API key"),
    (429, "rate limit"),
    (500, "HTTP 500"),
])
def test_http_errors_become_provider_errors(status_code, message):
    transport, _ = recording_transport({"error": "nope"}, status_code=status_code)
    client = get_provider("openai", configs=load_provider_configs(ENV), transport=transport)

    with pytest.raises(ProviderError, match=message):
        chat(client)


def test_transport_failure_becomes_provider_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = get_provider("openai", configs=load_provider_configs(ENV), transport=httpx.MockTransport(handler))

    with pytest.raises(ProviderError, match="request failed"):
        chat(client)


def test_unconfigured_provider_does_not_call_out():
    transport, requests = recording_transport({})
    client = get_provider("groq", configs=load_provider_configs(ENV), transport=transport)

    assert not client.is_configured()
    with pytest.raises(ProviderError, match="not properly configured"):
        chat(client)
    assert requests == []
