import json
from types import SimpleNamespace

import pytest

from prompt_studio.errors import GenerationError
from prompt_studio.generator import MAX_OUTPUT_TOKENS, TEMPERATURE, GenerationConfig, PromptGenerator
from prompt_studio.llm.providers.anthropic_provider import AnthropicProvider
from prompt_studio.llm.providers.openai_provider import OpenAIProvider
from prompt_studio.llm.types import LLMResult, ProviderError

STANDARD_OUTPUT = json.dumps(
    {"structure_type": "standard", "segments": [{"type": "system", "content": "You write haiku."}]}
)


def _config(**overrides):
    values = {
        "user_input": "A haiku assistant",
        "structure_type": "standard",
        "complexity": "simple",
        "category": "creative",
        "type": "assistant",
        "language": "English",
    }
    values.update(overrides)
    return GenerationConfig(**values)


class RecordingProvider:
    name = "openai"

    def __init__(self, text=STANDARD_OUTPUT, tokens_used=42):
        self.text = text
        self.tokens_used = tokens_used
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        return LLMResult(text=self.text, provider=self.name, model=request.model, tokens_used=self.tokens_used)


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP {self.status_code}")

    def json(self):
        return self._payload


def test_generation_uses_fixed_settings_and_requested_model():
    provider = RecordingProvider()
    generator = PromptGenerator({"openai": provider, "anthropic": None})

    result = generator.generate(_config(), "openai", model="gpt-4o-mini")

    request = provider.requests[0]
    assert request.model == "gpt-4o-mini"
    assert request.temperature == TEMPERATURE == 0.7
    assert request.max_tokens == MAX_OUTPUT_TOKENS == 2048
    assert "standard" in request.system
    assert "A haiku assistant" in request.prompt
    assert result.provider == "openai"
    assert result.model == "gpt-4o-mini"
    assert result.tokens_used == 42
    assert result.generation_time >= 0
    assert result.content.segments[0].content == "You write haiku."


def test_unconfigured_provider_fails_without_any_call():
    provider = RecordingProvider()
    generator = PromptGenerator({"openai": provider, "anthropic": None})

    with pytest.raises(GenerationError) as excinfo:
        generator.generate(_config(), "anthropic")

    assert excinfo.value.provider == "anthropic"
    assert excinfo.value.code == "GENERATION_FAILED"
    assert "not available" in excinfo.value.message
    assert provider.requests == []
    assert generator.available_providers() == ["openai"]


def test_structure_mismatch_is_a_generation_error():
    generator = PromptGenerator({"openai": RecordingProvider()})

    with pytest.raises(GenerationError, match="mismatch"):
        generator.generate(_config(structure_type="structured"), "openai")


def test_invalid_config_values_are_rejected():
    with pytest.raises(ValueError):
        _config(structure_type="freeform")
    with pytest.raises(ValueError):
        _config(complexity="extreme")


def test_openai_reports_total_tokens():
    response = SimpleNamespace(
        id="chatcmpl-1",
        choices=[SimpleNamespace(message=SimpleNamespace(content=STANDARD_OUTPUT))],
        usage=SimpleNamespace(prompt_tokens=100, completion_tokens=23, total_tokens=123),
    )
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        return response

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    generator = PromptGenerator({"openai": OpenAIProvider("sk-test", client=client)})

    result = generator.generate(_config(), "openai", model="gpt-4")

    assert result.tokens_used == 123
    assert calls[0]["model"] == "gpt-4"
    assert calls[0]["messages"][0]["role"] == "system"


def test_openai_empty_content_fails():
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=""))], usage=None)
    client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=lambda **kwargs: response))
    )
    generator = PromptGenerator({"openai": OpenAIProvider("sk-test", client=client)})

    with pytest.raises(GenerationError, match="No content generated"):
        generator.generate(_config(), "openai")


def test_anthropic_sums_input_and_output_tokens(monkeypatch):
    seen = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        seen.update(url=url, headers=headers, payload=json)
        return FakeResponse(
            {
                "id": "msg_1",
                "content": [{"type": "text", "text": STANDARD_OUTPUT}],
                "usage": {"input_tokens": 80, "output_tokens": 20},
            }
        )

    monkeypatch.setattr("prompt_studio.llm.providers.anthropic_provider.requests.post", fake_post)
    generator = PromptGenerator({"anthropic": AnthropicProvider("ak-test")})

    result = generator.generate(_config(), "anthropic", model="claude-3-haiku-20240307")

    assert result.tokens_used == 100
    assert seen["headers"]["x-api-key"] == "ak-test"
    assert seen["headers"]["anthropic-version"] == "2023-06-01"
    assert seen["payload"]["max_tokens"] == 2048
    assert seen["payload"]["messages"][0]["role"] == "user"


def test_anthropic_non_text_reply_fails(monkeypatch):
    monkeypatch.setattr(
        "prompt_studio.llm.providers.anthropic_provider.requests.post",
        lambda *args, **kwargs: FakeResponse({"content": [{"type": "tool_use"}]}),
    )
    provider = AnthropicProvider("ak-test")
    generator = PromptGenerator({"anthropic": provider})

    with pytest.raises(GenerationError, match="Unexpected response type"):
        generator.generate(_config(), "anthropic")


def test_providers_require_a_key():
    with pytest.raises(ProviderError):
        AnthropicProvider("")
    with pytest.raises(ProviderError):
        OpenAIProvider("")
