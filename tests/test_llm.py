"""Tests for the LiteLLM generation backend."""

from typing import Any, Dict, List

import litellm
import pytest

from roomrelay import GenerationBackend, GenerationCoordinator, LLMResponse, LLMUsage
from roomrelay.llm import LiteLLMBackend


class MockMessage:
    def __init__(self, content):
        self.content = content


class MockChoice:
    def __init__(self, content, finish_reason="stop"):
        self.message = MockMessage(content)
        self.finish_reason = finish_reason


class MockUsage:
    def __init__(self, prompt_tokens: int, completion_tokens: int):
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens


class MockCompletion:
    """Shaped like a litellm ModelResponse."""

    def __init__(self, content, usage=None, model="gemini/gemini-1.5-flash"):
        self.choices = [MockChoice(content)]
        self.usage = usage
        self.model = model


class MockAcompletion:
    """Records every call and returns a canned completion."""

    def __init__(self, response=None, error: Exception = None):
        self.response = response
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def fake_acompletion(monkeypatch):
    fake = MockAcompletion(MockCompletion('{"text": "ok"}', usage=MockUsage(12, 30)))
    monkeypatch.setattr(litellm, "acompletion", fake)
    return fake


class TestLiteLLMBackend:
    """Tests for LiteLLMBackend.complete."""

    def test_satisfies_protocol(self):
        assert isinstance(LiteLLMBackend(), GenerationBackend)

    def test_repr(self):
        assert repr(LiteLLMBackend(model="gpt-4o")) == "LiteLLMBackend(model='gpt-4o')"
        assert "fallbacks=['gpt-4o-mini']" in repr(LiteLLMBackend(fallback_models=["gpt-4o-mini"]))

    @pytest.mark.asyncio
    async def test_request_shape(self, fake_acompletion):
        backend = LiteLLMBackend(model="gemini/gemini-1.5-flash", temperature=0.4, max_tokens=512)

        await backend.complete("build a server", "reply in JSON")

        call = fake_acompletion.calls[0]
        assert call["model"] == "gemini/gemini-1.5-flash"
        assert call["messages"] == [
            {"role": "system", "content": "reply in JSON"},
            {"role": "user", "content": "build a server"},
        ]
        assert call["temperature"] == 0.4
        assert call["max_tokens"] == 512
        assert call["response_format"] == {"type": "json_object"}
        assert "fallbacks" not in call
        assert "api_key" not in call

    @pytest.mark.asyncio
    async def test_no_system_message_without_instruction(self, fake_acompletion):
        await LiteLLMBackend().complete("hello")
        assert fake_acompletion.calls[0]["messages"] == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_optional_parameters(self, fake_acompletion):
        backend = LiteLLMBackend(
            api_key="sk-test",
            fallback_models=["gpt-4o-mini"],
            json_mode=False,
            top_p=0.9
        )

        await backend.complete("hello", "")

        call = fake_acompletion.calls[0]
        assert call["api_key"] == "sk-test"
        assert call["fallbacks"] == ["gpt-4o-mini"]
        assert call["top_p"] == 0.9
        assert "response_format" not in call

    @pytest.mark.asyncio
    async def test_response_mapping(self, fake_acompletion):
        response = await LiteLLMBackend().complete("hello", "")

        assert isinstance(response, LLMResponse)
        assert response.content == '{"text": "ok"}'
        assert response.usage == LLMUsage(input_tokens=12, output_tokens=30, model="gemini/gemini-1.5-flash")
        assert response.usage.total_tokens == 42
        assert response.metadata == {"finish_reason": "stop"}

    @pytest.mark.asyncio
    async def test_missing_usage(self, monkeypatch):
        monkeypatch.setattr(litellm, "acompletion", MockAcompletion(MockCompletion('{"text": "ok"}')))

        response = await LiteLLMBackend().complete("hello", "")

        assert response.content == '{"text": "ok"}'
        assert response.usage is None

    @pytest.mark.asyncio
    async def test_empty_content(self, monkeypatch):
        """A None message body becomes an empty string."""
        monkeypatch.setattr(litellm, "acompletion", MockAcompletion(MockCompletion(None)))

        response = await LiteLLMBackend().complete("hello", "")
        assert response.content == ""

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, monkeypatch):
        monkeypatch.setattr(litellm, "acompletion", MockAcompletion(error=RuntimeError("quota exceeded")))

        with pytest.raises(RuntimeError, match="quota exceeded"):
            await LiteLLMBackend().complete("hello", "")

    @pytest.mark.asyncio
    async def test_through_coordinator(self, fake_acompletion):
        """The coordinator unwraps the LLMResponse and extracts its content."""
        coordinator = GenerationCoordinator(LiteLLMBackend(), system_instruction="be brief")

        result = await coordinator.generate("  hi  ")

        assert result.text == "ok"
        assert fake_acompletion.calls[0]["messages"][-1] == {"role": "user", "content": "hi"}
