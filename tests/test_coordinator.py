"""Tests for the generation coordinator."""

import asyncio
from typing import List, Tuple

import pytest

from roomrelay import (
    GenerationCoordinator, GenerationBackend, LLMResponse, LLMUsage,
    EmptyPrompt, UpstreamError, DEGRADED_TEXT
)
from roomrelay.coordinator import degraded_result


class MockBackend:
    """An async backend that returns predefined replies."""

    def __init__(self, reply="{\"text\": \"ok\"}", delay: float = 0.0):
        self.reply = reply
        self.delay = delay
        self.calls: List[Tuple[str, str]] = []

    async def complete(self, prompt: str, system_instruction: str):
        self.calls.append((prompt, system_instruction))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.reply


class SyncBackend:
    """A plain synchronous backend."""

    def complete(self, prompt: str, system_instruction: str) -> str:
        return '{"text": "sync reply"}'


class FailingBackend:
    """A backend whose provider is down."""

    async def complete(self, prompt: str, system_instruction: str) -> str:
        raise RuntimeError("503 Service Unavailable")


class TestGenerate:
    """Tests for GenerationCoordinator.generate."""

    def test_mock_backend_satisfies_protocol(self):
        assert isinstance(MockBackend(), GenerationBackend)

    @pytest.mark.asyncio
    async def test_reply_goes_through_extractor(self):
        backend = MockBackend('```json\n{"text": "Hello", "fileTree": {"a.txt": {"file": {"contents": "hi"}}}}\n```')
        coordinator = GenerationCoordinator(backend, system_instruction="be helpful")

        result = await coordinator.generate("  make a file  ")

        assert result.text == "Hello"
        assert result.file_tree == {"a.txt": {"file": {"contents": "hi"}}}
        assert backend.calls == [("make a file", "be helpful")]

    @pytest.mark.asyncio
    async def test_llm_response_is_unwrapped(self):
        backend = MockBackend(LLMResponse(
            content='{"text": "with usage"}',
            usage=LLMUsage(input_tokens=10, output_tokens=5, model="test-model")
        ))
        result = await GenerationCoordinator(backend).generate("hi")
        assert result.text == "with usage"

    @pytest.mark.asyncio
    async def test_sync_backend(self):
        result = await GenerationCoordinator(SyncBackend()).generate("hi")
        assert result.text == "sync reply"

    @pytest.mark.asyncio
    async def test_plain_text_reply(self):
        result = await GenerationCoordinator(MockBackend("no json here")).generate("hi")
        assert result.text == "no json here"
        assert result.file_tree is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt", ["", "   ", "\n\t"])
    async def test_empty_prompt(self, prompt):
        backend = MockBackend()
        with pytest.raises(EmptyPrompt):
            await GenerationCoordinator(backend).generate(prompt)
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_backend_failure(self):
        with pytest.raises(UpstreamError) as exc_info:
            await GenerationCoordinator(FailingBackend()).generate("hi")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_timeout(self):
        coordinator = GenerationCoordinator(MockBackend(delay=5.0), timeout=0.05)
        with pytest.raises(UpstreamError):
            await coordinator.generate("slow")

    @pytest.mark.asyncio
    async def test_unexpected_reply_type(self):
        with pytest.raises(UpstreamError):
            await GenerationCoordinator(MockBackend(reply=42)).generate("hi")


class TestDegradedResult:
    """Tests for the fallback reply."""

    def test_degraded_result(self):
        result = degraded_result()
        assert result.text == DEGRADED_TEXT
        assert result.file_tree is None
        assert result.build_command is None
        assert result.start_command is None
        assert not result.is_structured
