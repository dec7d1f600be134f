"""Shared fixtures for context-budget tests."""

from __future__ import annotations

import asyncio

import pytest

from context_budget.token_counter import message_text
from context_budget.types import (
    ContentPart,
    ContextManagementConfig,
    Message,
    ToolCall,
)


def char_estimator(message: Message) -> int:
    """Deterministic estimator: 4 chars per token over the flattened content."""
    return max(1, len(message_text(message)) // 4)


def text_message(text: str, token_count: int, role: str = "user") -> Message:
    return Message(role=role, content=[ContentPart(type="text", text=text)], token_count=token_count)


def tool_message(
    name: str,
    output,
    token_count: int,
    tool_input: dict | None = None,
    text: str | None = None,
) -> Message:
    content = []
    if text is not None:
        content.append(ContentPart(type="text", text=text))
    content.append(ContentPart(
        type="tool_call",
        tool_call=ToolCall(name=name, input=tool_input or {}, output=output),
    ))
    return Message(role="assistant", content=content, token_count=token_count)


@pytest.fixture
def cm_config() -> ContextManagementConfig:
    return ContextManagementConfig()


@pytest.fixture
def estimator():
    return char_estimator


class MockLLMProvider:
    """Mock LLM provider for testing summarization."""

    def __init__(self, response: str | None = None):
        self.calls: list[dict] = []
        self.response = response or "Test summary"

    def complete(self, system: str, user: str, max_tokens: int) -> str:
        self.calls.append({"system": system, "user": user, "max_tokens": max_tokens})
        return self.response


class FakePredictor:
    """Records predictor calls and returns a canned summary."""

    def __init__(self, response: str = "Test summary", error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: list[dict] = []

    async def predict_summary(self, messages, previous_summary, signal=None):
        self.calls.append({
            "messages": messages,
            "previous_summary": previous_summary,
            "signal": signal,
        })
        if self.error is not None:
            raise self.error
        return self.response


class SlowPredictor:
    """Blocks until cancelled; records whether cancellation reached it."""

    def __init__(self):
        self.started = asyncio.Event()
        self.cancelled = False

    async def predict_summary(self, messages, previous_summary, signal=None):
        self.started.set()
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return "never"
