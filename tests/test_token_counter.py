"""Tests for token counting utilities."""

import pytest

from context_budget.token_counter import (
    MESSAGE_OVERHEAD_TOKENS,
    create_message_token_estimator,
    create_token_counter,
    estimate_tokens,
    message_text,
)
from context_budget.types import ContentPart, Message, ToolCall


def test_estimate_tokens():
    assert estimate_tokens("a" * 400) == 100
    assert estimate_tokens("") == 1


def test_callable_mode():
    counter = create_token_counter("callable:context_budget.token_counter:estimate_tokens")
    assert counter is estimate_tokens


def test_invalid_callable_spec():
    with pytest.raises(ValueError):
        create_token_counter("callable:nofunc")


def test_unknown_mode():
    with pytest.raises(ValueError):
        create_token_counter("magic")


def test_message_text_includes_tool_output():
    msg = Message(role="assistant", content=[
        ContentPart(type="text", text="Looking it up"),
        ContentPart(type="tool_call", tool_call=ToolCall(name="search", input={"q": "x"}, output={"hits": 2})),
    ])
    text = message_text(msg)
    assert "Looking it up" in text
    assert "search" in text
    assert '{"hits": 2}' in text


def test_message_text_legacy_and_empty():
    assert message_text(Message(role="user", content="plain")) == "plain"
    assert message_text(Message(role="user", content=None)) == ""


def test_message_estimator_shrinks_with_content():
    estimate = create_message_token_estimator()
    big = Message(role="assistant", content=[
        ContentPart(type="tool_call", tool_call=ToolCall(name="read", output="x" * 4000)),
    ])
    small = Message(role="assistant", content=[
        ContentPart(type="tool_call", tool_call=ToolCall(name="read", output="[omitted]")),
    ])
    assert estimate(big) > 1000
    assert estimate(small) < 20
    assert estimate(small) >= MESSAGE_OVERHEAD_TOKENS


def test_message_estimator_accepts_counter():
    estimate = create_message_token_estimator(lambda text: len(text))
    msg = Message(role="user", content="abcd")
    assert estimate(msg) == len("user") + 4 + MESSAGE_OVERHEAD_TOKENS
