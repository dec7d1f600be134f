"""Tests for message parsing and serialization."""

from context_budget.types import ContentPart, Message, Role, ToolCall


def test_from_dict_inline_tool_call():
    msg = Message.from_dict({
        "role": "assistant",
        "tokenCount": 42,
        "content": [
            {"type": "text", "text": "checking"},
            {"type": "tool_call", "tool_call": {"id": "c1", "name": "srv§get", "input": {"a": 1}, "output": "ok"}},
            {"type": "image_url", "image_url": {"url": "http://x"}},
        ],
    })
    assert msg.token_count == 42
    assert msg.content[0].text == "checking"
    tc = msg.content[1].tool_call
    assert (tc.id, tc.name, tc.input, tc.output) == ("c1", "srv§get", {"a": 1}, "ok")
    assert msg.content[2].extra == {"image_url": {"url": "http://x"}}


def test_from_dict_legacy_openai_tool_calls():
    msg = Message.from_dict({
        "role": "assistant",
        "content": "",
        "tool_calls": [{"id": "t1", "type": "function", "function": {"name": "calc", "arguments": "{}"}}],
    })
    assert msg.tool_calls == [ToolCall(name="calc", input="{}", output=None, id="t1")]


def test_round_trip_preserves_unknown_parts():
    raw = {
        "role": "user",
        "content": [{"type": "image_url", "image_url": {"url": "http://x"}}],
        "token_count": 5,
    }
    assert Message.from_dict(raw).to_dict() == raw


def test_to_dict_role_enum():
    msg = Message(role=Role.SYSTEM, content="summary")
    assert msg.to_dict() == {"role": "system", "content": "summary"}


def test_malformed_parts_kept_verbatim():
    msg = Message.from_dict({"role": "user", "content": ["raw string part"]})
    assert msg.content == ["raw string part"]
    assert msg.to_dict()["content"] == ["raw string part"]


def test_tool_call_part_without_payload():
    part = ContentPart.from_dict({"type": "tool_call"})
    assert part.tool_call is None
