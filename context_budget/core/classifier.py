"""Privileged-tool classification and a canonical view over tool-call shapes."""

from __future__ import annotations

from typing import Iterator

from ..types import DEFAULT_MCP_DELIMITER, ContentPart, Message, ToolCall


def is_privileged(tool_call: ToolCall | None, delimiter: str = DEFAULT_MCP_DELIMITER) -> bool:
    """True iff the tool name carries the namespacing delimiter (``server§tool``)."""
    if tool_call is None or not delimiter:
        return False
    name = getattr(tool_call, "name", None)
    return isinstance(name, str) and delimiter in name


def iter_content_tool_calls(message: Message) -> Iterator[tuple[int, ToolCall]]:
    """Yield ``(position, tool_call)`` for inline ``tool_call`` content parts."""
    content = message.content
    if not isinstance(content, (list, tuple)):
        return
    for i, part in enumerate(content):
        if isinstance(part, ContentPart) and part.type == "tool_call" and part.tool_call is not None:
            yield i, part.tool_call


def iter_tool_calls(message: Message) -> Iterator[ToolCall]:
    """All tool calls on a message: legacy ``tool_calls`` first, else inline parts."""
    if message.tool_calls:
        for tc in message.tool_calls:
            if isinstance(tc, ToolCall):
                yield tc
        return
    for _, tc in iter_content_tool_calls(message):
        yield tc


def has_privileged_tool_call(message: Message, delimiter: str = DEFAULT_MCP_DELIMITER) -> bool:
    return any(is_privileged(tc, delimiter) for _, tc in iter_content_tool_calls(message))
