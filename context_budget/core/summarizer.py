"""ConversationSummarizer: collapses a window of history into one system message."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Sequence

from ..types import (
    DEFAULT_MCP_DELIMITER,
    ContentPart,
    FormatOptions,
    LLMProvider,
    Message,
    MessageFormatter,
    Role,
    SummarizationCancelledError,
    SummarizationConfig,
    SummaryPredictor,
    ToolCallDigestEntry,
)
from .classifier import is_privileged, iter_tool_calls

logger = logging.getLogger(__name__)

OUTPUT_PREVIEW_CHARS = 200
DIGEST_HEADER = "\n\nTool calls in this conversation:\n"
PENDING_OUTPUT = "pending"

PROGRESSIVE_SUMMARY_PROMPT = """\
Progressively summarize the lines of conversation provided, adding onto the
previous summary and returning a new summary. Preserve decisions, open tasks,
names, numbers and the results of any tool calls that later turns depend on.

Previous summary:
{previous_summary}

New lines of conversation:
{new_lines}

New summary:"""

DEFAULT_PREFIXES = {
    Role.USER.value: "Human",
    Role.ASSISTANT.value: "AI",
    Role.SYSTEM.value: "System",
    Role.TOOL.value: "Tool",
}


def _role_value(role: Any) -> str:
    return role.value if isinstance(role, Role) else str(role)


def _stringify_output(output: Any) -> str:
    if isinstance(output, str):
        return output
    try:
        return json.dumps(output, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(output)


def _content_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if not isinstance(content, (list, tuple)):
        return str(content)
    parts: list[str] = []
    for part in content:
        if not isinstance(part, ContentPart):
            continue
        if part.type == "tool_call" and part.tool_call is not None:
            tc = part.tool_call
            output = _stringify_output(tc.output) if tc.output is not None else PENDING_OUTPUT
            parts.append(f"[tool call {tc.name}] {output}")
        elif part.text:
            parts.append(part.text)
    return "\n".join(parts)


def format_chat_messages(
    messages: Sequence[Message],
    options: FormatOptions | None = None,
) -> list[dict]:
    """Adapt messages into ``{role, content[, name]}`` chat dicts for the predictor."""
    options = options or FormatOptions()
    formatted: list[dict] = []
    for m in messages:
        role = _role_value(m.role)
        entry: dict[str, Any] = {"role": role, "content": _content_text(m.content)}
        if role == Role.USER.value and options.user_label:
            entry["name"] = options.user_label
        elif role == Role.ASSISTANT.value and options.assistant_label:
            entry["name"] = options.assistant_label
        formatted.append(entry)
    return formatted


def extract_tool_call_digest(
    context: Sequence[Message],
    delimiter: str = DEFAULT_MCP_DELIMITER,
) -> list[ToolCallDigestEntry]:
    """Collect ``{name, is_privileged, input, output_preview}`` for every tool call."""
    entries: list[ToolCallDigestEntry] = []
    for message in context:
        for tc in iter_tool_calls(message):
            preview = None
            if tc.output:
                preview = _stringify_output(tc.output)[:OUTPUT_PREVIEW_CHARS]
            entries.append(ToolCallDigestEntry(
                name=tc.name,
                is_privileged=is_privileged(tc, delimiter),
                input=tc.input,
                output_preview=preview,
            ))
    return entries


def format_tool_call_digest(entries: Sequence[ToolCallDigestEntry]) -> str:
    """Render the digest section appended to a summary ("" when there are no calls)."""
    if not entries:
        return ""
    lines = [
        f"- {e.name}{' (MCP)' if e.is_privileged else ''}: {e.output_preview or PENDING_OUTPUT}"
        for e in entries
    ]
    return DIGEST_HEADER + "\n".join(lines)


async def _await_with_signal(coro, signal: asyncio.Event | None):
    """Await *coro*, cancelling it if *signal* is set first."""
    if signal is None:
        return await coro
    if signal.is_set():
        coro.close()
        raise SummarizationCancelledError("Summarization cancelled before the predictor ran")

    task = asyncio.ensure_future(coro)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise SummarizationCancelledError("Summarization cancelled while awaiting the predictor")


class ConversationSummarizer:
    """Turn a window of messages into a single system summary message."""

    def __init__(
        self,
        predictor: SummaryPredictor,
        formatter: MessageFormatter | None = None,
        delimiter: str = DEFAULT_MCP_DELIMITER,
        debug: bool = False,
    ) -> None:
        self.predictor = predictor
        self.formatter = formatter or format_chat_messages
        self.delimiter = delimiter
        self.debug = debug

    async def summarize(
        self,
        context: Sequence[Message],
        previous_summary: str = "",
        *,
        format_options: FormatOptions | None = None,
        signal: asyncio.Event | None = None,
        preserve_tool_calls: bool = False,
    ) -> Message:
        """Summarize *context* on top of *previous_summary*.

        Predictor errors propagate unchanged. If *signal* fires before the
        predictor returns, ``SummarizationCancelledError`` is raised and no
        message is produced.
        """
        if previous_summary:
            logger.debug("Previous summary: %s", previous_summary)

        tool_call_digest = ""
        if preserve_tool_calls:
            tool_call_digest = format_tool_call_digest(
                extract_tool_call_digest(context, self.delimiter)
            )

        formatted = self.formatter(list(context), format_options or FormatOptions())
        if self.debug:
            logger.debug("Summary buffer messages: %d", len(formatted))

        predicted = await _await_with_signal(
            self.predictor.predict_summary(formatted, previous_summary or "", signal),
            signal,
        )

        if self.debug:
            logger.debug("New summary: %s", predicted)

        return Message(role=Role.SYSTEM.value, content=predicted + tool_call_digest)


class LLMSummaryPredictor:
    """Default predictor: progressive summary prompt over an ``LLMProvider``.

    Providers with an async ``acomplete`` are awaited directly, so cancelling
    the predictor aborts the HTTP request.
    """

    def __init__(self, llm_provider: LLMProvider, config: SummarizationConfig | None = None) -> None:
        self.llm = llm_provider
        self.config = config or SummarizationConfig()

    async def predict_summary(
        self,
        messages: list[dict],
        previous_summary: str,
        signal: asyncio.Event | None = None,
    ) -> str:
        if signal is not None and signal.is_set():
            raise SummarizationCancelledError("Summarization cancelled before the request")
        prompt = PROGRESSIVE_SUMMARY_PROMPT.format(
            previous_summary=previous_summary or "(none)",
            new_lines=self._format_lines(messages),
        )
        system = "You are a conversation summarizer. Respond with the summary text only."
        acomplete = getattr(self.llm, "acomplete", None)
        if acomplete is not None:
            text = await acomplete(system=system, user=prompt, max_tokens=self.config.max_tokens)
        else:
            # Sync-only provider: a cancelled await discards the result
            text = await asyncio.to_thread(
                self.llm.complete,
                system=system,
                user=prompt,
                max_tokens=self.config.max_tokens,
            )
        return text.strip()

    def _format_lines(self, messages: list[dict]) -> str:
        """Format chat dicts as 'Prefix: content' lines."""
        lines: list[str] = []
        for m in messages:
            role = m.get("role", "")
            prefix = m.get("name")
            if not prefix:
                if role == Role.USER.value and self.config.user_label:
                    prefix = self.config.user_label
                elif role == Role.ASSISTANT.value and self.config.assistant_label:
                    prefix = self.config.assistant_label
                else:
                    prefix = DEFAULT_PREFIXES.get(role, role.capitalize())
            lines.append(f"{prefix}: {m.get('content', '')}")
        return "\n".join(lines)
