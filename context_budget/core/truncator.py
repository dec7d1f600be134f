"""Tool-call output truncation: budget-aware eviction of large tool outputs.

Walks the history from newest to oldest keeping a running token tally.  Once
the tally crosses the target (``max_context_tokens * threshold``), tool-call
outputs on that message and every older one are replaced when they exceed
``max_tool_output_tokens * 4`` characters.  Messages carrying a privileged
(namespaced) tool call get a raised threshold and so survive a little longer.

Input messages are never mutated; rewritten messages are new values and
untouched messages are returned as the same objects.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any, Sequence

from ..token_counter import create_message_token_estimator
from ..types import (
    ContentPart,
    ContextManagementConfig,
    EvictionStats,
    Message,
    TokenEstimator,
    ToolCall,
    TruncationResult,
)
from .classifier import has_privileged_tool_call, is_privileged
from .strategies import CHARS_PER_TOKEN, is_truncated_output, smart_truncate_tool_output

logger = logging.getLogger(__name__)

PRIVILEGED_OUTPUT_MULTIPLIER = 1.5


class ToolOutputTruncator:
    """Replaces old, oversized tool outputs until the history fits the target."""

    def __init__(
        self,
        config: ContextManagementConfig | None = None,
        token_estimator: TokenEstimator | None = None,
    ) -> None:
        self.config = config or ContextManagementConfig()
        if token_estimator is None:
            token_estimator = create_message_token_estimator()
        self.token_estimator = token_estimator

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def target_tokens(self, max_context_tokens: int) -> float:
        return max_context_tokens * self.config.tool_truncation_threshold

    def truncate(self, messages: Sequence[Message], max_context_tokens: int) -> TruncationResult:
        """Run one eviction pass and return the new list, edited positions and stats."""
        if max_context_tokens <= 0:
            raise ValueError(f"max_context_tokens must be > 0, got {max_context_tokens}")

        target = self.target_tokens(max_context_tokens)
        boost = self.config.mcp_priority_boost or 0.0
        trigger_chars = self.config.max_tool_output_tokens * CHARS_PER_TOKEN

        running = self.config.framing_overhead_tokens
        processed: list[Message] = []
        edited: set[int] = set()
        stats = EvictionStats()

        for position in range(len(messages) - 1, -1, -1):
            message = messages[position]
            original_tokens = self.count_tokens(message)
            running += original_tokens

            privileged = has_privileged_tool_call(message, self.config.mcp_delimiter)
            threshold = target * (1 + boost) if privileged else target

            if running < threshold:
                processed.append(message)
                continue

            rewritten = self._truncate_message(message, trigger_chars, stats)
            if rewritten is None:
                processed.append(message)
                continue

            running = running - original_tokens + rewritten.token_count
            edited.add(position)
            processed.append(rewritten)
            logger.debug(
                "Truncated tool outputs at position %d (%d -> %d tokens)",
                position, original_tokens, rewritten.token_count,
            )

        processed.reverse()

        if edited:
            logger.info(
                "Tool output truncation: %d outputs in %d messages (%d privileged), "
                "%d chars saved, target=%d",
                stats.total_truncated, len(edited), stats.mcp_truncated,
                stats.tokens_saved, int(target),
            )

        return TruncationResult(messages=processed, edited_positions=edited, stats=stats)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def count_tokens(self, message: Message) -> int:
        if isinstance(message.token_count, int):
            return message.token_count
        return self.token_estimator(message)

    def _truncate_message(
        self,
        message: Message,
        trigger_chars: int,
        stats: EvictionStats,
    ) -> Message | None:
        """Return a rewritten copy of *message*, or None if nothing changed."""
        content = message.content
        if not isinstance(content, (list, tuple)):
            return None

        tool_positions = [
            i for i, part in enumerate(content)
            if isinstance(part, ContentPart) and part.type == "tool_call"
        ]
        if not tool_positions:
            return None

        new_content = list(content)
        modified = False
        graduated = self.config.truncation_mode == "graduated"

        for i in reversed(tool_positions):
            part = new_content[i]
            tool_call = part.tool_call
            if not isinstance(tool_call, ToolCall) or not tool_call.output:
                continue
            if is_truncated_output(tool_call.output, self.config.omission_marker, graduated):
                continue

            output_length = self._output_length(tool_call.output)
            if output_length <= trigger_chars:
                continue

            privileged = is_privileged(tool_call, self.config.mcp_delimiter)
            budget_tokens = self.config.max_tool_output_tokens
            if privileged:
                budget_tokens = budget_tokens * PRIVILEGED_OUTPUT_MULTIPLIER

            new_output = self._replacement(tool_call.output, budget_tokens)
            # Pretty-printed JSON can come out longer than the compact form
            if new_output == tool_call.output or len(new_output) >= output_length:
                continue
            new_content[i] = replace(part, tool_call=replace(tool_call, output=new_output))
            modified = True

            stats.total_truncated += 1
            if privileged:
                stats.mcp_truncated += 1
            stats.tokens_saved += max(0, output_length - len(new_output))

        if not modified:
            return None

        rewritten = replace(message, content=new_content)
        return replace(rewritten, token_count=self.token_estimator(rewritten))

    def _replacement(self, output: Any, budget_tokens: float) -> str:
        if self.config.truncation_mode == "graduated":
            return smart_truncate_tool_output(output, budget_tokens)
        return self.config.omission_marker

    @staticmethod
    def _output_length(output: Any) -> int:
        if isinstance(output, str):
            return len(output)
        try:
            return len(json.dumps(output, separators=(",", ":"), ensure_ascii=False))
        except (TypeError, ValueError):
            return len(str(output))


def truncate_tool_call_outputs(
    messages: Sequence[Message],
    max_context_tokens: int,
    token_estimator: TokenEstimator,
    config: ContextManagementConfig | None = None,
) -> TruncationResult:
    """Functional entry point for a single eviction pass."""
    return ToolOutputTruncator(config, token_estimator).truncate(messages, max_context_tokens)
