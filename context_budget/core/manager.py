"""ContextBudgetManager: one budgeting pass (truncate, then summarize if still over)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Sequence

from ..types import (
    BudgetResult,
    ContextBudgetConfig,
    ContextManagementConfig,
    FormatOptions,
    Message,
    TokenEstimator,
)
from .summarizer import ConversationSummarizer
from .truncator import ToolOutputTruncator

logger = logging.getLogger(__name__)


class ContextBudgetManager:
    """Keep a conversation under ``max_context_tokens * threshold``.

    Tool outputs are truncated first.  When the history is still at or above
    the target and auto-summarization is enabled, the oldest messages that do
    not fit are collapsed into one system summary message.
    """

    def __init__(
        self,
        config: ContextManagementConfig | ContextBudgetConfig | None = None,
        token_estimator: TokenEstimator | None = None,
        summarizer: ConversationSummarizer | None = None,
    ) -> None:
        if isinstance(config, ContextBudgetConfig):
            config = config.context_management
        self.config = config or ContextManagementConfig()
        self.truncator = ToolOutputTruncator(self.config, token_estimator)
        self.token_estimator = self.truncator.token_estimator
        self.summarizer = summarizer

    def measure(self, messages: Sequence[Message]) -> int:
        """Total tokens of *messages* including the fixed framing overhead."""
        return self.config.framing_overhead_tokens + sum(
            self.truncator.count_tokens(m) for m in messages
        )

    def needs_summarization(self, messages: Sequence[Message], max_context_tokens: int) -> bool:
        return self.measure(messages) >= self.truncator.target_tokens(max_context_tokens)

    async def fit(
        self,
        messages: Sequence[Message],
        max_context_tokens: int,
        *,
        previous_summary: str = "",
        format_options: FormatOptions | None = None,
        signal: asyncio.Event | None = None,
    ) -> BudgetResult:
        """Truncate, then summarize the oldest window if still over target.

        The newest message is always kept, even when it alone exceeds the
        target; every older message that does not fit is summarized.  With a
        single message there is nothing to summarize and the truncated list
        is returned as is.
        """
        truncation = self.truncator.truncate(messages, max_context_tokens)
        target = self.truncator.target_tokens(max_context_tokens)
        total = self.measure(truncation.messages)

        result = BudgetResult(
            messages=truncation.messages,
            edited_positions=truncation.edited_positions,
            stats=truncation.stats,
            total_tokens=total,
            target_tokens=target,
        )

        if total < target:
            return result

        if not self.config.auto_enable_summarization:
            logger.info("Over target (%d/%d tokens); summarization disabled", total, int(target))
            return result

        if self.summarizer is None:
            logger.warning(
                "Over target (%d/%d tokens) but no summarizer configured. "
                "Configure a summarization provider.",
                total, int(target),
            )
            return result

        window, kept = self._split_window(truncation.messages, target)
        if not window:
            logger.info("Only the newest message remains; nothing to summarize")
            return result

        logger.info(
            "Summarizing %d oldest messages (%d/%d tokens)", len(window), total, int(target),
        )
        summary = await self.summarizer.summarize(
            window,
            previous_summary,
            format_options=format_options,
            signal=signal,
            preserve_tool_calls=self.config.preserve_tool_calls_in_summary,
        )
        summary = replace(summary, token_count=self.token_estimator(summary))

        result.messages = [summary] + kept
        result.summary = summary
        result.summarized_count = len(window)
        result.total_tokens = self.measure(result.messages)
        return result

    def _split_window(
        self,
        messages: list[Message],
        target: float,
    ) -> tuple[list[Message], list[Message]]:
        """Split into (oldest window to summarize, newest messages that fit)."""
        running = self.config.framing_overhead_tokens
        keep_from = len(messages)
        for i in range(len(messages) - 1, -1, -1):
            running += self.truncator.count_tokens(messages[i])
            if running >= target and i < len(messages) - 1:
                break
            keep_from = i
        return messages[:keep_from], messages[keep_from:]
