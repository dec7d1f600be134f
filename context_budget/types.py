"""All dataclasses, Protocols, and type aliases for context-budget."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable


DEFAULT_MCP_DELIMITER = "§"
DEFAULT_OMISSION_MARKER = "[OUTPUT_OMITTED_FOR_BREVITY]"
DEFAULT_FRAMING_OVERHEAD_TOKENS = 3
TRUNCATION_MODES = ("omit", "graduated")


# ---------------------------------------------------------------------------
# Message & Content
# ---------------------------------------------------------------------------

class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class ToolCall:
    """A single tool invocation and its (possibly pending) output."""
    name: str | None = None
    input: Any = None
    output: Any = None  # str, JSON-like value, or None while pending
    id: str | None = None

    @classmethod
    def from_dict(cls, raw: dict) -> ToolCall:
        """Build from either the inline shape or an OpenAI ``function`` call."""
        function = raw.get("function")
        if isinstance(function, dict):
            return cls(
                name=function.get("name"),
                input=function.get("arguments", raw.get("input")),
                output=raw.get("output"),
                id=raw.get("id"),
            )
        return cls(
            name=raw.get("name"),
            input=raw.get("input", raw.get("args")),
            output=raw.get("output"),
            id=raw.get("id"),
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"name": self.name, "input": self.input, "output": self.output}
        if self.id is not None:
            d["id"] = self.id
        return d


@dataclass
class ContentPart:
    """Tagged content block. Only ``tool_call`` parts matter to the engine."""
    type: str
    text: str | None = None
    tool_call: ToolCall | None = None
    extra: dict = field(default_factory=dict)  # unknown keys, preserved verbatim

    @classmethod
    def from_dict(cls, raw: dict) -> ContentPart:
        part_type = raw.get("type", "")
        extra = {k: v for k, v in raw.items() if k not in ("type", "text", "tool_call")}
        tool_call = None
        if part_type == "tool_call" and isinstance(raw.get("tool_call"), dict):
            tool_call = ToolCall.from_dict(raw["tool_call"])
        text = raw.get("text")
        return cls(
            type=part_type,
            text=text if isinstance(text, str) else None,
            tool_call=tool_call,
            extra=extra,
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"type": self.type}
        if self.text is not None:
            d["text"] = self.text
        if self.tool_call is not None:
            d["tool_call"] = self.tool_call.to_dict()
        d.update(self.extra)
        return d


@dataclass
class Message:
    role: str  # "system", "user", "assistant", "tool"
    content: list[ContentPart] | str | None = None
    token_count: int | None = None
    tool_calls: list[ToolCall] | None = None  # legacy field
    metadata: dict | None = None

    @classmethod
    def from_dict(cls, raw: dict) -> Message:
        """Parse the JSON wire shape, normalizing tool-call variants once."""
        content = raw.get("content")
        if isinstance(content, list):
            content = [
                ContentPart.from_dict(item) if isinstance(item, dict) else item
                for item in content
            ]
        token_count = raw.get("token_count", raw.get("tokenCount"))
        tool_calls = raw.get("tool_calls")
        if isinstance(tool_calls, list):
            tool_calls = [ToolCall.from_dict(tc) for tc in tool_calls if isinstance(tc, dict)]
        else:
            tool_calls = None
        return cls(
            role=raw.get("role", Role.USER.value),
            content=content,
            token_count=token_count if isinstance(token_count, int) else None,
            tool_calls=tool_calls,
            metadata=raw.get("metadata"),
        )

    def to_dict(self) -> dict:
        content = self.content
        if isinstance(content, list):
            content = [p.to_dict() if isinstance(p, ContentPart) else p for p in content]
        d: dict[str, Any] = {
            "role": self.role.value if isinstance(self.role, Role) else self.role,
            "content": content,
        }
        if self.token_count is not None:
            d["token_count"] = self.token_count
        if self.tool_calls:
            d["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.metadata is not None:
            d["metadata"] = self.metadata
        return d


TokenEstimator = Callable[[Message], int]


# ---------------------------------------------------------------------------
# Truncation
# ---------------------------------------------------------------------------

@dataclass
class EvictionStats:
    total_truncated: int = 0
    mcp_truncated: int = 0   # truncations of privileged (namespaced) tool calls
    tokens_saved: int = 0    # characters removed from stored outputs


@dataclass
class TruncationResult:
    messages: list[Message] = field(default_factory=list)
    edited_positions: set[int] = field(default_factory=set)
    stats: EvictionStats = field(default_factory=EvictionStats)


@dataclass
class BudgetResult:
    """Outcome of one full budgeting pass (truncation + optional summary)."""
    messages: list[Message] = field(default_factory=list)
    edited_positions: set[int] = field(default_factory=set)  # positions before summarization
    stats: EvictionStats = field(default_factory=EvictionStats)
    summary: Message | None = None
    summarized_count: int = 0
    total_tokens: int = 0
    target_tokens: float = 0.0


# ---------------------------------------------------------------------------
# Summarization
# ---------------------------------------------------------------------------

@dataclass
class FormatOptions:
    """Human-readable labels used as message prefixes for the predictor."""
    user_label: str | None = None
    assistant_label: str | None = None


@dataclass
class ToolCallDigestEntry:
    name: str | None
    is_privileged: bool
    input: Any = None
    output_preview: str | None = None  # None while the call is pending


class SummarizationCancelledError(Exception):
    """The cancellation signal fired before the predictor returned."""


class SummaryPredictor(Protocol):
    async def predict_summary(
        self,
        messages: list[dict],
        previous_summary: str,
        signal: asyncio.Event | None = None,
    ) -> str: ...


MessageFormatter = Callable[[list[Message], FormatOptions], list[dict]]


# ---------------------------------------------------------------------------
# LLM Provider
# ---------------------------------------------------------------------------

class LLMProviderError(Exception):
    def __init__(self, message: str, provider: str, status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


@runtime_checkable
class LLMProvider(Protocol):
    """Sync completion interface; httpx providers also offer ``acomplete``."""

    def complete(self, system: str, user: str, max_tokens: int) -> str: ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class ContextManagementConfig:
    tool_truncation_threshold: float = 0.75
    mcp_priority_boost: float = 0.15
    auto_enable_summarization: bool = True
    max_tool_output_tokens: int = 500
    preserve_tool_calls_in_summary: bool = True
    mcp_delimiter: str = DEFAULT_MCP_DELIMITER
    framing_overhead_tokens: int = DEFAULT_FRAMING_OVERHEAD_TOKENS
    omission_marker: str = DEFAULT_OMISSION_MARKER
    truncation_mode: str = "omit"  # "omit" or "graduated"


@dataclass
class SummarizationConfig:
    provider: str = "ollama"
    model: str = "qwen3:4b-instruct-2507-fp16"
    max_tokens: int = 1000
    temperature: float = 0.3
    user_label: str | None = None
    assistant_label: str | None = None


@dataclass
class ContextBudgetConfig:
    version: str = "0.1"
    context_window: int = 128_000
    token_counter: str = "estimate"
    context_management: ContextManagementConfig = field(default_factory=ContextManagementConfig)
    summarization: SummarizationConfig = field(default_factory=SummarizationConfig)
    providers: dict[str, dict] = field(default_factory=dict)
