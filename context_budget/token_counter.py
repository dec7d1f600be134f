"""Token counting utilities."""

from __future__ import annotations

import json
from typing import Callable

from .types import ContentPart, Message, TokenEstimator

# Per-message framing (role markers, separators)
MESSAGE_OVERHEAD_TOKENS = 3


def estimate_tokens(text: str) -> int:
    """Rough estimate: ~4 chars per token."""
    return max(1, len(text) // 4)


def create_token_counter(mode: str = "estimate") -> Callable[[str], int]:
    """Factory for token counters.

    Modes:
        "estimate" - len(text) // 4 (zero deps)
        "tiktoken" - requires tiktoken package
        "callable:module.path:func" - custom callable
    """
    if mode == "estimate":
        return estimate_tokens

    if mode == "tiktoken":
        try:
            import tiktoken
            enc = tiktoken.get_encoding("cl100k_base")
            return lambda text: len(enc.encode(text))
        except ImportError:
            raise ImportError(
                "tiktoken not installed. Install with: pip install context-budget[tiktoken]"
            )

    if mode.startswith("callable:"):
        # Format: callable:module.path:func_name
        parts = mode[len("callable:"):].rsplit(":", 1)
        if len(parts) != 2:
            raise ValueError(f"Invalid callable spec: {mode}. Expected callable:module:func")
        module_path, func_name = parts
        import importlib
        mod = importlib.import_module(module_path)
        return getattr(mod, func_name)

    raise ValueError(f"Unknown token counter mode: {mode}")


def _part_text(part: object) -> str:
    if not isinstance(part, ContentPart):
        return str(part)
    if part.type == "tool_call" and part.tool_call is not None:
        tc = part.tool_call
        output = tc.output
        if output is not None and not isinstance(output, str):
            try:
                output = json.dumps(output, ensure_ascii=False)
            except (TypeError, ValueError):
                output = str(output)
        return f"{tc.name or ''} {_stringify(tc.input)} {output or ''}"
    return part.text or ""


def _stringify(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def message_text(message: Message) -> str:
    """Flatten a message's content into the text that would be sent to a model."""
    content = message.content
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, (list, tuple)):
        return "\n".join(_part_text(p) for p in content)
    return str(content)


def create_message_token_estimator(
    counter: Callable[[str], int] | str = "estimate",
) -> TokenEstimator:
    """Wrap a text counter (or a counter mode) into a ``Message -> int`` estimator."""
    if isinstance(counter, str):
        counter = create_token_counter(counter)

    def estimate(message: Message) -> int:
        role = message.role.value if hasattr(message.role, "value") else str(message.role)
        return counter(role) + counter(message_text(message)) + MESSAGE_OVERHEAD_TOKENS

    return estimate
