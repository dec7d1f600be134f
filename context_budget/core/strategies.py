"""Output truncation strategies: flat cut, head/tail split, structure-aware JSON."""

from __future__ import annotations

import json
from typing import Any

MAX_CHAR = 255
MAX_TOOL_OUTPUT_TOKENS = 500
CHARS_PER_TOKEN = 4

ELLIPSIS = "..."
TRUNCATION_NOTICE = " [text truncated for brevity]"
COMPLEX_OBJECT_FALLBACK = "[Complex object - truncated for brevity]"


def truncate_text(text: str, max_length: int = MAX_CHAR) -> str:
    """Cut *text* to *max_length* characters and append the notice.

    The result may exceed *max_length* by the length of the notice.
    """
    if len(text) > max_length:
        return f"{text[:max_length]}{ELLIPSIS}{TRUNCATION_NOTICE}"
    return text


def smart_truncate_text(text: str, max_length: int = MAX_CHAR) -> str:
    """Keep equal head and tail segments joined by an ellipsis.

    The result, including the notice, stays within *max_length* characters.
    """
    half = (max_length - len(ELLIPSIS) - len(TRUNCATION_NOTICE)) // 2

    if len(text) > max_length:
        if half <= 0:
            return f"{ELLIPSIS}{TRUNCATION_NOTICE}"
        return f"{text[:half]}{ELLIPSIS}{text[len(text) - half:]}{TRUNCATION_NOTICE}"

    return text


def smart_truncate_tool_output(output: Any, max_tokens: float = MAX_TOOL_OUTPUT_TOKENS) -> str:
    """Shrink a tool output to roughly *max_tokens* (4 chars per token).

    Small structured outputs are returned as their full JSON serialization.
    Large ones become a JSON summary object that keeps shape metadata
    (``_type``, ``_keys``, ``_originalLength``) plus a preview.
    """
    budget = int(max_tokens * CHARS_PER_TOKEN)

    if isinstance(output, str):
        if len(output) <= budget:
            return output
        return smart_truncate_text(output, budget)

    if isinstance(output, (dict, list, tuple)):
        try:
            json_str = json.dumps(output, indent=2, ensure_ascii=False)
            if len(json_str) <= budget:
                return json_str

            summary = {
                "_truncated": True,
                "_originalLength": len(json_str),
                "_preview": json_str[: int(max_tokens * 3)],
                "_type": "object" if isinstance(output, dict) else "array",
                "_keys": len(output),
            }
            return json.dumps(summary, indent=2, ensure_ascii=False)
        except (TypeError, ValueError):
            return COMPLEX_OBJECT_FALLBACK

    # Scalars (numbers, booleans) and anything else: truncate their text form
    return smart_truncate_text(str(output), budget)


def is_truncated_output(output: Any, omission_marker: str, graduated: bool = False) -> bool:
    """True when *output* was already produced by a truncation pass.

    Only graduated passes leave notice or summary shapes behind, so those are
    recognized only when *graduated* is set.
    """
    if not isinstance(output, str):
        return False
    if output == omission_marker:
        return True
    if not graduated:
        return False
    if output == COMPLEX_OBJECT_FALLBACK or output.endswith(TRUNCATION_NOTICE):
        return True
    return output.startswith('{\n  "_truncated": true')
