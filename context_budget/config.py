"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .types import (
    TRUNCATION_MODES,
    ContextBudgetConfig,
    ContextManagementConfig,
    SummarizationConfig,
)

CONFIG_FILENAMES = [
    "context-budget.yaml",
    "context-budget.yml",
    "context-budget.json",
    "contextbudget.yaml",
    "contextbudget.yml",
    "contextbudget.json",
]

# field name -> accepted raw keys (snake_case first, then the camelCase form
# used by application config files)
_CONTEXT_MANAGEMENT_KEYS: dict[str, tuple[str, ...]] = {
    "tool_truncation_threshold": ("tool_truncation_threshold", "toolTruncationThreshold"),
    "mcp_priority_boost": ("mcp_priority_boost", "mcpPriorityBoost"),
    "auto_enable_summarization": ("auto_enable_summarization", "autoEnableSummarization"),
    "max_tool_output_tokens": ("max_tool_output_tokens", "maxToolOutputTokens"),
    "preserve_tool_calls_in_summary": ("preserve_tool_calls_in_summary", "preserveToolCallsInSummary"),
    "mcp_delimiter": ("mcp_delimiter", "mcpDelimiter"),
    "framing_overhead_tokens": ("framing_overhead_tokens", "framingOverheadTokens"),
    "omission_marker": ("omission_marker", "omissionMarker"),
    "truncation_mode": ("truncation_mode", "truncationMode"),
}


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _first_set(raw: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _context_management_section(raw: Any) -> dict | None:
    if not isinstance(raw, dict):
        return None
    agents = raw.get("agents")
    if not isinstance(agents, dict):
        return None
    section = agents.get("context_management", agents.get("contextManagement"))
    return section if isinstance(section, dict) else None


def resolve_context_management(raw: Any) -> ContextManagementConfig:
    """Merge ``agents.context_management`` overrides over the defaults.

    Absent sections, absent keys and null values all fall back to defaults.
    Never raises; use ``validate_config`` to check the resulting values.
    """
    defaults = ContextManagementConfig()
    section = _context_management_section(raw)
    if section is None:
        return defaults

    values: dict[str, Any] = {}
    for field_name, keys in _CONTEXT_MANAGEMENT_KEYS.items():
        value = _first_set(section, keys)
        values[field_name] = getattr(defaults, field_name) if value is None else value

    # A boolean toggle is accepted for the boost: false disables it
    boost = values["mcp_priority_boost"]
    if boost is False:
        values["mcp_priority_boost"] = 0.0
    elif boost is True:
        values["mcp_priority_boost"] = defaults.mcp_priority_boost

    return ContextManagementConfig(**values)


def _build_config(raw: dict[str, Any]) -> ContextBudgetConfig:
    """Build a ContextBudgetConfig from a raw dict."""
    summ_raw = raw.get("summarization", {}) or {}
    summarization = SummarizationConfig(
        provider=summ_raw.get("provider", "ollama"),
        model=summ_raw.get("model", "qwen3:4b-instruct-2507-fp16"),
        max_tokens=summ_raw.get("max_tokens", 1000),
        temperature=summ_raw.get("temperature", 0.3),
        user_label=summ_raw.get("user_label"),
        assistant_label=summ_raw.get("assistant_label"),
    )

    return ContextBudgetConfig(
        version=str(raw.get("version", "0.1")),
        context_window=raw.get("context_window", 128_000),
        token_counter=raw.get("token_counter", "estimate"),
        context_management=resolve_context_management(raw),
        summarization=summarization,
        providers=raw.get("providers", {}) or {},
    )


def validate_config(config: ContextBudgetConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []
    cm = config.context_management

    if not isinstance(config.context_window, int) or config.context_window <= 0:
        errors.append(f"context_window must be a positive integer, got {config.context_window!r}")

    threshold = cm.tool_truncation_threshold
    if not isinstance(threshold, (int, float)) or not 0 < threshold <= 1:
        errors.append(f"tool_truncation_threshold must be in (0, 1], got {threshold!r}")

    if not isinstance(cm.mcp_priority_boost, (int, float)) or cm.mcp_priority_boost < 0:
        errors.append(f"mcp_priority_boost must be >= 0, got {cm.mcp_priority_boost!r}")

    if not isinstance(cm.max_tool_output_tokens, int) or cm.max_tool_output_tokens <= 0:
        errors.append(
            f"max_tool_output_tokens must be a positive integer, got {cm.max_tool_output_tokens!r}"
        )

    if not isinstance(cm.framing_overhead_tokens, int) or cm.framing_overhead_tokens < 0:
        errors.append(f"framing_overhead_tokens must be >= 0, got {cm.framing_overhead_tokens!r}")

    if not cm.mcp_delimiter or not isinstance(cm.mcp_delimiter, str):
        errors.append("mcp_delimiter must be a non-empty string")

    if not cm.omission_marker or not isinstance(cm.omission_marker, str):
        errors.append("omission_marker must be a non-empty string")

    if cm.truncation_mode not in TRUNCATION_MODES:
        errors.append(
            f"truncation_mode must be one of {', '.join(TRUNCATION_MODES)}, "
            f"got {cm.truncation_mode!r}"
        )

    # Check that summarization provider exists in providers
    if config.providers and config.summarization.provider not in config.providers:
        errors.append(
            f"Summarization provider '{config.summarization.provider}' "
            f"not found in providers section"
        )

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> ContextBudgetConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(raw)
