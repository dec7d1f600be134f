"""CLI: context-budget truncate, fit, config show, config validate."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

import yaml

from ..config import load_config, validate_config
from ..types import LLMProviderError, Message


def _read_messages(path: str | None) -> list[Message]:
    """Read a JSON list of messages from a file or stdin."""
    if path:
        text = Path(path).read_text()
    else:
        print("Reading messages from stdin (Ctrl+D to end)...", file=sys.stderr)
        text = sys.stdin.read()

    raw = json.loads(text)
    if isinstance(raw, dict):
        raw = raw.get("messages", [])
    return [Message.from_dict(m) for m in raw if isinstance(m, dict)]


def _estimator(config):
    from ..token_counter import create_message_token_estimator
    return create_message_token_estimator(config.token_counter)


def _with_token_counts(messages: list[Message], estimator) -> list[Message]:
    for m in messages:
        if m.token_count is None:
            m.token_count = estimator(m)
    return messages


def cmd_truncate(args):
    """Run one tool-output truncation pass and print the result as JSON."""
    from ..core.truncator import truncate_tool_call_outputs

    config = load_config(args.config)
    estimator = _estimator(config)
    messages = _with_token_counts(_read_messages(args.input), estimator)
    max_tokens = args.max_context_tokens or config.context_window

    result = truncate_tool_call_outputs(
        messages, max_tokens, estimator, config.context_management,
    )
    print(json.dumps({
        "messages": [m.to_dict() for m in result.messages],
        "edited_positions": sorted(result.edited_positions),
        "stats": asdict(result.stats),
    }, indent=2, ensure_ascii=False))


def cmd_fit(args):
    """Truncate, then summarize the oldest messages if still over budget."""
    from ..core.manager import ContextBudgetManager
    from ..core.summarizer import ConversationSummarizer, LLMSummaryPredictor
    from ..providers import build_provider
    from ..types import FormatOptions

    config = load_config(args.config)
    estimator = _estimator(config)
    messages = _with_token_counts(_read_messages(args.input), estimator)
    max_tokens = args.max_context_tokens or config.context_window

    summ = config.summarization
    try:
        provider = build_provider(
            summ.provider, config.providers.get(summ.provider, {}), summ,
        )
    except LLMProviderError as e:
        print(f"Error creating summarization provider: {e}", file=sys.stderr)
        sys.exit(1)

    summarizer = ConversationSummarizer(
        LLMSummaryPredictor(provider, summ),
        delimiter=config.context_management.mcp_delimiter,
        debug=args.verbose,
    )
    manager = ContextBudgetManager(config, estimator, summarizer)

    try:
        result = asyncio.run(manager.fit(
            messages,
            max_tokens,
            previous_summary=args.previous_summary or "",
            format_options=FormatOptions(summ.user_label, summ.assistant_label),
        ))
    except LLMProviderError as e:
        print(f"Summarization failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps({
        "messages": [m.to_dict() for m in result.messages],
        "edited_positions": sorted(result.edited_positions),
        "stats": asdict(result.stats),
        "summarized_count": result.summarized_count,
        "total_tokens": result.total_tokens,
        "target_tokens": result.target_tokens,
    }, indent=2, ensure_ascii=False))


def cmd_config_show(args):
    """Print the resolved config as YAML."""
    config = load_config(args.config)
    print(yaml.safe_dump(asdict(config), sort_keys=False, allow_unicode=True), end="")


def cmd_config_validate(args):
    """Validate config file."""
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        print("Config validation errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)
    else:
        cm = config.context_management
        print("Config is valid.")
        print(f"  Context window: {config.context_window:,}")
        print(f"  Truncation threshold: {cm.tool_truncation_threshold}")
        print(f"  MCP priority boost: {cm.mcp_priority_boost}")
        print(f"  Max tool output tokens: {cm.max_tool_output_tokens}")
        print(f"  Auto summarization: {cm.auto_enable_summarization}")
        print(f"  Summarization: {config.summarization.provider} ({config.summarization.model})")


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="context-budget",
        description="Token budgeting for conversational-agent context windows",
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command")

    # truncate
    truncate_parser = subparsers.add_parser("truncate", help="Truncate old tool outputs")
    truncate_parser.add_argument("input", nargs="?", help="Input file (JSON messages)")
    truncate_parser.add_argument(
        "--max-context-tokens", "-m", type=int, help="Context window override",
    )

    # fit
    fit_parser = subparsers.add_parser("fit", help="Truncate + summarize to fit the budget")
    fit_parser.add_argument("input", nargs="?", help="Input file (JSON messages)")
    fit_parser.add_argument(
        "--max-context-tokens", "-m", type=int, help="Context window override",
    )
    fit_parser.add_argument("--previous-summary", help="Running summary to extend")

    # config
    config_parser = subparsers.add_parser("config", help="Config operations")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Show resolved config as YAML")
    config_sub.add_parser("validate", help="Validate config file")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "truncate":
        cmd_truncate(args)
    elif args.command == "fit":
        cmd_fit(args)
    elif args.command == "config":
        if args.config_command == "show":
            cmd_config_show(args)
        elif args.config_command == "validate":
            cmd_config_validate(args)
        else:
            print("Usage: context-budget config {show,validate}")
            sys.exit(1)


if __name__ == "__main__":
    main()
