"""Tests for the context-budget CLI."""

from __future__ import annotations

import json

import pytest
import yaml

from context_budget.cli.main import main
from context_budget.types import DEFAULT_OMISSION_MARKER


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "context-budget.yaml"
    path.write_text(yaml.safe_dump({"context_window": 2000}))
    return path


@pytest.fixture
def conversation_file(tmp_path):
    messages = [
        {"role": "user", "content": [{"type": "text", "text": "hi"}]},
        {"role": "assistant", "content": [
            {"type": "tool_call", "tool_call": {"name": "search", "input": {"q": "x"}, "output": "o" * 4000}},
        ]},
        {"role": "user", "content": [{"type": "text", "text": "thanks"}]},
    ]
    path = tmp_path / "conversation.json"
    path.write_text(json.dumps(messages))
    return path


def test_truncate(config_file, conversation_file, capsys):
    main(["-c", str(config_file), "truncate", str(conversation_file), "-m", "1000"])
    out = json.loads(capsys.readouterr().out)
    assert out["edited_positions"] == [1]
    assert out["stats"]["total_truncated"] == 1
    assert out["messages"][1]["content"][0]["tool_call"]["output"] == DEFAULT_OMISSION_MARKER
    assert [m["role"] for m in out["messages"]] == ["user", "assistant", "user"]


def test_truncate_uses_context_window_from_config(config_file, conversation_file, capsys):
    # 2000 * 0.75 leaves room for the whole conversation
    main(["-c", str(config_file), "truncate", str(conversation_file)])
    out = json.loads(capsys.readouterr().out)
    assert out["edited_positions"] == []


def test_config_show(config_file, capsys):
    main(["-c", str(config_file), "config", "show"])
    shown = yaml.safe_load(capsys.readouterr().out)
    assert shown["context_window"] == 2000
    assert shown["context_management"]["tool_truncation_threshold"] == 0.75


def test_config_validate_ok(config_file, capsys):
    main(["-c", str(config_file), "config", "validate"])
    assert "Config is valid." in capsys.readouterr().out


def test_config_validate_errors(tmp_path, capsys):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({"agents": {"context_management": {"tool_truncation_threshold": 2}}}))
    with pytest.raises(SystemExit) as exc:
        main(["-c", str(path), "config", "validate"])
    assert exc.value.code == 1
    assert "tool_truncation_threshold" in capsys.readouterr().out


def test_no_command(capsys):
    with pytest.raises(SystemExit):
        main([])


def test_fit_summarizes_oldest(config_file, tmp_path, capsys, monkeypatch):
    from tests.conftest import MockLLMProvider
    import context_budget.providers as providers

    llm = MockLLMProvider("condensed")
    monkeypatch.setattr(providers, "build_provider", lambda name, raw, summ=None: llm)
    path = tmp_path / "long.json"
    path.write_text(json.dumps([
        {"role": "user" if i % 2 == 0 else "assistant", "content": "w" * 1600}
        for i in range(4)
    ]))

    main(["-c", str(config_file), "fit", str(path), "-m", "1000", "--previous-summary", "earlier"])
    out = json.loads(capsys.readouterr().out)
    assert out["summarized_count"] == 3
    assert out["messages"][0]["role"] == "system"
    assert out["messages"][0]["content"] == "condensed"
    assert len(out["messages"]) == 2
    assert "earlier" in llm.calls[0]["user"]
