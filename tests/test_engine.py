"""
Tests for the recursive analysis engine (Analyzer.analyze).

Commands are mostly served by FakeRunner doubles and verdicts always by
ScriptedJudge; no network is involved.
"""

from __future__ import annotations

import os

import pytest

from diligent.engine import Analyzer
from diligent.errors import OracleSchemaError, OracleTransportError
from diligent.tools.shell import CommandResult, Outcome
from tests.conftest import FLAG_FOREVER, ExplodingJudge, FakeRunner, ScriptedJudge


def _analyzer(judge, runner, **kw) -> Analyzer:
    return Analyzer(judge=judge, runner=runner, **kw)


def test_empty_command_is_terminal_leaf(ok_runner):
    item = _analyzer(ExplodingJudge(), ok_runner).analyze("anything", "", 0)
    assert item.flagged is False
    assert item.description == "No command provided"
    assert item.raw_output is None
    assert item.follow_ups == []
    assert ok_runner.commands == []


def test_timeout_never_reaches_oracle(timeout_runner):
    item = _analyzer(ExplodingJudge(), timeout_runner).analyze("check", "sleep 60", 0)
    assert item.flagged is False
    assert "timed out" in item.description
    assert item.raw_output is None
    assert item.follow_ups == []


def test_exec_error_keeps_captured_output():
    runner = FakeRunner(CommandResult(
        output="partial\n",
        outcome=Outcome.EXEC_ERROR,
        detail="failed to execute command: false, exit status 1",
    ))
    item = _analyzer(ExplodingJudge(), runner).analyze("check", "false", 0)
    assert item.flagged is False
    assert item.description.startswith("Command execution error:")
    assert item.raw_output == "partial\n"


def test_output_truncated_before_judging():
    runner = FakeRunner(CommandResult(output="x" * 50, outcome=Outcome.OK))
    judge = ScriptedJudge({"flagged": False, "description": "clear"})
    item = _analyzer(judge, runner, max_output_chars=10).analyze("check", "cat big", 0)
    assert item.raw_output == "x" * 10
    assert "x" * 11 not in judge.prompts[0]


def test_context_prompt_uses_semantic_prompt(ok_runner):
    judge = ScriptedJudge({"flagged": False, "description": "clear"})
    _analyzer(judge, ok_runner).analyze("Look for odd users.", "who", 0)
    sent = judge.prompts[0]
    assert sent.startswith("Look for odd users.")
    assert "who" in sent
    assert "some output" in sent


def test_oracle_errors_are_absorbed(ok_runner):
    for err in (OracleTransportError("throttled"), OracleSchemaError("not JSON")):
        item = _analyzer(ScriptedJudge(err), ok_runner).analyze("check", "ps", 0)
        assert item.flagged is False
        assert item.description == f"Oracle error: {err}"
        assert item.raw_output == "some output\n"
        assert item.follow_ups == []


def test_unexpected_judge_failure_is_absorbed(ok_runner):
    item = _analyzer(ScriptedJudge(KeyError("content")), ok_runner).analyze("check", "ps", 0)
    assert item.flagged is False
    assert item.description.startswith("Oracle error:")


def test_clear_verdict_populates_item(ok_runner):
    judge = ScriptedJudge({"flagged": False, "description": "clear", "alert": ""})
    item = _analyzer(judge, ok_runner).analyze("check", "ps", 0)
    assert item.flagged is False
    assert item.description == "clear"
    assert item.alert is None
    assert item.raw_output == "some output\n"
    assert item.follow_ups == []


def test_flagged_without_follow_up_does_not_recurse(ok_runner):
    judge = ScriptedJudge({
        "flagged": True,
        "description": "odd",
        "alert": "check this",
        "follow_up_command": "echo more",
        "follow_up_prompt": "",
    })
    item = _analyzer(judge, ok_runner).analyze("check", "ps", 0)
    assert item.flagged is True
    assert item.alert == "check this"
    assert item.follow_ups == []
    assert judge.calls == 1


def test_unflagged_verdict_ignores_suggested_follow_up(ok_runner):
    judge = ScriptedJudge({
        "flagged": False,
        "description": "fine",
        "follow_up_command": "echo more",
        "follow_up_prompt": "more",
    })
    item = _analyzer(judge, ok_runner).analyze("check", "ps", 0)
    assert item.follow_ups == []
    assert ok_runner.commands == ["ps"]


def test_single_follow_up_is_chased(ok_runner):
    judge = ScriptedJudge(
        {"flagged": True, "description": "susp", "follow_up_command": "echo f", "follow_up_prompt": "deeper"},
        {"flagged": False, "description": "ok now"},
    )
    item = _analyzer(judge, ok_runner).analyze("check", "echo ok", 0)
    assert item.flagged is True
    assert len(item.follow_ups) == 1
    child = item.follow_ups[0]
    assert child.command == "echo f"
    assert child.prompt == "deeper"
    assert child.description == "ok now"
    assert child.follow_ups == []
    assert ok_runner.commands == ["echo ok", "echo f"]


def test_recursion_bounded_by_max_followups(ok_runner):
    judge = ScriptedJudge(FLAG_FOREVER)
    item = _analyzer(judge, ok_runner, max_followups=5).analyze("check", "ps", 0)
    assert item.depth() == 5
    assert judge.calls == 6
    assert all(len(node.follow_ups) <= 1 for node in item.walk())


def test_last_level_recurses_exactly_once(ok_runner):
    judge = ScriptedJudge(FLAG_FOREVER)
    item = _analyzer(judge, ok_runner, max_followups=5).analyze("check", "ps", 4)
    assert len(item.follow_ups) == 1
    child = item.follow_ups[0]
    assert child.flagged is True
    assert child.follow_ups == []
    assert judge.calls == 2


def test_depth_at_limit_never_recurses(ok_runner):
    judge = ScriptedJudge(FLAG_FOREVER)
    item = _analyzer(judge, ok_runner, max_followups=2).analyze("check", "ps", 2)
    assert item.flagged is True
    assert item.follow_ups == []


def test_failed_follow_up_is_kept_as_child():
    runner = FakeRunner(CommandResult(output="", outcome=Outcome.TIMED_OUT, detail="command execution timed out"))
    judge = ScriptedJudge(FLAG_FOREVER)

    calls = []

    def runner_first_ok(command, timeout):
        calls.append(command)
        if len(calls) == 1:
            return CommandResult(output="root\n", outcome=Outcome.OK)
        return runner(command, timeout)

    item = _analyzer(judge, runner_first_ok).analyze("check", "ps", 0)
    assert len(item.follow_ups) == 1
    assert item.follow_ups[0].flagged is False
    assert "timed out" in item.follow_ups[0].description
    assert judge.calls == 1


def test_command_timeout_passed_to_runner():
    seen = []

    def runner(command, timeout):
        seen.append(timeout)
        return CommandResult(output="", outcome=Outcome.OK)

    _analyzer(ScriptedJudge({"flagged": False}), runner, command_timeout=3.5).analyze("p", "true", 0)
    assert seen == [3.5]


@pytest.mark.skipif(os.name == "nt", reason="uses POSIX sh")
def test_nul_byte_in_follow_up_command_is_absorbed():
    judge = ScriptedJudge({
        "flagged": True,
        "description": "susp",
        "follow_up_command": "echo a\u0000b",
        "follow_up_prompt": "deeper",
    })
    item = Analyzer(judge=judge).analyze("check", "echo ok", 0)

    child = item.follow_ups[0]
    assert child.flagged is False
    assert child.description.startswith("Command execution error:")
    assert child.follow_ups == []
    assert judge.calls == 1


def test_runner_exception_is_absorbed():
    def broken_runner(command, timeout):
        raise RuntimeError("fork failed")

    item = _analyzer(ExplodingJudge(), broken_runner).analyze("check", "ps", 0)
    assert item.flagged is False
    assert "fork failed" in item.description
    assert item.raw_output is None
