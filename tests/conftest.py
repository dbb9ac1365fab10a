"""
Pytest fixtures for diligent tests: scripted judges, fake runners and a
temporary report store.
"""

from __future__ import annotations

from typing import List, Union

import pytest

from diligent.errors import OracleError
from diligent.models import Verdict
from diligent.store import ReportStore
from diligent.tools.shell import CommandResult, Outcome


class ScriptedJudge:
    """
    Judge double returning verdicts in order; the last one repeats.
    An exception in the script is raised instead of returned.
    """

    def __init__(self, *script: Union[dict, Verdict, Exception]):
        self.script = list(script)
        self.prompts: List[str] = []

    def judge(self, context_prompt: str) -> Verdict:
        self.prompts.append(context_prompt)
        step = self.script[min(len(self.prompts), len(self.script)) - 1]
        if isinstance(step, Exception):
            raise step
        if isinstance(step, Verdict):
            return step
        return Verdict.model_validate(step)

    @property
    def calls(self) -> int:
        return len(self.prompts)


class ExplodingJudge:
    """Fails the test if the oracle is ever consulted."""

    def judge(self, context_prompt: str) -> Verdict:
        pytest.fail(f"oracle must not be called (prompt: {context_prompt!r})")


class FakeRunner:
    def __init__(self, result: CommandResult):
        self.result = result
        self.commands: List[str] = []

    def __call__(self, command: str, timeout: float) -> CommandResult:
        self.commands.append(command)
        return self.result


FLAG_FOREVER = {
    "flagged": True,
    "description": "still suspicious",
    "follow_up_command": "echo deeper",
    "follow_up_prompt": "look deeper",
}


@pytest.fixture
def ok_runner():
    return FakeRunner(CommandResult(output="some output\n", outcome=Outcome.OK))


@pytest.fixture
def timeout_runner():
    return FakeRunner(CommandResult(output="", outcome=Outcome.TIMED_OUT, detail="command execution timed out"))


@pytest.fixture
def failing_oracle():
    return ScriptedJudge(OracleError("boom"))


@pytest.fixture
def report_store(tmp_path):
    return ReportStore(str(tmp_path / "diligent.db"))
