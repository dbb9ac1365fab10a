# diligent/engine.py
from enum import Enum
from typing import Callable, List

from diligent.config import Settings
from diligent.errors import OracleError
from diligent.logger import get_logger
from diligent.models import AnalysisItem
from diligent.oracle import Judge
from diligent.tools import shell
from diligent.tools.render import context_prompt, truncate

logger = get_logger(__name__)

Runner = Callable[[str, float], shell.CommandResult]


class NodeState(str, Enum):
    NO_COMMAND = "no_command"
    EXEC_FAILED = "exec_failed"
    ORACLE_FAILED = "oracle_failed"
    CLEAR = "clear"
    FLAGGED_NO_FOLLOWUP = "flagged_no_followup"
    FLAGGED_WITH_FOLLOWUP = "flagged_with_followup"


class Analyzer:
    """
    Turns a (prompt, command) pair into a tree of AnalysisItems.

    Each step runs the command, truncates its output, asks the judge for a
    verdict and, when the verdict is flagged and proposes a follow-up, chases
    that single follow-up one level deeper. Failures never escape `analyze`:
    they end up in the item's description, not flagged.
    """

    def __init__(
        self,
        judge: Judge,
        max_followups: int = 5,
        max_output_chars: int = 3000,
        command_timeout: float = 10.0,
        runner: Runner = shell.run,
    ):
        self.judge = judge
        self.max_followups = max_followups
        self.max_output_chars = max_output_chars
        self.command_timeout = command_timeout
        self.runner = runner

    @classmethod
    def from_settings(cls, judge: Judge, s: Settings, runner: Runner = shell.run) -> "Analyzer":
        return cls(
            judge=judge,
            max_followups=s.max_followups,
            max_output_chars=s.max_output_chars,
            command_timeout=s.command_timeout,
            runner=runner,
        )

    def analyze(self, prompt: str, command: str, depth: int = 0) -> AnalysisItem:
        log = logger.bind(depth=depth, command=command)

        # -------------------------------
        # No command: terminal leaf
        # -------------------------------
        if not command.strip():
            log.info("analysis_complete", state=NodeState.NO_COMMAND.value)
            return AnalysisItem(
                prompt=prompt,
                command=command,
                flagged=False,
                description="No command provided",
            )

        # -------------------------------
        # Execute
        # -------------------------------
        log.info("command_executing")
        try:
            result = self.runner(command, self.command_timeout)
        except Exception as e:
            log.exception("runner_unexpected_error")
            result = shell.CommandResult(
                output="",
                outcome=shell.Outcome.EXEC_ERROR,
                detail=f"failed to execute command: {command}, error: {e}",
            )
        if not result.ok:
            log.warning(
                "analysis_complete",
                state=NodeState.EXEC_FAILED.value,
                outcome=result.outcome.value,
                detail=result.detail,
            )
            return AnalysisItem(
                prompt=prompt,
                command=command,
                flagged=False,
                description=f"Command execution error: {result.detail}",
                raw_output=truncate(result.output, self.max_output_chars) or None,
            )

        output = truncate(result.output, self.max_output_chars)

        # -------------------------------
        # Judge
        # -------------------------------
        try:
            verdict = self.judge.judge(context_prompt(prompt, command, output))
        except OracleError as e:
            log.warning("analysis_complete", state=NodeState.ORACLE_FAILED.value, error=str(e))
            return self._oracle_failed(prompt, command, output, e)
        except Exception as e:
            log.exception("oracle_unexpected_error")
            return self._oracle_failed(prompt, command, output, e)

        # -------------------------------
        # Follow-up gate (one per level)
        # -------------------------------
        follow_ups: List[AnalysisItem] = []
        nxt = verdict.follow_up
        if verdict.flagged and nxt is not None and depth < self.max_followups:
            state = NodeState.FLAGGED_WITH_FOLLOWUP
            log.info("follow_up_scheduled", follow_up_command=nxt.command)
            follow_ups.append(self.analyze(nxt.prompt, nxt.command, depth + 1))
        elif verdict.flagged:
            state = NodeState.FLAGGED_NO_FOLLOWUP
        else:
            state = NodeState.CLEAR

        log.info("analysis_complete", state=state.value, flagged=verdict.flagged)
        return AnalysisItem(
            prompt=prompt,
            command=command,
            flagged=verdict.flagged,
            description=verdict.description,
            alert=verdict.alert or None,
            raw_output=output,
            follow_ups=follow_ups,
        )

    @staticmethod
    def _oracle_failed(prompt: str, command: str, output: str, err: Exception) -> AnalysisItem:
        return AnalysisItem(
            prompt=prompt,
            command=command,
            flagged=False,
            description=f"Oracle error: {err}",
            raw_output=output,
        )
