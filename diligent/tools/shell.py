# diligent/tools/shell.py
import os
import signal
import subprocess
from dataclasses import dataclass
from enum import Enum


class Outcome(str, Enum):
    OK = "ok"
    TIMED_OUT = "timed_out"
    EXEC_ERROR = "exec_error"


@dataclass(frozen=True)
class CommandResult:
    output: str
    outcome: Outcome
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK


def _argv(command: str) -> list:
    # Run through a shell so catalog pipelines work unmodified
    if os.name == "nt":
        return ["cmd", "/c", command]
    return ["sh", "-c", command]


def _kill_group(p: subprocess.Popen) -> None:
    try:
        if os.name == "nt":
            # cmd.exe alone would leave its children running
            subprocess.run(
                ["taskkill", "/T", "/F", "/PID", str(p.pid)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        else:
            os.killpg(p.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def run(command: str, timeout: float) -> CommandResult:
    """
    Execute `command` in a shell and return its combined stdout/stderr.

    The child gets its own process group; on timeout the whole group is
    killed and no partial output is kept.
    """
    try:
        p = subprocess.Popen(
            _argv(command),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            start_new_session=os.name != "nt",
            creationflags=getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0),
        )
    except (OSError, ValueError) as e:
        # ValueError: the command contains a NUL byte
        return CommandResult(
            output="",
            outcome=Outcome.EXEC_ERROR,
            detail=f"failed to execute command: {command}, error: {e}",
        )

    try:
        raw, _ = p.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_group(p)
        try:
            p.communicate(timeout=2)
        except subprocess.TimeoutExpired:
            # a daemonized grandchild still holds the pipe
            pass
        finally:
            p.stdout.close()
            p.wait()
        return CommandResult(
            output="",
            outcome=Outcome.TIMED_OUT,
            detail=f"command execution timed out after {timeout:g}s",
        )

    output = raw.decode("utf-8", errors="replace")
    if p.returncode != 0:
        return CommandResult(
            output=output,
            outcome=Outcome.EXEC_ERROR,
            detail=f"failed to execute command: {command}, exit status {p.returncode}",
        )

    return CommandResult(output=output, outcome=Outcome.OK)
