# diligent/tools/render.py

from typing import List

from diligent.models import AnalysisItem, Report

INDENT = "  "


def truncate(text: str, max_chars: int) -> str:
    """
    Return at most `max_chars` characters of `text`.

    Slicing a str counts code points, so multi-byte characters are never split.
    """
    limit = max(max_chars, 0)
    if len(text) <= limit:
        return text
    return text[:limit]


def context_prompt(prompt: str, command: str, output: str) -> str:
    """
    Render the user message sent to the oracle for one analysis step.
    Always carries the check's intent, the command line and its output.
    """
    return "\n".join([
        prompt,
        "",
        "Command:",
        command,
        "",
        "Command output (truncated):",
        output,
    ])


def _render_item(item: AnalysisItem, depth: int, lines: List[str]) -> None:
    pad = INDENT * depth
    mark = "FLAGGED" if item.flagged else "ok"
    lines.append(f"{pad}[{mark}] {item.command or '(no command)'}")
    if item.description:
        lines.append(f"{pad}{INDENT}{item.description}")
    if item.alert:
        lines.append(f"{pad}{INDENT}alert: {item.alert}")
    for f in item.follow_ups:
        _render_item(f, depth + 1, lines)


def render_tree(report: Report) -> str:
    """Human-readable, indented view of a report for the terminal."""
    lines: List[str] = []
    for item in report.items:
        _render_item(item, 0, lines)
    return "\n".join(lines)
