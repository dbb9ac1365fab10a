# diligent/models.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Check(BaseModel):
    """One static diagnostic: a shell command and what to look for in its output."""
    model_config = ConfigDict(frozen=True)

    command: str
    prompt: str


class Verdict(BaseModel):
    """
    The oracle's judgment of one command output.
    `flagged` is the only required key; unknown keys are ignored. Strict:
    "true" or 1 is not a boolean and a number is not a command.
    """
    model_config = ConfigDict(strict=True)

    flagged: bool
    description: str = ""
    follow_up_prompt: Optional[str] = None
    follow_up_command: Optional[str] = None
    alert: Optional[str] = None

    @property
    def follow_up(self) -> Optional[Check]:
        if self.follow_up_command and self.follow_up_prompt:
            return Check(command=self.follow_up_command, prompt=self.follow_up_prompt)
        return None


class AnalysisItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str
    command: str
    flagged: bool = False
    description: str = ""
    alert: Optional[str] = None
    raw_output: Optional[str] = None
    follow_ups: List[AnalysisItem] = Field(default_factory=list)

    def depth(self) -> int:
        """Levels below this node (0 for a leaf)."""
        if not self.follow_ups:
            return 0
        return 1 + max(f.depth() for f in self.follow_ups)

    def walk(self):
        yield self
        for f in self.follow_ups:
            yield from f.walk()


AnalysisItem.model_rebuild()


class Report(BaseModel):
    items: List[AnalysisItem] = Field(default_factory=list)
    os_name: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def flagged_count(self) -> int:
        return sum(1 for item in self.items for node in item.walk() if node.flagged)
