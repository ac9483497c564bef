from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence


@dataclass(frozen=True)
class TraceFrame:
    """Location of the instruction that was executing when an error occurred."""

    instruction: str
    file: str
    line: int
    column: int
    pc: int


@dataclass
class VMStateSnapshot:
    pc: int
    steps: int
    stack: Sequence[int]
    loop_stack: Sequence[int]
    halted: bool = False


@dataclass
class StepRecord:
    step: int
    pc: int
    instruction: str
    stack: List[int] = field(default_factory=list)
    loop_stack: List[int] = field(default_factory=list)


__all__ = ["TraceFrame", "VMStateSnapshot", "StepRecord"]
