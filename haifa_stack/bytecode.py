from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


@dataclass(frozen=True)
class SourceLocation:
    file: str
    line: int
    column: int


@dataclass(frozen=True)
class InstructionDebug:
    """Metadata describing the token an instruction was parsed from."""

    location: SourceLocation
    lexeme: str


class Intrinsic(Enum):
    ADD = auto()
    SUB = auto()
    MUL = auto()
    DIV = auto()
    MOD = auto()
    LT = auto()
    GT = auto()
    LE = auto()
    GE = auto()
    EQ = auto()
    NE = auto()
    DUP = auto()
    DROP = auto()


class Opcode(Enum):
    PUSH = auto()         # PUSH value
    INTRINSIC = auto()    # INTRINSIC op
    COND = auto()         # COND -> normalize top of stack to 0/1
    LOOP_MARK = auto()    # LOOP_MARK -> normalize and record resume point

    BLOCK_START = auto()  # BLOCK_START else_idx, end_idx
    BLOCK_ELSE = auto()   # BLOCK_ELSE start_idx, end_idx
    BLOCK_END = auto()    # BLOCK_END start_idx


@dataclass
class Instruction:
    opcode: Opcode
    args: list  # e.g., [42], [Intrinsic.ADD] or [else_idx, end_idx]
    debug: InstructionDebug | None = None

    def __str__(self):
        parts = [a.name if isinstance(a, Intrinsic) else str(a) for a in self.args]
        return f"{self.opcode.name} {' '.join(parts)}".rstrip()


def push(value: int, debug: InstructionDebug | None = None) -> Instruction:
    return Instruction(Opcode.PUSH, [value], debug)


def intrinsic(op: Intrinsic, debug: InstructionDebug | None = None) -> Instruction:
    return Instruction(Opcode.INTRINSIC, [op], debug)


def block_start(else_idx: int, end_idx: int, debug: InstructionDebug | None = None) -> Instruction:
    return Instruction(Opcode.BLOCK_START, [else_idx, end_idx], debug)


def block_else(start_idx: int, end_idx: int, debug: InstructionDebug | None = None) -> Instruction:
    return Instruction(Opcode.BLOCK_ELSE, [start_idx, end_idx], debug)


def block_end(start_idx: int, debug: InstructionDebug | None = None) -> Instruction:
    return Instruction(Opcode.BLOCK_END, [start_idx], debug)


__all__ = [
    "SourceLocation",
    "InstructionDebug",
    "Intrinsic",
    "Opcode",
    "Instruction",
    "push",
    "intrinsic",
    "block_start",
    "block_else",
    "block_end",
]
