from __future__ import annotations

from typing import Sequence

from .vm_events import TraceFrame


class StackSyntaxError(SyntaxError):
    """Raised by the parser for unknown words and unbalanced blocks."""

    def __init__(self, message: str, *, filename: str = "<string>", line: int = 0, column: int = 0):
        super().__init__(message, (filename, line, column, None))

    def __str__(self) -> str:
        if self.lineno:
            return f"{self.filename}:{self.lineno}:{self.offset}: {self.msg}"
        return f"{self.filename}: {self.msg}"


class VMRuntimeError(RuntimeError):
    """Runtime error raised by the stack VM with attached traceback frames."""

    def __init__(self, message: str, frames: Sequence[TraceFrame] = ()):
        super().__init__(message)
        self.frames = list(frames)

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""

    def __str__(self) -> str:
        top = self.frames[0] if self.frames else None
        if top is None or not top.line:
            return self.message
        return f"{top.file}:{top.line}: {self.message}"


class StackUnderflowError(VMRuntimeError):
    pass


class ZeroDivisionVMError(VMRuntimeError):
    pass


class IntegerOverflowError(VMRuntimeError):
    pass


class StepLimitExceeded(VMRuntimeError):
    pass


def format_traceback(frames: Sequence[TraceFrame]) -> str:
    lines = ["stack traceback:"]
    for frame in frames:
        lines.append(f"\t{frame.file}:{frame.line}:{frame.column}: [pc={frame.pc}] {frame.instruction}")
    return "\n".join(lines)


__all__ = [
    "StackSyntaxError",
    "VMRuntimeError",
    "StackUnderflowError",
    "ZeroDivisionVMError",
    "IntegerOverflowError",
    "StepLimitExceeded",
    "format_traceback",
]
