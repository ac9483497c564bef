from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence

from .bytecode import Instruction, Intrinsic, Opcode
from .vm_errors import (
    IntegerOverflowError,
    StackUnderflowError,
    StepLimitExceeded,
    VMRuntimeError,
    ZeroDivisionVMError,
)
from .vm_events import StepRecord, TraceFrame, VMStateSnapshot

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def _trunc_div(left: int, right: int) -> int:
    quotient = abs(left) // abs(right)
    return quotient if (left < 0) == (right < 0) else -quotient


def _trunc_mod(left: int, right: int) -> int:
    return left - right * _trunc_div(left, right)


_BINARY_OPS: Dict[Intrinsic, Callable[[int, int], int]] = {
    Intrinsic.ADD: lambda a, b: a + b,
    Intrinsic.SUB: lambda a, b: a - b,
    Intrinsic.MUL: lambda a, b: a * b,
    Intrinsic.DIV: _trunc_div,
    Intrinsic.MOD: _trunc_mod,
    Intrinsic.LT: lambda a, b: int(a < b),
    Intrinsic.GT: lambda a, b: int(a > b),
    Intrinsic.LE: lambda a, b: int(a <= b),
    Intrinsic.GE: lambda a, b: int(a >= b),
    Intrinsic.EQ: lambda a, b: int(a == b),
    Intrinsic.NE: lambda a, b: int(a != b),
}


class StackVM:
    """Executes a resolved instruction list against a single operand stack.

    Every instruction is followed by ``pc += 1``. Jumps assign the target
    index first, so execution resumes at ``target + 1``; ``BLOCK_END`` aims
    one before the recorded loop marker so the marker itself runs next.
    """

    def __init__(self, instructions: Sequence[Instruction]):
        self.instructions = list(instructions)
        self.stack: List[int] = []
        self.loop_stack: List[int] = []
        self.pc = 0
        self.steps = 0
        self.trace: List[StepRecord] = []
        self.record_trace = False
        self._handlers = {
            Opcode.PUSH: self._op_PUSH,
            Opcode.INTRINSIC: self._op_INTRINSIC,
            Opcode.COND: self._op_COND,
            Opcode.LOOP_MARK: self._op_LOOP_MARK,
            Opcode.BLOCK_START: self._op_BLOCK_START,
            Opcode.BLOCK_ELSE: self._op_BLOCK_ELSE,
            Opcode.BLOCK_END: self._op_BLOCK_END,
        }

    @property
    def halted(self) -> bool:
        return self.pc >= len(self.instructions)

    def reset(self) -> None:
        self.stack.clear()
        self.loop_stack.clear()
        self.pc = 0
        self.steps = 0
        self.trace.clear()

    # -------------------- Debug helpers --------------------
    def snapshot_state(self) -> VMStateSnapshot:
        return VMStateSnapshot(
            pc=self.pc,
            steps=self.steps,
            stack=list(self.stack),
            loop_stack=list(self.loop_stack),
            halted=self.halted,
        )

    def _capture_frame(self) -> TraceFrame:
        inst = self.instructions[self.pc] if 0 <= self.pc < len(self.instructions) else None
        if inst is None or inst.debug is None:
            return TraceFrame(
                instruction=str(inst) if inst is not None else "<end>",
                file="<unknown>",
                line=0,
                column=0,
                pc=self.pc,
            )
        location = inst.debug.location
        return TraceFrame(
            instruction=str(inst),
            file=location.file,
            line=location.line,
            column=location.column,
            pc=self.pc,
        )

    def _error(self, cls: type, message: str) -> VMRuntimeError:
        return cls(message, [self._capture_frame()])

    def _wrap_runtime_error(self, exc: Exception) -> VMRuntimeError:
        message = str(exc) or exc.__class__.__name__
        return VMRuntimeError(message, [self._capture_frame()])

    # -------------------- Execution --------------------
    def step(self):
        """Executes a single instruction."""
        if self.halted:
            return "halt"

        inst = self.instructions[self.pc]
        handler = self._handlers.get(inst.opcode)
        if handler is None:
            raise self._error(VMRuntimeError, f"No handler for opcode: {inst.opcode}")

        if self.record_trace:
            self.trace.append(
                StepRecord(
                    step=self.steps,
                    pc=self.pc,
                    instruction=str(inst),
                    stack=list(self.stack),
                    loop_stack=list(self.loop_stack),
                )
            )
        try:
            handler(inst.args)
        except VMRuntimeError:
            raise
        except Exception as exc:
            raise self._wrap_runtime_error(exc) from exc
        self.pc += 1
        self.steps += 1
        return "halt" if self.halted else None

    def run(self, debug: bool = False, max_steps: Optional[int] = None) -> List[int]:
        while not self.halted:
            if max_steps is not None and self.steps >= max_steps:
                raise self._error(StepLimitExceeded, f"step limit exceeded ({max_steps} steps)")
            if debug:
                inst = self.instructions[self.pc]
                print(f"[PC={self.pc}] EXEC: {inst}")
                print(f"  STACK: {self.stack}")
                print(f"  LOOPS: {self.loop_stack}\n")
            self.step()
        return list(self.stack)

    # -------------------- Stack helpers --------------------
    def _pop(self) -> int:
        if not self.stack:
            raise self._error(StackUnderflowError, "stack underflow")
        return self.stack.pop()

    def _require(self, count: int) -> None:
        if len(self.stack) < count:
            raise self._error(
                StackUnderflowError,
                f"stack underflow: need {count} value(s), have {len(self.stack)}",
            )

    def _push_checked(self, value: int) -> None:
        if not INT64_MIN <= value <= INT64_MAX:
            raise self._error(IntegerOverflowError, f"integer overflow: {value}")
        self.stack.append(value)

    # -------------------- Opcode handlers --------------------
    def _op_PUSH(self, args):
        self.stack.append(args[0])

    def _op_INTRINSIC(self, args):
        op = args[0]
        if op == Intrinsic.DUP:
            self._require(1)
            self.stack.append(self.stack[-1])
            return
        if op == Intrinsic.DROP:
            self._pop()
            return

        self._require(2)
        first = self.stack.pop()
        second = self.stack.pop()
        if op in (Intrinsic.DIV, Intrinsic.MOD) and first == 0:
            raise self._error(ZeroDivisionVMError, "division by zero")
        self._push_checked(_BINARY_OPS[op](second, first))

    def _op_COND(self, args):
        self.stack.append(int(self._pop() != 0))

    def _op_LOOP_MARK(self, args):
        self.stack.append(int(self._pop() != 0))
        if self.loop_stack and self.loop_stack[-1] == self.pc:
            return
        self.loop_stack.append(self.pc)

    # 控制流
    def _op_BLOCK_START(self, args):
        else_idx, _end_idx = args
        if self._pop() == 0:
            self.pc = else_idx
            if self.loop_stack:
                self.loop_stack.pop()

    def _op_BLOCK_ELSE(self, args):
        self.pc = args[1]

    def _op_BLOCK_END(self, args):
        if self.loop_stack:
            self.pc = self.loop_stack[-1] - 1


def run(instructions: Sequence[Instruction], *, debug: bool = False, max_steps: Optional[int] = None) -> List[int]:
    return StackVM(instructions).run(debug=debug, max_steps=max_steps)


__all__ = ["StackVM", "run", "INT64_MIN", "INT64_MAX"]
