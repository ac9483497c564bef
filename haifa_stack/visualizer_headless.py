from __future__ import annotations

import curses
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .bytecode import Instruction
from .stack_vm import StackVM
from .vm_errors import VMRuntimeError


def format_program(
    program: Sequence[Instruction],
    pc: Optional[int] = None,
    *,
    start: int = 0,
    end: Optional[int] = None,
) -> List[str]:
    """Render instructions as ``NNN OPCODE args`` lines, marking ``pc`` with an arrow."""
    end = len(program) if end is None else min(end, len(program))
    lines = []
    for idx in range(start, end):
        prefix = "→" if idx == pc else " "
        lines.append(f"{prefix}{idx:03d} {program[idx]}")
    return lines


def format_stack(values: Sequence[int], empty: str = "<empty>") -> str:
    if not values:
        return empty
    return ", ".join(str(v) for v in values)


def instruction_window(pc: int, total: int, height: int) -> tuple:
    """Return the ``(start, end)`` slice that keeps ``pc`` roughly centred."""
    if total <= 0:
        return (0, 0)
    pc_index = min(pc, total - 1)
    start = max(0, min(pc_index - height // 2, total - height))
    return (start, min(total, start + height))


@dataclass
class _VMState:
    vm: StackVM
    halted: bool = False
    error: Optional[str] = None


class VMVisualizer:
    """Curses-based headless visualizer for StackVM.

    Controls:
      - SPACE / p : toggle auto-run
      - n / →     : single-step
      - r         : reset VM state
      - q         : quit

    Designed for environments without pygame but with a terminal.
    """

    def __init__(self, vm: StackVM, max_steps: Optional[int] = None):
        self._program: List[Instruction] = list(vm.instructions)
        self.state = _VMState(vm=vm, halted=vm.halted)
        self.max_steps = max_steps
        self.auto_run = False
        self.message = "Press SPACE to run/pause, n to step, q to quit."

    # ---------------------------- public API ----------------------------- #
    def run(self) -> None:  # pragma: no cover - interactive utility
        curses.wrapper(self._main)

    # --------------------------- internal helpers ------------------------ #
    def _main(self, stdscr: "curses._CursesWindow") -> None:  # pragma: no cover - interactive
        curses.curs_set(0)
        stdscr.nodelay(False)
        while True:
            self._draw(stdscr)
            stdscr.timeout(120 if (self.auto_run and not self.state.halted) else -1)
            key = stdscr.getch()
            if key == -1:
                if self.auto_run and not self.state.halted:
                    self._advance(auto=True)
                continue

            if key in (ord("q"), ord("Q")):
                break
            if key in (ord(" "), ord("p"), ord("P")):
                if self.state.halted:
                    self.message = "Program halted. Press r to reset or q to quit."
                else:
                    self.auto_run = not self.auto_run
                    self.message = "Running..." if self.auto_run else "Paused."
                continue
            if key in (ord("n"), curses.KEY_RIGHT):
                self._advance(auto=False)
                continue
            if key in (ord("r"), ord("R")):
                self._reset()
                continue
            self.message = f"Unhandled key: {key}."

    def _advance(self, auto: bool) -> None:
        if self.state.halted:
            self.auto_run = False
            return
        vm = self.state.vm
        if self.max_steps is not None and vm.steps >= self.max_steps:
            self.auto_run = False
            self.message = "Reached max steps; press r to reset or q to quit."
            return

        try:
            control = vm.step()
        except VMRuntimeError as exc:
            self.state.halted = True
            self.state.error = str(exc)
            self.auto_run = False
            self.message = f"Error: {exc}. Press r to reset or q to quit."
            return

        if control == "halt":
            self.state.halted = True
            self.auto_run = False
            self.message = "Halted. Press r to reset or q to quit."
        elif auto:
            self.message = "Running..."

    def _reset(self) -> None:
        self.state = _VMState(vm=StackVM(self._program))
        self.state.halted = self.state.vm.halted
        self.auto_run = False
        self.message = "Reset. Press SPACE to run or n to step."

    def _draw(self, stdscr: "curses._CursesWindow") -> None:  # pragma: no cover - interactive
        stdscr.erase()
        height, width = stdscr.getmaxyx()
        self._write(stdscr, 0, 0, "Instructions (SPACE: run/pause, n: step, r: reset, q: quit)")

        vm = self.state.vm
        view_height = min(12, max(1, height - 10))
        start, end = instruction_window(vm.pc, len(self._program), view_height)
        row = 2
        lines = format_program(self._program, vm.pc, start=start, end=end) or ["<no instructions>"]
        for line in lines:
            attr = curses.A_REVERSE if line.startswith("→") else curses.A_NORMAL
            self._write(stdscr, row, 0, line, attr)
            row += 1

        snapshot = vm.snapshot_state()
        row += 1
        self._write(
            stdscr,
            row,
            0,
            f"Step: {snapshot.steps} | PC: {snapshot.pc} | Auto: {self.auto_run} | Halted: {self.state.halted}",
        )
        row += 2
        self._write(stdscr, row, 0, "Stack (bottom → top):")
        self._write(stdscr, row + 1, 2, format_stack(snapshot.stack))
        row += 3
        self._write(stdscr, row, 0, "Loop markers:")
        self._write(stdscr, row + 1, 2, format_stack(snapshot.loop_stack))
        if self.state.error:
            row += 3
            self._write(stdscr, row, 0, f"Error: {self.state.error}")

        self._write(stdscr, height - 2, 0, self.message[: width - 1])
        stdscr.refresh()

    def _write(self, stdscr: "curses._CursesWindow", y: int, x: int, text: str, attr: int = curses.A_NORMAL) -> None:  # pragma: no cover
        height, width = stdscr.getmaxyx()
        if 0 <= y < height:
            try:
                stdscr.addnstr(y, x, text, max(0, width - x - 1), attr)
            except curses.error:
                pass


__all__ = ["VMVisualizer", "format_program", "format_stack", "instruction_window"]
