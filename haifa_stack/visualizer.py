import datetime
import json
from dataclasses import asdict
from typing import List, Optional

import pygame

from .bytecode import Instruction
from .stack_vm import StackVM
from .visualizer_headless import format_program, format_stack, instruction_window
from .vm_errors import VMRuntimeError

# Constants
SCREEN_WIDTH = 1200
SCREEN_HEIGHT = 760
BACKGROUND_COLOR = (240, 240, 240)
FONT_COLOR = (10, 10, 10)
PC_COLOR = (200, 255, 200)
ERROR_COLOR = (180, 30, 30)
FONT_SIZE = 18
LINE_HEIGHT = 22
MARGIN = 20


class VMVisualizer:
    def __init__(self, vm: StackVM, max_steps: Optional[int] = None):
        self.vm = vm
        self.max_steps = max_steps
        pygame.init()
        self.screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT))
        pygame.display.set_caption("Stack VM Visualizer")
        self.font = pygame.font.SysFont("monospace", FONT_SIZE)
        self.clock = pygame.time.Clock()
        self.running = True
        self.paused = True
        self.error: Optional[str] = None
        self.message = "Press P to run, SPACE to step, R to reset, L to export trace."
        # Keep a frozen copy of instructions for resetting
        self._instructions: List[Instruction] = list(vm.instructions)
        self.vm.record_trace = True

    def _draw_text(self, text: str, x: int, y: int, color=FONT_COLOR, background=None):
        surface = self.font.render(text, True, color, background)
        self.screen.blit(surface, (x, y))

    def _draw_section(
        self,
        title: str,
        data: List[str],
        x: int,
        y: int,
        width: int,
        height: int,
        highlight_index: int = -1,
    ) -> None:
        pygame.draw.rect(self.screen, (220, 220, 220), (x, y, width, height), border_radius=5)
        pygame.draw.rect(self.screen, (180, 180, 180), (x, y, width, 30), border_radius=5)
        self._draw_text(title, x + 10, y + 5, color=(50, 50, 50))

        start_y = y + 40
        for i, line in enumerate(data):
            line_y = start_y + i * LINE_HEIGHT
            if line_y > y + height - LINE_HEIGHT:
                self._draw_text("...", x + 10, line_y)
                break
            bg = PC_COLOR if i == highlight_index else None
            self._draw_text(line, x + 10, line_y, background=bg)

    def _draw_ui(self):
        self.screen.fill(BACKGROUND_COLOR)
        snapshot = self.vm.snapshot_state()

        panel_height = SCREEN_HEIGHT - 2 * MARGIN - 60
        rows = max(1, (panel_height - 50) // LINE_HEIGHT)
        start, end = instruction_window(self.vm.pc, len(self._instructions), rows)
        program_lines = format_program(self._instructions, self.vm.pc, start=start, end=end)
        highlight = self.vm.pc - start if self.vm.pc < end else -1
        self._draw_section("Instructions", program_lines, MARGIN, MARGIN, 560, panel_height, highlight)

        right_x = MARGIN * 2 + 560
        right_width = SCREEN_WIDTH - right_x - MARGIN
        # top of stack first so the most recent value is always visible
        stack_lines = [str(v) for v in reversed(snapshot.stack)] or ["<empty>"]
        self._draw_section("Stack (top first)", stack_lines, right_x, MARGIN, right_width, 360)
        state_lines = [
            f"PC: {snapshot.pc}",
            f"Steps: {snapshot.steps}",
            f"Halted: {snapshot.halted}",
            f"Loop markers: {format_stack(snapshot.loop_stack)}",
        ]
        self._draw_section("State", state_lines, right_x, MARGIN + 380, right_width, panel_height - 380)

        msg_y = SCREEN_HEIGHT - MARGIN - 30
        if self.error:
            self._draw_text(f"Error: {self.error}", MARGIN, msg_y - LINE_HEIGHT, color=ERROR_COLOR)
        self._draw_text(self.message, MARGIN, msg_y, color=(100, 100, 100))
        pygame.display.flip()

    def _handle_events(self):
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_q:
                    self.running = False
                elif event.key == pygame.K_SPACE:
                    self.paused = True
                    self._step_once()
                elif event.key == pygame.K_p:
                    self.paused = not self.paused
                    self.message = "Running..." if not self.paused else "Paused."
                elif event.key == pygame.K_l:
                    self._export_trace()
                elif event.key == pygame.K_r:
                    self._reset_vm()

    def run(self):  # pragma: no cover - interactive utility
        while self.running:
            self._handle_events()

            if not self.paused:
                if self._step_once():
                    self.paused = True

            self._draw_ui()
            self.clock.tick(10)  # Limit frame rate

        pygame.quit()

    def _step_once(self) -> bool:
        if self.vm.halted or self.error:
            self.message = "Program already complete."
            return True
        if self.max_steps is not None and self.vm.steps >= self.max_steps:
            self.message = "Reached max steps; press R to reset."
            return True

        try:
            control = self.vm.step()
        except VMRuntimeError as exc:
            self.error = str(exc)
            self.message = "Execution failed."
            return True

        if control == "halt":
            self.message = "Execution halted."
            return True
        return False

    def _export_trace(self) -> None:
        if not self.vm.trace:
            self.message = "Trace log is empty; nothing exported."
            return
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"stack_trace_{timestamp}.jsonl"
        try:
            with open(filename, "w", encoding="utf-8") as f:
                for entry in self.vm.trace:
                    f.write(json.dumps(asdict(entry), ensure_ascii=False))
                    f.write("\n")
            self.message = f"Trace exported to {filename}"
        except OSError as exc:
            self.message = f"Failed to export trace: {exc}"

    def _reset_vm(self) -> None:
        self.vm = StackVM(self._instructions)
        self.vm.record_trace = True
        self.paused = True
        self.error = None
        self.message = "VM reset."
