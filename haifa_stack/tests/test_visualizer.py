import json

import pytest

pygame = pytest.importorskip("pygame")

from haifa_stack.runtime import compile_source
from haifa_stack.stack_vm import StackVM


@pytest.fixture
def visualizer(monkeypatch, tmp_path):
    monkeypatch.setenv("SDL_VIDEODRIVER", "dummy")
    monkeypatch.chdir(tmp_path)
    from haifa_stack.visualizer import VMVisualizer

    def build(source, **kwargs):
        return VMVisualizer(StackVM(compile_source(source)), **kwargs)

    yield build
    pygame.quit()


def test_step_draw_and_reset(visualizer):
    vis = visualizer("3 4 +")
    assert vis._step_once() is False
    assert vis._step_once() is False
    assert vis._step_once() is True
    assert vis.vm.stack == [7]
    assert vis.message == "Execution halted."
    vis._draw_ui()

    vis._reset_vm()
    assert vis.vm.pc == 0
    assert vis.vm.stack == []
    assert vis.vm.record_trace
    assert vis.paused


def test_runtime_error_stops_stepping(visualizer):
    vis = visualizer("+")
    assert vis._step_once() is True
    assert "stack underflow" in vis.error
    vis._draw_ui()
    assert vis._step_once() is True


def test_max_steps(visualizer):
    vis = visualizer("1 @ { 1 }", max_steps=3)
    for _ in range(3):
        vis._step_once()
    assert vis._step_once() is True
    assert vis.vm.steps == 3


def test_export_trace_writes_jsonl(visualizer, tmp_path):
    vis = visualizer("2 :")
    vis._export_trace()
    assert "empty" in vis.message
    vis._step_once()
    vis._step_once()
    vis._export_trace()
    exported = list(tmp_path.glob("stack_trace_*.jsonl"))
    assert len(exported) == 1
    rows = [json.loads(line) for line in exported[0].read_text(encoding="utf-8").splitlines()]
    assert [row["instruction"] for row in rows] == ["PUSH 2", "INTRINSIC DUP"]
    assert rows[1]["stack"] == [2]
