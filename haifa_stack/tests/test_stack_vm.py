import pytest

from haifa_stack.bytecode import Intrinsic, Opcode, block_else, block_end, block_start, intrinsic, push
from haifa_stack.runtime import compile_source, run_source
from haifa_stack.stack_vm import StackVM
from haifa_stack.vm_errors import (
    IntegerOverflowError,
    StackUnderflowError,
    StepLimitExceeded,
    VMRuntimeError,
    ZeroDivisionVMError,
)


@pytest.mark.parametrize(
    "source, expected",
    [
        ("3 4 +", [7]),
        ("10 3 -", [7]),
        ("6 7 *", [42]),
        ("7 2 /", [3]),
        ("7 2 %", [1]),
        ("5 :", [5, 5]),
        ("5 ;", []),
        ("1 2 3 ; +", [3]),
    ],
)
def test_arithmetic_and_stack_ops(source, expected):
    assert run_source(source) == expected


@pytest.mark.parametrize(
    "source, expected",
    [
        ("-7 2 /", [-3]),
        ("7 -2 /", [-3]),
        ("-7 2 %", [-1]),
        ("7 -2 %", [1]),
        ("-8 -2 /", [4]),
    ],
)
def test_division_truncates_toward_zero(source, expected):
    assert run_source(source) == expected


@pytest.mark.parametrize(
    "source, expected",
    [
        ("2 3 <", [1]),
        ("3 2 <", [0]),
        ("2 3 >", [0]),
        ("3 3 <=", [1]),
        ("4 3 <=", [0]),
        ("3 3 >=", [1]),
        ("3 3 ==", [1]),
        ("3 4 ==", [0]),
        ("3 3 !=", [0]),
        ("3 4 !=", [1]),
    ],
)
def test_comparisons_push_zero_or_one(source, expected):
    assert run_source(source) == expected


def test_cond_normalizes_truthiness():
    assert run_source("5 ? 0 ? -3 ?") == [1, 0, 1]


def test_empty_program_yields_empty_stack():
    assert StackVM([]).run() == []
    assert run_source("") == []


def test_if_else_takes_then_branch():
    assert run_source("1 { 99 }{ 88 }") == [99]


def test_if_else_takes_else_branch():
    assert run_source("0 { 99 }{ 88 }") == [88]


def test_if_without_else():
    assert run_source("1 { 99 }") == [99]
    assert run_source("0 { 99 }") == []
    assert run_source("7 0 { 99 } 1") == [7, 1]


def test_nested_conditionals():
    source = "1 { 0 { 10 }{ 20 } 1 { 30 } }{ 40 }"
    assert run_source(source) == [20, 30]


def test_loop_marker_exits_when_condition_turns_false():
    vm = StackVM(compile_source("1 @ { 0 }"))
    assert vm.run() == []
    assert vm.loop_stack == []


def test_countdown_loop():
    # the counter is duplicated so @ only normalizes the copy
    vm = StackVM(compile_source("3 : @ { 1 - : }"))
    assert vm.run() == [0]
    assert vm.loop_stack == []


def test_loop_mark_records_resume_point_once():
    vm = StackVM(compile_source("2 @ { 1 }"))
    for _ in range(6):
        vm.step()
    assert vm.pc == 2
    assert vm.loop_stack == [1]


def test_endless_loop_hits_step_limit():
    with pytest.raises(StepLimitExceeded, match="step limit exceeded"):
        run_source("1 @ { 1 }", max_steps=100)


def test_block_end_without_loop_falls_through():
    vm = StackVM([push(1), block_start(3, 3), push(2), block_end(1), push(3)])
    assert vm.run() == [2, 3]


def test_else_jump_lands_after_terminator():
    program = [push(1), block_start(3, 5), push(9), block_else(1, 5), push(8), block_end(3), push(7)]
    assert StackVM(program).run() == [9, 7]


@pytest.mark.parametrize("source", ["+", "1 +", ":", ";", "?", "@", "{ }", "1 2 < ; <"])
def test_underflow_is_runtime_error(source):
    with pytest.raises(StackUnderflowError):
        run_source(source)


@pytest.mark.parametrize("source", ["1 0 /", "1 0 %"])
def test_division_by_zero_is_runtime_error(source):
    with pytest.raises(ZeroDivisionVMError):
        run_source(source)


def test_overflow_is_runtime_error():
    with pytest.raises(IntegerOverflowError):
        run_source("9999999999 9999999999 *")


def test_no_instruction_runs_after_error():
    vm = StackVM(compile_source("1 0 / 5"))
    with pytest.raises(VMRuntimeError):
        vm.run()
    assert vm.pc == 2
    assert vm.stack == []


def test_runtime_error_carries_source_frame():
    with pytest.raises(VMRuntimeError) as excinfo:
        run_source("1 2 +\n  +", source_name="prog.stk")
    frame = excinfo.value.frames[0]
    assert frame.pc == 3
    assert (frame.file, frame.line, frame.column) == ("prog.stk", 2, 3)
    assert frame.instruction == "INTRINSIC ADD"
    assert str(excinfo.value) == "prog.stk:2: stack underflow: need 2 value(s), have 1"


def test_error_without_debug_info_uses_plain_message():
    with pytest.raises(StackUnderflowError) as excinfo:
        StackVM([intrinsic(Intrinsic.DROP)]).run()
    assert str(excinfo.value) == "stack underflow"
    assert excinfo.value.frames[0].file == "<unknown>"


def test_step_reports_halt():
    vm = StackVM(compile_source("1"))
    assert vm.step() == "halt"
    assert vm.step() == "halt"
    assert vm.stack == [1]


def test_snapshot_state_copies_stacks():
    vm = StackVM(compile_source("1 @ 2"))
    vm.step()
    vm.step()
    snapshot = vm.snapshot_state()
    assert snapshot.pc == 2
    assert snapshot.steps == 2
    assert snapshot.stack == [1]
    assert snapshot.loop_stack == [1]
    assert snapshot.halted is False
    vm.step()
    assert snapshot.stack == [1]


def test_record_trace_collects_steps():
    vm = StackVM(compile_source("3 4 +"))
    vm.record_trace = True
    vm.run()
    assert [(r.pc, r.instruction, r.stack) for r in vm.trace] == [
        (0, "PUSH 3", []),
        (1, "PUSH 4", [3]),
        (2, "INTRINSIC ADD", [3, 4]),
    ]


def test_reset_clears_state():
    vm = StackVM(compile_source("1 @"))
    vm.run()
    vm.reset()
    assert (vm.pc, vm.steps, vm.stack, vm.loop_stack) == (0, 0, [], [])


def test_debug_run_prints_each_instruction(capsys):
    StackVM(compile_source("3 4 +")).run(debug=True)
    out = capsys.readouterr().out
    assert "[PC=0] EXEC: PUSH 3" in out
    assert "[PC=2] EXEC: INTRINSIC ADD" in out
    assert "STACK: [3, 4]" in out


def test_unknown_opcode_is_reported():
    vm = StackVM([push(1)])
    vm._handlers.pop(Opcode.PUSH)
    with pytest.raises(VMRuntimeError, match="No handler"):
        vm.run()
