from __future__ import annotations

import pathlib
from typing import List, Optional, Sequence

from .bytecode import Instruction
from .lexer import lex
from .parser import parse
from .stack_vm import StackVM


def compile_source(source: str, *, source_name: str = "<string>", strict: bool = True) -> Sequence[Instruction]:
    return parse(lex(source), source_name=source_name, strict=strict)


def run_source(
    source: str,
    *,
    source_name: str = "<string>",
    debug: bool = False,
    max_steps: Optional[int] = None,
) -> List[int]:
    instructions = list(compile_source(source, source_name=source_name))
    vm = StackVM(instructions)
    return vm.run(debug=debug, max_steps=max_steps)


def run_script(path: str, *, debug: bool = False, max_steps: Optional[int] = None) -> List[int]:
    data = pathlib.Path(path).read_text(encoding="utf-8")
    return run_source(data, source_name=path, debug=debug, max_steps=max_steps)


__all__ = ["compile_source", "run_source", "run_script"]
