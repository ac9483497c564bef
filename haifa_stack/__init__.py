__version__ = "0.1.0"

from .bytecode import Instruction, Intrinsic, Opcode
from .lexer import Number, Word, lex
from .parser import parse
from .runtime import compile_source, run_script, run_source
from .stack_vm import StackVM, run
from .vm_errors import StackSyntaxError, StackUnderflowError, VMRuntimeError, ZeroDivisionVMError

__all__ = [
    "lex",
    "parse",
    "run",
    "compile_source",
    "run_source",
    "run_script",
    "StackVM",
    "Instruction",
    "Intrinsic",
    "Opcode",
    "Word",
    "Number",
    "StackSyntaxError",
    "VMRuntimeError",
    "StackUnderflowError",
    "ZeroDivisionVMError",
]
