from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, List, Mapping

from .bytecode import (
    Instruction,
    InstructionDebug,
    Intrinsic,
    Opcode,
    SourceLocation,
    block_else,
    block_end,
    block_start,
    intrinsic,
    push,
)
from .lexer import Number, Token, Word
from .vm_errors import StackSyntaxError

# Lexeme -> (opcode, args). Block opcodes get their indices during parsing.
LEXEMES: Mapping[str, tuple] = MappingProxyType(
    {
        "+": (Opcode.INTRINSIC, Intrinsic.ADD),
        "-": (Opcode.INTRINSIC, Intrinsic.SUB),
        "*": (Opcode.INTRINSIC, Intrinsic.MUL),
        "/": (Opcode.INTRINSIC, Intrinsic.DIV),
        "%": (Opcode.INTRINSIC, Intrinsic.MOD),
        "<": (Opcode.INTRINSIC, Intrinsic.LT),
        ">": (Opcode.INTRINSIC, Intrinsic.GT),
        "<=": (Opcode.INTRINSIC, Intrinsic.LE),
        ">=": (Opcode.INTRINSIC, Intrinsic.GE),
        "==": (Opcode.INTRINSIC, Intrinsic.EQ),
        "!=": (Opcode.INTRINSIC, Intrinsic.NE),
        ":": (Opcode.INTRINSIC, Intrinsic.DUP),
        ";": (Opcode.INTRINSIC, Intrinsic.DROP),
        "?": (Opcode.COND, None),
        "@": (Opcode.LOOP_MARK, None),
        "{": (Opcode.BLOCK_START, None),
        "}{": (Opcode.BLOCK_ELSE, None),
        "}": (Opcode.BLOCK_END, None),
    }
)


class StackParser:
    """Turns a token list into a flat instruction list with resolved block indices.

    Block instructions are emitted as placeholders and patched by index once
    the matching ``}{`` or ``}`` is seen. The pending stack holds the index of
    every block (or else branch) that is still open.
    """

    def __init__(self, tokens: Iterable[Token], *, source_name: str = "<string>", strict: bool = True):
        self.tokens = list(tokens)
        self.source_name = source_name
        self.strict = strict
        self.instructions: List[Instruction] = []
        self.pending: List[int] = []

    @classmethod
    def parse(cls, tokens: Iterable[Token], **kwargs) -> List[Instruction]:
        return cls(tokens, **kwargs).parse_program()

    def parse_program(self) -> List[Instruction]:
        for token in self.tokens:
            if isinstance(token, Number):
                self.instructions.append(push(token.value, self._debug(token, str(token.value))))
            else:
                self._parse_word(token)
        if self.strict and self.pending:
            head = self.instructions[self.pending[-1]]
            raise self._error("unclosed block", head.debug)
        return self.instructions

    # ------------------------------- internals ---------------------------- #
    def _parse_word(self, token: Word) -> None:
        entry = LEXEMES.get(token.text)
        debug = self._debug(token, token.text)
        if entry is None:
            raise self._error(f"unknown word {token.text!r}", debug)
        opcode, arg = entry
        idx = len(self.instructions)

        if opcode == Opcode.BLOCK_START:
            self.pending.append(idx)
            self.instructions.append(block_start(0, 0, debug))
        elif opcode == Opcode.BLOCK_ELSE:
            bi = self._pop_pending(token.text, debug)
            self._patch(bi, block_start(idx, 0))
            self.pending.append(idx)
            self.instructions.append(block_else(bi, 0, debug))
        elif opcode == Opcode.BLOCK_END:
            bi = self._pop_pending(token.text, debug)
            head = self.instructions[bi]
            if head.opcode == Opcode.BLOCK_ELSE:
                origin = head.args[0]
                self._patch(bi, block_else(origin, idx))
                self._patch(origin, block_start(bi, idx))
            else:
                self._patch(bi, block_start(idx, idx))
            self.instructions.append(block_end(bi, debug))
        elif arg is None:
            self.instructions.append(Instruction(opcode, [], debug))
        else:
            self.instructions.append(intrinsic(arg, debug))

    def _pop_pending(self, lexeme: str, debug: InstructionDebug) -> int:
        if not self.pending:
            raise self._error(f"'{lexeme}' without matching '{{'", debug)
        return self.pending.pop()

    def _patch(self, idx: int, replacement: Instruction) -> None:
        # keep the provenance of the original delimiter
        replacement.debug = self.instructions[idx].debug
        self.instructions[idx] = replacement

    def _debug(self, token: Token, lexeme: str) -> InstructionDebug:
        return InstructionDebug(SourceLocation(self.source_name, token.line, token.column), lexeme)

    def _error(self, message: str, debug: InstructionDebug | None) -> StackSyntaxError:
        if debug is None:
            return StackSyntaxError(message, filename=self.source_name)
        location = debug.location
        return StackSyntaxError(
            message, filename=location.file, line=location.line, column=location.column
        )


def parse(tokens: Iterable[Token], *, source_name: str = "<string>", strict: bool = True) -> List[Instruction]:
    return StackParser.parse(tokens, source_name=source_name, strict=strict)


__all__ = ["LEXEMES", "StackParser", "parse"]
