from __future__ import annotations

import argparse
import pathlib
import sys
from typing import Optional

from . import __version__
from .runtime import compile_source
from .stack_vm import StackVM
from .visualizer_headless import format_program
from .vm_errors import StackSyntaxError, VMRuntimeError, format_traceback


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="haifa-stack", description="Run stack language programs on the stack VM")
    parser.add_argument("script", nargs="?", help="Path to source file")
    parser.add_argument("-e", "--execute", dest="inline", help="Execute source code string")
    parser.add_argument("--quiet-ops", action="store_true", help="Do not print the resolved instruction listing")
    parser.add_argument("--trace", action="store_true", help="Print VM state before every instruction")
    parser.add_argument("--stack", action="store_true", help="Print a traceback on runtime errors")
    parser.add_argument("--max-steps", type=int, default=None, help="Abort after executing N instructions")
    parser.add_argument(
        "--visualize",
        nargs="?",
        const="gui",
        choices=["gui", "curses"],
        help="Visualize VM execution (optional mode: gui or curses)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    if args.inline is not None and args.script:
        parser.error("cannot use script path and --execute together")
    if args.inline is not None:
        source, source_name = args.inline, "<inline>"
    elif args.script:
        source_name = args.script
        try:
            source = pathlib.Path(args.script).read_text(encoding="utf-8")
        except OSError as exc:
            print(f"haifa-stack: cannot read {args.script}: {exc.strerror or exc}", file=sys.stderr)
            return 1
    else:
        parser.error("missing script or --execute")

    try:
        instructions = list(compile_source(source, source_name=source_name))
    except StackSyntaxError as exc:
        print(f"haifa-stack parse failed: {exc}", file=sys.stderr)
        return 1

    vm = StackVM(instructions)
    if args.visualize:
        return _visualize(vm, args.visualize, args.max_steps)

    if not args.quiet_ops:
        for line in format_program(instructions):
            print(line)
    try:
        stack = vm.run(debug=args.trace, max_steps=args.max_steps)
    except VMRuntimeError as exc:
        if args.stack:
            print(format_traceback(exc.frames), file=sys.stderr)
        print(f"haifa-stack execution failed: {exc}", file=sys.stderr)
        return 1
    print(f"[{', '.join(str(v) for v in stack)}]")
    return 0


def _visualize(vm: StackVM, mode: str, max_steps: Optional[int]) -> int:  # pragma: no cover - interactive
    if mode == "gui":
        try:
            from .visualizer import VMVisualizer

            VMVisualizer(vm, max_steps=max_steps).run()
            return 0
        except (ImportError, RuntimeError) as exc:
            # pygame missing or no display available
            print(f"GUI visualizer unavailable ({exc}); falling back to curses", file=sys.stderr)

    from .visualizer_headless import VMVisualizer as HeadlessVisualizer

    HeadlessVisualizer(vm, max_steps=max_steps).run()
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
