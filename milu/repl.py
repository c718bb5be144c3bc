"""Interactive read-eval-print loop and file evaluator for expressions."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from .parser import ScriptSyntaxError, parse
from .script import ScriptContext, ScriptError
from .stdlib import default_context

__all__ = ["VERSION", "HISTORY_FILE", "evaluate", "run_repl", "main"]

VERSION = "0.2.1"
HISTORY_FILE = "history.txt"
_TERMINATOR = ";;"


def evaluate(
    ctx: Optional[ScriptContext],
    source: str,
    out: TextIO,
    err: TextIO,
) -> bool:
    """Parse, type-check and evaluate ``source``.

    Writes ``<value> : <type>`` to ``out`` on success, or a diagnostic to
    ``err``. Returns whether evaluation succeeded.
    """
    if ctx is None:
        ctx = default_context()
    try:
        tree = parse(source)
    except ScriptSyntaxError as exc:
        print(f"parser error: {exc}", file=err)
        return False
    try:
        value_type = tree.type_of(ctx)
    except ScriptError as exc:
        print(f"type inference error: {exc}", file=err)
        return False
    try:
        value = tree.value_of(ctx)
    except ScriptError as exc:
        print(f"eval error: {exc}", file=err)
        return False
    print(f"{value} : {value_type}", file=out)
    return True


def run_repl(stdin: TextIO, out: TextIO, err: TextIO, interactive: bool) -> list:
    """Read expressions from ``stdin`` until end of input.

    Lines are collected until one ends with ``;;``; the collected lines are
    then joined with spaces and evaluated. Banner, prompts and exit messages
    are only written when ``interactive`` is true. Returns the evaluated
    entries in order.
    """

    def say(text: str = "") -> None:
        if interactive:
            print(text, file=out)

    say()
    say(f"This is the milu-repl {VERSION}")
    say("Use `;;' to end an expression")
    say("Press Ctrl-D to exit.")
    say()

    global_ctx = default_context()
    history: list = []
    pending: list = []
    count = 1
    while True:
        if interactive:
            out.write(f"\x1b[1;32m{count}> \x1b[0m")
            out.flush()
        try:
            raw = stdin.readline()
        except KeyboardInterrupt:
            say("Interrupted")
            break
        except OSError as exc:
            print(f"Error: {exc!r}", file=err)
            break
        if raw == "":
            say("Ctrl-D")
            break
        line = raw.rstrip()
        pending.append(line)
        if line.endswith(_TERMINATOR):
            entry = " ".join(pending)
            evaluate(global_ctx, entry, out, err)
            history.append(entry)
            count += 1
            pending.clear()
    return history


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="milu-repl")
    parser.add_argument("--version", action="version", version=f"milu-repl {VERSION}")
    parser.add_argument("INPUT", nargs="?", type=Path, help="filename")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Evaluate the file given as argument, or start the interactive loop."""
    args = _build_parser().parse_args(argv)
    if args.INPUT is not None:
        try:
            text = args.INPUT.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        evaluate(default_context(), text, sys.stdout, sys.stderr)
        return 0

    interactive = sys.stdin.isatty()
    history_path = Path(HISTORY_FILE)
    if not history_path.is_file() and interactive:
        print("No previous history.")
    history = run_repl(sys.stdin, sys.stdout, sys.stderr, interactive)
    try:
        with history_path.open("a", encoding="utf-8") as stream:
            for entry in history:
                stream.write(entry + "\n")
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())