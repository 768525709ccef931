"""TBASIC entry point and REPL wiring."""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from errors import EndOfCodeError, TBasicError, TBasicParseError
from executer import Executer, TracebackFormatter

_BLOCK_KEYWORDS = ("IF", "DO", "WHILE", "FOR", "SELECT", "FUNCTION")

# light blue
_BANNER_COLOR = "\x1b[38;2;153;221;255m"
_RESET = "\033[0m"
_PROMPT = f"{_BANNER_COLOR}>>>{_RESET} "
_CONTINUE_PROMPT = f"{_BANNER_COLOR}..>{_RESET} "


def format_parse_error(error: TBasicParseError) -> str:
    if error.line is not None:
        return f"ParseError: line {error.line}: {error.message}"
    return f"ParseError: {error.message}"


def report_error(executer: Executer, error: TBasicError, *, traceback_json: bool = False) -> None:
    if isinstance(error, TBasicParseError):
        print(format_parse_error(error), file=sys.stderr)
        return
    formatter = TracebackFormatter(executer)
    print(formatter.format_text(error, verbose=executer.verbose), file=sys.stderr)
    if traceback_json:
        print(formatter.to_json(error), file=sys.stderr)


def _starts_block(line: str) -> bool:
    words = line.split(None, 1)
    return bool(words) and words[0].upper() in _BLOCK_KEYWORDS


class _ConsoleSink:
    """Writes script output and remembers whether the cursor is mid-line."""

    def __init__(self) -> None:
        self.dirty = False

    def __call__(self, text: str) -> None:
        if text:
            self.dirty = not text.endswith("\n")
        print(text, end="")

    def settle(self) -> None:
        if self.dirty:
            print()
            self.dirty = False


def _run_buffer(executer: Executer, source_text: str) -> None:
    try:
        executer.execute(source_text)
    except TBasicError as error:
        report_error(executer, error)


def run_repl(verbose: bool) -> int:
    sink = _ConsoleSink()
    executer = Executer(filename="<string>", verbose=verbose, output_sink=sink)
    print(f"{_BANNER_COLOR}{Executer.VERSION}{_RESET} REPL. Enter statements, blank line to run buffer.")
    print("Libraries: " + ", ".join(f"{meta.name} {meta.version}" for meta in executer.library_metadata))
    buffer: List[str] = []

    while not executer.exit_requested:
        sink.settle()
        try:
            line = input(_CONTINUE_PROMPT if buffer else _PROMPT)
        except EOFError:
            print()
            break
        stripped = line.strip()

        if buffer:
            if stripped:
                buffer.append(line)
                continue
            source_text = "\n".join(buffer)
            buffer.clear()
            _run_buffer(executer, source_text)
        elif _starts_block(stripped):
            buffer.append(line)
        elif stripped:
            try:
                executer.execute(line)
            except EndOfCodeError:
                # a trailing continuation opens a multi-line buffer
                buffer.append(line)
            except TBasicError as error:
                report_error(executer, error)
    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="TBASIC script interpreter")
    parser.add_argument("program", nargs="?", help="Source file path or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Record scope snapshots and show them in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    parser.add_argument("--version", action="version", version=Executer.VERSION)
    args = parser.parse_args(argv)

    if args.program is None:
        if args.source_mode:
            print("-source requires a program string", file=sys.stderr)
            return 1
        return run_repl(verbose=args.verbose)

    if args.source_mode:
        source_text, filename = args.program, "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except OSError as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    executer = Executer(filename=filename, verbose=args.verbose)
    try:
        executer.execute(source_text)
    except TBasicError as error:
        report_error(executer, error, traceback_json=args.traceback_json)
        return 1
    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
