"""TBASIC library: console I/O through the executer's input provider and output sink."""

from __future__ import annotations

from extensions import LibraryAPI
from frame import STATUS_NO_CONTENT, StackFrame
from values import to_display_string


TBASIC_LIBRARY_NAME = "userio"
TBASIC_LIBRARY_API_VERSION = 1


def _write(frame: StackFrame) -> None:
    frame.assert_args(2)
    frame.executer.output_sink(to_display_string(frame.get(1)))


def _write_line(frame: StackFrame) -> None:
    frame.assert_args(2)
    frame.executer.output_sink(to_display_string(frame.get(1)) + "\n")


def _read_line(frame: StackFrame) -> None:
    frame.assert_args(1)
    try:
        line = frame.executer.input_provider()
    except EOFError:
        line = None
    if not line:
        frame.status = STATUS_NO_CONTENT
    frame.result = line


def tbasic_register(api: LibraryAPI) -> None:
    api.metadata(name="userio", version="2.0.0")
    api.register_function("StdWrite", _write)
    api.register_function("StdWriteLine", _write_line)
    api.register_function("StdReadLine", _read_line)
