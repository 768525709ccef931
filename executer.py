from __future__ import annotations
import json
import os
import re
from collections import deque
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Tuple, Union

from blocks import FuncBlock
from context import NameKind, ObjectContext
from errors import ScriptError, TBasicError, TBasicParseError, TBasicRuntimeError, UndefinedNameError
from evaluator import Evaluator
from extensions import ExtensionMetadata, build_services
from frame import StackFrame
from scanner import Line, scan_lines, split_source


_PLAIN_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_LITERAL_WORDS = {"TRUE", "FALSE", "NULL"}


@dataclass
class StepEntry:
    step_index: int
    state_id: str
    line_number: Optional[int]
    display_name: Optional[str]
    statement: Optional[str]
    env_snapshot: Optional[Dict[str, str]]


class StepLogger:
    def __init__(self, verbose: bool, max_entries: int = 10000) -> None:
        self.verbose = verbose
        self.entries: Deque[StepEntry] = deque(maxlen=max_entries)
        self.next_state_index = 0

    def record(self, line: Optional[Line], env_snapshot: Optional[Dict[str, str]] = None) -> StepEntry:
        step_index = self.next_state_index
        entry = StepEntry(
            step_index=step_index,
            state_id=f"s_{step_index:06d}",
            line_number=line.line_number if line else None,
            display_name=line.display_name if line else None,
            statement=line.text if line else None,
            env_snapshot=env_snapshot,
        )
        self.entries.append(entry)
        self.next_state_index += 1
        return entry

    @property
    def last_entry(self) -> Optional[StepEntry]:
        return self.entries[-1] if self.entries else None

    def last_entry_for_line(self, line_number: int) -> Optional[StepEntry]:
        for entry in reversed(self.entries):
            if entry.line_number == line_number:
                return entry
        return None


class Executer:
    VERSION = "TBASIC 2.0"

    def __init__(
        self,
        *,
        filename: str = "<string>",
        verbose: bool = False,
        input_provider: Optional[Callable[[], str]] = None,
        output_sink: Optional[Callable[[str], None]] = None,
        load_standard_library: bool = True,
        libraries: Sequence[ModuleType] = (),
        on_exit: Optional[Callable[["Executer"], None]] = None,
    ) -> None:
        self.filename = filename if filename == "<string>" else os.path.abspath(filename)
        self.verbose = verbose
        self.input_provider = input_provider or (lambda: input())
        self.output_sink = output_sink or (lambda text: print(text, end=""))
        self.on_exit = on_exit
        self.global_context = ObjectContext(None)
        self.context = self.global_context
        self.break_requested = False
        self.exit_requested = False
        self.return_requested = False
        self.current_line = 0
        self.logger = StepLogger(verbose=verbose)
        self.global_context.set_returns(StackFrame(self))
        self.library_metadata: List[ExtensionMetadata] = []
        if load_standard_library:
            self.library_metadata.extend(self.global_context.load_standard_library().metadata)
        if libraries:
            services = build_services(libraries)
            self.global_context.install(services)
            self.library_metadata.extend(services.metadata)

    # ---- scanning ----

    def scan(self, raw_lines: Sequence[str]) -> Tuple[List[Line], List[FuncBlock]]:
        """Scan source lines and lift every FUNCTION out of the main sequence."""
        lines, function_lines = scan_lines(raw_lines)
        functions: List[FuncBlock] = []
        for line_number in function_lines:
            index = next((i for i, line in enumerate(lines) if line.line_number == line_number), None)
            if index is None:
                raise TBasicParseError(
                    "A FUNCTION cannot be declared inside another FUNCTION", line=line_number
                )
            func = FuncBlock(index, lines)
            functions.append(func)
            del lines[index : index + func.length]
        return lines, functions

    def install_functions(self, functions: Sequence[FuncBlock]) -> None:
        for func in functions:
            self.global_context.set_function(func.name, func.create_delegate())

    # ---- running ----

    def execute(self, script: Union[str, Sequence[str]]) -> StackFrame:
        raw = split_source(script) if isinstance(script, str) else list(script)
        self.break_requested = False
        self.exit_requested = False
        self.return_requested = False
        self.context = self.global_context
        lines, functions = self.scan(raw)
        self.install_functions(functions)
        return self.execute_lines(lines)

    def execute_lines(self, lines: Sequence[Line]) -> StackFrame:
        frame = StackFrame(self)
        index = 0
        while index < len(lines):
            if self.break_requested:
                break
            current = lines[index]
            self.current_line = current.line_number
            self.logger.record(current, self.context.snapshot() if self.verbose else None)
            try:
                block_context = self.context.find_block_context(current.name)
                if block_context is None:
                    frame = self.execute_line(current)
                else:
                    block = block_context.get_block(current.name)(index, lines)
                    self.run_block(block)
                    index += block.length - 1
            except Exception as exc:
                raise ScriptError(current.line_number, current.display_name, exc, statement=current.text) from exc
            index += 1
        return frame

    def run_block(self, block: Any) -> None:
        self.context = self.context.create_child()
        try:
            block.execute(self)
        finally:
            self.context = self.context.collect()

    def execute_line(self, line: Line) -> StackFrame:
        context = self.context.find_command_context(line.name)
        if context is not None:
            frame = StackFrame.from_text(self, line.text)
            context.get_command(line.name)(frame)
        else:
            if (
                not line.is_call_shaped
                and _PLAIN_NAME.fullmatch(line.name)
                and line.name.upper() not in _LITERAL_WORDS
                and self.context.resolve(line.name)[0] is NameKind.NOT_FOUND
            ):
                raise UndefinedNameError(line.name, f"'{line.name}' is not defined as a command or function")
            frame = StackFrame(self, [line.name], line.text)
            frame.result = Evaluator(line.text, self).evaluate()
        return frame

    def call_function(self, name: str, values: Sequence[Any]) -> Any:
        context = self.context.find_function_context(name)
        if context is None:
            raise UndefinedNameError(name, f"'{name}' is not defined as a function")
        frame = StackFrame.from_values(self, name, values)
        context.get_function(name)(frame)
        self.context.set_returns(frame)
        return frame.result

    def evaluate(self, expression: str) -> Any:
        return Evaluator(expression, self).evaluate()

    def include(self, path: str) -> None:
        """Install a file's FUNCTIONs globally and run its other lines here."""
        if not os.path.isabs(path) and self.filename != "<string>":
            path = os.path.join(os.path.dirname(self.filename), path)
        path = os.path.abspath(path)
        if not os.path.isfile(path):
            raise TBasicRuntimeError(f"Could not find file '{path}'", rule="#include")
        with open(path, "r", encoding="utf-8") as handle:
            raw = split_source(handle.read())
        lines, functions = self.scan(raw)
        self.install_functions(functions)
        self.execute_lines(lines)

    # ---- flags ----

    def request_break(self) -> None:
        self.break_requested = True

    def honor_break(self) -> None:
        if not self.exit_requested and not self.return_requested:
            self.break_requested = False

    def request_return(self) -> None:
        self.return_requested = True
        self.break_requested = True

    def finish_call(self) -> None:
        self.return_requested = False
        self.honor_break()

    def request_exit(self) -> None:
        self.exit_requested = True
        self.break_requested = True
        if self.on_exit is not None:
            self.on_exit(self)


@dataclass
class TracebackFrame:
    name: str
    line: int
    statement: Optional[str]
    state_entry: Optional[StepEntry]


class TracebackFormatter:
    def __init__(self, executer: Executer) -> None:
        self.executer = executer

    def build_frames(self, error: TBasicError) -> List[TracebackFrame]:
        frames: List[TracebackFrame] = []
        err: BaseException = error
        while isinstance(err, ScriptError):
            frames.append(
                TracebackFrame(
                    name=err.name,
                    line=err.line,
                    statement=err.statement,
                    state_entry=self.executer.logger.last_entry_for_line(err.line),
                )
            )
            err = err.inner
        return frames

    @staticmethod
    def _root(error: BaseException) -> BaseException:
        return error.root_cause if isinstance(error, ScriptError) else error

    def format_text(self, error: TBasicError, verbose: bool) -> str:
        lines = ["Traceback (most recent call last):"]
        for frame in self.build_frames(error):
            lines.append(f"  File \"{self.executer.filename}\", line {frame.line}, in {frame.name}")
            if frame.statement:
                lines.append(f"    {frame.statement}")
            if frame.state_entry:
                lines.append(
                    f"    State log index: {frame.state_entry.step_index}  State id: {frame.state_entry.state_id}"
                )
                if verbose and frame.state_entry.env_snapshot is not None:
                    snapshot = ", ".join(f"{k}={v}" for k, v in frame.state_entry.env_snapshot.items())
                    lines.append(f"    Env snapshot: {snapshot}")
        cause = self._root(error)
        message = getattr(cause, "message", None) or str(cause)
        rule = getattr(cause, "rule", None) or "runtime"
        lines.append(f"{cause.__class__.__name__}: {message} (rule: {rule})")
        return "\n".join(lines)

    def to_json(self, error: TBasicError) -> str:
        frames_json: List[Dict[str, Any]] = []
        for index, frame in enumerate(self.build_frames(error)):
            entry: Dict[str, Any] = {
                "frame_index": index,
                "name": frame.name,
                "source_location": {
                    "file": self.executer.filename,
                    "line": frame.line,
                    "statement": frame.statement,
                },
            }
            if frame.state_entry:
                entry["state_id"] = frame.state_entry.state_id
                entry["step_index"] = frame.state_entry.step_index
                if frame.state_entry.env_snapshot is not None:
                    entry["env_snapshot"] = frame.state_entry.env_snapshot
            frames_json.append(entry)
        cause = self._root(error)
        last = self.executer.logger.last_entry
        data = {
            "error": {
                "type": cause.__class__.__name__,
                "message": getattr(cause, "message", None) or str(cause),
                "rule": getattr(cause, "rule", None),
                "failing_step_index": last.step_index if last else None,
            },
            "traceback": frames_json,
        }
        return json.dumps(data, indent=2)
