from __future__ import annotations
import re
from typing import TYPE_CHECKING, Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple

import numpy as np

from errors import EndOfCodeError, TBasicParseError, TBasicRuntimeError, TBasicTypeError
from evaluator import VARIABLE_NAME, Evaluator, index_group, split_arguments
from frame import StackFrame
from scanner import Line
from values import is_number, normalize, to_double

if TYPE_CHECKING:
    from executer import Executer


LineTest = Callable[[Line], bool]


def normalized_text(line: Line) -> str:
    return " ".join(line.text.split()).upper()


def opens_with(keyword: str) -> LineTest:
    keyword = keyword.upper()
    return lambda line: line.name.upper() == keyword


def closes_with(text: str) -> LineTest:
    text = text.upper()
    return lambda line: normalized_text(line) == text


def parse_block(lines: Sequence[Line], index: int, is_opening: LineTest, is_closing: LineTest) -> Tuple[Line, List[Line], Line, int]:
    """Carve out the block whose header is ``lines[index]``.

    Returns the header, the body, the footer and the index of the footer.
    """
    header = lines[index]
    body: List[Line] = []
    expected = 1
    for cursor in range(index + 1, len(lines)):
        current = lines[cursor]
        if is_opening(current):
            expected += 1
        elif is_closing(current):
            expected -= 1
            if expected == 0:
                return header, body, current, cursor
        body.append(current)
    raise unterminated(header)


def unterminated(header: Line) -> EndOfCodeError:
    return EndOfCodeError(
        f"Unterminated '{header.display_name}' block starting on line {header.line_number}",
        line=header.line_number,
    )


class CodeBlock:
    header: Line
    body: List[Line]
    footer: Optional[Line]
    length: int

    def _load(self, lines: Sequence[Line], index: int, is_opening: LineTest, is_closing: LineTest) -> None:
        self.header, self.body, self.footer, end = parse_block(lines, index, is_opening, is_closing)
        self.length = end - index + 1

    @property
    def condition_text(self) -> str:
        return self.header.text[len(self.header.name):].strip()

    def execute(self, executer: "Executer") -> None:
        raise NotImplementedError


class ElseBlock(CodeBlock):
    def __init__(self, header: Line, body: List[Line]) -> None:
        self.header = header
        self.body = body
        self.footer = None
        self.length = len(body) + 1

    def execute(self, executer: "Executer") -> None:
        executer.execute_lines(self.body)


class IfBlock(CodeBlock):
    def __init__(self, index: int, lines: Sequence[Line]) -> None:
        self.header = lines[index]
        self.else_block: Optional[ElseBlock] = None
        if_lines: List[Line] = []
        else_lines: List[Line] = []
        else_header: Optional[Line] = None
        expected = 1
        for cursor in range(index + 1, len(lines)):
            current = lines[cursor]
            name = current.name.upper()
            if name == "IF":
                expected += 1
            elif expected == 1 and name == "ELSE" and normalized_text(current) == "ELSE":
                if else_header is not None:
                    raise TBasicParseError(
                        f"'ELSE' already appeared on line {else_header.line_number}",
                        line=current.line_number,
                    )
                else_header = current
                continue
            elif normalized_text(current) == "END IF":
                expected -= 1
                if expected == 0:
                    self.body = if_lines
                    self.footer = current
                    self.length = cursor - index + 1
                    if else_header is not None:
                        self.else_block = ElseBlock(else_header, else_lines)
                    return
            (if_lines if else_header is None else else_lines).append(current)
        raise unterminated(self.header)

    @property
    def has_else(self) -> bool:
        return self.else_block is not None

    @property
    def condition_text(self) -> str:
        text = super().condition_text
        if not text.upper().endswith("THEN") or (len(text) > 4 and not (text[-5].isspace() or text[-5] == ")")):
            raise TBasicParseError("expected 'THEN'", line=self.header.line_number)
        condition = text[:-4].strip()
        if not condition:
            raise TBasicParseError("Expected condition", line=self.header.line_number)
        return condition

    def execute(self, executer: "Executer") -> None:
        if Evaluator(self.condition_text, executer).evaluate_bool():
            executer.execute_lines(self.body)
        elif self.else_block is not None:
            self.else_block.execute(executer)


class DoBlock(CodeBlock):
    """``DO WHILE cond`` / ``DO UNTIL cond`` ... ``LOOP``; the test runs after each pass."""

    def __init__(self, index: int, lines: Sequence[Line]) -> None:
        self._load(lines, index, opens_with("DO"), closes_with("LOOP"))

    @property
    def condition_text(self) -> str:
        text = super().condition_text
        parts = text.split(None, 1)
        if len(parts) < 2:
            raise TBasicParseError("Expected condition", line=self.header.line_number)
        keyword, condition = parts[0].upper(), parts[1]
        if keyword == "UNTIL":
            return f"NOT ({condition})"
        if keyword == "WHILE":
            return condition
        raise TBasicParseError("expected 'UNTIL' or 'WHILE'", line=self.header.line_number)

    def execute(self, executer: "Executer") -> None:
        condition = Evaluator(self.condition_text, executer)
        while True:
            executer.execute_lines(self.body)
            if executer.break_requested:
                executer.honor_break()
                break
            condition.reparse()
            if not condition.evaluate_bool():
                break


class WhileBlock(CodeBlock):
    def __init__(self, index: int, lines: Sequence[Line]) -> None:
        self._load(lines, index, opens_with("WHILE"), closes_with("WEND"))

    def execute(self, executer: "Executer") -> None:
        text = self.condition_text
        if not text:
            raise TBasicParseError("Expected condition", line=self.header.line_number)
        condition = Evaluator(text, executer)
        while condition.evaluate_bool():
            executer.execute_lines(self.body)
            if executer.break_requested:
                executer.honor_break()
                break
            condition.reparse()


_FOR_HEADER = re.compile(
    r"^FOR\s+(?P<var>\S+?)\s*=\s*(?P<start>.+?)\s+TO\s+(?P<end>.+?)(?:\s+STEP\s+(?P<step>.+))?$",
    re.IGNORECASE,
)


class ForBlock(CodeBlock):
    """``FOR i$ = start TO end [STEP n]`` ... ``NEXT``, bounds inclusive."""

    def __init__(self, index: int, lines: Sequence[Line]) -> None:
        self._load(lines, index, opens_with("FOR"), opens_with("NEXT"))
        m = _FOR_HEADER.match(self.header.text)
        if m is None:
            raise TBasicParseError("expected 'FOR var$ = start TO end [STEP n]'", line=self.header.line_number)
        self.variable = m.group("var")
        if not VARIABLE_NAME.fullmatch(self.variable):
            raise TBasicParseError(f"Cannot define variable with name '{self.variable}'", line=self.header.line_number)
        self.start_text = m.group("start")
        self.end_text = m.group("end")
        self.step_text = m.group("step") or "1"

    def _number(self, text: str, executer: "Executer") -> float:
        value = Evaluator(text, executer).evaluate()
        if not is_number(value):
            raise TBasicTypeError(f"FOR bound '{text}' must be a number", rule="FOR")
        return float(value)

    def execute(self, executer: "Executer") -> None:
        start = self._number(self.start_text, executer)
        end = self._number(self.end_text, executer)
        step = self._number(self.step_text, executer)
        if step == 0:
            raise TBasicRuntimeError("FOR loop STEP cannot be zero", rule="FOR")
        value = start
        while (step > 0 and value <= end) or (step < 0 and value >= end):
            executer.context.set_variable(self.variable, normalize(value))
            executer.execute_lines(self.body)
            if executer.break_requested:
                executer.honor_break()
                break
            value = to_double(executer.context.get_variable(self.variable)) + step


class CaseBlock(CodeBlock):
    def __init__(self, header: Line, body: List[Line]) -> None:
        self.header = header
        self.body = body
        self.footer = None
        self.length = len(body) + 1
        self.is_default = header.name.upper() == "DEFAULT"
        if not self.is_default and not self.condition_text:
            raise TBasicParseError("Expected condition", line=header.line_number)

    def execute(self, executer: "Executer") -> None:
        executer.execute_lines(self.body)


def case_key(value: Any) -> Optional[Hashable]:
    value = normalize(value)
    if value is None:
        return None
    if isinstance(value, np.ndarray):
        raise TBasicTypeError("Arrays cannot be used as CASE values", rule="CASE")
    if isinstance(value, bool):
        return ("boolean", value)
    if is_number(value):
        return ("number", float(value))
    return ("string", str(value))


class SelectBlock(CodeBlock):
    def __init__(self, index: int, lines: Sequence[Line]) -> None:
        self._load(lines, index, opens_with("SELECT"), closes_with("END SELECT"))

    def split_cases(self) -> List[CaseBlock]:
        cases: List[CaseBlock] = []
        header: Optional[Line] = None
        current: List[Line] = []
        depth = 0
        for line in self.body:
            name = line.name.upper()
            if depth == 0 and name in ("CASE", "DEFAULT"):
                if header is not None:
                    cases.append(CaseBlock(header, current))
                header, current = line, []
                continue
            if header is None:
                raise TBasicParseError(f"Invalid expression '{line.text}': 'CASE' expected", line=line.line_number)
            if name == "SELECT":
                depth += 1
            elif normalized_text(line) == "END SELECT":
                depth -= 1
            current.append(line)
        if header is not None:
            cases.append(CaseBlock(header, current))
        return cases

    def to_dictionary(self, executer: "Executer") -> Tuple[Dict[Hashable, CaseBlock], Optional[CaseBlock]]:
        table: Dict[Hashable, CaseBlock] = {}
        default: Optional[CaseBlock] = None
        for case in self.split_cases():
            if case.is_default:
                default = case
                continue
            key = case_key(Evaluator(case.condition_text, executer).evaluate())
            if key is not None:
                # a repeated key replaces the earlier case
                table[key] = case
        return table, default

    def execute(self, executer: "Executer") -> None:
        if not self.condition_text:
            raise TBasicParseError("Expected condition", line=self.header.line_number)
        key = case_key(Evaluator(self.condition_text, executer).evaluate())
        table, default = self.to_dictionary(executer)
        if key is not None and key in table:
            table[key].execute(executer)
        elif default is not None:
            default.execute(executer)


class FuncBlock(CodeBlock):
    def __init__(self, index: int, lines: Sequence[Line]) -> None:
        self._load(lines, index, opens_with("FUNCTION"), closes_with("END FUNCTION"))
        for line in self.body:
            if line.name.upper() == "FUNCTION":
                raise TBasicParseError("A FUNCTION cannot be declared inside another FUNCTION", line=line.line_number)
        self.name, self.parameters = self.parse_template(self.condition_text)

    def parse_template(self, text: str) -> Tuple[str, List[str]]:
        line_number = self.header.line_number
        paren = text.find("(")
        if paren < 1:
            raise TBasicParseError("unterminated function", line=line_number)
        name = text[:paren].strip()
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
            raise TBasicParseError(f"Invalid function name '{name}'", line=line_number)
        try:
            close = index_group(text, paren)
        except TBasicParseError:
            raise TBasicParseError("unterminated function", line=line_number)
        if text[close + 1 :].strip():
            raise TBasicParseError(f"Unexpected text after parameters '{text[close + 1:].strip()}'", line=line_number)
        params = [p for p in split_arguments(text[paren + 1 : close]) if p != ""]
        for param in params:
            if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*\$", param):
                raise TBasicParseError(f"Cannot define variable with name '{param}'", line=line_number)
        return name, params

    def execute(self, executer: "Executer") -> None:
        raise TBasicRuntimeError("A FUNCTION block is not executed inline", rule="FUNCTION")

    def invoke(self, frame: StackFrame) -> None:
        frame.assert_args(len(self.parameters) + 1)
        executer = frame.executer
        executer.context = executer.context.create_child(boundary=True)
        try:
            scope = executer.context
            for param, value in zip(self.parameters, frame.arguments[1:]):
                scope.declare_variable(param, value)

            def _return(cmd: StackFrame) -> None:
                expression = cmd.text_after_name()
                frame.result = Evaluator(expression, executer).evaluate() if expression else None
                executer.request_return()

            def _set_status(call: StackFrame) -> None:
                call.assert_args(2)
                frame.status = call.get_int(1)

            scope.declare_command("return", _return)
            scope.declare_function("SetStatus", _set_status)
            executer.execute_lines(self.body)
            executer.finish_call()
        finally:
            executer.context = executer.context.collect()

    def create_delegate(self) -> Callable[[StackFrame], None]:
        return self.invoke
