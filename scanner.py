from __future__ import annotations
import re
from dataclasses import dataclass, field, replace
from typing import List, Sequence, Tuple

from errors import EndOfCodeError

COMMENT_MARKER = ";"
CONTINUATION_MARKER = "_"

_NAME_END = re.compile(r"[\s(]")
# a line that opens with a variable name is an assignment
_ASSIGNMENT_TARGET = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\$")


def leading_name(text: str) -> Tuple[str, str]:
    """Split a statement into its leading name and the text after it.

    The name ends at the first space or opening parenthesis; the
    separator stays with the remainder.
    """
    text = text.strip()
    m = _NAME_END.search(text)
    if m is None:
        return text, ""
    return text[: m.start()], text[m.start() :]


@dataclass(frozen=True, eq=False)
class Line:
    line_number: int
    text: str
    display_name: str = ""
    name: str = field(init=False)
    is_call_shaped: bool = field(init=False)

    def __post_init__(self) -> None:
        text = self.text.strip()
        object.__setattr__(self, "text", text)
        name, rest = leading_name(text)
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "is_call_shaped", rest.startswith("("))
        if not self.display_name:
            object.__setattr__(self, "display_name", name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Line):
            return NotImplemented
        return self.line_number == other.line_number

    def __lt__(self, other: "Line") -> bool:
        return self.line_number < other.line_number

    def __hash__(self) -> int:
        return hash(self.line_number)

    def __str__(self) -> str:
        return self.text


def split_source(script: str) -> List[str]:
    return script.replace("\r\n", "\n").split("\n")


def scan_lines(raw_lines: Sequence[str]) -> Tuple[List[Line], List[int]]:
    """Turn physical source lines into statement lines.

    Returns the statement lines and the line numbers of every ``FUNCTION``
    header, which the executer uses to lift function bodies out of the
    top-level script.
    """
    lines: List[Line] = []
    function_lines: List[int] = []
    total = len(raw_lines)
    index = 0
    while index < total:
        line_number = index + 1
        text = raw_lines[index].strip()
        index += 1
        if text == "" or text.startswith(COMMENT_MARKER):
            continue
        while text.endswith(CONTINUATION_MARKER):
            if index >= total:
                raise EndOfCodeError(
                    f"line continuation character '{CONTINUATION_MARKER}' cannot end script",
                    line=line_number,
                )
            text = text[:-1] + raw_lines[index].strip()
            index += 1

        current = Line(line_number, text)
        target = _ASSIGNMENT_TARGET.match(current.text)
        if target is not None:
            current = replace(current, text="LET " + current.text, display_name=target.group())
        elif current.name.upper() == "FUNCTION":
            function_lines.append(line_number)
        else:
            current = replace(current, display_name=current.name.upper())
        lines.append(current)
    return lines, function_lines
