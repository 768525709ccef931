from __future__ import annotations
from typing import TYPE_CHECKING, Any, Iterator, List, Optional, Sequence

import numpy as np

from errors import ArgumentCountError, TBasicRuntimeError, TBasicTypeError
from evaluator import read_string
from scanner import leading_name
from values import normalize, to_bool, to_display_string

if TYPE_CHECKING:
    from context import ObjectContext
    from executer import Executer


STATUS_OK = 0
STATUS_NO_CONTENT = -1


def parse_arguments(command_line: str) -> List[str]:
    """Split a statement on whitespace; quoted text is kept as one unquoted piece."""
    text = command_line.strip()
    args: List[str] = []
    current: List[str] = []
    pending = False
    index = 0
    while index < len(text):
        ch = text[index]
        if ch.isspace():
            if pending or current:
                args.append("".join(current))
                current = []
                pending = False
        elif ch in "\"'":
            index, parsed = read_string(text, index)
            current.append(parsed)
            pending = True
        else:
            current.append(ch)
        index += 1
    if pending or current:
        args.append("".join(current))
    return args


class StackFrame:
    """Arguments in, result and status out. Slot 0 holds the callee name."""

    def __init__(self, executer: Optional["Executer"], arguments: Optional[Sequence[Any]] = None, text: str = "") -> None:
        self.executer = executer
        self.arguments: List[Any] = list(arguments or [])
        self.text = text
        self.result: Any = None
        self.status = STATUS_OK

    @classmethod
    def from_text(cls, executer: Optional["Executer"], text: str) -> "StackFrame":
        name, rest = leading_name(text)
        return cls(executer, [name, *parse_arguments(rest)], text.strip())

    @classmethod
    def from_values(cls, executer: Optional["Executer"], name: str, values: Sequence[Any]) -> "StackFrame":
        return cls(executer, [name, *values], "")

    @property
    def name(self) -> str:
        return str(self.arguments[0]) if self.arguments else ""

    @property
    def context(self) -> "ObjectContext":
        return self.executer.context

    @property
    def count(self) -> int:
        return len(self.arguments)

    def __len__(self) -> int:
        return len(self.arguments)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.arguments)

    def __getitem__(self, index: int) -> Any:
        return self.get(index)

    def add(self, value: Any) -> None:
        self.arguments.append(value)

    def text_after_name(self) -> str:
        return self.text[len(self.name):].strip()

    def assert_args(self, count: int, at_least: bool = False) -> None:
        supplied = len(self.arguments)
        if supplied == count or (at_least and supplied > count):
            return
        raise ArgumentCountError(self.name, supplied - 1)

    def get(self, index: int) -> Any:
        if 0 <= index < len(self.arguments):
            return self.arguments[index]
        raise TBasicRuntimeError(f"{self.name.upper()} has no parameter {index}", rule=self.name)

    def _bad_type(self, index: int, expected: str) -> TBasicTypeError:
        return TBasicTypeError(f"expected parameter {index} to be of type {expected}", rule=self.name)

    def get_int(self, index: int) -> int:
        value = self.get(index)
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                raise self._bad_type(index, "int")
        value = normalize(value)
        if isinstance(value, bool) or not isinstance(value, int):
            raise self._bad_type(index, "int")
        return value

    def get_float(self, index: int) -> float:
        value = self.get(index)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise self._bad_type(index, "double")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self._bad_type(index, "double")
        return float(value)

    def get_str(self, index: int) -> str:
        value = self.get(index)
        if value is None or isinstance(value, np.ndarray):
            raise self._bad_type(index, "string")
        return to_display_string(value)

    def get_bool(self, index: int) -> bool:
        value = self.get(index)
        if isinstance(value, np.ndarray):
            raise self._bad_type(index, "boolean")
        try:
            return to_bool(value)
        except TBasicTypeError:
            raise self._bad_type(index, "boolean")

    def get_array(self, index: int) -> np.ndarray:
        value = self.get(index)
        if not isinstance(value, np.ndarray):
            raise self._bad_type(index, "object array")
        return value

    def get_int_range(self, index: int, lower: int, upper: int) -> int:
        n = self.get_int(index)
        if n < lower or n > upper:
            raise TBasicTypeError(
                f"parameter {index} expected to be integer between {lower} and {upper}",
                rule=self.name,
            )
        return n
