"""TBASIC library: strings.

``StrIndexOf`` and ``StrLastIndexOf`` take an optional start index and an
optional character count; the search window is ``[start, start + count)``.
"""

from __future__ import annotations

import re
from typing import Callable, Tuple

from errors import TBasicRuntimeError, TBasicTypeError
from extensions import LibraryAPI
from frame import StackFrame
from values import to_array


TBASIC_LIBRARY_NAME = "strings"
TBASIC_LIBRARY_API_VERSION = 1


def _out_of_range(frame: StackFrame, index: int) -> TBasicRuntimeError:
    return TBasicRuntimeError(f"Index '{index}' is out of range for '{frame.name}'", rule=frame.name)


def _window(frame: StackFrame, text: str) -> Tuple[int, int]:
    if frame.count == 3:
        frame.add(0)
    if frame.count == 4:
        frame.add(len(text) - frame.get_int(3))
    frame.assert_args(5)
    start = frame.get_int(3)
    count = frame.get_int(4)
    if start < 0 or start > len(text):
        raise _out_of_range(frame, start)
    if count < 0 or start + count > len(text):
        raise _out_of_range(frame, start + count)
    return start, start + count


def _index_of(frame: StackFrame) -> None:
    if frame.count < 3:
        frame.assert_args(3)
    text = frame.get_str(1)
    needle = frame.get_str(2)
    start, end = _window(frame, text)
    frame.result = text.find(needle, start, end)


def _last_index_of(frame: StackFrame) -> None:
    if frame.count < 3:
        frame.assert_args(3)
    text = frame.get_str(1)
    needle = frame.get_str(2)
    start, end = _window(frame, text)
    frame.result = text.rfind(needle, start, end)


def _contains(frame: StackFrame) -> None:
    frame.assert_args(3)
    frame.result = frame.get_str(2) in frame.get_str(1)


def _compare(frame: StackFrame) -> None:
    frame.assert_args(3)
    left, right = frame.get_str(1), frame.get_str(2)
    frame.result = (left > right) - (left < right)


def _transform(func: Callable[[str], str]) -> Callable[[StackFrame], None]:
    def impl(frame: StackFrame) -> None:
        frame.assert_args(2)
        frame.result = func(frame.get_str(1))

    return impl


def _left(frame: StackFrame) -> None:
    frame.assert_args(3)
    text = frame.get_str(1)
    count = frame.get_int(2)
    if count < 0 or count > len(text):
        raise _out_of_range(frame, count)
    frame.result = text[:count]


def _right(frame: StackFrame) -> None:
    frame.assert_args(3)
    text = frame.get_str(1)
    count = frame.get_int(2)
    if count < 0 or count > len(text):
        raise _out_of_range(frame, count)
    frame.result = text[len(text) - count :]


def _substring(frame: StackFrame) -> None:
    if frame.count < 3:
        frame.assert_args(3)
    text = frame.get_str(1)
    if frame.count == 3:
        frame.add(len(text) - frame.get_int(2))
    frame.assert_args(4)
    start = frame.get_int(2)
    length = frame.get_int(3)
    if start < 0 or start > len(text):
        raise _out_of_range(frame, start)
    if length < 0 or start + length > len(text):
        raise _out_of_range(frame, start + length)
    frame.result = text[start : start + length]


def _split(frame: StackFrame) -> None:
    frame.assert_args(3)
    try:
        pattern = re.compile(frame.get_str(2))
    except re.error as exc:
        raise TBasicTypeError(f"Invalid pattern '{frame.get_str(2)}': {exc}", rule=frame.name)
    frame.result = to_array(pattern.split(frame.get_str(1)))


def _to_chars(frame: StackFrame) -> None:
    frame.assert_args(2)
    frame.result = to_array(list(frame.get_str(1)))


def _chars_to_str(frame: StackFrame) -> None:
    frame.assert_args(2)
    chars = []
    for item in frame.get_array(1).ravel():
        if not isinstance(item, str):
            raise TBasicTypeError("expected parameter 1 to be an array of characters", rule=frame.name)
        chars.append(item)
    frame.result = "".join(chars)


def tbasic_register(api: LibraryAPI) -> None:
    api.metadata(name="strings", version="2.0.0")
    api.register_function("StrContains", _contains)
    api.register_function("StrIndexOf", _index_of)
    api.register_function("StrLastIndexOf", _last_index_of)
    api.register_function("StrUpper", _transform(str.upper))
    api.register_function("StrLower", _transform(str.lower))
    api.register_function("StrCompare", _compare)
    api.register_function("StrLeft", _left)
    api.register_function("StrRight", _right)
    api.register_function("StrTrim", _transform(str.strip))
    api.register_function("StrTrimStart", _transform(str.lstrip))
    api.register_function("StrTrimEnd", _transform(str.rstrip))
    api.register_function("StrSplit", _split)
    api.register_function("StrToChars", _to_chars)
    api.register_function("CharsToStr", _chars_to_str)
    api.register_function("Substring", _substring)
