"""TBASIC library: arrays."""

from __future__ import annotations

from typing import Any, List, Tuple

import numpy as np

from errors import TBasicRuntimeError
from extensions import LibraryAPI
from frame import StackFrame
from values import normalize, resize_array, type_name


TBASIC_LIBRARY_NAME = "arrays"
TBASIC_LIBRARY_API_VERSION = 1


def same_value(left: Any, right: Any) -> bool:
    """Element equality: same type and same value; arrays only match themselves."""
    if isinstance(left, np.ndarray) or isinstance(right, np.ndarray):
        return left is right
    left, right = normalize(left), normalize(right)
    return type_name(left) == type_name(right) and left == right


def _elements(frame: StackFrame) -> List[Any]:
    arr = frame.get_array(1)
    return [arr[i] for i in range(arr.shape[0])] if arr.ndim else []


def _window(frame: StackFrame, size: int) -> Tuple[int, int]:
    if frame.count < 3:
        frame.assert_args(3)
    if frame.count == 3:
        frame.add(0)
    if frame.count == 4:
        frame.add(size - frame.get_int(3))
    frame.assert_args(5)
    start = frame.get_int(3)
    count = frame.get_int(4)
    if start < 0 or start > size or count < 0 or start + count > size:
        raise TBasicRuntimeError(
            f"Range [{start}, {start + count}) is outside an array of length {size}",
            rule=frame.name,
        )
    return start, start + count


def _contains(frame: StackFrame) -> None:
    frame.assert_args(3)
    needle = frame.get(2)
    frame.result = any(same_value(item, needle) for item in _elements(frame))


def _index_of(frame: StackFrame) -> None:
    items = _elements(frame) if frame.count > 1 else []
    start, end = _window(frame, len(items))
    needle = frame.get(2)
    frame.result = next((i for i in range(start, end) if same_value(items[i], needle)), -1)


def _last_index_of(frame: StackFrame) -> None:
    items = _elements(frame) if frame.count > 1 else []
    start, end = _window(frame, len(items))
    needle = frame.get(2)
    frame.result = next((i for i in reversed(range(start, end)) if same_value(items[i], needle)), -1)


def _resize(frame: StackFrame) -> None:
    frame.assert_args(3, at_least=True)
    arr = frame.get_array(1)
    shape = [frame.get_int(i) for i in range(2, frame.count)]
    frame.result = resize_array(arr, shape)


def tbasic_register(api: LibraryAPI) -> None:
    api.metadata(name="arrays", version="2.0.0")
    api.register_function("ArrayContains", _contains)
    api.register_function("ArrayIndexOf", _index_of)
    api.register_function("ArrayLastIndexOf", _last_index_of)
    api.register_function("ArrayResize", _resize)
