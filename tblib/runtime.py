"""TBASIC library: type inspection and conversion."""

from __future__ import annotations

from typing import Any, Callable

import numpy as np

from context import NameKind
from errors import TBasicTypeError
from extensions import LibraryAPI
from frame import StackFrame
from values import is_number, to_bool, to_display_string, to_double, to_int64


TBASIC_LIBRARY_NAME = "runtime"
TBASIC_LIBRARY_API_VERSION = 1

# byte sizes reported by SIZE for scalars
_SCALAR_SIZES = {bool: 1, int: 8, float: 8}


def _size(frame: StackFrame) -> None:
    frame.assert_args(2)
    value = frame.get(1)
    if value is None:
        frame.result = 0
    elif isinstance(value, str):
        frame.result = len(value)
    elif isinstance(value, np.ndarray):
        frame.result = int(value.shape[0]) if value.ndim else 1
    elif type(value) in _SCALAR_SIZES:
        frame.result = _SCALAR_SIZES[type(value)]
    else:
        raise TBasicTypeError("Object size cannot be determined", rule=frame.name)


def _predicate(test: Callable[[Any], bool]) -> Callable[[StackFrame], None]:
    def impl(frame: StackFrame) -> None:
        frame.assert_args(2)
        frame.result = bool(test(frame.get(1)))

    return impl


def _is_defined(frame: StackFrame) -> None:
    frame.assert_args(2)
    kind, _ctx = frame.context.resolve(frame.get_str(1))
    frame.result = kind is not NameKind.NOT_FOUND


def _conversion(convert: Callable[[Any], Any], type_label: str) -> Callable[[StackFrame], None]:
    def impl(frame: StackFrame) -> None:
        frame.assert_args(2)
        value = frame.get(1)
        if isinstance(value, np.ndarray):
            raise TBasicTypeError(f"Parameter cannot be {type_label}", rule=frame.name)
        try:
            frame.result = convert(value)
        except TBasicTypeError as exc:
            raise TBasicTypeError(f"Parameter cannot be {type_label}: {exc.message}", rule=frame.name)

    return impl


def _to_byte(value: Any) -> int:
    n = to_int64(value)
    if n < 0 or n > 255:
        raise TBasicTypeError("Value was either too large or too small for an unsigned byte", rule="CAST")
    return n


def _to_char(value: Any) -> str:
    if isinstance(value, str):
        if len(value) != 1:
            raise TBasicTypeError("String must be exactly one character long", rule="CAST")
        return value
    code = to_int64(value)
    if code < 0 or code > 0x10FFFF:
        raise TBasicTypeError(f"'{code}' is not a valid character code", rule="CAST")
    return chr(code)


def tbasic_register(api: LibraryAPI) -> None:
    api.metadata(name="runtime", version="2.0.0")
    api.register_function("Size", _size)
    api.register_function("Len", _size)

    api.register_function("IsStr", _predicate(lambda v: isinstance(v, str)))
    api.register_function("IsInt", _predicate(lambda v: is_number(v) and isinstance(v, int)))
    api.register_function("IsDouble", _predicate(lambda v: isinstance(v, float)))
    api.register_function("IsBool", _predicate(lambda v: isinstance(v, bool)))
    api.register_function("IsArray", _predicate(lambda v: isinstance(v, np.ndarray)))
    api.register_function("IsNull", _predicate(lambda v: v is None))
    api.register_function("IsDefined", _is_defined)

    api.register_function("Str", _conversion(to_display_string, "string"))
    api.register_function("Double", _conversion(to_double, "double"))
    api.register_function("Int", _conversion(to_int64, "int"))
    api.register_function("Bool", _conversion(to_bool, "bool"))
    api.register_function("Byte", _conversion(_to_byte, "byte"))
    api.register_function("Char", _conversion(_to_char, "char"))
