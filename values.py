from __future__ import annotations
import math
from typing import Any, List

import numpy as np

from errors import TBasicRuntimeError, TBasicTypeError

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1
UINT64_MAX = (1 << 64) - 1


def normalize(value: Any) -> Any:
    """Collapse integral floats to ints so equality and printing agree."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and INT64_MIN <= value <= INT64_MAX:
            return int(value)
        return value
    return value


def type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "double"
    if isinstance(value, str):
        return "string"
    if isinstance(value, np.ndarray):
        return "object array"
    return value.__class__.__name__.lower()


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_double(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise TBasicTypeError(f"Input string '{value}' was not in a correct format", rule="CAST")
    raise TBasicTypeError(f"Cannot convert {type_name(value)} to double", rule="CAST")


def to_int64(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise TBasicTypeError("Value was either too large or too small for an Int64", rule="CAST")
        result = round(value)
    elif isinstance(value, str):
        try:
            result = int(value.strip(), 10)
        except ValueError:
            raise TBasicTypeError(f"Input string '{value}' was not in a correct format", rule="CAST")
    else:
        raise TBasicTypeError(f"Cannot convert {type_name(value)} to int", rule="CAST")
    if result < INT64_MIN or result > INT64_MAX:
        raise TBasicTypeError("Value was either too large or too small for an Int64", rule="CAST")
    return result


def to_uint64(value: Any) -> int:
    result = to_int64(value) if not (isinstance(value, int) and value > INT64_MAX) else value
    if result < 0 or result > UINT64_MAX:
        raise TBasicTypeError("Value was either too large or too small for a UInt64", rule="CAST")
    return result


def to_int32(value: Any) -> int:
    result = to_int64(value)
    if result < -(1 << 31) or result > (1 << 31) - 1:
        raise TBasicTypeError("Value was either too large or too small for an Int32", rule="CAST")
    return result


def to_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text == "true":
            return True
        if text == "false":
            return False
        raise TBasicTypeError(f"String '{value}' was not recognized as a valid Boolean", rule="CAST")
    raise TBasicTypeError(f"Cannot convert {type_name(value)} to boolean", rule="CAST")


def wrap_int64(value: int) -> int:
    value &= UINT64_MAX
    return value - (1 << 64) if value > INT64_MAX else value


def format_number(value: float) -> str:
    text = repr(value)
    if text.endswith(".0"):
        text = text[:-2]
    return text


_ESCAPES = {
    "\n": "\\n",
    "\r": "\\r",
    "\\": "\\\\",
    "\b": "\\b",
    "\t": "\\t",
    "\f": "\\f",
    '"': '\\"',
    "'": "\\'",
}


def quote_string(text: str) -> str:
    out = []
    for ch in text:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ch < " ":
            out.append("\\u" + format(ord(ch), "04x"))
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def to_display_string(value: Any) -> str:
    """The text a value contributes to string concatenation and output."""
    value = normalize(value)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, np.ndarray):
        return _format_array(value)
    return str(value)


def _format_array(arr: np.ndarray) -> str:
    if arr.ndim == 0:
        return to_display_string(arr.item())
    items = []
    for element in arr:
        if isinstance(element, str):
            items.append(quote_string(element))
        else:
            items.append(to_display_string(element))
    if not items:
        return "{ }"
    return "{ " + ", ".join(items) + " }"


def _element_label(name: str, indices: List[int], depth: int) -> str:
    if depth == 0:
        return name
    return name + "[" + ",".join(str(i) for i in indices[:depth]) + "]"


def get_element(name: str, container: Any, indices: List[int]) -> Any:
    """Walk ``indices`` into nested arrays one dimension at a time."""
    value = container
    for depth, index in enumerate(indices):
        label = _element_label(name, indices, depth)
        if not isinstance(value, np.ndarray) or value.ndim == 0:
            raise TBasicRuntimeError(f"Object '{label}' cannot be indexed", rule="INDEX")
        if index < 0 or index >= value.shape[0]:
            raise TBasicRuntimeError(f"Index '{index}' of object '{label}' is out of range", rule="INDEX")
        value = value[index]
    return value


def set_element(name: str, container: Any, indices: List[int], value: Any) -> None:
    parent = get_element(name, container, indices[:-1])
    label = _element_label(name, indices, len(indices) - 1)
    index = indices[-1]
    if not isinstance(parent, np.ndarray) or parent.ndim == 0:
        raise TBasicRuntimeError(f"Object '{label}' cannot be indexed", rule="INDEX")
    if index < 0 or index >= parent.shape[0]:
        raise TBasicRuntimeError(f"Index '{index}' of object '{label}' is out of range", rule="INDEX")
    if parent.ndim > 1:
        raise TBasicRuntimeError(f"Object '{label}[{index}]' is an array dimension and cannot be assigned", rule="INDEX")
    parent[index] = value


def new_array(shape: List[int]) -> np.ndarray:
    for size in shape:
        if size < 0:
            raise TBasicRuntimeError(f"Array size '{size}' cannot be negative", rule="DIM")
    arr = np.empty(tuple(shape), dtype=object)
    arr.fill(None)
    return arr


def resize_array(old: np.ndarray, shape: List[int]) -> np.ndarray:
    """Reallocate keeping the elements both shapes have in common."""
    arr = new_array(shape)
    if old.ndim == arr.ndim:
        overlap = tuple(slice(0, min(a, b)) for a, b in zip(old.shape, arr.shape))
        arr[overlap] = old[overlap]
    return arr


def to_array(items: List[Any]) -> np.ndarray:
    arr = np.empty(len(items), dtype=object)
    for i, item in enumerate(items):
        arr[i] = item
    return arr
