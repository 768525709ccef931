"""TBASIC library: math.

Numeric results go through numpy so that domain errors come back as NaN or
infinity instead of raising.
"""

from __future__ import annotations

import math
import sys
from typing import Callable

import numpy as np

from errors import TBasicError, TBasicTypeError
from executer import Executer
from extensions import LibraryAPI
from frame import StackFrame
from values import normalize


TBASIC_LIBRARY_NAME = "math"
TBASIC_LIBRARY_API_VERSION = 1

EVAL_FAILED = 1

_rng = np.random.default_rng()


def _unary(func: Callable[[float], float]) -> Callable[[StackFrame], None]:
    def impl(frame: StackFrame) -> None:
        frame.assert_args(2)
        with np.errstate(all="ignore"):
            frame.result = normalize(func(frame.get_float(1)))

    return impl


def _truncate(frame: StackFrame, value: float) -> int:
    if not math.isfinite(value):
        raise TBasicTypeError("Value was either too large or too small for an Int64", rule=frame.name)
    return math.trunc(value)


def _pow(frame: StackFrame) -> None:
    frame.assert_args(3)
    with np.errstate(all="ignore"):
        frame.result = normalize(np.power(frame.get_float(1), frame.get_float(2)))


def _ipart(frame: StackFrame) -> None:
    frame.assert_args(2)
    frame.result = _truncate(frame, frame.get_float(1))


def _fpart(frame: StackFrame) -> None:
    frame.assert_args(2)
    value = frame.get_float(1)
    frame.result = normalize(value - _truncate(frame, value))


def _round(frame: StackFrame) -> None:
    # ROUND(x) keeps two decimal places
    if frame.count == 2:
        frame.add(2)
    frame.assert_args(3)
    digits = frame.get_int_range(2, 0, 15)
    frame.result = normalize(round(frame.get_float(1), digits))


def _random(frame: StackFrame) -> None:
    frame.assert_args(1)
    frame.result = float(_rng.random())


def evaluate_isolated(expression: str) -> object:
    """Evaluate ``expression`` with nothing but this library in scope."""
    isolated = Executer(load_standard_library=False, libraries=[sys.modules[__name__]])
    return isolated.evaluate(expression)


def _eval(frame: StackFrame) -> None:
    frame.assert_args(2)
    try:
        frame.result = evaluate_isolated(frame.get_str(1))
    except (TBasicError, ArithmeticError, ValueError):
        frame.result = None
        frame.status = EVAL_FAILED


def tbasic_register(api: LibraryAPI) -> None:
    api.metadata(name="math", version="2.0.0")
    api.register_constant("@PI", math.pi)
    api.register_constant("@E", math.e)

    api.register_function("POW", _pow)
    api.register_function("IPART", _ipart)
    api.register_function("FPART", _fpart)
    api.register_function("ROUND", _round)
    api.register_function("EVAL", _eval)
    api.register_function("RANDOM", _random)

    api.register_function("ABS", _unary(np.abs))
    api.register_function("SQRT", _unary(np.sqrt))
    api.register_function("SIN", _unary(np.sin))
    api.register_function("ASIN", _unary(np.arcsin))
    api.register_function("SINH", _unary(np.sinh))
    api.register_function("COS", _unary(np.cos))
    api.register_function("ACOS", _unary(np.arccos))
    api.register_function("COSH", _unary(np.cosh))
    api.register_function("TAN", _unary(np.tan))
    api.register_function("ATAN", _unary(np.arctan))
    api.register_function("TANH", _unary(np.tanh))
    api.register_function("LOG", _unary(np.log10))
    api.register_function("LN", _unary(np.log))
