from __future__ import annotations
import enum
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from errors import TBasicDivideByZeroError, TBasicTypeError
from values import (
    UINT64_MAX,
    normalize,
    to_bool,
    to_display_string,
    to_double,
    to_int32,
    to_int64,
    to_uint64,
    type_name,
    wrap_int64,
)


class Op(enum.Enum):
    MUL = "*"
    DIV = "/"
    MOD = "MOD"
    ADD = "+"
    SUB = "-"
    SHL = "<<"
    SHR = ">>"
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    EQ = "="
    STRICT_EQ = "=="
    NE = "<>"
    STRICT_NE = "!="
    BIT_AND = "&"
    BIT_XOR = "^"
    BIT_OR = "|"
    AND = "AND"
    OR = "OR"


class Side(enum.Enum):
    """Which neighbour a unary operator consumes."""

    LEFT = "left"
    RIGHT = "right"


BinaryReducer = Callable[[Any, Any], Any]
UnaryReducer = Callable[[Any], Any]

# Conversions that signal "wrong operand type" rather than a script bug.
_COERCION_ERRORS = (TBasicTypeError, ValueError, TypeError, OverflowError)


@dataclass(frozen=True)
class BinaryOperator:
    symbol: str
    op: Op
    precedence: int
    reducer: Optional[BinaryReducer]

    @property
    def short_circuit(self) -> bool:
        return self.reducer is None

    def apply(self, left: Any, right: Any) -> Any:
        if self.reducer is None:
            raise TBasicTypeError(f"Operator '{self.symbol}' must be short-circuited", rule=self.symbol)
        try:
            return normalize(self.reducer(left, right))
        except TBasicDivideByZeroError:
            raise
        except _COERCION_ERRORS:
            raise TBasicTypeError(
                f"Operator '{self.symbol}' cannot be applied to objects of type "
                f"'{type_name(left)}' and '{type_name(right)}'",
                rule=self.symbol,
            )


@dataclass(frozen=True)
class UnaryOperator:
    symbol: str
    reducer: UnaryReducer
    side: Side = Side.RIGHT

    def apply(self, operand: Any) -> Any:
        try:
            return normalize(self.reducer(operand))
        except _COERCION_ERRORS:
            raise TBasicTypeError(
                f"Unary operator '{self.symbol.strip()}' cannot be applied to objects of type '{type_name(operand)}'",
                rule=self.symbol.strip(),
            )


def _either_string(left: Any, right: Any) -> bool:
    return isinstance(left, str) or isinstance(right, str)


def _not_for_strings(op: Op, numeric: BinaryReducer) -> BinaryReducer:
    def reducer(left: Any, right: Any) -> Any:
        if _either_string(left, right):
            raise TBasicTypeError(f"'{op.value}' is undefined for strings")
        return numeric(to_double(left), to_double(right))

    return reducer


def _add(left: Any, right: Any) -> Any:
    if _either_string(left, right):
        return to_display_string(left) + to_display_string(right)
    return to_double(left) + to_double(right)


def _divide(left: Any, right: Any) -> Any:
    if _either_string(left, right):
        raise TBasicTypeError("'/' is undefined for strings")
    divisor = to_double(right)
    if divisor == 0:
        raise TBasicDivideByZeroError()
    return to_double(left) / divisor


def _modulo(left: Any, right: Any) -> Any:
    a, b = to_int64(left), to_int64(right)
    if b == 0:
        raise TBasicDivideByZeroError()
    # truncated remainder, the sign follows the dividend
    result = abs(a) % abs(b)
    return -result if a < 0 else result


def _shift_left(left: Any, right: Any) -> Any:
    return wrap_int64(to_int64(left) << (to_int32(right) & 63))


def _shift_right(left: Any, right: Any) -> Any:
    return to_int64(left) >> (to_int32(right) & 63)


def _equal(left: Any, right: Any) -> bool:
    if _either_string(left, right):
        return to_display_string(left).lower() == to_display_string(right).lower()
    return to_double(left) == to_double(right)


def _strict_equal(left: Any, right: Any) -> bool:
    if _either_string(left, right):
        return to_display_string(left) == to_display_string(right)
    return to_double(left) == to_double(right)


def _not_equal(left: Any, right: Any) -> bool:
    return not _strict_equal(left, right)


def _binary(symbol: str, op: Op, precedence: int, reducer: Optional[BinaryReducer]) -> BinaryOperator:
    return BinaryOperator(symbol=symbol, op=op, precedence=precedence, reducer=reducer)


_LE = _not_for_strings(Op.LE, lambda a, b: a <= b)
_GE = _not_for_strings(Op.GE, lambda a, b: a >= b)

BINARY_OPERATORS: Dict[str, BinaryOperator] = {
    "*": _binary("*", Op.MUL, 0, _not_for_strings(Op.MUL, lambda a, b: a * b)),
    "/": _binary("/", Op.DIV, 0, _divide),
    "MOD": _binary("MOD", Op.MOD, 0, _modulo),
    "+": _binary("+", Op.ADD, 1, _add),
    "-": _binary("-", Op.SUB, 1, _not_for_strings(Op.SUB, lambda a, b: a - b)),
    "<<": _binary("<<", Op.SHL, 2, _shift_left),
    ">>": _binary(">>", Op.SHR, 2, _shift_right),
    "<": _binary("<", Op.LT, 3, _not_for_strings(Op.LT, lambda a, b: a < b)),
    "<=": _binary("<=", Op.LE, 3, _LE),
    "=<": _binary("=<", Op.LE, 3, _LE),
    ">": _binary(">", Op.GT, 3, _not_for_strings(Op.GT, lambda a, b: a > b)),
    ">=": _binary(">=", Op.GE, 3, _GE),
    "=>": _binary("=>", Op.GE, 3, _GE),
    "=": _binary("=", Op.EQ, 4, _equal),
    "==": _binary("==", Op.STRICT_EQ, 4, _strict_equal),
    "<>": _binary("<>", Op.NE, 4, _not_equal),
    "!=": _binary("!=", Op.STRICT_NE, 4, _not_equal),
    "&": _binary("&", Op.BIT_AND, 5, lambda a, b: to_uint64(a) & to_uint64(b)),
    "^": _binary("^", Op.BIT_XOR, 6, lambda a, b: to_uint64(a) ^ to_uint64(b)),
    "|": _binary("|", Op.BIT_OR, 7, lambda a, b: to_uint64(a) | to_uint64(b)),
    "AND": _binary("AND", Op.AND, 8, None),
    "OR": _binary("OR", Op.OR, 9, None),
}

UNARY_OPERATORS: Dict[str, UnaryOperator] = {
    "+": UnaryOperator("+", lambda v: to_double(v)),
    "-": UnaryOperator("-", lambda v: -to_double(v)),
    "NOT": UnaryOperator("NOT", lambda v: not to_bool(v)),
    "~": UnaryOperator("~", lambda v: ~to_uint64(v) & UINT64_MAX),
}

# Longer symbols come first so that "<=" never tokenizes as "<" followed by "=".
BINARY_OPERATOR_PATTERN = re.compile(
    r"<<|>>|\+|-|\*|/|(?:MOD|AND|OR)(?![\w$])|&|\||\^|==|!=|<>|>=|=>|<=|=<|=|<|>",
    re.IGNORECASE,
)

# A unary operator must be followed directly by the start of an operand.
UNARY_OPERATOR_PATTERN = re.compile(r"(?:\+|-|~|NOT\s+|NOT(?=\())(?=[\w@(.\"'~+-])", re.IGNORECASE)


def binary_operator(symbol: str) -> BinaryOperator:
    try:
        return BINARY_OPERATORS[symbol.upper()]
    except KeyError:
        raise TBasicTypeError(f"operator '{symbol}' not defined", rule=symbol)


def unary_operator(symbol: str) -> UnaryOperator:
    key = symbol.strip().upper()
    try:
        return UNARY_OPERATORS[key]
    except KeyError:
        raise TBasicTypeError(f"unary operator '{symbol}' not defined", rule=key)
