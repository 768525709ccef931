from __future__ import annotations
import heapq
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple

from errors import TBasicParseError, TBasicTypeError
from operators import (
    BINARY_OPERATOR_PATTERN,
    UNARY_OPERATOR_PATTERN,
    BinaryOperator,
    Op,
    Side,
    UnaryOperator,
    binary_operator,
    unary_operator,
)
from values import get_element, normalize, to_bool, type_name

if TYPE_CHECKING:
    from executer import Executer


_ESCAPE_CHARS = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    '"': '"',
    "'": "'",
    "\\": "\\",
}

_OPENERS = "(["
_CLOSERS = ")]"

NAME_PATTERN = r"[A-Za-z_][A-Za-z0-9_]*"
VARIABLE_NAME = re.compile(rf"{NAME_PATTERN}\$|@{NAME_PATTERN}")

_PAREN = re.compile(r"\(")
_STRING = re.compile(r"[\"']")
_FUNCTION = re.compile(rf"({NAME_PATTERN})\s*\(")
_NULL = re.compile(r"null(?![\w$(\[])", re.IGNORECASE)
_VARIABLE = re.compile(rf"({NAME_PATTERN}\$|@{NAME_PATTERN})(\s*\[)?")
_HEX = re.compile(r"0x([0-9a-fA-F]+)(?![\w$])")
_BOOLEAN = re.compile(r"(true|false)(?![\w$(\[])", re.IGNORECASE)
_NUMERIC = re.compile(r"(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?(?![\w$])")

# Keyword operators that would otherwise look like a call when followed by "(".
_WORD_OPERATORS = {"MOD", "AND", "OR"}


def read_string(text: str, start: int) -> Tuple[int, str]:
    """Decode the quoted literal opening at ``start``.

    Returns the index of the closing quote and the decoded text.
    """
    quote = text[start]
    out: List[str] = []
    index = start + 1
    while index < len(text):
        ch = text[index]
        if ch == quote:
            return index, "".join(out)
        if ch == "\\":
            index += 1
            if index >= len(text):
                break
            esc = text[index]
            if esc in _ESCAPE_CHARS:
                out.append(_ESCAPE_CHARS[esc])
            elif esc == "u":
                digits = text[index + 1 : index + 5]
                if len(digits) != 4 or not all(c in "0123456789abcdefABCDEF" for c in digits):
                    raise TBasicParseError(f"Invalid unicode escape '\\u{digits}'")
                out.append(chr(int(digits, 16)))
                index += 4
            else:
                raise TBasicParseError(f"Unknown escape sequence '\\{esc}'")
        else:
            out.append(ch)
        index += 1
    raise TBasicParseError("Unterminated string literal")


def skip_string(text: str, start: int) -> int:
    quote = text[start]
    index = start + 1
    while index < len(text):
        ch = text[index]
        if ch == "\\":
            index += 2
            continue
        if ch == quote:
            return index
        index += 1
    raise TBasicParseError("Unterminated string literal")


def index_group(text: str, start: int) -> int:
    """Index of the bracket closing the one at ``start``, skipping strings."""
    depth = 0
    index = start
    while index < len(text):
        ch = text[index]
        if ch in "\"'":
            index = skip_string(text, index)
        elif ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                return index
        index += 1
    raise TBasicParseError(f"Unterminated group in '{text[start:]}'")


def split_arguments(text: str) -> List[str]:
    """Split on top-level commas; commas inside brackets or strings do not count."""
    if text.strip() == "":
        return []
    parts: List[str] = []
    depth = 0
    begin = 0
    index = 0
    while index < len(text):
        ch = text[index]
        if ch in "\"'":
            index = skip_string(text, index)
        elif ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append(text[begin:index].strip())
            begin = index + 1
        index += 1
    parts.append(text[begin:].strip())
    return parts


class Expression:
    """A lazily evaluated operand."""

    def evaluate(self) -> Any:
        raise NotImplementedError


def resolve(item: Any) -> Any:
    if isinstance(item, Expression):
        return item.evaluate()
    return item


def duck_type(value: Any) -> Any:
    if value is None:
        return 0
    return normalize(value)


class Variable(Expression):
    def __init__(self, name: str, executer: "Executer", indices: Optional[List["Evaluator"]] = None, text: str = "") -> None:
        self.name = name
        self.executer = executer
        self.indices = indices
        self.text = text or name

    def evaluate_indices(self) -> List[int]:
        out: List[int] = []
        for index in self.indices or []:
            value = normalize(index.evaluate())
            if isinstance(value, bool) or not isinstance(value, int):
                raise TBasicTypeError(
                    f"Invalid expression '{index.expression}': 'int' expected, found '{type_name(value)}'",
                    rule="INDEX",
                )
            out.append(value)
        return out

    def evaluate(self) -> Any:
        value = self.executer.context.get_variable(self.name)
        if self.indices:
            value = get_element(self.name, value, self.evaluate_indices())
        return duck_type(value)

    def __str__(self) -> str:
        return self.text


class FunctionCall(Expression):
    def __init__(self, name: str, arguments: List["Evaluator"], executer: "Executer", text: str = "") -> None:
        self.name = name
        self.arguments = arguments
        self.executer = executer
        self.text = text

    def evaluate(self) -> Any:
        if self.executer.exit_requested:
            return None
        values = [arg.evaluate() for arg in self.arguments]
        return self.executer.call_function(self.name, values)

    def __str__(self) -> str:
        return self.text


def parse_variable(text: str, executer: "Executer") -> Tuple[Variable, int]:
    """Parse a variable reference at the start of ``text``; returns it and its end index."""
    m = _VARIABLE.match(text)
    if m is None:
        raise TBasicParseError(f"Cannot define variable with name '{text}'")
    name = m.group(1)
    if m.group(2) is None:
        return Variable(name, executer, None, name), m.end()
    bracket = m.end() - 1
    close = index_group(text, bracket)
    parts = split_arguments(text[bracket + 1 : close])
    if not parts or any(p == "" for p in parts):
        raise TBasicParseError("At least one index was expected between braces")
    indices = [Evaluator(p, executer) for p in parts]
    return Variable(name, executer, indices, text[: close + 1]), close + 1


@dataclass
class _Node:
    value: Any
    prev: Optional["_Node"] = None
    next: Optional["_Node"] = None


def _describe(item: Any) -> str:
    if isinstance(item, str):
        return f'"{item}"'
    if isinstance(item, BinaryOperator):
        return item.symbol
    return str(item)


class Evaluator(Expression):
    """Tokenizes an expression once and reduces it by operator precedence."""

    def __init__(self, expression: str, executer: "Executer") -> None:
        self.executer = executer
        self._expression = ""
        self._tokens: Optional[List[Any]] = None
        self.expression = expression

    @property
    def expression(self) -> str:
        return self._expression

    @expression.setter
    def expression(self, value: str) -> None:
        self._expression = value.strip()
        self._tokens = None

    def reparse(self) -> None:
        self._tokens = None

    def __str__(self) -> str:
        return self._expression

    def evaluate(self) -> Any:
        if self._expression == "":
            return 0
        if self._tokens is None:
            self._tokens = self.tokenize()
        return normalize(self._reduce(self._tokens))

    def evaluate_bool(self) -> bool:
        value = self.evaluate()
        try:
            return to_bool(value)
        except TBasicTypeError:
            raise TBasicTypeError(
                f"Expression '{self._expression}' did not evaluate to a boolean ({type_name(value)})",
                rule="BOOL",
            )

    # ---- tokenizer ----

    def tokenize(self) -> List[Any]:
        text = self._expression
        tokens: List[Any] = []
        pos = 0
        while pos < len(text):
            if text[pos].isspace():
                pos += 1
                continue
            pos = self._next_token(text, pos, tokens)
        return tokens

    def _matchers(self, after_value: bool) -> List[Tuple[re.Pattern, Callable[[str, re.Match], Tuple[Any, int]]]]:
        matchers: List[Tuple[re.Pattern, Callable[[str, re.Match], Tuple[Any, int]]]] = [
            (_PAREN, self._group),
            (_STRING, self._string),
        ]
        if not after_value:
            matchers.append((UNARY_OPERATOR_PATTERN, self._unary))
        matchers.extend(
            [
                (_FUNCTION, self._function),
                (_NULL, lambda text, m: (None, m.end())),
                (_VARIABLE, self._variable),
                (_HEX, lambda text, m: (int(m.group(1), 16), m.end())),
                (_BOOLEAN, lambda text, m: (m.group(1).lower() == "true", m.end())),
                (_NUMERIC, lambda text, m: (normalize(float(m.group())), m.end())),
            ]
        )
        if after_value:
            matchers.append((BINARY_OPERATOR_PATTERN, lambda text, m: (binary_operator(m.group()), m.end())))
        return matchers

    def _next_token(self, text: str, pos: int, tokens: List[Any]) -> int:
        after_value = bool(tokens) and not isinstance(tokens[-1], (BinaryOperator, UnaryOperator))
        matchers = self._matchers(after_value)
        for pattern, build in matchers:
            m = pattern.match(text, pos)
            if m is None:
                continue
            if pattern is _FUNCTION and after_value and m.group(1).upper() in _WORD_OPERATORS:
                continue
            token, end = build(text, m)
            tokens.append(token)
            return end
        # Nothing matched here; report what lies before the nearest match.
        nearest = None
        for pattern, _build in matchers:
            m = pattern.search(text, pos)
            if m is not None and (nearest is None or m.start() < nearest):
                nearest = m.start()
        if nearest is None:
            raise TBasicParseError(f"Invalid expression '{text}'")
        raise TBasicParseError(f"Invalid token in expression '{text[pos:nearest].strip()}'")

    def _group(self, text: str, m: re.Match) -> Tuple[Any, int]:
        close = index_group(text, m.start())
        return Evaluator(text[m.start() + 1 : close], self.executer), close + 1

    def _string(self, text: str, m: re.Match) -> Tuple[Any, int]:
        close, value = read_string(text, m.start())
        return value, close + 1

    def _unary(self, text: str, m: re.Match) -> Tuple[Any, int]:
        return unary_operator(m.group()), m.end()

    def _function(self, text: str, m: re.Match) -> Tuple[Any, int]:
        paren = m.end() - 1
        close = index_group(text, paren)
        parts = split_arguments(text[paren + 1 : close])
        if any(p == "" for p in parts):
            raise TBasicParseError(f"Poorly formed function call '{text[m.start() : close + 1]}'")
        arguments = [Evaluator(p, self.executer) for p in parts]
        call = FunctionCall(m.group(1), arguments, self.executer, text[m.start() : close + 1])
        return call, close + 1

    def _variable(self, text: str, m: re.Match) -> Tuple[Any, int]:
        variable, length = parse_variable(text[m.start() :], self.executer)
        return variable, m.start() + length

    # ---- reduction ----

    def _reduce(self, tokens: List[Any]) -> Any:
        items = self._apply_unary(tokens)
        self._check_alternation(items)

        head = _Node(items[0])
        node = head
        queue: List[Tuple[int, int, _Node]] = []
        for seq, item in enumerate(items[1:], start=1):
            nxt = _Node(item, prev=node)
            node.next = nxt
            node = nxt
            if isinstance(item, BinaryOperator):
                queue.append((item.precedence, seq, nxt))
        heapq.heapify(queue)

        while queue:
            _precedence, _seq, op_node = heapq.heappop(queue)
            left, right = op_node.prev, op_node.next
            left.value = self._perform(op_node.value, left.value, right.value)
            left.next = right.next
            if right.next is not None:
                right.next.prev = left
        return resolve(head.value)

    def _apply_unary(self, tokens: List[Any]) -> List[Any]:
        out: List[Any] = []
        pending: List[UnaryOperator] = []
        for item in tokens:
            if isinstance(item, UnaryOperator):
                if item.side is Side.LEFT:
                    if not out or isinstance(out[-1], BinaryOperator):
                        raise TBasicParseError(f"Unary operator '{item.symbol}' has no operand")
                    out[-1] = item.apply(resolve(out[-1]))
                else:
                    pending.append(item)
                continue
            if pending:
                if isinstance(item, BinaryOperator):
                    raise TBasicParseError(f"Unary operator '{pending[-1].symbol}' has no operand")
                value = resolve(item)
                for op in reversed(pending):
                    value = op.apply(value)
                pending = []
                item = value
            out.append(item)
        if pending:
            raise TBasicParseError(f"Expression cannot end in a unary operation: [{pending[-1].symbol}]")
        return out

    def _check_alternation(self, items: List[Any]) -> None:
        if not items:
            raise TBasicParseError(f"Invalid expression '{self._expression}'")
        if isinstance(items[0], BinaryOperator):
            raise TBasicParseError(f"Expression cannot begin with a binary operation: [{items[0].symbol}]")
        missing: List[str] = []
        for prev, item in zip(items, items[1:]):
            prev_is_op = isinstance(prev, BinaryOperator)
            item_is_op = isinstance(item, BinaryOperator)
            if prev_is_op and item_is_op:
                raise TBasicParseError(f"Invalid token in expression '{item.symbol}'")
            if not prev_is_op and not item_is_op:
                missing.append(f"{_describe(prev)} [?] {_describe(item)}")
        if missing:
            raise TBasicParseError("Missing binary operator: " + "; ".join(missing))
        if isinstance(items[-1], BinaryOperator):
            raise TBasicParseError(f"Expression cannot end in a binary operation: [{items[-1].symbol}]")

    def _perform(self, op: BinaryOperator, left: Any, right: Any) -> Any:
        left = resolve(left)
        if not op.short_circuit:
            return op.apply(left, resolve(right))
        decided = self._logical(op, left)
        if op.op is Op.AND and not decided:
            return False
        if op.op is Op.OR and decided:
            return True
        return self._logical(op, resolve(right))

    @staticmethod
    def _logical(op: BinaryOperator, value: Any) -> bool:
        try:
            return to_bool(value)
        except TBasicTypeError:
            raise TBasicTypeError(
                f"Operator '{op.symbol}' cannot be applied to objects of type '{type_name(value)}'",
                rule=op.symbol,
            )
