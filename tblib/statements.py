"""TBASIC library: statements.

Commands that make up the statement surface of the language (LET, DIM, CONST,
BREAK, EXIT, SLEEP, #include) and the control-flow block kinds. An executer
built without the standard library has no IF or loops either.
"""

from __future__ import annotations

import time
from typing import Any, Tuple

import numpy as np

from blocks import DoBlock, ForBlock, IfBlock, SelectBlock, WhileBlock
from errors import ArgumentCountError, ConstantViolationError, TBasicParseError, TBasicTypeError
from evaluator import VARIABLE_NAME, Evaluator, Variable, parse_variable
from extensions import LibraryAPI
from frame import StackFrame
from values import new_array, resize_array, set_element


TBASIC_LIBRARY_NAME = "statements"
TBASIC_LIBRARY_API_VERSION = 1

_STRAY_CLOSERS = ("ELSE", "END", "WEND", "LOOP", "CASE", "DEFAULT", "NEXT")


def _target(frame: StackFrame) -> Tuple[Variable, str]:
    """Split ``name$[i] = expr`` into the target and whatever follows it."""
    text = frame.text_after_name()
    if not text:
        raise ArgumentCountError(frame.name, 0)
    if VARIABLE_NAME.match(text) is None:
        raise TBasicParseError(f"Cannot define variable with name '{text.split()[0]}'")
    variable, end = parse_variable(text, frame.executer)
    if end < len(text) and not (text[end].isspace() or text[end] == "="):
        raise TBasicParseError(f"Cannot define variable with name '{text.split()[0]}'")
    return variable, text[end:].strip()


def _assigned_value(frame: StackFrame, rest: str) -> Any:
    if not rest.startswith("=") or rest.startswith("=="):
        operator = rest.split()[0] if rest else ""
        raise TBasicParseError(f"Invalid operator in declaration '{operator}', expected '='")
    expression = rest[1:].strip()
    if not expression:
        raise TBasicParseError("Expected an expression after '='")
    return Evaluator(expression, frame.executer).evaluate()


def _store(frame: StackFrame, variable: Variable, value: Any) -> None:
    context = frame.context
    if variable.indices:
        indices = variable.evaluate_indices()
        container = context.get_variable(variable.name)
        set_element(variable.name, container, indices, value)
    else:
        context.set_variable(variable.name, value)


def _let(frame: StackFrame) -> None:
    variable, rest = _target(frame)
    _store(frame, variable, _assigned_value(frame, rest))


def _dim(frame: StackFrame) -> None:
    variable, rest = _target(frame)
    if rest:
        _store(frame, variable, _assigned_value(frame, rest))
        return
    context = frame.context
    if not variable.indices:
        context.declare_variable(variable.name, None)
        return
    shape = variable.evaluate_indices()
    owner = context.find_assignable_context(variable.name)
    if owner is None:
        context.set_variable(variable.name, new_array(shape))
        return
    current = owner.get_variable(variable.name)
    if isinstance(current, np.ndarray):
        owner.set_variable(variable.name, resize_array(current, shape))
    else:
        owner.set_variable(variable.name, new_array(shape))


def _const(frame: StackFrame) -> None:
    variable, rest = _target(frame)
    if variable.indices:
        raise ConstantViolationError("Arrays cannot be defined as constants", rule=variable.name)
    frame.context.set_constant(variable.name, _assigned_value(frame, rest))


def _break(frame: StackFrame) -> None:
    frame.assert_args(1)
    frame.executer.request_break()


def _exit(frame: StackFrame) -> None:
    frame.assert_args(1)
    frame.executer.request_exit()


def _sleep(frame: StackFrame) -> None:
    frame.assert_args(2, at_least=True)
    expression = frame.text_after_name()
    value = Evaluator(expression, frame.executer).evaluate()
    if isinstance(value, bool) or not isinstance(value, int):
        raise TBasicTypeError("expected parameter 1 to be of type int", rule=frame.name)
    if value < 0:
        raise TBasicTypeError("SLEEP duration cannot be negative", rule=frame.name)
    time.sleep(value / 1000.0)


def _include(frame: StackFrame) -> None:
    frame.assert_args(2, at_least=True)
    path = Evaluator(frame.text_after_name(), frame.executer).evaluate()
    if not isinstance(path, str):
        raise TBasicTypeError("expected parameter 1 to be of type string", rule=frame.name)
    frame.executer.include(path)


def _stray_closer(frame: StackFrame) -> None:
    raise TBasicParseError(
        f"Cannot find opening statement for '{frame.text}'",
        line=frame.executer.current_line,
    )


def tbasic_register(api: LibraryAPI) -> None:
    api.metadata(name="statements", version="2.0.0")
    api.register_command("LET", _let)
    api.register_command("DIM", _dim)
    api.register_command("CONST", _const)
    api.register_command("BREAK", _break)
    api.register_command("EXIT", _exit)
    api.register_command("SLEEP", _sleep)
    api.register_command("#include", _include)
    for closer in _STRAY_CLOSERS:
        api.register_command(closer, _stray_closer)

    api.register_block("IF", IfBlock)
    api.register_block("DO", DoBlock)
    api.register_block("WHILE", WhileBlock)
    api.register_block("FOR", ForBlock)
    api.register_block("SELECT", SelectBlock)
