from __future__ import annotations
from typing import List, Optional, Tuple


class TBasicError(Exception):
    """Base class for interpreter errors."""


class TBasicParseError(TBasicError):
    """Raised when script text cannot be parsed."""

    def __init__(self, message: str, *, line: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line


class EndOfCodeError(TBasicParseError):
    """Raised when the end of the script is reached inside an open construct."""


class TBasicRuntimeError(TBasicError):
    """Raised for runtime faults."""

    def __init__(self, message: str, *, rule: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.rule = rule


class TBasicTypeError(TBasicRuntimeError):
    pass


class TBasicDivideByZeroError(TBasicRuntimeError):
    def __init__(self) -> None:
        super().__init__("Attempted to divide by zero", rule="/")


class UndefinedNameError(TBasicRuntimeError):
    def __init__(self, name: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"'{name}' does not exist in the current context", rule="IDENT")
        self.name = name


class ConstantViolationError(TBasicRuntimeError):
    pass


class ContextClearedError(TBasicRuntimeError):
    def __init__(self) -> None:
        super().__init__("Context fell out of scope and was disposed", rule="CONTEXT")


class ArgumentCountError(TBasicRuntimeError):
    def __init__(self, callee: str, supplied: int) -> None:
        plural = "" if supplied == 1 else "s"
        super().__init__(f"{callee.upper()} does not take {supplied} parameter{plural}", rule=callee)
        self.callee = callee
        self.supplied = supplied


class ScriptError(TBasicError):
    """A failure on one script line, wrapping whatever the line raised.

    Nested block and function execution produce nested ``ScriptError``
    instances, so a failure deep inside a loop carries the line of every
    enclosing construct.
    """

    def __init__(self, line: int, name: str, inner: BaseException, *, statement: Optional[str] = None) -> None:
        self.line = line
        self.name = name
        self.inner = inner
        self.statement = statement
        super().__init__(self._compose())

    @property
    def chain(self) -> List[Tuple[str, int]]:
        # innermost first
        out: List[Tuple[str, int]] = []
        err: BaseException = self
        while isinstance(err, ScriptError):
            out.append((err.name, err.line))
            err = err.inner
        out.reverse()
        return out

    @property
    def root_cause(self) -> BaseException:
        err: BaseException = self
        while isinstance(err, ScriptError):
            err = err.inner
        return err

    @property
    def detail(self) -> str:
        cause = self.root_cause
        return getattr(cause, "message", None) or str(cause) or cause.__class__.__name__

    def _compose(self) -> str:
        lines = [f"An error occurred at '{self.name}' on line {self.line}"]
        err = self.inner
        while isinstance(err, ScriptError):
            lines.append(f"\tat '{err.name}' on line {err.line}")
            err = err.inner
        lines.append("")
        lines.append("Detail:")
        lines.append(self.detail)
        return "\n".join(lines)
