from __future__ import annotations
import enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, Mapping, Optional, Tuple

import numpy as np

from errors import ConstantViolationError, ContextClearedError, UndefinedNameError
from extensions import Library, NameTable, RuntimeServices, TBasicFunction, build_services
from values import to_display_string, type_name

if TYPE_CHECKING:
    from frame import StackFrame


STATUS_VARIABLE = "@status"


class NameKind(enum.Enum):
    CONSTANT = "constant"
    VARIABLE = "variable"
    FUNCTION = "function"
    COMMAND = "command"
    BLOCK = "block"
    NOT_FOUND = "not found"


class ObjectContext:
    """One level of the scope chain."""

    def __init__(self, parent: Optional["ObjectContext"] = None, *, boundary: bool = False) -> None:
        self.parent = parent
        # assignments never walk past a boundary (a function call)
        self.boundary = boundary
        self.variables = NameTable()
        self.constants = NameTable()
        self.functions = Library()
        self.commands = Library()
        self.blocks = NameTable()
        self.collected = False

    def _tables(self) -> Tuple[Tuple[NameKind, NameTable], ...]:
        return (
            (NameKind.CONSTANT, self.constants),
            (NameKind.VARIABLE, self.variables),
            (NameKind.FUNCTION, self.functions),
            (NameKind.COMMAND, self.commands),
            (NameKind.BLOCK, self.blocks),
        )

    def _table(self, kind: NameKind) -> NameTable:
        for table_kind, table in self._tables():
            if table_kind is kind:
                return table
        raise ValueError(kind)

    def _check(self) -> None:
        if self.collected:
            raise ContextClearedError()

    @property
    def root(self) -> "ObjectContext":
        ctx = self
        while ctx.parent is not None:
            ctx = ctx.parent
        return ctx

    def _chain(self) -> Iterator["ObjectContext"]:
        self._check()
        ctx: Optional[ObjectContext] = self
        while ctx is not None:
            yield ctx
            ctx = ctx.parent

    # ---- lookup ----

    def kind_of(self, name: str) -> NameKind:
        """What ``name`` is at this level only."""
        self._check()
        for kind, table in self._tables():
            if name in table:
                return kind
        return NameKind.NOT_FOUND

    def resolve(self, name: str) -> Tuple[NameKind, Optional["ObjectContext"]]:
        """The innermost binding of ``name`` and the context holding it."""
        for ctx in self._chain():
            kind = ctx.kind_of(name)
            if kind is not NameKind.NOT_FOUND:
                return kind, ctx
        return NameKind.NOT_FOUND, None

    def find_context(self, kind: NameKind, name: str) -> Optional["ObjectContext"]:
        for ctx in self._chain():
            if name in ctx._table(kind):
                return ctx
        return None

    def find_variable_context(self, name: str) -> Optional["ObjectContext"]:
        return self.find_context(NameKind.VARIABLE, name)

    def find_assignable_context(self, name: str) -> Optional["ObjectContext"]:
        """The context a plain assignment to ``name`` would write to, if any."""
        for ctx in self._chain():
            if name in ctx.variables:
                return ctx
            if ctx.boundary:
                break
        return None

    def find_constant_context(self, name: str) -> Optional["ObjectContext"]:
        return self.find_context(NameKind.CONSTANT, name)

    def find_function_context(self, name: str) -> Optional["ObjectContext"]:
        return self.find_context(NameKind.FUNCTION, name)

    def find_command_context(self, name: str) -> Optional["ObjectContext"]:
        return self.find_context(NameKind.COMMAND, name)

    def find_block_context(self, name: str) -> Optional["ObjectContext"]:
        return self.find_context(NameKind.BLOCK, name)

    # ---- get ----

    def _get(self, kind: NameKind, name: str) -> Any:
        ctx = self.find_context(kind, name)
        if ctx is None:
            raise UndefinedNameError(name)
        return ctx._table(kind)[name]

    def get_variable(self, name: str) -> Any:
        # constants shadow variables at the same level
        for ctx in self._chain():
            if name in ctx.constants:
                return ctx.constants[name]
            if name in ctx.variables:
                return ctx.variables[name]
        raise UndefinedNameError(name)

    def get_function(self, name: str) -> TBasicFunction:
        return self._get(NameKind.FUNCTION, name)

    def get_command(self, name: str) -> TBasicFunction:
        return self._get(NameKind.COMMAND, name)

    def get_block(self, name: str) -> Callable[..., Any]:
        return self._get(NameKind.BLOCK, name)

    # ---- set ----

    def _set(self, kind: NameKind, name: str, value: Any) -> None:
        ctx = self.find_context(kind, name)
        (ctx or self)._table(kind)[name] = value

    def set_variable(self, name: str, value: Any) -> None:
        if self.find_constant_context(name) is not None:
            raise ConstantViolationError("Cannot redefine a constant", rule=name)
        ctx = self.find_assignable_context(name)
        (ctx or self).variables[name] = value

    def declare_variable(self, name: str, value: Any) -> None:
        """Bind ``name`` in this context even if an outer context has it."""
        if self.find_constant_context(name) is not None:
            raise ConstantViolationError("Cannot redefine a constant", rule=name)
        self._check()
        self.variables[name] = value

    def set_constant(self, name: str, value: Any) -> None:
        if self.find_variable_context(name) is not None:
            raise ConstantViolationError(
                f"An object '{name}' has been defined as a variable and cannot be redefined as a constant",
                rule=name,
            )
        if self.find_constant_context(name) is not None:
            raise ConstantViolationError("Cannot redefine a constant", rule=name)
        if isinstance(value, np.ndarray):
            raise ConstantViolationError("Arrays cannot be defined as constants", rule=name)
        # write-once, so the declaring context is always this one
        self.constants[name] = value

    def set_function(self, name: str, func: TBasicFunction) -> None:
        self._set(NameKind.FUNCTION, name, func)

    def set_command(self, name: str, func: TBasicFunction) -> None:
        self._set(NameKind.COMMAND, name, func)

    def set_block(self, name: str, creator: Callable[..., Any]) -> None:
        self._set(NameKind.BLOCK, name, creator)

    def declare_function(self, name: str, func: TBasicFunction) -> None:
        self._check()
        self.functions[name] = func

    def declare_command(self, name: str, func: TBasicFunction) -> None:
        self._check()
        self.commands[name] = func

    # ---- lifecycle ----

    def create_child(self, *, boundary: bool = False) -> "ObjectContext":
        self._check()
        return ObjectContext(self, boundary=boundary)

    def collect(self) -> "ObjectContext":
        self._check()
        if self.parent is None:
            return self
        self.collected = True
        for _kind, table in self._tables():
            table.clear()
        return self.parent

    # ---- libraries ----

    def add_library(self, library: Mapping[str, TBasicFunction]) -> None:
        self.root.functions.add_library(library)

    def install(self, services: RuntimeServices) -> None:
        root = self.root
        root._check()
        root.functions.add_library(services.functions)
        root.commands.add_library(services.commands)
        for name, creator in services.blocks.items():
            root.blocks[name] = creator
        for name, value in services.constants.items():
            root.set_constant(name, value)

    def load_standard_library(self) -> RuntimeServices:
        from tblib import STANDARD_LIBRARIES

        services = build_services(STANDARD_LIBRARIES)
        self.install(services)
        return services

    # ---- returns ----

    def set_returns(self, frame: "StackFrame") -> None:
        """Expose the status of the last completed call as ``@status``."""
        self.root.variables[STATUS_VARIABLE] = frame.status

    # ---- introspection ----

    def snapshot(self) -> Dict[str, str]:
        def _render(value: Any) -> str:
            if isinstance(value, np.ndarray):
                dims = ",".join(str(d) for d in value.shape)
                return f"{type_name(value)}:[{dims}]"
            rendered = to_display_string(value)
            if len(rendered) > 80:
                rendered = rendered[:77] + "..."
            return f"{type_name(value)}:{rendered}"

        seen: Dict[str, str] = {}
        for ctx in self._chain():
            for table in (ctx.constants, ctx.variables):
                for name, value in table.items():
                    seen.setdefault(name, _render(value))
        return seen
