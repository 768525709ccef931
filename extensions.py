from __future__ import annotations

from collections import UserDict
from dataclasses import dataclass, field
from types import ModuleType
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional

from errors import TBasicError

if TYPE_CHECKING:
    from frame import StackFrame


LIBRARY_API_VERSION = 1

TBasicFunction = Callable[["StackFrame"], None]


class TBasicExtensionError(TBasicError):
    pass


@dataclass(frozen=True)
class ExtensionMetadata:
    name: str
    version: str = "0.0.0"
    requires_api: int = LIBRARY_API_VERSION


class NameTable(UserDict):
    """A mapping whose keys compare without regard to case.

    The spelling used when a name was first stored is kept for display.
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._spelling: Dict[str, str] = {}
        super().__init__()
        if initial:
            self.update(initial)

    def __setitem__(self, key: str, value: Any) -> None:
        folded = key.upper()
        self._spelling.setdefault(folded, key)
        self.data[folded] = value

    def __getitem__(self, key: str) -> Any:
        return self.data[key.upper()]

    def __delitem__(self, key: str) -> None:
        folded = key.upper()
        del self.data[folded]
        self._spelling.pop(folded, None)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.upper() in self.data

    def __iter__(self):
        return iter(self._spelling[k] for k in self.data)

    def clear(self) -> None:
        self.data.clear()
        self._spelling.clear()


class Library(NameTable):
    """Named callables that take a StackFrame."""

    def add_library(self, other: Mapping[str, TBasicFunction]) -> None:
        for name, func in other.items():
            self[name] = func


@dataclass
class RuntimeServices:
    metadata: List[ExtensionMetadata] = field(default_factory=list)
    functions: Library = field(default_factory=Library)
    commands: Library = field(default_factory=Library)
    constants: NameTable = field(default_factory=NameTable)
    blocks: NameTable = field(default_factory=NameTable)


class LibraryAPI:
    def __init__(self, *, services: RuntimeServices, ext_name: str) -> None:
        self._services = services
        self._ext_name = ext_name

    # ---- metadata ----
    def metadata(self, *, name: str, version: str = "0.0.0", requires_api: int = LIBRARY_API_VERSION) -> None:
        self._services.metadata.append(ExtensionMetadata(name=name, version=version, requires_api=requires_api))

    # ---- functions ----
    def register_function(self, name: str, impl: TBasicFunction) -> None:
        if not name:
            raise TBasicExtensionError(f"{self._ext_name}: function name must be non-empty")
        self._services.functions[name] = impl

    # ---- commands ----
    def register_command(self, name: str, impl: TBasicFunction) -> None:
        if not name:
            raise TBasicExtensionError(f"{self._ext_name}: command name must be non-empty")
        self._services.commands[name] = impl

    # ---- constants ----
    def register_constant(self, name: str, value: Any) -> None:
        if name in self._services.constants:
            raise TBasicExtensionError(f"{self._ext_name}: constant '{name}' is already registered")
        self._services.constants[name] = value

    # ---- blocks ----
    def register_block(self, keyword: str, creator: Callable[..., Any]) -> None:
        self._services.blocks[keyword] = creator


def build_services(modules: Iterable[ModuleType], services: Optional[RuntimeServices] = None) -> RuntimeServices:
    """Run ``tbasic_register`` for each library module, in order."""
    services = services or RuntimeServices()
    for module in modules:
        api_version = getattr(module, "TBASIC_LIBRARY_API_VERSION", LIBRARY_API_VERSION)
        if api_version != LIBRARY_API_VERSION:
            raise TBasicExtensionError(
                f"Library {module.__name__} requires API {api_version}, host supports {LIBRARY_API_VERSION}"
            )
        register = getattr(module, "tbasic_register", None)
        if register is None or not callable(register):
            raise TBasicExtensionError(f"Library {module.__name__} must define callable tbasic_register(api)")
        ext_name = getattr(module, "TBASIC_LIBRARY_NAME", module.__name__.rsplit(".", 1)[-1])
        register(LibraryAPI(services=services, ext_name=str(ext_name)))
    return services
