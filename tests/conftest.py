from __future__ import annotations

from typing import Any, List

import pytest

from executer import Executer


class ScriptRun:
    """One executer with its output captured."""

    def __init__(self, **kwargs: Any) -> None:
        self.output: List[str] = []
        self.executer = Executer(output_sink=self.output.append, **kwargs)

    @property
    def text(self) -> str:
        return "".join(self.output)

    def execute(self, source: str) -> "ScriptRun":
        self.executer.execute(source)
        return self

    def var(self, name: str) -> Any:
        return self.executer.global_context.get_variable(name)

    def has_var(self, name: str) -> bool:
        return self.executer.global_context.find_variable_context(name) is not None


@pytest.fixture
def run():
    def _run(source: str, **kwargs: Any) -> ScriptRun:
        return ScriptRun(**kwargs).execute(source)

    return _run


@pytest.fixture
def executer() -> Executer:
    return Executer(output_sink=lambda text: None)
