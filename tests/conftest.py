"""Shared fixtures: a scripted ProcessContext that never spawns agents."""

from __future__ import annotations

import copy
from typing import Any, Callable, Mapping, Optional, Union

import pytest

from uxflow.agents.parallel import ParallelGroup
from uxflow.agents.schemas import BreakpointDecision, BreakpointRequest
from uxflow.core.context import ProcessContext
from uxflow.core.tasks import TaskDef
from uxflow.runtime.host import FixedClock

Scripted = Union[dict, list, Callable[[dict[str, Any]], Any], BaseException]


class ScriptedContext(ProcessContext):
    """ProcessContext whose task results come from a script keyed by task name.

    A script entry is either a result dict, a callable ``(args) -> result``,
    or an exception instance to raise.  Unscripted tasks return ``default``.
    Every call, breakpoint and log line is recorded for assertions.
    """

    def __init__(
        self,
        script: Optional[Mapping[str, Scripted]] = None,
        default: Optional[dict[str, Any]] = None,
        run_id: str = "run-test",
    ) -> None:
        self.script = dict(script or {})
        self.default = default if default is not None else {}
        self.run_id = run_id
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.descriptors: list[Any] = []
        self.breakpoints: list[BreakpointRequest] = []
        self.logs: list[tuple[str, str]] = []
        self._clock = FixedClock()
        self._parallel = ParallelGroup()

    @property
    def parallel(self) -> ParallelGroup:
        return self._parallel

    def now(self):
        return self._clock()

    def log(self, level: str, message: str) -> None:
        self.logs.append((level, message))

    async def task(self, task_def: TaskDef, args: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((task_def.name, args))
        self.descriptors.append(task_def.build(args, f"ef-{len(self.calls):04d}"))
        entry = self.script.get(task_def.name, self.default)
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            entry = entry(args)
        return copy.deepcopy(entry)

    async def breakpoint(self, request: BreakpointRequest) -> BreakpointDecision:
        self.breakpoints.append(request)
        return BreakpointDecision(approved=True, resolved_by="auto")

    # ------------------------------------------------------------------
    # Assertion helpers
    # ------------------------------------------------------------------

    @property
    def task_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    @property
    def breakpoint_titles(self) -> list[str]:
        return [bp.title for bp in self.breakpoints]

    def args_for(self, task_name: str) -> dict[str, Any]:
        for name, args in self.calls:
            if name == task_name:
                return args
        raise AssertionError(f"Task {task_name!r} was never invoked")

    def messages(self, level: Optional[str] = None) -> list[str]:
        return [m for lvl, m in self.logs if level is None or lvl == level]


@pytest.fixture()
def scripted():
    """Return a factory for :class:`ScriptedContext` instances."""

    def _make(script=None, default=None, **kwargs) -> ScriptedContext:
        return ScriptedContext(script=script, default=default, **kwargs)

    return _make
