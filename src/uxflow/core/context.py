"""Host interface every process runs against."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Sequence

from uxflow.agents.schemas import BreakpointDecision, BreakpointRequest
from uxflow.core.tasks import TaskDef


class ParallelInterface(ABC):
    @abstractmethod
    async def all(self, thunks: Sequence[Callable[[], Awaitable[Any]]]) -> list[Any]:
        """Run the thunks concurrently and return results in input order."""
        ...


class ProcessContext(ABC):
    """Abstract host context handed to ``process(inputs, ctx)``.

    Implementations provide the clock, logging, agent task execution,
    fork-join and human breakpoints.  :class:`uxflow.runtime.host.LocalRuntime`
    is the bundled implementation.
    """

    run_id: str

    @property
    @abstractmethod
    def parallel(self) -> ParallelInterface:
        ...

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time (timezone-aware)."""
        ...

    @abstractmethod
    def log(self, level: str, message: str) -> None:
        """Record a log line at ``debug``/``info``/``warning``/``error``."""
        ...

    @abstractmethod
    async def task(self, task_def: TaskDef, args: dict[str, Any]) -> dict[str, Any]:
        """Execute an agent task and return its schema-valid result.

        Raises:
            Any host error (dispatch failure, schema violation).  Processes do
            not catch these.
        """
        ...

    @abstractmethod
    async def breakpoint(self, request: BreakpointRequest) -> BreakpointDecision:
        """Pause for human review and return how the pause was resolved."""
        ...
