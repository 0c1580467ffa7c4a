"""Phased workflow runner — sequential, fan-out, and conditional phases."""

from __future__ import annotations

import functools
import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from uxflow.agents.parallel import parallel_map
from uxflow.agents.schemas import BreakpointRequest
from uxflow.core.context import ProcessContext
from uxflow.core.gates import Breakpoint, StopRule
from uxflow.core.state import PhaseOutcome, ProcessFailure, WorkflowState
from uxflow.core.tasks import CatalogError, TaskCatalog

logger = logging.getLogger(__name__)

StateFn = Callable[[WorkflowState], Any]
Notes = Callable[[WorkflowState], list[tuple[str, str]]]


# ---------------------------------------------------------------------------
# Phase declarations
# ---------------------------------------------------------------------------


class Phase(BaseModel):
    """One step of a process pipeline, invoking a single catalog task.

    ``args`` lists the keys passed to the task.  Each key resolves, in order,
    against the process's derived values, earlier phase results, and finally
    the process inputs (by their camelCase name).  ``bind`` overrides a key
    with a dotted path such as ``"planning.refinedGoals"`` or a function of
    the state.

    ``before`` breakpoints are raised ahead of the task, ``breakpoints`` after
    the result is recorded.  Neither is raised for a skipped phase.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    task: str
    log: str
    args: tuple[str, ...] = ()
    bind: Mapping[str, Union[str, StateFn]] = {}
    when: Optional[Callable[[WorkflowState], bool]] = None
    stop: Optional[StopRule] = None
    before: tuple[Breakpoint, ...] = ()
    breakpoints: tuple[Breakpoint, ...] = ()
    notes: Optional[Notes] = None

    @property
    def conditional(self) -> bool:
        return self.when is not None

    @property
    def fan_out(self) -> bool:
        return False


class FanOutPhase(Phase):
    """Invoke the task once per element of ``over``, concurrently.

    Each invocation receives the element under the ``item`` key.  The phase
    result is the list of item results in the order of the collection.
    """

    over: Union[str, StateFn]
    item: str

    @property
    def fan_out(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Process definition
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def _load_catalog(slug: str) -> TaskCatalog:
    return TaskCatalog.for_process(slug)


class ProcessDefinition(BaseModel):
    """Everything the runner needs to execute one workflow."""

    model_config = ConfigDict(frozen=True)

    process_id: str
    name: str
    title: str
    catalog_slug: str
    inputs_model: type[BaseModel]
    phases: tuple[Phase, ...]
    derived: Mapping[str, StateFn] = {}
    finalize: Callable[[WorkflowState], dict[str, Any]]
    metadata: Optional[Callable[[WorkflowState], dict[str, Any]]] = None
    intro: Optional[Callable[[WorkflowState], list[str]]] = None

    @property
    def catalog(self) -> TaskCatalog:
        return _load_catalog(self.catalog_slug)

    def parse_inputs(self, inputs: Any) -> BaseModel:
        if isinstance(inputs, self.inputs_model):
            return inputs
        return self.inputs_model.model_validate(inputs or {})

    def input_names(self) -> list[str]:
        return [
            field.alias or name for name, field in self.inputs_model.model_fields.items()
        ]

    def validate_definition(self) -> list[str]:
        """Return problems with the phase wiring; an empty list means valid.

        Checks that every task exists in the catalog, phase names are unique,
        and every argument key resolves to a derived value, an earlier phase,
        an input, or the fan-out item.
        """
        problems: list[str] = []
        try:
            catalog = self.catalog
        except CatalogError as exc:
            return [str(exc)]

        known = set(self.input_names()) | set(self.derived)
        seen: set[str] = set()
        for phase in self.phases:
            if phase.name in seen:
                problems.append(f"Duplicate phase name '{phase.name}'.")
            if phase.task not in catalog:
                problems.append(f"Phase '{phase.name}' uses unknown task '{phase.task}'.")
            available = known | seen
            if isinstance(phase, FanOutPhase):
                available = available | {phase.item}
                if isinstance(phase.over, str) and phase.over not in available:
                    problems.append(
                        f"Phase '{phase.name}' fans out over unknown key '{phase.over}'."
                    )
            for key in phase.args:
                source = phase.bind.get(key, key)
                if callable(source):
                    continue
                if source.split(".")[0] not in available:
                    problems.append(f"Phase '{phase.name}' has unresolvable arg '{key}'.")
            for key in phase.bind:
                if key not in phase.args:
                    problems.append(f"Phase '{phase.name}' binds '{key}' which is not an arg.")
            seen.add(phase.name)
        return problems


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


def _elapsed_ms(start: datetime, end: datetime) -> int:
    return int(round((end - start).total_seconds() * 1000))


class PhasedRunner:
    """Executes a :class:`ProcessDefinition` against a :class:`ProcessContext`.

    Phases run in declaration order against an immutable
    :class:`WorkflowState`.  After each phase the runner:

    1. Checks the phase's stop rule and returns ``success: false`` early when
       it holds.
    2. Emits the phase notes through ``ctx.log``.
    3. Raises the phase's breakpoints.  Breakpoints are advisory: their
       decisions are never consulted.

    Task and breakpoint exceptions propagate to the caller unchanged.
    """

    def __init__(self, definition: ProcessDefinition) -> None:
        self.definition = definition

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, inputs: Any, ctx: ProcessContext) -> dict[str, Any]:
        """Run every phase and return the process output.

        Args:
            inputs: Raw inputs (dict) or an instance of the inputs model.
            ctx: Host context used for tasks, logs, and breakpoints.

        Returns:
            JSON-serializable output with ``success``, process fields,
            ``artifacts``, ``duration`` (ms) and ``metadata``.

        Raises:
            pydantic.ValidationError: If *inputs* do not match the inputs model.
        """
        definition = self.definition
        model = definition.parse_inputs(inputs)
        start = ctx.now()
        state = WorkflowState(process_id=definition.process_id, inputs=model)

        ctx.log("info", f"Starting {definition.title}")
        if definition.intro is not None:
            for line in definition.intro(state):
                ctx.log("info", line)

        for phase in definition.phases:
            outcome = await self.run_phase(phase, state, ctx)
            state = outcome.state
            if not outcome.ok:
                return self._failure_output(outcome.failure, state, start, ctx)

        return self._success_output(state, start, ctx)

    async def run_phase(
        self,
        phase: Phase,
        state: WorkflowState,
        ctx: ProcessContext,
    ) -> PhaseOutcome:
        """Execute one phase and fold its result into a new state."""
        if phase.when is not None and not phase.when(state):
            ctx.log("debug", f"Skipping phase '{phase.name}' (disabled)")
            return PhaseOutcome.advance(state.with_skipped(phase.name))

        for bp in phase.before:
            if bp.should_raise(state):
                await self._raise_breakpoint(bp, state, ctx)

        ctx.log("info", phase.log)
        task_def = self.definition.catalog[phase.task]

        if isinstance(phase, FanOutPhase):
            items = self._fan_out_items(phase, state)
            result: Any = await parallel_map(
                items,
                lambda item: ctx.task(task_def, self.build_args(phase, state, {phase.item: item})),
                ctx.parallel,
            )
        else:
            result = await ctx.task(task_def, self.build_args(phase, state))

        next_state = state.with_result(phase.name, result)

        if phase.stop is not None and phase.stop.triggered(result):
            ctx.log("error", f"{phase.stop.reason} (phase '{phase.name}')")
            failure = ProcessFailure(
                reason=phase.stop.reason,
                phase=phase.name,
                details=result,
                extra=phase.stop.extra_fields(result),
            )
            return PhaseOutcome.stop(next_state, failure)

        if phase.notes is not None:
            for level, message in phase.notes(next_state):
                ctx.log(level, message)

        for bp in phase.breakpoints:
            if bp.should_raise(next_state):
                await self._raise_breakpoint(bp, next_state, ctx)

        return PhaseOutcome.advance(next_state)

    # ------------------------------------------------------------------
    # Argument resolution
    # ------------------------------------------------------------------

    def resolve(
        self,
        key: str,
        state: WorkflowState,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        if extra and key in extra:
            return extra[key]
        if key in self.definition.derived:
            return self.definition.derived[key](state)
        if key in state.results:
            return state.results[key]
        return state.input(key)

    def build_args(
        self,
        phase: Phase,
        state: WorkflowState,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, Any]:
        args: dict[str, Any] = {}
        for key in phase.args:
            source = phase.bind.get(key)
            if source is None:
                args[key] = self.resolve(key, state, extra)
            elif callable(source):
                args[key] = source(state)
            else:
                args[key] = self.resolve_path(source, state, extra)
        return args

    def resolve_path(
        self,
        path: str,
        state: WorkflowState,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Resolve ``"phase.field.sub"``; missing segments yield ``None``."""
        head, *rest = path.split(".")
        value = self.resolve(head, state, extra)
        for part in rest:
            if not isinstance(value, Mapping):
                return None
            value = value.get(part)
        return value

    def _fan_out_items(self, phase: FanOutPhase, state: WorkflowState) -> list[Any]:
        if callable(phase.over):
            items = phase.over(state)
        else:
            items = self.resolve(phase.over, state)
        return list(items or [])

    # ------------------------------------------------------------------
    # Breakpoints
    # ------------------------------------------------------------------

    @staticmethod
    async def _raise_breakpoint(
        breakpoint: Breakpoint,
        state: WorkflowState,
        ctx: ProcessContext,
    ) -> None:
        question = breakpoint.question(state)
        context: dict[str, Any] = {"runId": ctx.run_id}
        if breakpoint.context is not None:
            context.update(breakpoint.context(state))

        if breakpoint.is_gate:
            ctx.log("warning", f"{breakpoint.title}: {question}")

        await ctx.breakpoint(
            BreakpointRequest(
                title=breakpoint.title,
                question=question,
                context=context,
                severity=breakpoint.severity,
            )
        )

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _metadata(self, state: WorkflowState, start: datetime, ctx: ProcessContext) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "processId": self.definition.process_id,
            "runId": ctx.run_id,
            "timestamp": start.isoformat(),
        }
        if self.definition.metadata is not None:
            metadata.update(self.definition.metadata(state))
        return metadata

    def _success_output(
        self,
        state: WorkflowState,
        start: datetime,
        ctx: ProcessContext,
    ) -> dict[str, Any]:
        output: dict[str, Any] = {"success": True}
        output.update(self.definition.finalize(state))
        output["artifacts"] = state.artifact_dicts()
        output["duration"] = _elapsed_ms(start, ctx.now())
        output["metadata"] = self._metadata(state, start, ctx)
        ctx.log(
            "info",
            f"{self.definition.title} finished: success={output['success']}, "
            f"{len(state.artifacts)} artifact(s)",
        )
        return output

    def _failure_output(
        self,
        failure: ProcessFailure,
        state: WorkflowState,
        start: datetime,
        ctx: ProcessContext,
    ) -> dict[str, Any]:
        output: dict[str, Any] = {
            "success": False,
            "reason": failure.reason,
            "phase": failure.phase,
            "details": failure.details,
        }
        output.update(failure.extra)
        output["artifacts"] = state.artifact_dicts()
        output["duration"] = _elapsed_ms(start, ctx.now())
        output["metadata"] = self._metadata(state, start, ctx)
        return output
