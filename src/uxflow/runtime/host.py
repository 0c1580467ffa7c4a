"""Local host runtime — executes processes with agent subprocesses and a run store."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jsonschema import Draft202012Validator

from uxflow.agents.dispatch import AgentDispatcher
from uxflow.agents.parallel import ParallelGroup
from uxflow.agents.schemas import BreakpointDecision, BreakpointRequest, TaskDescriptor
from uxflow.config import RuntimeConfig
from uxflow.core.context import ProcessContext
from uxflow.core.runner import PhasedRunner, ProcessDefinition
from uxflow.core.tasks import TaskDef
from uxflow.runtime.breakpoints import BreakpointHandler
from uxflow.runtime.store import RunStore

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class TaskResultError(Exception):
    """Raised when an agent result does not satisfy its output schema."""

    def __init__(self, task_title: str, errors: list[str]) -> None:
        self.task_title = task_title
        self.errors = errors
        super().__init__(
            f"Result of task '{task_title}' violates its output schema: "
            + "; ".join(errors[:5])
        )


def validate_result(descriptor: TaskDescriptor, result: Any) -> None:
    """Check *result* against the descriptor's output schema.

    Raises:
        TaskResultError: With every violation message, sorted by path.
    """
    schema = descriptor.agent.output_schema
    if not schema:
        return
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(result), key=lambda e: list(e.absolute_path))
    if errors:
        messages = [
            f"{'/'.join(str(p) for p in e.absolute_path) or '<root>'}: {e.message}"
            for e in errors
        ]
        raise TaskResultError(descriptor.title, messages)


class FixedClock:
    """Deterministic clock: each call returns the previous time plus *step*."""

    def __init__(
        self,
        start: Optional[datetime] = None,
        step: timedelta = timedelta(seconds=1),
    ) -> None:
        self._start = start or datetime(2025, 1, 1, tzinfo=timezone.utc)
        self._step = step
        self._calls = 0

    def __call__(self) -> datetime:
        value = self._start + self._step * self._calls
        self._calls += 1
        return value


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LocalRuntime(ProcessContext):
    """:class:`ProcessContext` backed by agent subprocesses and a :class:`RunStore`.

    Every task is persisted under ``tasks/<effectId>/`` and journaled; results
    are validated against the task's output schema before the process sees
    them.
    """

    def __init__(
        self,
        store: RunStore,
        dispatcher: Optional[AgentDispatcher] = None,
        breakpoints: Optional[BreakpointHandler] = None,
        config: Optional[RuntimeConfig] = None,
        clock: Any = None,
    ) -> None:
        self.store = store
        self.run_id = store.run_id
        self.config = config or RuntimeConfig()
        self.dispatcher = dispatcher or AgentDispatcher(workdir=str(store.run_dir.resolve()))
        self.breakpoints = breakpoints or BreakpointHandler.from_settings(
            self.config.breakpoints
        )
        self._clock = clock or _utc_now
        self._parallel = ParallelGroup(self.config.parallel.max_concurrent)

    @property
    def parallel(self) -> ParallelGroup:
        return self._parallel

    def now(self) -> datetime:
        return self._clock()

    def log(self, level: str, message: str) -> None:
        logger.log(_LEVELS.get(level.lower(), logging.INFO), message)
        self.store.append_event("LOG", {"level": level, "message": message})

    async def task(self, task_def: TaskDef, args: dict[str, Any]) -> dict[str, Any]:
        effect_id = self.store.new_effect_id()
        descriptor = task_def.build(args, effect_id)
        self.store.write_task_input(effect_id, descriptor, args)
        self.store.append_event(
            "EFFECT_REQUESTED",
            {"effectId": effect_id, "taskId": task_def.name, "title": descriptor.title},
        )

        agent = self.config.agent
        result = await self.dispatcher.run_task(
            descriptor,
            backend=agent.backend,
            max_turns=agent.max_turns,
            timeout=agent.timeout,
            system_prompt=agent.system_prompt,
        )
        self.store.write_task_result(descriptor, result)
        try:
            validate_result(descriptor, result)
        except TaskResultError as exc:
            self.store.append_event(
                "EFFECT_REJECTED", {"effectId": effect_id, "errors": exc.errors}
            )
            raise

        self.store.append_event("EFFECT_RESOLVED", {"effectId": effect_id, "taskId": task_def.name})
        return result

    async def breakpoint(self, request: BreakpointRequest) -> BreakpointDecision:
        effect_id = self.store.new_effect_id()
        self.store.append_event(
            "BREAKPOINT_REQUESTED",
            {"effectId": effect_id, **request.model_dump()},
        )
        # Terminal prompts block; keep the event loop free for other work.
        decision = await asyncio.to_thread(self.breakpoints.resolve, request)
        self.store.append_event(
            "BREAKPOINT_RESOLVED",
            {"effectId": effect_id, "title": request.title, **decision.model_dump()},
        )
        return decision


async def run_process(
    definition: ProcessDefinition,
    inputs: Any,
    config: Optional[RuntimeConfig] = None,
    run_id: Optional[str] = None,
    dispatcher: Optional[AgentDispatcher] = None,
    breakpoints: Optional[BreakpointHandler] = None,
) -> tuple[dict[str, Any], RunStore]:
    """Create a run directory, execute *definition*, and persist its output.

    Returns:
        ``(output, store)``.

    Raises:
        pydantic.ValidationError, DispatchError, TaskResultError: Propagated
        from the process after being journaled as ``RUN_FAILED``.
    """
    config = config or RuntimeConfig()
    model = definition.parse_inputs(inputs)
    store = RunStore(config.runs_dir, run_id=run_id)
    store.create(definition.process_id, model.model_dump(by_alias=True, mode="json"))

    ctx = LocalRuntime(store, dispatcher=dispatcher, breakpoints=breakpoints, config=config)
    try:
        output = await PhasedRunner(definition).run(model, ctx)
    except Exception as exc:
        store.append_event("RUN_FAILED", {"error": f"{type(exc).__name__}: {exc}"})
        raise

    store.write_output(output)
    store.append_event("RUN_COMPLETED", {"success": output.get("success")})
    return output, store
