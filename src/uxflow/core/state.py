"""Immutable workflow state threaded through process phases."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from uxflow.agents.schemas import Artifact

_MISSING = object()


def artifacts_of(result: Any) -> list[Artifact]:
    """Return the artifacts carried by one phase result.

    A fan-out phase produces a list of item results; their artifacts are
    concatenated in item order.  Skipped phases (``None``) contribute nothing.
    """
    if result is None:
        return []
    if isinstance(result, list):
        found: list[Artifact] = []
        for item in result:
            found.extend(artifacts_of(item))
        return found
    if isinstance(result, Mapping):
        return [
            a if isinstance(a, Artifact) else Artifact.model_validate(a)
            for a in result.get("artifacts") or []
            if isinstance(a, (Mapping, Artifact))
        ]
    return []


def collect_artifacts(results: Iterable[Any]) -> list[Artifact]:
    """Flatten artifacts from a sequence of phase results, preserving order."""
    collected: list[Artifact] = []
    for result in results:
        collected.extend(artifacts_of(result))
    return collected


class WorkflowState(BaseModel):
    """Accumulated process state.

    Every update returns a new instance; the results mapping is read-only and
    artifacts are an append-only tuple.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    process_id: str
    inputs: BaseModel
    results: Mapping[str, Any] = Field(default_factory=lambda: MappingProxyType({}))
    artifacts: tuple[Artifact, ...] = ()

    def with_result(
        self,
        name: str,
        result: Any,
        artifacts: Optional[Iterable[Artifact]] = None,
    ) -> WorkflowState:
        """Return a copy with *result* stored under *name* and artifacts appended."""
        if name in self.results:
            raise ValueError(f"Phase result '{name}' is already recorded.")
        added = tuple(artifacts) if artifacts is not None else tuple(artifacts_of(result))
        results = dict(self.results)
        results[name] = result
        return self.model_copy(
            update={
                "results": MappingProxyType(results),
                "artifacts": self.artifacts + added,
            }
        )

    def with_skipped(self, name: str) -> WorkflowState:
        return self.with_result(name, None, artifacts=())

    def ran(self, name: str) -> bool:
        return self.results.get(name) is not None

    def result(self, name: str) -> Any:
        try:
            return self.results[name]
        except KeyError:
            raise KeyError(f"No result recorded for phase '{name}'.") from None

    def get(self, name: str, default: Any = None) -> Any:
        value = self.results.get(name)
        return default if value is None else value

    def field(self, name: str, key: str, default: Any = None) -> Any:
        """Shortcut for ``state.get(name, {}).get(key, default)``."""
        value = self.get(name, {})
        if not isinstance(value, Mapping):
            return default
        found = value.get(key, default)
        return default if found is None else found

    @property
    def input_values(self) -> dict[str, Any]:
        return self.inputs.model_dump(by_alias=True, mode="json")

    def input(self, key: str, default: Any = _MISSING) -> Any:
        values = self.input_values
        if key in values:
            return values[key]
        if default is _MISSING:
            raise KeyError(f"Unknown input '{key}'.")
        return default

    def artifact_dicts(self) -> list[dict[str, Any]]:
        return [a.to_json() for a in self.artifacts]


class ProcessFailure(BaseModel):
    """A designed early stop: the process returns ``success: false``."""

    reason: str
    phase: str
    details: Any = None
    extra: dict[str, Any] = Field(default_factory=dict)


class PhaseOutcome(BaseModel):
    """Result of one phase: either the next state or a failure."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    state: WorkflowState
    failure: Optional[ProcessFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def advance(cls, state: WorkflowState) -> PhaseOutcome:
        return cls(state=state)

    @classmethod
    def stop(cls, state: WorkflowState, failure: ProcessFailure) -> PhaseOutcome:
        return cls(state=state, failure=failure)
