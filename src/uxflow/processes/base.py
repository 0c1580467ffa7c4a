"""Shared pieces for process modules: the inputs base model and state helpers."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from uxflow.core.state import WorkflowState


class ProcessInputs(BaseModel):
    """Base for process inputs.

    Fields are snake_case in Python and camelCase on the wire; either
    spelling is accepted.  Unknown keys are ignored.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


def enabled(flag: str) -> Callable[[WorkflowState], bool]:
    """Phase predicate reading a boolean input by its camelCase name."""
    return lambda state: bool(state.input(flag))


def pick(result: Optional[Mapping[str, Any]], *keys: str) -> Optional[dict[str, Any]]:
    """Project *keys* out of a phase result; ``None`` for a skipped phase."""
    if result is None:
        return None
    return {key: result.get(key) for key in keys}


def items_of(result: Any, key: str) -> list[Any]:
    """``result[key]`` as a list, tolerating missing results and keys."""
    if not isinstance(result, Mapping):
        return []
    return list(result.get(key) or [])


def count_where(items: Iterable[Mapping[str, Any]], key: str, *values: Any) -> int:
    return sum(1 for item in items if isinstance(item, Mapping) and item.get(key) in values)


def mean(values: Iterable[Optional[float]]) -> Optional[float]:
    """Arithmetic mean of the non-null values; ``None`` when there are none."""
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def artifact_files(
    state: WorkflowState,
    default_format: str = "json",
    limit: Optional[int] = None,
) -> list[dict[str, Any]]:
    """Breakpoint ``files`` entries for the artifacts collected so far."""
    entries = [
        {
            "path": artifact.path,
            "format": artifact.format or default_format,
            "label": artifact.label,
        }
        for artifact in state.artifacts
        if artifact.path
    ]
    return entries[:limit] if limit is not None else entries


def result_files(result: Any, default_format: str = "json") -> list[dict[str, Any]]:
    """Breakpoint ``files`` entries for the artifacts of a single phase result."""
    return [
        {
            "path": artifact.get("path"),
            "format": artifact.get("format") or default_format,
            "label": artifact.get("label"),
        }
        for artifact in items_of(result, "artifacts")
        if isinstance(artifact, Mapping) and artifact.get("path")
    ]
