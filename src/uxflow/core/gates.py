"""Quality gates, stop rules, and breakpoint declarations."""

from __future__ import annotations

from typing import Any, Callable, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from uxflow.core.state import WorkflowState

StatePredicate = Callable[[WorkflowState], bool]
ResultPredicate = Callable[[Any], bool]


def below_threshold(value: Optional[float], threshold: float) -> bool:
    """Return True when *value* falls short of *threshold*.

    Equality passes the gate.  A missing value was never measured and does
    not trigger.
    """
    if value is None:
        return False
    return value < threshold


def pass_rate(passed: Optional[float], total: Optional[float]) -> float:
    """Percentage of passed checks, 0 when nothing ran."""
    if not total:
        return 0.0
    return (passed or 0) / total * 100


def _field(result: Any, key: str) -> Any:
    if isinstance(result, Mapping):
        return result.get(key)
    return None


# ---------------------------------------------------------------------------
# Stop rules
# ---------------------------------------------------------------------------


class StopRule(BaseModel):
    """Declares when a phase result ends the process early.

    ``extra`` maps a phase result to additional fields merged into the
    ``success: false`` output (e.g. the validation score that failed).
    """

    model_config = ConfigDict(frozen=True)

    reason: str
    predicate: ResultPredicate
    extra: Optional[Callable[[Any], dict[str, Any]]] = None

    def triggered(self, result: Any) -> bool:
        return bool(self.predicate(result))

    def extra_fields(self, result: Any) -> dict[str, Any]:
        return dict(self.extra(result)) if self.extra else {}

    @classmethod
    def on_flag(
        cls,
        field: str,
        reason: str,
        extra: Optional[Callable[[Any], dict[str, Any]]] = None,
    ) -> StopRule:
        """Stop when ``result[field]`` is falsy."""
        return cls(reason=reason, predicate=lambda r: not _field(r, field), extra=extra)

    @classmethod
    def on_threshold(
        cls,
        field: str,
        cutoff: float,
        reason: str,
        extra: Optional[Callable[[Any], dict[str, Any]]] = None,
    ) -> StopRule:
        """Stop when ``result[field]`` is below *cutoff* (missing counts as 0)."""
        return cls(
            reason=reason,
            predicate=lambda r: below_threshold(_field(r, field) or 0, cutoff),
            extra=extra,
        )


# ---------------------------------------------------------------------------
# Breakpoints
# ---------------------------------------------------------------------------


class Breakpoint(BaseModel):
    """A human-review pause raised after a phase completes.

    With ``when`` unset the breakpoint is always raised; otherwise it is a
    quality gate raised only when the predicate holds.  Either way the
    process continues once the breakpoint resolves.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    question: Callable[[WorkflowState], str]
    context: Optional[Callable[[WorkflowState], dict[str, Any]]] = None
    when: Optional[StatePredicate] = None
    severity: Literal["info", "warning"] = "info"

    @property
    def is_gate(self) -> bool:
        return self.when is not None

    def should_raise(self, state: WorkflowState) -> bool:
        return self.when is None or bool(self.when(state))


def gate(
    title: str,
    question: Callable[[WorkflowState], str],
    when: StatePredicate,
    context: Optional[Callable[[WorkflowState], dict[str, Any]]] = None,
) -> Breakpoint:
    """Declare a quality gate: a warning-level breakpoint behind a predicate."""
    return Breakpoint(title=title, question=question, context=context, when=when, severity="warning")


def review(
    title: str,
    question: Callable[[WorkflowState], str],
    context: Optional[Callable[[WorkflowState], dict[str, Any]]] = None,
) -> Breakpoint:
    """Declare an unconditional review breakpoint."""
    return Breakpoint(title=title, question=question, context=context)


def files(*entries: tuple[Optional[str], str, str]) -> list[dict[str, Any]]:
    """Build a breakpoint ``files`` list from ``(path, format, label)`` tuples.

    Entries without a path are dropped.
    """
    return [
        {"path": path, "format": fmt, "label": label}
        for path, fmt, label in entries
        if path
    ]

