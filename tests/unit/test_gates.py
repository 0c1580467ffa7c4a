"""Tests for threshold rules, stop rules and breakpoint declarations."""

from __future__ import annotations

import pytest

from uxflow.core.gates import (
    Breakpoint,
    StopRule,
    below_threshold,
    files,
    gate,
    pass_rate,
    review,
)
from uxflow.core.state import WorkflowState
from uxflow.processes.base import ProcessInputs


class _Inputs(ProcessInputs):
    threshold: float = 85


def _state(**results) -> WorkflowState:
    state = WorkflowState(process_id="test/gates", inputs=_Inputs())
    for name, result in results.items():
        state = state.with_result(name, result)
    return state


class TestBelowThreshold:
    @pytest.mark.parametrize(
        "value,threshold,expected",
        [
            (70, 85, True),
            (84.99, 85, True),
            (85, 85, False),
            (100, 85, False),
            (0, 0, False),
        ],
    )
    def test_strictly_below(self, value, threshold, expected):
        assert below_threshold(value, threshold) is expected

    def test_missing_value_never_triggers(self):
        assert below_threshold(None, 85) is False


class TestPassRate:
    def test_percentage(self):
        assert pass_rate(19, 20) == 95.0

    def test_all_passed(self):
        assert pass_rate(10, 10) == 100.0

    def test_zero_total_is_zero(self):
        assert pass_rate(0, 0) == 0.0
        assert pass_rate(None, None) == 0.0


class TestStopRule:
    def test_on_flag_triggers_when_false(self):
        rule = StopRule.on_flag("success", "Audit failed")
        assert rule.triggered({"success": False})
        assert not rule.triggered({"success": True})

    def test_on_flag_treats_missing_flag_as_false(self):
        assert StopRule.on_flag("planApproved", "Plan rejected").triggered({})

    def test_on_flag_extra_fields(self):
        rule = StopRule.on_flag(
            "readinessApproved",
            "Not ready",
            extra=lambda r: {"missingElements": r.get("missingElements")},
        )
        assert rule.extra_fields({"missingElements": ["decider"]}) == {"missingElements": ["decider"]}

    def test_extra_fields_default_empty(self):
        assert StopRule.on_flag("success", "x").extra_fields({"success": False}) == {}

    def test_on_threshold_equality_does_not_stop(self):
        rule = StopRule.on_threshold("validationScore", 90, "Validation failed")
        assert not rule.triggered({"validationScore": 90})
        assert rule.triggered({"validationScore": 89})

    def test_on_threshold_missing_counts_as_zero(self):
        rule = StopRule.on_threshold("validationScore", 90, "Validation failed")
        assert rule.triggered({})
        assert rule.triggered(None)


class TestBreakpoints:
    def test_review_is_unconditional(self):
        bp = review("Strategy Review", lambda s: "Approve?")
        assert not bp.is_gate
        assert bp.severity == "info"
        assert bp.should_raise(_state())

    def test_gate_fires_only_when_predicate_holds(self):
        bp = gate(
            "Compliance Gap",
            lambda s: "Gap found",
            when=lambda s: below_threshold(s.field("analysis", "score"), s.input("threshold")),
        )
        assert bp.is_gate
        assert bp.severity == "warning"
        assert bp.should_raise(_state(analysis={"score": 70}))
        assert not bp.should_raise(_state(analysis={"score": 85}))

    def test_context_callable(self):
        bp = Breakpoint(
            title="Review",
            question=lambda s: "q",
            context=lambda s: {"score": s.field("analysis", "score")},
        )
        assert bp.context(_state(analysis={"score": 42})) == {"score": 42}


class TestFiles:
    def test_drops_entries_without_path(self):
        listing = files(
            ("report.html", "html", "Report"),
            (None, "json", "Summary"),
            ("", "md", "Empty"),
        )
        assert listing == [{"path": "report.html", "format": "html", "label": "Report"}]
