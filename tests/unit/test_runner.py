"""Tests for PhasedRunner — arg resolution, fan-out, conditional phases,
stop rules, breakpoints and output assembly."""

from __future__ import annotations

import pytest
from pydantic import Field, ValidationError

from uxflow.agents.parallel import ParallelGroup
from uxflow.core.gates import StopRule, below_threshold, gate, review
from uxflow.core.runner import FanOutPhase, Phase, PhasedRunner, ProcessDefinition
from uxflow.processes.base import ProcessInputs, enabled

# Any bundled catalog works; these tasks come from the A/B testing one.
PLAN = "experiment-planning"
HYPOTHESIS = "hypothesis-definition"
VARIATION = "variation-design"
METRICS = "metrics-definition"


class _Inputs(ProcessInputs):
    project_name: str
    pages: list[str] = Field(default_factory=list)
    include_extra: bool = True
    threshold: float = 85


def _definition(*phases, **overrides) -> ProcessDefinition:
    fields = {
        "process_id": "test/mini",
        "name": "mini",
        "title": "Mini Process",
        "catalog_slug": "ab_testing",
        "inputs_model": _Inputs,
        "phases": phases,
        "finalize": lambda s: {"projectName": s.input("projectName")},
    }
    fields.update(overrides)
    return ProcessDefinition(**fields)


async def _run(definition, ctx, **inputs):
    return await PhasedRunner(definition).run({"projectName": "Shop", **inputs}, ctx)


# ---------------------------------------------------------------------------
# Sequencing and arguments
# ---------------------------------------------------------------------------


class TestSequencing:
    @pytest.mark.asyncio
    async def test_phases_run_in_declaration_order(self, scripted):
        definition = _definition(
            Phase(name="plan", task=PLAN, log="Phase 1: plan"),
            Phase(name="hypothesis", task=HYPOTHESIS, log="Phase 2: hypothesis"),
            Phase(name="variation", task=VARIATION, log="Phase 3: variation"),
        )
        ctx = scripted()
        output = await _run(definition, ctx)
        assert ctx.task_names == [PLAN, HYPOTHESIS, VARIATION]
        assert output["success"] is True
        assert output["projectName"] == "Shop"

    @pytest.mark.asyncio
    async def test_logs_start_intro_and_phase_lines(self, scripted):
        definition = _definition(
            Phase(name="plan", task=PLAN, log="Phase 1: plan"),
            intro=lambda s: [f"Project: {s.input('projectName')}"],
        )
        ctx = scripted()
        await _run(definition, ctx)
        info = ctx.messages("info")
        assert info[:3] == ["Starting Mini Process", "Project: Shop", "Phase 1: plan"]

    @pytest.mark.asyncio
    async def test_args_resolve_from_inputs_and_results(self, scripted):
        definition = _definition(
            Phase(name="plan", task=PLAN, log="p", args=("projectName", "pages")),
            Phase(name="hypothesis", task=HYPOTHESIS, log="h", args=("projectName", "plan")),
        )
        ctx = scripted({PLAN: {"refinedGoals": ["g1"]}})
        await _run(definition, ctx, pages=["home"])
        assert ctx.args_for(PLAN) == {"projectName": "Shop", "pages": ["home"]}
        assert ctx.args_for(HYPOTHESIS) == {"projectName": "Shop", "plan": {"refinedGoals": ["g1"]}}

    @pytest.mark.asyncio
    async def test_bind_dotted_path_and_callable(self, scripted):
        definition = _definition(
            Phase(name="plan", task=PLAN, log="p"),
            Phase(
                name="hypothesis",
                task=HYPOTHESIS,
                log="h",
                args=("experimentGoals", "statisticalPower", "missing"),
                bind={
                    "experimentGoals": "plan.refinedGoals",
                    "statisticalPower": lambda s: 80,
                    "missing": "plan.not.there",
                },
            ),
        )
        ctx = scripted({PLAN: {"refinedGoals": ["faster checkout"]}})
        await _run(definition, ctx)
        assert ctx.args_for(HYPOTHESIS) == {
            "experimentGoals": ["faster checkout"],
            "statisticalPower": 80,
            "missing": None,
        }

    @pytest.mark.asyncio
    async def test_derived_values_take_precedence(self, scripted):
        definition = _definition(
            Phase(name="plan", task=PLAN, log="p"),
            Phase(name="hypothesis", task=HYPOTHESIS, log="h", args=("projectName", "goalCount")),
            derived={
                "projectName": lambda s: s.input("projectName").upper(),
                "goalCount": lambda s: len(s.field("plan", "refinedGoals", [])),
            },
        )
        ctx = scripted({PLAN: {"refinedGoals": ["a", "b"]}})
        await _run(definition, ctx)
        assert ctx.args_for(HYPOTHESIS) == {"projectName": "SHOP", "goalCount": 2}


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


class TestFanOut:
    @pytest.mark.asyncio
    async def test_one_result_per_item_in_order(self, scripted):
        definition = _definition(
            FanOutPhase(
                name="layouts",
                task=VARIATION,
                log="fan",
                over="pages",
                item="page",
                args=("projectName", "page"),
            ),
            finalize=lambda s: {"layouts": s.get("layouts")},
        )
        ctx = scripted({VARIATION: lambda args: {"page": args["page"]}})
        output = await _run(definition, ctx, pages=["home", "checkout", "account"])
        assert output["layouts"] == [{"page": "home"}, {"page": "checkout"}, {"page": "account"}]
        assert [args["page"] for _, args in ctx.calls] == ["home", "checkout", "account"]

    @pytest.mark.asyncio
    async def test_empty_collection_invokes_nothing(self, scripted):
        definition = _definition(
            FanOutPhase(name="layouts", task=VARIATION, log="fan", over="pages", item="page"),
            finalize=lambda s: {"layouts": s.get("layouts")},
        )
        ctx = scripted()
        output = await _run(definition, ctx)
        assert ctx.calls == []
        assert output["layouts"] == []

    @pytest.mark.asyncio
    async def test_over_accepts_callable(self, scripted):
        definition = _definition(
            Phase(name="plan", task=PLAN, log="p"),
            FanOutPhase(
                name="variants",
                task=VARIATION,
                log="fan",
                over=lambda s: s.field("plan", "arms", []),
                item="arm",
                args=("arm",),
            ),
        )
        ctx = scripted({PLAN: {"arms": ["control", "treatment"]}})
        await _run(definition, ctx)
        assert [args["arm"] for name, args in ctx.calls if name == VARIATION] == ["control", "treatment"]

    @pytest.mark.asyncio
    async def test_fan_out_artifacts_are_collected(self, scripted):
        definition = _definition(
            FanOutPhase(name="layouts", task=VARIATION, log="fan", over="pages", item="page", args=("page",)),
        )
        ctx = scripted({VARIATION: lambda args: {"artifacts": [{"path": f"{args['page']}.md"}]}})
        output = await _run(definition, ctx, pages=["home", "checkout"])
        assert [a["path"] for a in output["artifacts"]] == ["home.md", "checkout.md"]

    @pytest.mark.asyncio
    async def test_fan_out_joins_through_context_group(self, scripted):
        joined = []

        class _RecordingGroup(ParallelGroup):
            async def all(self, thunks):
                joined.append(len(thunks))
                return await super().all(thunks)

        definition = _definition(
            FanOutPhase(name="layouts", task=VARIATION, log="fan", over="pages", item="page"),
        )
        ctx = scripted()
        ctx._parallel = _RecordingGroup()
        await _run(definition, ctx, pages=["home", "checkout", "account"])
        assert joined == [3]

    @pytest.mark.asyncio
    async def test_failed_item_fails_the_phase(self, scripted):
        definition = _definition(
            FanOutPhase(name="layouts", task=VARIATION, log="fan", over="pages", item="page", args=("page",)),
            Phase(name="plan", task=PLAN, log="after"),
        )

        def _layout(args):
            if args["page"] == "checkout":
                raise RuntimeError("checkout layout failed")
            return {}

        ctx = scripted({VARIATION: _layout})
        with pytest.raises(RuntimeError, match="checkout layout failed"):
            await _run(definition, ctx, pages=["home", "checkout"])
        assert PLAN not in ctx.task_names


# ---------------------------------------------------------------------------
# Conditional phases
# ---------------------------------------------------------------------------


class TestConditional:
    @pytest.mark.asyncio
    async def test_disabled_phase_is_never_invoked_and_null(self, scripted):
        definition = _definition(
            Phase(
                name="extra",
                task=PLAN,
                log="extra",
                when=enabled("includeExtra"),
                before=(review("Before Extra", lambda s: "?"),),
                breakpoints=(review("After Extra", lambda s: "?"),),
            ),
            Phase(name="hypothesis", task=HYPOTHESIS, log="h", args=("extra",)),
            finalize=lambda s: {"extra": s.get("extra")},
        )
        ctx = scripted()
        output = await _run(definition, ctx, includeExtra=False)
        assert ctx.task_names == [HYPOTHESIS]
        assert ctx.args_for(HYPOTHESIS) == {"extra": None}
        assert ctx.breakpoints == []
        assert output["extra"] is None

    @pytest.mark.asyncio
    async def test_enabled_phase_runs(self, scripted):
        definition = _definition(
            Phase(name="extra", task=PLAN, log="extra", when=enabled("includeExtra")),
        )
        ctx = scripted()
        await _run(definition, ctx)
        assert ctx.task_names == [PLAN]


# ---------------------------------------------------------------------------
# Stop rules
# ---------------------------------------------------------------------------


class TestStopRules:
    @pytest.mark.asyncio
    async def test_stop_returns_failure_and_skips_rest(self, scripted):
        definition = _definition(
            Phase(
                name="plan",
                task=PLAN,
                log="p",
                stop=StopRule.on_flag(
                    "planApproved",
                    "Experiment plan quality insufficient",
                    extra=lambda r: {"recommendations": r.get("recommendations")},
                ),
                breakpoints=(review("Never", lambda s: "?"),),
            ),
            Phase(name="hypothesis", task=HYPOTHESIS, log="h"),
        )
        plan = {
            "planApproved": False,
            "recommendations": ["narrow the audience"],
            "artifacts": [{"path": "plan.md"}],
        }
        ctx = scripted({PLAN: plan})
        output = await _run(definition, ctx)

        assert output["success"] is False
        assert output["reason"] == "Experiment plan quality insufficient"
        assert output["phase"] == "plan"
        assert output["details"] == plan
        assert output["recommendations"] == ["narrow the audience"]
        assert output["artifacts"] == [{"path": "plan.md"}]
        assert ctx.task_names == [PLAN]
        assert ctx.breakpoints == []
        assert "projectName" not in output

    @pytest.mark.asyncio
    async def test_stop_logs_error(self, scripted):
        definition = _definition(
            Phase(name="plan", task=PLAN, log="p", stop=StopRule.on_flag("success", "Audit failed")),
        )
        ctx = scripted({PLAN: {"success": False}})
        await _run(definition, ctx)
        assert any("Audit failed" in m for m in ctx.messages("error"))

    @pytest.mark.asyncio
    async def test_threshold_equality_continues(self, scripted):
        definition = _definition(
            Phase(
                name="prelaunch",
                task=PLAN,
                log="p",
                stop=StopRule.on_threshold("validationScore", 90, "Pre-launch validation failed"),
            ),
            Phase(name="launch", task=HYPOTHESIS, log="l"),
        )
        ctx = scripted({PLAN: {"validationScore": 90}})
        output = await _run(definition, ctx)
        assert output["success"] is True
        assert ctx.task_names == [PLAN, HYPOTHESIS]


# ---------------------------------------------------------------------------
# Breakpoints and notes
# ---------------------------------------------------------------------------


class TestBreakpoints:
    @pytest.mark.asyncio
    async def test_review_is_raised_with_run_id(self, scripted):
        definition = _definition(
            Phase(
                name="plan",
                task=PLAN,
                log="p",
                breakpoints=(
                    review(
                        "Plan Review",
                        lambda s: f"Approve plan for {s.input('projectName')}?",
                        lambda s: {"goals": s.field("plan", "refinedGoals")},
                    ),
                ),
            ),
        )
        ctx = scripted({PLAN: {"refinedGoals": ["g"]}}, run_id="run-abc")
        await _run(definition, ctx)
        (request,) = ctx.breakpoints
        assert request.title == "Plan Review"
        assert request.question == "Approve plan for Shop?"
        assert request.context == {"runId": "run-abc", "goals": ["g"]}
        assert request.severity == "info"

    @pytest.mark.parametrize("score,fires", [(70, True), (84.9, True), (85, False), (92, False)])
    @pytest.mark.asyncio
    async def test_gate_fires_only_below_threshold(self, scripted, score, fires):
        definition = _definition(
            Phase(
                name="analysis",
                task=PLAN,
                log="a",
                breakpoints=(
                    gate(
                        "Compliance Gap",
                        lambda s: "Gap",
                        when=lambda s: below_threshold(s.field("analysis", "score"), s.input("threshold")),
                    ),
                ),
            ),
        )
        ctx = scripted({PLAN: {"score": score}})
        await _run(definition, ctx)
        assert (ctx.breakpoint_titles == ["Compliance Gap"]) is fires
        if fires:
            assert ctx.breakpoints[0].severity == "warning"
            assert "Compliance Gap: Gap" in ctx.messages("warning")

    @pytest.mark.asyncio
    async def test_before_breakpoints_precede_the_task(self, scripted):
        ctx = scripted()
        ctx.script[HYPOTHESIS] = lambda args: {"breakpointsSeen": len(ctx.breakpoints)}
        definition = _definition(
            Phase(name="plan", task=PLAN, log="p"),
            Phase(
                name="hypothesis",
                task=HYPOTHESIS,
                log="h",
                before=(review("Results Review", lambda s: "?"),),
                breakpoints=(review("Hypothesis Review", lambda s: "?"),),
            ),
            finalize=lambda s: {"seen": s.field("hypothesis", "breakpointsSeen")},
        )
        output = await _run(definition, ctx)
        assert output["seen"] == 1
        assert ctx.breakpoint_titles == ["Results Review", "Hypothesis Review"]

    @pytest.mark.asyncio
    async def test_notes_are_logged_after_result(self, scripted):
        definition = _definition(
            Phase(
                name="plan",
                task=PLAN,
                log="p",
                notes=lambda s: [("warning", f"{len(s.field('plan', 'risks', []))} risks")],
            ),
        )
        ctx = scripted({PLAN: {"risks": ["a", "b"]}})
        await _run(definition, ctx)
        assert ctx.messages("warning") == ["2 risks"]


# ---------------------------------------------------------------------------
# Output and errors
# ---------------------------------------------------------------------------


class TestOutput:
    @pytest.mark.asyncio
    async def test_duration_and_metadata(self, scripted):
        definition = _definition(
            Phase(name="plan", task=PLAN, log="p"),
            metadata=lambda s: {"pages": len(s.input("pages"))},
        )
        ctx = scripted(run_id="run-meta")
        output = await _run(definition, ctx, pages=["a", "b"])
        # FixedClock advances one second per call: start, then end.
        assert output["duration"] == 1000
        assert output["metadata"] == {
            "processId": "test/mini",
            "runId": "run-meta",
            "timestamp": "2025-01-01T00:00:00+00:00",
            "pages": 2,
        }

    @pytest.mark.asyncio
    async def test_finalize_can_override_success(self, scripted):
        definition = _definition(
            Phase(name="plan", task=PLAN, log="p"),
            finalize=lambda s: {"success": bool(s.field("plan", "ready"))},
        )
        output = await _run(definition, scripted({PLAN: {"ready": False}}))
        assert output["success"] is False

    @pytest.mark.asyncio
    async def test_task_errors_propagate(self, scripted):
        definition = _definition(
            Phase(name="plan", task=PLAN, log="p"),
            Phase(name="hypothesis", task=HYPOTHESIS, log="h"),
        )
        ctx = scripted({PLAN: RuntimeError("agent crashed")})
        with pytest.raises(RuntimeError, match="agent crashed"):
            await _run(definition, ctx)
        assert ctx.task_names == [PLAN]

    @pytest.mark.asyncio
    async def test_invalid_inputs_raise(self, scripted):
        definition = _definition(Phase(name="plan", task=PLAN, log="p"))
        ctx = scripted()
        with pytest.raises(ValidationError):
            await PhasedRunner(definition).run({"pages": "not-a-list"}, ctx)
        assert ctx.calls == []


# ---------------------------------------------------------------------------
# Definition validation
# ---------------------------------------------------------------------------


class TestValidateDefinition:
    def test_valid_definition(self):
        definition = _definition(
            Phase(name="plan", task=PLAN, log="p", args=("projectName",)),
            FanOutPhase(
                name="variants", task=VARIATION, log="v", over="pages", item="page",
                args=("page", "plan"),
            ),
            Phase(name="metrics", task=METRICS, log="m", args=("goals",), bind={"goals": "plan.refinedGoals"}),
        )
        assert definition.validate_definition() == []

    def test_reports_problems(self):
        definition = _definition(
            Phase(name="plan", task="no-such-task", log="p"),
            Phase(name="plan", task=PLAN, log="p"),
            Phase(name="hypothesis", task=HYPOTHESIS, log="h", args=("later",), bind={"other": "plan.x"}),
            FanOutPhase(name="fan", task=VARIATION, log="f", over="nothing", item="x"),
            Phase(name="later", task=METRICS, log="l"),
        )
        problems = definition.validate_definition()
        assert "Phase 'plan' uses unknown task 'no-such-task'." in problems
        assert "Duplicate phase name 'plan'." in problems
        assert "Phase 'hypothesis' has unresolvable arg 'later'." in problems
        assert "Phase 'hypothesis' binds 'other' which is not an arg." in problems
        assert "Phase 'fan' fans out over unknown key 'nothing'." in problems

    def test_input_names_use_aliases(self):
        definition = _definition(Phase(name="plan", task=PLAN, log="p"))
        assert definition.input_names() == ["projectName", "pages", "includeExtra", "threshold"]
