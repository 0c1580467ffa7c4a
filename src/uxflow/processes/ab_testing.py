"""A/B testing: plan, launch, monitor, and analyze a two-variation experiment."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from uxflow.core.context import ProcessContext
from uxflow.core.gates import StopRule, below_threshold, review
from uxflow.core.runner import Phase, PhasedRunner, ProcessDefinition
from uxflow.core.state import WorkflowState
from uxflow.processes.base import ProcessInputs, pick

PROCESS_ID = "ux-ui-design/ab-testing"

PRELAUNCH_MIN_SCORE = 90
QUALITY_TARGET = 85
STATISTICAL_POWER = 80


class Inputs(ProcessInputs):
    project_name: str = "Project"
    feature_description: str = ""
    experiment_goals: list[Any] = Field(default_factory=list)
    target_metrics: list[str] = Field(
        default_factory=lambda: ["conversion_rate", "engagement", "user_satisfaction"]
    )
    target_audience: dict[str, Any] = Field(default_factory=dict)
    traffic_allocation: dict[str, float] = Field(
        default_factory=lambda: {"control": 50, "variation": 50}
    )
    duration: str = "2 weeks"
    sample_size: int = 1000
    confidence_level: float = 95
    minimum_detectable_effect: float = 5
    output_dir: str = "ab-testing-output"
    require_statistical_significance: bool = True


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------


def _variations(state: WorkflowState) -> dict[str, Any]:
    return {
        "control": state.field("variationDesign", "control"),
        "treatment": state.field("variationDesign", "treatment"),
    }


def _collected(state: WorkflowState) -> dict[str, Any]:
    return state.field("dataMonitoring", "collectedData", {})


def _quality_met(state: WorkflowState) -> bool:
    score = state.field("experimentQualityScore", "overallScore")
    return score is not None and not below_threshold(score, QUALITY_TARGET)


def _segmentation_ready(state: WorkflowState) -> bool:
    return bool(
        state.field("statisticalAnalysis", "statisticallySignificant")
        and _collected(state).get("segmentDataAvailable")
    )


DERIVED = {
    "hypothesis": lambda s: s.field("hypothesisDefinition", "hypothesis"),
    "variations": _variations,
    "experimentId": lambda s: s.field("experimentLaunch", "experimentId"),
    "sampleSizeRequirements": lambda s: s.field("sampleSizeCalculation", "requirements"),
}


# ---------------------------------------------------------------------------
# Breakpoints
# ---------------------------------------------------------------------------


def _artifact_listing(state: WorkflowState) -> list[dict[str, Any]]:
    listing = []
    for artifact in state.artifact_dicts():
        entry = {"path": artifact.get("path"), "format": artifact.get("format") or "markdown"}
        for key in ("language", "label"):
            if artifact.get(key):
                entry[key] = artifact[key]
        listing.append(entry)
    return listing


def _variation_name(state: WorkflowState, arm: str) -> Any:
    return (state.field("variationDesign", arm, {}) or {}).get("name")


def _variation_question(state: WorkflowState) -> str:
    return (
        f"Variations designed for {state.input('projectName')}. "
        f"Control: {_variation_name(state, 'control')}, "
        f"Treatment: {_variation_name(state, 'treatment')}. Review and approve variations?"
    )


def _variation_context(state: WorkflowState) -> dict[str, Any]:
    return {
        "files": _artifact_listing(state),
        "summary": {
            "projectName": state.input("projectName"),
            "hypothesis": state.field("hypothesisDefinition", "hypothesis"),
            "variationCount": 2,
            "controlName": _variation_name(state, "control"),
            "treatmentName": _variation_name(state, "treatment"),
            "keyChanges": state.field("variationDesign", "treatment", {}).get("keyChanges"),
        },
    }


def _launch_question(state: WorkflowState) -> str:
    return (
        f"Experiment ready to launch for {state.input('projectName')}. All validations passed. "
        "Launch experiment and begin data collection?"
    )


def _launch_context(state: WorkflowState) -> dict[str, Any]:
    requirements = state.field("sampleSizeCalculation", "requirements", {})
    return {
        "files": _artifact_listing(state),
        "summary": {
            "projectName": state.input("projectName"),
            "hypothesis": state.field("hypothesisDefinition", "hypothesis"),
            "requiredSampleSize": requirements.get("totalSampleSize"),
            "estimatedDuration": state.field("sampleSizeCalculation", "estimatedDuration"),
            "validationScore": state.field("prelaunchValidation", "validationScore"),
            "launchStatus": state.field("experimentLaunch", "launchStatus"),
        },
    }


def _final_question(state: WorkflowState) -> str:
    significant = state.field("statisticalAnalysis", "statisticallySignificant")
    verdict = (
        "Statistically significant results!"
        if significant
        else "Results not statistically significant."
    )
    return (
        f"A/B test complete for {state.input('projectName')}. "
        f"Quality score: {state.field('experimentQualityScore', 'overallScore')}/100. {verdict} "
        f"Winner: {state.field('recommendations', 'winningVariation')}. Review and approve?"
    )


def _final_context(state: WorkflowState) -> dict[str, Any]:
    analysis = state.get("statisticalAnalysis", {})
    return {
        "files": _artifact_listing(state),
        "summary": {
            "projectName": state.input("projectName"),
            "experimentScore": state.field("experimentQualityScore", "overallScore"),
            "qualityMet": _quality_met(state),
            "hypothesis": state.field("hypothesisDefinition", "hypothesis"),
            "hypothesisValidated": state.field("resultsInterpretation", "hypothesisValidated"),
            "statisticallySignificant": analysis.get("statisticallySignificant"),
            "winningVariation": state.field("recommendations", "winningVariation"),
            "primaryMetricImprovement": analysis.get("primaryMetricLift"),
            "confidenceLevel": analysis.get("confidenceLevel"),
            "sampleSize": _collected(state).get("totalSampleSize"),
            "recommendation": state.field("recommendations", "primaryRecommendation"),
        },
    }


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

PHASES = (
    Phase(
        name="experimentPlanning",
        task="experiment-planning",
        log="Phase 1: Planning experiment scope and objectives",
        args=(
            "projectName", "featureDescription", "experimentGoals", "targetMetrics",
            "targetAudience", "duration", "outputDir",
        ),
        stop=StopRule.on_flag(
            "planApproved",
            "Experiment plan quality insufficient",
            extra=lambda r: {"recommendations": r.get("recommendations")},
        ),
    ),
    Phase(
        name="hypothesisDefinition",
        task="hypothesis-definition",
        log="Phase 2: Defining testable hypothesis and success criteria",
        args=(
            "projectName", "featureDescription", "experimentGoals", "targetMetrics",
            "currentBaseline", "outputDir",
        ),
        bind={
            "experimentGoals": "experimentPlanning.refinedGoals",
            "targetMetrics": "experimentPlanning.primaryMetrics",
            "currentBaseline": "experimentPlanning.currentBaseline",
        },
    ),
    Phase(
        name="variationDesign",
        task="variation-design",
        log="Phase 3: Designing and developing test variations",
        args=(
            "projectName", "featureDescription", "hypothesis", "designPrinciples",
            "userInsights", "outputDir",
        ),
        bind={
            "designPrinciples": "experimentPlanning.designPrinciples",
            "userInsights": "experimentPlanning.userInsights",
        },
        breakpoints=(review("Variation Design Review", _variation_question, _variation_context),),
    ),
    Phase(
        name="metricsDefinition",
        task="metrics-definition",
        log="Phase 4: Defining success metrics and measurement framework",
        args=(
            "projectName", "hypothesis", "primaryMetrics", "secondaryMetrics",
            "guardrailMetrics", "minimumDetectableEffect", "confidenceLevel", "outputDir",
        ),
        bind={
            "primaryMetrics": "experimentPlanning.primaryMetrics",
            "secondaryMetrics": "experimentPlanning.secondaryMetrics",
            "guardrailMetrics": "experimentPlanning.guardrailMetrics",
        },
    ),
    Phase(
        name="sampleSizeCalculation",
        task="sample-size-calculation",
        log="Phase 5: Calculating required sample size and statistical power",
        args=(
            "projectName", "primaryMetrics", "currentBaseline", "minimumDetectableEffect",
            "confidenceLevel", "statisticalPower", "trafficAllocation", "expectedTraffic",
            "duration", "outputDir",
        ),
        bind={
            "primaryMetrics": "metricsDefinition.primaryMetrics",
            "currentBaseline": "experimentPlanning.currentBaseline",
            "statisticalPower": lambda s: STATISTICAL_POWER,
            "expectedTraffic": "experimentPlanning.expectedTraffic",
        },
    ),
    Phase(
        name="implementationPlan",
        task="implementation-plan",
        log="Phase 6: Creating experiment implementation and instrumentation plan",
        args=(
            "projectName", "variations", "metricsDefinition", "trafficAllocation",
            "sampleSizeRequirements", "targetAudience", "outputDir",
        ),
        bind={"targetAudience": "experimentPlanning.targetAudience"},
    ),
    Phase(
        name="prelaunchValidation",
        task="prelaunch-validation",
        log="Phase 7: Validating experiment setup and conducting pre-launch QA",
        args=(
            "projectName", "variations", "implementationPlan", "metricsDefinition",
            "trafficAllocation", "outputDir",
        ),
        stop=StopRule.on_threshold(
            "validationScore",
            PRELAUNCH_MIN_SCORE,
            "Pre-launch validation failed",
            extra=lambda r: pick(r, "validationScore", "issues", "recommendations"),
        ),
    ),
    Phase(
        name="experimentLaunch",
        task="experiment-launch",
        log="Phase 8: Setting up experiment monitoring and launching test",
        args=("projectName", "experimentSetup", "implementationPlan", "monitoringChecklist", "outputDir"),
        bind={
            "experimentSetup": lambda s: {
                "hypothesis": s.field("hypothesisDefinition", "hypothesis"),
                "variations": _variations(s),
                "metrics": s.get("metricsDefinition"),
                "trafficAllocation": s.input("trafficAllocation"),
                "duration": s.input("duration"),
            },
            "monitoringChecklist": "prelaunchValidation.monitoringChecklist",
        },
        breakpoints=(review("Experiment Launch Confirmation", _launch_question, _launch_context),),
    ),
    Phase(
        name="dataMonitoring",
        task="data-monitoring",
        log="Phase 9: Monitoring experiment progress and data quality",
        args=(
            "projectName", "experimentId", "metrics", "sampleSizeRequirements",
            "guardrailMetrics", "duration", "outputDir",
        ),
        bind={
            "metrics": "metricsDefinition",
            "guardrailMetrics": "metricsDefinition.guardrailMetrics",
        },
    ),
    Phase(
        name="statisticalAnalysis",
        task="statistical-analysis",
        log="Phase 10: Conducting statistical analysis of experiment results",
        args=(
            "projectName", "experimentId", "hypothesis", "variations", "metrics",
            "experimentData", "confidenceLevel", "outputDir",
        ),
        bind={
            "metrics": "metricsDefinition",
            "experimentData": "dataMonitoring.collectedData",
        },
    ),
    Phase(
        name="resultsInterpretation",
        task="results-interpretation",
        log="Phase 11: Interpreting results and generating actionable insights",
        args=(
            "projectName", "hypothesis", "experimentGoals", "variations",
            "statisticalAnalysis", "dataMonitoring", "outputDir",
        ),
        bind={"experimentGoals": "experimentPlanning.refinedGoals"},
    ),
    Phase(
        name="segmentationAnalysis",
        task="segmentation-analysis",
        log="Phase 12: Conducting segmentation analysis for deeper insights",
        args=(
            "projectName", "experimentData", "statisticalAnalysis", "userSegments",
            "variations", "outputDir",
        ),
        bind={
            "experimentData": "dataMonitoring.collectedData",
            "userSegments": lambda s: (
                s.field("experimentPlanning", "targetAudience", {}).get("segments") or []
            ),
        },
        when=_segmentation_ready,
    ),
    Phase(
        name="recommendations",
        task="recommendations-generation",
        log="Phase 13: Generating recommendations and rollout strategy",
        args=(
            "projectName", "hypothesis", "experimentGoals", "statisticalAnalysis",
            "resultsInterpretation", "segmentationAnalysis", "variations",
            "requireStatisticalSignificance", "outputDir",
        ),
        bind={"experimentGoals": "experimentPlanning.refinedGoals"},
    ),
    Phase(
        name="experimentReport",
        task="experiment-report-generation",
        log="Phase 14: Generating comprehensive experiment report",
        args=(
            "projectName", "experimentPlanning", "hypothesisDefinition", "variationDesign",
            "metricsDefinition", "sampleSizeCalculation", "experimentLaunch", "dataMonitoring",
            "statisticalAnalysis", "resultsInterpretation", "segmentationAnalysis",
            "recommendations", "outputDir",
        ),
    ),
    Phase(
        name="experimentQualityScore",
        task="experiment-quality-scoring",
        log="Phase 15: Validating experiment quality and rigor",
        args=(
            "projectName", "experimentPlanning", "hypothesisDefinition", "variationDesign",
            "sampleSizeCalculation", "dataMonitoring", "statisticalAnalysis",
            "resultsInterpretation", "outputDir",
        ),
        breakpoints=(review("Final Experiment Results Review", _final_question, _final_context),),
    ),
)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _finalize(state: WorkflowState) -> dict[str, Any]:
    control = state.field("variationDesign", "control", {})
    treatment = state.field("variationDesign", "treatment", {})
    metrics = state.get("metricsDefinition", {})
    collected = _collected(state)
    analysis = state.get("statisticalAnalysis", {})
    interpretation = state.get("resultsInterpretation", {})
    recommendations = state.get("recommendations", {})
    return {
        "projectName": state.input("projectName"),
        "experimentScore": state.field("experimentQualityScore", "overallScore"),
        "qualityMet": _quality_met(state),
        "experimentReport": state.field("experimentReport", "reportPath"),
        "experimentId": state.field("experimentLaunch", "experimentId"),
        "hypothesis": {
            "statement": state.field("hypothesisDefinition", "hypothesis"),
            "validated": interpretation.get("hypothesisValidated"),
            "confidence": interpretation.get("confidence"),
        },
        "variations": {
            "control": {
                "name": control.get("name"),
                "description": control.get("description"),
            },
            "treatment": {
                "name": treatment.get("name"),
                "description": treatment.get("description"),
                "keyChanges": treatment.get("keyChanges"),
            },
        },
        "metrics": {
            "primary": metrics.get("primaryMetrics"),
            "secondary": metrics.get("secondaryMetrics"),
            "guardrail": metrics.get("guardrailMetrics"),
        },
        "sampleSize": {
            "required": state.field("sampleSizeCalculation", "requirements", {}).get("totalSampleSize"),
            "collected": collected.get("totalSampleSize"),
            "control": collected.get("controlSampleSize"),
            "treatment": collected.get("treatmentSampleSize"),
        },
        "results": {
            "statisticallySignificant": analysis.get("statisticallySignificant"),
            "confidenceLevel": analysis.get("confidenceLevel"),
            "pValue": analysis.get("pValue"),
            "winningVariation": recommendations.get("winningVariation"),
            "primaryMetricLift": analysis.get("primaryMetricLift"),
            "secondaryMetricResults": analysis.get("secondaryMetricResults"),
            "guardrailMetricsPassed": analysis.get("guardrailMetricsPassed"),
        },
        "insights": pick(interpretation, "keyFindings", "userBehaviorInsights", "unexpectedFindings"),
        "segmentation": pick(
            state.get("segmentationAnalysis"),
            "performanceBySegment", "targetSegments", "differentialImpact",
        ),
        "recommendations": pick(
            recommendations,
            "primaryRecommendation", "rolloutStrategy", "nextSteps", "learnings", "futureExperiments",
        ),
    }


def _metadata(state: WorkflowState) -> dict[str, Any]:
    return {
        "experimentDuration": state.input("duration"),
        "outputDir": state.input("outputDir"),
    }


def _intro(state: WorkflowState) -> list[str]:
    return [f"Project: {state.input('projectName')}"]


DEFINITION = ProcessDefinition(
    process_id=PROCESS_ID,
    name="ab-testing",
    title="A/B Testing Process",
    catalog_slug="ab_testing",
    inputs_model=Inputs,
    phases=PHASES,
    derived=DERIVED,
    finalize=_finalize,
    metadata=_metadata,
    intro=_intro,
)


async def process(inputs: Any, ctx: ProcessContext) -> dict[str, Any]:
    """Run a controlled experiment from planning through recommendations."""
    return await PhasedRunner(DEFINITION).run(inputs, ctx)
