"""Design QA and visual regression testing against the source designs."""

from __future__ import annotations

from typing import Any, Callable, Literal

from pydantic import Field

from uxflow.core.context import ProcessContext
from uxflow.core.gates import StopRule, below_threshold, files, gate, review
from uxflow.core.runner import Phase, PhasedRunner, ProcessDefinition
from uxflow.core.state import WorkflowState
from uxflow.processes.base import ProcessInputs, count_where, enabled, items_of, pick, result_files

PROCESS_ID = "specializations/ux-ui-design/design-qa"

# An assessment below this score is only a success when marked production ready.
PASSING_COMPLIANCE_SCORE = 80

CICD_QUALITY_GATES = {
    "minPixelPerfectScore": 95,
    "maxCriticalDifferences": 0,
    "maxModerateDifferences": 5,
}

INTERACTIVE_STATES = ["default", "hover", "focus", "active", "disabled", "error", "loading"]


class Inputs(ProcessInputs):
    project_name: str
    design_files: list[Any] = Field(default_factory=list)
    implementation_url: str
    pages: list[Any] = Field(default_factory=list)
    components: list[Any] = Field(default_factory=list)
    tool: Literal["percy", "chromatic", "backstop", "playwright", "applitools"] = "percy"
    design_system: dict[str, Any] = Field(default_factory=dict)
    viewports: list[str] = Field(default_factory=lambda: ["mobile-375", "tablet-768", "desktop-1440"])
    browsers: list[str] = Field(default_factory=lambda: ["chrome", "firefox", "safari"])
    tolerance_level: Literal["strict", "moderate", "relaxed"] = "strict"
    include_accessibility: bool = True
    include_dark_mode: bool = False
    include_interactive_states: bool = True
    # Percent of differing pixels tolerated.
    pixel_perfect_threshold: float = 0.05
    layout_shift_threshold: float = 0.02
    # Delta-E.
    color_difference_threshold: float = 2
    typography_tolerance: float = 1
    spacing_tolerance: float = 2
    output_dir: str = "design-qa-output"
    automated_baseline: bool = True
    cicd_integration: bool = True


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------


def _visual_differences(state: WorkflowState) -> list[Any]:
    return items_of(state.get("pixelComparison"), "differences")


def _scores(state: WorkflowState) -> dict[str, Any]:
    return {
        "pixelPerfect": state.field("pixelComparison", "pixelPerfectScore"),
        "designSystem": state.field("designSystemValidation", "overallComplianceScore"),
        "typography": state.field("typographyVerification", "complianceScore"),
        "spacing": state.field("spacingVerification", "complianceScore"),
        "color": state.field("colorValidation", "complianceScore"),
        "responsive": state.field("responsiveVerification", "complianceScore"),
        "crossBrowser": state.field("crossBrowserTest", "consistencyScore"),
        "interactiveStates": state.field("interactiveStatesResults", "complianceScore"),
        "darkMode": state.field("darkModeResults", "complianceScore"),
        "accessibility": state.field("accessibilityResults", "accessibilityScore"),
    }


def _production_ready(state: WorkflowState) -> bool:
    return bool(state.field("finalAssessment", "productionReady"))


def _qa_passed(state: WorkflowState) -> bool:
    score = state.field("finalAssessment", "overallComplianceScore")
    if _production_ready(state):
        return True
    return score is not None and not below_threshold(score, PASSING_COMPLIANCE_SCORE)


DERIVED = {
    "designSpecs": lambda s: s.field("designAnalysis", "specifications", []),
    "pixelPerfectScore": lambda s: s.field("pixelComparison", "pixelPerfectScore"),
    "designSystemCompliance": lambda s: s.field("designSystemValidation", "complianceResults", {}),
    "visualDifferences": _visual_differences,
    "regressions": lambda s: s.field("regressionAnalysis", "regressions", []),
    "testResults": lambda s: s.field("testSuiteGeneration", "testSuite", {}),
}


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


def _score_note(
    label: str,
    phase: str,
    score_key: str = "complianceScore",
    issues_key: str = "issues",
    noun: str = "issues",
) -> Callable[[WorkflowState], list[tuple[str, str]]]:
    """Notes reporting a phase score and how many findings it listed."""

    def notes(state: WorkflowState) -> list[tuple[str, str]]:
        result = state.result(phase)
        return [
            (
                "info",
                f"{label}: {result.get(score_key)}/100, "
                f"{len(result.get(issues_key) or [])} {noun} found",
            )
        ]

    return notes


def _regression_notes(state: WorkflowState) -> list[tuple[str, str]]:
    analysis = state.result("regressionAnalysis")
    return [
        (
            "info",
            f"Regression analysis: {len(analysis.get('regressions') or [])} true regressions, "
            f"{len(analysis.get('intentionalChanges') or [])} intentional changes, "
            f"{len(analysis.get('falsePositives') or [])} false positives",
        )
    ]


def _pixel_notes(state: WorkflowState) -> list[tuple[str, str]]:
    comparison = state.result("pixelComparison")
    return [
        (
            "info",
            f"Pixel-perfect comparison: Score {comparison.get('pixelPerfectScore')}/100, "
            f"{len(comparison.get('differences') or [])} differences found",
        )
    ]


def _tool_notes(state: WorkflowState) -> list[tuple[str, str]]:
    tools = ", ".join(state.field("toolSetup", "toolsConfigured", []))
    return [("info", f"Tool setup complete: {tools}")]


def _analysis_notes(state: WorkflowState) -> list[tuple[str, str]]:
    specs = state.field("designAnalysis", "specifications", [])
    return [("info", f"Design analysis complete: {len(specs)} specifications extracted")]


def _cicd_notes(state: WorkflowState) -> list[tuple[str, str]]:
    stages = state.field("cicdSetup", "pipelineStages", [])
    return [("info", f"CI/CD integration configured: {len(stages)} pipeline stages")]


def _interactive_notes(state: WorkflowState) -> list[tuple[str, str]]:
    result = state.result("interactiveStatesResults")
    return [
        ("info", f"Interactive states: {result.get('testsPassed')}/{result.get('totalTests')} tests passed")
    ]


# ---------------------------------------------------------------------------
# Breakpoints
# ---------------------------------------------------------------------------


def _strategy_question(state: WorkflowState) -> str:
    strategy = state.result("qaStrategy")
    return (
        f"Design QA strategy planned. {strategy.get('totalTestScenarios')} test scenarios across "
        f"{len(state.input('pages'))} pages and {len(state.input('components'))} components. "
        f"Coverage: {strategy.get('coveragePercentage')}%. "
        f"Tolerance level: {state.input('toleranceLevel')}. Review and approve strategy?"
    )


def _strategy_context(state: WorkflowState) -> dict[str, Any]:
    strategy = state.result("qaStrategy")
    return {
        "strategy": {
            "totalTestScenarios": strategy.get("totalTestScenarios"),
            "pages": len(state.input("pages")),
            "components": len(state.input("components")),
            "viewports": len(state.input("viewports")),
            "browsers": len(state.input("browsers")),
            "coveragePercentage": strategy.get("coveragePercentage"),
            "estimatedBaselines": strategy.get("estimatedBaselines"),
            "tooling": state.input("tool"),
            "toleranceLevel": state.input("toleranceLevel"),
        },
        "testScope": strategy.get("testScope"),
        "files": result_files(strategy, default_format="markdown"),
    }


def _baseline_question(state: WorkflowState) -> str:
    return (
        f"Baseline capture complete. {state.field('baselineCapture', 'baselineCount')} baseline "
        f"screenshots captured from design files across "
        f"{state.field('viewportConfiguration', 'totalConfigurations')} configurations. "
        "Review baselines and approve to proceed with comparison?"
    )


def _baseline_context(state: WorkflowState) -> dict[str, Any]:
    capture = state.result("baselineCapture")
    return {
        "baselines": {
            "total": capture.get("baselineCount"),
            "pages": len(capture.get("pageBaselines") or []),
            "components": len(capture.get("componentBaselines") or []),
            "configurations": state.field("viewportConfiguration", "totalConfigurations"),
        },
        "baselineDetails": capture.get("baselineDetails"),
        "files": [
            {
                "path": sample.get("imagePath"),
                "format": "image",
                "label": f"Baseline: {sample.get('name')} @ {sample.get('viewport')}",
            }
            for sample in capture.get("sampleBaselines") or []
            if sample.get("imagePath")
        ],
    }


def _pixel_question(state: WorkflowState) -> str:
    comparison = state.result("pixelComparison")
    return (
        f"Pixel-perfect comparison found {len(comparison.get('criticalDifferences') or [])} critical "
        f"difference(s) and {len(comparison.get('differences') or [])} total differences. "
        f"Pixel-perfect score: {comparison.get('pixelPerfectScore')}/100. "
        "Review differences and approve to continue?"
    )


def _pixel_context(state: WorkflowState) -> dict[str, Any]:
    comparison = state.result("pixelComparison")
    critical = list(comparison.get("criticalDifferences") or [])
    return {
        "comparison": {
            "pixelPerfectScore": comparison.get("pixelPerfectScore"),
            "totalDifferences": len(comparison.get("differences") or []),
            "criticalDifferences": len(critical),
            "moderateDifferences": len(comparison.get("moderateDifferences") or []),
            "minorDifferences": len(comparison.get("minorDifferences") or []),
        },
        "criticalIssues": critical[:10],
        "files": files((comparison.get("reportPath"), "html", "Comparison Report"))
        + [
            {"path": image.get("path"), "format": "image", "label": f"Diff: {image.get('name')}"}
            for image in list(comparison.get("diffImages") or [])[:5]
        ],
    }


def _browser_question(state: WorkflowState) -> str:
    test = state.result("crossBrowserTest")
    return (
        f"Cross-browser testing found {len(test.get('criticalInconsistencies') or [])} critical "
        f"inconsistency/inconsistencies across browsers. "
        f"Consistency score: {test.get('consistencyScore')}/100. "
        "Review browser-specific issues and approve to continue?"
    )


def _browser_context(state: WorkflowState) -> dict[str, Any]:
    test = state.result("crossBrowserTest")
    return {
        "crossBrowser": {
            "consistencyScore": test.get("consistencyScore"),
            "totalInconsistencies": len(test.get("inconsistencies") or []),
            "criticalInconsistencies": len(test.get("criticalInconsistencies") or []),
            "browsersCovered": len(state.input("browsers")),
        },
        "criticalIssues": test.get("criticalInconsistencies") or [],
        "files": files((test.get("reportPath"), "html", "Cross-Browser Report"))
        + [
            {"path": image.get("path"), "format": "image", "label": f"Browser: {image.get('browser')}"}
            for image in list(test.get("comparisonImages") or [])[:5]
        ],
    }


def _remediation_question(state: WorkflowState) -> str:
    plan = state.result("remediationPlan")
    return (
        f"Design QA remediation plan created with {plan.get('totalTasks')} tasks across "
        f"{len(plan.get('categories') or [])} categories. {plan.get('criticalTasks')} critical "
        f"tasks identified. Estimated effort: {plan.get('estimatedEffort')}. "
        "Review and approve for implementation?"
    )


def _remediation_context(state: WorkflowState) -> dict[str, Any]:
    plan = state.result("remediationPlan")
    return {
        "remediation": {
            "totalTasks": plan.get("totalTasks"),
            "criticalTasks": plan.get("criticalTasks"),
            "highPriorityTasks": plan.get("highPriorityTasks"),
            "estimatedEffort": plan.get("estimatedEffort"),
            "categories": plan.get("categories"),
            "quickWins": len(plan.get("quickWins") or []),
        },
        "topIssues": list(plan.get("prioritizedTasks") or [])[:10],
        "files": files(
            (plan.get("planPath"), "markdown", "Remediation Plan"),
            (plan.get("roadmapPath"), "markdown", "Implementation Roadmap"),
        ),
    }


def _complete_question(state: WorkflowState) -> str:
    assessment = state.result("finalAssessment")
    return (
        f"Design QA Complete! {state.input('projectName')}: Overall compliance score "
        f"{assessment.get('overallComplianceScore')}/100, Pixel-perfect score "
        f"{state.field('pixelComparison', 'pixelPerfectScore')}/100. "
        f"{len(state.field('regressionAnalysis', 'regressions', []))} regression(s) found, "
        f"{state.field('remediationPlan', 'totalTasks')} remediation task(s) identified. "
        f"Production ready: {'true' if _production_ready(state) else 'false'}. "
        f"{assessment.get('verdict')}. Approve final design QA deliverables?"
    )


def _complete_context(state: WorkflowState) -> dict[str, Any]:
    assessment = state.result("finalAssessment")
    scores = _scores(state)
    return {
        "summary": {
            "projectName": state.input("projectName"),
            "overallComplianceScore": assessment.get("overallComplianceScore"),
            "pixelPerfectScore": scores["pixelPerfect"],
            "designSystemComplianceScore": scores["designSystem"],
            "typographyScore": scores["typography"],
            "spacingScore": scores["spacing"],
            "colorScore": scores["color"],
            "responsiveScore": scores["responsive"],
            "crossBrowserScore": scores["crossBrowser"],
            "totalDifferences": len(_visual_differences(state)),
            "regressions": len(state.field("regressionAnalysis", "regressions", [])),
            "remediationTasks": state.field("remediationPlan", "totalTasks"),
            "productionReady": _production_ready(state),
        },
        "scores": scores,
        "assessment": _assessment_summary(state),
        "files": files(
            (state.field("comprehensiveReport", "mainReportPath"), "html", "Comprehensive Design QA Report"),
            (state.field("deviationReport", "reportPath"), "pdf", "Design Deviation Report"),
            (state.field("remediationPlan", "planPath"), "markdown", "Remediation Plan"),
            (state.field("handoffChecklist", "checklistPath"), "markdown", "Design Handoff Checklist"),
            (state.field("testSuiteGeneration", "testSuitePath"), "code", "Visual Regression Test Suite"),
            (assessment.get("reportPath"), "markdown", "Final Assessment"),
        ),
    }


def _assessment_summary(state: WorkflowState) -> dict[str, Any]:
    assessment = state.result("finalAssessment")
    return {
        "verdict": assessment.get("verdict"),
        "recommendation": assessment.get("recommendation"),
        "productionReady": _production_ready(state),
        "strengths": assessment.get("strengths"),
        "concerns": assessment.get("concerns"),
        "nextSteps": assessment.get("nextSteps"),
    }


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

_VIEWPORTS = {"viewportConfig": "viewportConfiguration.configurations"}
_PAGE_CHECK_ARGS = ("projectName", "implementationUrl", "designSpecs", "designSystem", "pages", "components")

PHASES = (
    Phase(
        name="qaStrategy",
        task="design-qa-strategy",
        log="Phase 1: Planning design QA and visual regression strategy",
        args=(
            "projectName", "designFiles", "implementationUrl", "pages", "components", "tool",
            "designSystem", "viewports", "browsers", "toleranceLevel", "includeAccessibility",
            "includeDarkMode", "includeInteractiveStates", "outputDir",
        ),
        stop=StopRule.on_flag("success", "Design QA strategy planning failed"),
        breakpoints=(review("Design QA Strategy Review", _strategy_question, _strategy_context),),
    ),
    Phase(
        name="designSystemValidation",
        task="design-system-compliance",
        log="Phase 2: Validating design system compliance",
        args=(
            "projectName", "implementationUrl", "designSystem", "pages", "components",
            "colorDifferenceThreshold", "typographyTolerance", "spacingTolerance", "outputDir",
        ),
        notes=lambda s: [
            (
                "info",
                f"Design system compliance: "
                f"{s.field('designSystemValidation', 'overallComplianceScore')}/100",
            )
        ],
    ),
    Phase(
        name="toolSetup",
        task="visual-regression-tool-setup",
        log="Phase 3: Setting up visual regression testing tools",
        args=(
            "projectName", "tool", "viewports", "browsers", "pixelPerfectThreshold",
            "layoutShiftThreshold", "colorDifferenceThreshold", "automatedBaseline",
            "cicdIntegration", "outputDir",
        ),
        stop=StopRule.on_flag("success", "Visual regression tool setup failed"),
        notes=_tool_notes,
    ),
    Phase(
        name="designAnalysis",
        task="design-file-analysis",
        log="Phase 4: Analyzing design files and extracting specifications",
        args=("projectName", "designFiles", "designSystem", "pages", "components", "outputDir"),
        notes=_analysis_notes,
    ),
    Phase(
        name="viewportConfiguration",
        task="viewport-breakpoint-config",
        log="Phase 5: Configuring viewports, breakpoints, and device emulation",
        args=(
            "projectName", "viewports", "browsers", "designSystem", "deviceEmulation",
            "orientation", "pixelRatios", "outputDir",
        ),
        bind={
            "deviceEmulation": lambda s: True,
            "orientation": lambda s: ["portrait", "landscape"],
            "pixelRatios": lambda s: [1, 2, 3],
        },
        notes=lambda s: [
            (
                "info",
                f"Configured {s.field('viewportConfiguration', 'totalConfigurations')} "
                "viewport/browser combinations",
            )
        ],
    ),
    Phase(
        name="baselineCapture",
        task="baseline-screenshot-capture",
        log="Phase 6: Capturing baseline screenshots from design files",
        args=(
            "projectName", "designFiles", "designAnalysis", "pages", "components",
            "viewportConfig", "includeInteractiveStates", "includeDarkMode", "outputDir",
        ),
        bind=_VIEWPORTS,
        notes=lambda s: [
            (
                "info",
                f"Baseline capture: {s.field('baselineCapture', 'baselineCount')} "
                "baseline screenshots created",
            )
        ],
        breakpoints=(review("Baseline Screenshot Review", _baseline_question, _baseline_context),),
    ),
    Phase(
        name="implementationCapture",
        task="implementation-screenshot-capture",
        log="Phase 7: Capturing implementation screenshots",
        args=(
            "projectName", "implementationUrl", "pages", "components", "viewportConfig",
            "includeInteractiveStates", "includeDarkMode", "waitForStability",
            "disableAnimations", "outputDir",
        ),
        bind={**_VIEWPORTS, "waitForStability": lambda s: True, "disableAnimations": lambda s: True},
        notes=lambda s: [
            (
                "info",
                f"Implementation capture: {s.field('implementationCapture', 'screenshotCount')} "
                "screenshots captured",
            )
        ],
    ),
    Phase(
        name="pixelComparison",
        task="pixel-perfect-comparison",
        log="Phase 8: Running pixel-perfect visual comparison",
        args=(
            "projectName", "baselineCapture", "implementationCapture", "pixelPerfectThreshold",
            "layoutShiftThreshold", "colorDifferenceThreshold", "outputDir",
        ),
        notes=_pixel_notes,
        breakpoints=(
            gate(
                "Pixel-Perfect Comparison Results",
                _pixel_question,
                when=lambda s: bool(s.field("pixelComparison", "criticalDifferences")),
                context=_pixel_context,
            ),
        ),
    ),
    Phase(
        name="typographyVerification",
        task="typography-verification",
        log="Phase 9: Verifying typography implementation",
        args=_PAGE_CHECK_ARGS + ("typographyTolerance", "outputDir"),
        notes=_score_note("Typography verification", "typographyVerification"),
    ),
    Phase(
        name="spacingVerification",
        task="spacing-layout-verification",
        log="Phase 10: Verifying spacing and layout implementation",
        args=_PAGE_CHECK_ARGS + ("spacingTolerance", "layoutShiftThreshold", "outputDir"),
        notes=_score_note("Spacing verification", "spacingVerification"),
    ),
    Phase(
        name="colorValidation",
        task="color-accuracy-validation",
        log="Phase 11: Validating color accuracy",
        args=_PAGE_CHECK_ARGS + ("colorDifferenceThreshold", "outputDir"),
        notes=_score_note("Color validation", "colorValidation"),
    ),
    Phase(
        name="interactiveStatesResults",
        task="interactive-states-testing",
        log="Phase 12: Testing interactive states (hover, focus, active, disabled)",
        args=(
            "projectName", "implementationUrl", "components", "designSpecs",
            "viewportConfig", "states", "outputDir",
        ),
        bind={**_VIEWPORTS, "states": lambda s: list(INTERACTIVE_STATES)},
        when=enabled("includeInteractiveStates"),
        notes=_interactive_notes,
    ),
    Phase(
        name="responsiveVerification",
        task="responsive-design-verification",
        log="Phase 13: Verifying responsive design implementation",
        args=(
            "projectName", "implementationUrl", "pages", "components", "viewportConfig",
            "designSpecs", "layoutShiftThreshold", "outputDir",
        ),
        bind=_VIEWPORTS,
        notes=_score_note("Responsive verification", "responsiveVerification"),
    ),
    Phase(
        name="crossBrowserTest",
        task="cross-browser-consistency",
        log="Phase 14: Testing cross-browser visual consistency",
        args=(
            "projectName", "implementationUrl", "pages", "components", "browsers",
            "viewportConfig", "pixelPerfectThreshold", "outputDir",
        ),
        bind=_VIEWPORTS,
        notes=_score_note(
            "Cross-browser testing", "crossBrowserTest",
            score_key="consistencyScore", issues_key="inconsistencies", noun="inconsistencies",
        ),
        breakpoints=(
            gate(
                "Cross-Browser Consistency Review",
                _browser_question,
                when=lambda s: bool(s.field("crossBrowserTest", "criticalInconsistencies")),
                context=_browser_context,
            ),
        ),
    ),
    Phase(
        name="darkModeResults",
        task="dark-mode-verification",
        log="Phase 15: Verifying dark mode implementation",
        args=(
            "projectName", "implementationUrl", "pages", "components", "designFiles",
            "viewportConfig", "colorDifferenceThreshold", "outputDir",
        ),
        bind=_VIEWPORTS,
        when=enabled("includeDarkMode"),
        notes=_score_note("Dark mode verification", "darkModeResults"),
    ),
    Phase(
        name="accessibilityResults",
        task="visual-accessibility-validation",
        log="Phase 16: Validating visual accessibility (contrast, focus indicators, touch targets)",
        args=("projectName", "implementationUrl", "pages", "components", "designSystem", "wcagLevel", "outputDir"),
        bind={"wcagLevel": lambda s: "AA"},
        when=enabled("includeAccessibility"),
        notes=_score_note(
            "Accessibility validation", "accessibilityResults",
            score_key="accessibilityScore", issues_key="violations", noun="violations",
        ),
    ),
    Phase(
        name="regressionAnalysis",
        task="visual-regression-analysis",
        log="Phase 17: Analyzing visual regressions and categorizing differences",
        args=(
            "projectName", "visualDifferences", "pixelComparison", "typographyVerification",
            "spacingVerification", "colorValidation", "responsiveVerification",
            "crossBrowserTest", "toleranceLevel", "outputDir",
        ),
        notes=_regression_notes,
    ),
    Phase(
        name="deviationReport",
        task="design-deviation-report",
        log="Phase 18: Generating design deviation report",
        args=(
            "projectName", "pixelPerfectScore", "designSystemCompliance", "typographyVerification",
            "spacingVerification", "colorValidation", "responsiveVerification", "crossBrowserTest",
            "interactiveStatesResults", "darkModeResults", "accessibilityResults",
            "regressionAnalysis", "outputDir",
        ),
    ),
    Phase(
        name="remediationPlan",
        task="design-qa-remediation-plan",
        log="Phase 19: Creating design QA remediation plan",
        args=(
            "projectName", "regressions", "pixelComparison", "typographyVerification",
            "spacingVerification", "colorValidation", "responsiveVerification",
            "crossBrowserTest", "prioritizeByImpact", "outputDir",
        ),
        bind={"prioritizeByImpact": lambda s: True},
        breakpoints=(
            review("Design QA Remediation Plan Review", _remediation_question, _remediation_context),
        ),
    ),
    Phase(
        name="testSuiteGeneration",
        task="visual-regression-test-suite",
        log="Phase 20: Generating automated visual regression test suite",
        args=(
            "projectName", "pages", "components", "viewportConfig", "baselineCapture",
            "tool", "cicdIntegration", "outputDir",
        ),
        bind={**_VIEWPORTS, "tool": "toolSetup.toolConfig"},
        notes=lambda s: [
            ("info", f"Test suite generated: {s.field('testSuiteGeneration', 'testCount')} automated tests")
        ],
    ),
    Phase(
        name="cicdSetup",
        task="cicd-integration-setup",
        log="Phase 21: Setting up CI/CD pipeline integration",
        args=("projectName", "tool", "testSuite", "thresholds", "qualityGates", "outputDir"),
        bind={
            "tool": "toolSetup.toolConfig",
            "testSuite": "testSuiteGeneration.testSuite",
            "thresholds": lambda s: {
                "pixelPerfectThreshold": s.input("pixelPerfectThreshold"),
                "layoutShiftThreshold": s.input("layoutShiftThreshold"),
                "colorDifferenceThreshold": s.input("colorDifferenceThreshold"),
            },
            "qualityGates": lambda s: dict(CICD_QUALITY_GATES),
        },
        when=enabled("cicdIntegration"),
        notes=_cicd_notes,
    ),
    Phase(
        name="handoffChecklist",
        task="design-handoff-checklist",
        log="Phase 22: Generating design handoff validation checklist",
        args=(
            "projectName", "pixelPerfectScore", "designSystemCompliance", "typographyVerification",
            "spacingVerification", "colorValidation", "responsiveVerification", "crossBrowserTest",
            "interactiveStatesResults", "darkModeResults", "accessibilityResults", "outputDir",
        ),
    ),
    Phase(
        name="comprehensiveReport",
        task="comprehensive-design-qa-report",
        log="Phase 23: Generating comprehensive design QA report",
        args=(
            "projectName", "qaStrategy", "designSystemCompliance", "pixelPerfectScore",
            "typographyVerification", "spacingVerification", "colorValidation",
            "responsiveVerification", "crossBrowserTest", "interactiveStatesResults",
            "darkModeResults", "accessibilityResults", "regressionAnalysis", "deviationReport",
            "remediationPlan", "handoffChecklist", "testResults", "outputDir",
        ),
    ),
    Phase(
        name="finalAssessment",
        task="final-design-qa-assessment",
        log="Phase 24: Conducting final design QA assessment",
        args=(
            "projectName", "pixelPerfectScore", "designSystemCompliance", "typographyScore",
            "spacingScore", "colorScore", "responsiveScore", "crossBrowserScore",
            "interactiveStatesResults", "darkModeResults", "accessibilityResults",
            "regressionAnalysis", "remediationPlan", "toleranceLevel", "outputDir",
        ),
        bind={
            "designSystemCompliance": "designSystemValidation.overallComplianceScore",
            "typographyScore": "typographyVerification.complianceScore",
            "spacingScore": "spacingVerification.complianceScore",
            "colorScore": "colorValidation.complianceScore",
            "responsiveScore": "responsiveVerification.complianceScore",
            "crossBrowserScore": "crossBrowserTest.consistencyScore",
        },
        breakpoints=(review("Design QA Complete", _complete_question, _complete_context),),
    ),
)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _finalize(state: WorkflowState) -> dict[str, Any]:
    differences = _visual_differences(state)
    validation = state.get("designSystemValidation", {})
    analysis = state.get("regressionAnalysis", {})
    plan = state.get("remediationPlan", {})
    cicd = state.get("cicdSetup")
    scores = _scores(state)
    return {
        "success": _qa_passed(state),
        "projectName": state.input("projectName"),
        "complianceScore": state.field("finalAssessment", "overallComplianceScore"),
        "pixelPerfectScore": scores["pixelPerfect"],
        "designSystemComplianceScore": scores["designSystem"],
        "visualDifferences": {
            "total": len(differences),
            "critical": count_where(differences, "severity", "critical"),
            "moderate": count_where(differences, "severity", "moderate"),
            "minor": count_where(differences, "severity", "minor"),
            "details": differences,
        },
        "designSystemCompliance": {
            "overallScore": scores["designSystem"],
            "colorCompliance": validation.get("colorCompliance"),
            "typographyCompliance": validation.get("typographyCompliance"),
            "spacingCompliance": validation.get("spacingCompliance"),
            "componentCompliance": validation.get("componentCompliance"),
        },
        "scores": scores,
        "testResults": {
            "totalTests": state.field("testSuiteGeneration", "testCount"),
            "baselinesCreated": state.field("baselineCapture", "baselineCount"),
            "implementationScreenshots": state.field("implementationCapture", "screenshotCount"),
            "testSuitePath": state.field("testSuiteGeneration", "testSuitePath"),
            "cicdIntegrated": state.input("cicdIntegration"),
        },
        "regressionAnalysis": {
            "regressions": len(analysis.get("regressions") or []),
            "intentionalChanges": len(analysis.get("intentionalChanges") or []),
            "falsePositives": len(analysis.get("falsePositives") or []),
            "details": analysis.get("summary"),
        },
        "remediationPlan": pick(
            plan,
            "totalTasks", "criticalTasks", "highPriorityTasks", "estimatedEffort",
            "quickWins", "planPath",
        ),
        "cicdIntegration": {
            "configured": True,
            "pipelineStages": cicd.get("pipelineStages"),
            "qualityGates": cicd.get("qualityGates"),
            "configPath": cicd.get("configPath"),
        } if cicd is not None else None,
        "finalAssessment": _assessment_summary(state),
    }


def _metadata(state: WorkflowState) -> dict[str, Any]:
    return {
        "tool": state.input("tool"),
        "toleranceLevel": state.input("toleranceLevel"),
        "viewports": len(state.input("viewports")),
        "browsers": len(state.input("browsers")),
        "pages": len(state.input("pages")),
        "components": len(state.input("components")),
    }


def _intro(state: WorkflowState) -> list[str]:
    return [
        f"Implementation: {state.input('implementationUrl')}, Tool: {state.input('tool')}, "
        f"Tolerance: {state.input('toleranceLevel')}",
        f"Pages: {len(state.input('pages'))}, Components: {len(state.input('components'))}, "
        f"Viewports: {len(state.input('viewports'))}, Browsers: {len(state.input('browsers'))}",
    ]


DEFINITION = ProcessDefinition(
    process_id=PROCESS_ID,
    name="design-qa",
    title="Design QA and Visual Regression Testing",
    catalog_slug="design_qa",
    inputs_model=Inputs,
    phases=PHASES,
    derived=DERIVED,
    finalize=_finalize,
    metadata=_metadata,
    intro=_intro,
)


async def process(inputs: Any, ctx: ProcessContext) -> dict[str, Any]:
    """Compare an implementation against its designs and plan the fixes."""
    return await PhasedRunner(DEFINITION).run(inputs, ctx)
