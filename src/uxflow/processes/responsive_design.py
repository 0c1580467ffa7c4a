"""Responsive design: breakpoints, layouts, components, cross-device validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import Field

from uxflow.core.context import ProcessContext
from uxflow.core.gates import StopRule, below_threshold, files, gate, pass_rate, review
from uxflow.core.runner import FanOutPhase, Phase, PhasedRunner, ProcessDefinition
from uxflow.core.state import WorkflowState
from uxflow.processes.base import ProcessInputs, count_where, enabled, items_of, result_files

PROCESS_ID = "specializations/ux-ui-design/responsive-design"

# Minimum cross-device pass rate, in percent.
CROSS_DEVICE_PASS_RATE = 95


def _default_breakpoints() -> dict[str, int]:
    return {
        "mobile": 320,
        "mobileLarge": 480,
        "tablet": 768,
        "desktop": 1024,
        "desktopLarge": 1280,
        "wide": 1440,
    }


def _default_performance_targets() -> dict[str, str]:
    return {"lcp": "2.5s", "fid": "100ms", "cls": "0.1", "tti": "3.8s"}


class Inputs(ProcessInputs):
    project_name: str
    pages: list[Any] = Field(default_factory=list)
    components: list[Any] = Field(default_factory=list)
    design_system: Optional[Any] = None
    breakpoints: dict[str, int] = Field(default_factory=_default_breakpoints)
    approach: Literal["mobile-first", "desktop-first", "content-first"] = "mobile-first"
    performance_targets: dict[str, str] = Field(default_factory=_default_performance_targets)
    test_devices: list[str] = Field(
        default_factory=lambda: ["iPhone SE", "iPhone 14", "iPad", "Samsung Galaxy S21", "Desktop 1920x1080"]
    )
    include_accessibility: bool = True
    include_touch_optimization: bool = True
    include_performance_testing: bool = True
    output_dir: str = "responsive-design-output"
    browser_targets: list[str] = Field(default_factory=lambda: ["Chrome", "Firefox", "Safari", "Edge"])
    content_strategy: Literal["responsive", "adaptive", "hybrid"] = "responsive"
    image_strategy: Literal["srcset", "picture", "srcset-art-direction"] = "srcset-art-direction"


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------

_RECOMMENDATION_SOURCES = (
    "designAudit",
    "typographySpacing",
    "imageMediaStrategy",
    "touchOptimization",
    "accessibilityValidation",
)


def _breakpoint_strategy(state: WorkflowState) -> dict[str, Any]:
    return state.field("breakpointStrategyResult", "strategy", {})


def _strategy_breakpoints(state: WorkflowState) -> list[Any]:
    return list(_breakpoint_strategy(state).get("breakpoints") or [])


def _recommendations(state: WorkflowState) -> list[Any]:
    collected: list[Any] = []
    for name in _RECOMMENDATION_SOURCES:
        collected.extend(items_of(state.get(name), "recommendations"))
    return collected


def _test_results(state: WorkflowState) -> dict[str, Any]:
    return state.field("crossDeviceTesting", "results", {})


def _test_pass_rate(state: WorkflowState) -> float:
    results = _test_results(state)
    return pass_rate(results.get("passed"), results.get("total"))


def _with_issues(designs: list[Any]) -> int:
    return sum(1 for d in designs if d.get("issues"))


def _responsive_designs(state: WorkflowState) -> dict[str, Any]:
    return {
        "layouts": state.get("layoutDesigns", []),
        "components": state.get("componentDesigns", []),
        "typography": state.get("typographySpacing"),
        "images": state.get("imageMediaStrategy"),
        "navigation": state.get("navigationDesign"),
    }


DERIVED = {
    "breakpointStrategy": _breakpoint_strategy,
    "recommendations": _recommendations,
    "testResults": _test_results,
    "performanceMetrics": lambda s: s.field("performanceTesting", "metrics", {}),
    "responsiveDesigns": _responsive_designs,
}


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


def _strategy_notes(state: WorkflowState) -> list[tuple[str, str]]:
    strategy = _breakpoint_strategy(state)
    return [
        (
            "info",
            f"Breakpoint strategy defined: {len(_strategy_breakpoints(state))} breakpoints, "
            f"{strategy.get('approach')} approach",
        )
    ]


def _layout_notes(state: WorkflowState) -> list[tuple[str, str]]:
    issues = _with_issues(state.get("layoutDesigns", []))
    if not issues:
        return []
    return [("warning", f"Layout design issues found in {issues} page(s)")]


def _component_notes(state: WorkflowState) -> list[tuple[str, str]]:
    issues = _with_issues(state.get("componentDesigns", []))
    if not issues:
        return []
    return [("warning", f"Responsive design issues found in {issues} component(s)")]


def _cross_device_notes(state: WorkflowState) -> list[tuple[str, str]]:
    failed = _test_results(state).get("failed") or 0
    if not failed:
        return []
    return [("warning", f"{failed} cross-device tests failed")]


# ---------------------------------------------------------------------------
# Breakpoints
# ---------------------------------------------------------------------------


def _completeness_question(state: WorkflowState) -> str:
    missing = state.field("designAudit", "missingDesigns", [])
    return (
        f"Design audit found {len(missing)} missing responsive design(s): "
        f"{', '.join(str(m) for m in missing)}. Review and create missing designs?"
    )


def _completeness_context(state: WorkflowState) -> dict[str, Any]:
    audit = state.result("designAudit")
    return {
        "missingDesigns": audit.get("missingDesigns") or [],
        "auditSummary": audit.get("summary"),
        "files": result_files(audit),
    }


def _strategy_question(state: WorkflowState) -> str:
    return (
        f"Breakpoint strategy defined with {len(_strategy_breakpoints(state))} breakpoints "
        f"using {state.input('approach')} approach. Review and approve strategy?"
    )


def _strategy_context(state: WorkflowState) -> dict[str, Any]:
    result = state.result("breakpointStrategyResult")
    return {
        "strategy": _breakpoint_strategy(state),
        "gridSystem": result.get("gridSystem"),
        "files": files(
            (result.get("strategyDocPath"), "markdown", "Breakpoint Strategy Document"),
            (result.get("gridSpecPath"), "json", "Grid System Specification"),
        ),
    }


def _touch_question(state: WorkflowState) -> str:
    touch = state.result("touchOptimization")
    return (
        f"Found {len(touch.get('violations') or [])} touch target violations (minimum 44x44px). "
        f"{touch.get('criticalIssues')} are critical. Review and fix?"
    )


def _touch_context(state: WorkflowState) -> dict[str, Any]:
    touch = state.result("touchOptimization")
    return {
        "violations": list(touch.get("violations") or [])[:20],
        "criticalIssues": touch.get("criticalIssues"),
        "complianceRate": touch.get("complianceRate"),
        "files": files((touch.get("reportPath"), "html", "Touch Target Audit Report")),
    }


def _a11y_question(state: WorkflowState) -> str:
    issues = state.field("accessibilityValidation", "violations", [])
    return (
        f"Found {len(issues)} accessibility issues in responsive designs "
        f"({count_where(issues, 'severity', 'critical')} critical). Review and remediate?"
    )


def _a11y_context(state: WorkflowState) -> dict[str, Any]:
    validation = state.result("accessibilityValidation")
    issues = list(validation.get("violations") or [])
    return {
        "totalIssues": len(issues),
        "criticalIssues": count_where(issues, "severity", "critical"),
        "issues": issues[:15],
        "complianceScore": validation.get("complianceScore"),
        "files": files((validation.get("reportPath"), "html", "Accessibility Report")),
    }


def _cross_device_question(state: WorkflowState) -> str:
    results = _test_results(state)
    return (
        f"Cross-device testing: {_test_pass_rate(state):.1f}% pass rate "
        f"({results.get('passed')}/{results.get('total')} tests passed). "
        f"{results.get('failed') or 0} failures. Review and fix issues?"
    )


def _cross_device_context(state: WorkflowState) -> dict[str, Any]:
    testing = state.result("crossDeviceTesting")
    return {
        "passRate": _test_pass_rate(state),
        "testResults": _test_results(state),
        "failedDevices": testing.get("failedDevices"),
        "files": files(
            (testing.get("reportPath"), "html", "Cross-Device Test Report"),
            (testing.get("screenshotsPath"), "directory", "Device Screenshots"),
        ),
    }


def _performance_question(state: WorkflowState) -> str:
    failed = state.field("performanceTesting", "failedMetrics", [])
    names = ", ".join(str(m.get("metric")) for m in failed if isinstance(m, dict))
    return (
        f"Performance targets not met. {len(failed)} metric(s) failed: {names}. "
        "Optimize and retest?"
    )


def _performance_context(state: WorkflowState) -> dict[str, Any]:
    testing = state.result("performanceTesting")
    return {
        "meetsTargets": testing.get("meetsAllTargets"),
        "targets": state.input("performanceTargets"),
        "metrics": testing.get("metrics") or {},
        "failedMetrics": testing.get("failedMetrics") or [],
        "files": files(
            (testing.get("reportPath"), "html", "Performance Report"),
            (testing.get("lighthousePath"), "json", "Lighthouse Results"),
        ),
    }


def _approval_question(state: WorkflowState) -> str:
    review_result = state.result("finalReview")
    status = "COMPLETE" if review_result.get("readyForImplementation") else "NEEDS REVIEW"
    return (
        f"Responsive design {status}. {len(state.input('pages'))} pages, "
        f"{len(state.input('components'))} components across "
        f"{len(_strategy_breakpoints(state))} breakpoints. "
        f"Cross-device tests: {_test_pass_rate(state):.1f}% pass rate. "
        f"{review_result.get('verdict')}. Approve for implementation?"
    )


def _approval_context(state: WorkflowState) -> dict[str, Any]:
    review_result = state.result("finalReview")
    return {
        "summary": {
            "projectName": state.input("projectName"),
            "approach": state.input("approach"),
            "pagesDesigned": len(state.input("pages")),
            "componentsDesigned": len(state.input("components")),
            "breakpoints": len(_strategy_breakpoints(state)),
            "testPassRate": _test_pass_rate(state),
            "performanceMet": state.field("performanceTesting", "meetsAllTargets"),
            "accessibilityCompliant": state.field("accessibilityValidation", "compliant"),
            "touchOptimized": state.field("touchOptimization", "complianceRate"),
        },
        "verdict": review_result.get("verdict"),
        "readyForImplementation": review_result.get("readyForImplementation"),
        "blockers": review_result.get("blockers"),
        "recommendations": review_result.get("topRecommendations"),
        "files": files(
            (state.field("comprehensiveReport", "mainReportPath"), "html", "Comprehensive Report"),
            (state.field("designSystemDocs", "documentationPath"), "markdown", "Design System Docs"),
            (state.field("implementationGuide", "guidePath"), "markdown", "Implementation Guide"),
            (state.field("qaChecklist", "checklistPath"), "markdown", "QA Checklist"),
            (review_result.get("reportPath"), "markdown", "Final Review"),
        ),
    }


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

PHASES = (
    Phase(
        name="designAudit",
        task="responsive-design-audit",
        log="Phase 1: Auditing existing designs and analyzing responsive requirements",
        args=("projectName", "pages", "components", "designSystem", "breakpoints", "approach", "outputDir"),
        stop=StopRule.on_flag("success", "Responsive design audit failed"),
        breakpoints=(
            gate(
                "Design Completeness Check",
                _completeness_question,
                when=lambda s: bool(s.field("designAudit", "missingDesigns")),
                context=_completeness_context,
            ),
        ),
    ),
    Phase(
        name="breakpointStrategyResult",
        task="breakpoint-strategy",
        log="Phase 2: Defining breakpoint strategy and responsive grid system",
        args=(
            "projectName", "breakpoints", "approach", "designAudit", "pages",
            "components", "contentStrategy", "outputDir",
        ),
        notes=_strategy_notes,
        breakpoints=(review("Breakpoint Strategy Review", _strategy_question, _strategy_context),),
    ),
    FanOutPhase(
        name="layoutDesigns",
        task="responsive-layout-design",
        log="Phase 3: Designing responsive layouts for all pages in parallel",
        over="pages",
        item="page",
        args=(
            "projectName", "page", "breakpointStrategy", "approach", "designAudit",
            "designSystem", "outputDir",
        ),
        notes=_layout_notes,
    ),
    FanOutPhase(
        name="componentDesigns",
        task="responsive-component-design",
        log="Phase 4: Designing responsive behavior for all components in parallel",
        over="components",
        item="component",
        args=(
            "projectName", "component", "breakpointStrategy", "approach", "designSystem",
            "includeTouchOptimization", "outputDir",
        ),
        notes=_component_notes,
    ),
    Phase(
        name="typographySpacing",
        task="responsive-typography-spacing",
        log="Phase 5: Designing responsive typography and spacing scales",
        args=(
            "projectName", "breakpointStrategy", "designSystem", "layoutDesigns",
            "componentDesigns", "approach", "outputDir",
        ),
    ),
    Phase(
        name="imageMediaStrategy",
        task="responsive-image-media",
        log="Phase 6: Defining responsive image and media strategy",
        args=(
            "projectName", "breakpointStrategy", "imageStrategy", "pages",
            "performanceTargets", "outputDir",
        ),
    ),
    Phase(
        name="touchOptimization",
        task="touch-target-optimization",
        log="Phase 7: Optimizing touch targets for mobile devices",
        args=(
            "projectName", "pages", "components", "layoutDesigns", "componentDesigns",
            "breakpointStrategy", "outputDir",
        ),
        when=enabled("includeTouchOptimization"),
        breakpoints=(
            gate(
                "Touch Target Compliance",
                _touch_question,
                when=lambda s: bool(s.field("touchOptimization", "violations")),
                context=_touch_context,
            ),
        ),
    ),
    Phase(
        name="navigationDesign",
        task="responsive-navigation-design",
        log="Phase 8: Designing responsive navigation patterns",
        args=(
            "projectName", "breakpointStrategy", "layoutDesigns", "approach",
            "includeTouchOptimization", "outputDir",
        ),
    ),
    Phase(
        name="accessibilityValidation",
        task="responsive-accessibility",
        log="Phase 9: Validating accessibility across responsive breakpoints",
        args=(
            "projectName", "breakpointStrategy", "layoutDesigns", "componentDesigns",
            "navigationDesign", "typographySpacing", "touchOptimization", "outputDir",
        ),
        when=enabled("includeAccessibility"),
        breakpoints=(
            gate(
                "Responsive Accessibility Review",
                _a11y_question,
                when=lambda s: bool(s.field("accessibilityValidation", "violations")),
                context=_a11y_context,
            ),
        ),
    ),
    Phase(
        name="crossDeviceTesting",
        task="cross-device-testing",
        log="Phase 10: Testing responsive designs across devices",
        args=(
            "projectName", "pages", "testDevices", "breakpointStrategy", "browserTargets",
            "layoutDesigns", "componentDesigns", "outputDir",
        ),
        notes=_cross_device_notes,
        breakpoints=(
            gate(
                "Cross-Device Testing Results",
                _cross_device_question,
                when=lambda s: below_threshold(_test_pass_rate(s), CROSS_DEVICE_PASS_RATE),
                context=_cross_device_context,
            ),
        ),
    ),
    Phase(
        name="performanceTesting",
        task="responsive-performance-testing",
        log="Phase 11: Testing responsive performance across breakpoints",
        args=(
            "projectName", "pages", "breakpointStrategy", "performanceTargets",
            "testDevices", "imageMediaStrategy", "outputDir",
        ),
        when=enabled("includePerformanceTesting"),
        breakpoints=(
            gate(
                "Responsive Performance Review",
                _performance_question,
                when=lambda s: not s.field("performanceTesting", "meetsAllTargets", False),
                context=_performance_context,
            ),
        ),
    ),
    Phase(
        name="designSystemDocs",
        task="responsive-design-system-docs",
        log="Phase 12: Generating responsive design system documentation",
        args=(
            "projectName", "breakpointStrategy", "layoutDesigns", "componentDesigns",
            "typographySpacing", "imageMediaStrategy", "navigationDesign",
            "touchOptimization", "designSystem", "outputDir",
        ),
    ),
    Phase(
        name="implementationGuide",
        task="implementation-guidelines",
        log="Phase 13: Creating implementation guidelines and code examples",
        args=(
            "projectName", "breakpointStrategy", "layoutDesigns", "componentDesigns",
            "typographySpacing", "imageMediaStrategy", "navigationDesign", "approach",
            "browserTargets", "outputDir",
        ),
    ),
    Phase(
        name="qaChecklist",
        task="responsive-qa-checklist",
        log="Phase 14: Generating responsive QA checklist and testing guide",
        args=(
            "projectName", "pages", "components", "breakpointStrategy", "testDevices",
            "performanceTargets", "includeAccessibility", "includeTouchOptimization",
            "crossDeviceTesting", "performanceTesting", "accessibilityValidation", "outputDir",
        ),
    ),
    Phase(
        name="comprehensiveReport",
        task="comprehensive-responsive-report",
        log="Phase 15: Generating comprehensive responsive design report",
        args=(
            "projectName", "approach", "breakpointStrategy", "layoutDesigns",
            "componentDesigns", "typographySpacing", "imageMediaStrategy", "navigationDesign",
            "touchOptimization", "accessibilityValidation", "crossDeviceTesting",
            "performanceTesting", "recommendations", "outputDir",
        ),
    ),
    Phase(
        name="finalReview",
        task="final-responsive-review",
        log="Phase 16: Conducting final responsive design review",
        args=(
            "projectName", "approach", "breakpointStrategy", "responsiveDesigns",
            "testResults", "performanceMetrics", "accessibilityValidation",
            "touchOptimization", "recommendations", "performanceTargets",
            "includeAccessibility", "includeTouchOptimization", "outputDir",
        ),
        breakpoints=(review("Final Responsive Design Approval", _approval_question, _approval_context),),
    ),
)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _design_summary(designs: list[Any]) -> dict[str, int]:
    return {
        "total": len(designs),
        "successful": sum(1 for d in designs if d.get("success")),
        "withIssues": _with_issues(designs),
    }


def _finalize(state: WorkflowState) -> dict[str, Any]:
    strategy = _breakpoint_strategy(state)
    results = _test_results(state)
    performance = state.get("performanceTesting")
    accessibility = state.get("accessibilityValidation")
    touch = state.get("touchOptimization")
    review_result = state.result("finalReview")
    return {
        "projectName": state.input("projectName"),
        "approach": state.input("approach"),
        "breakpointStrategy": {
            "approach": strategy.get("approach"),
            "breakpoints": strategy.get("breakpoints"),
            "gridSystem": strategy.get("gridSystem"),
        },
        "responsiveDesigns": {
            "layouts": _design_summary(state.get("layoutDesigns", [])),
            "components": _design_summary(state.get("componentDesigns", [])),
            "typography": state.field("typographySpacing", "scales"),
            "images": state.field("imageMediaStrategy", "strategy"),
            "navigation": state.field("navigationDesign", "pattern"),
        },
        "testResults": {
            "crossDevice": {
                "total": results.get("total"),
                "passed": results.get("passed"),
                "failed": results.get("failed"),
                "passRate": _test_pass_rate(state),
                "devices": len(state.input("testDevices")),
                "browsers": len(state.input("browserTargets")),
            },
            "performance": {
                "meetsTargets": performance.get("meetsAllTargets"),
                "metrics": performance.get("metrics") or {},
                "failedMetrics": len(performance.get("failedMetrics") or []),
            } if performance is not None else None,
            "accessibility": {
                "compliant": accessibility.get("compliant"),
                "issues": len(accessibility.get("violations") or []),
                "criticalIssues": count_where(accessibility.get("violations") or [], "severity", "critical"),
                "complianceScore": accessibility.get("complianceScore"),
            } if accessibility is not None else None,
            "touchTargets": {
                "complianceRate": touch.get("complianceRate"),
                "violations": len(touch.get("violations") or []),
                "criticalIssues": touch.get("criticalIssues"),
            } if touch is not None else None,
        },
        "finalReview": {
            "verdict": review_result.get("verdict"),
            "readyForImplementation": review_result.get("readyForImplementation"),
            "confidence": review_result.get("confidence"),
            "strengths": review_result.get("strengths"),
            "blockers": review_result.get("blockers"),
            "recommendations": review_result.get("topRecommendations"),
        },
        "recommendations": _recommendations(state),
    }


def _metadata(state: WorkflowState) -> dict[str, Any]:
    return {
        "approach": state.input("approach"),
        "breakpointCount": len(_strategy_breakpoints(state)),
        "pagesDesigned": len(state.input("pages")),
        "componentsDesigned": len(state.input("components")),
    }


def _intro(state: WorkflowState) -> list[str]:
    breakpoints = ", ".join(f"{name}:{width}px" for name, width in state.input("breakpoints").items())
    return [
        f"Approach: {state.input('approach')}, Pages: {len(state.input('pages'))}, "
        f"Components: {len(state.input('components'))}",
        f"Breakpoints: {breakpoints}",
    ]


DEFINITION = ProcessDefinition(
    process_id=PROCESS_ID,
    name="responsive-design",
    title="Responsive Design Implementation",
    catalog_slug="responsive_design",
    inputs_model=Inputs,
    phases=PHASES,
    derived=DERIVED,
    finalize=_finalize,
    metadata=_metadata,
    intro=_intro,
)


async def process(inputs: Any, ctx: ProcessContext) -> dict[str, Any]:
    """Produce responsive layouts, components and test results for a project."""
    return await PhasedRunner(DEFINITION).run(inputs, ctx)
