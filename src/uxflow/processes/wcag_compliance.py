"""WCAG compliance validation: standards review, scans, manual checks, remediation."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from uxflow.core.context import ProcessContext
from uxflow.core.gates import below_threshold, files, gate, review
from uxflow.core.runner import FanOutPhase, Phase, PhasedRunner, ProcessDefinition
from uxflow.core.state import WorkflowState
from uxflow.processes.base import (
    ProcessInputs,
    artifact_files,
    count_where,
    enabled,
    items_of,
    mean,
    pick,
)

PROCESS_ID = "specializations/ux-ui-design/wcag-compliance"


class Inputs(ProcessInputs):
    project_name: str
    application_url: str
    wcag_level: Literal["A", "AA", "AAA"] = "AA"
    scope: list[str] = Field(default_factory=list)
    testing_approach: str = "comprehensive"
    remediation_required: bool = True
    generate_vpat: bool = Field(default=False, alias="generateVPAT")
    include_screen_reader_tests: bool = True
    include_keyboard_tests: bool = True
    include_color_contrast_tests: bool = True
    include_manual_tests: bool = True
    output_dir: str = "wcag-compliance-output"
    automated_tooling: list[str] = Field(default_factory=lambda: ["axe", "wave", "lighthouse"])
    screen_readers: list[str] = Field(default_factory=lambda: ["NVDA", "JAWS", "VoiceOver"])
    break_on_critical: bool = False
    compliance_threshold: float = 85


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------

_VIOLATION_SOURCES = (
    "keyboardResults",
    "screenReaderResults",
    "colorContrastResults",
    "semanticValidation",
    "formsValidation",
    "multimediaValidation",
    "manualTestResults",
)


def _scan_violations(state: WorkflowState) -> list[dict[str, Any]]:
    found: list[dict[str, Any]] = []
    for scan in state.get("automatedResults", []):
        found.extend(items_of(scan, "violations"))
    return found


def _violations(state: WorkflowState) -> list[dict[str, Any]]:
    """Every violation reported so far, scans first, in phase order."""
    found = _scan_violations(state)
    for name in _VIOLATION_SOURCES:
        found.extend(items_of(state.get(name), "violations"))
    return found


def _average_scan_score(state: WorkflowState) -> float | None:
    return mean(scan.get("score") for scan in state.get("automatedResults", []))


def _test_results(state: WorkflowState) -> dict[str, Any]:
    scans = state.get("automatedResults", [])
    return {
        "automated": {
            "totalScans": len(scans),
            "totalViolations": len(_scan_violations(state)),
            "averageScore": _average_scan_score(state),
            "results": scans,
        },
        "keyboard": pick(
            state.get("keyboardResults"),
            "totalTests", "passed", "failed", "score", "focusIndicatorsValid", "noKeyboardTraps",
        ),
        "screenReader": pick(
            state.get("screenReaderResults"),
            "compatible", "testedScreenReaders", "compatibilityScore",
            "landmarksCorrect", "ariaImplementation",
        ),
        "colorContrast": pick(
            state.get("colorContrastResults"),
            "totalElements", "passing", "failing", "complianceRate", "averageRatio",
        ),
        "manual": pick(
            state.get("manualTestResults"),
            "totalTests", "passed", "failed", "incomplete", "testCoverage",
        ),
    }


def _compliance_score(state: WorkflowState) -> float | None:
    return state.field("complianceAnalysis", "complianceScore")


def _meets_compliance(state: WorkflowState) -> bool:
    """Target level met and the score is not below the configured threshold."""
    meets_level = bool(state.field("complianceAnalysis", "meetsTargetLevel", False))
    return meets_level and not below_threshold(
        _compliance_score(state), state.input("complianceThreshold")
    )


def _compliance_gap(state: WorkflowState) -> float:
    if _meets_compliance(state):
        return 0
    return max(0, state.input("complianceThreshold") - (_compliance_score(state) or 0))


DERIVED = {
    "violations": _violations,
    "testResults": _test_results,
    "complianceScore": _compliance_score,
    "achievedComplianceLevel": lambda s: s.field("complianceAnalysis", "complianceLevel"),
    "meetsCompliance": _meets_compliance,
    "prioritizedViolations": lambda s: s.field("complianceAnalysis", "prioritizedViolations", []),
}


def _severe(violations: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [v for v in violations if v.get("impact") in ("critical", "serious")]


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


def _scan_notes(state: WorkflowState) -> list[tuple[str, str]]:
    notes: list[tuple[str, str]] = []
    for scan in state.get("automatedResults", []):
        severe = len(_severe(items_of(scan, "violations")))
        if severe:
            notes.append(
                ("warning", f"{scan.get('pageOrFlow')}: {severe} critical/serious WCAG violations found")
            )
    notes.append(
        (
            "info",
            f"Automated scanning complete: {len(_scan_violations(state))} violations found "
            f"across {len(state.input('scope'))} pages",
        )
    )
    return notes


def _keyboard_notes(state: WorkflowState) -> list[tuple[str, str]]:
    r = state.result("keyboardResults")
    return [("info", f"Keyboard navigation: {r.get('passed')}/{r.get('totalTests')} passed ({r.get('score')}/100)")]


def _screen_reader_notes(state: WorkflowState) -> list[tuple[str, str]]:
    r = state.result("screenReaderResults")
    verdict = "PASS" if r.get("compatible") else "FAIL"
    return [("info", f"Screen reader compatibility: {verdict} (Score: {r.get('compatibilityScore')}/100)")]


def _contrast_notes(state: WorkflowState) -> list[tuple[str, str]]:
    r = state.result("colorContrastResults")
    return [
        (
            "info",
            f"Color contrast: {r.get('passing')}/{r.get('totalElements')} elements pass "
            f"({r.get('complianceRate')}%)",
        )
    ]


def _semantic_notes(state: WorkflowState) -> list[tuple[str, str]]:
    r = state.result("semanticValidation")
    return [
        (
            "info",
            f"Semantic HTML & ARIA: {r.get('validElements')}/{r.get('totalElements')} valid "
            f"({r.get('score')}/100)",
        )
    ]


def _forms_notes(state: WorkflowState) -> list[tuple[str, str]]:
    r = state.result("formsValidation")
    return [("info", f"Forms accessibility: {r.get('accessibleForms')}/{r.get('totalForms')} forms accessible")]


def _multimedia_notes(state: WorkflowState) -> list[tuple[str, str]]:
    r = state.result("multimediaValidation")
    return [
        ("info", f"Multimedia accessibility: {r.get('compliantMedia')}/{r.get('totalMedia')} items compliant")
    ]


def _manual_notes(state: WorkflowState) -> list[tuple[str, str]]:
    r = state.result("manualTestResults")
    return [("info", f"Manual testing: {r.get('passed')}/{r.get('totalTests')} criteria passed")]


def _analysis_notes(state: WorkflowState) -> list[tuple[str, str]]:
    return [
        (
            "info",
            f"Compliance analysis: Score {_compliance_score(state)}/100, "
            f"Level {state.field('complianceAnalysis', 'complianceLevel')} achieved",
        )
    ]


# ---------------------------------------------------------------------------
# Breakpoints
# ---------------------------------------------------------------------------


def _setup_question(state: WorkflowState) -> str:
    tools = ", ".join(state.field("testingSetup", "toolsConfigured", []))
    criteria = len(state.field("standardsReview", "applicableCriteria", []))
    return (
        f"WCAG compliance testing framework configured with {tools}. {criteria} success "
        f"criteria identified for Level {state.input('wcagLevel')}. "
        "Review setup and approve to proceed?"
    )


def _setup_context(state: WorkflowState) -> dict[str, Any]:
    return {
        "summary": {
            "projectName": state.input("projectName"),
            "wcagLevel": state.input("wcagLevel"),
            "toolsConfigured": len(state.field("testingSetup", "toolsConfigured", [])),
            "successCriteria": len(state.field("standardsReview", "applicableCriteria", [])),
            "automatedTestable": state.field("standardsReview", "automatedTestable"),
            "manualTestable": state.field("standardsReview", "manualTestable"),
        },
        "files": artifact_files(state),
    }


def _critical_question(state: WorkflowState) -> str:
    violations = _scan_violations(state)
    return (
        f"Critical WCAG compliance violations detected. "
        f"{count_where(violations, 'impact', 'critical')} critical and "
        f"{count_where(violations, 'impact', 'serious')} serious violations found. "
        "Review and decide: Continue testing, fix now, or abort?"
    )


def _critical_context(state: WorkflowState) -> dict[str, Any]:
    violations = _scan_violations(state)
    return {
        "summary": {
            "totalViolations": len(violations),
            "criticalViolations": count_where(violations, "impact", "critical"),
            "seriousViolations": count_where(violations, "impact", "serious"),
            "averageScore": _average_scan_score(state),
        },
        "topViolations": _severe(violations)[:10],
        "files": [
            {"path": scan.get("reportPath"), "format": "html", "label": f"Scan: {scan.get('pageOrFlow')}"}
            for scan in state.get("automatedResults", [])
            if scan.get("reportPath")
        ],
    }


def _critical_gate(state: WorkflowState) -> bool:
    return bool(state.input("breakOnCritical")) and bool(_severe(_scan_violations(state)))


def _results_question(state: WorkflowState) -> str:
    return (
        f"WCAG compliance testing complete. {len(_violations(state))} total violations found. "
        f"Automated score: {_average_scan_score(state)}/100. "
        "Review results and approve to proceed with compliance analysis?"
    )


def _results_context(state: WorkflowState) -> dict[str, Any]:
    violations = _violations(state)
    return {
        "summary": {
            "projectName": state.input("projectName"),
            "wcagLevel": state.input("wcagLevel"),
            "totalViolations": len(violations),
            "criticalViolations": count_where(violations, "impact", "critical"),
            "seriousViolations": count_where(violations, "impact", "serious"),
            "automatedScore": _average_scan_score(state),
            "keyboardScore": state.field("keyboardResults", "score"),
            "screenReaderScore": state.field("screenReaderResults", "compatibilityScore"),
            "colorContrastRate": state.field("colorContrastResults", "complianceRate"),
        },
        "testResults": _test_results(state),
        "files": [
            {"path": a.get("reportPath") or a.get("path"), "format": a.get("format") or "html", "label": a.get("label")}
            for a in state.artifact_dicts()
            if a.get("reportPath") or a.get("path")
        ][:15],
    }


def _gap_question(state: WorkflowState) -> str:
    meets_level = state.field("complianceAnalysis", "meetsTargetLevel", False)
    prioritized = state.field("complianceAnalysis", "prioritizedViolations", [])
    return (
        f"WCAG {state.input('wcagLevel')} compliance {'partially' if meets_level else 'not'} achieved. "
        f"Current level: {state.field('complianceAnalysis', 'complianceLevel')}, "
        f"Score: {_compliance_score(state)}/100 (Threshold: {state.input('complianceThreshold')}). "
        f"{len(prioritized)} violations require remediation. Review and approve to proceed?"
    )


def _gap_context(state: WorkflowState) -> dict[str, Any]:
    analysis = state.get("complianceAnalysis", {})
    score = _compliance_score(state)
    threshold = state.input("complianceThreshold")
    return {
        "compliance": {
            "target": state.input("wcagLevel"),
            "achieved": analysis.get("complianceLevel"),
            "score": score,
            "threshold": threshold,
            "gap": max(0, threshold - (score or 0)),
            "meetsCompliance": _meets_compliance(state),
        },
        "violationBreakdown": analysis.get("violationsByPrinciple"),
        "topViolations": list(analysis.get("prioritizedViolations") or [])[:15],
        "files": files(
            (analysis.get("reportPath"), "html", "Compliance Analysis Report"),
            (analysis.get("summaryPath"), "json", "Compliance Summary"),
        ),
    }


def _remediation_question(state: WorkflowState) -> str:
    plan = state.result("remediationPlan")
    return (
        f"Remediation plan created with {plan.get('totalTasks')} tasks across "
        f"{len(plan.get('phases') or [])} phases. Estimated effort: {plan.get('estimatedEffort')}. "
        f"Expected score improvement: +{plan.get('expectedImprovementScore')} points. "
        "Review and approve plan?"
    )


def _remediation_context(state: WorkflowState) -> dict[str, Any]:
    plan = state.result("remediationPlan")
    expected = (_compliance_score(state) or 0) + (plan.get("expectedImprovementScore") or 0)
    return {
        "plan": {
            "totalTasks": plan.get("totalTasks"),
            "phases": len(plan.get("phases") or []),
            "criticalTasks": plan.get("criticalTasks"),
            "highPriorityTasks": plan.get("highPriorityTasks"),
            "estimatedEffort": plan.get("estimatedEffort"),
            "quickWins": len(plan.get("quickWins") or []),
            "expectedScore": min(100, expected),
        },
        "files": files(
            (plan.get("planPath"), "markdown", "Remediation Plan"),
            (plan.get("roadmapPath"), "markdown", "Implementation Roadmap"),
            (state.field("complianceReport", "mainReportPath"), "html", "Compliance Report"),
        ),
    }


def _final_question(state: WorkflowState) -> str:
    plan = state.get("remediationPlan")
    remediation = f"{plan.get('totalTasks')} remediation tasks created" if plan else "no remediation plan"
    status = "COMPLIANCE ACHIEVED" if _meets_compliance(state) else "COMPLIANCE NOT MET"
    return (
        f"WCAG compliance validation complete. Target: {state.input('wcagLevel')}, "
        f"Achieved: {state.field('complianceAnalysis', 'complianceLevel')}, "
        f"Score: {_compliance_score(state)}/100. {status}. "
        f"{len(_violations(state))} violations found, {remediation}. "
        f"{state.field('finalAssessment', 'verdict')}. Approve final deliverables?"
    )


def _final_context(state: WorkflowState) -> dict[str, Any]:
    violations = _violations(state)
    plan = state.get("remediationPlan")
    assessment = state.result("finalAssessment")
    report = state.get("complianceReport", {})
    return {
        "summary": {
            "projectName": state.input("projectName"),
            "applicationUrl": state.input("applicationUrl"),
            "targetWcagLevel": state.input("wcagLevel"),
            "achievedComplianceLevel": state.field("complianceAnalysis", "complianceLevel"),
            "complianceScore": _compliance_score(state),
            "meetsCompliance": _meets_compliance(state),
            "totalViolations": len(violations),
            "criticalViolations": count_where(violations, "impact", "critical"),
            "seriousViolations": count_where(violations, "impact", "serious"),
            "remediationTasks": plan.get("totalTasks") if plan else 0,
            "estimatedRemediationEffort": plan.get("estimatedEffort") if plan else "N/A",
        },
        "testResultsSummary": {
            "automatedScore": _average_scan_score(state),
            "keyboardScore": state.field("keyboardResults", "score"),
            "screenReaderScore": state.field("screenReaderResults", "compatibilityScore"),
            "colorContrastRate": state.field("colorContrastResults", "complianceRate"),
            "manualTestsPassed": state.field("manualTestResults", "passed"),
        },
        "assessment": pick(
            assessment,
            "verdict", "deploymentReady", "recommendation", "strengths", "concerns", "nextSteps",
        ),
        "files": files(
            (report.get("mainReportPath"), "html", "Main WCAG Compliance Report"),
            (report.get("executiveSummaryPath"), "pdf", "Executive Summary"),
            (state.field("complianceAnalysis", "reportPath"), "html", "Compliance Analysis"),
            (state.field("criteriaMapping", "mappingPath"), "html", "Success Criteria Mapping"),
            (state.field("remediationPlan", "planPath"), "markdown", "Remediation Plan"),
            (state.field("vpatReport", "vpatPath"), "html", "VPAT Report"),
            (assessment.get("reportPath"), "markdown", "Final Assessment"),
        ),
    }


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

_PAGE_ARGS = ("projectName", "applicationUrl", "scope", "wcagLevel", "standardsReview", "outputDir")

PHASES = (
    Phase(
        name="standardsReview",
        task="wcag-standards-review",
        log="Phase 1: Reviewing WCAG compliance standards and success criteria",
        args=("projectName", "wcagLevel", "scope", "testingApproach", "outputDir"),
    ),
    Phase(
        name="testingSetup",
        task="compliance-testing-setup",
        log="Phase 2: Setting up automated WCAG compliance testing framework",
        args=("projectName", "applicationUrl", "wcagLevel", "automatedTooling", "outputDir"),
        breakpoints=(review("Testing Framework Setup Review", _setup_question, _setup_context),),
    ),
    FanOutPhase(
        name="automatedResults",
        task="automated-wcag-scan",
        log="Phase 3: Running automated WCAG compliance scans across all pages",
        over="scope",
        item="pageOrFlow",
        args=(
            "projectName", "applicationUrl", "pageOrFlow", "wcagLevel",
            "standardsReview", "testingSetup", "outputDir",
        ),
        notes=_scan_notes,
        breakpoints=(
            gate(
                "Critical WCAG Violations Detected",
                _critical_question,
                when=_critical_gate,
                context=_critical_context,
            ),
        ),
    ),
    Phase(
        name="keyboardResults",
        task="keyboard-navigation-compliance",
        log="Phase 4: Testing keyboard-only navigation and focus management",
        args=_PAGE_ARGS,
        when=enabled("includeKeyboardTests"),
        notes=_keyboard_notes,
    ),
    Phase(
        name="screenReaderResults",
        task="screen-reader-compliance",
        log="Phase 5: Testing screen reader compatibility with NVDA, JAWS, and VoiceOver",
        args=_PAGE_ARGS + ("screenReaders",),
        when=enabled("includeScreenReaderTests"),
        notes=_screen_reader_notes,
    ),
    Phase(
        name="colorContrastResults",
        task="color-contrast-compliance",
        log="Phase 6: Validating color contrast ratios for WCAG compliance",
        args=_PAGE_ARGS,
        when=enabled("includeColorContrastTests"),
        notes=_contrast_notes,
    ),
    Phase(
        name="semanticValidation",
        task="semantic-html-aria-validation",
        log="Phase 7: Validating semantic HTML structure and ARIA implementation",
        args=_PAGE_ARGS,
        notes=_semantic_notes,
    ),
    Phase(
        name="formsValidation",
        task="forms-accessibility-compliance",
        log="Phase 8: Validating forms and input accessibility",
        args=_PAGE_ARGS,
        notes=_forms_notes,
    ),
    Phase(
        name="multimediaValidation",
        task="multimedia-accessibility-compliance",
        log="Phase 9: Validating multimedia content accessibility",
        args=_PAGE_ARGS,
        notes=_multimedia_notes,
    ),
    Phase(
        name="manualTestResults",
        task="manual-wcag-compliance-test",
        log="Phase 10: Executing manual WCAG compliance testing procedures",
        args=_PAGE_ARGS + ("automatedResults",),
        when=enabled("includeManualTests"),
        notes=_manual_notes,
    ),
    Phase(
        name="complianceAnalysis",
        task="wcag-compliance-analysis",
        log="Phase 11: Analyzing WCAG compliance and calculating compliance score",
        args=(
            "projectName", "wcagLevel", "standardsReview", "violations", "testResults",
            "automatedResults", "keyboardResults", "screenReaderResults", "colorContrastResults",
            "semanticValidation", "formsValidation", "multimediaValidation", "manualTestResults",
            "outputDir",
        ),
        notes=_analysis_notes,
        before=(review("Testing Results Review", _results_question, _results_context),),
        breakpoints=(
            gate(
                "WCAG Compliance Gap Detected",
                _gap_question,
                when=lambda s: not _meets_compliance(s),
                context=_gap_context,
            ),
        ),
    ),
    Phase(
        name="criteriaMapping",
        task="success-criteria-mapping",
        log="Phase 12: Mapping violations to WCAG success criteria",
        args=(
            "projectName", "wcagLevel", "standardsReview", "violations",
            "prioritizedViolations", "complianceAnalysis", "outputDir",
        ),
    ),
    Phase(
        name="complianceReport",
        task="comprehensive-compliance-report",
        log="Phase 13: Generating comprehensive WCAG compliance report",
        args=(
            "projectName", "applicationUrl", "wcagLevel", "complianceScore",
            "achievedComplianceLevel", "standardsReview", "testResults", "violations",
            "prioritizedViolations", "complianceAnalysis", "criteriaMapping", "keyboardResults",
            "screenReaderResults", "colorContrastResults", "semanticValidation",
            "formsValidation", "multimediaValidation", "manualTestResults", "outputDir",
        ),
    ),
    Phase(
        name="vpatReport",
        task="vpat-generation",
        log="Phase 14: Generating VPAT (Voluntary Product Accessibility Template)",
        args=(
            "projectName", "applicationUrl", "wcagLevel", "complianceScore",
            "achievedComplianceLevel", "standardsReview", "criteriaMapping",
            "prioritizedViolations", "complianceAnalysis", "outputDir",
        ),
        when=enabled("generateVPAT"),
    ),
    Phase(
        name="remediationPlan",
        task="wcag-remediation-plan",
        log="Phase 15: Generating WCAG compliance remediation plan",
        args=(
            "projectName", "wcagLevel", "complianceScore", "achievedComplianceLevel",
            "complianceThreshold", "prioritizedViolations", "complianceAnalysis",
            "criteriaMapping", "outputDir",
        ),
        when=enabled("remediationRequired"),
        breakpoints=(review("Remediation Plan Review", _remediation_question, _remediation_context),),
    ),
    Phase(
        name="finalAssessment",
        task="final-compliance-assessment",
        log="Phase 16: Conducting final WCAG compliance assessment",
        args=(
            "projectName", "applicationUrl", "wcagLevel", "complianceScore",
            "achievedComplianceLevel", "meetsCompliance", "complianceThreshold", "violations",
            "prioritizedViolations", "complianceAnalysis", "remediationPlan",
            "complianceReport", "outputDir",
        ),
        breakpoints=(review("Final WCAG Compliance Assessment", _final_question, _final_context),),
    ),
)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _finalize(state: WorkflowState) -> dict[str, Any]:
    violations = _violations(state)
    analysis = state.result("complianceAnalysis")
    semantic = state.get("semanticValidation", {})
    forms = state.get("formsValidation", {})
    multimedia = state.get("multimediaValidation", {})
    return {
        "projectName": state.input("projectName"),
        "applicationUrl": state.input("applicationUrl"),
        "complianceLevel": analysis.get("complianceLevel"),
        "complianceScore": analysis.get("complianceScore"),
        "targetComplianceLevel": state.input("wcagLevel"),
        "meetsCompliance": _meets_compliance(state),
        "complianceGap": _compliance_gap(state),
        "violations": {
            "total": len(violations),
            "critical": count_where(violations, "impact", "critical"),
            "serious": count_where(violations, "impact", "serious"),
            "moderate": count_where(violations, "impact", "moderate"),
            "minor": count_where(violations, "impact", "minor"),
            "details": list(analysis.get("prioritizedViolations") or []),
        },
        "testResults": {
            "automated": {
                "averageScore": _average_scan_score(state),
                "totalScans": len(state.get("automatedResults", [])),
                "totalViolations": len(_scan_violations(state)),
            },
            "keyboard": pick(
                state.get("keyboardResults"),
                "score", "passed", "failed", "focusIndicatorsValid", "noKeyboardTraps",
            ),
            "screenReader": pick(
                state.get("screenReaderResults"),
                "compatible", "compatibilityScore", "testedScreenReaders", "ariaImplementation",
            ),
            "colorContrast": pick(
                state.get("colorContrastResults"),
                "complianceRate", "passing", "failing", "averageRatio",
            ),
            "semantic": {
                "score": semantic.get("score"),
                "validElements": semantic.get("validElements"),
                "totalElements": semantic.get("totalElements"),
            },
            "forms": {
                "accessibleForms": forms.get("accessibleForms"),
                "totalForms": forms.get("totalForms"),
            },
            "multimedia": {
                "compliantMedia": multimedia.get("compliantMedia"),
                "totalMedia": multimedia.get("totalMedia"),
            },
            "manual": pick(
                state.get("manualTestResults"),
                "passed", "failed", "incomplete", "testCoverage",
            ),
        },
        "complianceAnalysis": pick(
            analysis,
            "violationsByPrinciple", "violationsBySeverity", "successCriteriaPassed",
            "successCriteriaFailed", "complianceByLevel",
        ),
        "remediationPlan": pick(
            state.get("remediationPlan"),
            "totalTasks", "phases", "estimatedEffort", "expectedImprovementScore",
            "quickWins", "planPath", "roadmapPath",
        ),
        "vpatReport": pick(state.get("vpatReport"), "vpatPath", "vpatVersion", "complianceSummary"),
        "finalAssessment": pick(
            state.result("finalAssessment"),
            "verdict", "deploymentReady", "recommendation", "confidence", "strengths",
            "concerns", "nextSteps", "riskAssessment",
        ),
    }


def _metadata(state: WorkflowState) -> dict[str, Any]:
    return {
        "wcagLevel": state.input("wcagLevel"),
        "testingApproach": state.input("testingApproach"),
        "scope": len(state.input("scope")),
        "automatedTooling": state.input("automatedTooling"),
    }


def _intro(state: WorkflowState) -> list[str]:
    return [
        f"Target: {state.input('applicationUrl')}, WCAG Level: {state.input('wcagLevel')}, "
        f"Scope: {len(state.input('scope'))} pages/flows"
    ]


DEFINITION = ProcessDefinition(
    process_id=PROCESS_ID,
    name="wcag-compliance",
    title="WCAG Compliance Validation",
    catalog_slug="wcag_compliance",
    inputs_model=Inputs,
    phases=PHASES,
    derived=DERIVED,
    finalize=_finalize,
    metadata=_metadata,
    intro=_intro,
)


async def process(inputs: Any, ctx: ProcessContext) -> dict[str, Any]:
    """Validate an application against its target WCAG level."""
    return await PhasedRunner(DEFINITION).run(inputs, ctx)
