"""Design sprint facilitation: understand, diverge, decide, prototype, test."""

from __future__ import annotations

from typing import Any, Callable, Literal, Optional

from pydantic import Field

from uxflow.core.context import ProcessContext
from uxflow.core.gates import StopRule, below_threshold, review
from uxflow.core.runner import Phase, PhasedRunner, ProcessDefinition
from uxflow.core.state import WorkflowState
from uxflow.processes.base import ProcessInputs, items_of, pick

PROCESS_ID = "ux-ui-design/design-sprint"


class Inputs(ProcessInputs):
    project_name: str = "Project"
    challenge_statement: str = ""
    sprint_goal: str = ""
    participants: list[Any] = Field(default_factory=list)
    stakeholders: list[Any] = Field(default_factory=list)
    duration: Literal["5-day", "4-day", "3-day"] = "5-day"
    format: Literal["remote", "in-person", "hybrid"] = "remote"
    target_users: dict[str, Any] = Field(default_factory=dict)
    test_participant_count: int = 5
    constraints: dict[str, Any] = Field(default_factory=dict)
    existing_research: list[Any] = Field(default_factory=list)
    expert_interviews: list[Any] = Field(default_factory=list)
    output_dir: str = "design-sprint-output"
    target_quality_score: float = 85


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------


def _quality_met(state: WorkflowState) -> bool:
    score = state.field("qualityScoring", "overallScore")
    return score is not None and not below_threshold(score, state.input("targetQualityScore"))


def _confirmed_participants(state: WorkflowState) -> list[Any]:
    return items_of(state.get("sprintPreparation"), "confirmedParticipants")


DERIVED = {
    "sprintTarget": lambda s: s.field("day1Understand", "sprintTarget"),
    "sprintQuestions": lambda s: s.field("day1Understand", "sprintQuestions"),
    "storyboard": lambda s: s.field("day3Decide", "storyboard"),
    "winningSolution": lambda s: s.field("day3Decide", "winningSolution"),
    "prototype": lambda s: s.get("day4Prototype"),
    "testResults": lambda s: s.get("day5Test"),
}

_CONFIRMED = {"participants": "sprintPreparation.confirmedParticipants"}
_REFINED_GOAL = {"sprintGoal": "sprintPreparation.refinedSprintGoal"}


# ---------------------------------------------------------------------------
# Breakpoints
# ---------------------------------------------------------------------------


def _listing(artifacts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    listing = []
    for artifact in artifacts:
        entry = {"path": artifact.get("path"), "format": artifact.get("format") or "markdown"}
        for key in ("language", "label"):
            if artifact.get(key):
                entry[key] = artifact[key]
        listing.append(entry)
    return listing


def _day_files(day: int, phase: str) -> Callable[[WorkflowState], list[dict[str, Any]]]:
    """Artifacts tagged with the sprint *day* number or its *phase* name."""

    def select(state: WorkflowState) -> list[dict[str, Any]]:
        return _listing(
            [a for a in state.artifact_dicts() if a.get("day") == day or a.get("phase") == phase]
        )

    return select


def _count(state: WorkflowState, phase: str, key: str) -> int:
    return len(state.field(phase, key, []))


def _storyboard_frames(state: WorkflowState) -> int:
    storyboard = state.field("day3Decide", "storyboard", {})
    return len(storyboard.get("frames") or [])


def _day_review(
    title: str,
    day: int,
    phase: str,
    question: Callable[[WorkflowState], str],
    summary: Callable[[WorkflowState], dict[str, Any]],
):
    select = _day_files(day, phase)
    return review(
        title,
        question,
        lambda s: {
            "files": select(s),
            "summary": {"projectName": s.input("projectName"), **summary(s)},
        },
    )


def _completion_question(state: WorkflowState) -> str:
    outcome = (
        "Sprint achieved quality targets!"
        if _quality_met(state)
        else "Sprint may need follow-up activities."
    )
    return (
        f"Design Sprint complete. Quality score: "
        f"{state.field('qualityScoring', 'overallScore')}/100. {outcome} Review final outcomes?"
    )


def _completion_context(state: WorkflowState) -> dict[str, Any]:
    return {
        "files": _listing(state.artifact_dicts()),
        "summary": {
            "projectName": state.input("projectName"),
            "qualityScore": state.field("qualityScoring", "overallScore"),
            "qualityMet": _quality_met(state),
            "sprintGoal": state.field("sprintPreparation", "refinedSprintGoal"),
            "sprintTarget": state.field("day1Understand", "sprintTarget"),
            "prototypeUrl": state.field("day4Prototype", "prototypeUrl"),
            "testSuccessRate": state.field("day5Test", "successRate"),
            "majorInsights": _count(state, "insightsSynthesis", "keyInsights"),
            "decisionsReached": _count(state, "decisionsAndRecommendations", "decisions"),
            "recommendedAction": state.field("decisionsAndRecommendations", "recommendedAction"),
        },
    }


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

PHASES = (
    Phase(
        name="sprintPreparation",
        task="sprint-preparation",
        log="Phase 1: Pre-Sprint preparation and planning",
        args=(
            "projectName", "challengeStatement", "sprintGoal", "participants", "stakeholders",
            "duration", "format", "targetUsers", "testParticipantCount", "constraints",
            "existingResearch", "expertInterviews", "outputDir",
        ),
        stop=StopRule.on_flag(
            "readinessApproved",
            "Sprint preparation requirements not met",
            extra=lambda r: pick(r, "missingElements", "recommendations"),
        ),
    ),
    Phase(
        name="day1Understand",
        task="day1-understand",
        log="Phase 2: Day 1 - Understand the problem and map the challenge",
        args=(
            "projectName", "sprintGoal", "challengeStatement", "participants", "stakeholders",
            "existingResearch", "expertInterviews", "constraints", "format", "outputDir",
        ),
        bind={
            **_REFINED_GOAL,
            **_CONFIRMED,
            "challengeStatement": "sprintPreparation.refinedChallengeStatement",
            "existingResearch": "sprintPreparation.researchSummary",
            "expertInterviews": "sprintPreparation.expertInsights",
        },
        breakpoints=(
            _day_review(
                "Day 1 Review - Understand",
                1,
                "understand",
                lambda s: (
                    f'Day 1 (Understand) complete. Target chosen: '
                    f'"{s.field("day1Understand", "sprintTarget")}". '
                    "Review problem map and sprint questions?"
                ),
                lambda s: {
                    "sprintTarget": s.field("day1Understand", "sprintTarget"),
                    "hmwQuestions": _count(s, "day1Understand", "hmwQuestions"),
                    "expertInsights": _count(s, "day1Understand", "expertInsights"),
                    "longTermGoal": s.field("day1Understand", "longTermGoal"),
                    "sprintQuestions": s.field("day1Understand", "sprintQuestions"),
                },
            ),
        ),
    ),
    Phase(
        name="day2Diverge",
        task="day2-diverge",
        log="Phase 3: Day 2 - Diverge and sketch competing solutions",
        args=(
            "projectName", "sprintTarget", "userJourneyMap", "hmwQuestions",
            "inspirationSources", "sprintQuestions", "participants", "format", "outputDir",
        ),
        bind={
            **_CONFIRMED,
            "userJourneyMap": "day1Understand.userJourneyMap",
            "hmwQuestions": "day1Understand.hmwQuestions",
            "inspirationSources": "day1Understand.inspirationSources",
        },
        breakpoints=(
            _day_review(
                "Day 2 Review - Diverge",
                2,
                "diverge",
                lambda s: (
                    f"Day 2 (Diverge) complete. {_count(s, 'day2Diverge', 'solutionSketches')} "
                    "solution sketches created. Review competing solutions?"
                ),
                lambda s: {
                    "totalSketches": _count(s, "day2Diverge", "solutionSketches"),
                    "diverseApproaches": s.field("day2Diverge", "diverseApproaches"),
                    "notableIdeas": s.field("day2Diverge", "notableIdeas"),
                    "lightningDemos": _count(s, "day2Diverge", "lightningDemos"),
                },
            ),
        ),
    ),
    Phase(
        name="day3Decide",
        task="day3-decide",
        log="Phase 4: Day 3 - Decide on the best solution to prototype",
        args=(
            "projectName", "sprintTarget", "sprintQuestions", "solutionSketches",
            "participants", "decisionMaker", "format", "outputDir",
        ),
        bind={
            **_CONFIRMED,
            "solutionSketches": "day2Diverge.solutionSketches",
            "decisionMaker": "sprintPreparation.decisionMaker",
        },
        breakpoints=(
            _day_review(
                "Day 3 Review - Decide",
                3,
                "decide",
                lambda s: (
                    "Day 3 (Decide) complete. Winning solution selected. "
                    f"Review storyboard with {_storyboard_frames(s)} frames?"
                ),
                lambda s: {
                    "winningSolution": s.field("day3Decide", "winningSolution", {}).get("title"),
                    "winningRationale": s.field("day3Decide", "winningSolution", {}).get("rationale"),
                    "storyboardFrames": _storyboard_frames(s),
                    "rumblesResolved": s.field("day3Decide", "rumblesResolved"),
                    "conflictingIdeas": s.field("day3Decide", "conflictingIdeasHandled"),
                },
            ),
        ),
    ),
    Phase(
        name="day4Prototype",
        task="day4-prototype",
        log="Phase 5: Day 4 - Prototype the winning solution",
        args=(
            "projectName", "storyboard", "winningSolution", "userJourneyMap", "participants",
            "format", "prototypeFidelity", "outputDir",
        ),
        bind={
            **_CONFIRMED,
            "userJourneyMap": "day1Understand.userJourneyMap",
            "prototypeFidelity": lambda s: "high-fidelity-facade",
        },
        breakpoints=(
            _day_review(
                "Day 4 Review - Prototype",
                4,
                "prototype",
                lambda s: (
                    "Day 4 (Prototype) complete. Realistic prototype built with "
                    f"{s.field('day4Prototype', 'totalScreens')} screens. "
                    "Review prototype before testing?"
                ),
                lambda s: {
                    "prototypeUrl": s.field("day4Prototype", "prototypeUrl"),
                    "totalScreens": s.field("day4Prototype", "totalScreens"),
                    "interactions": _count(s, "day4Prototype", "interactions"),
                    "testingReadiness": s.field("day4Prototype", "testingReadiness"),
                    "assetsCaptured": s.field("day4Prototype", "assetTypes"),
                },
            ),
        ),
    ),
    Phase(
        name="testPreparation",
        task="test-preparation",
        log="Phase 6: Recruiting and preparing for user testing",
        args=(
            "projectName", "targetUsers", "testParticipantCount", "sprintTarget",
            "sprintQuestions", "prototype", "storyboard", "format", "outputDir",
        ),
    ),
    Phase(
        name="day5Test",
        task="day5-test",
        log="Phase 7: Day 5 - Test with real users and gather insights",
        args=(
            "projectName", "prototype", "testParticipants", "interviewScript",
            "sprintQuestions", "storyboard", "participants", "format", "outputDir",
        ),
        bind={
            **_CONFIRMED,
            "testParticipants": "testPreparation.confirmedParticipants",
            "interviewScript": "testPreparation.interviewScript",
        },
        breakpoints=(
            _day_review(
                "Day 5 Review - Test",
                5,
                "test",
                lambda s: (
                    f"Day 5 (Test) complete. {s.field('day5Test', 'interviewsCompleted')} user "
                    "interviews conducted. Review testing insights and patterns?"
                ),
                lambda s: {
                    "interviewsCompleted": s.field("day5Test", "interviewsCompleted"),
                    "successRate": s.field("day5Test", "successRate"),
                    "majorInsights": s.field("day5Test", "majorInsights", [])[:5],
                    "patternsIdentified": _count(s, "day5Test", "patterns"),
                    "sprintQuestionsAnswered": s.field("day5Test", "sprintQuestionsAnswered"),
                },
            ),
        ),
    ),
    Phase(
        name="insightsSynthesis",
        task="insights-synthesis",
        log="Phase 8: Synthesizing test results and extracting insights",
        args=(
            "projectName", "sprintGoal", "sprintTarget", "sprintQuestions", "testResults",
            "winningSolution", "prototype", "outputDir",
        ),
        bind=_REFINED_GOAL,
    ),
    Phase(
        name="decisionsAndRecommendations",
        task="decisions-recommendations",
        log="Phase 9: Generating decisions and next-step recommendations",
        args=(
            "projectName", "sprintGoal", "insightsSynthesis", "testResults", "winningSolution",
            "prototype", "sprintQuestions", "decisionMaker", "outputDir",
        ),
        bind={**_REFINED_GOAL, "decisionMaker": "sprintPreparation.decisionMaker"},
    ),
    Phase(
        name="sprintReport",
        task="sprint-report-generation",
        log="Phase 10: Generating comprehensive design sprint report",
        args=(
            "projectName", "sprintPreparation", "day1Understand", "day2Diverge", "day3Decide",
            "day4Prototype", "day5Test", "insightsSynthesis", "decisionsAndRecommendations",
            "duration", "format", "outputDir",
        ),
    ),
    Phase(
        name="qualityScoring",
        task="sprint-quality-scoring",
        log="Phase 11: Evaluating sprint quality and outcomes",
        args=(
            "projectName", "sprintGoal", "sprintQuestions", "testResults", "insightsSynthesis",
            "decisionsAndRecommendations", "prototypeQuality", "participantEngagement",
            "targetQualityScore", "outputDir",
        ),
        bind={
            **_REFINED_GOAL,
            "prototypeQuality": "day4Prototype.qualityScore",
            "participantEngagement": lambda s: len(_confirmed_participants(s)),
        },
        breakpoints=(review("Sprint Completion Review", _completion_question, _completion_context),),
    ),
    Phase(
        name="stakeholderPresentation",
        task="stakeholder-presentation",
        log="Phase 12: Preparing stakeholder presentation",
        args=(
            "projectName", "sprintReport", "insightsSynthesis", "decisionsAndRecommendations",
            "prototype", "testResults", "stakeholders", "outputDir",
        ),
        when=lambda s: _quality_met(s) and bool(s.input("stakeholders")),
    ),
)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _first(items: Optional[list[Any]], limit: int) -> list[Any]:
    return list(items or [])[:limit]


def _finalize(state: WorkflowState) -> dict[str, Any]:
    preparation = state.get("sprintPreparation", {})
    understand = state.get("day1Understand", {})
    decide = state.get("day3Decide", {})
    prototype = state.get("day4Prototype", {})
    test = state.get("day5Test", {})
    insights = state.get("insightsSynthesis", {})
    decisions = state.get("decisionsAndRecommendations", {})
    next_steps = decisions.get("nextSteps") or {}
    return {
        "projectName": state.input("projectName"),
        "qualityScore": state.field("qualityScoring", "overallScore"),
        "qualityMet": _quality_met(state),
        "sprintSummary": {
            "goal": preparation.get("refinedSprintGoal"),
            "target": understand.get("sprintTarget"),
            "duration": state.input("duration"),
            "format": state.input("format"),
            "participantCount": len(_confirmed_participants(state)),
        },
        "sprintReport": state.field("sprintReport", "reportPath"),
        "sprintOutcomes": {
            "longTermGoal": understand.get("longTermGoal"),
            "sprintQuestions": understand.get("sprintQuestions"),
            "hmwQuestions": _first(understand.get("hmwQuestions"), 10),
            "solutionsExplored": _count(state, "day2Diverge", "solutionSketches"),
            "winningSolution": (decide.get("winningSolution") or {}).get("title"),
            "storyboardFrames": _storyboard_frames(state),
        },
        "prototype": {
            "url": prototype.get("prototypeUrl"),
            "screens": prototype.get("totalScreens"),
            "interactions": len(prototype.get("interactions") or []),
            "fidelity": prototype.get("fidelity"),
            "testingReadiness": prototype.get("testingReadiness"),
        },
        "testingResults": {
            "participantsInterviewed": test.get("interviewsCompleted"),
            "successRate": test.get("successRate"),
            "patterns": test.get("patterns"),
            "majorInsights": test.get("majorInsights"),
            "sprintQuestionsAnswered": test.get("sprintQuestionsAnswered"),
            "quotableQuotes": _first(test.get("quotes"), 10),
        },
        "insights": {
            "total": len(insights.get("keyInsights") or []),
            "validated": len(insights.get("validatedHypotheses") or []),
            "invalidated": len(insights.get("invalidatedHypotheses") or []),
            "keyInsights": insights.get("keyInsights"),
            "surprises": insights.get("surprisingFindings"),
        },
        "decisions": {
            "total": len(decisions.get("decisions") or []),
            "recommendedAction": decisions.get("recommendedAction"),
            "decisions": decisions.get("decisions"),
            "confidence": decisions.get("confidenceLevel"),
        },
        "nextSteps": {
            "immediate": next_steps.get("immediate"),
            "shortTerm": next_steps.get("shortTerm"),
            "longTerm": next_steps.get("longTerm"),
            "contingencies": next_steps.get("contingencies"),
        },
        "stakeholderPresentation": pick(
            state.get("stakeholderPresentation"),
            "presentationPath", "executiveSummary", "keySlides",
        ),
    }


def _metadata(state: WorkflowState) -> dict[str, Any]:
    return {
        "outputDir": state.input("outputDir"),
        "sprintFormat": state.input("format"),
        "sprintDuration": state.input("duration"),
    }


def _intro(state: WorkflowState) -> list[str]:
    return [
        f"Project: {state.input('projectName')}, Format: {state.input('format')}, "
        f"Duration: {state.input('duration')}"
    ]


DEFINITION = ProcessDefinition(
    process_id=PROCESS_ID,
    name="design-sprint",
    title="Design Sprint Facilitation",
    catalog_slug="design_sprint",
    inputs_model=Inputs,
    phases=PHASES,
    derived=DERIVED,
    finalize=_finalize,
    metadata=_metadata,
    intro=_intro,
)


async def process(inputs: Any, ctx: ProcessContext) -> dict[str, Any]:
    """Facilitate a design sprint from preparation to stakeholder readout."""
    return await PhasedRunner(DEFINITION).run(inputs, ctx)
