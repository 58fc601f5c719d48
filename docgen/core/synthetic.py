"""Deterministic placeholder outputs used when every provider has failed.

Each builder is a pure function of the validated input and a timestamp, and
always produces an instance of the task's output model. Placeholders are
clearly marked as such in their text and are never persisted.
"""

from collections.abc import Callable
from datetime import datetime
from types import MappingProxyType

from pydantic import BaseModel

from docgen.core.schemas_tasks import (
    AssetDistribution,
    BattlecardOverview,
    BattlecardStrengths,
    BattlecardWeaknesses,
    CompanyResearchInput,
    CompanyResearchOutput,
    DeploymentPhase,
    DeploymentPlanInput,
    DeploymentPlanOutput,
    DisbandmentPhase,
    DisbandmentPlanInput,
    DisbandmentPlanOutput,
    EmailCompositionInput,
    EmailCompositionOutput,
    ExcelHelperInput,
    ExcelHelperOutput,
    FeasibilityCheckInput,
    FeasibilityCheckOutput,
    FeasibilityDimension,
    FeasibilityRisk,
    KnowledgeTransfer,
    Slide,
    SlideTemplateInput,
    SlideTemplateOutput,
    SopGenerationInput,
    SopGenerationOutput,
    SopStep,
    UspsBattlecardInput,
    UspsBattlecardOutput,
)
from docgen.core.task_registry import TaskKind

PLACEHOLDER_WARNING = "Placeholder output: not AI-generated, every provider was unavailable. Review before use."
NOT_AVAILABLE = "Information not available"
RETRY_LATER = "Automated generation is unavailable right now. Please try again later."


def _company_research(data: CompanyResearchInput, now: datetime) -> CompanyResearchOutput:
    return CompanyResearchOutput(
        company_name=data.company_name,
        industry=data.industry or NOT_AVAILABLE,
        location=data.location or NOT_AVAILABLE,
        description=f"Unable to fetch company information for {data.company_name} at this time. {RETRY_LATER}",
        last_updated=now.isoformat(),
    )


def _sop(data: SopGenerationInput, now: datetime) -> SopGenerationOutput:
    owner = data.department or "Process owner"
    return SopGenerationOutput(
        title=f"SOP: {data.process_name}",
        version="0.1-draft",
        date=now.date().isoformat(),
        purpose=data.purpose or f"Define how {data.process_name} is carried out.",
        scope=data.scope or f"All activities that are part of {data.process_name}.",
        responsibilities=[f"{owner}: maintains and follows this procedure"],
        procedure=[
            SopStep(step=1, action="Prepare", details="Gather the inputs and approvals the process needs.", owner=owner),
            SopStep(step=2, action="Execute", details=f"Carry out {data.process_name} as agreed.", owner=owner),
            SopStep(step=3, action="Review", details="Check the result and record any deviations.", owner=owner),
        ],
    )


def _email(data: EmailCompositionInput, now: datetime) -> EmailCompositionOutput:
    lines = [f"Hello {data.recipient},", "", f"I am writing regarding: {data.purpose}."]
    if data.key_points:
        lines.append("")
        lines.extend(f"- {point}" for point in data.key_points)
    if data.call_to_action:
        lines.extend(["", data.call_to_action])
    lines.extend(["", "Best regards"])
    body = "\n".join(lines)
    return EmailCompositionOutput(
        subject=data.subject,
        body=body,
        tone=data.tone,
        word_count=max(len(body.split()), 1),
    )


# (keywords that must all appear, formula, explanation)
_EXCEL_PATTERNS: list[tuple[tuple[str, ...], str, str]] = [
    (("sum", "condition"), "=SUMIFS(sum_range, criteria_range1, criteria1, criteria_range2, criteria2)", "SUMIFS adds values that meet several conditions at once."),
    (("sum", "if"), "=SUMIFS(sum_range, criteria_range, criteria)", "SUMIFS adds values that meet one or more conditions."),
    (("sum", "where"), "=SUMIFS(sum_range, criteria_range, criteria)", "SUMIFS adds values that meet one or more conditions."),
    (("count",), "=COUNTIFS(criteria_range, criteria)", "COUNTIFS counts cells that meet one or more conditions."),
    (("average",), "=AVERAGEIFS(average_range, criteria_range, criteria)", "AVERAGEIFS averages values that meet conditions."),
    (("lookup",), "=XLOOKUP(lookup_value, lookup_array, return_array)", "XLOOKUP finds a value and returns the matching item."),
    (("find",), "=XLOOKUP(lookup_value, lookup_array, return_array)", "XLOOKUP finds a value and returns the matching item."),
    (("sum",), "=SUM(range)", "SUM adds all numbers in a range."),
]


def _excel(data: ExcelHelperInput, now: datetime) -> ExcelHelperOutput:
    question = data.question.lower()
    for keywords, formula, explanation in _EXCEL_PATTERNS:
        if all(k in question for k in keywords):
            return ExcelHelperOutput(
                answer=f"{explanation} Replace the placeholder ranges with your own cells.",
                formula=formula,
                steps=["Select the output cell", f"Enter {formula}", "Adjust the ranges and press Enter"],
                tips=[RETRY_LATER],
            )
    return ExcelHelperOutput(
        answer=f"No automated answer is available for: {data.question}. {RETRY_LATER}",
        tips=["Check Microsoft's function reference for the operation you need."],
    )


def _feasibility(data: FeasibilityCheckInput, now: datetime) -> FeasibilityCheckOutput:
    pending = FeasibilityDimension(rating="medium", details="Not assessed: automated analysis unavailable.")
    return FeasibilityCheckOutput(
        project_name=data.project_name,
        overall_feasibility="medium",
        score=50,
        technical_feasibility=pending,
        financial_feasibility=pending,
        resource_feasibility=pending,
        risks=[
            FeasibilityRisk(
                risk="Assessment not performed",
                impact="medium",
                mitigation="Run a manual feasibility review.",
            )
        ],
        recommendations=["Re-run the feasibility check once generation is available."],
    )


def _deployment(data: DeploymentPlanInput, now: datetime) -> DeploymentPlanOutput:
    return DeploymentPlanOutput(
        project_name=data.project_name,
        deployment_strategy=f"Staged rollout to {data.environment}",
        phases=[
            DeploymentPhase(
                phase=1,
                name="Preparation",
                description="Freeze scope and verify build artifacts.",
                duration="TBD",
                tasks=["Confirm release candidate", "Verify configuration"],
                rollback_plan="No changes deployed yet.",
            ),
            DeploymentPhase(
                phase=2,
                name="Rollout",
                description=f"Deploy to {data.environment}.",
                duration="TBD",
                tasks=["Deploy", "Run smoke tests"],
                dependencies=["Preparation"],
                rollback_plan="Redeploy the previous release.",
            ),
        ],
        prerequisites=["Approved release candidate"],
        success_criteria=["Smoke tests pass"],
        monitoring=["Error rates", "Latency"],
        communication_plan="Notify stakeholders before and after the rollout.",
    )


def _battlecard(data: UspsBattlecardInput, now: datetime) -> UspsBattlecardOutput:
    return UspsBattlecardOutput(
        company_name=data.company_name,
        competitor=data.competitor,
        product_category=data.product_category or NOT_AVAILABLE,
        overview=BattlecardOverview(our_positioning=NOT_AVAILABLE, competitor_positioning=NOT_AVAILABLE),
        strengths=BattlecardStrengths(ours=[NOT_AVAILABLE], competitor=[NOT_AVAILABLE]),
        weaknesses=BattlecardWeaknesses(),
        key_differentiators=[NOT_AVAILABLE],
        talking_points=[f"Ask what the customer values most when comparing {data.company_name} and {data.competitor}."],
        competitive_advantages=[NOT_AVAILABLE],
        recommended_actions=["Regenerate this battlecard once generation is available."],
    )


def _disbandment(data: DisbandmentPlanInput, now: datetime) -> DisbandmentPlanOutput:
    return DisbandmentPlanOutput(
        project_name=data.project_name,
        reason=data.reason,
        disbandment_date=data.timeline or "TBD",
        phases=[
            DisbandmentPhase(
                phase=1,
                name="Wind-down",
                description="Stop new work and inventory open commitments.",
                duration="TBD",
                tasks=["Freeze new work", "List open commitments"],
                responsible="Project manager",
            )
        ],
        asset_distribution=[AssetDistribution(asset="Project assets", disposition="TBD", responsible="Project manager")],
        knowledge_transfer=[
            KnowledgeTransfer(knowledge_area="Project documentation", recipient="TBD", method="Handover", deadline="TBD")
        ],
        legal_considerations=["Review contractual obligations"],
        communication_plan=", ".join(data.stakeholders) if data.stakeholders else "Inform all stakeholders.",
        final_checklist=["Archive documentation", "Close accounts"],
    )


def _slides(data: SlideTemplateInput, now: datetime) -> SlideTemplateOutput:
    points = data.key_points or [data.topic]
    count = data.slide_count or len(points) + 2
    slides = [Slide(slide_number=1, title=data.topic, content=[data.audience or data.purpose])]
    for i in range(2, count):
        point = points[(i - 2) % len(points)]
        slides.append(Slide(slide_number=i, title=point, content=[point]))
    if count > 1:
        slides.append(Slide(slide_number=count, title="Summary", content=points))
    return SlideTemplateOutput(
        title=data.topic,
        subtitle=f"{data.purpose.capitalize()} presentation",
        audience=data.audience or "General",
        purpose=data.purpose,
        slides=slides,
        presentation_tips=[RETRY_LATER],
        estimated_duration=f"{len(slides) * 2} minutes",
    )


_BUILDERS: MappingProxyType[str, Callable[[BaseModel, datetime], BaseModel]] = MappingProxyType(
    {
        TaskKind.COMPANY_RESEARCH.value: _company_research,
        TaskKind.GENERATE_SOP.value: _sop,
        TaskKind.COMPOSE_EMAIL.value: _email,
        TaskKind.EXCEL_HELPER.value: _excel,
        TaskKind.FEASIBILITY_CHECK.value: _feasibility,
        TaskKind.DEPLOYMENT_PLAN.value: _deployment,
        TaskKind.USPS_BATTLECARD.value: _battlecard,
        TaskKind.DISBANDMENT_PLAN.value: _disbandment,
        TaskKind.SLIDE_TEMPLATE.value: _slides,
    }
)


def synthesize(task_kind: str, task_input: BaseModel, now: datetime) -> BaseModel:
    """Build the placeholder output for a task kind from its validated input."""
    return _BUILDERS[task_kind](task_input, now)
