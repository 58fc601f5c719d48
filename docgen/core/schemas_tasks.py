"""Input and output shapes for every document-generation task."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Rating = Literal["high", "medium", "low"]
EmailTone = Literal["formal", "casual", "friendly", "professional", "urgent"]
DeploymentEnvironment = Literal["development", "staging", "production"]
PresentationPurpose = Literal["informative", "persuasive", "educational", "update"]


class TaskModel(BaseModel):
    """Base for task shapes: strips strings, drops unknown keys."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class TaskInput(TaskModel):
    """Base for request inputs: accepts snake_case or camelCase keys, reports errors by field name."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
        loc_by_alias=False,
    )


# =============================================================================
# Company Research
# =============================================================================


class CompanyResearchInput(TaskInput):
    company_name: str = Field(..., min_length=1, description="Company to research")
    industry: str | None = None
    location: str | None = None
    research_focus: str | None = Field(default=None, description="Sales focus area")
    competitor_analysis: bool = False


class KeyExecutive(TaskModel):
    name: str
    title: str


class NewsItem(TaskModel):
    title: str
    summary: str
    date: str


class CompanyResearchOutput(TaskModel):
    company_name: str
    industry: str
    location: str
    description: str
    website: str | None = None
    founded_year: int | None = Field(default=None, gt=0)
    employee_count: str | None = None
    revenue: str | None = None
    key_executives: list[KeyExecutive] | None = None
    competitors: list[str] | None = None
    recent_news: list[NewsItem] | None = None
    last_updated: str


# =============================================================================
# SOP Generation
# =============================================================================


class SopGenerationInput(TaskInput):
    process_name: str = Field(..., min_length=1)
    department: str | None = None
    purpose: str | None = None
    scope: str | None = None


class SopStep(TaskModel):
    step: int = Field(..., gt=0)
    action: str
    details: str
    owner: str


class SopGenerationOutput(TaskModel):
    title: str
    version: str
    date: str
    purpose: str
    scope: str
    responsibilities: list[str] = Field(..., min_length=1)
    procedure: list[SopStep] = Field(..., min_length=1)
    references: list[str] | None = None


# =============================================================================
# Email Composition
# =============================================================================


class EmailCompositionInput(TaskInput):
    recipient: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    tone: EmailTone
    purpose: str = Field(..., min_length=1)
    key_points: list[str] | None = None
    call_to_action: str | None = None


class EmailCompositionOutput(TaskModel):
    subject: str
    body: str
    tone: str
    word_count: int = Field(..., gt=0)
    suggested_improvements: list[str] | None = None


# =============================================================================
# Excel Helper
# =============================================================================


class ExcelHelperInput(TaskInput):
    question: str = Field(..., min_length=1)
    context: str | None = None
    excel_version: str | None = None


class ExcelHelperOutput(TaskModel):
    answer: str = Field(..., min_length=1)
    formula: str | None = Field(default=None, min_length=1)
    steps: list[str] | None = None
    alternative_solutions: list[str] | None = None
    tips: list[str] | None = None


# =============================================================================
# Feasibility Check
# =============================================================================


class FeasibilityCheckInput(TaskInput):
    project_name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    budget: str | None = None
    timeline: str | None = None
    resources: list[str] | None = None
    constraints: list[str] | None = None


class FeasibilityDimension(TaskModel):
    rating: Rating
    details: str


class FeasibilityRisk(TaskModel):
    risk: str
    impact: Rating
    mitigation: str


class FeasibilityCheckOutput(TaskModel):
    project_name: str
    overall_feasibility: Rating
    score: float = Field(..., ge=0, le=100)
    technical_feasibility: FeasibilityDimension
    financial_feasibility: FeasibilityDimension
    resource_feasibility: FeasibilityDimension
    risks: list[FeasibilityRisk] = Field(..., min_length=1)
    recommendations: list[str] = Field(..., min_length=1)


# =============================================================================
# Deployment Plan
# =============================================================================


class DeploymentPlanInput(TaskInput):
    project_name: str = Field(..., min_length=1)
    project_type: str | None = None
    environment: DeploymentEnvironment
    team_size: int | None = Field(default=None, gt=0)
    timeline: str | None = None


class DeploymentPhase(TaskModel):
    phase: int = Field(..., gt=0)
    name: str
    description: str
    duration: str
    tasks: list[str] = Field(..., min_length=1)
    dependencies: list[str] | None = None
    rollback_plan: str


class DeploymentPlanOutput(TaskModel):
    project_name: str
    deployment_strategy: str
    phases: list[DeploymentPhase] = Field(..., min_length=1)
    prerequisites: list[str] = Field(..., min_length=1)
    success_criteria: list[str] = Field(..., min_length=1)
    monitoring: list[str] = Field(..., min_length=1)
    communication_plan: str


# =============================================================================
# USP Battlecard
# =============================================================================


class UspsBattlecardInput(TaskInput):
    company_name: str = Field(..., min_length=1)
    competitor: str = Field(..., min_length=1)
    product_category: str | None = None
    target_market: str | None = None


class BattlecardOverview(TaskModel):
    our_positioning: str
    competitor_positioning: str


class BattlecardStrengths(TaskModel):
    ours: list[str] = Field(..., min_length=1)
    competitor: list[str] = Field(..., min_length=1)


class BattlecardWeaknesses(TaskModel):
    ours: list[str] | None = None
    competitor: list[str] | None = None


class UspsBattlecardOutput(TaskModel):
    company_name: str
    competitor: str
    product_category: str
    overview: BattlecardOverview
    strengths: BattlecardStrengths
    weaknesses: BattlecardWeaknesses
    key_differentiators: list[str] = Field(..., min_length=1)
    talking_points: list[str] = Field(..., min_length=1)
    competitive_advantages: list[str] = Field(..., min_length=1)
    recommended_actions: list[str] = Field(..., min_length=1)


# =============================================================================
# Disbandment Plan
# =============================================================================


class DisbandmentPlanInput(TaskInput):
    project_name: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)
    timeline: str | None = None
    stakeholders: list[str] | None = None


class DisbandmentPhase(TaskModel):
    phase: int = Field(..., gt=0)
    name: str
    description: str
    duration: str
    tasks: list[str] = Field(..., min_length=1)
    responsible: str


class AssetDistribution(TaskModel):
    asset: str
    disposition: str
    responsible: str


class KnowledgeTransfer(TaskModel):
    knowledge_area: str
    recipient: str
    method: str
    deadline: str


class DisbandmentPlanOutput(TaskModel):
    project_name: str
    reason: str
    disbandment_date: str
    phases: list[DisbandmentPhase] = Field(..., min_length=1)
    asset_distribution: list[AssetDistribution] = Field(..., min_length=1)
    knowledge_transfer: list[KnowledgeTransfer] = Field(..., min_length=1)
    legal_considerations: list[str] = Field(..., min_length=1)
    communication_plan: str
    final_checklist: list[str] = Field(..., min_length=1)


# =============================================================================
# Slide Template
# =============================================================================


class SlideTemplateInput(TaskInput):
    topic: str = Field(..., min_length=1)
    audience: str | None = None
    purpose: PresentationPurpose
    slide_count: int | None = Field(default=None, ge=1, le=20)
    key_points: list[str] | None = None


class Slide(TaskModel):
    slide_number: int = Field(..., gt=0)
    title: str
    content: list[str] = Field(..., min_length=1)
    speaker_notes: str | None = None
    visual_suggestions: str | None = None


class SlideTemplateOutput(TaskModel):
    title: str
    subtitle: str
    audience: str
    purpose: str
    slides: list[Slide] = Field(..., min_length=1)
    presentation_tips: list[str] = Field(..., min_length=1)
    estimated_duration: str


# =============================================================================
# Textual fallback
# =============================================================================


class UnstructuredOutput(TaskModel):
    """Raw provider text kept when no structured payload could be recovered."""

    title: str
    content: str
    summary: str
