"""Task registry: one immutable descriptor per supported task kind.

Descriptors are built once at import time and looked up by task kind string
(e.g. ``"company-research"``). Everything the pipeline needs to know about a
task lives here: its input/output shapes, prompt template, token budget,
determinism class and whether it benefits from retrieval.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from docgen.core.errors import UnknownTaskError
from docgen.core.schemas_tasks import (
    CompanyResearchInput,
    CompanyResearchOutput,
    DeploymentPlanInput,
    DeploymentPlanOutput,
    DisbandmentPlanInput,
    DisbandmentPlanOutput,
    EmailCompositionInput,
    EmailCompositionOutput,
    ExcelHelperInput,
    ExcelHelperOutput,
    FeasibilityCheckInput,
    FeasibilityCheckOutput,
    SlideTemplateInput,
    SlideTemplateOutput,
    SopGenerationInput,
    SopGenerationOutput,
    UspsBattlecardInput,
    UspsBattlecardOutput,
)


class TaskKind(str, Enum):
    COMPANY_RESEARCH = "company-research"
    GENERATE_SOP = "generate-sop"
    COMPOSE_EMAIL = "compose-email"
    EXCEL_HELPER = "excel-helper"
    FEASIBILITY_CHECK = "feasibility-check"
    DEPLOYMENT_PLAN = "deployment-plan"
    USPS_BATTLECARD = "usps-battlecard"
    DISBANDMENT_PLAN = "disbandment-plan"
    SLIDE_TEMPLATE = "slide-template"


class DeterminismClass(str, Enum):
    FACTUAL = "factual"
    STRUCTURED = "structured"
    BALANCED = "balanced"
    CREATIVE = "creative"


# Output token tiers by task complexity
MAX_TOKENS_SIMPLE = 800
MAX_TOKENS_MEDIUM = 1500
MAX_TOKENS_COMPLEX = 2000

DEFAULT_CONTEXT_TOKEN_BUDGET = 1200


@dataclass(frozen=True)
class TaskDescriptor:
    """Immutable description of one task kind."""

    kind: TaskKind
    name: str
    description: str
    category: str
    input_model: type[BaseModel]
    output_model: type[BaseModel]
    system_prompt: str
    render_user_prompt: Callable[[Any], str]
    max_tokens: int
    determinism: DeterminismClass
    needs_retrieval: bool = False
    retrieval_query: Callable[[Any], str] | None = None
    context_token_budget: int = DEFAULT_CONTEXT_TOKEN_BUDGET


def _lines(*parts: str | None) -> str:
    """Join prompt lines, skipping absent (None) ones."""
    return "\n".join(p for p in parts if p is not None)


def _joined(items: list[str] | None) -> str:
    return ", ".join(items) if items else ""


# =============================================================================
# User prompt templates
# =============================================================================


def _company_research_prompt(data: CompanyResearchInput) -> str:
    where = ""
    if data.industry:
        where += f" in {data.industry}"
    if data.location:
        where += f" in {data.location}"
    return _lines(
        f'Research "{data.company_name}"{where}.',
        f"Focus: {data.research_focus}" if data.research_focus else None,
        "Include the main competitors." if data.competitor_analysis else None,
        "",
        "Provide: description, industry, location, website, founded year, employees, "
        "revenue, key executives, competitors, recent news.",
        "Be concise but comprehensive. Only state facts you are confident about.",
    )


def _sop_prompt(data: SopGenerationInput) -> str:
    return _lines(
        f'Create SOP for "{data.process_name}"' + (f" ({data.department})" if data.department else "") + ".",
        f"Purpose: {data.purpose}" if data.purpose else None,
        f"Scope: {data.scope}" if data.scope else None,
        "",
        "Include: title, version, purpose, scope, responsibilities, step-by-step procedures "
        "with owners, references.",
        "Make it practical and easy to follow.",
    )


def _email_prompt(data: EmailCompositionInput) -> str:
    return _lines(
        f"Write {data.tone} email to: {data.recipient}",
        f"Subject: {data.subject}",
        f"Purpose: {data.purpose}",
        f"Key points: {_joined(data.key_points)}" if data.key_points else None,
        f"CTA: {data.call_to_action}" if data.call_to_action else None,
        "",
        "Include proper greeting, body, closing. Keep it professional and effective.",
    )


def _excel_prompt(data: ExcelHelperInput) -> str:
    return _lines(
        f'Excel question: "{data.question}"',
        f"Context: {data.context}" if data.context else None,
        f"Version: {data.excel_version}" if data.excel_version else None,
        "",
        "Provide: clear answer, formula, step-by-step instructions, alternatives, tips.",
        "Be practical and solution-oriented.",
    )


def _feasibility_prompt(data: FeasibilityCheckInput) -> str:
    return _lines(
        f'Analyze feasibility of: "{data.project_name}"',
        f"Description: {data.description}",
        f"Budget: {data.budget}" if data.budget else None,
        f"Timeline: {data.timeline}" if data.timeline else None,
        f"Resources: {_joined(data.resources)}" if data.resources else None,
        f"Constraints: {_joined(data.constraints)}" if data.constraints else None,
        "",
        "Assess: technical, financial, resource feasibility. Provide score (0-100), risks, "
        "mitigations, recommendations.",
        "Be analytical and comprehensive.",
    )


def _deployment_prompt(data: DeploymentPlanInput) -> str:
    return _lines(
        f'Create deployment plan for: "{data.project_name}"',
        f"Type: {data.project_type}" if data.project_type else None,
        f"Environment: {data.environment}",
        f"Team: {data.team_size} people" if data.team_size else None,
        f"Timeline: {data.timeline}" if data.timeline else None,
        "",
        "Include: strategy, phases with tasks/dependencies, prerequisites, success criteria, "
        "monitoring, communication, rollback.",
        "Make it practical and comprehensive.",
    )


def _battlecard_prompt(data: UspsBattlecardInput) -> str:
    return _lines(
        f"Create battlecard: {data.company_name} vs {data.competitor}",
        f"Category: {data.product_category}" if data.product_category else None,
        f"Market: {data.target_market}" if data.target_market else None,
        "",
        "Include: positioning comparison, strengths/weaknesses, differentiators, talking points, "
        "competitive advantages, actions.",
        "Be strategic and sales-focused.",
    )


def _disbandment_prompt(data: DisbandmentPlanInput) -> str:
    return _lines(
        f'Create disbandment plan for: "{data.project_name}"',
        f"Reason: {data.reason}",
        f"Timeline: {data.timeline}" if data.timeline else None,
        f"Stakeholders: {_joined(data.stakeholders)}" if data.stakeholders else None,
        "",
        "Include: phases with tasks, asset distribution, knowledge transfer, legal "
        "considerations, communication, checklist.",
        "Be thorough and methodical.",
    )


def _slides_prompt(data: SlideTemplateInput) -> str:
    return _lines(
        f'Create slide template for: "{data.topic}"',
        f"Audience: {data.audience}" if data.audience else None,
        f"Purpose: {data.purpose}",
        f"Slides: {data.slide_count}" if data.slide_count else None,
        f"Key points: {_joined(data.key_points)}" if data.key_points else None,
        "",
        "Include: title/subtitle, slide content with titles/bullets, speaker notes, visual "
        "suggestions, tips, duration.",
        "Make it engaging and well-structured.",
    )


# =============================================================================
# Registry
# =============================================================================


_DESCRIPTORS = [
    TaskDescriptor(
        kind=TaskKind.COMPANY_RESEARCH,
        name="Company Research",
        description="Research companies and gather comprehensive information",
        category="research",
        input_model=CompanyResearchInput,
        output_model=CompanyResearchOutput,
        system_prompt="You are a business research analyst. Provide accurate, current company information.",
        render_user_prompt=_company_research_prompt,
        max_tokens=MAX_TOKENS_COMPLEX,
        determinism=DeterminismClass.FACTUAL,
        needs_retrieval=True,
        retrieval_query=lambda d: _lines(d.company_name, d.industry, d.location, d.research_focus),
    ),
    TaskDescriptor(
        kind=TaskKind.GENERATE_SOP,
        name="Generate SOP",
        description="Create detailed Standard Operating Procedures",
        category="documentation",
        input_model=SopGenerationInput,
        output_model=SopGenerationOutput,
        system_prompt="You are a process documentation expert. Create clear, actionable SOPs.",
        render_user_prompt=_sop_prompt,
        max_tokens=MAX_TOKENS_MEDIUM,
        determinism=DeterminismClass.STRUCTURED,
        needs_retrieval=True,
        retrieval_query=lambda d: _lines(d.process_name, d.department, d.purpose, d.scope),
    ),
    TaskDescriptor(
        kind=TaskKind.COMPOSE_EMAIL,
        name="Compose Email",
        description="Draft professional emails with various tones",
        category="communication",
        input_model=EmailCompositionInput,
        output_model=EmailCompositionOutput,
        system_prompt="You are a professional email writer. Create effective, well-structured emails.",
        render_user_prompt=_email_prompt,
        max_tokens=MAX_TOKENS_SIMPLE,
        determinism=DeterminismClass.CREATIVE,
    ),
    TaskDescriptor(
        kind=TaskKind.EXCEL_HELPER,
        name="Excel Helper",
        description="Get Excel formulas, tips, and solutions",
        category="productivity",
        input_model=ExcelHelperInput,
        output_model=ExcelHelperOutput,
        system_prompt="You are an Excel expert. Provide practical solutions with clear explanations.",
        render_user_prompt=_excel_prompt,
        max_tokens=MAX_TOKENS_SIMPLE,
        determinism=DeterminismClass.FACTUAL,
    ),
    TaskDescriptor(
        kind=TaskKind.FEASIBILITY_CHECK,
        name="Feasibility Check",
        description="Assess project feasibility across multiple dimensions",
        category="analysis",
        input_model=FeasibilityCheckInput,
        output_model=FeasibilityCheckOutput,
        system_prompt="You are a project analyst. Conduct thorough feasibility assessments.",
        render_user_prompt=_feasibility_prompt,
        max_tokens=MAX_TOKENS_COMPLEX,
        determinism=DeterminismClass.BALANCED,
        needs_retrieval=True,
        retrieval_query=lambda d: _lines(d.project_name, d.description),
    ),
    TaskDescriptor(
        kind=TaskKind.DEPLOYMENT_PLAN,
        name="Deployment Plan",
        description="Create comprehensive deployment strategies",
        category="operations",
        input_model=DeploymentPlanInput,
        output_model=DeploymentPlanOutput,
        system_prompt="You are a deployment specialist. Create detailed, actionable deployment plans.",
        render_user_prompt=_deployment_prompt,
        max_tokens=MAX_TOKENS_COMPLEX,
        determinism=DeterminismClass.STRUCTURED,
    ),
    TaskDescriptor(
        kind=TaskKind.USPS_BATTLECARD,
        name="USP Battlecard",
        description="Generate competitive analysis tools",
        category="sales",
        input_model=UspsBattlecardInput,
        output_model=UspsBattlecardOutput,
        system_prompt="You are a competitive analyst. Create insightful battlecards for sales teams.",
        render_user_prompt=_battlecard_prompt,
        max_tokens=MAX_TOKENS_MEDIUM,
        determinism=DeterminismClass.BALANCED,
        needs_retrieval=True,
        retrieval_query=lambda d: _lines(
            f"{d.company_name} vs {d.competitor}", d.product_category, d.target_market
        ),
    ),
    TaskDescriptor(
        kind=TaskKind.DISBANDMENT_PLAN,
        name="Disbandment Plan",
        description="Create project wind-down procedures",
        category="operations",
        input_model=DisbandmentPlanInput,
        output_model=DisbandmentPlanOutput,
        system_prompt="You are a project manager specializing in orderly project wind-downs.",
        render_user_prompt=_disbandment_prompt,
        max_tokens=MAX_TOKENS_COMPLEX,
        determinism=DeterminismClass.STRUCTURED,
    ),
    TaskDescriptor(
        kind=TaskKind.SLIDE_TEMPLATE,
        name="Slide Template",
        description="Generate presentation content and structure",
        category="presentation",
        input_model=SlideTemplateInput,
        output_model=SlideTemplateOutput,
        system_prompt="You are a presentation expert. Create engaging, well-structured slide content.",
        render_user_prompt=_slides_prompt,
        max_tokens=MAX_TOKENS_MEDIUM,
        determinism=DeterminismClass.CREATIVE,
    ),
]

TASK_REGISTRY: MappingProxyType[str, TaskDescriptor] = MappingProxyType(
    {d.kind.value: d for d in _DESCRIPTORS}
)


def get_task_descriptor(task_kind: str | TaskKind) -> TaskDescriptor:
    """
    Look up a task descriptor.

    Raises:
        UnknownTaskError: If the task kind is not registered
    """
    key = task_kind.value if isinstance(task_kind, TaskKind) else task_kind
    descriptor = TASK_REGISTRY.get(key) if isinstance(key, str) else None
    if descriptor is None:
        raise UnknownTaskError(str(key))
    return descriptor


def list_task_descriptors() -> list[TaskDescriptor]:
    return list(TASK_REGISTRY.values())
