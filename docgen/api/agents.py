"""API endpoints for document-generation agents."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from docgen.core.errors import InputValidationError, UnknownTaskError
from docgen.core.logging import get_logger
from docgen.core.task_registry import list_task_descriptors
from docgen.services.agent_service import get_orchestrator
from docgen.services.orchestrator import Orchestrator

logger = get_logger(__name__)

router = APIRouter()


@router.get("/tasks")
async def list_tasks() -> dict[str, Any]:
    """List every supported task with its display metadata and required fields."""
    tasks = []
    for descriptor in list_task_descriptors():
        schema = descriptor.input_model.model_json_schema(by_alias=False)
        tasks.append(
            {
                "task_kind": descriptor.kind.value,
                "name": descriptor.name,
                "description": descriptor.description,
                "category": descriptor.category,
                "required_fields": schema.get("required", []),
                "needs_retrieval": descriptor.needs_retrieval,
            }
        )
    return {"tasks": tasks}


@router.get("/health")
async def agents_health(orchestrator: Orchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    """Provider chain and tier availability."""
    return {"status": "ok", **orchestrator.health()}


@router.get("/usage")
async def usage(orchestrator: Orchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    """Token usage totals and per-task counts."""
    return orchestrator.usage_stats()


@router.get("/cache/stats")
async def cache_stats(orchestrator: Orchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    return orchestrator.cache_stats()


@router.post("/cache/cleanup")
async def cache_cleanup(orchestrator: Orchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    """Drop expired entries from the in-process caches."""
    return {"removed": orchestrator.cleanup_caches()}


@router.delete("/cache")
async def cache_clear(orchestrator: Orchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    orchestrator.clear_caches()
    return {"cleared": True}


@router.post("/{task_kind}")
async def run_task(
    task_kind: str,
    payload: Any = Body(...),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """
    Run one task.

    Args:
        task_kind: Registered task kind, e.g. "excel-helper"
        payload: Task input as a JSON object

    Returns:
        Serialized AgentResponse

    Raises:
        HTTPException 404: Unknown task kind
        HTTPException 422: Input does not match the task's input shape
    """
    try:
        response = await orchestrator.execute(task_kind, payload)
    except UnknownTaskError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InputValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"task_kind": task_kind, "errors": [err.to_dict() for err in e.errors]},
        ) from e

    return response.to_dict()
