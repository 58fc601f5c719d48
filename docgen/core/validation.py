"""Generic validate/coerce over the task registry.

``validate`` never raises: every failure comes back as a list of FieldError
values addressed by dotted path (``procedure.0.owner``).
"""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from docgen.core.errors import FieldError, FieldErrorCode, UnknownTaskError
from docgen.core.task_registry import TaskKind, get_task_descriptor

_MISSING_TYPES = {"missing"}
_ENUM_TYPES = {"literal_error", "enum"}
_RANGE_TYPES = {
    "greater_than",
    "greater_than_equal",
    "less_than",
    "less_than_equal",
    "too_short",
    "too_long",
    "string_too_short",
    "string_too_long",
    "multiple_of",
}


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    value: BaseModel | None = None
    errors: list[FieldError] = field(default_factory=list)


def _code_for(error_type: str) -> FieldErrorCode:
    if error_type in _MISSING_TYPES:
        return FieldErrorCode.MISSING
    if error_type in _ENUM_TYPES:
        return FieldErrorCode.ENUM_MISMATCH
    if error_type in _RANGE_TYPES:
        return FieldErrorCode.OUT_OF_RANGE
    return FieldErrorCode.TYPE_MISMATCH


def field_errors_from(exc: PydanticValidationError) -> list[FieldError]:
    """Translate pydantic errors into FieldError values."""
    errors = []
    for err in exc.errors():
        path = ".".join(str(part) for part in err.get("loc", ()))
        errors.append(
            FieldError(path=path, code=_code_for(err.get("type", "")), message=err.get("msg", ""))
        )
    return errors


def validate_against(model: type[BaseModel], raw: Any) -> ValidationResult:
    """Validate raw data against a pydantic model without raising."""
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if not isinstance(raw, dict):
        return ValidationResult(
            ok=False,
            errors=[
                FieldError(
                    path="",
                    code=FieldErrorCode.TYPE_MISMATCH,
                    message=f"Expected an object, got {type(raw).__name__}",
                )
            ],
        )

    try:
        return ValidationResult(ok=True, value=model.model_validate(raw))
    except PydanticValidationError as e:
        return ValidationResult(ok=False, errors=field_errors_from(e))
    except (TypeError, ValueError) as e:
        return ValidationResult(
            ok=False,
            errors=[FieldError(path="", code=FieldErrorCode.TYPE_MISMATCH, message=str(e))],
        )


def validate(task_kind: str | TaskKind, raw: Any) -> ValidationResult:
    """
    Validate request input for a task kind.

    Args:
        task_kind: Registered task kind
        raw: Untrusted input (usually a JSON object)

    Returns:
        ValidationResult with the coerced input model, or field errors
    """
    try:
        descriptor = get_task_descriptor(task_kind)
    except UnknownTaskError as e:
        return ValidationResult(ok=False, errors=list(e.errors))
    return validate_against(descriptor.input_model, raw)


def validate_output(task_kind: str | TaskKind, raw: Any) -> ValidationResult:
    """Validate a candidate output payload against the task's output shape."""
    try:
        descriptor = get_task_descriptor(task_kind)
    except UnknownTaskError as e:
        return ValidationResult(ok=False, errors=list(e.errors))
    return validate_against(descriptor.output_model, raw)
