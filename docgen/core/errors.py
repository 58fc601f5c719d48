"""Error taxonomy for the orchestration core.

Only InputValidationError ever reaches a caller as a rejected request.
ProviderError falls through the dispatch chain, ParseError is recovered by
the normalizer, and CacheError degrades the failing tier to a miss.
"""

from dataclasses import dataclass
from enum import Enum


class FieldErrorCode(str, Enum):
    MISSING = "MISSING"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    ENUM_MISMATCH = "ENUM_MISMATCH"


@dataclass(frozen=True)
class FieldError:
    """A single validation failure, addressed by dotted field path."""

    path: str
    code: FieldErrorCode
    message: str

    def to_dict(self) -> dict:
        return {"path": self.path, "code": self.code.value, "message": self.message}


class ProviderErrorKind(str, Enum):
    TIMEOUT = "TIMEOUT"
    QUOTA = "QUOTA"
    AUTH = "AUTH"
    UNKNOWN = "UNKNOWN"


class DocGenError(Exception):
    """Base class for orchestration errors."""


class InputValidationError(DocGenError):
    """Request input does not match the task's input shape."""

    def __init__(self, task_kind: str, errors: list[FieldError]):
        self.task_kind = task_kind
        self.errors = errors
        summary = "; ".join(f"{e.path}: {e.code.value}" for e in errors)
        super().__init__(f"Invalid input for {task_kind}: {summary}")


class UnknownTaskError(InputValidationError):
    """Requested task kind is not registered."""

    def __init__(self, task_kind: str):
        error = FieldError(
            path="task_kind",
            code=FieldErrorCode.ENUM_MISMATCH,
            message=f"Unknown task kind '{task_kind}'",
        )
        super().__init__(task_kind, [error])


class ProviderError(DocGenError):
    """A generation backend failed; the dispatcher moves to the next one."""

    def __init__(self, provider: str, kind: ProviderErrorKind, message: str = ""):
        self.provider = provider
        self.kind = kind
        super().__init__(f"{provider} {kind.value}: {message}" if message else f"{provider} {kind.value}")


class ParseError(DocGenError):
    """Provider text could not be turned into the task's output shape."""


class CacheError(DocGenError):
    """A cache tier failed to read or write."""

    def __init__(self, tier: str, message: str):
        self.tier = tier
        super().__init__(f"{tier} cache: {message}")
