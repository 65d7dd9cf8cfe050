"""
Result Envelope

Every engine operation returns either Ok(value) or Err(kind, reason).

DESIGN DECISION: Callers never have to inspect exception types.
The Presentation Layer renders result.to_envelope(), which is always
{"success": True, "data": ...} or {"success": False, "error": "..."}.
"""

from enum import Enum
from typing import Any, Generic, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict
from pydantic_core import to_jsonable_python


T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure taxonomy shared by validators, coordinator and store adapters."""
    VALIDATION = "validation"  # Caller can fix the input
    NOT_FOUND = "not_found"    # Referenced id does not exist (or is not owned)
    CONFLICT = "conflict"      # Duplicate budget, or overage in strict mode
    STORE = "store"            # Persistence failure


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    return to_jsonable_python(value)


class Ok(BaseModel, Generic[T]):
    """Successful outcome carrying a payload."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    value: T
    success: Literal[True] = True

    def to_envelope(self) -> dict:
        return {"success": True, "data": _jsonable(self.value)}


class Err(BaseModel):
    """
    Failed outcome.

    `reason` is short and human-readable. It never carries stack traces
    or internal identifiers.
    """
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    reason: str
    success: Literal[False] = False

    def to_envelope(self) -> dict:
        return {"success": False, "error": self.reason}


# Untyped alias. Annotate payloads as Union[Ok[X], Err]; pydantic returns
# Ok itself for Ok[T], so a TypeVar alias would not be subscriptable.
Result = Union[Ok, Err]
