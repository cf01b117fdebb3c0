from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from resumefit.errors import ValidationIssue

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class Validated(Generic[M]):
    value: Optional[M] = None
    errors: List[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.value is not None and not self.errors


def _field_path(loc: tuple) -> str:
    return ".".join(str(p) for p in loc) or "(root)"


def validate(model: Type[M], payload: Any) -> Validated[M]:
    """
    The one validation primitive for agent payloads.
    Never raises for bad input; errors come back as field-level issues.
    """
    if isinstance(payload, model):
        payload = payload.model_dump()
    try:
        return Validated(value=model.model_validate(payload))
    except ValidationError as exc:
        issues = [ValidationIssue(field=_field_path(err["loc"]), message=err["msg"]) for err in exc.errors()]
        return Validated(errors=issues)
