"""Structured validation results returned by stage validators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stagekit.schemas.enums import ValidationCode


@dataclass(frozen=True)
class ValidationReason:
    """One machine-readable reason a stage rejected its data."""

    code: ValidationCode
    message: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a stage payload."""

    is_valid: bool
    reasons: tuple[ValidationReason, ...] = ()

    @classmethod
    def valid(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def invalid(cls, *reasons: ValidationReason) -> "ValidationResult":
        if not reasons:
            raise ValueError("invalid results must carry at least one reason")
        return cls(is_valid=False, reasons=tuple(reasons))

    @property
    def messages(self) -> list[str]:
        return [reason.message for reason in self.reasons]

    @property
    def codes(self) -> list[ValidationCode]:
        return [reason.code for reason in self.reasons]

    def __bool__(self) -> bool:
        return self.is_valid


def reason(code: ValidationCode, message: str, **context: Any) -> ValidationReason:
    """Build a validation reason with optional context values."""
    return ValidationReason(code=code, message=message, context=context)
