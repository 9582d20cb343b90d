"""Value objects returned by template, snippet and request validators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    message: str
    code: str
    type: Optional[str] = None
    field: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"message": self.message, "code": self.code}
        if self.type is not None:
            data["type"] = self.type
        if self.field is not None:
            data["field"] = self.field
        return data


@dataclass(slots=True)
class ValidationResult:
    """Errors make the result invalid, warnings never do."""

    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, message: str, code: str, *, type: str = "validation", field: str | None = None) -> None:
        self.errors.append(ValidationIssue(message=message, code=code, type=type, field=field))

    def add_warning(self, message: str, code: str, *, field: str | None = None) -> None:
        self.warnings.append(ValidationIssue(message=message, code=code, field=field))

    def extend(self, other: "ValidationResult") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def error_codes(self) -> list[str]:
        return [issue.code for issue in self.errors]

    def warning_codes(self) -> list[str]:
        return [issue.code for issue in self.warnings]

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
        }
