"""
Validation findings.

A Diagnostic never aborts a validation pass; all findings for all files are
collected into a ValidationResult and returned together.
"""

from dataclasses import dataclass, field
from enum import Enum


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    file: str
    message: str
    location: str = ""
    suggestions: tuple[str, ...] = ()

    def __str__(self) -> str:
        text = f"{self.file} ({self.location}): {self.message}" if self.location else (
            f"{self.file}: {self.message}"
        )
        if self.suggestions:
            text += f" [Suggestion: {'; '.join(self.suggestions)}]"
        return text

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "file": self.file,
            "location": self.location,
            "message": self.message,
            "suggestions": list(self.suggestions),
        }


@dataclass
class ValidationResult:
    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)

    def add_error(
        self, file: str, location: str, message: str, suggestions: list[str] | None = None
    ) -> None:
        self.errors.append(
            Diagnostic(Severity.ERROR, file, message, location, tuple(suggestions or ()))
        )

    def add_warning(
        self, file: str, location: str, message: str, suggestions: list[str] | None = None
    ) -> None:
        self.warnings.append(
            Diagnostic(Severity.WARNING, file, message, location, tuple(suggestions or ()))
        )

    def merge(self, other: "ValidationResult") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict:
        return {
            "errors": [d.to_dict() for d in self.errors],
            "warnings": [d.to_dict() for d in self.warnings],
        }
