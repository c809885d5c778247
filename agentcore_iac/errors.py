from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class AgentCoreError(Exception):
    pass


class DocumentParseError(AgentCoreError):
    """Config document is not well-formed JSON/YAML."""

    def __init__(
        self,
        message: str,
        *,
        source: str = "",
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        self.source = source
        self.line = line
        self.column = column
        location = source or "<document>"
        if line is not None:
            location += f":{line}"
            if column is not None:
                location += f":{column}"
        super().__init__(f"{location}: {message}")


class SchemaError(AgentCoreError):
    """Well-formed document that does not match the stack config schema."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}" if field else message)


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    field: str
    message: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "field": self.field, "message": self.message}
        if self.value is not None:
            out["value"] = self.value
        return out

    def __str__(self) -> str:
        return f"[{self.code}] {self.field}: {self.message}"


class ValidationError(AgentCoreError):
    """Raised with every violation found in a stack configuration."""

    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = list(issues)
        super().__init__(
            "invalid stack configuration: " + "; ".join(str(i) for i in self.issues)
        )

    @property
    def codes(self) -> list[str]:
        return [i.code for i in self.issues]

    def issue(self, code: str) -> ValidationIssue | None:
        for i in self.issues:
            if i.code == code:
                return i
        return None


class TranslationError(AgentCoreError):
    """A resource-creation request failed while translating a stack."""

    def __init__(self, resource: str, cause: BaseException) -> None:
        self.resource = resource
        self.cause = cause
        super().__init__(f"failed to create {resource}: {cause}")
