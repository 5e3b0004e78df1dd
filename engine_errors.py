"""Error types raised by the screen/grid generation engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


Issue = Dict[str, Any]


@dataclass
class EngineError(Exception):
    code: str
    message: str
    field: str | None = None
    detail: dict | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (field={self.field})" if self.field else base

    def as_issue(self) -> Issue:
        return {"code": self.code, "message": self.message, "path": self.field, "detail": self.detail}


# Configuration errors: fatal to the operation that raised them.


@dataclass
class ConfigurationError(EngineError):
    pass


class UnsupportedFieldTypeError(ConfigurationError):
    pass


class FieldNotFoundError(ConfigurationError):
    pass


class MissingMetadataError(ConfigurationError):
    pass


class InvalidOverrideError(ConfigurationError):
    pass


class RegistryLookupError(ConfigurationError):
    pass


class RegistryTypeError(ConfigurationError):
    pass


class DataProviderError(ConfigurationError):
    pass


class EntityTypeNotFoundError(ConfigurationError):
    pass


class DefinitionError(ConfigurationError):
    pass


class IncompleteBindingError(ConfigurationError):
    pass


# Runtime degradation: logged and handled by a local fallback.


@dataclass
class BindingError(EngineError):
    pass


class ConversionError(BindingError):
    pass


@dataclass
class BindingValidationError(EngineError):
    issues: List[Issue] = field(default_factory=list)

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        paths = ", ".join(str(issue.get("path")) for issue in self.issues)
        return f"{self.code}: {self.message} [{paths}]"
