from __future__ import annotations

from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base error for the mapping engine."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}')"


class ConfigurationError(EngineError, ValueError):
    """Raised when an authored configuration is rejected (e.g. a self-relationship)."""


class SchemaImportError(EngineError):
    """Base for failures converting an imported schema document."""


class UnreadableSchemaError(SchemaImportError):
    """The imported file is not valid JSON/YAML or not a mapping."""


class UnsupportedDialectError(SchemaImportError):
    """The document was parsed but its dialect cannot be converted."""

    def __init__(self, message: str, dialect: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.dialect = dialect
        exception_details = details or {}
        if dialect:
            exception_details["dialect"] = dialect
        super().__init__(message, exception_details)


class AmbiguousOriginError(EngineError):
    """Several mappings share a target and the record origin is unknown."""


class TransformationError(EngineError):
    """A step cannot apply to the current value. Caught by the pipeline."""
