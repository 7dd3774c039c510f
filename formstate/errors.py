"""Error types for the formstate engine.

This module defines the two kinds of failure the engine deals with:

- Validation results, which are data: ``FieldError`` for one field and the
  aggregate ``ValidationErrors`` container that lives inside every FormState.
- Operation failures, which are exceptions: the closed ``FormError``
  hierarchy raised by FormHandle, persistence helpers and configuration.

Validator functions never raise. Their messages are collected into
ValidationErrors, which is the only validation artifact visible outside the
engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FieldError:
    """A single field failure.

    Attributes:
        field: Name of the field the message belongs to
        message: Human-readable error description
        code: Optional machine-readable code (e.g., "unknown_field")

    Examples:
        >>> err = FieldError(field="email", message="Invalid email format")
        >>> str(err)
        'email: Invalid email format'
    """
    field: str
    message: str
    code: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "field": self.field,
            "message": self.message,
        }
        if self.code is not None:
            result["code"] = self.code
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldError":
        """Create FieldError from dict."""
        return cls(
            field=data["field"],
            message=data["message"],
            code=data.get("code"),
        )


@dataclass
class ValidationErrors:
    """Aggregate result of a validation pass.

    Holds at most one message per field plus an ordered list of form-level
    messages. Registering a second message for a field replaces the first.

    Attributes:
        field_errors: Field name -> message
        form_errors: Form-level messages in the order they were added

    Examples:
        >>> errors = ValidationErrors()
        >>> errors.is_empty()
        True
        >>> errors.add_field_error("name", "This field is required")
        >>> errors.add_field_error("name", "Too short")
        >>> errors.get_field_error("name")
        'Too short'
    """
    field_errors: Dict[str, str] = field(default_factory=dict)
    form_errors: List[str] = field(default_factory=list)

    def add_field_error(self, field_name: str, message: str) -> None:
        self.field_errors[field_name] = message

    def add_form_error(self, message: str) -> None:
        self.form_errors.append(message)

    def remove_field_error(self, field_name: str) -> None:
        self.field_errors.pop(field_name, None)

    def get_field_error(self, field_name: str) -> Optional[str]:
        return self.field_errors.get(field_name)

    def has_field_error(self, field_name: str) -> bool:
        return field_name in self.field_errors

    def is_empty(self) -> bool:
        return not self.field_errors and not self.form_errors

    def has_errors(self) -> bool:
        return not self.is_empty()

    def merge(self, other: "ValidationErrors") -> "ValidationErrors":
        """Combine two error sets into a new one.

        Field messages from ``other`` overwrite same-named fields in ``self``;
        form-level messages are concatenated, ``self`` first. Neither input is
        modified.

        Args:
            other: The error set whose field messages take precedence

        Returns:
            A new ValidationErrors instance
        """
        merged = self.copy()
        merged.field_errors.update(other.field_errors)
        merged.form_errors.extend(other.form_errors)
        return merged

    def copy(self) -> "ValidationErrors":
        return ValidationErrors(
            field_errors=dict(self.field_errors),
            form_errors=list(self.form_errors),
        )

    def to_field_errors(self) -> List[FieldError]:
        return [
            FieldError(field=name, message=message)
            for name, message in self.field_errors.items()
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "fieldErrors": dict(self.field_errors),
            "formErrors": list(self.form_errors),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationErrors":
        """Create ValidationErrors from dict."""
        return cls(
            field_errors=dict(data.get("fieldErrors", {})),
            form_errors=list(data.get("formErrors", [])),
        )

    def __len__(self) -> int:
        return len(self.field_errors) + len(self.form_errors)

    def __str__(self) -> str:
        lines: List[str] = []
        if self.form_errors:
            lines.append("Form errors:")
            lines.extend(f"  - {message}" for message in self.form_errors)
        if self.field_errors:
            lines.append("Field errors:")
            lines.extend(
                f"  {name}: {message}" for name, message in self.field_errors.items()
            )
        return "\n".join(lines)


class FormErrorKind(str, Enum):
    """Closed set of operation failure categories."""
    FIELD = "field"
    VALIDATION = "validation"
    SERIALIZATION = "serialization"
    SUBMISSION = "submission"
    STATE = "state"
    PERSISTENCE = "persistence"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class FormError(Exception):
    """Base class for every failure raised by the formstate engine.

    Attributes:
        kind: Category of the failure
        message: Human-readable error message
    """

    kind: FormErrorKind = FormErrorKind.UNKNOWN

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {"kind": self.kind.value, "message": self.message}


class FieldUpdateError(FormError):
    """A field could not be read or written.

    Raised for unknown field names, fields of the wrong type, and values the
    form's setter rejects.

    Attributes:
        field: Name of the offending field
        code: Optional machine-readable code
    """

    kind = FormErrorKind.FIELD

    def __init__(self, field: str, message: str, code: Optional[str] = None):
        self.field = field
        self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        return f"Field '{self.field}': {self.message}"

    def as_field_error(self) -> FieldError:
        return FieldError(field=self.field, message=self.message, code=self.code)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["field"] = self.field
        if self.code is not None:
            result["code"] = self.code
        return result


class FormValidationError(FormError):
    """Validation failed; carries the errors that triggered the failure."""

    kind = FormErrorKind.VALIDATION

    def __init__(self, errors: ValidationErrors, message: str = "Form validation failed"):
        self.errors = errors
        super().__init__(message)

    @property
    def field_errors(self) -> List[FieldError]:
        return self.errors.to_field_errors()

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["errors"] = self.errors.to_dict()
        return result


class SerializationError(FormError):
    """A value or form could not be encoded or decoded."""

    kind = FormErrorKind.SERIALIZATION

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.field is not None:
            result["field"] = self.field
        return result


class SubmissionError(FormError):
    """The submission handler reported a failure.

    Attributes:
        status_code: Optional status code reported by the handler
        response: Optional raw response body
    """

    kind = FormErrorKind.SUBMISSION

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[str] = None,
    ):
        self.status_code = status_code
        self.response = response
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"Submission error ({self.status_code}): {self.message}"
        return f"Submission error: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.status_code is not None:
            result["statusCode"] = self.status_code
        if self.response is not None:
            result["response"] = self.response
        return result


class StateError(FormError):
    """An operation is not allowed on the current form state.

    Attributes:
        operation: Name of the operation that was rejected
    """

    kind = FormErrorKind.STATE

    def __init__(self, message: str, operation: str):
        self.operation = operation
        super().__init__(message)

    def __str__(self) -> str:
        return f"State error in '{self.operation}': {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["operation"] = self.operation
        return result


class PersistenceError(FormError):
    """Storage was unavailable or rejected an operation."""

    kind = FormErrorKind.PERSISTENCE

    def __init__(self, message: str, storage_type: str):
        self.storage_type = storage_type
        super().__init__(message)

    def __str__(self) -> str:
        return f"Persistence error ({self.storage_type}): {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["storageType"] = self.storage_type
        return result


class ConfigurationError(FormError):
    """A schema or handle configuration is invalid."""

    kind = FormErrorKind.CONFIGURATION

    def __init__(self, message: str, component: str):
        self.component = component
        super().__init__(message)

    def __str__(self) -> str:
        return f"Configuration error in {self.component}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["component"] = self.component
        return result


class UnknownFormError(FormError):
    """Unexpected failure wrapped so callers only ever see FormError."""

    kind = FormErrorKind.UNKNOWN

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.source is not None:
            result["source"] = self.source
        return result


__all__ = [
    "FieldError",
    "ValidationErrors",
    "FormErrorKind",
    "FormError",
    "FieldUpdateError",
    "FormValidationError",
    "SerializationError",
    "SubmissionError",
    "StateError",
    "PersistenceError",
    "ConfigurationError",
    "UnknownFormError",
]
