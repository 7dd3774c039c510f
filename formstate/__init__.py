"""formstate: form state and validation engine.

formstate keeps the live state of a form: its field values, validation
errors, dirty and submitting flags and lifecycle status. It provides:
- Tagged field values and a declarative field schema
- Built-in and custom validators with one error message per field
- Array field operations with a single, explicit index policy
- An async submission workflow that never leaves a form stuck submitting
- Synchronous, ordered change notification
- Optional persistence and a telemetry event stream

Basic usage:
    >>> from formstate import FieldMetadata, FormHandle, RecordForm
    >>> class Contact(RecordForm):
    ...     FIELDS = [FieldMetadata("name", required=True)]
    >>> handle = FormHandle.create(Contact)
    >>> handle.validate_form().get_field_error("name")
    'This field is required'
"""

__version__ = "0.1.0"
__author__ = "formstate developers"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formstate.config import (
    FormConfig,
    PersistenceOptions,
    SubmissionMode,
    TelemetryOptions,
    ValidationMode,
)
from formstate.errors import (
    ConfigurationError,
    FieldError,
    FieldUpdateError,
    FormError,
    FormValidationError,
    PersistenceError,
    SerializationError,
    StateError,
    SubmissionError,
    UnknownFormError,
    ValidationErrors,
)
from formstate.form import Form, RecordForm
from formstate.handle import FormHandle
from formstate.persistence import FileStorage, FormPersistence, MemoryStorage
from formstate.schema import FieldMetadata, FieldType, FormSchema
from formstate.state import FormState, FormStatus, Subscription
from formstate.validation import Validator, ValidatorRegistry
from formstate.values import FieldValue

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "FormConfig",
    "PersistenceOptions",
    "SubmissionMode",
    "TelemetryOptions",
    "ValidationMode",
    "ConfigurationError",
    "FieldError",
    "FieldUpdateError",
    "FormError",
    "FormValidationError",
    "PersistenceError",
    "SerializationError",
    "StateError",
    "SubmissionError",
    "UnknownFormError",
    "ValidationErrors",
    "Form",
    "RecordForm",
    "FormHandle",
    "FileStorage",
    "FormPersistence",
    "MemoryStorage",
    "FieldMetadata",
    "FieldType",
    "FormSchema",
    "FormState",
    "FormStatus",
    "Subscription",
    "Validator",
    "ValidatorRegistry",
    "FieldValue",
]
