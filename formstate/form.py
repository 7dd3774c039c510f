"""The capability interface every concrete form type implements.

The engine is name-generic: it reads and writes fields by name through
``get_field`` / ``set_field`` and never inspects the concrete type. Concrete
forms implement those two methods once (by hand or from generated code) and
keep fully typed attributes for the code that knows the concrete type.

``RecordForm`` is a ready-made implementation for forms that are happy to
keep their values as FieldValues keyed by name.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, List, Optional, TypeVar

from formstate.errors import FieldUpdateError, ValidationErrors
from formstate.schema import FieldMetadata, FormSchema
from formstate.values import FieldValue

F = TypeVar("F", bound="Form")


class Form(ABC):
    """Abstract base class for form values managed by a FormHandle.

    Subclasses must provide field access by name, a default instance and the
    field metadata. Cross-field business rules go in ``validate``.

    Examples:
        >>> class Login(Form):
        ...     def __init__(self, username=""):
        ...         self.username = username
        ...     def get_field(self, name):
        ...         return FieldValue.text(self.username) if name == "username" else FieldValue.null()
        ...     def set_field(self, name, value):
        ...         self.username = value.as_text() or ""
        ...     @classmethod
        ...     def default(cls):
        ...         return cls()
        ...     @classmethod
        ...     def field_metadata(cls):
        ...         return [FieldMetadata("username", required=True)]
        >>> Login.schema().name
        'Login'
    """

    @abstractmethod
    def get_field(self, name: str) -> FieldValue:
        """Return the current value of ``name``; unknown names yield null."""

    @abstractmethod
    def set_field(self, name: str, value: FieldValue) -> None:
        """Write ``value`` into field ``name``.

        Raises:
            FieldUpdateError: If the field is unknown or rejects the value
        """

    @classmethod
    @abstractmethod
    def default(cls: Any) -> Any:
        """Return the default (pristine) instance."""

    @classmethod
    @abstractmethod
    def field_metadata(cls) -> List[FieldMetadata]:
        """Return metadata for every field, in display order."""

    def validate(self) -> ValidationErrors:
        """Cross-field business rules; the default accepts everything."""
        return ValidationErrors()

    @classmethod
    def form_name(cls) -> str:
        return cls.__name__

    @classmethod
    def schema(cls) -> FormSchema:
        return FormSchema(cls.form_name(), cls.field_metadata())

    def get_form_data(self) -> Dict[str, FieldValue]:
        return {
            metadata.name: self.get_field(metadata.name)
            for metadata in self.field_metadata()
        }

    def copy(self: F) -> F:
        """Independent snapshot of this form."""
        return copy.deepcopy(self)


class RecordForm(Form):
    """Form storing its values as FieldValues keyed by field name.

    Subclasses declare ``FIELDS``; each instance starts from the metadata
    defaults. ``set_field`` rejects unknown names and values whose kind does
    not fit the field type.

    Examples:
        >>> from formstate.schema import FieldType
        >>> class Tags(RecordForm):
        ...     FIELDS = [FieldMetadata("tags", FieldType.array_of(FieldType.text()))]
        >>> form = Tags.default()
        >>> form.get_field("tags")
        FieldValue.array(())
        >>> form.set_field("tags", FieldValue.text("oops"))
        Traceback (most recent call last):
        ...
        formstate.errors.FieldUpdateError: Field 'tags': Expected a value of type array, got text
    """

    FIELDS: ClassVar[List[FieldMetadata]] = []

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, FieldValue] = {
            metadata.name: metadata.initial_value() for metadata in self.FIELDS
        }
        for name, value in (values or {}).items():
            self.set_field(name, FieldValue.from_python(value))

    @classmethod
    def default(cls):
        return cls()

    @classmethod
    def field_metadata(cls) -> List[FieldMetadata]:
        return list(cls.FIELDS)

    def get_field(self, name: str) -> FieldValue:
        return self._values.get(name, FieldValue.null())

    def set_field(self, name: str, value: FieldValue) -> None:
        metadata = next((m for m in self.FIELDS if m.name == name), None)
        if metadata is None:
            raise FieldUpdateError(name, f"Unknown field '{name}'", code="unknown_field")
        if not metadata.field_type.accepts(value):
            raise FieldUpdateError(
                name,
                f"Expected a value of type {metadata.field_type.kind.value}, "
                f"got {value.kind.value}",
                code="invalid_type",
            )
        self._values[name] = value

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, RecordForm) or type(self) is not type(other):
            return NotImplemented
        return self._values == other._values

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        values = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"{type(self).__name__}({values})"


__all__ = [
    "Form",
    "RecordForm",
]
