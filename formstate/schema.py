"""Declarative form schemas.

A FormSchema is an ordered list of FieldMetadata, one per field, looked up
by name. Metadata describes the field type, whether the field is required,
its validators, the sibling fields it depends on, its default value and any
free-form attributes a renderer may want.

Dependencies are informational only. The engine never derives requiredness
from them; dependency-driven rules belong in the form's own ``validate()``
(see ``formstate.validation.ConditionalValidator``).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from formstate.errors import ConfigurationError
from formstate.validation import Validator
from formstate.values import FieldValue, ValueKind


class FieldKind(str, Enum):
    """Field type tags understood by the engine and renderers."""
    TEXT = "text"
    EMAIL = "email"
    PASSWORD = "password"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    DATE = "date"
    DATETIME = "datetime"
    FILE = "file"
    RICH_TEXT = "rich_text"
    MARKDOWN = "markdown"
    CODE = "code"
    ARRAY = "array"
    NESTED = "nested"


TEXT_LIKE_KINDS = frozenset({
    FieldKind.TEXT,
    FieldKind.EMAIL,
    FieldKind.PASSWORD,
    FieldKind.SELECT,
    FieldKind.RICH_TEXT,
    FieldKind.MARKDOWN,
    FieldKind.CODE,
})

# Value kinds each field kind accepts, besides NULL which every field accepts
ACCEPTED_VALUE_KINDS: Dict[FieldKind, Tuple[ValueKind, ...]] = {
    FieldKind.NUMBER: (ValueKind.NUMBER, ValueKind.INTEGER),
    FieldKind.INTEGER: (ValueKind.INTEGER,),
    FieldKind.BOOLEAN: (ValueKind.BOOLEAN,),
    FieldKind.MULTI_SELECT: (ValueKind.ARRAY,),
    FieldKind.DATE: (ValueKind.DATE, ValueKind.TEXT),
    FieldKind.DATETIME: (ValueKind.DATETIME, ValueKind.TEXT),
    FieldKind.FILE: (ValueKind.FILE,),
    FieldKind.ARRAY: (ValueKind.ARRAY,),
    FieldKind.NESTED: (ValueKind.OBJECT,),
}


@dataclass(frozen=True)
class SelectOption:
    value: str
    label: str
    disabled: bool = False


@dataclass(frozen=True)
class FieldType:
    """The type of a field, possibly carrying nested structure.

    Attributes:
        kind: Base field kind
        item_type: Element type for ARRAY fields
        nested: Nested form name for NESTED fields
        options: Choices for SELECT / MULTI_SELECT fields
        minimum: Lower bound hint for numeric fields
        maximum: Upper bound hint for numeric fields
        step: Step hint for numeric fields

    Examples:
        >>> tags = FieldType.array_of(FieldType.text())
        >>> tags.is_array
        True
        >>> tags.accepts(FieldValue.array([FieldValue.text("a")]))
        True
        >>> tags.accepts(FieldValue.text("a"))
        False
    """
    kind: FieldKind
    item_type: Optional["FieldType"] = None
    nested: Optional[str] = None
    options: Tuple[SelectOption, ...] = ()
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    step: Optional[float] = None

    @classmethod
    def text(cls) -> "FieldType":
        return cls(FieldKind.TEXT)

    @classmethod
    def email(cls) -> "FieldType":
        return cls(FieldKind.EMAIL)

    @classmethod
    def password(cls) -> "FieldType":
        return cls(FieldKind.PASSWORD)

    @classmethod
    def number(
        cls,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
        step: Optional[float] = None,
    ) -> "FieldType":
        return cls(FieldKind.NUMBER, minimum=minimum, maximum=maximum, step=step)

    @classmethod
    def integer(cls) -> "FieldType":
        return cls(FieldKind.INTEGER)

    @classmethod
    def boolean(cls) -> "FieldType":
        return cls(FieldKind.BOOLEAN)

    @classmethod
    def date(cls) -> "FieldType":
        return cls(FieldKind.DATE)

    @classmethod
    def datetime(cls) -> "FieldType":
        return cls(FieldKind.DATETIME)

    @classmethod
    def file(cls) -> "FieldType":
        return cls(FieldKind.FILE)

    @classmethod
    def select(cls, options: List[SelectOption], multiple: bool = False) -> "FieldType":
        kind = FieldKind.MULTI_SELECT if multiple else FieldKind.SELECT
        return cls(kind, options=tuple(options))

    @classmethod
    def array_of(cls, item_type: "FieldType") -> "FieldType":
        return cls(FieldKind.ARRAY, item_type=item_type)

    @classmethod
    def nested_form(cls, name: str) -> "FieldType":
        return cls(FieldKind.NESTED, nested=name)

    @property
    def is_array(self) -> bool:
        return self.kind in (FieldKind.ARRAY, FieldKind.MULTI_SELECT)

    def accepts(self, value: FieldValue) -> bool:
        """Whether ``value`` has a kind this field can hold.

        Null is accepted by every field. Array element kinds are checked
        against ``item_type`` when one is declared.
        """
        if value.is_null():
            return True
        if self.kind in TEXT_LIKE_KINDS:
            return value.kind == ValueKind.TEXT
        if value.kind not in ACCEPTED_VALUE_KINDS[self.kind]:
            return False
        if self.kind == FieldKind.ARRAY and self.item_type is not None:
            return all(self.item_type.accepts(item) for item in value.value)
        return True

    def default_value(self) -> FieldValue:
        """The empty value for this type."""
        if self.kind in TEXT_LIKE_KINDS:
            return FieldValue.text("")
        if self.kind == FieldKind.BOOLEAN:
            return FieldValue.boolean(False)
        if self.is_array:
            return FieldValue.array()
        if self.kind == FieldKind.NESTED:
            return FieldValue.object()
        return FieldValue.null()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {"kind": self.kind.value}
        if self.item_type is not None:
            result["itemType"] = self.item_type.to_dict()
        if self.nested is not None:
            result["nested"] = self.nested
        if self.options:
            result["options"] = [
                {"value": o.value, "label": o.label, "disabled": o.disabled}
                for o in self.options
            ]
        for key, bound in (("minimum", self.minimum), ("maximum", self.maximum), ("step", self.step)):
            if bound is not None:
                result[key] = bound
        return result


@dataclass
class FieldMetadata:
    """Description of one field in a form schema.

    Attributes:
        name: Field name, unique within its schema
        field_type: The field's type
        required: Whether an empty value is a validation error
        validators: Rules applied in order during validation
        dependencies: Names of sibling fields this field's behaviour depends on
        default_value: Value used by default-constructed forms
        attributes: Free-form renderer hints (label, placeholder, ...)
    """
    name: str
    field_type: FieldType = field(default_factory=FieldType.text)
    required: bool = False
    validators: List[Validator] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    default_value: Optional[FieldValue] = None
    attributes: Dict[str, str] = field(default_factory=dict)

    def initial_value(self) -> FieldValue:
        if self.default_value is not None:
            return self.default_value
        return self.field_type.default_value()


@dataclass(frozen=True)
class FormStats:
    total_fields: int
    required_fields: int
    optional_fields: int


class FormSchema:
    """Named, ordered collection of field metadata.

    Attributes:
        name: Form name, used for telemetry and persistence keys
        fields: Field metadata in declaration order

    Raises:
        ConfigurationError: If two fields share a name

    Examples:
        >>> schema = FormSchema("contact", [
        ...     FieldMetadata("name", required=True),
        ...     FieldMetadata("tags", FieldType.array_of(FieldType.text())),
        ... ])
        >>> schema.get_field("name").required
        True
        >>> schema.get_field("missing") is None
        True
        >>> schema.field_names
        ['name', 'tags']
    """

    def __init__(self, name: str, fields: Optional[List[FieldMetadata]] = None):
        self.name = name
        self.fields: List[FieldMetadata] = list(fields or [])
        self._by_name: Dict[str, FieldMetadata] = {}
        for metadata in self.fields:
            if metadata.name in self._by_name:
                raise ConfigurationError(
                    f"Duplicate field name '{metadata.name}'",
                    component=f"schema:{name}",
                )
            self._by_name[metadata.name] = metadata

    def get_field(self, name: str) -> Optional[FieldMetadata]:
        return self._by_name.get(name)

    @property
    def field_names(self) -> List[str]:
        return [metadata.name for metadata in self.fields]

    @property
    def required_fields(self) -> List[str]:
        return [metadata.name for metadata in self.fields if metadata.required]

    def stats(self) -> FormStats:
        required_count = len(self.required_fields)
        return FormStats(
            total_fields=len(self.fields),
            required_fields=required_count,
            optional_fields=len(self.fields) - required_count,
        )

    def to_json_schema(self) -> Dict[str, Any]:
        """Draft 7 JSON Schema describing a persisted form payload.

        The payload is an object mapping every field name to the tagged
        encoding produced by ``FieldValue.to_json``. Unknown field names are
        rejected.
        """
        properties: Dict[str, Any] = {
            metadata.name: {"$ref": "#/definitions/fieldValue"}
            for metadata in self.fields
        }
        return {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "title": self.name,
            "type": "object",
            "properties": properties,
            "additionalProperties": False,
            "definitions": {
                "fieldValue": {
                    "type": "object",
                    "properties": {
                        "kind": {"enum": [kind.value for kind in ValueKind]},
                        "value": {},
                    },
                    "required": ["kind"],
                },
            },
        }

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self):
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __repr__(self) -> str:
        return f"FormSchema(name={self.name!r}, fields={self.field_names!r})"


__all__ = [
    "FieldKind",
    "SelectOption",
    "FieldType",
    "FieldMetadata",
    "FormStats",
    "FormSchema",
]
