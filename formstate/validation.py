"""Validation engine for the formstate engine.

This module provides:

- ``Validator``: declarative rules attached to FieldMetadata
- Pure built-in validator functions with the signature
  ``(FieldValue) -> Optional[str]`` returning an error message or None
- ``ValidatorRegistry``: an explicit, instance-scoped registry of named
  custom validators (there is no process-wide registry)
- ``ValidationEngine``: runs a schema's validators against a form and
  aggregates the results into ValidationErrors
- ``ConditionalValidator``: declarative cross-field rules for use inside a
  form's own ``validate()``

Validators never raise. A bad regular expression, an unregistered custom
validator or a custom validator that raises all become error messages.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from formstate.errors import ValidationErrors
from formstate.logging import get_logger
from formstate.values import FieldValue, ValueKind

if TYPE_CHECKING:
    from formstate.form import Form
    from formstate.schema import FieldMetadata, FormSchema


logger = get_logger(__name__)

ValidatorFn = Callable[[FieldValue], Optional[str]]
"""Type alias for validator functions.

Returns None when the value passes, otherwise the error message.
"""

REQUIRED_MESSAGE = "This field is required"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#][^\s]*$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
POSTAL_CODE_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _format_number(number: float) -> str:
    return f"{number:g}"


# Built-in validators


def required(value: FieldValue) -> Optional[str]:
    """Fail on blank text, null, or an empty array."""
    if value.kind == ValueKind.TEXT and not value.value.strip():
        return REQUIRED_MESSAGE
    if value.kind == ValueKind.NULL:
        return REQUIRED_MESSAGE
    if value.kind == ValueKind.ARRAY and not value.value:
        return REQUIRED_MESSAGE
    return None


def email(value: FieldValue) -> Optional[str]:
    text = value.as_text()
    if text is None:
        return "Email must be a string"
    if not EMAIL_PATTERN.match(text):
        return "Invalid email format"
    return None


def url(value: FieldValue) -> Optional[str]:
    text = value.as_text()
    if text is None:
        return "URL must be a string"
    if not URL_PATTERN.match(text):
        return "Invalid URL format"
    return None


def min_length(value: FieldValue, minimum: int) -> Optional[str]:
    """Lengths count Unicode code points, not bytes."""
    text = value.as_text()
    if text is None:
        return "Value must be a string"
    if len(text) < minimum:
        return f"Minimum length is {minimum} characters"
    return None


def max_length(value: FieldValue, maximum: int) -> Optional[str]:
    text = value.as_text()
    if text is None:
        return "Value must be a string"
    if len(text) > maximum:
        return f"Maximum length is {maximum} characters"
    return None


def min_value(value: FieldValue, minimum: float) -> Optional[str]:
    number = value.as_number()
    if number is None:
        return "Value must be a number"
    if number < minimum:
        return f"Value must be at least {_format_number(minimum)}"
    return None


def max_value(value: FieldValue, maximum: float) -> Optional[str]:
    number = value.as_number()
    if number is None:
        return "Value must be a number"
    if number > maximum:
        return f"Value must be at most {_format_number(maximum)}"
    return None


def value_range(value: FieldValue, minimum: float, maximum: float) -> Optional[str]:
    number = value.as_number()
    if number is None:
        return "Value must be a number"
    if number < minimum or number > maximum:
        return (
            f"Value must be between {_format_number(minimum)} "
            f"and {_format_number(maximum)}"
        )
    return None


def pattern(value: FieldValue, expression: str) -> Optional[str]:
    """Match ``expression`` anywhere in the text; anchor it for a full match."""
    text = value.as_text()
    if text is None:
        return "Value must be a string"
    try:
        compiled = re.compile(expression)
    except re.error:
        return "Invalid pattern"
    if compiled.search(text) is None:
        return "Value doesn't match required pattern"
    return None


def phone(value: FieldValue) -> Optional[str]:
    text = value.as_text()
    if text is None:
        return "Phone number must be a string"
    if not PHONE_PATTERN.match(text):
        return "Invalid phone number format"
    return None


def postal_code(value: FieldValue) -> Optional[str]:
    text = value.as_text()
    if text is None:
        return "Postal code must be a string"
    if not POSTAL_CODE_PATTERN.match(text):
        return "Invalid postal code format"
    return None


def credit_card(value: FieldValue) -> Optional[str]:
    """Check card number length and Luhn checksum; separators are ignored."""
    text = value.as_text()
    if text is None:
        return "Credit card number must be a string"
    digits = [int(char) for char in text if char.isdigit()]
    if len(digits) < 13 or len(digits) > 19:
        return "Invalid credit card number length"
    total = 0
    for position, digit in enumerate(reversed(digits)):
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    if total % 10 != 0:
        return "Invalid credit card number"
    return None


def date(value: FieldValue) -> Optional[str]:
    if value.kind == ValueKind.DATE:
        return None
    text = value.as_text()
    if text is None:
        return "Value must be a date"
    if not DATE_PATTERN.match(text) or value.as_date() is None:
        return "Invalid date format (YYYY-MM-DD)"
    return None


def positive(value: FieldValue) -> Optional[str]:
    number = value.as_number()
    if number is None:
        return "Value must be a number"
    if number <= 0:
        return "Value must be positive"
    return None


def negative(value: FieldValue) -> Optional[str]:
    number = value.as_number()
    if number is None:
        return "Value must be a number"
    if number >= 0:
        return "Value must be negative"
    return None


def integer(value: FieldValue) -> Optional[str]:
    number = value.as_number()
    if number is None:
        return "Value must be a number"
    if not number.is_integer():
        return "Value must be an integer"
    return None


def array_length(value: FieldValue, minimum: int, maximum: int) -> Optional[str]:
    items = value.as_array()
    if items is None:
        return "Value must be an array"
    if len(items) < minimum or len(items) > maximum:
        return f"Array must have between {minimum} and {maximum} items"
    return None


BUILTIN_NAMED_VALIDATORS: Dict[str, ValidatorFn] = {
    "phone": phone,
    "postal_code": postal_code,
    "credit_card": credit_card,
    "date": date,
    "positive": positive,
    "negative": negative,
    "integer": integer,
}


class ValidatorRegistry:
    """Named custom validators, scoped to the registry instance.

    A registry is built once and handed to the FormHandle (or ValidationEngine)
    that needs it. Tests can build isolated registries freely.

    Examples:
        >>> registry = ValidatorRegistry()
        >>> registry.register("even", lambda v: None if v.as_number() % 2 == 0 else "Must be even")
        >>> registry.run("even", FieldValue.integer(3))
        'Must be even'
        >>> registry.run("missing", FieldValue.integer(3))
        'Unknown validator: missing'
    """

    def __init__(self, validators: Optional[Dict[str, ValidatorFn]] = None):
        self._validators: Dict[str, ValidatorFn] = dict(validators or {})

    @classmethod
    def with_builtins(cls) -> "ValidatorRegistry":
        """Create a registry preloaded with phone, postal_code, credit_card and friends."""
        return cls(BUILTIN_NAMED_VALIDATORS)

    def register(self, name: str, validator: ValidatorFn) -> None:
        self._validators[name] = validator

    def unregister(self, name: str) -> None:
        self._validators.pop(name, None)

    def get(self, name: str) -> Optional[ValidatorFn]:
        return self._validators.get(name)

    def names(self) -> List[str]:
        return sorted(self._validators)

    def run(self, name: str, value: FieldValue) -> Optional[str]:
        """Run a named validator, turning every failure mode into a message."""
        validator = self._validators.get(name)
        if validator is None:
            logger.warning("unknown_validator", validator=name)
            return f"Unknown validator: {name}"
        try:
            return validator(value)
        except Exception as exc:
            logger.exception("custom_validator_raised", validator=name)
            return f"Validator '{name}' failed: {exc}"

    def __contains__(self, name: object) -> bool:
        return name in self._validators

    def __len__(self) -> int:
        return len(self._validators)


class ValidatorKind(str, Enum):
    """Built-in rule families a Validator can describe."""
    REQUIRED = "required"
    EMAIL = "email"
    URL = "url"
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"
    MIN = "min"
    MAX = "max"
    RANGE = "range"
    PATTERN = "pattern"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Validator:
    """A declarative validation rule attached to a field.

    Attributes:
        kind: Which rule to apply
        args: Rule arguments (length, bound, pattern or custom name)

    Examples:
        >>> Validator.min_length(3).check(FieldValue.text("ab"))
        'Minimum length is 3 characters'
        >>> Validator.pattern("[").check(FieldValue.text("ab"))
        'Invalid pattern'
    """
    kind: ValidatorKind
    args: Tuple[Any, ...] = ()

    @classmethod
    def required(cls) -> "Validator":
        return cls(ValidatorKind.REQUIRED)

    @classmethod
    def email(cls) -> "Validator":
        return cls(ValidatorKind.EMAIL)

    @classmethod
    def url(cls) -> "Validator":
        return cls(ValidatorKind.URL)

    @classmethod
    def min_length(cls, length: int) -> "Validator":
        return cls(ValidatorKind.MIN_LENGTH, (length,))

    @classmethod
    def max_length(cls, length: int) -> "Validator":
        return cls(ValidatorKind.MAX_LENGTH, (length,))

    @classmethod
    def min(cls, bound: float) -> "Validator":
        return cls(ValidatorKind.MIN, (float(bound),))

    @classmethod
    def max(cls, bound: float) -> "Validator":
        return cls(ValidatorKind.MAX, (float(bound),))

    @classmethod
    def range(cls, minimum: float, maximum: float) -> "Validator":
        return cls(ValidatorKind.RANGE, (float(minimum), float(maximum)))

    @classmethod
    def pattern(cls, expression: str) -> "Validator":
        return cls(ValidatorKind.PATTERN, (expression,))

    @classmethod
    def custom(cls, name: str) -> "Validator":
        return cls(ValidatorKind.CUSTOM, (name,))

    def check(
        self,
        value: FieldValue,
        registry: Optional[ValidatorRegistry] = None,
    ) -> Optional[str]:
        """Apply this rule to a value.

        Args:
            value: The field value to check
            registry: Where custom validators are looked up; without one every
                custom rule reports an unknown validator

        Returns:
            None if the value passes, otherwise the error message
        """
        if self.kind == ValidatorKind.REQUIRED:
            return required(value)
        if self.kind == ValidatorKind.EMAIL:
            return email(value)
        if self.kind == ValidatorKind.URL:
            return url(value)
        if self.kind == ValidatorKind.MIN_LENGTH:
            return min_length(value, self.args[0])
        if self.kind == ValidatorKind.MAX_LENGTH:
            return max_length(value, self.args[0])
        if self.kind == ValidatorKind.MIN:
            return min_value(value, self.args[0])
        if self.kind == ValidatorKind.MAX:
            return max_value(value, self.args[0])
        if self.kind == ValidatorKind.RANGE:
            return value_range(value, self.args[0], self.args[1])
        if self.kind == ValidatorKind.PATTERN:
            return pattern(value, self.args[0])
        name = self.args[0]
        if registry is None:
            return f"Unknown validator: {name}"
        return registry.run(name, value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {"kind": self.kind.value, "args": list(self.args)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Validator":
        """Create Validator from dict."""
        return cls(ValidatorKind(data["kind"]), tuple(data.get("args", ())))


class ValidationEngine:
    """Runs a form schema's validators and aggregates the results.

    For a single field the engine reports at most one message: the implicit
    required check runs first, then the attached validators in declaration
    order, and the first failure wins. Blank values of optional fields skip
    the attached validators, so an empty optional email field is valid.

    Attributes:
        schema: The schema whose metadata drives validation
        registry: Where custom validators are resolved

    Examples:
        >>> from formstate.schema import FieldMetadata, FieldType, FormSchema
        >>> schema = FormSchema("signup", [
        ...     FieldMetadata("email", FieldType.email(), required=True,
        ...                   validators=[Validator.email()]),
        ... ])
        >>> engine = ValidationEngine(schema)
        >>> engine.validate_value(schema.get_field("email"), FieldValue.text(""))
        'This field is required'
        >>> engine.validate_value(schema.get_field("email"), FieldValue.text("nope"))
        'Invalid email format'
    """

    def __init__(
        self,
        schema: "FormSchema",
        registry: Optional[ValidatorRegistry] = None,
    ) -> None:
        self.schema = schema
        self.registry = registry if registry is not None else ValidatorRegistry()

    def validate_value(self, metadata: "FieldMetadata", value: FieldValue) -> Optional[str]:
        """Validate one value against one field's metadata.

        Args:
            metadata: The field description
            value: The current value of the field

        Returns:
            The first failing message, or None when the value is valid
        """
        is_required = metadata.required or any(
            validator.kind == ValidatorKind.REQUIRED for validator in metadata.validators
        )
        if is_required:
            message = required(value)
            if message is not None:
                return message
        elif value.is_empty():
            return None

        for validator in metadata.validators:
            message = validator.check(value, self.registry)
            if message is not None:
                return message
        return None

    def validate_field(self, form: "Form", field_name: str) -> Optional[str]:
        """Validate a single field of ``form``; unknown names are valid."""
        metadata = self.schema.get_field(field_name)
        if metadata is None:
            return None
        return self.validate_value(metadata, form.get_field(field_name))

    def validate_values(self, form: "Form") -> ValidationErrors:
        """Run the per-field validators of every field in the schema."""
        errors = ValidationErrors()
        for metadata in self.schema.fields:
            message = self.validate_value(metadata, form.get_field(metadata.name))
            if message is not None:
                errors.add_field_error(metadata.name, message)
        return errors

    def validate_form(self, form: "Form") -> ValidationErrors:
        """Per-field validation merged with the form's own cross-field rules.

        Messages from ``form.validate()`` take precedence over per-field
        messages for the same field.
        """
        errors = self.validate_values(form)
        return errors.merge(form.validate())


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    ALL_OF = "all_of"
    ANY_OF = "any_of"


@dataclass(frozen=True)
class FieldCondition:
    """A predicate over one or more sibling fields.

    Examples:
        >>> cond = FieldCondition.equals("contact", FieldValue.text("email"))
        >>> cond.operator
        <ConditionOperator.EQUALS: 'equals'>
    """
    operator: ConditionOperator
    field: Optional[str] = None
    operand: Any = None
    conditions: Tuple["FieldCondition", ...] = ()

    @classmethod
    def equals(cls, field_name: str, value: FieldValue) -> "FieldCondition":
        return cls(ConditionOperator.EQUALS, field_name, value)

    @classmethod
    def not_equals(cls, field_name: str, value: FieldValue) -> "FieldCondition":
        return cls(ConditionOperator.NOT_EQUALS, field_name, value)

    @classmethod
    def contains(cls, field_name: str, text: str) -> "FieldCondition":
        return cls(ConditionOperator.CONTAINS, field_name, text)

    @classmethod
    def is_empty(cls, field_name: str) -> "FieldCondition":
        return cls(ConditionOperator.IS_EMPTY, field_name)

    @classmethod
    def is_not_empty(cls, field_name: str) -> "FieldCondition":
        return cls(ConditionOperator.IS_NOT_EMPTY, field_name)

    @classmethod
    def all_of(cls, *conditions: "FieldCondition") -> "FieldCondition":
        return cls(ConditionOperator.ALL_OF, conditions=tuple(conditions))

    @classmethod
    def any_of(cls, *conditions: "FieldCondition") -> "FieldCondition":
        return cls(ConditionOperator.ANY_OF, conditions=tuple(conditions))

    def evaluate(self, form: "Form") -> bool:
        if self.operator == ConditionOperator.ALL_OF:
            return all(condition.evaluate(form) for condition in self.conditions)
        if self.operator == ConditionOperator.ANY_OF:
            return any(condition.evaluate(form) for condition in self.conditions)

        current = form.get_field(self.field)
        if self.operator == ConditionOperator.EQUALS:
            return current == self.operand
        if self.operator == ConditionOperator.NOT_EQUALS:
            return current != self.operand
        if self.operator == ConditionOperator.CONTAINS:
            text = current.as_text()
            return text is not None and self.operand in text
        if self.operator == ConditionOperator.IS_EMPTY:
            return current.is_empty()
        return not current.is_empty()


@dataclass
class ConditionalRule:
    """Validators applied to ``target`` only while ``when`` holds.

    Attributes:
        target: Field the rule validates
        when: Condition over sibling fields; None means always
        validators: Rules to apply, in order
        message: Optional message replacing whatever the validator reported
    """
    target: str
    when: Optional[FieldCondition] = None
    validators: List[Validator] = field(default_factory=list)
    message: Optional[str] = None


class ConditionalValidator:
    """Evaluates ConditionalRules against a form.

    Intended for use inside ``Form.validate()`` to express dependency-driven
    rules such as "billing address is required unless same_as_shipping".

    Examples:
        >>> rules = ConditionalValidator([
        ...     ConditionalRule(
        ...         target="phone",
        ...         when=FieldCondition.equals("contact", FieldValue.text("phone")),
        ...         validators=[Validator.required()],
        ...     ),
        ... ])
    """

    def __init__(
        self,
        rules: Optional[List[ConditionalRule]] = None,
        registry: Optional[ValidatorRegistry] = None,
    ) -> None:
        self.rules: List[ConditionalRule] = list(rules or [])
        self.registry = registry

    def add_rule(self, rule: ConditionalRule) -> None:
        self.rules.append(rule)

    def validate(self, form: "Form") -> ValidationErrors:
        errors = ValidationErrors()
        for rule in self.rules:
            if errors.has_field_error(rule.target):
                continue
            if rule.when is not None and not rule.when.evaluate(form):
                continue
            value = form.get_field(rule.target)
            for validator in rule.validators:
                message = validator.check(value, self.registry)
                if message is not None:
                    errors.add_field_error(rule.target, rule.message or message)
                    break
        return errors


__all__ = [
    "ValidatorFn",
    "REQUIRED_MESSAGE",
    "required",
    "email",
    "url",
    "min_length",
    "max_length",
    "min_value",
    "max_value",
    "value_range",
    "pattern",
    "phone",
    "postal_code",
    "credit_card",
    "date",
    "positive",
    "negative",
    "integer",
    "array_length",
    "ValidatorRegistry",
    "ValidatorKind",
    "Validator",
    "ValidationEngine",
    "ConditionOperator",
    "FieldCondition",
    "ConditionalRule",
    "ConditionalValidator",
]
