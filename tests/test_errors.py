"""Unit tests for the error taxonomy."""

from formstate.errors import (
    ConfigurationError,
    FieldUpdateError,
    FormError,
    FormErrorKind,
    FormValidationError,
    PersistenceError,
    StateError,
    SubmissionError,
    ValidationErrors,
)


class TestValidationErrors:

    def test_one_message_per_field(self):
        errors = ValidationErrors()
        errors.add_field_error("name", "first")
        errors.add_field_error("name", "second")
        assert errors.field_errors == {"name": "second"}
        assert len(errors) == 1

    def test_form_errors_keep_order(self):
        errors = ValidationErrors()
        errors.add_form_error("one")
        errors.add_form_error("two")
        assert errors.form_errors == ["one", "two"]
        assert errors.has_errors()

    def test_copy_is_independent(self):
        errors = ValidationErrors({"a": "x"})
        clone = errors.copy()
        clone.add_field_error("b", "y")
        assert not errors.has_field_error("b")

    def test_dict_round_trip(self):
        errors = ValidationErrors({"a": "x"}, ["oops"])
        assert ValidationErrors.from_dict(errors.to_dict()) == errors

    def test_str_lists_everything(self):
        text = str(ValidationErrors({"email": "Invalid email format"}, ["Server down"]))
        assert "Server down" in text
        assert "email: Invalid email format" in text


class TestFormErrors:
    """Every operation failure is a FormError with a kind."""

    def test_kinds(self):
        cases = [
            (FieldUpdateError("f", "bad"), FormErrorKind.FIELD),
            (FormValidationError(ValidationErrors()), FormErrorKind.VALIDATION),
            (SubmissionError("down"), FormErrorKind.SUBMISSION),
            (StateError("busy", operation="submit"), FormErrorKind.STATE),
            (PersistenceError("gone", storage_type="memory"), FormErrorKind.PERSISTENCE),
            (ConfigurationError("bad", component="schema"), FormErrorKind.CONFIGURATION),
        ]
        for error, kind in cases:
            assert isinstance(error, FormError)
            assert error.kind == kind

    def test_field_update_error_details(self):
        error = FieldUpdateError("age", "Expected integer", code="invalid_type")
        assert str(error) == "Field 'age': Expected integer"
        assert error.as_field_error().code == "invalid_type"
        assert error.to_dict() == {
            "kind": "field",
            "message": "Expected integer",
            "field": "age",
            "code": "invalid_type",
        }

    def test_validation_error_carries_errors(self):
        errors = ValidationErrors({"name": "This field is required"})
        error = FormValidationError(errors)
        assert [e.field for e in error.field_errors] == ["name"]
        assert error.to_dict()["errors"]["fieldErrors"] == {"name": "This field is required"}

    def test_submission_error_status_code(self):
        error = SubmissionError("Bad gateway", status_code=502)
        assert str(error) == "Submission error (502): Bad gateway"
        assert error.to_dict()["statusCode"] == 502
