"""Tests for the FormInspector debugging views."""

from formstate.errors import ValidationErrors
from formstate.inspector import FormInspector
from formstate.state import FormState, FormStatus
from formstate.validation import REQUIRED_MESSAGE
from formstate.values import FieldValue


class TestSnapshots:

    def test_snapshot_reflects_state(self, handle):
        handle.set_field_value("name", "Ada")
        snapshot = FormInspector(handle).snapshot()

        assert snapshot.form_name == "ContactForm"
        assert snapshot.field_count == 4
        assert snapshot.field_values["name"] == FieldValue.text("Ada")
        assert snapshot.dirty is True
        assert snapshot.has_errors is False

    def test_compare_lists_changed_fields(self, handle):
        inspector = FormInspector(handle)
        before = inspector.snapshot()
        handle.set_field_value("name", "Ada")
        handle.add_array_item("tags", "math")

        diff = FormInspector.compare(before, inspector.snapshot())

        assert diff.has_changes
        assert diff.changed_names == ["name", "tags"]
        assert diff.changed_fields[0].old_value == FieldValue.text("")

    def test_compare_identical_snapshots(self, handle):
        inspector = FormInspector(handle)
        assert not FormInspector.compare(inspector.snapshot(), inspector.snapshot()).has_changes

    def test_export_is_json_ready(self, handle):
        handle.validate_form()
        data = FormInspector(handle).export()
        assert data["status"] == "invalid"
        assert data["errors"]["fieldErrors"]["name"] == REQUIRED_MESSAGE


class TestFieldStates:

    def test_field_states(self, handle):
        handle.validate_form()
        states = FormInspector(handle).field_states()

        assert list(states) == ["name", "email", "age", "tags"]
        assert states["email"].required is True
        assert states["email"].field_type == "email"
        assert states["name"].has_error
        assert not states["age"].has_error


class TestIntegrity:

    def test_reports_empty_required_fields(self, handle):
        check = FormInspector(handle).check_integrity()
        assert not check.is_valid
        assert "Required field 'name' is empty" in check.issues

    def test_filled_form_is_consistent(self, filled_handle):
        assert FormInspector(filled_handle).check_integrity().is_valid

    def test_reports_inconsistent_state(self, filled_handle):
        broken = FormState(
            values=filled_handle.state.values,
            errors=ValidationErrors({"ghost": "boo"}),
            submitting=True,
            status=FormStatus.VALID,
        )
        filled_handle._cell.set(broken)

        issues = FormInspector(filled_handle).check_integrity().issues

        assert "Error recorded for unknown field 'ghost'" in issues
        assert any(issue.startswith("Submitting flag") for issue in issues)
