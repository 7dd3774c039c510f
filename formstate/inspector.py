"""Read-only debugging views over a live FormHandle.

The inspector never mutates the handle. Snapshots are independent of later
edits, so two of them can be compared to see what a sequence of operations
changed.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from formstate.handle import FormHandle
from formstate.state import FormStatus
from formstate.values import FieldValue


@dataclass(frozen=True)
class FormSnapshot:
    """Point-in-time copy of a form's values and flags.

    Attributes:
        form_name: Schema name
        ts: UTC time the snapshot was taken
        field_values: Value of every schema field
        dirty: Dirty flag at snapshot time
        submitting: Submitting flag at snapshot time
        has_errors: Whether any field or form error was recorded
        status: Lifecycle status
        version: State version the snapshot was taken from
    """
    form_name: str
    ts: datetime
    field_values: Dict[str, FieldValue]
    dirty: bool
    submitting: bool
    has_errors: bool
    status: FormStatus
    version: int = 0

    @property
    def field_count(self) -> int:
        return len(self.field_values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formName": self.form_name,
            "ts": self.ts.isoformat(),
            "fieldValues": {name: value.to_json() for name, value in self.field_values.items()},
            "dirty": self.dirty,
            "submitting": self.submitting,
            "hasErrors": self.has_errors,
            "status": self.status.value,
            "version": self.version,
        }


@dataclass(frozen=True)
class FieldState:
    """Value, type and error of one field."""
    name: str
    field_type: str
    required: bool
    value: FieldValue
    error: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class FieldChange:
    """One field whose value differs between two snapshots.

    ``old_value`` is None when the field only exists in the newer snapshot,
    ``new_value`` is None when it only exists in the older one.
    """
    field_name: str
    old_value: Optional[FieldValue]
    new_value: Optional[FieldValue]


@dataclass(frozen=True)
class SnapshotDiff:
    changed_fields: List[FieldChange] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_fields)

    @property
    def changed_names(self) -> List[str]:
        return [change.field_name for change in self.changed_fields]


@dataclass(frozen=True)
class IntegrityCheck:
    issues: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues


class FormInspector:
    """Debugging views over one FormHandle.

    Examples:
        >>> from formstate.form import RecordForm
        >>> from formstate.schema import FieldMetadata
        >>> class Note(RecordForm):
        ...     FIELDS = [FieldMetadata("title", required=True)]
        >>> handle = FormHandle.create(Note)
        >>> inspector = FormInspector(handle)
        >>> before = inspector.snapshot()
        >>> handle.set_field_value("title", "Groceries")
        >>> FormInspector.compare(before, inspector.snapshot()).changed_names
        ['title']
    """

    def __init__(self, handle: FormHandle):
        self.handle = handle

    def snapshot(self) -> FormSnapshot:
        state = self.handle.state
        return FormSnapshot(
            form_name=self.handle.schema.name,
            ts=datetime.now(timezone.utc),
            field_values={
                name: state.values.get_field(name) for name in self.handle.schema.field_names
            },
            dirty=state.dirty,
            submitting=state.submitting,
            has_errors=state.errors.has_errors(),
            status=state.status,
            version=state.version,
        )

    def field_states(self) -> Dict[str, FieldState]:
        """Per-field view keyed by field name, in schema order."""
        state = self.handle.state
        return {
            metadata.name: FieldState(
                name=metadata.name,
                field_type=metadata.field_type.kind.value,
                required=metadata.required,
                value=state.values.get_field(metadata.name),
                error=state.errors.get_field_error(metadata.name),
            )
            for metadata in self.handle.schema
        }

    @staticmethod
    def compare(before: FormSnapshot, after: FormSnapshot) -> SnapshotDiff:
        """List the fields whose values differ, in ``before`` order."""
        changes: List[FieldChange] = []
        for name, old in before.field_values.items():
            new = after.field_values.get(name)
            if new is None or old != new:
                changes.append(FieldChange(name, old, new))
        for name, new in after.field_values.items():
            if name not in before.field_values:
                changes.append(FieldChange(name, None, new))
        return SnapshotDiff(changes)

    def check_integrity(self) -> IntegrityCheck:
        """Look for states that validation alone would not reveal.

        Reports empty required fields, errors recorded against names the
        schema does not know, and a submitting flag that disagrees with the
        lifecycle status.
        """
        state = self.handle.state
        schema = self.handle.schema
        issues: List[str] = []

        for name in schema.required_fields:
            if state.values.get_field(name).is_empty():
                issues.append(f"Required field '{name}' is empty")

        for name in state.errors.field_errors:
            if name not in schema:
                issues.append(f"Error recorded for unknown field '{name}'")

        if state.submitting != (state.status == FormStatus.SUBMITTING):
            issues.append(
                f"Submitting flag is {state.submitting} but status is '{state.status.value}'"
            )

        return IntegrityCheck(issues)

    def export(self) -> Dict[str, Any]:
        """Snapshot plus the current error set, as plain JSON-ready data."""
        data = self.snapshot().to_dict()
        data["errors"] = self.handle.state.errors.to_dict()
        return data


__all__ = [
    "FormSnapshot",
    "FieldState",
    "FieldChange",
    "SnapshotDiff",
    "IntegrityCheck",
    "FormInspector",
]
