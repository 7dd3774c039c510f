"""Test suite for the formstate engine.

This package contains tests for:
- Field values, schemas and validators
- Form state lifecycle and ordered change notification
- FormHandle field, array and submission operations
- Persistence, telemetry events and the inspector
- End-to-end form scenarios
"""
