"""Reusable test helpers for NRTMv4 record conformance testing.

Server implementers can import these to check the records they publish:
    from nrtm4_validator.conformance.pytest_helpers import (
        assert_record_conforms,
        assert_record_fails,
    )
"""
from __future__ import annotations

from typing import Any

from nrtm4_validator.conformance.validators import (
    ConformanceResult,
    validate_record,
)


def assert_record_conforms(payload: Any, record_type: str) -> ConformanceResult:
    """Assert a record conforms to its document model."""
    result = validate_record(record_type, payload)
    if not result.valid:
        violations = [
            f"  {mv.field}: {mv.message}" for mv in result.model_violations
        ]
        raise AssertionError(
            f"Record for {record_type!r} failed conformance:\n"
            + "\n".join(violations)
        )
    return result


def assert_record_fails(payload: Any, record_type: str) -> ConformanceResult:
    """Assert a record DOES NOT conform (expected invalid)."""
    result = validate_record(record_type, payload)
    if result.valid:
        raise AssertionError(
            f"Record for {record_type!r} was expected to fail but passed conformance."
        )
    return result
