"""Conformance fixtures and record validators for NRTMv4 publishers.

Run: pytest --pyargs nrtm4_validator.conformance
"""
from nrtm4_validator.conformance.loader import (
    FixtureCase,
    load_fixtures,
)
from nrtm4_validator.conformance.pytest_helpers import (
    assert_record_conforms,
    assert_record_fails,
)
from nrtm4_validator.conformance.validators import (
    RECORD_TYPES,
    ConformanceResult,
    ModelViolation,
    validate_record,
)

__all__ = [
    "RECORD_TYPES",
    "ConformanceResult",
    "FixtureCase",
    "ModelViolation",
    "assert_record_conforms",
    "assert_record_fails",
    "load_fixtures",
    "validate_record",
]
