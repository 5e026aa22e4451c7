"""Record-level conformance validation for NRTMv4 documents.

Validates a single decoded record (a notification file body, or one header
or entry record of a snapshot/delta file) against its document model. The
payload is re-serialised to JSON first so the same strict JSON rules apply
as when parsing a retrieved file.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from nrtm4_validator.documents import (
    DELTA_ENTRY_ADAPTER,
    SNAPSHOT_ENTRY_ADAPTER,
    DeltaHeader,
    SnapshotHeader,
    UpdateNotificationFile,
)


@dataclass(frozen=True)
class ModelViolation:
    """A violation detected by Pydantic model validation."""

    field: str
    message: str
    violation_type: str
    input_value: object


@dataclass(frozen=True)
class ConformanceResult:
    """Result of record conformance validation."""

    valid: bool
    model_violations: Tuple[ModelViolation, ...]
    record_type: str


# Record type to validator mapping
_RECORD_TYPE_TO_ADAPTER: Dict[str, TypeAdapter[Any]] = {
    "UpdateNotificationFile": TypeAdapter(UpdateNotificationFile),
    "SnapshotHeader": TypeAdapter(SnapshotHeader),
    "SnapshotEntry": SNAPSHOT_ENTRY_ADAPTER,
    "DeltaHeader": TypeAdapter(DeltaHeader),
    "DeltaEntry": DELTA_ENTRY_ADAPTER,
}

RECORD_TYPES = frozenset(_RECORD_TYPE_TO_ADAPTER)


def _validate_with_model(
    payload: Any,
    adapter: TypeAdapter[Any],
) -> Tuple[ModelViolation, ...]:
    try:
        adapter.validate_json(json.dumps(payload))
        return ()
    except PydanticValidationError as e:
        violations = []
        for error in e.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            violations.append(
                ModelViolation(
                    field=field_path,
                    message=error["msg"],
                    violation_type=error["type"],
                    input_value=error.get("input"),
                )
            )
        return tuple(violations)


def validate_record(record_type: str, payload: Any) -> ConformanceResult:
    """Validate one decoded record against its document model.

    Args:
        record_type: One of ``"UpdateNotificationFile"``, ``"SnapshotHeader"``,
            ``"SnapshotEntry"``, ``"DeltaHeader"`` or ``"DeltaEntry"``.
        payload: The decoded JSON value of the record.

    Returns:
        ConformanceResult with validation status and any violations found.

    Raises:
        ValueError: If record_type is not recognized.
    """
    if record_type not in _RECORD_TYPE_TO_ADAPTER:
        raise ValueError(
            f"Unknown record type: {record_type!r}. "
            f"Known types: {sorted(_RECORD_TYPE_TO_ADAPTER)}"
        )

    model_violations = _validate_with_model(payload, _RECORD_TYPE_TO_ADAPTER[record_type])
    return ConformanceResult(
        valid=not model_violations,
        model_violations=model_violations,
        record_type=record_type,
    )
