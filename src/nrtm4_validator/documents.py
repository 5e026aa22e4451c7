"""NRTMv4 document models and the shared structured-document parser.

Every model is frozen and rejects unknown fields. Snapshot and delta files
share one parse path, :func:`parse_structured_document`, parameterised over
a header model and an entry type.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import (
    Annotated,
    Generic,
    Iterable,
    Literal,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)
from urllib.parse import urlsplit
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from nrtm4_validator.models import NRTM_VERSION, SOURCE_PATTERN, SchemaError

_HASH_PATTERN = r"^[0-9a-fA-F]{64}$"


def _check_nrtm_version(v: int) -> int:
    if v != NRTM_VERSION:
        raise ValueError(f"nrtm_version must be {NRTM_VERSION}, got {v}")
    return v


NrtmVersion = Annotated[int, Field(strict=True), AfterValidator(_check_nrtm_version)]


# ── Update Notification File ─────────────────────────────────────────────────


class FileReference(BaseModel):
    """Pointer from the notification file to a snapshot or delta file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: int = Field(..., ge=0, strict=True)
    url: str = Field(
        ...,
        min_length=1,
        description="Absolute https URL, or a reference relative to the notification file",
    )
    hash: str = Field(
        ...,
        pattern=_HASH_PATTERN,
        description="Hex SHA-256 of the file as transferred",
    )

    @field_validator("url")
    @classmethod
    def _require_https(cls, v: str) -> str:
        scheme = urlsplit(v).scheme
        if scheme and scheme.lower() != "https":
            raise ValueError(f"Invalid URL scheme {scheme!r}, expecting 'https'")
        return v


class UpdateNotificationFile(BaseModel):
    """Root document naming the current snapshot and the available deltas."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    nrtm_version: NrtmVersion
    file_type: Literal["notification"] = Field(..., alias="type")
    source: str = Field(..., pattern=SOURCE_PATTERN)
    session_id: UUID
    version: int = Field(..., ge=1, strict=True)
    timestamp: datetime = Field(..., strict=True)
    snapshot: FileReference
    deltas: Tuple[FileReference, ...] = Field(...)
    next_signing_key: Optional[str] = Field(
        None,
        min_length=1,
        description="Trust anchor the publisher will switch to next",
    )

    @field_validator("timestamp")
    @classmethod
    def _require_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None or v.utcoffset() is None:
            raise ValueError("timestamp must include a timezone offset")
        return v

    @property
    def delta_versions(self) -> Tuple[int, ...]:
        return tuple(reference.version for reference in self.deltas)


def parse_notification(payload: Union[bytes, str], url: str = "") -> UpdateNotificationFile:
    """Parse and schema-check an Update Notification File payload.

    Raises:
        SchemaError: If the payload is not a valid notification file.
    """
    try:
        return UpdateNotificationFile.model_validate_json(payload)
    except PydanticValidationError as exc:
        raise SchemaError(f"Invalid Update Notification File {url}: {exc}") from exc


# ── Snapshot and delta headers ───────────────────────────────────────────────


class _FileHeader(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    nrtm_version: NrtmVersion
    source: str = Field(..., pattern=SOURCE_PATTERN)
    session_id: UUID
    version: int = Field(..., ge=0, strict=True)


class SnapshotHeader(_FileHeader):
    """First record of a snapshot file."""

    header_type: Literal["snapshot"] = Field(..., alias="type")


class DeltaHeader(_FileHeader):
    """First record of a delta file."""

    header_type: Literal["delta"] = Field(..., alias="type")


# ── Entries ──────────────────────────────────────────────────────────────────


class SnapshotEntry(BaseModel):
    """One RPSL object in a snapshot."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    object: str = Field(..., min_length=1)


class AddModifyEntry(BaseModel):
    """Delta entry carrying the full new text of an object."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action: Literal["add_modify"]
    object: str = Field(..., min_length=1)


class DeleteEntry(BaseModel):
    """Delta entry naming an object to remove."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action: Literal["delete"]
    object_class: str = Field(..., min_length=1)
    primary_key: str = Field(..., min_length=1)


DeltaEntry = Annotated[
    Union[AddModifyEntry, DeleteEntry],
    Field(discriminator="action"),
]

SNAPSHOT_ENTRY_ADAPTER: TypeAdapter[SnapshotEntry] = TypeAdapter(SnapshotEntry)
DELTA_ENTRY_ADAPTER: TypeAdapter[Union[AddModifyEntry, DeleteEntry]] = TypeAdapter(DeltaEntry)


# ── Structured documents ─────────────────────────────────────────────────────

HeaderT = TypeVar("HeaderT", bound=BaseModel)
EntryT = TypeVar("EntryT")


@dataclass(frozen=True)
class StructuredDocument(Generic[HeaderT, EntryT]):
    """A validated header record followed by validated entry records."""

    header: HeaderT
    entries: Tuple[EntryT, ...]
    url: str = ""

    @property
    def version(self) -> int:
        version: int = getattr(self.header, "version")
        return version


SnapshotFile = StructuredDocument[SnapshotHeader, SnapshotEntry]
DeltaFile = StructuredDocument[DeltaHeader, Union[AddModifyEntry, DeleteEntry]]


def parse_structured_document(
    header_model: Type[HeaderT],
    entry_adapter: TypeAdapter[EntryT],
    header_record: str,
    records: Iterable[str],
    url: str = "",
) -> StructuredDocument[HeaderT, EntryT]:
    """Validate a header record, then each entry record as it is pulled.

    Framing errors raised by *records* propagate unchanged.

    Raises:
        SchemaError: On the first header or entry that fails validation.
    """
    try:
        header = header_model.model_validate_json(header_record)
    except PydanticValidationError as exc:
        raise SchemaError(f"Invalid header in {url}: {exc}") from exc

    entries = []
    for position, record in enumerate(records, start=1):
        try:
            entries.append(entry_adapter.validate_json(record))
        except PydanticValidationError as exc:
            raise SchemaError(f"Invalid entry {position} in {url}: {exc}") from exc

    return StructuredDocument(header=header, entries=tuple(entries), url=url)


def parse_snapshot(header_record: str, records: Iterable[str], url: str = "") -> SnapshotFile:
    return parse_structured_document(
        SnapshotHeader, SNAPSHOT_ENTRY_ADAPTER, header_record, records, url
    )


def parse_delta(header_record: str, records: Iterable[str], url: str = "") -> DeltaFile:
    return parse_structured_document(
        DeltaHeader, DELTA_ENTRY_ADAPTER, header_record, records, url
    )
