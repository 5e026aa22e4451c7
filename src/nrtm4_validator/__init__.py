"""
nrtm4-validator: Validate an NRTMv4 server's published files.

Given the URL of an Update Notification File, the expected source name and
the publisher's public key, the library authenticates the notification file,
then retrieves the snapshot and every delta it names and checks their
hashes, syntax and consistency with the notification file.

Example:
    >>> from nrtm4_validator import ValidatorConfig, validate_nrtmv4_sync
    >>> summary = validate_nrtmv4_sync(  # doctest: +SKIP
    ...     "https://nrtm.example.net/EXAMPLE/update-notification-file.jose",
    ...     "EXAMPLE",
    ...     open("example-key.pem").read(),
    ... )
    >>> summary.version  # doctest: +SKIP
    5

Trust schemes:
    ``jose`` (default): the notification file is a compact JWS signed with
    ES256 and the public key is PEM encoded.

    ``detached``: the notification file is plain JSON with an Ed25519
    signature published next to it; the public key is 32 raw bytes in
    base64.
"""

__version__ = "0.3.0"

# Constants and errors
from nrtm4_validator.models import (
    NRTM_VERSION,
    RS_SYMBOL,
    SOURCE_PATTERN,
    NRTMValidatorError,
    ConfigurationError,
    TransportError,
    IntegrityError,
    AuthenticityError,
    FramingError,
    DecompressionError,
    SchemaError,
    ConsistencyError,
)

# Configuration
from nrtm4_validator.config import SignatureScheme, ValidatorConfig

# Framing
from nrtm4_validator.jsonseq import RecordFramer, encode_records, gunzip

# Integrity and authenticity
from nrtm4_validator.integrity import check_hash, sha256_hex
from nrtm4_validator.crypto import (
    check_signature,
    load_pem_public_key,
    parse_public_key,
    parse_trust_anchor,
    validate_pem,
    verify_compact_jws,
)

# Document models
from nrtm4_validator.documents import (
    FileReference,
    UpdateNotificationFile,
    SnapshotHeader,
    SnapshotEntry,
    DeltaHeader,
    AddModifyEntry,
    DeleteEntry,
    DeltaEntry,
    StructuredDocument,
    SnapshotFile,
    DeltaFile,
    parse_notification,
    parse_structured_document,
    parse_snapshot,
    parse_delta,
)

# Consistency
from nrtm4_validator.consistency import (
    VerificationState,
    ChainVerifier,
    check_notification_versions,
    check_freshness,
    check_snapshot_consistency,
    check_delta_consistency,
    is_contiguous_and_ordered,
)

# Retrieval and pipeline
from nrtm4_validator.retrieval import Fetcher, resolve_reference, signature_url
from nrtm4_validator.pipeline import (
    DeltaSummary,
    ValidationSummary,
    validate_nrtmv4,
    validate_nrtmv4_sync,
)

__all__ = [
    # Version
    "__version__",
    # Constants
    "NRTM_VERSION",
    "RS_SYMBOL",
    "SOURCE_PATTERN",
    # Exceptions
    "NRTMValidatorError",
    "ConfigurationError",
    "TransportError",
    "IntegrityError",
    "AuthenticityError",
    "FramingError",
    "DecompressionError",
    "SchemaError",
    "ConsistencyError",
    # Configuration
    "SignatureScheme",
    "ValidatorConfig",
    # Framing
    "RecordFramer",
    "encode_records",
    "gunzip",
    # Integrity and authenticity
    "check_hash",
    "sha256_hex",
    "check_signature",
    "load_pem_public_key",
    "parse_public_key",
    "parse_trust_anchor",
    "validate_pem",
    "verify_compact_jws",
    # Document models
    "FileReference",
    "UpdateNotificationFile",
    "SnapshotHeader",
    "SnapshotEntry",
    "DeltaHeader",
    "AddModifyEntry",
    "DeleteEntry",
    "DeltaEntry",
    "StructuredDocument",
    "SnapshotFile",
    "DeltaFile",
    "parse_notification",
    "parse_structured_document",
    "parse_snapshot",
    "parse_delta",
    # Consistency
    "VerificationState",
    "ChainVerifier",
    "check_notification_versions",
    "check_freshness",
    "check_snapshot_consistency",
    "check_delta_consistency",
    "is_contiguous_and_ordered",
    # Retrieval and pipeline
    "Fetcher",
    "resolve_reference",
    "signature_url",
    "DeltaSummary",
    "ValidationSummary",
    "validate_nrtmv4",
    "validate_nrtmv4_sync",
]
