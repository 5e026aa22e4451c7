"""Authenticity checks for the Update Notification File.

Two trust schemes are supported, chosen by configuration:

- ``detached``: an Ed25519 signature over the raw notification bytes, served
  as base64 from a separate signature resource.
- ``jose``: the notification is a compact JWS signed with ES256; the payload
  is only exposed after the signature verifies.
"""
from __future__ import annotations

import base64
import binascii
import json
import re
from typing import Any, Dict, Tuple, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from nrtm4_validator.config import SignatureScheme
from nrtm4_validator.models import AuthenticityError, ConfigurationError

ED25519_KEY_LENGTH = 32
ED25519_SIGNATURE_LENGTH = 64
ES256_SIGNATURE_LENGTH = 64

JWS_ALGORITHM = "ES256"

_PEM_PUBLIC_KEY_RE = re.compile(
    r"-----BEGIN PUBLIC KEY-----\s+[A-Za-z0-9+/=\s]+-----END PUBLIC KEY-----"
)
_BASE64URL_RE = re.compile(r"^[A-Za-z0-9_-]*$")

TrustAnchor = Union[Ed25519PublicKey, ec.EllipticCurvePublicKey]


# ── Detached Ed25519 scheme ──────────────────────────────────────────────────


def parse_public_key(public_key: str) -> Ed25519PublicKey:
    """Parse a base64-encoded raw Ed25519 public key.

    Raises:
        ConfigurationError: If the text is not base64 or not 32 bytes.
    """
    try:
        key_bytes = base64.b64decode(public_key.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigurationError(f"Public key is not valid base64: {exc}") from exc
    if len(key_bytes) != ED25519_KEY_LENGTH:
        raise ConfigurationError(
            f"Public key must be {ED25519_KEY_LENGTH} bytes, got {len(key_bytes)}"
        )
    return Ed25519PublicKey.from_public_bytes(key_bytes)


def check_signature(
    public_key: Ed25519PublicKey,
    content: bytes,
    signature_base64: bytes,
) -> None:
    """Verify a base64 Ed25519 signature over *content*.

    Raises:
        AuthenticityError: On bad encoding, wrong length or a signature that
            does not verify.
    """
    try:
        signature = base64.b64decode(signature_base64.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AuthenticityError(f"Signature is not valid base64: {exc}") from exc
    if len(signature) != ED25519_SIGNATURE_LENGTH:
        raise AuthenticityError(
            f"Signature must be {ED25519_SIGNATURE_LENGTH} bytes, got {len(signature)}"
        )
    try:
        public_key.verify(signature, content)
    except InvalidSignature as exc:
        raise AuthenticityError(
            "Signature does not match Update Notification File content"
        ) from exc


# ── Compact JWS (ES256) scheme ───────────────────────────────────────────────


def validate_pem(pem: str) -> str:
    """Return *pem* unchanged if it holds a ``PUBLIC KEY`` block.

    Raises:
        ConfigurationError: If no PUBLIC KEY block is present.
    """
    if not _PEM_PUBLIC_KEY_RE.search(pem):
        raise ConfigurationError("Invalid PEM format: expected a PUBLIC KEY block")
    return pem


def load_pem_public_key(pem: str) -> ec.EllipticCurvePublicKey:
    """Load a PEM public key usable for ES256 verification.

    Raises:
        ConfigurationError: On a malformed block or a key that is not P-256.
    """
    validate_pem(pem)
    try:
        key = serialization.load_pem_public_key(pem.encode("ascii"))
    except (ValueError, UnsupportedAlgorithm, UnicodeEncodeError) as exc:
        raise ConfigurationError(f"Unable to load PEM public key: {exc}") from exc
    if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(
        key.curve, ec.SECP256R1
    ):
        raise ConfigurationError("Public key must be an EC key on curve P-256")
    return key


def _b64url_decode(segment: str, name: str) -> bytes:
    if not _BASE64URL_RE.match(segment):
        raise AuthenticityError(f"JWS {name} is not base64url encoded")
    try:
        decoded = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except (binascii.Error, ValueError) as exc:
        raise AuthenticityError(f"JWS {name} is not base64url encoded") from exc
    # Unused trailing bits must be zero.
    if base64.urlsafe_b64encode(decoded).rstrip(b"=").decode("ascii") != segment:
        raise AuthenticityError(f"JWS {name} is not canonical base64url")
    return decoded


def verify_compact_jws(
    token: bytes,
    public_key: ec.EllipticCurvePublicKey,
) -> Tuple[bytes, Dict[str, Any]]:
    """Verify a compact-serialized JWS and return ``(payload, header)``.

    Raises:
        AuthenticityError: On any structural or cryptographic failure.
    """
    try:
        text = token.decode("ascii").strip()
    except UnicodeDecodeError as exc:
        raise AuthenticityError("JWS is not ASCII text") from exc

    parts = text.split(".")
    if len(parts) != 3:
        raise AuthenticityError(
            f"JWS compact serialization must have 3 parts, got {len(parts)}"
        )
    header_b64, payload_b64, signature_b64 = parts

    try:
        header = json.loads(_b64url_decode(header_b64, "header"))
    except ValueError as exc:
        raise AuthenticityError(f"JWS header is not valid JSON: {exc}") from exc
    if not isinstance(header, dict):
        raise AuthenticityError("JWS header must be a JSON object")
    if header.get("alg") != JWS_ALGORITHM:
        raise AuthenticityError(
            f"Unsupported JWS algorithm {header.get('alg')!r}, expecting {JWS_ALGORITHM}"
        )
    if "crit" in header:
        raise AuthenticityError("JWS critical header parameters are not supported")

    signature = _b64url_decode(signature_b64, "signature")
    if len(signature) != ES256_SIGNATURE_LENGTH:
        raise AuthenticityError(
            f"ES256 signature must be {ES256_SIGNATURE_LENGTH} bytes, got {len(signature)}"
        )
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:], "big")
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    try:
        public_key.verify(
            encode_dss_signature(r, s), signing_input, ec.ECDSA(hashes.SHA256())
        )
    except InvalidSignature as exc:
        raise AuthenticityError("JWS signature verification failed") from exc

    return _b64url_decode(payload_b64, "payload"), header


# ── Scheme dispatch ──────────────────────────────────────────────────────────


def parse_trust_anchor(scheme: SignatureScheme, material: str) -> TrustAnchor:
    """Parse trust anchor text for the configured scheme.

    Raises:
        ConfigurationError: If *material* is not a key for *scheme*.
    """
    if scheme is SignatureScheme.DETACHED:
        return parse_public_key(material)
    return load_pem_public_key(material)
