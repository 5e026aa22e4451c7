"""Content digest checks for retrieved resources."""
import hashlib

from nrtm4_validator.models import IntegrityError


def sha256_hex(content: bytes) -> str:
    """Lowercase hex SHA-256 digest of *content*."""
    return hashlib.sha256(content).hexdigest()


def check_hash(url: str, content: bytes, expected_hash: str) -> str:
    """Verify *content* against the digest listed for *url*.

    The digest is computed over the bytes as transferred, before any
    decompression.

    Returns:
        The actual digest.

    Raises:
        IntegrityError: If the digests differ.
    """
    actual = sha256_hex(content)
    if actual != expected_hash.strip().lower():
        raise IntegrityError(url, expected_hash, actual)
    return actual
