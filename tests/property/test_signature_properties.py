"""Property-based tests: any single-bit change breaks authentication."""

import base64

import pytest
from hypothesis import given, settings, strategies as st
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from conftest import sign_jws
from nrtm4_validator import AuthenticityError, check_signature, verify_compact_jws

ED25519_KEY = Ed25519PrivateKey.generate()
ES256_KEY = ec.generate_private_key(ec.SECP256R1())

PAYLOAD = (
    b'{"nrtm_version": 4, "type": "notification", "source": "EXAMPLE", '
    b'"session_id": "ca128382-78d9-41d1-8927-1ecef15275be", "version": 5}'
)
DETACHED_SIGNATURE = base64.b64encode(ED25519_KEY.sign(PAYLOAD))
JWS_TOKEN = sign_jws(ES256_KEY, PAYLOAD)


def _flip_bit(data: bytes, bit: int) -> bytes:
    flipped = bytearray(data)
    flipped[bit // 8] ^= 1 << (bit % 8)
    return bytes(flipped)


class TestDetachedSignatureRejection:
    @settings(deadline=None)
    @given(bit=st.integers(min_value=0, max_value=len(PAYLOAD) * 8 - 1))
    def test_flipped_content_bit(self, bit: int) -> None:
        with pytest.raises(AuthenticityError):
            check_signature(ED25519_KEY.public_key(), _flip_bit(PAYLOAD, bit), DETACHED_SIGNATURE)

    @settings(deadline=None)
    @given(bit=st.integers(min_value=0, max_value=64 * 8 - 1))
    def test_flipped_signature_bit(self, bit: int) -> None:
        raw = base64.b64decode(DETACHED_SIGNATURE)
        signature = base64.b64encode(_flip_bit(raw, bit))
        with pytest.raises(AuthenticityError):
            check_signature(ED25519_KEY.public_key(), PAYLOAD, signature)


class TestJwsRejection:
    @settings(deadline=None)
    @given(bit=st.integers(min_value=0, max_value=len(JWS_TOKEN) * 8 - 1))
    def test_flipped_token_bit(self, bit: int) -> None:
        with pytest.raises(AuthenticityError):
            verify_compact_jws(_flip_bit(JWS_TOKEN, bit), ES256_KEY.public_key())

    def test_unmodified_token_verifies(self) -> None:
        payload, _ = verify_compact_jws(JWS_TOKEN, ES256_KEY.public_key())
        assert payload == PAYLOAD
