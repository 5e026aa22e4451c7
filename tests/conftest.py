"""Shared pytest fixtures for all tests."""
from __future__ import annotations

import asyncio
import base64
import gzip
import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from nrtm4_validator import (
    SignatureScheme,
    ValidationSummary,
    ValidatorConfig,
    encode_records,
    signature_url,
    validate_nrtmv4,
)

BASE_URL = "https://nrtm.example.net/EXAMPLE/"
SESSION_ID = "ca128382-78d9-41d1-8927-1ecef15275be"
NOW = datetime(2024, 2, 19, 14, 0, 0, tzinfo=timezone.utc)

ROUTE_OBJECT = "route: 192.0.2.0/24\norigin: AS65530\nsource: EXAMPLE\n"


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def sign_jws(
    private_key: ec.EllipticCurvePrivateKey,
    payload: bytes,
    header: Optional[Dict[str, Any]] = None,
) -> bytes:
    """Compact-serialize *payload* as an ES256 JWS."""
    protected = b64url(json.dumps(header or {"alg": "ES256"}).encode("utf-8"))
    body = b64url(payload)
    der = private_key.sign(f"{protected}.{body}".encode("ascii"), ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    signature = r.to_bytes(32, "big") + s.to_bytes(32, "big")
    return f"{protected}.{body}.{b64url(signature)}".encode("ascii")


def ed25519_public_b64(private_key: Ed25519PrivateKey) -> str:
    raw = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return base64.b64encode(raw).decode("ascii")


def ec_public_pem(private_key: ec.EllipticCurvePrivateKey) -> str:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def file_header(
    file_type: str,
    version: int,
    source: str = "EXAMPLE",
    session_id: str = SESSION_ID,
) -> Dict[str, Any]:
    return {
        "nrtm_version": 4,
        "type": file_type,
        "source": source,
        "session_id": session_id,
        "version": version,
    }


def jsonseq(header: Dict[str, Any], entries: Sequence[Dict[str, Any]] = ()) -> bytes:
    return encode_records([json.dumps(header)] + [json.dumps(e) for e in entries])


class FakeNRTMServer:
    """Serves fixed bytes per URL through an httpx.MockTransport."""

    def __init__(self) -> None:
        self.files: Dict[str, bytes] = {}
        self.requests: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        content = self.files.get(url)
        if content is None:
            return httpx.Response(404, content=b"not found")
        return httpx.Response(200, content=content)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@dataclass
class Publication:
    """A signed notification file plus the snapshot and deltas it names."""

    scheme: SignatureScheme
    ed25519_key: Ed25519PrivateKey
    es256_key: ec.EllipticCurvePrivateKey
    notification: Dict[str, Any]
    server: FakeNRTMServer = field(default_factory=FakeNRTMServer)

    @property
    def notification_url(self) -> str:
        if self.scheme is SignatureScheme.DETACHED:
            return BASE_URL + "update-notification-file.json"
        return BASE_URL + "update-notification-file.jose"

    @property
    def public_key(self) -> str:
        if self.scheme is SignatureScheme.DETACHED:
            return ed25519_public_b64(self.ed25519_key)
        return ec_public_pem(self.es256_key)

    def add_file(self, url: str, content: bytes) -> str:
        """Serve *content* at *url* (relative to BASE_URL) and return its hash."""
        self.server.files[str(httpx.URL(BASE_URL).join(url))] = content
        return hashlib.sha256(content).hexdigest()

    def publish(self) -> None:
        """(Re-)sign the current notification dict and serve it."""
        payload = json.dumps(self.notification).encode("utf-8")
        if self.scheme is SignatureScheme.DETACHED:
            self.server.files[self.notification_url] = payload
            sig_url = signature_url(
                self.notification_url, hashlib.sha256(payload).hexdigest()
            )
            self.server.files[sig_url] = base64.b64encode(self.ed25519_key.sign(payload))
        else:
            self.server.files[self.notification_url] = sign_jws(self.es256_key, payload)

    def validate(self, source: str = "EXAMPLE", **config: Any) -> ValidationSummary:
        return asyncio.run(
            validate_nrtmv4(
                self.notification_url,
                source,
                self.public_key,
                ValidatorConfig(scheme=self.scheme, **config),
                transport=self.server.transport(),
                now=NOW,
            )
        )


@pytest.fixture(scope="session")
def ed25519_key() -> Ed25519PrivateKey:
    return Ed25519PrivateKey.generate()


@pytest.fixture(scope="session")
def es256_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def make_publication(
    ed25519_key: Ed25519PrivateKey,
    es256_key: ec.EllipticCurvePrivateKey,
) -> Callable[..., Publication]:
    """Build a consistent publication; tests then mutate and re-publish it.

    Defaults follow the canonical scenario: notification version 5, snapshot
    at 3, deltas 4 and 5.
    """

    def _make(
        scheme: SignatureScheme = SignatureScheme.JOSE,
        version: int = 5,
        snapshot_version: int = 3,
        delta_versions: Sequence[int] = (4, 5),
        gzip_snapshot: bool = False,
        timestamp: Optional[datetime] = None,
    ) -> Publication:
        pub = Publication(
            scheme=scheme,
            ed25519_key=ed25519_key,
            es256_key=es256_key,
            notification={},
        )
        snapshot_content = jsonseq(
            file_header("snapshot", snapshot_version),
            [{"object": ROUTE_OBJECT}, {"object": ROUTE_OBJECT.replace("192.0.2", "198.51.100")}],
        )
        snapshot_name = f"nrtm-snapshot.{snapshot_version}.json"
        if gzip_snapshot:
            snapshot_content = gzip.compress(snapshot_content)
            snapshot_name += ".gz"
        snapshot_hash = pub.add_file(snapshot_name, snapshot_content)

        deltas = []
        for delta_version in delta_versions:
            delta_name = f"nrtm-delta.{delta_version}.json"
            delta_hash = pub.add_file(
                delta_name,
                jsonseq(
                    file_header("delta", delta_version),
                    [
                        {"action": "add_modify", "object": ROUTE_OBJECT},
                        {
                            "action": "delete",
                            "object_class": "route",
                            "primary_key": "198.51.100.0/24AS65530",
                        },
                    ],
                ),
            )
            deltas.append({"version": delta_version, "url": delta_name, "hash": delta_hash})

        pub.notification = {
            "nrtm_version": 4,
            "type": "notification",
            "source": "EXAMPLE",
            "session_id": SESSION_ID,
            "version": version,
            "timestamp": (timestamp or NOW - timedelta(hours=1)).isoformat(),
            "snapshot": {
                "version": snapshot_version,
                "url": BASE_URL + snapshot_name,
                "hash": snapshot_hash,
            },
            "deltas": deltas,
        }
        pub.publish()
        return pub

    return _make


@pytest.fixture
def notification_dict() -> Dict[str, Any]:
    """A schema-valid notification body for model-level tests."""
    return {
        "nrtm_version": 4,
        "type": "notification",
        "source": "EXAMPLE",
        "session_id": SESSION_ID,
        "version": 5,
        "timestamp": (NOW - timedelta(hours=1)).isoformat(),
        "snapshot": {
            "version": 3,
            "url": BASE_URL + "nrtm-snapshot.3.json",
            "hash": "a" * 64,
        },
        "deltas": [
            {"version": 4, "url": "nrtm-delta.4.json", "hash": "b" * 64},
            {"version": 5, "url": "nrtm-delta.5.json", "hash": "c" * 64},
        ],
    }
