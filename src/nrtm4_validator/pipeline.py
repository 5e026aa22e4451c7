"""End-to-end validation of an NRTMv4 publication.

Pipeline: authenticate notification -> check notification -> fetch/check
snapshot -> fetch/check each delta in order -> complete.

Only the notification file is signed. Snapshot and delta files are trusted
through the hashes listed inside the authenticated notification file.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Tuple
from uuid import UUID

import httpx
from pydantic import BaseModel, ConfigDict

from nrtm4_validator.config import SignatureScheme, ValidatorConfig
from nrtm4_validator.consistency import ChainVerifier, VerificationState
from nrtm4_validator.crypto import (
    TrustAnchor,
    check_signature,
    parse_trust_anchor,
    verify_compact_jws,
)
from nrtm4_validator.documents import (
    DeltaFile,
    FileReference,
    SnapshotFile,
    UpdateNotificationFile,
    parse_delta,
    parse_notification,
    parse_snapshot,
)
from nrtm4_validator.integrity import sha256_hex
from nrtm4_validator.models import NRTMValidatorError
from nrtm4_validator.retrieval import Fetcher, resolve_reference, signature_url

logger = logging.getLogger("nrtm4_validator.pipeline")


class DeltaSummary(BaseModel):
    """Version and size of one verified delta file."""

    model_config = ConfigDict(frozen=True)

    version: int
    entries: int
    url: str


class ValidationSummary(BaseModel):
    """Outcome of a successful validation run."""

    model_config = ConfigDict(frozen=True)

    source: str
    session_id: UUID
    version: int
    snapshot_version: int
    snapshot_entries: int
    deltas: Tuple[DeltaSummary, ...] = ()
    state: VerificationState = VerificationState.COMPLETE

    def describe(self) -> List[str]:
        """Human-readable summary lines."""
        lines = [
            f"Update Notification File for {self.source} at version {self.version} "
            f"(session {self.session_id})",
            f"Snapshot loaded at version {self.snapshot_version} "
            f"with {self.snapshot_entries} entries",
        ]
        for delta in self.deltas:
            lines.append(
                f"Delta loaded for version {delta.version} with {delta.entries} entries"
            )
        lines.append("NRTMv4 syntax is valid.")
        return lines


# ── Retrieval steps ──────────────────────────────────────────────────────────


async def retrieve_validate_unf(
    fetcher: Fetcher,
    url: str,
    trust_anchor: TrustAnchor,
    config: ValidatorConfig,
) -> UpdateNotificationFile:
    """Fetch, authenticate and schema-check the Update Notification File."""
    logger.info("Retrieving and validating Update Notification File from %s", url)
    content = await fetcher.retrieve_bytes(url)

    if config.scheme is SignatureScheme.DETACHED:
        sig_url = signature_url(url, sha256_hex(content), config.suffix_signature_hosts)
        signature = await fetcher.retrieve_bytes(sig_url)
        check_signature(trust_anchor, content, signature)  # type: ignore[arg-type]
        payload = content
        logger.info("Valid Update Notification File signature from %s", sig_url)
    else:
        payload, header = verify_compact_jws(content, trust_anchor)  # type: ignore[arg-type]
        logger.info("Valid Update Notification File signature with %s", header["alg"])

    return parse_notification(payload, url)


async def retrieve_snapshot(
    fetcher: Fetcher, unf_url: str, unf: UpdateNotificationFile
) -> SnapshotFile:
    url = resolve_reference(unf_url, unf.snapshot.url)
    header_record, records = await fetcher.retrieve_jsonseq(url, unf.snapshot.hash)
    return parse_snapshot(header_record, records, url)


async def retrieve_delta(
    fetcher: Fetcher, unf_url: str, reference: FileReference
) -> DeltaFile:
    url = resolve_reference(unf_url, reference.url)
    header_record, records = await fetcher.retrieve_jsonseq(url, reference.hash)
    return parse_delta(header_record, records, url)


# ── Snapshot/delta sequencing ────────────────────────────────────────────────


async def _verify_files_sequentially(
    fetcher: Fetcher,
    unf_url: str,
    unf: UpdateNotificationFile,
    verifier: ChainVerifier,
) -> Tuple[SnapshotFile, List[DeltaFile]]:
    snapshot = await retrieve_snapshot(fetcher, unf_url, unf)
    verifier.accept_snapshot(snapshot)
    logger.info(
        "Snapshot loaded at version %d with %d entries",
        snapshot.version, len(snapshot.entries),
    )

    deltas: List[DeltaFile] = []
    for reference in unf.deltas:
        delta = await retrieve_delta(fetcher, unf_url, reference)
        verifier.accept_delta(delta, reference)
        logger.info(
            "Delta loaded for version %d with %d entries",
            delta.version, len(delta.entries),
        )
        deltas.append(delta)
    return snapshot, deltas


async def _verify_files_concurrently(
    fetcher: Fetcher,
    unf_url: str,
    unf: UpdateNotificationFile,
    verifier: ChainVerifier,
) -> Tuple[SnapshotFile, List[DeltaFile]]:
    """Fetch everything at once but check results in reference order.

    The first failure in reference order wins, even if a later fetch fails
    sooner; all outstanding fetches are cancelled.
    """
    snapshot_task = asyncio.ensure_future(retrieve_snapshot(fetcher, unf_url, unf))
    delta_tasks = [
        asyncio.ensure_future(retrieve_delta(fetcher, unf_url, reference))
        for reference in unf.deltas
    ]
    tasks: List[asyncio.Future[object]] = [snapshot_task, *delta_tasks]  # type: ignore[list-item]
    try:
        snapshot = await snapshot_task
        verifier.accept_snapshot(snapshot)
        logger.info(
            "Snapshot loaded at version %d with %d entries",
            snapshot.version, len(snapshot.entries),
        )

        deltas: List[DeltaFile] = []
        for reference, task in zip(unf.deltas, delta_tasks):
            delta = await task
            verifier.accept_delta(delta, reference)
            logger.info(
                "Delta loaded for version %d with %d entries",
                delta.version, len(delta.entries),
            )
            deltas.append(delta)
        return snapshot, deltas
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


# ── Orchestrator ─────────────────────────────────────────────────────────────


async def validate_nrtmv4(
    notification_url: str,
    source: str,
    public_key: str,
    config: Optional[ValidatorConfig] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    now: Optional[datetime] = None,
) -> ValidationSummary:
    """Validate the notification file at *notification_url* and everything it names.

    Args:
        notification_url: URL of the Update Notification File.
        source: Expected source name.
        public_key: Trust anchor text for ``config.scheme`` (base64 Ed25519
            key, or a PEM public key).
        config: Deployment settings; defaults to :class:`ValidatorConfig`.
        client: Optional pre-built httpx client (left open).
        transport: Optional httpx transport for a client built here.
        now: Reference time for the freshness check; defaults to current UTC.

    Returns:
        A :class:`ValidationSummary` once every file has been verified.

    Raises:
        ConfigurationError: If *public_key* is unusable; raised before any
            network activity.
        NRTMValidatorError: The first failure of any other kind.
    """
    config = config or ValidatorConfig()
    trust_anchor = parse_trust_anchor(config.scheme, public_key)
    verifier = ChainVerifier(
        source, scheme=config.scheme, max_age=config.max_age, now=now
    )
    verify_files: Callable[
        [Fetcher, str, UpdateNotificationFile, ChainVerifier],
        Awaitable[Tuple[SnapshotFile, List[DeltaFile]]],
    ] = (
        _verify_files_concurrently if config.concurrent_fetches
        else _verify_files_sequentially
    )

    async with Fetcher(config, client=client, transport=transport) as fetcher:
        try:
            unf = await retrieve_validate_unf(fetcher, notification_url, trust_anchor, config)
            verifier.accept_notification(unf)
            snapshot, deltas = await verify_files(fetcher, notification_url, unf, verifier)
            verifier.complete()
        except NRTMValidatorError as exc:
            verifier.fail(exc)
            raise

    logger.info("NRTMv4 syntax is valid.")
    return ValidationSummary(
        source=unf.source,
        session_id=unf.session_id,
        version=unf.version,
        snapshot_version=snapshot.version,
        snapshot_entries=len(snapshot.entries),
        deltas=tuple(
            DeltaSummary(version=delta.version, entries=len(delta.entries), url=delta.url)
            for delta in deltas
        ),
        state=verifier.state,
    )


def validate_nrtmv4_sync(
    notification_url: str,
    source: str,
    public_key: str,
    config: Optional[ValidatorConfig] = None,
    **kwargs: object,
) -> ValidationSummary:
    """Blocking wrapper around :func:`validate_nrtmv4`."""
    return asyncio.run(
        validate_nrtmv4(notification_url, source, public_key, config, **kwargs)  # type: ignore[arg-type]
    )
