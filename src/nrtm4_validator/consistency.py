"""Cross-document consistency checks and the verification state machine.

The notification file is checked on its own (version bookkeeping, freshness,
expected source), then every snapshot and delta header is checked against it.
:class:`ChainVerifier` sequences these checks:

  PENDING -> NOTIFICATION_VERIFIED -> SNAPSHOT_VERIFIED
          -> DELTA_VERIFIED (once per delta reference) -> COMPLETE

Any failure moves the verifier to FAILED, which is terminal.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from nrtm4_validator.config import SignatureScheme
from nrtm4_validator.crypto import parse_trust_anchor
from nrtm4_validator.documents import (
    DeltaFile,
    FileReference,
    SnapshotFile,
    UpdateNotificationFile,
)
from nrtm4_validator.models import (
    MAX_NOTIFICATION_AGE_HOURS,
    ConfigurationError,
    ConsistencyError,
    NRTMValidatorError,
)

logger = logging.getLogger("nrtm4_validator.consistency")


class VerificationState(str, Enum):
    PENDING = "pending"
    NOTIFICATION_VERIFIED = "notification_verified"
    SNAPSHOT_VERIFIED = "snapshot_verified"
    DELTA_VERIFIED = "delta_verified"
    COMPLETE = "complete"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: Dict[VerificationState, FrozenSet[VerificationState]] = {
    VerificationState.PENDING: frozenset({VerificationState.NOTIFICATION_VERIFIED}),
    VerificationState.NOTIFICATION_VERIFIED: frozenset({VerificationState.SNAPSHOT_VERIFIED}),
    VerificationState.SNAPSHOT_VERIFIED: frozenset({
        VerificationState.DELTA_VERIFIED,
        VerificationState.COMPLETE,
    }),
    VerificationState.DELTA_VERIFIED: frozenset({
        VerificationState.DELTA_VERIFIED,
        VerificationState.COMPLETE,
    }),
    VerificationState.COMPLETE: frozenset(),
    VerificationState.FAILED: frozenset(),
}


# ── Field-level helpers ──────────────────────────────────────────────────────


def is_contiguous_and_ordered(numbers: Sequence[int]) -> bool:
    """True if each number is exactly one more than the one before it."""
    return all(b == a + 1 for a, b in zip(numbers, numbers[1:]))


def check_consistency(
    in_file: Any,
    in_notification: Any,
    field_human_name: str,
    file_human_name: str,
) -> None:
    """Raise ConsistencyError if a header field differs from the notification."""
    if in_file != in_notification:
        raise ConsistencyError(
            f"{field_human_name} does not match: {file_human_name} File has "
            f"'{in_file}', expecting '{in_notification}'"
        )


# ── Notification file checks ─────────────────────────────────────────────────


def check_notification_versions(unf: UpdateNotificationFile) -> None:
    """Check snapshot and delta version bookkeeping inside one notification file.

    Deltas may start before the snapshot, but never after snapshot + 1, and
    must run without gaps up to the notification version. Allowing an early
    first delta overrides the stricter reading that deltas begin exactly at
    snapshot + 1.
    """
    if unf.snapshot.version > unf.version:
        raise ConsistencyError(
            f"Snapshot version {unf.snapshot.version} can not be higher than "
            f"Update Notification File version {unf.version}"
        )

    delta_versions = unf.delta_versions
    if not delta_versions:
        if unf.snapshot.version != unf.version:
            raise ConsistencyError(
                f"Update Notification File version {unf.version} is not covered: "
                f"snapshot is at version {unf.snapshot.version} and no deltas are listed"
            )
        return

    if not is_contiguous_and_ordered(delta_versions):
        raise ConsistencyError(
            "Delta versions must be sequential contiguous set of version numbers, "
            f"got {list(delta_versions)}"
        )
    lowest, highest = delta_versions[0], delta_versions[-1]
    if lowest < 1:
        raise ConsistencyError(f"Delta versions start at 1, got {lowest}")
    if highest > unf.version:
        raise ConsistencyError(
            f"Delta version {highest} can not be higher than "
            f"Update Notification File version {unf.version}"
        )
    if highest != unf.version:
        raise ConsistencyError(
            f"Deltas end at version {highest}, expecting them to reach "
            f"Update Notification File version {unf.version}"
        )
    if lowest > unf.snapshot.version + 1:
        raise ConsistencyError(
            f"Gap between snapshot version {unf.snapshot.version} and "
            f"first delta version {lowest}"
        )


def check_freshness(
    unf: UpdateNotificationFile,
    now: Optional[datetime] = None,
    max_age: timedelta = timedelta(hours=MAX_NOTIFICATION_AGE_HOURS),
) -> None:
    """Reject a notification file whose timestamp is older than *max_age*."""
    if now is None:
        now = datetime.now(timezone.utc)
    age = now - unf.timestamp
    if age > max_age:
        raise ConsistencyError(
            f"Update Notification File timestamp {unf.timestamp.isoformat()} is "
            f"{age} old, more than the allowed {max_age}"
        )


def check_source(unf: UpdateNotificationFile, expected_source: str) -> None:
    if unf.source != expected_source:
        raise ConsistencyError(
            f"Source does not match: Update Notification File has "
            f"'{unf.source}', expecting '{expected_source}'"
        )


def check_next_signing_key(unf: UpdateNotificationFile, scheme: SignatureScheme) -> None:
    """A rotation key, when announced, must be usable under *scheme*."""
    if unf.next_signing_key is None:
        return
    try:
        parse_trust_anchor(scheme, unf.next_signing_key)
    except ConfigurationError as exc:
        raise ConsistencyError(f"Invalid next_signing_key: {exc}") from exc


# ── Snapshot and delta checks ────────────────────────────────────────────────


def check_snapshot_consistency(snapshot: SnapshotFile, unf: UpdateNotificationFile) -> None:
    check_consistency(snapshot.header.source, unf.source, "source", "Snapshot")
    check_consistency(snapshot.header.session_id, unf.session_id, "session_id", "Snapshot")
    check_consistency(snapshot.header.version, unf.snapshot.version, "version", "Snapshot")


def check_delta_consistency(
    delta: DeltaFile,
    unf: UpdateNotificationFile,
    reference: FileReference,
) -> None:
    """Check a delta header against the notification and the reference naming it."""
    check_consistency(delta.header.source, unf.source, "source", "Delta")
    check_consistency(delta.header.session_id, unf.session_id, "session_id", "Delta")
    check_consistency(delta.header.version, reference.version, "version", "Delta")


# ── State machine ────────────────────────────────────────────────────────────


class ChainVerifier:
    """Fail-fast verifier for one notification file and the files it names.

    Call the ``accept_*`` methods in protocol order. Each either advances the
    state or raises; once a check has failed every later call raises too.
    """

    def __init__(
        self,
        expected_source: str,
        *,
        scheme: SignatureScheme = SignatureScheme.JOSE,
        max_age: timedelta = timedelta(hours=MAX_NOTIFICATION_AGE_HOURS),
        now: Optional[datetime] = None,
    ) -> None:
        self.expected_source = expected_source
        self.scheme = scheme
        self.max_age = max_age
        self.now = now
        self.state = VerificationState.PENDING
        self.notification: Optional[UpdateNotificationFile] = None
        self.error: Optional[NRTMValidatorError] = None
        self._verified_deltas: List[int] = []
        self._transition_log: List[Tuple[VerificationState, str]] = []

    @property
    def transition_log(self) -> Tuple[Tuple[VerificationState, str], ...]:
        return tuple(self._transition_log)

    @property
    def verified_deltas(self) -> Tuple[int, ...]:
        return tuple(self._verified_deltas)

    def fail(self, error: NRTMValidatorError) -> None:
        """Move to FAILED, keeping the first error seen."""
        if self.state is not VerificationState.FAILED:
            self.error = error
            self._transition_log.append((VerificationState.FAILED, str(error)))
            self.state = VerificationState.FAILED

    def _transition(self, target: VerificationState, detail: str) -> None:
        allowed = _ALLOWED_TRANSITIONS[self.state]
        if target not in allowed:
            raise ConsistencyError(
                f"Invalid transition: {self.state.value} -> {target.value}"
            )
        logger.debug("%s -> %s (%s)", self.state.value, target.value, detail)
        self.state = target
        self._transition_log.append((target, detail))

    def _require_notification(self) -> UpdateNotificationFile:
        if self.notification is None:
            raise ConsistencyError("No verified Update Notification File")
        return self.notification

    def accept_notification(self, unf: UpdateNotificationFile) -> None:
        try:
            self._transition_guard(VerificationState.NOTIFICATION_VERIFIED)
            check_notification_versions(unf)
            check_freshness(unf, self.now, self.max_age)
            check_source(unf, self.expected_source)
            check_next_signing_key(unf, self.scheme)
            self._transition(
                VerificationState.NOTIFICATION_VERIFIED,
                f"{unf.source} version {unf.version}",
            )
            self.notification = unf
        except NRTMValidatorError as exc:
            self.fail(exc)
            raise

    def accept_snapshot(self, snapshot: SnapshotFile) -> None:
        try:
            self._transition_guard(VerificationState.SNAPSHOT_VERIFIED)
            unf = self._require_notification()
            check_snapshot_consistency(snapshot, unf)
            self._transition(
                VerificationState.SNAPSHOT_VERIFIED,
                f"snapshot version {snapshot.header.version}",
            )
        except NRTMValidatorError as exc:
            self.fail(exc)
            raise

    def accept_delta(self, delta: DeltaFile, reference: FileReference) -> None:
        try:
            self._transition_guard(VerificationState.DELTA_VERIFIED)
            unf = self._require_notification()
            position = len(self._verified_deltas)
            if position >= len(unf.deltas) or unf.deltas[position] != reference:
                raise ConsistencyError(
                    f"Delta version {reference.version} is not the next delta "
                    f"listed in the Update Notification File"
                )
            check_delta_consistency(delta, unf, reference)
            self._transition(
                VerificationState.DELTA_VERIFIED,
                f"delta version {delta.header.version}",
            )
            self._verified_deltas.append(reference.version)
        except NRTMValidatorError as exc:
            self.fail(exc)
            raise

    def complete(self) -> None:
        try:
            self._transition_guard(VerificationState.COMPLETE)
            unf = self._require_notification()
            if len(self._verified_deltas) != len(unf.deltas):
                raise ConsistencyError(
                    f"Only {len(self._verified_deltas)} of {len(unf.deltas)} "
                    f"deltas were verified"
                )
            self._transition(VerificationState.COMPLETE, f"version {unf.version}")
        except NRTMValidatorError as exc:
            self.fail(exc)
            raise

    def _transition_guard(self, target: VerificationState) -> None:
        if self.state is VerificationState.FAILED:
            raise ConsistencyError(
                f"Verification already failed: {self.error}"
            )
        if target not in _ALLOWED_TRANSITIONS[self.state]:
            raise ConsistencyError(
                f"Invalid transition: {self.state.value} -> {target.value}"
            )
