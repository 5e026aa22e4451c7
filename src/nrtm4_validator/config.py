"""Deployment configuration for the validation pipeline."""
from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field

from nrtm4_validator import __version__
from nrtm4_validator.models import MAX_NOTIFICATION_AGE_HOURS


class SignatureScheme(str, Enum):
    """How the Update Notification File is authenticated."""

    DETACHED = "detached"
    JOSE = "jose"


NOTIFICATION_FILENAMES = {
    SignatureScheme.DETACHED: "update-notification-file.json",
    SignatureScheme.JOSE: "update-notification-file.jose",
}

DEFAULT_USER_AGENT = f"nrtm4-validator/{__version__}"

# Deployments that publish the detached signature at ``<unf-url>.sig``.
DEFAULT_SUFFIX_SIGNATURE_HOSTS: Tuple[str, ...] = ("nrtm.db.ripe.net",)


class ValidatorConfig(BaseModel):
    """Immutable settings for one validation run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    scheme: SignatureScheme = Field(
        default=SignatureScheme.JOSE,
        description="Trust scheme used to authenticate the notification file",
    )
    suffix_signature_hosts: Tuple[str, ...] = Field(
        default=DEFAULT_SUFFIX_SIGNATURE_HOSTS,
        description="Hosts whose detached signature lives at '<unf-url>.sig'",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Connect/read timeout per request, in seconds",
    )
    max_age: timedelta = Field(
        default=timedelta(hours=MAX_NOTIFICATION_AGE_HOURS),
        description="Maximum age of the notification file timestamp",
    )
    concurrent_fetches: bool = Field(
        default=False,
        description="Fetch snapshot and deltas concurrently",
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, min_length=1)

    @property
    def notification_filename(self) -> str:
        """Well-known filename of the notification file for this scheme."""
        return NOTIFICATION_FILENAMES[self.scheme]
