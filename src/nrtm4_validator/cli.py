"""Command-line entry point: ``nrtm4-validator URL SOURCE PUBLIC_KEY``."""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional, Sequence

import httpx

from nrtm4_validator import __version__
from nrtm4_validator.config import (
    DEFAULT_SUFFIX_SIGNATURE_HOSTS,
    SignatureScheme,
    ValidatorConfig,
)
from nrtm4_validator.crypto import parse_trust_anchor
from nrtm4_validator.models import (
    MAX_NOTIFICATION_AGE_HOURS,
    SOURCE_RE,
    ConfigurationError,
    NRTMValidatorError,
)
from nrtm4_validator.pipeline import validate_nrtmv4_sync


def parse_update_notification_url(url: str, expected_filename: str) -> str:
    """Check the URL is https and names the scheme's notification file.

    Raises:
        ConfigurationError: If the URL is unusable.
    """
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ConfigurationError(f"Invalid URL {url!r}: {exc}") from exc
    if parsed.scheme != "https":
        raise ConfigurationError(
            f"Update Notification File URL must use https, got {parsed.scheme!r}"
        )
    filename = parsed.path.rsplit("/", 1)[-1]
    if not filename:
        raise ConfigurationError("Unable to find filename in URL")
    if filename != expected_filename:
        raise ConfigurationError(
            f"Filename of Update Notification File must be {expected_filename}"
        )
    return url


def read_public_key(value: str) -> str:
    """Return key text, reading it from a file when written as ``@path``."""
    if not value.startswith("@"):
        return value
    path = Path(value[1:])
    try:
        return path.read_text(encoding="ascii")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Unable to read public key from {path}: {exc}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nrtm4-validator",
        description="Validate an NRTMv4 server",
    )
    parser.add_argument(
        "update_notification_url",
        help="URL to the Update Notification File",
    )
    parser.add_argument("source", help="Name of the IRR source")
    parser.add_argument(
        "public_key",
        help=(
            "Public key: base64 Ed25519 key (detached scheme) or PEM public key "
            "(jose scheme); prefix with '@' to read from a file"
        ),
    )
    parser.add_argument(
        "--scheme",
        choices=[scheme.value for scheme in SignatureScheme],
        default=SignatureScheme.JOSE.value,
        help="How the Update Notification File is signed (default: %(default)s)",
    )
    parser.add_argument(
        "--suffix-signature-host",
        action="append",
        dest="suffix_signature_hosts",
        metavar="HOST",
        help=(
            "Host serving the detached signature at '<url>.sig' "
            f"(repeatable, default: {', '.join(DEFAULT_SUFFIX_SIGNATURE_HOSTS)})"
        ),
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Per-request timeout in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--max-age-hours",
        type=float,
        default=float(MAX_NOTIFICATION_AGE_HOURS),
        help="Maximum age of the notification timestamp (default: %(default)s)",
    )
    parser.add_argument(
        "--concurrent",
        action="store_true",
        help="Fetch the snapshot and deltas concurrently",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only report errors")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point.

    Returns:
        0 when every file validated, 1 on a validation failure. Argument
        and configuration errors exit with 2 through argparse.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    try:
        config = ValidatorConfig(
            scheme=SignatureScheme(args.scheme),
            suffix_signature_hosts=tuple(
                args.suffix_signature_hosts or DEFAULT_SUFFIX_SIGNATURE_HOSTS
            ),
            timeout=args.timeout,
            max_age=timedelta(hours=args.max_age_hours),
            concurrent_fetches=args.concurrent,
        )
    except ValueError as exc:
        parser.error(str(exc))

    try:
        url = parse_update_notification_url(
            args.update_notification_url, config.notification_filename
        )
        if not SOURCE_RE.match(args.source):
            raise ConfigurationError(f"Invalid source name {args.source!r}")
        public_key = read_public_key(args.public_key)
        parse_trust_anchor(config.scheme, public_key)
    except ConfigurationError as exc:
        parser.error(str(exc))

    try:
        summary = validate_nrtmv4_sync(url, args.source, public_key, config)
    except NRTMValidatorError as exc:
        print(f"validation failed: {exc}", file=sys.stderr)
        return 1

    for line in summary.describe():
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
