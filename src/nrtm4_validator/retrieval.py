"""HTTP retrieval of NRTMv4 resources.

Fetching is the only I/O in the pipeline. Every failure, including timeouts
and non-2xx responses, surfaces as :class:`TransportError`; nothing is
retried.
"""
from __future__ import annotations

import logging
from types import TracebackType
from typing import Iterable, Optional, Tuple, Type

import httpx

from nrtm4_validator.config import ValidatorConfig
from nrtm4_validator.integrity import check_hash
from nrtm4_validator.jsonseq import RecordFramer, gunzip
from nrtm4_validator.models import ConsistencyError, DecompressionError, TransportError

logger = logging.getLogger("nrtm4_validator.retrieval")

SIGNATURE_FILENAME_TEMPLATE = "update-notification-file-signature-{digest}.sig"


def resolve_reference(notification_url: str, reference_url: str) -> str:
    """Resolve a file reference against the notification file's location.

    Raises:
        ConsistencyError: If the resolved URL does not use https.
    """
    try:
        resolved = httpx.URL(notification_url).join(reference_url)
    except httpx.InvalidURL as exc:
        raise ConsistencyError(
            f"Unable to resolve {reference_url!r} against {notification_url}: {exc}"
        ) from exc
    if resolved.scheme != "https":
        raise ConsistencyError(
            f"Resolved URL {resolved} must use https"
        )
    return str(resolved)


def signature_url(
    notification_url: str,
    content_digest: str,
    suffix_signature_hosts: Iterable[str] = (),
) -> str:
    """Locate the detached signature for a notification file.

    Hosts in *suffix_signature_hosts* serve it at ``<notification-url>.sig``;
    everywhere else the notification filename is replaced with one embedding
    the SHA-256 of the notification content.
    """
    url = httpx.URL(notification_url)
    if url.host in set(suffix_signature_hosts):
        return f"{notification_url}.sig"
    return str(url.join(SIGNATURE_FILENAME_TEMPLATE.format(digest=content_digest)))


class Fetcher:
    """Async context manager wrapping one ``httpx.AsyncClient``.

    A caller-supplied *client* is used as-is and left open; otherwise a
    client is built from *config* (optionally over *transport*) and closed
    on exit.
    """

    def __init__(
        self,
        config: Optional[ValidatorConfig] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or ValidatorConfig()
        self._transport = transport
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> Fetcher:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers={
                    "User-Agent": self.config.user_agent,
                    "Accept-Encoding": "identity",
                },
                follow_redirects=True,
                transport=self._transport,
            )
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def retrieve_bytes(self, url: str, expected_hash: Optional[str] = None) -> bytes:
        """GET *url*, checking the body against *expected_hash* when given.

        The body is returned exactly as transferred; any Content-Encoding
        is left undone.

        Raises:
            TransportError: On network errors, timeouts or non-2xx responses.
            IntegrityError: If the body does not match *expected_hash*.
        """
        if self._client is None:
            raise RuntimeError("Fetcher must be used as an async context manager")
        logger.debug("GET %s", url)
        try:
            async with self._client.stream("GET", url) as response:
                if not response.is_success:
                    raise TransportError(url, f"HTTP status {response.status_code}")
                content = b"".join([chunk async for chunk in response.aiter_raw()])
        except httpx.TimeoutException as exc:
            raise TransportError(url, f"timed out after {self.config.timeout}s") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(url, str(exc) or type(exc).__name__) from exc

        logger.debug("Retrieved %d bytes from %s", len(content), url)
        if expected_hash is not None:
            check_hash(url, content, expected_hash)
        return content

    async def retrieve_jsonseq(
        self, url: str, expected_hash: str
    ) -> Tuple[str, RecordFramer]:
        """Retrieve a snapshot or delta file and split off its header record.

        The hash is checked on the transferred bytes; ``.gz`` resources are
        inflated afterwards.
        """
        logger.info("Retrieving and validating %s", url)
        content = await self.retrieve_bytes(url, expected_hash)
        if httpx.URL(url).path.endswith(".gz"):
            try:
                content = gunzip(content)
            except DecompressionError as exc:
                raise DecompressionError(f"{url}: {exc}") from exc
        framer = RecordFramer(content, url)
        return framer.read_header(), framer
