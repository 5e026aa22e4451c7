"""Protocol constants and the exception taxonomy for nrtm4-validator."""
import re

# Only NRTM version 4 is supported.
NRTM_VERSION: int = 4

# ASCII record separator used by the JSON text sequence framing.
RS_SYMBOL: int = 0x1E

# Leading letter, letters/digits/hyphen/underscore inside, no trailing separator.
SOURCE_PATTERN: str = r"^[A-Za-z](?:[A-Za-z0-9_-]*[A-Za-z0-9])?$"
SOURCE_RE = re.compile(SOURCE_PATTERN)

# Default tolerance for the notification file timestamp.
MAX_NOTIFICATION_AGE_HOURS: int = 24


# Custom Exceptions
class NRTMValidatorError(Exception):
    """Base exception for all validation failures."""
    pass


class ConfigurationError(NRTMValidatorError):
    """Caller-supplied configuration or trust anchor is unusable."""
    pass


class TransportError(NRTMValidatorError):
    """A resource could not be retrieved."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Unable to retrieve {url}: {reason}")


class IntegrityError(NRTMValidatorError):
    """Content hash of a retrieved resource does not match its reference."""

    def __init__(self, url: str, expected: str, actual: str) -> None:
        self.url = url
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Invalid hash for URL {url}: expected {expected}, got {actual}"
        )


class AuthenticityError(NRTMValidatorError):
    """Signature or signed envelope verification failed."""
    pass


class FramingError(NRTMValidatorError):
    """A JSON text sequence could not be split into records."""
    pass


class DecompressionError(FramingError):
    """A gzip-compressed resource could not be inflated."""
    pass


class SchemaError(NRTMValidatorError):
    """A header or entry record does not match its document model."""
    pass


class ConsistencyError(NRTMValidatorError):
    """A cross-document invariant does not hold."""
    pass
