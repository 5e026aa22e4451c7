"""JSON text sequence framing (RS-separated records) and gzip inflation."""
from __future__ import annotations

import gzip
import zlib
from typing import Iterable, Iterator, Optional

from nrtm4_validator.models import RS_SYMBOL, DecompressionError, FramingError

_RS = bytes([RS_SYMBOL])


def gunzip(data: bytes) -> bytes:
    """Fully inflate a gzip member stream.

    Raises:
        DecompressionError: If the data is not gzip, is corrupt or truncated.
    """
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as exc:
        raise DecompressionError(f"Unable to decompress gzip data: {exc}") from exc


def encode_records(records: Iterable[str]) -> bytes:
    """Encode records as RS-prefixed, LF-terminated UTF-8 text."""
    return b"".join(_RS + record.encode("utf-8") + b"\n" for record in records)


class RecordFramer(Iterator[str]):
    """Lazy, forward-only iterator over the records of a held buffer.

    Records are separated by the RS byte. A single leading RS is optional.
    A non-empty trailing fragment after the last separator is the final
    record. Each record is decoded strictly as UTF-8; an undecodable record
    raises :class:`FramingError` for that record only, the position having
    already moved past it.

    The iterator is not restartable. Build a new instance to re-read.
    """

    def __init__(self, data: bytes, url: str = "") -> None:
        self._data = data
        self.url = url
        self._index = 1 if data[:1] == _RS else 0
        self._record_number = 0

    @property
    def _where(self) -> str:
        return f" of {self.url}" if self.url else ""

    @property
    def records_read(self) -> int:
        """Number of records produced so far (including undecodable ones)."""
        return self._record_number

    def __iter__(self) -> RecordFramer:
        return self

    def __next__(self) -> str:
        if self._index >= len(self._data):
            raise StopIteration

        end = self._data.find(_RS, self._index)
        if end == -1:
            chunk = self._data[self._index:]
            self._index = len(self._data)
            if not chunk:
                raise StopIteration
        else:
            chunk = self._data[self._index:end]
            self._index = end + 1

        self._record_number += 1
        try:
            return chunk.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FramingError(
                f"Invalid UTF-8 sequence in record {self._record_number}{self._where}: {exc}"
            ) from exc

    def read_header(self) -> str:
        """Consume and return the first record.

        Raises:
            FramingError: If the buffer holds no record at all.
        """
        header: Optional[str] = next(self, None)
        if header is None:
            raise FramingError(f"No header found{self._where}")
        return header
