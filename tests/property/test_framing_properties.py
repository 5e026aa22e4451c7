"""Property-based tests for JSON text sequence framing and hash checks."""

import hashlib
from typing import List

import pytest
from hypothesis import given, settings, strategies as st

from nrtm4_validator import IntegrityError, RecordFramer, check_hash, encode_records

records_strategy = st.lists(
    st.text(min_size=1).filter(lambda s: "\x1e" not in s),
    max_size=20,
)


class TestFramingRoundTrip:
    """Encoding then framing recovers every record."""

    @settings(deadline=None)
    @given(records=records_strategy)
    def test_encoded_records_are_recovered(self, records: List[str]) -> None:
        framed = list(RecordFramer(encode_records(records)))
        assert framed == [record + "\n" for record in records]

    @settings(deadline=None)
    @given(records=records_strategy)
    def test_leading_separator_is_optional(self, records: List[str]) -> None:
        data = encode_records(records)
        assert list(RecordFramer(data[1:])) == list(RecordFramer(data))

    @settings(deadline=None)
    @given(records=records_strategy.filter(bool))
    def test_header_is_first_record(self, records: List[str]) -> None:
        framer = RecordFramer(encode_records(records))
        assert framer.read_header() == records[0] + "\n"
        assert framer.records_read == 1
        assert len(list(framer)) == len(records) - 1


class TestTamperDetection:
    """Any single-byte change to a file is caught by its hash."""

    @settings(deadline=None)
    @given(
        content=st.binary(min_size=1, max_size=512),
        data=st.data(),
    )
    def test_single_byte_change_detected(self, content: bytes, data: st.DataObject) -> None:
        expected = hashlib.sha256(content).hexdigest()
        position = data.draw(st.integers(min_value=0, max_value=len(content) - 1))
        mask = data.draw(st.integers(min_value=1, max_value=255))
        tampered = bytearray(content)
        tampered[position] ^= mask
        check_hash("https://x.test/f", content, expected)
        with pytest.raises(IntegrityError):
            check_hash("https://x.test/f", bytes(tampered), expected)
