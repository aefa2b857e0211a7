"""Minimal protocol buffer wire-format reader.

Walks a byte buffer as a stream of ``(field number, value)`` pairs without any
schema knowledge. Nested messages are read by handing a length-delimited value
to a fresh ``WireDecoder``. Truncated or overrunning input ends the stream
instead of raising.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Optional, Union

_UINT64_MASK = (1 << 64) - 1
_MAX_VARINT_SHIFT = 63


class WireType(IntEnum):
    """Protobuf wire types."""
    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3  # Deprecated
    END_GROUP = 4  # Deprecated
    FIXED32 = 5


@dataclass(frozen=True)
class Field:
    """A decoded field: number, wire type, and raw value."""
    number: int
    wire_type: WireType
    value: Union[int, bytes]

    def as_int64(self) -> Optional[int]:
        """Interpret a numeric field as a signed 64-bit integer."""
        if self.wire_type == WireType.LENGTH_DELIMITED:
            return None
        if self.wire_type == WireType.FIXED32:
            return _to_signed(self.value, 32)
        return _to_signed(self.value, 64)

    def as_bytes(self) -> Optional[bytes]:
        if self.wire_type != WireType.LENGTH_DELIMITED:
            return None
        return self.value

    def as_string(self) -> Optional[str]:
        """Decode a length-delimited field as UTF-8."""
        payload = self.as_bytes()
        if payload is None:
            return None
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError:
            return None


def _to_signed(value: int, bits: int) -> int:
    if value >= 1 << (bits - 1):
        return value - (1 << bits)
    return value


class WireDecoder:
    """Forward-only cursor over a protobuf-encoded buffer."""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._index = 0

    def __iter__(self) -> Iterator[Field]:
        return self

    def __next__(self) -> Field:
        field = self.next_field()
        if field is None:
            raise StopIteration
        return field

    def next_field(self) -> Optional[Field]:
        """
        Read the next known-wire-type field.

        Returns:
            The next Field, or None when the buffer is exhausted or cannot be
            read any further.
        """
        while self._index < len(self._data):
            key = self._read_varint()
            if key is None:
                return self._stop()
            number = key >> 3
            wire_type = key & 0x7

            if wire_type == WireType.VARINT:
                value = self._read_varint()
            elif wire_type == WireType.FIXED64:
                value = self._read_fixed(8)
            elif wire_type == WireType.LENGTH_DELIMITED:
                value = self._read_length_delimited()
            elif wire_type == WireType.FIXED32:
                value = self._read_fixed(4)
            elif wire_type in (WireType.START_GROUP, WireType.END_GROUP):
                # Group markers carry no payload of their own
                continue
            else:
                # Wire types 6 and 7 have no defined length
                return self._stop()

            if value is None:
                return self._stop()
            return Field(number=number, wire_type=WireType(wire_type), value=value)

        return None

    def _stop(self) -> None:
        self._index = len(self._data)
        return None

    def _read_varint(self) -> Optional[int]:
        result = 0
        shift = 0
        while self._index < len(self._data) and shift <= _MAX_VARINT_SHIFT:
            byte = self._data[self._index]
            self._index += 1
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result & _UINT64_MASK
            shift += 7
        return None

    def _read_fixed(self, size: int) -> Optional[int]:
        end = self._index + size
        if end > len(self._data):
            return None
        value = int.from_bytes(self._data[self._index:end], "little")
        self._index = end
        return value

    def _read_length_delimited(self) -> Optional[bytes]:
        length = self._read_varint()
        if length is None:
            return None
        end = self._index + length
        if end > len(self._data):
            return None
        payload = self._data[self._index:end]
        self._index = end
        return payload
