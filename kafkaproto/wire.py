"""Errors and primitive encodings of the Kafka wire protocol."""

from __future__ import annotations

import struct
from typing import BinaryIO


class ReadError(Exception):
    """Base class for all errors raised while decoding data."""

    _prefix = "Read error"

    def __str__(self) -> str:
        return f"{self._prefix}: {super().__str__()}"


class ReadIOError(ReadError):
    """The underlying reader failed or ran out of data."""

    _prefix = "Cannot read data"


class ReadOverflowError(ReadError):
    """An integer did not fit the range it had to be converted into."""

    _prefix = "Overflow converting integer"


class ReadMalformedError(ReadError):
    """The data does not follow the expected format."""

    _prefix = "Malformed data"


class WriteError(Exception):
    """Base class for all errors raised while encoding data."""

    _prefix = "Write error"

    def __str__(self) -> str:
        return f"{self._prefix}: {super().__str__()}"


class WriteIOError(WriteError):
    """The underlying writer failed."""

    _prefix = "Cannot write data"


class WriteOverflowError(WriteError):
    """A value does not fit the integer type it is encoded as."""

    _prefix = "Overflow converting integer"


class WriteMalformedError(WriteError):
    """The value cannot be represented in the wire format."""

    _prefix = "Malformed data"


def read_exact(reader: BinaryIO, n: int) -> bytes:
    """Read exactly ``n`` bytes, raising ReadIOError if the data ends early."""
    chunks = []
    remaining = n
    while remaining > 0:
        try:
            chunk = reader.read(remaining)
        except OSError as exc:
            raise ReadIOError(str(exc)) from exc
        if not chunk:
            raise ReadIOError(
                f"failed to fill whole buffer: needed {n} bytes, got {n - remaining}"
            )
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _write(writer: BinaryIO, data: bytes) -> None:
    try:
        writer.write(data)
    except OSError as exc:
        raise WriteIOError(str(exc)) from exc


def _read_struct(reader: BinaryIO, fmt: struct.Struct) -> int:
    return fmt.unpack(read_exact(reader, fmt.size))[0]


def _write_struct(writer: BinaryIO, fmt: struct.Struct, value: int) -> None:
    try:
        data = fmt.pack(value)
    except struct.error as exc:
        raise WriteOverflowError(f"{value} out of range: {exc}") from exc
    _write(writer, data)


_INT8 = struct.Struct(">b")
_INT16 = struct.Struct(">h")
_INT32 = struct.Struct(">i")
_INT64 = struct.Struct(">q")


def read_int8(reader: BinaryIO) -> int:
    return _read_struct(reader, _INT8)


def write_int8(writer: BinaryIO, value: int) -> None:
    _write_struct(writer, _INT8, value)


def read_int16(reader: BinaryIO) -> int:
    return _read_struct(reader, _INT16)


def write_int16(writer: BinaryIO, value: int) -> None:
    _write_struct(writer, _INT16, value)


def read_int32(reader: BinaryIO) -> int:
    return _read_struct(reader, _INT32)


def write_int32(writer: BinaryIO, value: int) -> None:
    _write_struct(writer, _INT32, value)


def read_int64(reader: BinaryIO) -> int:
    return _read_struct(reader, _INT64)


def write_int64(writer: BinaryIO, value: int) -> None:
    _write_struct(writer, _INT64, value)


def _read_uvarint(reader: BinaryIO, bits: int) -> int:
    max_bytes = (bits + 6) // 7
    result = 0
    shift = 0
    for _ in range(max_bytes):
        byte = read_exact(reader, 1)[0]
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            if result >> bits:
                raise ReadMalformedError(f"Varint does not fit into {bits} bits")
            return result
        shift += 7
    raise ReadMalformedError(f"Varint longer than {max_bytes} bytes")


def _encode_uvarint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def _write_signed_varint(writer: BinaryIO, value: int, bits: int) -> None:
    low = -(1 << (bits - 1))
    high = (1 << (bits - 1)) - 1
    if not low <= value <= high:
        raise WriteOverflowError(f"{value} does not fit into a {bits}-bit integer")
    zigzag = (value << 1) ^ (value >> (bits - 1))
    _write(writer, _encode_uvarint(zigzag & ((1 << bits) - 1)))


def read_varint(reader: BinaryIO) -> int:
    """Read a zigzag-encoded 32-bit varint."""
    return _zigzag_decode(_read_uvarint(reader, 32))


def write_varint(writer: BinaryIO, value: int) -> None:
    """Write a zigzag-encoded 32-bit varint."""
    _write_signed_varint(writer, value, 32)


def read_varlong(reader: BinaryIO) -> int:
    """Read a zigzag-encoded 64-bit varint."""
    return _zigzag_decode(_read_uvarint(reader, 64))


def write_varlong(writer: BinaryIO, value: int) -> None:
    """Write a zigzag-encoded 64-bit varint."""
    _write_signed_varint(writer, value, 64)


def read_unsigned_varint(reader: BinaryIO) -> int:
    """Read an unsigned 64-bit varint."""
    return _read_uvarint(reader, 64)


def write_unsigned_varint(writer: BinaryIO, value: int) -> None:
    """Write an unsigned 64-bit varint."""
    if not 0 <= value < (1 << 64):
        raise WriteOverflowError(f"{value} does not fit into an unsigned 64-bit integer")
    _write(writer, _encode_uvarint(value))