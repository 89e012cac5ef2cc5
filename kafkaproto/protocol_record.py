"""Records and their headers in the version 2 message format, plus control records.

These are the entries stored inside a record batch. A record is prefixed by its
length as a varint and carries varint-encoded deltas, key, value and headers.
"""

from __future__ import annotations

import enum
import io
from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional

from .vec_builder import VecBuilder
from .wire import (
    ReadMalformedError,
    WriteIOError,
    WriteMalformedError,
    read_int8,
    read_int16,
    read_varint,
    read_varlong,
    write_int8,
    write_int16,
    write_varint,
    write_varlong,
)

_I32_MAX = (1 << 31) - 1


def _write_all(writer: BinaryIO, data: bytes) -> None:
    try:
        writer.write(data)
    except OSError as exc:
        raise WriteIOError(str(exc)) from exc


def _length_as_i32(length: int) -> int:
    if length > _I32_MAX:
        raise WriteMalformedError(f"length {length} does not fit into a 32-bit integer")
    return length


def _non_negative(value: int) -> int:
    if value < 0:
        raise ReadMalformedError(f"out of range integral type conversion attempted: {value}")
    return value


def _read_bytes(reader: BinaryIO, length: int) -> bytes:
    return bytes(VecBuilder(length).read_exact(reader).build())


def _read_nullable_bytes(reader: BinaryIO) -> Optional[bytes]:
    length = read_varint(reader)
    if length == -1:
        return None
    return _read_bytes(reader, _non_negative(length))


def _write_nullable_bytes(writer: BinaryIO, data: Optional[bytes]) -> None:
    if data is None:
        write_varint(writer, -1)
        return
    write_varint(writer, _length_as_i32(len(data)))
    _write_all(writer, data)


class _LimitedReader:
    """Reads at most ``limit`` bytes from an underlying reader."""

    def __init__(self, reader: BinaryIO, limit: int) -> None:
        self._reader = reader
        self.limit = limit

    def read(self, size: int = -1) -> bytes:
        if size < 0 or size > self.limit:
            size = self.limit
        if size == 0:
            return b""
        data = self._reader.read(size)
        self.limit -= len(data)
        return data


@dataclass
class RecordHeader:
    """A key/value header attached to a record."""

    key: str
    value: bytes

    @classmethod
    def read(cls, reader: BinaryIO) -> "RecordHeader":
        key_len = _non_negative(read_varint(reader))
        raw_key = _read_bytes(reader, key_len)
        try:
            key = raw_key.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ReadMalformedError(str(exc)) from exc

        value_len = _non_negative(read_varint(reader))
        value = _read_bytes(reader, value_len)
        return cls(key=key, value=value)

    def write(self, writer: BinaryIO) -> None:
        raw_key = self.key.encode("utf-8")
        write_varint(writer, _length_as_i32(len(raw_key)))
        _write_all(writer, raw_key)

        write_varint(writer, _length_as_i32(len(self.value)))
        _write_all(writer, bytes(self.value))


@dataclass
class Record:
    """A single record as stored in a record batch."""

    timestamp_delta: int
    offset_delta: int
    key: Optional[bytes]
    value: Optional[bytes]
    headers: List[RecordHeader] = field(default_factory=list)

    @classmethod
    def read(cls, reader: BinaryIO) -> "Record":
        length = _non_negative(read_varint(reader))
        limited = _LimitedReader(reader, length)

        read_int8(limited)  # attributes, unused
        timestamp_delta = read_varlong(limited)
        offset_delta = read_varint(limited)
        key = _read_nullable_bytes(limited)
        value = _read_nullable_bytes(limited)

        # headers use a varint count, not a regular array
        n_headers = _non_negative(read_varint(limited))
        headers = [RecordHeader.read(limited) for _ in range(n_headers)]

        if limited.limit != 0:
            raise ReadMalformedError(
                f"Found {limited.limit} trailing bytes after Record"
            )

        return cls(
            timestamp_delta=timestamp_delta,
            offset_delta=offset_delta,
            key=key,
            value=value,
            headers=headers,
        )

    def write(self, writer: BinaryIO) -> None:
        data = io.BytesIO()
        write_int8(data, 0)
        write_varlong(data, self.timestamp_delta)
        write_varint(data, self.offset_delta)
        _write_nullable_bytes(data, self.key)
        _write_nullable_bytes(data, self.value)

        write_varint(data, _length_as_i32(len(self.headers)))
        for header in self.headers:
            header.write(data)

        body = data.getvalue()
        write_varint(writer, _length_as_i32(len(body)))
        _write_all(writer, body)


class ControlBatchRecord(enum.Enum):
    """The single record of a control batch: abort or commit of a transaction."""

    ABORT = 0
    COMMIT = 1

    @classmethod
    def read(cls, reader: BinaryIO) -> "ControlBatchRecord":
        version = read_int16(reader)
        if version != 0:
            raise ReadMalformedError(f"Unknown control batch record version: {version}")

        record_type = read_int16(reader)
        try:
            return cls(record_type)
        except ValueError:
            raise ReadMalformedError(
                f"Unknown control batch record type: {record_type}"
            ) from None

    def write(self, writer: BinaryIO) -> None:
        write_int16(writer, 0)
        write_int16(writer, self.value)