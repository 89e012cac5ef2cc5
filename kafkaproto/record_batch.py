"""Record batches in the version 2 message format.

A batch starts with its base offset and length, then a header that is
protected by a CRC-32C checksum. The checked part holds the batch attributes
and the records, which may be compressed as a whole.
"""

from __future__ import annotations

import enum
import gzip
import io
import zlib
from dataclasses import dataclass, field
from typing import BinaryIO, List, Union

import lz4.frame
import zstandard

from . import snappy
from .protocol_record import ControlBatchRecord, Record
from .vec_builder import VecBuilder
from .wire import (
    ReadIOError,
    ReadMalformedError,
    ReadOverflowError,
    WriteIOError,
    WriteMalformedError,
    read_int8,
    read_int16,
    read_int32,
    read_int64,
    write_int8,
    write_int16,
    write_int32,
    write_int64,
)

Records = Union[ControlBatchRecord, List[Record]]

_I32_MAX = (1 << 31) - 1
_MAGIC = 2
# partitionLeaderEpoch + magic + crc
_HEADER_AFTER_LENGTH = 4 + 1 + 4

_DECODER_ERRORS = (EOFError, zlib.error, RuntimeError, zstandard.ZstdError)


def _make_crc32c_table() -> List[int]:
    table = []
    for n in range(256):
        crc = n
        for _ in range(8):
            crc = (crc >> 1) ^ 0x82F63B78 if crc & 1 else crc >> 1
        table.append(crc)
    return table


_CRC32C_TABLE = _make_crc32c_table()


def _crc32c(data: bytes) -> int:
    crc = 0xFFFFFFFF
    table = _CRC32C_TABLE
    for byte in data:
        crc = table[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ 0xFFFFFFFF


def _write_all(writer: BinaryIO, data: bytes) -> None:
    try:
        writer.write(data)
    except OSError as exc:
        raise WriteIOError(str(exc)) from exc


def _read_rest(reader: BinaryIO) -> bytes:
    try:
        return reader.read()
    except OSError as exc:
        raise ReadIOError(str(exc)) from exc


class RecordBatchCompression(enum.Enum):
    """Compression applied to the records of a batch."""

    NO_COMPRESSION = 0
    GZIP = 1
    SNAPPY = 2
    LZ4 = 3
    ZSTD = 4


class RecordBatchTimestampType(enum.Enum):
    """Whether timestamps were set by the producer or by the broker."""

    CREATE_TIME = 0
    LOG_APPEND_TIME = 1


def _read_records(reader: BinaryIO, is_control: bool, n_records: int) -> Records:
    if is_control:
        if n_records != 1:
            raise ReadMalformedError(f"Expected 1 control record but got {n_records}")
        return ControlBatchRecord.read(reader)
    return [Record.read(reader) for _ in range(n_records)]


def _write_records(writer: BinaryIO, records: Records) -> None:
    if isinstance(records, ControlBatchRecord):
        records.write(writer)
        return
    for record in records:
        record.write(writer)


def _ensure_eof(reader: BinaryIO, message: str) -> None:
    try:
        extra = reader.read(1)
    except EOFError:
        return
    except OSError as exc:
        raise ReadIOError(str(exc)) from exc
    if extra:
        raise ReadMalformedError(message)


def _open_decoder(compression: RecordBatchCompression, compressed: bytes):
    if compression is RecordBatchCompression.GZIP:
        return gzip.GzipFile(fileobj=io.BytesIO(compressed), mode="rb"), "gzip"
    if compression is RecordBatchCompression.LZ4:
        return lz4.frame.LZ4FrameFile(io.BytesIO(compressed), mode="rb"), "LZ4"
    if compression is RecordBatchCompression.SNAPPY:
        return io.BytesIO(snappy.decompress_kafka(compressed)), "Snappy"
    reader = zstandard.ZstdDecompressor().stream_reader(io.BytesIO(compressed))
    return reader, "zstd"


def _read_compressed(
    reader: BinaryIO,
    compression: RecordBatchCompression,
    is_control: bool,
    n_records: int,
) -> Records:
    if compression is RecordBatchCompression.NO_COMPRESSION:
        return _read_records(reader, is_control, n_records)

    compressed = _read_rest(reader)
    try:
        decoder, name = _open_decoder(compression, compressed)
        records = _read_records(decoder, is_control, n_records)
        _ensure_eof(decoder, f"Data left in {name} block")
    except _DECODER_ERRORS as exc:
        raise ReadIOError(str(exc)) from exc
    return records


def _compress(compression: RecordBatchCompression, data: bytes) -> bytes:
    if compression is RecordBatchCompression.GZIP:
        return gzip.compress(data, compresslevel=6, mtime=0)
    if compression is RecordBatchCompression.LZ4:
        # independent blocks are the only mode Kafka supports
        return lz4.frame.compress(data, block_linked=False)
    if compression is RecordBatchCompression.SNAPPY:
        return snappy.compress(data)
    return zstandard.ZstdCompressor().compress(data)


@dataclass
class RecordBatchBody:
    """The CRC-protected part of a record batch."""

    last_offset_delta: int
    first_timestamp: int
    max_timestamp: int
    producer_id: int
    producer_epoch: int
    base_sequence: int
    records: Records = field(default_factory=list)
    compression: RecordBatchCompression = RecordBatchCompression.NO_COMPRESSION
    is_transactional: bool = False
    timestamp_type: RecordBatchTimestampType = RecordBatchTimestampType.CREATE_TIME

    @classmethod
    def read(cls, reader: BinaryIO) -> "RecordBatchBody":
        attributes = read_int16(reader)
        code = attributes & 0x7
        try:
            compression = RecordBatchCompression(code)
        except ValueError:
            raise ReadMalformedError(f"Invalid compression type: {code}") from None
        if (attributes >> 3) & 0x1:
            timestamp_type = RecordBatchTimestampType.LOG_APPEND_TIME
        else:
            timestamp_type = RecordBatchTimestampType.CREATE_TIME
        is_transactional = bool((attributes >> 4) & 0x1)
        is_control = bool((attributes >> 5) & 0x1)

        last_offset_delta = read_int32(reader)
        first_timestamp = read_int64(reader)
        max_timestamp = read_int64(reader)
        producer_id = read_int64(reader)
        producer_epoch = read_int16(reader)
        base_sequence = read_int32(reader)

        raw_count = read_int32(reader)
        if raw_count == -1:
            n_records = 0
        elif raw_count < 0:
            raise ReadOverflowError(
                f"out of range integral type conversion attempted: {raw_count}"
            )
        else:
            n_records = raw_count

        records = _read_compressed(reader, compression, is_control, n_records)

        return cls(
            last_offset_delta=last_offset_delta,
            first_timestamp=first_timestamp,
            max_timestamp=max_timestamp,
            producer_id=producer_id,
            producer_epoch=producer_epoch,
            base_sequence=base_sequence,
            records=records,
            compression=compression,
            is_transactional=is_transactional,
            timestamp_type=timestamp_type,
        )

    def write(self, writer: BinaryIO) -> None:
        is_control = isinstance(self.records, ControlBatchRecord)
        attributes = self.compression.value
        if self.timestamp_type is RecordBatchTimestampType.LOG_APPEND_TIME:
            attributes |= 1 << 3
        if self.is_transactional:
            attributes |= 1 << 4
        if is_control:
            attributes |= 1 << 5
        write_int16(writer, attributes)

        write_int32(writer, self.last_offset_delta)
        write_int64(writer, self.first_timestamp)
        write_int64(writer, self.max_timestamp)
        write_int64(writer, self.producer_id)
        write_int16(writer, self.producer_epoch)
        write_int32(writer, self.base_sequence)

        n_records = 1 if is_control else len(self.records)
        write_int32(writer, n_records)

        if self.compression is RecordBatchCompression.NO_COMPRESSION:
            _write_records(writer, self.records)
            return
        plain = io.BytesIO()
        _write_records(plain, self.records)
        _write_all(writer, _compress(self.compression, plain.getvalue()))


@dataclass
class RecordBatch:
    """A complete record batch with offset, length and CRC header."""

    base_offset: int
    partition_leader_epoch: int
    last_offset_delta: int
    first_timestamp: int
    max_timestamp: int
    producer_id: int
    producer_epoch: int
    base_sequence: int
    records: Records = field(default_factory=list)
    compression: RecordBatchCompression = RecordBatchCompression.NO_COMPRESSION
    is_transactional: bool = False
    timestamp_type: RecordBatchTimestampType = RecordBatchTimestampType.CREATE_TIME

    def _body(self) -> RecordBatchBody:
        return RecordBatchBody(
            last_offset_delta=self.last_offset_delta,
            first_timestamp=self.first_timestamp,
            max_timestamp=self.max_timestamp,
            producer_id=self.producer_id,
            producer_epoch=self.producer_epoch,
            base_sequence=self.base_sequence,
            records=self.records,
            compression=self.compression,
            is_transactional=self.is_transactional,
            timestamp_type=self.timestamp_type,
        )

    @classmethod
    def read(cls, reader: BinaryIO) -> "RecordBatch":
        base_offset = read_int64(reader)

        # the length covers everything after itself, including epoch, magic and crc
        length = read_int32(reader)
        if length < 0:
            raise ReadMalformedError(
                f"out of range integral type conversion attempted: {length}"
            )
        data_len = length - _HEADER_AFTER_LENGTH
        if data_len < 0:
            raise ReadMalformedError(f"Record batch len too small: {length}")

        partition_leader_epoch = read_int32(reader)

        magic = read_int8(reader)
        if magic != _MAGIC:
            raise ReadMalformedError(f"Invalid magic number in record batch: {magic}")

        crc = read_int32(reader) & 0xFFFFFFFF

        data = bytes(VecBuilder(data_len).read_exact(reader).build())
        actual_crc = _crc32c(data)
        if crc != actual_crc:
            raise ReadMalformedError(
                f"CRC error, got 0x{actual_crc:x}, expected 0x{crc:x}"
            )

        cursor = io.BytesIO(data)
        body = RecordBatchBody.read(cursor)
        bytes_left = len(data) - cursor.tell()
        if bytes_left != 0:
            raise ReadMalformedError(
                f"Found {bytes_left} trailing bytes after RecordBatch"
            )

        return cls(
            base_offset=base_offset,
            partition_leader_epoch=partition_leader_epoch,
            last_offset_delta=body.last_offset_delta,
            first_timestamp=body.first_timestamp,
            max_timestamp=body.max_timestamp,
            producer_id=body.producer_id,
            producer_epoch=body.producer_epoch,
            base_sequence=body.base_sequence,
            records=body.records,
            compression=body.compression,
            is_transactional=body.is_transactional,
            timestamp_type=body.timestamp_type,
        )

    def write(self, writer: BinaryIO) -> None:
        buffer = io.BytesIO()
        self._body().write(buffer)
        data = buffer.getvalue()

        write_int64(writer, self.base_offset)

        length = len(data) + _HEADER_AFTER_LENGTH
        if length > _I32_MAX:
            raise WriteMalformedError(
                f"length {length} does not fit into a 32-bit integer"
            )
        write_int32(writer, length)

        write_int32(writer, self.partition_leader_epoch)
        write_int8(writer, _MAGIC)

        crc = _crc32c(data)
        if crc > _I32_MAX:
            crc -= 1 << 32
        write_int32(writer, crc)

        _write_all(writer, data)