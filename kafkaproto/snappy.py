"""Raw (unframed) Snappy compression as used inside Kafka record batches.

Decompression never trusts the uncompressed length stored in the header
blindly. It also understands the chunked framing that the Java client writes.
"""

from __future__ import annotations

import io
from typing import Optional, Tuple

from .vec_builder import DEFAULT_BLOCK_SIZE
from .wire import ReadMalformedError, read_exact

_JAVA_MAGIC = b"\x82SNAPPY\x00"
_JAVA_VERSION = b"\x00\x00\x00\x01"
_JAVA_COMPAT = b"\x00\x00\x00\x01"

_MAX_HEADER_BYTES = 5
_MAX_UNCOMPRESSED = 0xFFFFFFFF
_MAX_OFFSET = 0xFFFF


class SnappyError(ReadMalformedError):
    """Snappy data could not be decoded.

    ``dst_too_small`` is true when decoding failed only because the output
    was limited to fewer bytes than the data decodes to.
    """

    def __init__(self, message: str, dst_too_small: bool = False) -> None:
        super().__init__(message)
        self.dst_too_small = dst_too_small


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


def _emit_literal(out: bytearray, literal: bytes) -> None:
    if not literal:
        return
    n = len(literal) - 1
    if n < 60:
        out.append(n << 2)
    else:
        width = (n.bit_length() + 7) // 8
        out.append((59 + width) << 2)
        out += n.to_bytes(width, "little")
    out += literal


def _emit_copy_at_most_64(out: bytearray, offset: int, length: int) -> None:
    if 4 <= length < 12 and offset < 2048:
        out.append(1 | ((length - 4) << 2) | ((offset >> 8) << 5))
        out.append(offset & 0xFF)
    else:
        out.append(2 | ((length - 1) << 2))
        out += offset.to_bytes(2, "little")


def _emit_copy(out: bytearray, offset: int, length: int) -> None:
    while length >= 68:
        _emit_copy_at_most_64(out, offset, 64)
        length -= 64
    if length > 64:
        _emit_copy_at_most_64(out, offset, 60)
        length -= 60
    _emit_copy_at_most_64(out, offset, length)


def compress(data: bytes) -> bytes:
    """Compress ``data`` into the raw Snappy format."""
    data = bytes(data)
    n = len(data)
    if n > _MAX_UNCOMPRESSED:
        raise ValueError(f"input too large for snappy: {n} bytes")
    out = bytearray(_encode_uvarint(n))
    table = {}
    literal_start = 0
    pos = 0
    while pos + 4 <= n:
        key = data[pos:pos + 4]
        candidate = table.get(key)
        table[key] = pos
        if candidate is None or pos - candidate > _MAX_OFFSET:
            pos += 1
            continue
        length = 4
        while pos + length < n and data[candidate + length] == data[pos + length]:
            length += 1
        _emit_literal(out, data[literal_start:pos])
        _emit_copy(out, pos - candidate, length)
        pos += length
        literal_start = pos
    _emit_literal(out, data[literal_start:])
    return bytes(out)


def _read_header(data: bytes) -> Tuple[int, int]:
    """Return the uncompressed length and the size of its encoding."""
    if not data:
        raise SnappyError("snappy: corrupt input (empty)")
    value = 0
    shift = 0
    for index, byte in enumerate(data[:_MAX_HEADER_BYTES]):
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            if value > _MAX_UNCOMPRESSED:
                raise SnappyError(
                    f"snappy: decompressed length {value} exceeds maximum {_MAX_UNCOMPRESSED}"
                )
            return value, index + 1
        shift += 7
    raise SnappyError("snappy: corrupt input (invalid length header)")


def decompress_len(data: bytes) -> int:
    """Return the uncompressed length stored at the start of ``data``."""
    return _read_header(bytes(data))[0]


def _too_small(needed: int, limit: int) -> SnappyError:
    return SnappyError(
        f"snappy: output needs at least {needed} bytes but only {limit} are available",
        dst_too_small=True,
    )


def _decode(data: bytes, pos: int, expected: int) -> bytes:
    """Decode the body starting at ``pos`` into exactly ``expected`` bytes."""
    out = bytearray()
    end = len(data)
    while pos < end:
        tag = data[pos]
        pos += 1
        kind = tag & 0x3
        if kind == 0:
            length = tag >> 2
            if length >= 60:
                width = length - 59
                if pos + width > end:
                    raise SnappyError("snappy: corrupt input (truncated literal length)")
                length = int.from_bytes(data[pos:pos + width], "little")
                pos += width
            length += 1
            if pos + length > end:
                raise SnappyError(
                    f"snappy: literal of {length} bytes exceeds remaining input of {end - pos} bytes"
                )
            if len(out) + length > expected:
                raise _too_small(len(out) + length, expected)
            out += data[pos:pos + length]
            pos += length
            continue

        width = {1: 1, 2: 2, 3: 4}[kind]
        if pos + width > end:
            raise SnappyError("snappy: corrupt input (truncated copy)")
        if kind == 1:
            length = 4 + ((tag >> 2) & 0x7)
            offset = ((tag >> 5) << 8) | data[pos]
        else:
            length = (tag >> 2) + 1
            offset = int.from_bytes(data[pos:pos + width], "little")
        pos += width
        if offset == 0 or offset > len(out):
            raise SnappyError(
                f"snappy: invalid copy offset {offset} at output position {len(out)}"
            )
        if len(out) + length > expected:
            raise _too_small(len(out) + length, expected)
        start = len(out) - offset
        if offset >= length:
            out += out[start:start + length]
        else:
            pattern = bytes(out[start:])
            out += (pattern * (length // offset + 1))[:length]

    if len(out) != expected:
        raise SnappyError(
            f"snappy: header mismatch, expected {expected} bytes but got {len(out)}"
        )
    return bytes(out)


def decompress(data: bytes, max_len: Optional[int] = None) -> bytes:
    """Decompress raw Snappy ``data``.

    If ``max_len`` is given and the header announces more bytes, a
    SnappyError with ``dst_too_small`` set is raised.
    """
    data = bytes(data)
    length, pos = _read_header(data)
    if max_len is not None and length > max_len:
        raise _too_small(length, max_len)
    return _decode(data, pos, length)


def carefully_decompress(data: bytes, start_block_size: int = DEFAULT_BLOCK_SIZE) -> bytes:
    """Decompress without trusting the announced size.

    Output is first limited to ``start_block_size`` bytes; the limit doubles
    while the data keeps needing more room, up to the announced size.
    """
    data = bytes(data)
    uncompressed_size, pos = _read_header(data)
    limit = start_block_size
    while True:
        try_size = min(uncompressed_size, limit)
        try:
            output = _decode(data, pos, try_size)
        except SnappyError as exc:
            if exc.dst_too_small and limit < uncompressed_size:
                limit *= 2
                continue
            raise
        if len(output) != uncompressed_size:
            raise SnappyError("broken snappy data")
        return output


def decompress_kafka(data: bytes, start_block_size: int = DEFAULT_BLOCK_SIZE) -> bytes:
    """Decompress Snappy data from a record batch, raw or in Java framing."""
    data = bytes(data)
    if not data.startswith(_JAVA_MAGIC):
        return carefully_decompress(data, start_block_size)

    content = data[len(_JAVA_MAGIC):]
    cursor = io.BytesIO(content)

    version = read_exact(cursor, 4)
    if version != _JAVA_VERSION:
        raise SnappyError(
            "Detected Java-specific Snappy compression, "
            f"but got unknown version: {list(version)}"
        )
    compat = read_exact(cursor, 4)
    if compat != _JAVA_COMPAT:
        raise SnappyError(
            "Detected Java-specific Snappy compression, "
            f"but got unknown compat flags: {list(compat)}"
        )

    output = bytearray()
    while cursor.tell() < len(content):
        chunk_length = int.from_bytes(read_exact(cursor, 4), "big")
        bytes_left = len(content) - cursor.tell()
        if chunk_length > bytes_left:
            raise SnappyError(
                "Java-specific Snappy-compressed data has illegal chunk length, "
                f"got {chunk_length} bytes but only {bytes_left} bytes are left."
            )
        chunk = read_exact(cursor, chunk_length)
        output += carefully_decompress(chunk, start_block_size)
    return bytes(output)