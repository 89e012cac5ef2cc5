# kafkaproto

Reading and writing the Kafka record format (message format version 2) in
pure Python.

The package provides:

- `kafkaproto.wire`: big-endian `int8`/`int16`/`int32`/`int64`, the zig-zag
  `varint` and `varlong` encodings and unsigned varints, as `read_*` and
  `write_*` functions over binary streams. Errors are raised as `ReadError`
  (`ReadIOError`, `ReadOverflowError`, `ReadMalformedError`) and `WriteError`
  (`WriteIOError`, `WriteOverflowError`, `WriteMalformedError`).
- `kafkaproto.protocol_record`: `Record`, `RecordHeader` and
  `ControlBatchRecord` (`ABORT` / `COMMIT`), each with a `read` class method
  and a `write` method.
- `kafkaproto.record_batch`: `RecordBatch` and `RecordBatchBody`, with
  CRC-32C checking and gzip, Snappy (raw and the Java chunked framing), LZ4
  and zstd compression, chosen with `RecordBatchCompression`; timestamps are
  marked with `RecordBatchTimestampType`.
- `kafkaproto.snappy`: a raw Snappy codec (`compress`, `decompress`,
  `decompress_len`, `carefully_decompress`, `decompress_kafka`) that does not
  trust the length claimed by its input.
- `kafkaproto.vec_builder`: `VecBuilder`, which collects a length-prefixed
  amount of data in bounded blocks.
- Small helpers: `Record` and `RecordAndOffset` (`kafkaproto.record`),
  `Topic` (`kafkaproto.topic`), `exactly_one` / `NotExactlyOneError`
  (`kafkaproto.validation`) and `maybe_throttle` / `Throttle`
  (`kafkaproto.throttle`).

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Reading and writing a record batch

```python
import io

from kafkaproto.protocol_record import Record, RecordHeader
from kafkaproto.record_batch import (
    RecordBatch,
    RecordBatchCompression,
    RecordBatchTimestampType,
)

batch = RecordBatch(
    base_offset=0,
    partition_leader_epoch=0,
    last_offset_delta=0,
    first_timestamp=1641388919,
    max_timestamp=1641388919,
    producer_id=-1,
    producer_epoch=-1,
    base_sequence=-1,
    records=[
        Record(
            timestamp_delta=0,
            offset_delta=0,
            key=b"",
            value=b"hello kafka",
            headers=[RecordHeader(key="foo", value=b"bar")],
        )
    ],
    compression=RecordBatchCompression.GZIP,
    is_transactional=False,
    timestamp_type=RecordBatchTimestampType.CREATE_TIME,
)

buf = io.BytesIO()
batch.write(buf)

buf.seek(0)
assert RecordBatch.read(buf) == batch
```

A batch's `records` is either a list of `Record` objects or a single
`ControlBatchRecord`; the latter sets the control flag in the attributes.

Malformed input, a CRC mismatch or trailing bytes raise
`kafkaproto.wire.ReadMalformedError`; a stream that ends early, or
compressed data that the decoder cannot read, raises
`kafkaproto.wire.ReadIOError`. Both are subclasses of `ReadError`.

## High-level records

```python
from datetime import datetime, timezone

from kafkaproto.record import Record

record = Record(
    key=b"k",
    value=b"hello kafka",
    headers={"foo": b"bar"},
    timestamp=datetime.fromtimestamp(1.337, tz=timezone.utc),
)
record.approximate_size()  # 1 + 11 + 3 + 3 == 18
```

## Snappy

```python
from kafkaproto import snappy

packed = snappy.compress(b"x" * 1000)
assert snappy.carefully_decompress(packed, 1024) == b"x" * 1000
```

`carefully_decompress` starts with an output limit of `start_block_size`
bytes and doubles it only while the data needs more room, so a forged length
prefix cannot make it allocate gigabytes. Decoding errors raise
`snappy.SnappyError`, a subclass of `ReadMalformedError`.

## Throttling and validation

`maybe_throttle(ms)` does nothing for `None`, zero or a negative value (the
last is logged as a warning) and raises `Throttle` with a `timedelta`
`duration` otherwise. `exactly_one(items)` returns the only item of an
iterable or raises `NotExactlyOneError`, whose `count` holds the number of
items found.

## What this package does not do

It only encodes and decodes data. It has no network client: it does not
connect to brokers, fetch metadata, produce or consume records, or manage
topics.