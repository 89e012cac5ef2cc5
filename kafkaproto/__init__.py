"""Encoding and decoding of Kafka record batches (message format v2)."""

__version__ = "0.4.0"

__all__ = [
    "protocol_record",
    "record",
    "record_batch",
    "snappy",
    "throttle",
    "topic",
    "validation",
    "vec_builder",
    "wire",
]