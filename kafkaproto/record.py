"""High-level records as seen by users of the client."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional


@dataclass
class Record:
    """A record with optional key and value, headers and a timestamp."""

    key: Optional[bytes]
    value: Optional[bytes]
    headers: Dict[str, bytes]
    timestamp: datetime

    def approximate_size(self) -> int:
        """Approximate uncompressed size of the record in bytes."""
        return (
            len(self.key or b"")
            + len(self.value or b"")
            + sum(len(k.encode("utf-8")) + len(v) for k, v in self.headers.items())
        )


@dataclass
class RecordAndOffset:
    """A record together with its offset in the partition."""

    record: Record
    offset: int