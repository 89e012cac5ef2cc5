"""Topic metadata."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple


@dataclass(frozen=True)
class Topic:
    """A topic name and its partition ids, kept unique and sorted."""

    name: str
    partitions: Tuple[int, ...] = ()

    def __init__(self, name: str, partitions: Iterable[int] = ()) -> None:
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "partitions", tuple(sorted(set(partitions))))