"""Build a list in bounded blocks so that untrusted length prefixes cannot
force one huge allocation up front."""

from __future__ import annotations

from typing import Any, BinaryIO, List

from .wire import read_exact as _read_exact

DEFAULT_BLOCK_SIZE = 1024 * 1024 * 10


class VecBuilder:
    """Collects an expected number of elements in blocks of limited size.

    ``element_size`` is the size in bytes of one element; the block size is
    divided by it to get the number of elements per block. A size of zero
    puts every element into a single block.
    """

    def __init__(
        self,
        expected_elements: int,
        block_size: int = DEFAULT_BLOCK_SIZE,
        element_size: int = 1,
    ) -> None:
        if element_size == 0:
            elements_per_block = expected_elements
        else:
            elements_per_block = block_size // element_size
        if elements_per_block == 0:
            raise ValueError("Block size too small for this type!")
        self._elements_per_block = elements_per_block
        self._blocks: List[List[Any]] = [[]]
        self._remaining = expected_elements

    @property
    def blocks(self) -> List[List[Any]]:
        """The blocks collected so far."""
        return self._blocks

    def _target_block(self) -> List[Any]:
        block = self._blocks[-1]
        if len(block) >= self._elements_per_block:
            block = []
            self._blocks.append(block)
        return block

    def push(self, element: Any) -> None:
        """Append one element; raises ValueError past the expected count."""
        if self._remaining <= 0:
            raise ValueError("Got more elements than expected!")
        self._target_block().append(element)
        self._remaining -= 1

    def read_exact(self, reader: BinaryIO) -> "VecBuilder":
        """Fill the remaining elements with bytes (as ints) from ``reader``."""
        while self._remaining > 0:
            block = self._target_block()
            to_read = min(self._remaining, self._elements_per_block - len(block))
            block.extend(_read_exact(reader, to_read))
            self._remaining -= to_read
        return self

    def build(self) -> List[Any]:
        """Return all elements as one list; a single block is returned as is."""
        if len(self._blocks) == 1:
            return self._blocks[0]
        return [element for block in self._blocks for element in block]