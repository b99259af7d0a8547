"""Helper functions for chunking sequences."""
from collections.abc import Iterator, Sequence
from typing import TypeVar

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[tuple[int, list[T]]]:
    """Yield (offset, chunk) pairs so each bulk RPC call stays small."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    for offset in range(0, len(items), size):
        yield offset, list(items[offset : offset + size])
