"""Split a URL list into contiguous per-worker batches."""

from collections.abc import Iterator, Sequence
from typing import TypeVar

T = TypeVar("T")


def batch_range(total: int, workers: int, index: int) -> tuple[int, int] | None:
    """Return the ``[start, end)`` range owned by worker ``index``.

    Batches are ``ceil(total / workers)`` long, so every non-empty range but
    the last has the same size. Once a worker's range would start at or past
    ``total`` it gets no work, and neither does any later worker.

    Args:
        total: Number of items to split.
        workers: Number of workers. Must be at least 1.
        index: Zero-based worker index.

    Returns:
        The ``(start, end)`` pair, or None when this worker has no work.

    Examples:
        >>> [batch_range(10, 3, i) for i in range(4)]
        [(0, 4), (4, 8), (8, 10), None]
        >>> batch_range(0, 2, 0) is None
        True
    """
    batch_size = -(-total // workers)
    start = index * batch_size
    if start >= total:
        return None
    return start, min(start + batch_size, total)


def iter_batches(
    items: Sequence[T], workers: int
) -> Iterator[tuple[int, list[T]]]:
    """Yield ``(worker_index, batch)`` for every worker that has work.

    Stops at the first empty range, since later ones are empty too.
    """
    for index in range(workers):
        bounds = batch_range(len(items), workers, index)
        if bounds is None:
            break
        start, end = bounds
        yield index, list(items[start:end])
