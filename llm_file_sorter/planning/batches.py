"""
Batch planning: split scanned files into fixed-size request groups.
"""

from typing import Sequence

from ..models import Batch, FileEntry


def batch_id_for(index: int) -> str:
    """Correlation id for the 0-based batch index."""
    return f"batch-{index + 1:04d}"


def plan_batches(entries: Sequence[FileEntry], batch_size: int) -> list[Batch]:
    """
    Split files into contiguous batches, preserving scan order.

    Args:
        entries: Files in scan order.
        batch_size: Maximum files per batch; the last batch may be smaller.

    Returns:
        List of Batch objects with unique ids.

    Raises:
        ValueError: If batch_size is less than 1.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1 (got {batch_size})")

    return [
        Batch(batch_id=batch_id_for(i), entries=tuple(entries[start:start + batch_size]))
        for i, start in enumerate(range(0, len(entries), batch_size))
    ]
