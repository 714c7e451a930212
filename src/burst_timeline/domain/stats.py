"""Domain models for statistics."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PhotoTotals:
    """Photo counters across the whole archive."""

    total: int
    rejected: int
    with_face_data: int
