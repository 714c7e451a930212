"""Content-derived cache version tokens."""

import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

EMPTY_FINGERPRINT = "v0"


class MutationClockRepository(Protocol):
    """Reads the latest mutation timestamps of the cached tables."""

    def latest_mutations(self) -> list[datetime | None]:
        """Return max(updated_at) for the photo, session and day tables."""


@dataclass
class FingerprintService:
    """Computes the version token that keys every aggregate view.

    Any write to a photo, session or day bumps its ``updated_at``, so the next
    fingerprint differs and previously cached projections are simply never
    looked up again.
    """

    repository: MutationClockRepository

    def fingerprint(self) -> str:
        """Return a short digest of the latest mutation timestamps."""
        timestamps = [ts for ts in self.repository.latest_mutations() if ts is not None]
        if not timestamps:
            return EMPTY_FINGERPRINT
        joined = ":".join(str(int(ts.timestamp())) for ts in timestamps)
        return hashlib.md5(joined.encode("utf-8"), usedforsecurity=False).hexdigest()

    def last_modified(self) -> datetime | None:
        """Return the most recent mutation timestamp, if any."""
        timestamps = [ts for ts in self.repository.latest_mutations() if ts is not None]
        return max(timestamps) if timestamps else None
