"""Domain errors raised by repositories and services."""


class BurstIdConflictError(Exception):
    """Raised when a session insert collides with an existing burst id."""

    def __init__(self, burst_id: str) -> None:
        super().__init__(f"Burst id already exists: {burst_id}")
        self.burst_id = burst_id


class RecordNotFoundError(LookupError):
    """Raised when a referenced record does not exist."""
