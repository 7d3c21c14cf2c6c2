"""Error taxonomy for answer processing.

Every error is scoped to a single answer event; none is fatal to the process.
"""


class StudyEngineError(Exception):
    """Base class for engine errors."""


class StoreUnavailable(StudyEngineError):
    """A record store call failed or timed out. Retryable."""


class RecordNotFound(StudyEngineError):
    """A requested record does not exist."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class InvalidInput(StudyEngineError, ValueError):
    """Input rejected before any state was touched. Not retryable."""
