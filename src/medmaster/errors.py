"""Error taxonomy for the progress core.

Every error carries a human-readable ``reason`` that the API layer returns
verbatim to the caller.
"""


class MedmasterError(Exception):
    """Base class for failures reported by core operations."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ValidationError(MedmasterError):
    """Malformed input to a core operation. Nothing was applied."""


class CollaboratorError(MedmasterError):
    """A remote generator/grader failed or returned an unusable payload."""


class ConsistencyError(MedmasterError):
    """The operation would violate a progress-record invariant."""
