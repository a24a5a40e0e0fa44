"""Error taxonomy for the progression engine.

Each error carries a machine-readable ``code`` that endpoints copy into the
``{"error": {"code", "message"}}`` envelope.
"""


class ProgressionError(Exception):
    """Base class for progression and achievement errors."""

    code = "progression_error"

    def __init__(self, message: str = "", code: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        if code is not None:
            self.code = code


class InvalidInput(ProgressionError):
    """Required activity fields are missing or malformed."""

    code = "invalid_input"


class NotFound(ProgressionError):
    """A progression or referenced entity does not exist."""

    code = "not_found"


class Forbidden(ProgressionError):
    """The actor may not act on the requested user's data."""

    code = "forbidden"


class StorageFailure(ProgressionError):
    """The persistence layer failed."""

    code = "storage_failure"


class ConflictError(StorageFailure):
    """A save was attempted against a stale progression version."""

    code = "version_conflict"


class EvaluationFailure(ProgressionError):
    """Achievement evaluation failed. Never surfaced to callers."""

    code = "evaluation_failure"
