from typing import Optional


class SlotPoolError(Exception):
    """Base class for errors surfaced to callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(SlotPoolError):
    """Caller-supplied fields are missing or malformed. Nothing was written."""

    status_code = 400


class NotFoundError(SlotPoolError):
    """Referenced backend does not exist."""

    status_code = 404


class ConflictError(SlotPoolError):
    """A backend with the same id is already registered."""

    status_code = 409


class CapacityExhaustedError(SlotPoolError):
    """
    No enabled backend has a free slot.

    Retryable: callers are expected to back off and try again.
    """

    status_code = 503

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class CorruptStateError(SlotPoolError):
    """A stored record failed structural validation and was discarded."""

    status_code = 500
