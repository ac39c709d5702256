"""Error kinds surfaced by the sync backend."""


class SyncError(Exception):
    """Base class for errors rendered into the JSON error envelope."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SyncError):
    """A required input is missing or malformed."""

    status_code = 400


class NotFoundError(SyncError):
    """The referenced record does not exist."""

    status_code = 404


class StoreError(SyncError):
    """The underlying MongoDB operation failed."""

    status_code = 500
