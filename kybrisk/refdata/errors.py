"""Exceptions raised by the reference data layer."""


class RefDataError(Exception):
    """Base exception for reference-data errors."""
    pass


class SourceUnreadableError(RefDataError):
    """Exception raised when a reference-data source cannot be opened or read."""
    pass


class MalformedSourceError(RefDataError):
    """Exception raised when a reference-data source cannot be parsed."""
    pass


class UninitializedError(RefDataError):
    """Exception raised when a lookup is attempted before initialization completed."""
    pass


class NotFoundError(RefDataError):
    """Exception raised when a registration number is not in the registry."""

    def __init__(self, registration_number: str):
        self.registration_number = registration_number
        super().__init__(f"Registration number {registration_number} not found in registry")
