"""
Error types raised by ScreenMemory components.

None of these are fatal to a running session except StartupFailure;
the command interface reports them and carries on.
"""


class ScreenMemoryError(Exception):
    """Base class for all ScreenMemory errors."""


class CaptureFailure(ScreenMemoryError):
    """The screenshot provider produced no image."""

    def __init__(self, path, message: str = None):
        self.path = path
        if message is None:
            message = (
                f"Screenshot was not created at {path}. "
                "Grant Screen Recording permission to your terminal in "
                "System Settings > Privacy & Security and try again."
            )
        super().__init__(message)


class NotFound(ScreenMemoryError):
    """No record matches the given identity prefix."""

    def __init__(self, prefix: str):
        self.prefix = prefix
        super().__init__(f"No screenshot found matching '{prefix}'")


class EmptyQuery(ScreenMemoryError):
    """A search was requested with a blank query string."""

    def __init__(self):
        super().__init__("Please enter a search query")


class DuplicateRecord(ScreenMemoryError):
    """A record with the same identity is already in the store."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record {record_id} already exists")


class PersistenceLoadFailure(ScreenMemoryError):
    """The index file exists but could not be read or parsed."""


class PersistenceSaveFailure(ScreenMemoryError):
    """The index file could not be written."""


class StartupFailure(ScreenMemoryError):
    """Required directories could not be created."""
