"""
Error taxonomy for the holder ingestion pipeline.

Source errors end the current run and trigger the backup fallback.
Backup errors only occur on the recovery path and are never fatal.
An unknown address is a negative query result, not an error.
"""


class HoldersIngestError(Exception):
    """Base class for all pipeline errors."""
    pass


class SourceError(HoldersIngestError):
    """The paged holder source could not deliver a page."""

    def __init__(self, message: str, page: int | None = None):
        super().__init__(message)
        self.page = page


class SourceUnavailable(SourceError):
    """Network or transport failure talking to the upstream API."""
    pass


class SourceMalformed(SourceError):
    """The upstream API answered with an unexpected response shape."""
    pass


class BackupError(HoldersIngestError):
    """The durable backup could not be read."""
    pass


class BackupAbsent(BackupError):
    pass


class BackupCorrupt(BackupError):
    pass


class ConcurrentRunRejected(HoldersIngestError):
    """An ingestion run was requested while another one is active."""

    def __init__(self, message: str = "Already fetching data"):
        super().__init__(message)
