"""
Custom exception hierarchy for the media reorganizer.

Per-file failures (unparseable dates, transfers, metadata writes) are
recorded in the run statistics; enumeration and configuration failures
abort the whole run.
"""


class MediaReorganizerError(Exception):
    """Base exception for all media reorganizer errors."""
    pass


class UnparseableDateError(MediaReorganizerError):
    """Raised when no date pattern matches a filename or its path."""
    pass


class TransferError(MediaReorganizerError):
    """Raised when copying, downloading or uploading a file fails."""
    pass


class MetadataWriteError(MediaReorganizerError):
    """Raised when capture timestamps cannot be written to a file."""
    pass


class EnumerationError(MediaReorganizerError):
    """Raised when the source root cannot be listed."""
    pass


class ConfigurationError(MediaReorganizerError):
    """Raised when run options are inconsistent or incomplete."""
    pass
