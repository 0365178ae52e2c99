"""Error types raised by the storage and cache layers."""


class StorageError(Exception):
    """Base class for s3shelf storage errors."""


class InvalidArgument(StorageError, ValueError):
    """Raised for blank keys, non-positive page sizes, or missing values."""


class NotFound(StorageError, LookupError):
    """Raised when an object, bucket, or rename source does not exist."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class AlreadyExists(StorageError):
    """Raised when a conditional write finds the key already occupied."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class DecodeError(StorageError, ValueError):
    """Raised when a payload is empty, null, or not a valid record."""
