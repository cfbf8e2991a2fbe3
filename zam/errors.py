"""Exceptions raised by the zam storage and interchange layers."""


class ZamError(RuntimeError):
    """Base class for alias store errors."""


class StorageUnavailable(ZamError):
    """Raised when the backing database cannot be opened or used."""


class DuplicateKey(ZamError):
    """Raised when an alias with the same name is already stored."""

    def __init__(self, alias: str):
        super().__init__(f"Alias '{alias}' already exists")
        self.alias = alias


class NotFound(ZamError):
    """Raised when an operation targets an alias that is not stored."""

    def __init__(self, alias: str):
        super().__init__(f"Alias '{alias}' does not exist")
        self.alias = alias


class MalformedInput(ZamError):
    """Raised when an import file or timestamp cannot be decoded."""


class ZamIOError(ZamError):
    """Raised when reading or writing an interchange file fails."""
