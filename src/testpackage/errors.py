"""Exceptions raised by TestPackage."""


class TestPackageError(Exception):
    """Base class for TestPackage errors."""


class ConfigurationError(TestPackageError):
    """Raised for problems detected before any test runs.

    Bad arguments, unreadable properties files, unresolvable or
    unimportable packages and empty test plans all end up here.
    """


class HistoryStoreError(TestPackageError):
    """Raised when the history file cannot be read or written."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path
