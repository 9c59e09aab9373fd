from __future__ import annotations


class FlatStoreError(Exception):
    """Base error for the project."""


class InvalidArgumentError(FlatStoreError):
    """Raised when a required item or argument is missing or unusable."""


class AlreadyExistsError(FlatStoreError):
    """Raised when inserting an item that already carries an id."""


class NotInsertedError(FlatStoreError):
    """Raised when updating an item that was never inserted."""


class QueryFailedError(FlatStoreError):
    """Raised when a lookup cannot be evaluated."""


class MultipleResultsError(QueryFailedError):
    """Raised when a single-result lookup matches more than one document."""


class InsertFailedError(FlatStoreError):
    pass


class UpdateFailedError(FlatStoreError):
    pass


class RemoveFailedError(FlatStoreError):
    pass


class PersistFailedError(FlatStoreError):
    """Raised when the collection cannot be written to its backing file."""


class LoadFailedError(FlatStoreError):
    """Raised when a backing file cannot be read or parsed."""


class LocationNotFoundError(FlatStoreError):
    """Raised for unknown location tags or missing root directories."""
