from __future__ import annotations

from .client import DEFAULT_TAG, StoreClient
from .collection import Collection
from .datastore import DataStore, Opened
from .documents import Document
from .errors import (
    AlreadyExistsError,
    FlatStoreError,
    InsertFailedError,
    InvalidArgumentError,
    LoadFailedError,
    LocationNotFoundError,
    MultipleResultsError,
    NotInsertedError,
    PersistFailedError,
    QueryFailedError,
    RemoveFailedError,
    UpdateFailedError,
)
from .interfaces import AccessPolicy, Cipher
from .query import Operator, build_path_query
from .settings import Settings, get_settings

__all__ = [
    "DEFAULT_TAG",
    "StoreClient",
    "DataStore",
    "Opened",
    "Collection",
    "Document",
    "Operator",
    "build_path_query",
    "Cipher",
    "AccessPolicy",
    "Settings",
    "get_settings",
    "FlatStoreError",
    "InvalidArgumentError",
    "AlreadyExistsError",
    "NotInsertedError",
    "QueryFailedError",
    "MultipleResultsError",
    "InsertFailedError",
    "UpdateFailedError",
    "RemoveFailedError",
    "PersistFailedError",
    "LoadFailedError",
    "LocationNotFoundError",
]
