from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar

from .collection import Collection
from .documents import Document
from .errors import InvalidArgumentError
from .interfaces import AccessPolicy, Cipher
from .paths import COLLECTION_SUFFIX, apply_access, check_name, collection_path, ensure_dir

logger = logging.getLogger(__name__)

H = TypeVar("H")
T = TypeVar("T", bound=Document)


@dataclass(frozen=True)
class Opened(Generic[H]):
    """
    A handle plus whether opening it created the underlying directory or file.
    """

    handle: H
    created: bool


class DataStore:
    """
    A directory of collections, one `<name>.json` file per collection.

    Collection handles are cached per name, so every caller shares the same
    in-memory state for a given collection.
    """

    def __init__(
        self,
        location: str | Path,
        name: str,
        *,
        access_everyone: bool = False,
        cipher: Cipher | None = None,
        encryption_enabled: bool = True,
        caching_enabled: bool = True,
        access_policy: AccessPolicy | None = None,
    ) -> None:
        self.name = check_name(name, "data store")
        self.location = Path(location)
        self.path = self.location / self.name
        self.access_everyone = access_everyone
        self.encryption_enabled = encryption_enabled
        self.caching_enabled = caching_enabled
        self._cipher = cipher
        self._access_policy = access_policy or apply_access
        self._collections: dict[str, Collection[Any]] = {}

        self.created = ensure_dir(self.path)
        if self.created:
            self._access_policy(self.path, access_everyone)
            logger.debug("DATA STORE CREATE: %s", self.path)

    def __repr__(self) -> str:
        return f"DataStore({self.name!r}, path={str(self.path)!r})"

    def open_collection(self, name: str, model: type[T] = Document, encrypted: bool = False) -> Opened[Collection[T]]:  # type: ignore[assignment]
        check_name(name, "collection")
        use_cipher = encrypted and self.encryption_enabled

        existing = self._collections.get(name)
        if existing is not None:
            if existing.model is not model:
                raise InvalidArgumentError(
                    f"collection {name!r} is already open with model {existing.model.__name__}"
                )
            if existing.encrypted != use_cipher:
                raise InvalidArgumentError(f"collection {name!r} is already open with encrypted={existing.encrypted}")
            return Opened(existing, False)

        if use_cipher and self._cipher is None:
            raise InvalidArgumentError("encryption was requested but no cipher is configured")

        collection: Collection[T] = Collection(
            collection_path(self.path, name),
            model,
            caching_enabled=self.caching_enabled,
            cipher=self._cipher if use_cipher else None,
            access_everyone=self.access_everyone,
            access_policy=self._access_policy,
        )
        self._collections[name] = collection
        return Opened(collection, collection.created)

    def get_collection(self, name: str, model: type[T] = Document, encrypted: bool = False) -> Collection[T]:  # type: ignore[assignment]
        return self.open_collection(name, model, encrypted).handle

    def collection_names(self) -> list[str]:
        """
        Names of every collection file in the data store directory.
        """
        return sorted(p.stem for p in self.path.glob(f"*{COLLECTION_SUFFIX}") if p.is_file())

    def clear(self) -> None:
        """
        Drop cached collection handles; the next open reloads from disk.
        """
        self._collections.clear()
