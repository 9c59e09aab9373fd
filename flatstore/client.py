from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from .datastore import DataStore, Opened
from .errors import InvalidArgumentError, LocationNotFoundError
from .interfaces import AccessPolicy, Cipher
from .paths import check_name
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_TAG = "default"


class StoreClient:
    """
    Entry point: maps location tags to root directories and caches data store
    handles per (tag, name).

    Construct one explicitly and pass it to whoever needs it:

        client = StoreClient({"default": "/var/lib/app", "archive": "/mnt/archive"})
        users = client.get_data_store("app").get_collection("users", User)
    """

    def __init__(
        self,
        locations: Mapping[str, str | Path] | str | Path | None = None,
        *,
        access_everyone: bool = False,
        encryption_enabled: bool = False,
        cipher: Cipher | None = None,
        caching_enabled: bool = True,
        access_policy: AccessPolicy | None = None,
    ) -> None:
        self.access_everyone = access_everyone
        self.encryption_enabled = encryption_enabled
        self.caching_enabled = caching_enabled
        self._cipher = cipher
        self._access_policy = access_policy
        self._locations: dict[str, Path] = {}
        self._data_stores: dict[tuple[str, str], DataStore] = {}

        if isinstance(locations, (str, Path)):
            locations = {DEFAULT_TAG: locations}
        for tag, path in (locations or {}).items():
            self.add_location(tag, path)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        cipher: Cipher | None = None,
        access_policy: AccessPolicy | None = None,
    ) -> "StoreClient":
        settings = settings or get_settings()
        return cls(
            {DEFAULT_TAG: settings.root},
            access_everyone=settings.access_everyone,
            encryption_enabled=settings.encryption_enabled,
            cipher=cipher,
            caching_enabled=settings.caching_enabled,
            access_policy=access_policy,
        )

    @property
    def locations(self) -> dict[str, Path]:
        return dict(self._locations)

    @property
    def default_tag(self) -> str:
        """
        "default" when registered, otherwise the first tag that was added.
        """
        if not self._locations:
            raise LocationNotFoundError("no locations have been registered")
        if DEFAULT_TAG in self._locations:
            return DEFAULT_TAG
        return next(iter(self._locations))

    def add_location(self, tag: str, path: str | Path) -> Path:
        if not isinstance(tag, str) or not tag.strip():
            raise InvalidArgumentError("location tag must be a non-empty string")
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_dir():
            raise LocationNotFoundError(f"location does not exist: {path}")

        # Re-pointing a tag invalidates the handles opened under it.
        if tag in self._locations:
            for key in [k for k in self._data_stores if k[0] == tag]:
                del self._data_stores[key]
        self._locations[tag] = resolved
        logger.debug("CLIENT LOCATION: %s -> %s", tag, resolved)
        return resolved

    def location(self, tag: str | None = None) -> Path:
        tag = tag or self.default_tag
        try:
            return self._locations[tag]
        except KeyError:
            raise LocationNotFoundError(f"unknown location tag: {tag!r}") from None

    def open_data_store(self, name: str, tag: str | None = None) -> Opened[DataStore]:
        check_name(name, "data store")
        tag = tag or self.default_tag
        root = self.location(tag)

        key = (tag, name)
        existing = self._data_stores.get(key)
        if existing is not None:
            return Opened(existing, False)

        store = DataStore(
            root,
            name,
            access_everyone=self.access_everyone,
            cipher=self._cipher,
            encryption_enabled=self.encryption_enabled,
            caching_enabled=self.caching_enabled,
            access_policy=self._access_policy,
        )
        self._data_stores[key] = store
        return Opened(store, store.created)

    def get_data_store(self, name: str, tag: str | None = None) -> DataStore:
        return self.open_data_store(name, tag).handle

    def clear(self) -> None:
        """
        Drop every cached data store handle (and with them their collections).
        """
        self._data_stores.clear()
