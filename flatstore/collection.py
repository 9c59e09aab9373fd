from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Generic, TypeVar

from . import json_store, jsonpath
from .documents import (
    DATA_KEY,
    DEFAULT_NEXT_PRIMARY_ID,
    PRIMARY_ID_KEY,
    CollectionFile,
    Document,
)
from .errors import (
    AlreadyExistsError,
    InsertFailedError,
    InvalidArgumentError,
    LoadFailedError,
    MultipleResultsError,
    NotInsertedError,
    PersistFailedError,
    QueryFailedError,
    RemoveFailedError,
    UpdateFailedError,
)
from .index import PrimaryIndex
from .interfaces import AccessPolicy, Cipher
from .paths import apply_access
from .query import ALL_QUERY, Operator, build_path_query, id_query

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Document)

_MISSING: Any = object()

# Compact the slot arena once at least this many slots are free and they
# outnumber the live ones.
_COMPACT_MIN_FREE = 32


class Collection(Generic[T]):
    """
    One file-backed collection of `model` records.

    Documents live in an arena of slots: removing a document frees its slot
    without shifting the others, so primary-index entries (id -> slot) stay
    valid. Inserts always append, keeping file order equal to insertion order.
    """

    def __init__(
        self,
        path: str | Path,
        model: type[T] = Document,  # type: ignore[assignment]
        *,
        caching_enabled: bool = True,
        cipher: Cipher | None = None,
        access_everyone: bool = False,
        access_policy: AccessPolicy | None = None,
    ) -> None:
        self.path = Path(path)
        self.name = self.path.stem
        self.model = model
        self.caching_enabled = caching_enabled
        self._cipher = cipher
        self._access_everyone = access_everyone

        self._slots: list[dict[str, Any] | None] = []
        self._free = 0
        self._next_primary_id = DEFAULT_NEXT_PRIMARY_ID
        self._index = PrimaryIndex()

        self.created = self._create_if_missing(access_policy or apply_access)
        self._load()

    def __repr__(self) -> str:
        return f"Collection({self.name!r}, model={self.model.__name__}, documents={len(self)})"

    def __len__(self) -> int:
        return len(self._slots) - self._free

    @property
    def next_primary_id(self) -> int:
        return self._next_primary_id

    @property
    def encrypted(self) -> bool:
        return self._cipher is not None

    @property
    def access_everyone(self) -> bool:
        return self._access_everyone

    # --- inserts -----------------------------------------------------------

    def insert(self, item: T, persist: bool = True) -> T:
        """
        Assign the next primary id to `item` and add it to the collection.

        Any failure while storing the item is rolled back: the id counter, the
        cache and the item's id are restored before InsertFailedError is raised.
        """
        if item is None:
            raise InvalidArgumentError("cannot insert a missing item")
        if not isinstance(item, self.model):
            raise InvalidArgumentError(f"expected a {self.model.__name__}, got {type(item).__name__}")
        if item.id != 0:
            raise AlreadyExistsError(f"item has already been inserted, _id: {item.id}")

        doc_id = self._next_primary_id
        self._next_primary_id += 1
        item.id = doc_id
        slot: int | None = None

        try:
            node = item.to_node()
            self._slots.append(node)
            slot = len(self._slots) - 1
            if self.caching_enabled:
                self._index.put(doc_id, slot)
        except Exception as e:
            self._next_primary_id -= 1
            self._index.discard(doc_id)
            item.id = 0
            if slot is not None:
                del self._slots[slot]
            logger.warning("COLLECTION INSERT: rolled back _id %d in %s: %r", doc_id, self.name, e)
            raise InsertFailedError("an exception occurred while inserting the item") from e

        if persist:
            self.persist()
        return item

    def insert_many(self, items: Iterable[T] | None, persist: bool = True) -> list[T] | None:
        """
        Insert `items` in order and persist once at the end.

        There is no batch rollback: if one insert fails, the items before it
        stay inserted, are still persisted, and the error propagates.
        """
        batch = list(items or [])
        if not batch:
            return None

        inserted = next((x for x in batch if getattr(x, "id", 0) != 0), None)
        if inserted is not None:
            raise AlreadyExistsError(f"item has already been inserted, _id: {inserted.id}")

        try:
            return [self.insert(item, persist=False) for item in batch]
        finally:
            if persist:
                self.persist()

    # --- lookups -----------------------------------------------------------

    def find(self, target: int | str | None, value: Any = _MISSING, operator: Operator | str = Operator.EQUAL) -> T | None:
        """
        Return one document, or None when nothing matches.

        - find(5): by primary id
        - find("$[?(@.name == 'x')]"): by JSONPath query
        - find("name", "x", Operator.EQUAL): by field comparison

        Path and field queries raise MultipleResultsError when more than one
        document matches.
        """
        if target is None:
            return None
        if isinstance(target, str):
            if value is _MISSING:
                return self._find_by_path(target)
            return self._find_by_field(target, value, operator)
        return self._find_by_id(self._check_id(target))

    def find_many(
        self,
        target: Iterable[int] | str | None,
        value: Any = _MISSING,
        operator: Operator | str = Operator.EQUAL,
    ) -> list[T | None] | list[T] | None:
        """
        Return several documents.

        For a sequence of ids the result has one entry per id, None where the
        id is not found. Path and field queries return only the matches.
        """
        if target is None:
            return None
        if isinstance(target, str):
            if value is _MISSING:
                return self._find_many_by_path(target)
            path = self._field_query(target, value, operator)
            return None if path is None else self._find_many_by_path(path)
        if isinstance(target, int):
            raise InvalidArgumentError("find_many expects a sequence of ids; use find() for a single id")

        ids = [self._check_id(x) for x in target]
        if not ids:
            return None
        return [self._find_by_id(doc_id) for doc_id in ids]

    def all(self) -> list[T]:
        return self._find_many_by_path(ALL_QUERY) or []

    # --- updates -----------------------------------------------------------

    def update(self, item: T, persist: bool = True) -> T | None:
        """
        Replace the stored document with `item`'s content.

        Returns the document as it was *before* the update, or None when no
        document has `item`'s id.
        """
        if item is None:
            raise InvalidArgumentError("cannot update with a missing item")
        if not isinstance(item, self.model):
            raise InvalidArgumentError(f"expected a {self.model.__name__}, got {type(item).__name__}")
        if item.id == 0:
            raise NotInsertedError("item has not been inserted into the collection yet")

        doc_id = item.id
        slot: int | None = None
        old_node: dict[str, Any] | None = None
        cached: int | None = None

        try:
            slot = self._slot_for_id(doc_id)
            if slot is None:
                return None
            old_node = self._slots[slot]
            cached = self._index.lookup(doc_id)

            previous = self._snapshot(old_node)
            self._slots[slot] = item.to_node()
            if self.caching_enabled:
                self._index.put(doc_id, slot)
        except Exception as e:
            if slot is not None and old_node is not None:
                self._slots[slot] = old_node
                if cached is None:
                    self._index.discard(doc_id)
                else:
                    self._index.put(doc_id, cached)
            logger.warning("COLLECTION UPDATE: restored _id %d in %s: %r", doc_id, self.name, e)
            raise UpdateFailedError("an exception occurred while updating the item") from e

        if persist:
            self.persist()
        return previous

    def update_many(self, items: Iterable[T] | None, persist: bool = True) -> list[T | None] | None:
        batch = list(items or [])
        if not batch:
            return None

        pending = next((x for x in batch if x is not None and getattr(x, "id", None) == 0), None)
        if pending is not None:
            raise NotInsertedError(f"item has not been inserted into the collection yet: {pending!r}")

        try:
            return [self.update(item, persist=False) for item in batch]
        finally:
            if persist:
                self.persist()

    # --- removes -----------------------------------------------------------

    def remove(self, target: int | T | None, persist: bool = True) -> T | None:
        """
        Remove a document by id or by item. Returns the removed document, or
        None when it does not exist.
        """
        if target is None:
            return None
        doc_id = self._check_id(target.id if isinstance(target, Document) else target)

        slot: int | None = None
        node: dict[str, Any] | None = None

        try:
            slot = self._slot_for_id(doc_id)
            if slot is None:
                return None
            node = self._slots[slot]
            removed = self._snapshot(node)

            self._slots[slot] = None
            self._free += 1
            self._index.discard(doc_id)
        except Exception as e:
            if slot is not None and node is not None and self._slots[slot] is None:
                self._slots[slot] = node
                self._free -= 1
            logger.warning("COLLECTION REMOVE: restored _id %d in %s: %r", doc_id, self.name, e)
            raise RemoveFailedError("an exception occurred while removing the item") from e

        self._maybe_compact()
        if persist:
            self.persist()
        return removed

    def remove_many(self, targets: Iterable[int | T] | None, persist: bool = True) -> list[T | None] | None:
        batch = list(targets or [])
        if not batch:
            return None

        try:
            return [self.remove(target, persist=False) for target in batch]
        finally:
            if persist:
                self.persist()

    # --- persistence -------------------------------------------------------

    def persist(self) -> None:
        """
        Rewrite the backing file with the counter and every live document.
        In-memory state is untouched if this fails.
        """
        state = CollectionFile.model_construct(
            next_primary_id=self._next_primary_id,
            data=[node for node in self._slots if node is not None],
        )
        doc = state.to_disk_doc()
        try:
            json_store.atomic_write_json(self.path, doc, cipher=self._cipher)
        except Exception as e:
            raise PersistFailedError(f"an exception occurred while persisting {self.path}") from e
        logger.debug("COLLECTION PERSIST: wrote %d documents to %s", len(doc[DATA_KEY]), self.path)

    def refresh(self, persist_first: bool = True) -> None:
        """
        Reload the collection from disk, discarding the primary index.
        """
        if persist_first:
            self.persist()
        self._load()

    def clear_cache(self) -> None:
        """
        Empty the primary index, whether or not caching is enabled.
        """
        self._index.clear()

    # --- internal helpers --------------------------------------------------

    def _create_if_missing(self, access_policy: AccessPolicy) -> bool:
        if self.path.exists():
            return False
        try:
            json_store.atomic_write_bytes(self.path, json_store.encode("{}", self._cipher))
        except Exception as e:
            raise PersistFailedError(f"failed to create collection file {self.path}") from e
        access_policy(self.path, self._access_everyone)
        logger.debug("COLLECTION CREATE: %s", self.path)
        return True

    def _load(self) -> None:
        try:
            raw = json_store.read_json(self.path, self._cipher)
            if raw is not None and not isinstance(raw, dict):
                raise ValueError("collection file must hold a JSON object")
            state = CollectionFile.from_disk_doc(raw)
        except Exception as e:
            raise LoadFailedError(f"failed to load collection from {self.path}") from e

        self._slots = list(state.data)
        self._free = 0
        self._next_primary_id = state.next_primary_id
        self._index = PrimaryIndex()
        logger.debug("COLLECTION LOAD: %d documents from %s", len(self._slots), self.path)

    def _check_id(self, doc_id: Any) -> int:
        if isinstance(doc_id, bool) or not isinstance(doc_id, int):
            raise InvalidArgumentError(f"document ids must be integers, got {doc_id!r}")
        return doc_id

    def _snapshot(self, node: Any) -> T:
        # Snapshots never share nested containers with the tree.
        return self.model.model_validate(copy.deepcopy(node))

    def _live(self) -> tuple[list[int], list[dict[str, Any]]]:
        slots: list[int] = []
        nodes: list[dict[str, Any]] = []
        for slot, node in enumerate(self._slots):
            if node is not None:
                slots.append(slot)
                nodes.append(node)
        return slots, nodes

    @staticmethod
    def _slot_of(match: jsonpath.Match, slots: Sequence[int]) -> int | None:
        # Only whole documents (one level below the root array) own a slot.
        if len(match.location) == 1:
            return slots[match.location[0]]
        return None

    def _slot_for_id(self, doc_id: int) -> int | None:
        if self.caching_enabled:
            slot = self._index.lookup(doc_id)
            if slot is not None:
                node = self._slots[slot] if slot < len(self._slots) else None
                if node is not None and node.get(PRIMARY_ID_KEY) == doc_id:
                    return slot
                self._index.discard(doc_id)

        # Ids are unique, so the first match is the only one.
        slots, nodes = self._live()
        for match in jsonpath.select_tokens(nodes, id_query(doc_id)):
            slot = self._slot_of(match, slots)
            if slot is not None:
                if self.caching_enabled:
                    self._index.put(doc_id, slot)
                return slot
        return None

    def _find_by_id(self, doc_id: int) -> T | None:
        try:
            slot = self._slot_for_id(doc_id)
            return None if slot is None else self._snapshot(self._slots[slot])
        except Exception as e:
            raise QueryFailedError(f"an exception was thrown while looking up _id {doc_id}") from e

    def _find_by_path(self, path: str) -> T | None:
        if not path.strip():
            return None
        try:
            slots, nodes = self._live()
            match = jsonpath.select_token(nodes, path)
            if match is None:
                return None
            doc = self._snapshot(match.value)
            slot = self._slot_of(match, slots)
            if self.caching_enabled and slot is not None and doc.id > 0 and doc.id not in self._index:
                self._index.put(doc.id, slot)
            return doc
        except jsonpath.MultipleMatchesError as e:
            raise MultipleResultsError(str(e)) from e
        except Exception as e:
            raise QueryFailedError(f"an exception was thrown while evaluating {path!r}") from e

    def _find_many_by_path(self, path: str) -> list[T] | None:
        if not path.strip():
            return None
        try:
            _, nodes = self._live()
            return [self._snapshot(match.value) for match in jsonpath.select_tokens(nodes, path)]
        except Exception as e:
            raise QueryFailedError(f"an exception was thrown while evaluating {path!r}") from e

    def _field_query(self, field: str, value: Any, operator: Operator | str) -> str | None:
        if not field.strip():
            return None
        try:
            return build_path_query(field, value, operator)
        except ValueError as e:
            raise InvalidArgumentError(f"unknown operator: {operator!r}") from e

    def _find_by_field(self, field: str, value: Any, operator: Operator | str) -> T | None:
        path = self._field_query(field, value, operator)
        return None if path is None else self._find_by_path(path)

    def _maybe_compact(self) -> None:
        if self._free < _COMPACT_MIN_FREE or self._free * 2 <= len(self._slots):
            return
        self._slots = [node for node in self._slots if node is not None]
        self._free = 0
        self._index.clear()
        logger.debug("COLLECTION COMPACT: %s now holds %d slots", self.name, len(self._slots))
