"""
Primary key cache: document id -> arena slot.
"""

from __future__ import annotations


class PrimaryIndex:
    """
    Not authoritative: the slot list owned by the collection is the source of
    truth. Entries are added lazily and dropped wholesale on reload.
    """

    def __init__(self) -> None:
        self._slots: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._slots

    def lookup(self, doc_id: int) -> int | None:
        return self._slots.get(doc_id)

    def put(self, doc_id: int, slot: int) -> None:
        self._slots[doc_id] = slot

    def discard(self, doc_id: int) -> int | None:
        return self._slots.pop(doc_id, None)

    def clear(self) -> None:
        self._slots.clear()
