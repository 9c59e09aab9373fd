from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    field_serializer,
    model_validator,
)

logger = logging.getLogger(__name__)

PRIMARY_ID_KEY = "_id"
NEXT_PRIMARY_ID_KEY = "NextPrimaryId"
DATA_KEY = "Data"
DEFAULT_NEXT_PRIMARY_ID = 1


class Document(BaseModel):
    """
    Base record stored in a collection.

    `id` is owned by the collection: 0 means "not inserted yet". It is stored
    on disk under the `_id` key.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: int = Field(default=0, alias=PRIMARY_ID_KEY)

    @field_serializer("*", mode="wrap", when_used="json")
    def _decimal_as_number(self, value: Any, handler: SerializerFunctionWrapHandler) -> Any:
        # Decimals are written as JSON numbers so filters compare them numerically.
        if isinstance(value, Decimal) and value.is_finite():
            return int(value) if value == value.to_integral_value() else float(value)
        return handler(value)

    def to_node(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class CollectionFile(BaseModel):
    """
    Mirrors the on-disk collection schema:
      { "NextPrimaryId": 3, "Data": [ { "_id": 1, ... }, { "_id": 2, ... } ] }
    """

    model_config = ConfigDict(populate_by_name=True)

    next_primary_id: int = Field(default=DEFAULT_NEXT_PRIMARY_ID, alias=NEXT_PRIMARY_ID_KEY)
    data: list[dict[str, Any]] = Field(default_factory=list, alias=DATA_KEY)

    @model_validator(mode="after")
    def _check_ids(self) -> "CollectionFile":
        seen: set[int] = set()
        for node in self.data:
            node_id = node.get(PRIMARY_ID_KEY)
            if not isinstance(node_id, int) or isinstance(node_id, bool) or node_id <= 0:
                raise ValueError(f"document without a valid {PRIMARY_ID_KEY}: {node_id!r}")
            if node_id in seen:
                raise ValueError(f"duplicate {PRIMARY_ID_KEY}: {node_id}")
            seen.add(node_id)

        if seen and self.next_primary_id <= max(seen):
            repaired = max(seen) + 1
            logger.warning(
                "COLLECTION LOAD: %s %d is not above stored ids, using %d",
                NEXT_PRIMARY_ID_KEY,
                self.next_primary_id,
                repaired,
            )
            self.next_primary_id = repaired
        return self

    @classmethod
    def from_disk_doc(cls, doc: Mapping[str, Any] | None) -> "CollectionFile":
        # An empty file reads as {} and starts a fresh collection.
        return cls.model_validate(dict(doc or {}))

    def to_disk_doc(self) -> dict[str, Any]:
        return {NEXT_PRIMARY_ID_KEY: self.next_primary_id, DATA_KEY: self.data}
