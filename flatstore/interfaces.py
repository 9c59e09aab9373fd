from __future__ import annotations

from pathlib import Path
from typing import Protocol


class Cipher(Protocol):
    """
    Opaque byte transform applied to a collection's serialized JSON.
    """

    def encrypt(self, text: str) -> bytes:
        ...

    def decrypt(self, data: bytes) -> str:
        ...


class AccessPolicy(Protocol):
    """
    Invoked once when a data store directory or collection file is created.
    """

    def __call__(self, path: Path, access_everyone: bool) -> None:
        ...
