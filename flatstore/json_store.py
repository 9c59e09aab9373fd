from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .interfaces import Cipher


def read_json(path: Path, cipher: Cipher | None = None) -> Any | None:
    """
    Read JSON from disk, decrypting first when a cipher is given.

    Returns None for missing or empty files. Invalid JSON and cipher failures
    propagate so a damaged collection is never silently replaced.
    """
    if not path.exists():
        return None
    raw = path.read_bytes()
    if cipher is not None and raw.strip():
        text = cipher.decrypt(raw)
    else:
        text = raw.decode("utf-8")
    if not text.strip():
        return None
    return json.loads(text)


def dumps(payload: Any, *, indent: int | None = None) -> str:
    return json.dumps(payload, indent=indent, ensure_ascii=False)


def encode(text: str, cipher: Cipher | None = None) -> bytes:
    return cipher.encrypt(text) if cipher is not None else text.encode("utf-8")


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Atomically write bytes to disk by writing to a temp file then replacing.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("wb") as f:
        f.write(data)
    tmp_path.replace(path)


def atomic_write_json(path: Path, payload: Any, *, cipher: Cipher | None = None, indent: int | None = None) -> None:
    atomic_write_bytes(path, encode(dumps(payload, indent=indent), cipher))
