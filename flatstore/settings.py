from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # Directory holding the data stores for the default location tag
    root: str

    # Created directories/files are world writable when set
    access_everyone: bool

    # Master switch: collections opened with encrypted=True stay plain when off
    encryption_enabled: bool

    # Primary index cache for new collection handles
    caching_enabled: bool


def get_settings(env_file: str | Path | None = None) -> Settings:
    if env_file is not None:
        load_dotenv(env_file)

    root = os.getenv("FLATSTORE_ROOT", ".").strip() or "."
    access_everyone = _env_bool("FLATSTORE_ACCESS_EVERYONE", False)
    encryption_enabled = _env_bool("FLATSTORE_ENCRYPTION_ENABLED", False)
    caching_enabled = _env_bool("FLATSTORE_CACHING_ENABLED", True)

    return Settings(
        root=root,
        access_everyone=access_everyone,
        encryption_enabled=encryption_enabled,
        caching_enabled=caching_enabled,
    )
