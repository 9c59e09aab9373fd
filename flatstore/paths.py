from __future__ import annotations

import logging
import os
from pathlib import Path

from .errors import InvalidArgumentError

logger = logging.getLogger(__name__)

COLLECTION_SUFFIX = ".json"

_EVERYONE_DIR_MODE = 0o777
_EVERYONE_FILE_MODE = 0o666
_OWNER_DIR_MODE = 0o700
_OWNER_FILE_MODE = 0o600


def ensure_dir(path: Path) -> bool:
    """
    Create `path` if needed. Returns True when the directory was created.
    """
    if path.is_dir():
        return False
    path.mkdir(parents=True, exist_ok=True)
    return True


def check_name(name: str, kind: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidArgumentError(f"{kind} name must be a non-empty string")
    if any(sep in name for sep in ("/", "\\", os.sep)) or name in (".", ".."):
        raise InvalidArgumentError(f"{kind} name must not contain path separators: {name!r}")
    return name


def collection_path(data_store_dir: Path, collection_name: str) -> Path:
    return data_store_dir / f"{check_name(collection_name, 'collection')}{COLLECTION_SUFFIX}"


def apply_access(path: Path, access_everyone: bool) -> None:
    """
    Default access policy: world read/write when `access_everyone`, owner only otherwise.
    """
    if path.is_dir():
        mode = _EVERYONE_DIR_MODE if access_everyone else _OWNER_DIR_MODE
    else:
        mode = _EVERYONE_FILE_MODE if access_everyone else _OWNER_FILE_MODE
    try:
        os.chmod(path, mode)
    except OSError as e:
        logger.warning("ACCESS: failed to chmod %s to %o: %r", path, mode, e)
