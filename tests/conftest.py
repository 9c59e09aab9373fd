from __future__ import annotations

import base64
from pathlib import Path
import sys


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
# This avoids ModuleNotFoundError for `import flatstore` when the package is not installed.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


class ReversingCipher:
    """
    Stand-in cipher for tests: base64 of the reversed text, so the file is not plain JSON.
    """

    def encrypt(self, text: str) -> bytes:
        return base64.b64encode(text[::-1].encode("utf-8"))

    def decrypt(self, data: bytes) -> str:
        return base64.b64decode(data).decode("utf-8")[::-1]


class RecordingPolicy:
    def __init__(self) -> None:
        self.calls: list[tuple[Path, bool]] = []

    def __call__(self, path: Path, access_everyone: bool) -> None:
        self.calls.append((Path(path), access_everyone))


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    """
    A data store directory inside pytest's temp dir so tests never touch real data.
    """
    p = tmp_path / "store"
    p.mkdir(parents=True, exist_ok=True)
    return p


@pytest.fixture
def cipher() -> ReversingCipher:
    return ReversingCipher()


@pytest.fixture
def access_policy() -> RecordingPolicy:
    return RecordingPolicy()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "FLATSTORE_ROOT",
        "FLATSTORE_ACCESS_EVERYONE",
        "FLATSTORE_ENCRYPTION_ENABLED",
        "FLATSTORE_CACHING_ENABLED",
    ):
        # setenv first so monkeypatch also removes values a test loads from an env file
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
