from __future__ import annotations

from pathlib import Path
from typing import Protocol


class DiskIO(Protocol):
    """Filesystem access used by the controller and the indexers.

    Errors are reported as ``OSError`` the way ``pathlib`` reports them.
    """

    def exists(self, path: Path) -> bool: ...

    def is_dir(self, path: Path) -> bool: ...

    def list_dir(self, path: Path) -> list[str]: ...

    def create_dir(self, path: Path, recursive: bool = False) -> None: ...

    def read_text(self, path: Path) -> str: ...


class LocalDiskIO:
    """DiskIO backed by the real filesystem."""

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def list_dir(self, path: Path) -> list[str]:
        return sorted(entry.name for entry in path.iterdir())

    def create_dir(self, path: Path, recursive: bool = False) -> None:
        path.mkdir(parents=recursive, exist_ok=True)

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8", errors="replace")
