"""In-memory stand-ins for the filesystem and OS process collaborators."""

from __future__ import annotations

from pathlib import Path, PurePosixPath


class FakeDiskIO:
    """DiskIO over a set of directories and a dict of files."""

    def __init__(self, dirs: list[str] | None = None, files: dict[str, str] | None = None) -> None:
        self.dirs: set[PurePosixPath] = set()
        self.files: dict[PurePosixPath, str] = {}
        self.created: list[tuple[Path, bool]] = []
        self.fail_create = False
        for d in dirs or []:
            self._add_dir(PurePosixPath(d))
        for name, text in (files or {}).items():
            path = PurePosixPath(name)
            self._add_dir(path.parent)
            self.files[path] = text

    def _add_dir(self, path: PurePosixPath) -> None:
        self.dirs.add(path)
        self.dirs.update(path.parents)

    @staticmethod
    def _key(path: Path) -> PurePosixPath:
        return PurePosixPath(path.as_posix())

    def exists(self, path: Path) -> bool:
        key = self._key(path)
        return key in self.dirs or key in self.files

    def is_dir(self, path: Path) -> bool:
        return self._key(path) in self.dirs

    def list_dir(self, path: Path) -> list[str]:
        key = self._key(path)
        if key not in self.dirs:
            raise FileNotFoundError(f"No such directory: {path}")
        children = {p.name for p in self.dirs if p.parent == key and p != key}
        children.update(p.name for p in self.files if p.parent == key)
        return sorted(children)

    def create_dir(self, path: Path, recursive: bool = False) -> None:
        if self.fail_create:
            raise PermissionError(f"Permission denied: {path}")
        self.created.append((path, recursive))
        self._add_dir(self._key(path))

    def read_text(self, path: Path) -> str:
        key = self._key(path)
        if key not in self.files:
            raise FileNotFoundError(f"No such file: {path}")
        return self.files[key]


class FakeProcessControl:
    """ProcessControl recording every call against a fixed process tree.

    ``tree`` maps a pid to its children. Pids in ``gone`` raise
    ProcessLookupError. Commands whose first element is in ``failing_commands``
    raise OSError.
    """

    def __init__(
        self,
        tree: dict[int, list[int]] | None = None,
        gone: set[int] | None = None,
        command_lines: dict[int, str] | None = None,
        failing_commands: set[str] | None = None,
    ) -> None:
        self.tree = tree or {}
        self.gone = gone or set()
        self.command_lines = command_lines or {}
        self.failing_commands = failing_commands or set()
        self.calls: list[tuple] = []

    def signal_group(self, pgid: int, sig: int) -> None:
        self.calls.append(("signal_group", pgid, sig))
        if pgid in self.gone:
            raise ProcessLookupError(pgid)

    def signal(self, pid: int, sig: int) -> None:
        self.calls.append(("signal", pid, sig))
        if pid in self.gone:
            raise ProcessLookupError(pid)

    def children(self, pid: int) -> list[int]:
        return list(self.tree.get(pid, []))

    def run(self, command: list[str], cwd: Path | None = None) -> None:
        self.calls.append(("run", tuple(command), cwd))
        if command[0] in self.failing_commands or Path(command[0]).name in self.failing_commands:
            raise OSError(f"{command[0]} failed")

    def find_by_command_line(self, fragment: str) -> list[int]:
        self.calls.append(("find", fragment))
        return [pid for pid, line in self.command_lines.items() if fragment in line]

    def signalled(self) -> list[int]:
        return [call[1] for call in self.calls if call[0] in ("signal", "signal_group")]
