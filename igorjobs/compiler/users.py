#!/usr/bin/env python3
"""Discovery of GameMaker user folders and their remote devices."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from igorjobs.compiler.settings import Platform, RemoteDevice
from igorjobs.util.disk_io import DiskIO, LocalDiskIO


logger = logging.getLogger(__name__)

FALLBACK_USER_DIRECTORY = "unknownUser_unknownUserID"
DEVICES_JSON_FILENAME = "devices.json"

# A directory holding any of these is a user folder.
USER_DIR_MARKERS = ("license.plist", "local_settings.json", DEVICES_JSON_FILENAME)


@dataclass(frozen=True)
class UserInfo:
    """A user folder (``<name>_<id>``) in the IDE's user directory."""

    name: str
    directory_name: str
    path: Path
    devices: dict[Platform, list[str]] = field(default_factory=dict)

    @property
    def devices_path(self) -> Path:
        return self.path / DEVICES_JSON_FILENAME

    def device(self, platform: Platform, name: str) -> RemoteDevice:
        """The remote device ``name`` registered for ``platform``.

        Raises:
            KeyError: If the user has no such device
        """
        if name not in self.devices.get(platform, []):
            raise KeyError(f"User {self.name} has no {platform.value} device named '{name}'")
        return RemoteDevice(name=name, file_path=self.devices_path)


@dataclass(frozen=True)
class InvalidUser:
    path: Path
    error: Exception


@dataclass
class UserIndex:
    users: list[UserInfo] = field(default_factory=list)
    invalid: list[InvalidUser] = field(default_factory=list)


def parse_devices(text: str) -> dict[Platform, list[str]]:
    """Device names per platform from the contents of devices.json.

    Raises:
        ValueError: If the text is not a JSON object
    """
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("devices.json does not contain an object")

    android = data.get("android") or {}
    return {
        Platform.ANDROID: list(android.get("Auto") or {}) + list(android.get("User") or {}),
        Platform.MAC: list(data.get("mac") or {}),
        Platform.LINUX: list(data.get("linux") or {}),
    }


def _sort_key(user: UserInfo) -> tuple[bool, str]:
    # The IDE's placeholder user goes last.
    return (user.directory_name == FALLBACK_USER_DIRECTORY, user.name)


class UserIndexer:
    """Lists the user folders in a GameMaker user directory."""

    def __init__(self, disk_io: DiskIO | None = None) -> None:
        self.disk_io: DiskIO = disk_io or LocalDiskIO()

    def get_users(self, path: Path) -> UserIndex:
        """Scan ``path`` for user folders.

        Raises:
            OSError: If ``path`` cannot be listed
        """
        index = UserIndex()

        for directory_name in self.disk_io.list_dir(path):
            user_path = path / directory_name
            if not any(self.disk_io.exists(user_path / marker) for marker in USER_DIR_MARKERS):
                continue

            name, sep, _user_id = directory_name.rpartition("_")
            if not sep or not name:
                index.invalid.append(
                    InvalidUser(
                        user_path,
                        ValueError(
                            f'Expected user name to follow the format "name_id". Found "{directory_name}".'
                        ),
                    )
                )
                continue

            devices: dict[Platform, list[str]] = {}
            devices_path = user_path / DEVICES_JSON_FILENAME
            if self.disk_io.exists(devices_path):
                try:
                    devices = parse_devices(self.disk_io.read_text(devices_path))
                except (OSError, ValueError, AttributeError) as e:
                    logger.warning(f"Failed to read {devices_path}: {e}")
                    index.invalid.append(InvalidUser(user_path, e))
                    continue

            index.users.append(UserInfo(name, directory_name, user_path, devices))

        index.users.sort(key=_sort_key)
        return index
