#!/usr/bin/env python3
"""Host-platform knowledge about where Igor and its runtimes live.

Default directories follow
https://manual.gamemaker.io/monthly/en/Settings/Building_via_Command_Line.htm
"""

import platform
import sys
from dataclasses import dataclass
from pathlib import Path

from igorjobs.compiler.runtime_version import ReleaseChannel
from igorjobs.compiler.settings import Platform


@dataclass(frozen=True)
class HostPlatformInfo:
    """Igor details for the OS we are running on.

    Attributes:
        executable_extension: Extension of the Igor executable
        path_name: Platform segment of the Igor path inside a runtime
        user_platform: Target platform that builds natively on this host
        default_runtime_paths: Runtime cache directory per release channel
        default_user_paths: User folder root per release channel
        default_global_build_path: Fallback build directory
    """

    executable_extension: str
    path_name: str
    user_platform: Platform
    default_runtime_paths: dict[ReleaseChannel, Path]
    default_user_paths: dict[ReleaseChannel, Path]
    default_global_build_path: Path


def _channel_dirs(root: Path, template: str, suffix: str) -> dict[ReleaseChannel, Path]:
    names = {
        ReleaseChannel.STABLE: template,
        ReleaseChannel.BETA: f"{template}-Beta",
        ReleaseChannel.LTS: f"{template}-LTS",
    }
    return {channel: root / name / suffix for channel, name in names.items()}


def _host_info(host: str) -> HostPlatformInfo:
    home = Path.home()

    if host == "win32":
        program_data = Path("C:/ProgramData")
        app_data = home / "AppData" / "Roaming"
        return HostPlatformInfo(
            executable_extension=".exe",
            path_name="windows",
            user_platform=Platform.WINDOWS,
            default_runtime_paths=_channel_dirs(
                program_data, "GameMakerStudio2", "Cache/runtimes"
            ),
            default_user_paths=_channel_dirs(app_data, "GameMakerStudio2", ""),
            default_global_build_path=home / "AppData" / "Local" / "Temp" / "igorjobs",
        )

    if host == "darwin":
        shared = Path("/Users/Shared")
        return HostPlatformInfo(
            executable_extension="",
            path_name="osx",
            user_platform=Platform.MAC,
            default_runtime_paths=_channel_dirs(
                shared, "GameMakerStudio2", "Cache/runtimes"
            ),
            default_user_paths=_channel_dirs(
                home / ".config", "GameMakerStudio2", ""
            ),
            default_global_build_path=Path("/tmp/igorjobs"),
        )

    # Linux IDE builds keep their data under the XDG data and config homes.
    return HostPlatformInfo(
        executable_extension="",
        path_name="ubuntu",
        user_platform=Platform.LINUX,
        default_runtime_paths=_channel_dirs(
            home / ".local" / "share", "GameMakerStudio2", "Cache/runtimes"
        ),
        default_user_paths=_channel_dirs(home / ".config", "GameMakerStudio2", ""),
        default_global_build_path=Path("/tmp/igorjobs"),
    )


HOST_PLATFORM_INFO = _host_info(sys.platform)
HOST_PLATFORM = HOST_PLATFORM_INFO.user_platform

# Extension of the packaged output blob per target platform.
OUTPUT_BLOB_EXTENSIONS: dict[Platform, str] = {
    Platform.OPERA_GX: "zip",
    Platform.WINDOWS: "zip",
    Platform.MAC: "zip",
    Platform.LINUX: "appimage",
    Platform.HTML5: "zip",
    Platform.IOS: "ipa",
    Platform.ANDROID: "apk",
    Platform.TVOS: "ipa",
    Platform.PS4: "pkg",
    Platform.PS5: "pkg",
    Platform.XBOX_ONE: "xvc",
    Platform.XBOX_SERIES_XS: "xvc",
    Platform.SWITCH: "nsp",
}


def _machine_arch() -> str:
    machine = platform.machine().lower()
    if machine in ("amd64", "x86_64"):
        return "x64"
    if machine in ("aarch64", "arm64"):
        return "arm64"
    return machine


def igor_path_segment(
    host: HostPlatformInfo = HOST_PLATFORM_INFO, arch: str | None = None
) -> Path:
    """Location of the Igor executable relative to a runtime directory."""
    return (
        Path("bin")
        / "igor"
        / host.path_name
        / (arch or _machine_arch())
        / f"Igor{host.executable_extension}"
    )
