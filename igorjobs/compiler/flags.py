#!/usr/bin/env python3
"""Igor command-line construction.

Everything here is a pure function of its arguments so the exact command a
job runs can be checked without spawning anything.
"""

from pathlib import Path

from igorjobs.compiler.igor_paths import HOST_PLATFORM, OUTPUT_BLOB_EXTENSIONS
from igorjobs.compiler.settings import JobSettings, Platform, Project, Runner, Task


# Targets whose Package task has a dedicated Igor verb.
PACKAGE_VERBS: dict[Platform, str] = {
    Platform.HTML5: "folder",
    Platform.WINDOWS: "PackageZip",
    Platform.MAC: "PackageZip",
}

# Targets that build on a remote machine unless they are the host platform.
# Android only needs its device to run the game, not to package it.
REMOTE_DEVICE_PLATFORMS = frozenset({Platform.MAC, Platform.LINUX, Platform.ANDROID})


def igor_verb(platform: Platform, task: Task) -> str:
    if task is Task.PACKAGE:
        return PACKAGE_VERBS.get(platform, task.value)
    return task.value


def requires_remote_device(
    task: Task, platform: Platform, host: Platform = HOST_PLATFORM
) -> bool:
    """Whether building ``task`` for ``platform`` needs a remote device."""
    if platform == host or platform not in REMOTE_DEVICE_PLATFORMS:
        return False
    if platform is Platform.ANDROID:
        return task is not Task.PACKAGE
    return True


def output_file_path(project: Project, settings: JobSettings) -> Path:
    extension = OUTPUT_BLOB_EXTENSIONS.get(settings.platform, "zip")
    return settings.output_dir / f"{project.name}.{extension}"


def build_flags(
    project: Project, runtime_path: Path, user_path: Path, settings: JobSettings
) -> list[str]:
    """Arguments for Igor to perform ``settings.task``.

    Args:
        project: Project being built
        runtime_path: Directory of the runtime to build with
        user_path: User folder holding the license and devices.json
        settings: Job settings, with ``build_path`` already narrowed to the job

    Returns:
        Argument list, excluding the Igor executable itself
    """
    flags = [
        f"/project={project.path}",
        f"/config={settings.config_name}",
        f"/rp={runtime_path}",
        f"/runtime={settings.runner.value}",
        f"/cache={settings.cache_dir}",
        f"/of={output_file_path(project, settings)}",
        f"/uf={user_path}",
        "/v",
    ]

    # Ignore the cache, otherwise YYC builds can miss changes.
    if settings.runner is Runner.YYC:
        flags.append("/ic")

    if settings.threads is not None:
        flags.append(f"/j={settings.threads}")

    if settings.device is not None:
        flags.append(f"/df={settings.device.file_path}")
        flags.append(f"/device={settings.device.name}")

    flags.extend(["--", settings.platform.value, igor_verb(settings.platform, settings.task)])
    return flags
