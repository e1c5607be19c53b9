#!/usr/bin/env python3
"""Discovery of installed runtimes and selection of one for a project."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from igorjobs.compiler.igor_paths import igor_path_segment
from igorjobs.compiler.runtime_version import (
    FormatTag,
    ProjectVersion,
    ReleaseChannel,
    RuntimeVersion,
)
from igorjobs.errors import RuntimeNotFoundError, VersionParseError
from igorjobs.util.disk_io import DiskIO, LocalDiskIO


logger = logging.getLogger(__name__)

# Order in which channels are searched for a stable project.
CHANNEL_SEARCH_ORDER = (ReleaseChannel.LTS, ReleaseChannel.STABLE, ReleaseChannel.BETA)


@dataclass(frozen=True)
class RuntimeInfo:
    """An installed runtime with an Igor executable for this host."""

    version: RuntimeVersion
    path: Path
    igor_path: Path
    channel: ReleaseChannel | None = None


@dataclass(frozen=True)
class InvalidRuntime:
    """A directory in the runtime cache that could not be used."""

    path: Path
    error: Exception


@dataclass
class RuntimeIndex:
    """Result of scanning one runtime directory.

    Attributes:
        runtimes: Usable runtimes, newest first
        invalid: Entries that looked like runtimes but failed validation
    """

    runtimes: list[RuntimeInfo] = field(default_factory=list)
    invalid: list[InvalidRuntime] = field(default_factory=list)


class RuntimeIndexer:
    """Lists the runtimes in a runtime cache directory."""

    def __init__(self, disk_io: DiskIO | None = None, igor_segment: Path | None = None) -> None:
        self.disk_io: DiskIO = disk_io or LocalDiskIO()
        self.igor_segment = igor_segment or igor_path_segment()

    def get_runtimes(
        self, path: Path, channel: ReleaseChannel | None = None
    ) -> RuntimeIndex:
        """Scan ``path`` for ``runtime-*`` directories.

        Directories whose name is not a runtime version are reported as
        invalid. Runtimes without an Igor executable for this host are
        skipped, since they cannot build anything here.

        Raises:
            OSError: If ``path`` cannot be listed
        """
        index = RuntimeIndex()

        for name in self.disk_io.list_dir(path):
            runtime_path = path / name
            if not self.disk_io.is_dir(runtime_path):
                continue

            try:
                version = RuntimeVersion.parse(name)
            except VersionParseError as e:
                logger.debug(f"Skipping runtime directory {runtime_path}: {e}")
                index.invalid.append(InvalidRuntime(runtime_path, e))
                continue

            igor_path = runtime_path / self.igor_segment
            if not self.disk_io.exists(igor_path):
                logger.debug(f"Runtime {version} has no Igor executable at {igor_path}")
                continue

            index.runtimes.append(RuntimeInfo(version, runtime_path, igor_path, channel))

        index.runtimes.sort(key=lambda runtime: runtime.version, reverse=True)
        return index

    def get_runtimes_by_channel(
        self, paths: Mapping[ReleaseChannel, Path]
    ) -> dict[ReleaseChannel, list[RuntimeInfo]]:
        """Scan the runtime directory of every channel. Unreadable directories count as empty."""
        found: dict[ReleaseChannel, list[RuntimeInfo]] = {}
        for channel, path in paths.items():
            try:
                found[channel] = self.get_runtimes(path, channel).runtimes
            except OSError as e:
                logger.info(f"No {channel.value} runtimes at {path}: {e}")
                found[channel] = []
        return found


def find_compatible_runtime(
    runtimes: Iterable[RuntimeInfo], project_format: FormatTag
) -> RuntimeInfo | None:
    """Newest runtime whose format tag equals ``project_format``."""
    compatible = [r for r in runtimes if r.version.is_compatible_with(project_format)]
    if not compatible:
        return None
    return max(compatible, key=lambda runtime: runtime.version)


def find_runtime_for_project_version(
    runtimes_by_channel: Mapping[ReleaseChannel, list[RuntimeInfo]],
    project_version: ProjectVersion,
    channel: ReleaseChannel | None = None,
) -> RuntimeInfo:
    """Pick the runtime released alongside the IDE version a project was saved with.

    Channels are searched LTS, Stable, then Beta unless ``channel`` is given.
    Beta projects only ever match Beta runtimes.

    Raises:
        RuntimeNotFoundError: ``reason`` is ``channel-empty`` when the only
            channel searched has no runtimes, ``none-compatible`` otherwise
    """
    if project_version.is_beta:
        channels: tuple[ReleaseChannel, ...] = (ReleaseChannel.BETA,)
    elif channel is not None:
        channels = (channel,)
    else:
        channels = CHANNEL_SEARCH_ORDER

    for candidate_channel in channels:
        matches = [
            runtime
            for runtime in runtimes_by_channel.get(candidate_channel, [])
            if project_version.matches_runtime(runtime.version)
        ]
        if matches:
            return max(matches, key=lambda runtime: runtime.version)

    if len(channels) == 1 and not runtimes_by_channel.get(channels[0]):
        raise RuntimeNotFoundError(
            f"No {channels[0].value} runtimes are installed",
            reason="channel-empty",
            channel=channels[0].value,
        )

    raise RuntimeNotFoundError(
        f"No installed runtime matches project version {project_version}",
        reason="none-compatible",
        channel=channels[0].value if len(channels) == 1 else None,
    )
