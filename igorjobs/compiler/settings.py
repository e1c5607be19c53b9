#!/usr/bin/env python3
"""Value types describing what a job should build and where."""

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path


class Platform(Enum):
    """A target platform Igor can build for."""

    OPERA_GX = "OperaGX"
    WINDOWS = "Windows"
    MAC = "Mac"
    LINUX = "Linux"
    HTML5 = "HTML5"
    IOS = "ios"
    ANDROID = "Android"
    TVOS = "tvos"
    PS4 = "ps4"
    PS5 = "ps5"
    XBOX_ONE = "XBoxOne"
    XBOX_SERIES_XS = "XBoxOneSeriesXS"
    SWITCH = "Switch"

    def __str__(self) -> str:
        return self.value


class Task(Enum):
    """What the user asked for. Mapped to an Igor verb per platform."""

    RUN = "Run"
    PACKAGE = "Package"
    CLEAN = "Clean"

    def __str__(self) -> str:
        return self.value


class Runner(Enum):
    """Runtime flavour: bytecode VM or the native YYC compiler."""

    VM = "VM"
    YYC = "YYC"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RemoteDevice:
    """A remote build machine registered in the user's devices.json."""

    name: str
    file_path: Path


@dataclass(frozen=True)
class Project:
    """A GameMaker project, identified by its ``.yyp`` file."""

    path: Path

    @property
    def name(self) -> str:
        return self.path.stem

    @property
    def directory(self) -> Path:
        return self.path.parent


@dataclass(frozen=True)
class JobSettings:
    """Immutable configuration for a single Igor job.

    Attributes:
        platform: Target platform to build for
        task: Task to run
        runner: VM or YYC
        config_name: Name of the project build config
        build_path: Directory build files are written to. The controller
            narrows this to a per-job subdirectory before spawning.
        device: Remote device to build on, where the platform needs one
        threads: Number of compiler threads, or None for Igor's default
    """

    platform: Platform
    task: Task
    runner: Runner = Runner.VM
    config_name: str = "Default"
    build_path: Path = Path("build")
    device: RemoteDevice | None = None
    threads: int | None = None

    def with_build_path(self, build_path: Path) -> "JobSettings":
        return replace(self, build_path=build_path)

    @property
    def output_dir(self) -> Path:
        return self.build_path / "output"

    @property
    def cache_dir(self) -> Path:
        return self.build_path / "cache"

    @property
    def debug_log_path(self) -> Path:
        """Log the runner writes its stdout to, unique to this job's build directory."""
        return self.output_dir / "debug.log"
