#!/usr/bin/env python3
"""igorjobs configuration.

Settings come from, in increasing priority: host defaults, a TOML file, and
environment variables. The file is ``$IGORJOBS_CONFIG`` if set, else
``~/.config/igorjobs/config.toml`` if it exists::

    build_path = "/tmp/igorjobs"
    threads = 8
    runner = "YYC"

    [runtime_paths]
    Stable = "/Users/Shared/GameMakerStudio2/Cache/runtimes"

    [user_paths]
    Stable = "/Users/me/.config/GameMakerStudio2"
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from typeguard import typechecked

from igorjobs.compiler.igor_paths import HOST_PLATFORM_INFO
from igorjobs.compiler.runtime_version import ReleaseChannel
from igorjobs.compiler.settings import Runner
from igorjobs.errors import ConfigError


CONFIG_ENV_VAR = "IGORJOBS_CONFIG"
BUILD_PATH_ENV_VAR = "IGORJOBS_BUILD_PATH"
THREADS_ENV_VAR = "IGORJOBS_THREADS"

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "igorjobs" / "config.toml"


@dataclass
class IgorJobsConfig:
    """Resolved configuration.

    Attributes:
        global_build_path: Root directory jobs build into
        runtime_paths: Runtime cache directory per release channel
        user_paths: User folder root per release channel
        threads: Compiler thread count, None for Igor's default
        runner: Default runner for new jobs
    """

    global_build_path: Path = field(
        default_factory=lambda: HOST_PLATFORM_INFO.default_global_build_path
    )
    runtime_paths: dict[ReleaseChannel, Path] = field(
        default_factory=lambda: dict(HOST_PLATFORM_INFO.default_runtime_paths)
    )
    user_paths: dict[ReleaseChannel, Path] = field(
        default_factory=lambda: dict(HOST_PLATFORM_INFO.default_user_paths)
    )
    threads: Optional[int] = None
    runner: Runner = Runner.VM


def _parse_channel_paths(section: Any, key: str) -> dict[ReleaseChannel, Path]:
    if not isinstance(section, dict):
        raise ConfigError(f"[{key}] must be a table of channel = path")

    paths: dict[ReleaseChannel, Path] = {}
    for name, value in section.items():
        try:
            channel = ReleaseChannel(name)
        except ValueError as e:
            valid = ", ".join(channel.value for channel in ReleaseChannel)
            raise ConfigError(f"Unknown release channel '{name}' in [{key}], expected one of {valid}", e) from e
        if not isinstance(value, str):
            raise ConfigError(f"{key}.{name} must be a path string")
        paths[channel] = Path(value).expanduser()
    return paths


def _parse_threads(value: Any, source: str) -> int:
    try:
        threads = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{source} must be an integer, found '{value}'", e) from e
    if threads < 1:
        raise ConfigError(f"{source} must be at least 1, found {threads}")
    return threads


@typechecked
def apply_config_data(config: IgorJobsConfig, data: Mapping[str, Any]) -> IgorJobsConfig:
    """Overlay the contents of a parsed TOML document onto ``config``."""
    if "build_path" in data:
        config.global_build_path = Path(str(data["build_path"])).expanduser()

    if "runtime_paths" in data:
        config.runtime_paths.update(_parse_channel_paths(data["runtime_paths"], "runtime_paths"))

    if "user_paths" in data:
        config.user_paths.update(_parse_channel_paths(data["user_paths"], "user_paths"))

    if "threads" in data:
        config.threads = _parse_threads(data["threads"], "threads")

    if "runner" in data:
        try:
            config.runner = Runner(data["runner"])
        except ValueError as e:
            raise ConfigError(f"runner must be VM or YYC, found '{data['runner']}'", e) from e

    return config


@typechecked
def load_config(
    path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
) -> IgorJobsConfig:
    """Load the configuration.

    Args:
        path: Config file to read. Defaults to ``$IGORJOBS_CONFIG`` or the
            user config file; a missing default file is not an error.
        environ: Environment to read overrides from, ``os.environ`` if None

    Raises:
        ConfigError: If the file cannot be read or holds invalid values
    """
    env = os.environ if environ is None else environ
    config = IgorJobsConfig()

    explicit = path is not None or CONFIG_ENV_VAR in env
    if path is None:
        path = Path(env[CONFIG_ENV_VAR]) if CONFIG_ENV_VAR in env else DEFAULT_CONFIG_PATH

    if explicit or path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except OSError as e:
            raise ConfigError(f"Failed to read config file {path}", e) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in config file {path}", e) from e
        apply_config_data(config, data)

    if env.get(BUILD_PATH_ENV_VAR):
        config.global_build_path = Path(env[BUILD_PATH_ENV_VAR]).expanduser()

    if env.get(THREADS_ENV_VAR):
        config.threads = _parse_threads(env[THREADS_ENV_VAR], THREADS_ENV_VAR)

    return config
