#!/usr/bin/env python3
"""Command line interface: ``python -m igorjobs <command>``.

Commands:
    runtimes    List installed runtimes per release channel
    users       List user folders and their remote devices
    run         Run a task on a project and stream Igor's output
    parse-log   Extract diagnostics from a saved Igor log
"""

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import Optional

from igorjobs.compiler.controller import CompileController
from igorjobs.compiler.runtime_version import ProjectVersion, ReleaseChannel, RuntimeVersion
from igorjobs.compiler.runtimes import RuntimeIndexer, RuntimeInfo, find_runtime_for_project_version
from igorjobs.compiler.settings import JobSettings, Platform, Project, Runner, Task
from igorjobs.compiler.users import UserIndexer, UserInfo
from igorjobs.config import IgorJobsConfig, load_config
from igorjobs.errors import ConfigurationError, IgorJobsError
from igorjobs.job.output_parser import extract_diagnostics
from igorjobs.job.state import StopKind
from igorjobs.util.color_output import ColorOutput


logger = logging.getLogger(__name__)


def parse_args(args: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="igorjobs", description="Run GameMaker's Igor build tool as managed jobs"
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to a config TOML file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    runtimes = commands.add_parser("runtimes", help="List installed runtimes")
    runtimes.add_argument(
        "--channel",
        choices=[channel.value for channel in ReleaseChannel],
        default=None,
        help="Only list this release channel",
    )

    users = commands.add_parser("users", help="List user folders")
    users.add_argument(
        "--channel",
        choices=[channel.value for channel in ReleaseChannel],
        default=ReleaseChannel.STABLE.value,
    )

    run = commands.add_parser("run", help="Run a task on a project")
    run.add_argument("project", type=Path, help="Path to the project's .yyp file")
    run.add_argument(
        "--platform",
        choices=[platform.value for platform in Platform],
        default=None,
        help="Target platform (default: the host platform)",
    )
    run.add_argument("--task", choices=[task.value for task in Task], default=Task.RUN.value)
    run.add_argument("--runner", choices=[runner.value for runner in Runner], default=None)
    run.add_argument("--build-config", default="Default", help="Project build config name")
    run.add_argument(
        "--channel",
        choices=[channel.value for channel in ReleaseChannel],
        default=None,
        help="Release channel to pick the runtime and user from",
    )
    runtime_choice = run.add_mutually_exclusive_group()
    runtime_choice.add_argument(
        "--runtime", default=None, help="Exact runtime to use, e.g. runtime-2024.11.0.179"
    )
    runtime_choice.add_argument(
        "--project-version",
        default=None,
        help="IDE version the project was saved with; picks the matching runtime",
    )
    run.add_argument("--user", default=None, help="User folder name (default: first found)")
    run.add_argument("--device", default=None, help="Remote device name from devices.json")
    run.add_argument("--threads", type=int, default=None, help="Compiler thread count")

    parse_log = commands.add_parser("parse-log", help="Extract diagnostics from an Igor log")
    parse_log.add_argument("log", type=Path, help="Saved Igor output")

    return parser.parse_args(args)


def _channels(config: IgorJobsConfig, name: Optional[str]) -> list[ReleaseChannel]:
    if name is not None:
        return [ReleaseChannel(name)]
    return [channel for channel in ReleaseChannel if channel in config.runtime_paths]


def cmd_runtimes(args: argparse.Namespace, config: IgorJobsConfig, out: ColorOutput) -> int:
    indexer = RuntimeIndexer()
    for channel in _channels(config, args.channel):
        path = config.runtime_paths[channel]
        try:
            index = indexer.get_runtimes(path, channel)
        except OSError as e:
            out.print_yellow(f"{channel.value}: cannot read {path} ({e})")
            continue

        out.print_blue(f"{channel.value} ({path})")
        for runtime in index.runtimes:
            out.print_green(f"  {runtime.version}  [{runtime.version.format}]")
        for invalid in index.invalid:
            out.print_yellow(f"  skipped {invalid.path.name}: {invalid.error}")
    return 0


def cmd_users(args: argparse.Namespace, config: IgorJobsConfig, out: ColorOutput) -> int:
    path = config.user_paths[ReleaseChannel(args.channel)]
    index = UserIndexer().get_users(path)
    for user in index.users:
        out.print_green(user.directory_name)
        for platform, devices in user.devices.items():
            if devices:
                out.print_blue(f"  {platform.value}: {', '.join(devices)}")
    for invalid in index.invalid:
        out.print_yellow(f"skipped {invalid.path.name}: {invalid.error}")
    return 0


def _select_runtime(args: argparse.Namespace, config: IgorJobsConfig) -> RuntimeInfo:
    indexer = RuntimeIndexer()
    by_channel = indexer.get_runtimes_by_channel(
        {channel: config.runtime_paths[channel] for channel in _channels(config, args.channel)}
    )

    if args.project_version is not None:
        channel = ReleaseChannel(args.channel) if args.channel else None
        return find_runtime_for_project_version(
            by_channel, ProjectVersion.parse(args.project_version), channel
        )

    available = [runtime for runtimes in by_channel.values() for runtime in runtimes]
    if args.runtime is not None:
        name = args.runtime if args.runtime.startswith("runtime-") else f"runtime-{args.runtime}"
        wanted = RuntimeVersion.parse(name)
        for runtime in available:
            if runtime.version == wanted:
                return runtime
        raise ConfigurationError(f"Runtime {wanted} is not installed")

    if not available:
        raise ConfigurationError(
            "No runtimes are installed", hint="Set runtime_paths in the config file."
        )
    return max(available, key=lambda runtime: runtime.version)


def _select_user(args: argparse.Namespace, config: IgorJobsConfig, runtime: RuntimeInfo) -> UserInfo:
    channel = runtime.channel or ReleaseChannel.STABLE
    users = UserIndexer().get_users(config.user_paths[channel]).users
    if args.user is not None:
        for user in users:
            if args.user in (user.name, user.directory_name):
                return user
        raise ConfigurationError(f"No user folder named '{args.user}'")
    if not users:
        raise ConfigurationError(
            "No user folders found", hint="Log in to the IDE once to create one."
        )
    return users[0]


def cmd_run(args: argparse.Namespace, config: IgorJobsConfig, out: ColorOutput) -> int:
    project = Project(args.project.resolve())
    runtime = _select_runtime(args, config)
    user = _select_user(args, config, runtime)

    controller = CompileController(project)
    platform = Platform(args.platform) if args.platform else controller.host
    device = user.device(platform, args.device) if args.device else None

    settings = JobSettings(
        platform=platform,
        task=Task(args.task),
        runner=Runner(args.runner) if args.runner else config.runner,
        config_name=args.build_config,
        build_path=config.global_build_path / project.name,
        device=device,
        threads=args.threads if args.threads is not None else config.threads,
    )

    out.print_blue(f"Using {runtime.version} with user {user.directory_name}")
    job = controller.start(runtime, user, settings)

    printed = 0
    print_lock = threading.Lock()

    def on_output(text: str) -> None:
        nonlocal printed
        with print_lock:
            if len(text) > printed:
                out.print_raw(text[printed:])
                printed = len(text)

    job.output_updated.connect(on_output)
    on_output(job.output)

    try:
        result = job.wait()
    except KeyboardInterrupt:
        out.print_yellow("\nStopping job...")
        result = job.stop().result()
    finally:
        controller.destroy()

    out.print_result(result)
    return 0 if result.kind is StopKind.FINISHED else 1


def cmd_parse_log(args: argparse.Namespace, config: IgorJobsConfig, out: ColorOutput) -> int:
    text = args.log.read_text(encoding="utf-8", errors="replace").replace("\r", "")
    diagnostics = extract_diagnostics(text)
    for record in diagnostics:
        out.print_diagnostic(record)
    if not diagnostics:
        out.print_green("No diagnostics found")
    return 1 if diagnostics else 0


COMMANDS = {
    "runtimes": cmd_runtimes,
    "users": cmd_users,
    "run": cmd_run,
    "parse-log": cmd_parse_log,
}


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    out = ColorOutput()
    errors = ColorOutput(stderr=True)
    try:
        config = load_config(args.config)
        return COMMANDS[args.command](args, config, out)
    except IgorJobsError as e:
        errors.print_red(f"Error: {e}")
        return 2
    except (OSError, KeyError) as e:
        errors.print_red(f"Error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
