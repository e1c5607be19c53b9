import signal
import unittest
from pathlib import Path

from igorjobs.compiler.settings import JobSettings, Platform, Task
from igorjobs.tests.fakes import FakeDiskIO, FakeProcessControl
from igorjobs.util.process_killer import (
    SIGKILL,
    ProcessGroupStrategy,
    ProcessTreeTerminator,
    RecursiveSignalStrategy,
    TaskkillStrategy,
    default_strategy,
)


WINDOWS_SETTINGS = JobSettings(platform=Platform.WINDOWS, task=Task.RUN, build_path=Path("/builds/Windows/0"))
ANDROID_SETTINGS = JobSettings(platform=Platform.ANDROID, task=Task.RUN, build_path=Path("/b/Android/0"))


class TestStrategies(unittest.TestCase):
    def test_default_strategy_per_host(self) -> None:
        control = FakeProcessControl()
        self.assertIsInstance(default_strategy(control, "win32"), TaskkillStrategy)
        self.assertIsInstance(default_strategy(control, "darwin"), RecursiveSignalStrategy)
        self.assertIsInstance(default_strategy(control, "linux"), ProcessGroupStrategy)

    def test_process_group_graceful_and_forced(self) -> None:
        control = FakeProcessControl()
        strategy = ProcessGroupStrategy(control)
        strategy.terminate_tree(100, force=False)
        strategy.terminate_tree(100, force=True)
        self.assertEqual(
            control.calls,
            [("signal_group", 100, signal.SIGTERM), ("signal_group", 100, SIGKILL)],
        )

    def test_taskkill_is_always_forceful(self) -> None:
        control = FakeProcessControl()
        TaskkillStrategy(control).terminate_tree(100, force=False)
        self.assertEqual(
            control.calls, [("run", ("taskkill", "/PID", "100", "/T", "/F"), None)]
        )

    def test_recursive_signals_children_first(self) -> None:
        control = FakeProcessControl(tree={100: [101, 102], 101: [103]})
        RecursiveSignalStrategy(control).terminate_tree(100, force=False)
        self.assertEqual(control.signalled(), [103, 101, 102, 100])

    def test_recursive_tolerates_exited_child(self) -> None:
        control = FakeProcessControl(tree={100: [101, 102]}, gone={101})
        RecursiveSignalStrategy(control).terminate_tree(100, force=True)
        self.assertEqual(control.signalled(), [101, 102, 100])


class TestProcessTreeTerminator(unittest.TestCase):
    def test_already_exited_counts_as_success(self) -> None:
        control = FakeProcessControl(gone={100})
        result = ProcessTreeTerminator(control, host="linux").stop(100, WINDOWS_SETTINGS)
        self.assertTrue(result.ok)
        self.assertIsNone(result.error)

    def test_failure_is_returned_not_raised(self) -> None:
        control = FakeProcessControl(failing_commands={"taskkill"})
        result = ProcessTreeTerminator(control, host="win32").stop(100, WINDOWS_SETTINGS)
        self.assertFalse(result.ok)
        assert result.error is not None
        self.assertEqual(result.error.pid, 100)
        self.assertIn("process tree", str(result.error))

    def test_android_daemon_stopped_before_tree(self) -> None:
        disk = FakeDiskIO(files={"/b/Android/0/output/android/gradlew": "#!/bin/sh\n"})
        control = FakeProcessControl()
        result = ProcessTreeTerminator(control, host="linux", disk_io=disk).stop(100, ANDROID_SETTINGS)

        gradle_dir = ANDROID_SETTINGS.output_dir / "android"
        self.assertTrue(result.ok)
        self.assertEqual(
            control.calls[0], ("run", (str(gradle_dir / "gradlew"), "--stop"), gradle_dir)
        )
        self.assertEqual(control.calls[1], ("signal_group", 100, signal.SIGTERM))

    def test_daemon_wrapper_outside_output_ignored(self) -> None:
        disk = FakeDiskIO(
            dirs=["/b/Android/0/output"],
            files={"/b/Android/0/cache/android/gradlew": "#!/bin/sh\n"},
        )
        control = FakeProcessControl()
        result = ProcessTreeTerminator(control, host="linux", disk_io=disk).stop(100, ANDROID_SETTINGS)

        self.assertTrue(result.ok)
        self.assertEqual(control.calls, [("signal_group", 100, signal.SIGTERM)])

    def test_daemon_failure_does_not_prevent_tree_kill(self) -> None:
        disk = FakeDiskIO(files={"/b/Android/0/output/gradlew": "#!/bin/sh\n"})
        control = FakeProcessControl(failing_commands={"gradlew"})
        result = ProcessTreeTerminator(control, host="linux", disk_io=disk).stop(100, ANDROID_SETTINGS)

        self.assertFalse(result.ok)
        self.assertIn(("signal_group", 100, signal.SIGTERM), control.calls)

    def test_forced_stop_skips_daemon(self) -> None:
        disk = FakeDiskIO(files={"/b/Android/0/output/gradlew": "#!/bin/sh\n"})
        control = FakeProcessControl()
        ProcessTreeTerminator(control, host="linux", disk_io=disk).stop(100, ANDROID_SETTINGS, force=True)

        self.assertEqual(control.calls, [("signal_group", 100, SIGKILL)])

    def test_detached_runner_found_by_log_path(self) -> None:
        settings = JobSettings(platform=Platform.MAC, task=Task.RUN, build_path=Path("/builds/Mac/1"))
        log_path = str(settings.debug_log_path)
        control = FakeProcessControl(
            command_lines={
                200: f"Mac_Runner -game game.ios -output {log_path}",
                300: "unrelated --output /builds/Mac/2/output/debug.log",
            }
        )
        result = ProcessTreeTerminator(control, host="darwin").stop(100, settings)

        self.assertTrue(result.ok)
        self.assertEqual(result.killed_runner_pids, [200])
        self.assertIn(("find", log_path), control.calls)
        self.assertNotIn(300, control.signalled())

    def test_no_runner_search_on_linux(self) -> None:
        settings = JobSettings(platform=Platform.LINUX, task=Task.RUN, build_path=Path("/b/Linux/0"))
        control = FakeProcessControl(command_lines={200: str(settings.debug_log_path)})
        result = ProcessTreeTerminator(control, host="linux").stop(100, settings)
        self.assertEqual(result.killed_runner_pids, [])
        self.assertFalse(any(call[0] == "find" for call in control.calls))


if __name__ == "__main__":
    unittest.main()
