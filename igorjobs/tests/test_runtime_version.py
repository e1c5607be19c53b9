import itertools
import unittest

from igorjobs.compiler.runtime_version import (
    FormatTag,
    ProjectVersion,
    RuntimeVersion,
)
from igorjobs.errors import VersionParseError


SAMPLE_VERSIONS = [
    RuntimeVersion(2022, 0, 0, 0),
    RuntimeVersion(2023, 11, 1, 160),
    RuntimeVersion(2024, 2, 0, 163),
    RuntimeVersion(2024, 2, 0, 164),
    RuntimeVersion(2024, 4, 0, 0),
    RuntimeVersion(2024, 4, 1, 0),
    RuntimeVersion(2024, 1100, 0, 625),
    RuntimeVersion(2025, 0, 0, 1),
]


class TestRuntimeVersionParse(unittest.TestCase):
    def test_parse_valid(self) -> None:
        version = RuntimeVersion.parse("runtime-2024.11.0.179")
        self.assertEqual(version, RuntimeVersion(2024, 11, 0, 179))

    def test_str_round_trips(self) -> None:
        for version in SAMPLE_VERSIONS:
            self.assertEqual(RuntimeVersion.parse(str(version)), version)

    def test_missing_prefix(self) -> None:
        with self.assertRaises(VersionParseError):
            RuntimeVersion.parse("2024.11.0.179")

    def test_repeated_prefix(self) -> None:
        with self.assertRaises(VersionParseError):
            RuntimeVersion.parse("runtime-runtime-2024.11.0.179")

    def test_wrong_segment_count(self) -> None:
        for text in ("runtime-2024.11.0", "runtime-2024.11.0.179.1", "runtime-"):
            with self.subTest(text=text):
                with self.assertRaises(VersionParseError):
                    RuntimeVersion.parse(text)

    def test_non_numeric_segment(self) -> None:
        for text in ("runtime-2024.11.x.179", "runtime-2024.-1.0.179", "runtime-2024.11..179"):
            with self.subTest(text=text):
                with self.assertRaises(VersionParseError):
                    RuntimeVersion.parse(text)

    def test_parse_error_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            RuntimeVersion.parse("runtime-latest")


class TestRuntimeVersionOrder(unittest.TestCase):
    def test_compare_reflexive(self) -> None:
        for version in SAMPLE_VERSIONS:
            self.assertEqual(version.compare(version), 0)

    def test_compare_antisymmetric(self) -> None:
        for a, b in itertools.permutations(SAMPLE_VERSIONS, 2):
            self.assertEqual(a.compare(b), -b.compare(a))
            self.assertNotEqual(a.compare(b), 0)

    def test_compare_transitive(self) -> None:
        for a, b, c in itertools.permutations(SAMPLE_VERSIONS, 3):
            if a.compare(b) < 0 and b.compare(c) < 0:
                self.assertLess(a.compare(c), 0)

    def test_compare_matches_rich_comparison(self) -> None:
        for a, b in itertools.permutations(SAMPLE_VERSIONS, 2):
            self.assertEqual(a.compare(b) < 0, a < b)

    def test_sample_is_sorted(self) -> None:
        self.assertEqual(sorted(reversed(SAMPLE_VERSIONS)), SAMPLE_VERSIONS)

    def test_field_priority(self) -> None:
        self.assertEqual(RuntimeVersion(2024, 2, 9, 9).compare(RuntimeVersion(2024, 3, 0, 0)), -1)
        self.assertEqual(RuntimeVersion(2024, 2, 1, 0).compare(RuntimeVersion(2024, 2, 0, 999)), 1)


class TestFormatTag(unittest.TestCase):
    def test_decision_table(self) -> None:
        cases = [
            (RuntimeVersion(2023, 11, 1, 160), FormatTag.LEGACY),
            (RuntimeVersion(2022, 9, 0, 0), FormatTag.LEGACY),
            (RuntimeVersion(2024, 2, 0, 163), FormatTag.V2024_2),
            (RuntimeVersion(2024, 200, 0, 480), FormatTag.V2024_2),
            (RuntimeVersion(2024, 4, 1, 0), FormatTag.V2024_4),
            (RuntimeVersion(2024, 8, 0, 0), FormatTag.V2024_4),
            (RuntimeVersion(2024, 1100, 0, 300), FormatTag.V2024_4),
            (RuntimeVersion(2024, 1100, 0, 625), FormatTag.V2024_11),
            (RuntimeVersion(2024, 13, 0, 0), FormatTag.V2024_11),
            (RuntimeVersion(2025, 0, 0, 0), FormatTag.LATEST),
        ]
        for version, expected in cases:
            with self.subTest(version=str(version)):
                self.assertIs(version.format, expected)

    def test_compatible_only_with_equal_tag(self) -> None:
        version = RuntimeVersion(2024, 4, 1, 0)
        self.assertTrue(version.is_compatible_with(FormatTag.V2024_4))
        self.assertFalse(version.is_compatible_with(FormatTag.V2024_2))
        self.assertFalse(version.is_compatible_with(FormatTag.LATEST))


class TestProjectVersion(unittest.TestCase):
    def test_parse_without_prefix(self) -> None:
        self.assertEqual(ProjectVersion.parse("2024.11.0.179"), ProjectVersion(2024, 11, 0, 179))
        with self.assertRaises(VersionParseError):
            ProjectVersion.parse("runtime-2024.11.0.179")

    def test_beta_before_stable(self) -> None:
        beta = ProjectVersion.parse("2024.1100.0.625")
        stable = ProjectVersion.parse("2024.11.0.179")
        self.assertTrue(beta.is_beta)
        self.assertEqual(beta.compare(stable), -1)
        self.assertEqual(stable.compare(beta), 1)

    def test_matches_runtime_ignores_build(self) -> None:
        project = ProjectVersion(2024, 11, 0, 179)
        self.assertTrue(project.matches_runtime(RuntimeVersion(2024, 11, 0, 227)))
        self.assertFalse(project.matches_runtime(RuntimeVersion(2024, 11, 1, 179)))


if __name__ == "__main__":
    unittest.main()
