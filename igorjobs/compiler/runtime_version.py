#!/usr/bin/env python3
"""GameMaker runtime and project versions.

Runtime directories are named ``runtime-<year>.<month>.<revision>.<build>``,
projects record the IDE version as ``<year>.<month>.<revision>.<build>``.
Beta releases encode their month multiplied by 100 (``2024.1100.0.625`` is a
beta of the 2024.11 release).
"""

import re
from dataclasses import dataclass
from enum import Enum

from igorjobs.errors import VersionParseError


RUNTIME_PREFIX = "runtime-"
EXPECTED_VERSION_FORMAT = "year.month.revision.build"
EXPECTED_RUNTIME_FORMAT = RUNTIME_PREFIX + EXPECTED_VERSION_FORMAT

_SEGMENT = re.compile(r"[0-9]+")

# Months at or above this value belong to beta releases.
BETA_MONTH_SCALE = 100


class ReleaseChannel(Enum):
    """Release channel a runtime was installed from."""

    LTS = "LTS"
    STABLE = "Stable"
    BETA = "Beta"


class FormatTag(Enum):
    """Project-file (YY) schema a runtime expects.

    Projects saved by 2023.11 and earlier use a different format to 2024.2 and
    greater (prefabs phase 1), and 2024 saw further breaking schema changes.
    """

    LEGACY = "2023.11"
    V2024_2 = "2024.2"
    V2024_4 = "2024.4"
    V2024_11 = "2024.11"
    # Anything newer than the last breakpoint we know of.
    LATEST = "latest"

    def __str__(self) -> str:
        return self.value


def _parse_segments(text: str, expected: str) -> tuple[int, int, int, int]:
    segments = text.split(".")

    if len(segments) != 4:
        raise VersionParseError(
            f"Expected version to be in format '{expected}' - 4 values, "
            f"found '{text}' - {len(segments)} values."
        )

    for segment in segments:
        if not _SEGMENT.fullmatch(segment):
            raise VersionParseError(
                f"Version '{text}' has a non-numeric value '{segment}'"
            )

    year, month, revision, build = (int(segment) for segment in segments)
    return year, month, revision, build


def _normalised_month(month: int) -> int:
    if month >= BETA_MONTH_SCALE:
        return month // BETA_MONTH_SCALE
    return month


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


@dataclass(frozen=True, order=True)
class RuntimeVersion:
    """Version of an installed runtime, ordered field by field."""

    year: int
    month: int
    revision: int
    build: int

    @classmethod
    def parse(cls, text: str) -> "RuntimeVersion":
        """Parse ``runtime-year.month.revision.build``.

        Raises:
            VersionParseError: If the prefix is missing, there are not exactly
                four segments, or a segment is not a non-negative integer.
        """
        if not text.startswith(RUNTIME_PREFIX) or text.count(RUNTIME_PREFIX) != 1:
            raise VersionParseError(
                f"Expected runtime version to be in format "
                f"'{EXPECTED_RUNTIME_FORMAT}', found '{text}'"
            )

        try:
            numbers = _parse_segments(
                text[len(RUNTIME_PREFIX) :], EXPECTED_RUNTIME_FORMAT
            )
        except VersionParseError as e:
            raise VersionParseError(
                f"Expected runtime version to be in format "
                f"'{EXPECTED_RUNTIME_FORMAT}', found '{text}'",
                e,
            ) from e

        return cls(*numbers)

    def compare(self, other: "RuntimeVersion") -> int:
        """Return -1 if older than ``other``, 0 if equal, 1 if newer."""
        for ours, theirs in zip(self._key(), other._key()):
            if ours != theirs:
                return _sign(ours - theirs)
        return 0

    def _key(self) -> tuple[int, int, int, int]:
        return (self.year, self.month, self.revision, self.build)

    @property
    def is_beta(self) -> bool:
        return self.month >= BETA_MONTH_SCALE

    @property
    def format(self) -> FormatTag:
        """The project format this runtime expects."""
        if self.year < 2024:
            return FormatTag.LEGACY

        if self.year > 2024:
            return FormatTag.LATEST

        month = _normalised_month(self.month)

        if month < 4:
            return FormatTag.V2024_2
        if month < 11:
            return FormatTag.V2024_4
        # Early 2024.11 betas still wrote the 2024.4 schema.
        if month == 11 and self.build < 400:
            return FormatTag.V2024_4
        return FormatTag.V2024_11

    def is_compatible_with(self, project_format: FormatTag) -> bool:
        return self.format == project_format

    def __str__(self) -> str:
        return f"{RUNTIME_PREFIX}{self.year}.{self.month}.{self.revision}.{self.build}"


@dataclass(frozen=True)
class ProjectVersion:
    """IDE version a project was last saved with."""

    year: int
    month: int
    revision: int
    build: int

    @classmethod
    def parse(cls, text: str) -> "ProjectVersion":
        return cls(*_parse_segments(text, EXPECTED_VERSION_FORMAT))

    @property
    def is_beta(self) -> bool:
        return self.month >= BETA_MONTH_SCALE

    def compare(self, other: "ProjectVersion") -> int:
        """Compare two versions, placing a month's betas before its stable release."""
        year_diff = self.year - other.year
        if year_diff != 0:
            return _sign(year_diff)

        month_diff = _normalised_month(self.month) - _normalised_month(other.month)
        if month_diff != 0:
            return _sign(month_diff)

        revision_diff = self.revision - other.revision
        if revision_diff != 0:
            return _sign(revision_diff)

        if self.is_beta != other.is_beta:
            return -1 if self.is_beta else 1

        return _sign(self.build - other.build)

    def matches_runtime(self, runtime: RuntimeVersion) -> bool:
        """Whether ``runtime`` was released alongside this IDE version."""
        return (
            runtime.year == self.year
            and runtime.month == self.month
            and runtime.revision == self.revision
        )

    def __str__(self) -> str:
        return f"{self.year}.{self.month}.{self.revision}.{self.build}"
