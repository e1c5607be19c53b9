#!/usr/bin/env python3
"""Extract diagnostic records from the complete output of an Igor job.

Each recognised error kind is a ``DiagnosticDescriptor``: a regex plus a
function building a record from a match. Descriptors are ordered from most to
least specific. A match that overlaps text already claimed by an earlier
descriptor is ignored, so ``Error : gml_...`` becomes a syntax error and not
also a generic compilation error.

Parsing runs once, over the full buffer, when a job stops. Running it over
partial chunks would produce records from truncated matches.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Sequence

from igorjobs.job.diagnostics import (
    DiagnosticRecord,
    JobCompilationError,
    JobPermissionsError,
    JobRuntimeError,
    JobSyntaxError,
)


logger = logging.getLogger(__name__)

# Runner error blocks are fenced by lines of '#'. The runner prints a fixed
# width; anything at least this wide counts.
SEPARATOR_MIN_WIDTH = 16
_SEPARATOR = "#{%d,}[ \\t]*\\n" % SEPARATOR_MIN_WIDTH

# Captures the runner error format of both 2024.4 and earlier and 2024.6+,
# which differ only in how the exception text is followed by an "at" line.
RUNTIME_ERROR_PATTERN = re.compile(
    r"^ERROR!!! :: " + _SEPARATOR
    + r"ERROR in\saction number 1\sof (?P<event>[A-Za-z0-9 ]+?)\sfor object (?P<object>\S+?):\n+"
    + r"(?P<exception>(?:(?!ERROR!!! ::)[\s\S])+?)\n"
    + _SEPARATOR
    + r"(?P<stack>(?:gml_\S+ \(line [0-9]+\)[^\n]*(?:\n|\Z))+)",
    re.MULTILINE,
)

PERMISSION_ERROR_PATTERN = re.compile(
    r"^Permission Error : (?P<message>.+)$", re.MULTILINE
)

SYNTAX_ERROR_PATTERN = re.compile(
    r"^Error : gml_(?P<script_type>[A-Z][a-zA-Z]*)_(?P<script>[a-zA-Z_][a-zA-Z0-9_]*)"
    r"\((?P<line>[0-9]+)\) : (?P<message>.+)$",
    re.MULTILINE,
)

# Anchored to the start of a line so that "Permission Error : x" is not also
# read as a compilation error.
COMPILATION_ERROR_PATTERN = re.compile(r"^Error : (?P<message>.+)$", re.MULTILINE)

_STACK_FRAME = re.compile(r"(?P<script>gml_\S+) \(line (?P<line>[0-9]+)\)")


@dataclass(frozen=True)
class DiagnosticDescriptor:
    """A recognised kind of error in Igor output.

    ``build`` may return None to reject a match that the pattern accepted.
    """

    name: str
    pattern: re.Pattern[str]
    build: Callable[["re.Match[str]"], DiagnosticRecord | None]


def _build_runtime_error(match: "re.Match[str]") -> JobRuntimeError | None:
    stack = match.group("stack")
    frame = _STACK_FRAME.search(stack)
    if frame is None:
        return None

    return JobRuntimeError(
        object=match.group("object"),
        event=match.group("event").strip(),
        script=frame.group("script"),
        line=int(frame.group("line")),
        stack_trace=stack.strip(),
        exception=match.group("exception").strip(),
    )


def _build_syntax_error(match: "re.Match[str]") -> JobSyntaxError:
    return JobSyntaxError(
        script_type=match.group("script_type"),
        script=match.group("script"),
        line=int(match.group("line")) + 1,
        message=match.group("message").strip(),
    )


DEFAULT_DESCRIPTORS: tuple[DiagnosticDescriptor, ...] = (
    DiagnosticDescriptor("runtime", RUNTIME_ERROR_PATTERN, _build_runtime_error),
    DiagnosticDescriptor(
        "permission",
        PERMISSION_ERROR_PATTERN,
        lambda match: JobPermissionsError(match.group("message").strip()),
    ),
    DiagnosticDescriptor("syntax", SYNTAX_ERROR_PATTERN, _build_syntax_error),
    DiagnosticDescriptor(
        "compilation",
        COMPILATION_ERROR_PATTERN,
        lambda match: JobCompilationError(match.group("message").strip()),
    ),
)


def _overlaps(start: int, end: int, claimed: list[tuple[int, int]]) -> bool:
    return any(start < claimed_end and claimed_start < end for claimed_start, claimed_end in claimed)


def extract_diagnostics(
    text: str,
    descriptors: Sequence[DiagnosticDescriptor] = DEFAULT_DESCRIPTORS,
) -> list[DiagnosticRecord]:
    """Find every diagnostic in ``text``.

    Args:
        text: Complete output of a job
        descriptors: Matchers to apply, most specific first

    Returns:
        Records in the order they appear in ``text``. Blocks that only
        partially match a descriptor are skipped without error.
    """
    claimed: list[tuple[int, int]] = []
    found: list[tuple[int, DiagnosticRecord]] = []

    for descriptor in descriptors:
        for match in descriptor.pattern.finditer(text):
            start, end = match.span()
            if _overlaps(start, end, claimed):
                continue

            try:
                record = descriptor.build(match)
            except (ValueError, IndexError) as e:
                logger.debug(f"Skipping malformed {descriptor.name} diagnostic at {start}: {e}")
                continue

            if record is None:
                continue

            claimed.append((start, end))
            found.append((start, record))

    found.sort(key=lambda item: item[0])
    logger.debug(f"Extracted {len(found)} diagnostics from {len(text)} characters of output")
    return [record for _start, record in found]
