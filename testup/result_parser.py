"""Parser for the verbose console output written by the test runner."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from .models import ResultStats, TestRunResult, TestSize, TestStatus
from .runner import RESULTS_SUFFIX

logger = logging.getLogger(__name__)

SUITE_PREFIX = "Loaded suite"
TEST_PREFIX = "test_"

_STATUS_BY_MARK = {
    ".": TestStatus.PASS,
    "F": TestStatus.FAIL,
    "E": TestStatus.WARN,
}

_ASSERT_LOCATION = re.compile(r"\]:\s*$")
_STATUS_LINE = re.compile(r"^(?P<method>test_[^(\s:]*)(?:\((?P<cls>[^)]*)\))?")
_FINISHED = re.compile(r"^Finished in (?P<seconds>\d+(?:\.\d+)?) seconds\.")


class LineKind(Enum):
    SUITE = "suite"
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"
    FAILURE_MESSAGE = "failure_message"
    TEXT = "text"


_KIND_BY_STATUS = {
    TestStatus.PASS: LineKind.PASS,
    TestStatus.FAIL: LineKind.FAIL,
    TestStatus.WARN: LineKind.WARN,
}


@dataclass(frozen=True)
class ParsedLine:
    kind: LineKind
    text: str


@dataclass
class ParsedOutput:
    """Structured view of one test unit's console output."""
    element_id: Optional[str] = None
    unit: Optional[str] = None
    lines: list[ParsedLine] = field(default_factory=list)
    outcomes: list[TestRunResult] = field(default_factory=list)
    stats: ResultStats = field(default_factory=ResultStats)
    run_time: Optional[float] = None

    @property
    def passed(self) -> list[TestRunResult]:
        return [o for o in self.outcomes if o.status == TestStatus.PASS]


def classify_size(method_name: str) -> TestSize:
    """Size from the naming convention: ``_large`` and ``_medium`` suffixes, else small."""
    if method_name.endswith("_large"):
        return TestSize.LARGE
    if method_name.endswith("_medium"):
        return TestSize.MEDIUM
    return TestSize.SMALL


def parse_lines(lines: Iterable[str], extension: str = ".py", unit: Optional[str] = None) -> ParsedOutput:
    """
    Parse console output into status lines, failure messages and outcomes.

    Args:
        lines: Raw output lines, with or without trailing newlines
        extension: Test source extension appended to the suite name
        unit: Test unit name, used until a "Loaded suite" line names one

    Returns:
        ParsedOutput; unrecognised test lines are dropped
    """
    parsed = ParsedOutput(unit=unit)
    fail_msg_next = False

    for raw in lines:
        line = raw.rstrip("\r\n")

        if line.startswith(SUITE_PREFIX):
            suite = line[len(SUITE_PREFIX):].split()
            if suite:
                parsed.unit = suite[-1]
            if parsed.unit:
                parsed.element_id = parsed.unit + extension
            parsed.lines.append(ParsedLine(LineKind.SUITE, line))

        elif line.startswith(TEST_PREFIX):
            status = _STATUS_BY_MARK.get(line[-1:])
            if status is None:
                # Unrecognised terminator
                continue
            match = _STATUS_LINE.match(line)
            method = match.group("method")
            outcome = TestRunResult(
                name=method,
                class_name=match.group("cls") or "",
                unit=parsed.unit or "",
                status=status,
                size=classify_size(method),
                line=line,
            )
            parsed.outcomes.append(outcome)
            parsed.stats.record(outcome)
            parsed.lines.append(ParsedLine(_KIND_BY_STATUS[status], line))

        elif _ASSERT_LOCATION.search(line):
            fail_msg_next = True
            parsed.lines.append(ParsedLine(LineKind.TEXT, line))

        elif fail_msg_next and not line.startswith("<") and "----" not in line:
            fail_msg_next = False
            parsed.lines.append(ParsedLine(LineKind.FAILURE_MESSAGE, line))

        elif line.startswith("Note"):
            parsed.lines.append(ParsedLine(LineKind.FAILURE_MESSAGE, line))

        else:
            fail_msg_next = False
            finished = _FINISHED.match(line)
            if finished:
                parsed.run_time = float(finished.group("seconds"))
            parsed.lines.append(ParsedLine(LineKind.TEXT, line))

    return parsed


def unit_from_results_file(path: Path) -> str:
    name = Path(path).name
    if name.endswith(RESULTS_SUFFIX):
        return name[:-len(RESULTS_SUFFIX)]
    return Path(path).stem


def parse_file(path: Path, extension: str = ".py") -> ParsedOutput:
    """Parse a saved results file."""
    path = Path(path)
    with open(path, 'r', errors='replace') as f:
        parsed = parse_lines(f, extension=extension, unit=unit_from_results_file(path))
    if parsed.element_id is None:
        parsed.element_id = parsed.unit + extension
    return parsed


def parse_results_dir(run_dir: Path, extension: str = ".py") -> dict[str, ParsedOutput]:
    """Parse every results file of a run directory, keyed by element id."""
    outputs = {}
    for path in sorted(Path(run_dir).glob(f"*{RESULTS_SUFFIX}")):
        parsed = parse_file(path, extension=extension)
        outputs[parsed.element_id] = parsed
    logger.debug(f"Parsed {len(outputs)} results files from {run_dir}")
    return outputs


def merge_stats(outputs: Iterable[ParsedOutput]) -> ResultStats:
    """Batch totals across parsed files."""
    totals = ResultStats()
    for parsed in outputs:
        totals.merge(parsed.stats)
    return totals
