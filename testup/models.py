"""
Data models for test discovery, execution results and coverage.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class TestStatus(Enum):
    """Status of a test case, or the aggregate status of a test file."""
    __test__ = False

    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"
    UNKNOWN = "unknown"


class TestSize(Enum):
    """Size label taken from the test method naming convention."""
    __test__ = False

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


@dataclass(frozen=True)
class TestFile:
    """A runnable test unit on disk."""
    __test__ = False

    path: Path

    @property
    def name(self) -> str:
        """Logical unit name: the basename without its extension."""
        return self.path.stem

    @property
    def element_id(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class TestCategory:
    """A directory of test units, with the optional intro.html contents."""
    __test__ = False

    name: str
    path: Path
    files: tuple[TestFile, ...] = ()
    intro: Optional[str] = None

    @property
    def title(self) -> str:
        return self.name.replace("_", " ")


@dataclass(frozen=True)
class TestRunResult:
    """Represents the outcome of a single test case."""
    __test__ = False

    name: str
    class_name: str
    unit: str
    status: TestStatus
    size: TestSize
    line: str = ""

    @property
    def qualified_name(self) -> str:
        return f"{self.class_name}.{self.name}"


@dataclass
class ResultStats:
    """Running pass/fail/warn and size totals."""
    passed: int = 0
    failed: int = 0
    warned: int = 0
    small: int = 0
    medium: int = 0
    large: int = 0

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.warned

    @property
    def status(self) -> TestStatus:
        # fail beats warn, which beats pass
        if self.failed:
            return TestStatus.FAIL
        if self.warned:
            return TestStatus.WARN
        if self.passed:
            return TestStatus.PASS
        return TestStatus.UNKNOWN

    def record(self, result: TestRunResult):
        if result.status == TestStatus.PASS:
            self.passed += 1
        elif result.status == TestStatus.FAIL:
            self.failed += 1
        elif result.status == TestStatus.WARN:
            self.warned += 1

        if result.size == TestSize.LARGE:
            self.large += 1
        elif result.size == TestSize.MEDIUM:
            self.medium += 1
        else:
            self.small += 1

    def merge(self, other: "ResultStats"):
        self.passed += other.passed
        self.failed += other.failed
        self.warned += other.warned
        self.small += other.small
        self.medium += other.medium
        self.large += other.large

    def size_percentages(self) -> Optional[dict[str, int]]:
        """Small/medium/large shares in whole percent, or None with no tests."""
        sized = self.small + self.medium + self.large
        if sized == 0:
            return None
        small = int(100.0 * self.small / sized)
        medium = math.ceil(100.0 * self.medium / sized)
        return {"small": small, "medium": medium, "large": 100 - small - medium}

    def to_dict(self) -> dict:
        return {
            "pass": self.passed,
            "fail": self.failed,
            "warn": self.warned,
            "small": self.small,
            "medium": self.medium,
            "large": self.large,
            "status": self.status.value,
        }


@dataclass
class CoverageEntry:
    """Coverage record for one expected API method."""
    class_name: str
    method_name: str
    test_count: int = 0

    @property
    def covered(self) -> bool:
        return self.test_count > 0

    @property
    def key(self) -> str:
        return f"{self.class_name}.{self.method_name}"


@dataclass
class ClassCoverage:
    """Covered and not covered methods of one API class."""
    class_name: str
    covered: list[str] = field(default_factory=list)
    not_covered: list[str] = field(default_factory=list)

    @property
    def percentage(self) -> Optional[float]:
        total = len(self.covered) + len(self.not_covered)
        if total == 0:
            return None
        return len(self.covered) / total * 100.0
