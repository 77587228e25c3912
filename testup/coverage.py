"""
API method coverage analysis.

The overall workflow: build a master registry of every expected API method
from a reference list, collect the tests that passed from the parsed results,
mark each registry entry covered by the passed tests whose names match it,
then compute per class and total coverage and render an HTML breakdown.

Matching is a loose heuristic: a method counts as covered when
its name appears inside the shortened name of a passed test of the same API
class. A test can therefore cover several methods that share a substring.
"""

import html
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .config import ConfigurationError
from .models import ClassCoverage, CoverageEntry, TestRunResult, TestStatus

logger = logging.getLogger(__name__)

COVERAGE_HTML = "testup_coverage.html"
TEST_NAME_PREFIX = "test_"
UNIT_PREFIX = "TC_"

# Checked in this order; only the first marker present is used
SHORT_NAME_MARKERS = (
    "_api_example",
    "_true_and_false",
    "_when",
    "_simple",
    "_edgecases",
    "_known_case",
    "_zero",
)

# Badge colours: no coverage, partial coverage, full coverage
RED = "red"
YELLOW = "yellow"
GREEN = "green"


def short_method_name(test_name: str) -> str:
    """
    Shorten a test method name to the part that names the API method.

    ``test_rotate_true_and_false_edge`` -> ``rotate``;
    ``test_simple_move`` -> ``simple_move``.
    """
    short_name = test_name
    if short_name.startswith(TEST_NAME_PREFIX):
        short_name = short_name[len(TEST_NAME_PREFIX):]

    for marker in SHORT_NAME_MARKERS:
        if marker in short_name:
            return short_name.split(marker, 1)[0]
    return short_name


def api_class_for_unit(unit: str) -> str:
    """API class a test unit covers, from its name: ``TC_Face`` -> ``Face``."""
    if unit.startswith(UNIT_PREFIX):
        unit = unit[len(UNIT_PREFIX):]
    return unit.split("_", 1)[0]


@dataclass(frozen=True)
class PassedTest:
    """A passed test reduced to what coverage matching needs."""
    class_name: str
    short_name: str

    @classmethod
    def from_result(cls, result: TestRunResult) -> "PassedTest":
        return cls(api_class_for_unit(result.unit), short_method_name(result.name))


@dataclass
class CoverageReport:
    """Registry and per-class breakdown produced by one analysis."""
    registry: dict[str, CoverageEntry] = field(default_factory=dict)
    classes: dict[str, ClassCoverage] = field(default_factory=dict)

    @property
    def covered_count(self) -> int:
        return sum(1 for entry in self.registry.values() if entry.covered)

    @property
    def total_count(self) -> int:
        return len(self.registry)

    @property
    def total_coverage(self) -> Optional[float]:
        if not self.registry:
            return None
        return self.covered_count / self.total_count * 100.0

    def to_dict(self) -> dict:
        return {
            "total_coverage": self.total_coverage,
            "covered": self.covered_count,
            "total": self.total_count,
            "classes": {
                name: {
                    "coverage": cov.percentage,
                    "covered": {m: self.registry[f"{name}.{m}"].test_count for m in cov.covered},
                    "not_covered": list(cov.not_covered),
                }
                for name, cov in sorted(self.classes.items())
            },
        }


def load_reference_list(path: Path) -> list[tuple[str, str]]:
    """
    Read the master list of API methods, one ``Class.method`` per line.

    Returns:
        (class name, method name) pairs in file order
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Coverage reference list does not exist: {path}")

    methods = []
    for number, line in enumerate(path.read_text(errors='replace').splitlines(), 1):
        line = line.strip()
        if not line:
            continue
        class_name, dot, method_name = line.partition('.')
        if not dot or not class_name or not method_name:
            logger.warning(f"{path}:{number}: not a Class.method entry: {line!r}")
            continue
        methods.append((class_name, method_name))
    return methods


class CoverageAnalyzer:
    """Cross-references passed tests with the reference list of API methods."""

    def __init__(self, methods: Iterable[tuple[str, str]]):
        self.methods = list(methods)

    @classmethod
    def from_file(cls, path: Path) -> "CoverageAnalyzer":
        return cls(load_reference_list(path))

    def build_registry(self) -> CoverageReport:
        """Fresh registry with every entry uncovered and one bucket per class."""
        report = CoverageReport()
        for class_name, method_name in self.methods:
            entry = CoverageEntry(class_name=class_name, method_name=method_name)
            report.registry[entry.key] = entry
            if class_name not in report.classes:
                report.classes[class_name] = ClassCoverage(class_name=class_name)
        return report

    def analyze(self, results: Iterable[TestRunResult]) -> CoverageReport:
        """
        Compute coverage from test outcomes; only passed tests count.

        A new registry is built on every call, so analysing the same inputs
        twice gives the same numbers.
        """
        passed = [PassedTest.from_result(r) for r in results if r.status == TestStatus.PASS]
        report = self.build_registry()

        for entry in report.registry.values():
            method = entry.method_name.lower()
            for test in passed:
                if test.class_name == entry.class_name and method in test.short_name.lower():
                    entry.test_count += 1

        for entry in report.registry.values():
            bucket = report.classes[entry.class_name]
            if entry.covered:
                bucket.covered.append(entry.method_name)
            else:
                bucket.not_covered.append(entry.method_name)

        logger.info(
            f"Coverage: {report.covered_count}/{report.total_count} methods across "
            f"{len(report.classes)} classes"
        )
        return report


def format_percentage(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.2f}%"


def badge_color(value: Optional[float]) -> str:
    if not value:
        return RED
    if value < 100:
        return YELLOW
    return GREEN


_STYLE = """body { font-family: sans-serif; }
table {
  padding: 0px;
  margin: 0px;
  empty-cells: show;
  border-right: 1px solid silver;
  border-bottom: 1px solid silver;
  border-collapse: collapse;
}
td {
  padding: 4px;
  margin: 0px;
  border-left: 1px solid silver;
  border-top: 1px solid silver;
  font-size: 9pt;
  vertical-align: top;
}
.method { padding-left: 2em; font-style: italic; }"""


def render_coverage_html(report: CoverageReport, title: str = "API Unit Test Coverage") -> str:
    """Render the coverage breakdown as a standalone HTML page."""
    rows = []
    for class_name in sorted(report.classes):
        cov = report.classes[class_name]
        percentage = cov.percentage
        rows.append('<tr><td colspan="2"><hr></td></tr>')
        rows.append(
            f'<tr><td><b>Class {html.escape(class_name)}</b></td>'
            f'<td><span style="background-color:{badge_color(percentage)}">'
            f'{format_percentage(percentage)}</span> coverage</td></tr>'
        )

        covered = []
        for method in cov.covered:
            count = report.registry[f"{class_name}.{method}"].test_count
            noun = "test" if count == 1 else "tests"
            covered.append(f'<br><span class="method">{html.escape(method)}</span> with {count} {noun}')
        rows.append(f'<tr><td colspan="2">covered methods are: {"".join(covered)}</td></tr>')

        not_covered = [f'<br><span class="method">{html.escape(m)}</span>' for m in cov.not_covered]
        rows.append(f'<tr><td colspan="2">non covered methods are: {"".join(not_covered)}</td></tr>')

    return f'''<!DOCTYPE html>
<html>
<head>
<meta http-equiv="Content-Type" content="text/html; charset=utf-8">
<title>{html.escape(title)}</title>
<style>
{_STYLE}
</style>
</head>
<body>
<big>{html.escape(title)}</big><br>
<p><b>The total amount of coverage is: {format_percentage(report.total_coverage)}</b></p>
<table border="1" width="100%">
{chr(10).join(rows)}
</table>
</body>
</html>
'''


def write_coverage_html(report: CoverageReport, reference_list: Path) -> Path:
    """Write the coverage page beside the reference list and return its path."""
    out_path = Path(reference_list).parent / COVERAGE_HTML
    out_path.write_text(render_coverage_html(report), encoding='utf-8')
    logger.info(f"Wrote coverage report {out_path}")
    return out_path
