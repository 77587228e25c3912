"""Tests for HTML rendering of test results."""

from pathlib import Path

from testup.models import ResultStats
from testup.report import (
    FileReport,
    RunReport,
    format_run_time,
    render_file_output,
    render_heads_up,
    render_line,
    render_results_page,
)
from testup.result_parser import LineKind, parse_lines


OUTPUT = [
    "Loaded suite TC_Face",
    "test_pushpull(TC_Face): .",
    "test_explode_large(TC_Face): F",
    "  1) Failure:",
    "test_explode_large(TC_Face)",
    "    [/tests/TC_Face.py:9]:",
    "AssertionError: 1 < 2",
    "  2) Error:",
]


def _run_report(tmp_path: Path) -> RunReport:
    report = RunReport(run_dir=tmp_path / "2024-01-01-00-00-00-000000")
    parsed = parse_lines(OUTPUT)
    report.add(FileReport("TC_Face.py", tmp_path / "TC_Face_results.txt", parsed))
    report.errors["TC_Broken.py"] = "Failed to load TC_Broken.py: invalid syntax"
    return report


class TestRenderLine:

    def test_status_lines(self):
        assert render_line(LineKind.PASS, "test_a(T): .") == '<span style="background-color:#cfc">test_a(T): .</span>'
        assert render_line(LineKind.FAIL, "test_b(T): F") == '<span style="background-color:#fcc">test_b(T): F</span>'

    def test_failure_message_escaped(self):
        assert render_line(LineKind.FAILURE_MESSAGE, "1 < 2") == '<span class="failMsg">1 &lt; 2</span>'

    def test_problem_headers(self):
        assert 'background-color: yellow' in render_line(LineKind.TEXT, "  2) Error:")
        assert 'background-color: red' in render_line(LineKind.TEXT, "  1) Failure:")

    def test_plain_text(self):
        assert render_line(LineKind.TEXT, "Started") == "Started"


def test_file_output_joined_with_breaks(tmp_path):
    html = render_file_output(parse_lines(OUTPUT), tmp_path / "TC_Face_results.txt")

    parts = html.split("<br/>")
    assert parts[0].startswith('<a href="file://')
    assert "Raw results file" in parts[0]
    assert parts[1] == "Loaded suite TC_Face"
    assert len(parts) == 1 + len(OUTPUT) - 1  # the failed test's label line is dropped


def test_heads_up_without_coverage():
    stats = ResultStats(passed=3, failed=1, warned=2)

    html = render_heads_up(stats)

    assert html.startswith("<span class='fail'>1</span><span class='warn'>2</span><span class='pass'>3</span>")
    assert html.endswith("<div id='percentages'></div>")


def test_heads_up_with_run_time():
    html = render_heads_up(ResultStats(passed=1), elapsed=1.5)

    assert "<div id='runTime'>Time: 1.50 sec.</div><div id='percentages'>" in html


def test_format_run_time():
    assert format_run_time(None) == "unknown"
    assert format_run_time(0.25) == "0.25 sec."
    assert format_run_time(125.0) == "2 min 5 sec."


def test_heads_up_with_coverage(tmp_path):
    html = render_heads_up(ResultStats(passed=1), 50.0, tmp_path / "testup_coverage.html")

    assert "Unit Test Coverage: 50.00%" in html
    assert "Coverage Details</a>" in html
    assert "testup_coverage.html" in html


def test_heads_up_undefined_coverage(tmp_path):
    html = render_heads_up(ResultStats(), None, tmp_path / "testup_coverage.html")
    assert "Unit Test Coverage: n/a" in html


def test_run_report_to_dict(tmp_path):
    report = _run_report(tmp_path)

    data = report.to_dict()

    assert data["totals"]["pass"] == 1
    assert data["totals"]["fail"] == 1
    assert data["totals"]["status"] == "fail"
    assert data["files"][0]["failed_tests"] == ["TC_Face.test_explode_large"]
    assert data["errors"] == {"TC_Broken.py": "Failed to load TC_Broken.py: invalid syntax"}
    assert data["coverage"] is None
    assert data["elapsed"] is None
    assert data["size_percentages"] == {"small": 50, "medium": 0, "large": 50}


def test_results_page(tmp_path):
    page = render_results_page(_run_report(tmp_path))

    assert '<h3 class="fail">TC_Face.py (fail)</h3>' in page
    assert "TC_Broken.py (not run)" in page
    assert '<div id="headsUpDisplay">' in page
    assert "Unit Test Coverage" not in page


def test_results_page_run_time(tmp_path):
    report = _run_report(tmp_path)
    report.elapsed = 3.0

    assert "Time: 3.00 sec." in render_results_page(report)
