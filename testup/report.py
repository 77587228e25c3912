"""HTML rendering of parsed test results."""

import html
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .coverage import format_percentage
from .models import ResultStats, TestStatus
from .result_parser import LineKind, ParsedOutput

_PROBLEM_HEADER = re.compile(r"^\s*\d+\) (Error|Failure):")
_PROBLEM_COLORS = {"Error": "yellow", "Failure": "red"}

_LINE_TEMPLATES = {
    LineKind.PASS: '<span style="background-color:#cfc">{}</span>',
    LineKind.FAIL: '<span style="background-color:#fcc">{}</span>',
    LineKind.FAILURE_MESSAGE: '<span class="failMsg">{}</span>',
}


@dataclass
class FileReport:
    """Results of one test file within a run."""
    element_id: str
    results_path: Optional[Path]
    parsed: ParsedOutput

    @property
    def status(self) -> TestStatus:
        return self.parsed.stats.status

    def to_dict(self) -> dict:
        return {
            "element_id": self.element_id,
            "results_file": str(self.results_path) if self.results_path else None,
            "status": self.status.value,
            "stats": self.parsed.stats.to_dict(),
            "failed_tests": [o.qualified_name for o in self.parsed.outcomes if o.status != TestStatus.PASS],
        }


@dataclass
class RunReport:
    """Everything known about one test run, shared by every delivery mode."""
    run_dir: Path
    files: dict[str, FileReport] = field(default_factory=dict)
    totals: ResultStats = field(default_factory=ResultStats)
    errors: dict[str, str] = field(default_factory=dict)
    coverage_total: Optional[float] = None
    coverage_html: Optional[Path] = None
    coverage_required: bool = False
    elapsed: Optional[float] = None

    def add(self, file_report: FileReport):
        self.files[file_report.element_id] = file_report
        self.totals.merge(file_report.parsed.stats)

    def to_dict(self) -> dict:
        return {
            "run_dir": str(self.run_dir),
            "totals": self.totals.to_dict(),
            "size_percentages": self.totals.size_percentages(),
            "files": [f.to_dict() for f in self.files.values()],
            "errors": dict(self.errors),
            "elapsed": self.elapsed,
            "coverage": {
                "total": self.coverage_total,
                "html": str(self.coverage_html) if self.coverage_html else None,
            } if self.coverage_required else None,
        }


def render_line(kind: LineKind, text: str) -> str:
    escaped = html.escape(text)
    template = _LINE_TEMPLATES.get(kind)
    if template:
        return template.format(escaped)
    match = _PROBLEM_HEADER.match(text)
    if match:
        color = _PROBLEM_COLORS[match.group(1)]
        return f'<span style="background-color: {color}">{escaped}</span>'
    return escaped


def render_file_output(parsed: ParsedOutput, results_path: Optional[Path] = None) -> str:
    """Colour-coded console output of one test file, lines joined by <br/>."""
    output = []
    if results_path is not None:
        href = html.escape(Path(results_path).as_uri() if Path(results_path).is_absolute() else str(results_path))
        output.append(f'<a href="{href}" style="text-decoration:underline">Raw results file</a>')
    output.extend(render_line(line.kind, line.text) for line in parsed.lines)
    return "<br/>".join(output)


def format_run_time(elapsed: Optional[float]) -> str:
    if elapsed is None:
        return "unknown"
    if elapsed < 60:
        return f"{elapsed:.2f} sec."
    minutes, seconds = divmod(elapsed, 60)
    return f"{int(minutes)} min {seconds:.0f} sec."


def render_heads_up(stats: ResultStats, coverage_total: Optional[float] = None,
                    coverage_link: Optional[Path] = None, elapsed: Optional[float] = None) -> str:
    """Summary counters and run time, plus the coverage line when coverage was computed."""
    result_str = (
        f"<span class='fail'>{stats.failed}</span>"
        f"<span class='warn'>{stats.warned}</span>"
        f"<span class='pass'>{stats.passed}</span>"
    )
    if elapsed is not None:
        result_str += f"<div id='runTime'>Time: {format_run_time(elapsed)}</div>"
    result_str += "<div id='percentages'>"
    if coverage_link is not None:
        href = html.escape(Path(coverage_link).as_uri() if Path(coverage_link).is_absolute() else str(coverage_link))
        result_str += (
            f"Unit Test Coverage: {format_percentage(coverage_total)}<br>"
            f"<a href='{href}' target='_blank'>Coverage Details</a>"
        )
    result_str += "</div>"
    return result_str


def render_results_page(report: RunReport) -> str:
    """Standalone results page for one run."""
    sections = []
    for file_report in report.files.values():
        status = file_report.status.value
        sections.append(
            f'<h3 class="{status}">{html.escape(file_report.element_id)} ({status})</h3>\n'
            f'<div class="result">{render_file_output(file_report.parsed, file_report.results_path)}</div>'
        )
    for element_id, error in report.errors.items():
        sections.append(
            f'<h3 class="fail">{html.escape(element_id)} (not run)</h3>\n'
            f'<div class="result"><span class="failMsg">{html.escape(error)}</span></div>'
        )

    totals = report.totals
    heads_up = render_heads_up(
        totals, report.coverage_total,
        report.coverage_html if report.coverage_required else None, report.elapsed,
    )
    return f'''<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>TestUp results {html.escape(report.run_dir.name)}</title>
<style>
body {{ font-family: sans-serif; font-size: 10pt; }}
.pass {{ background-color: #cfc; }}
.fail {{ background-color: #fcc; }}
.warn {{ background-color: #ffc; }}
.unknown {{ background-color: #ddd; }}
.failMsg {{ color: #c00; }}
.result {{ margin-left: 2em; font-family: monospace; }}
</style>
</head>
<body>
<h1>TestUp results</h1>
<p>Pass: {totals.passed}, Fail: {totals.failed}, Warn: {totals.warned}</p>
<div id="headsUpDisplay">{heads_up}</div>
{chr(10).join(sections)}
</body>
</html>
'''
