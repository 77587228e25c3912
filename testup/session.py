"""TestUp session: discover, run, parse, analyse coverage and deliver results."""

import logging
import shutil
import time
from pathlib import Path
from typing import Iterable, Optional

from .config import HostTarget, TestUpConfig
from .coverage import CoverageAnalyzer, write_coverage_html
from .discovery import discover_categories, find_test_files
from .models import TestCategory, TestFile
from .report import FileReport, RunReport, render_file_output, render_heads_up, render_results_page
from .result_parser import ParsedOutput, parse_file, parse_lines, parse_results_dir
from .runner import create_results_dir, run_tests
from .serialization import to_minimal_json
from .surfaces import HEADS_UP_ID, RecordingSurface, ReportSurface

logger = logging.getLogger(__name__)

RESULTS_PAGE = "results.html"


class TestUpSession:
    """Runs test batches and delivers their results to a surface."""
    __test__ = False

    def __init__(self, config: TestUpConfig, surface: Optional[ReportSurface] = None):
        self.config = config
        self.surface = surface or RecordingSurface()

    def discover(self) -> list[TestCategory]:
        """Re-read the test tree; categories have no identity across calls."""
        return discover_categories(self.config.tests_dir, self.config.test_extension)

    def gui_payload(self, categories: Optional[list[TestCategory]] = None) -> str:
        """Test tree as JSON: {category path: {"tests": [...], "intro": "..."}}."""
        categories = self.discover() if categories is None else categories
        tree = {
            str(c.path): {"tests": [str(f.path) for f in c.files], "intro": c.intro or ""}
            for c in categories
        }
        return to_minimal_json(tree)

    def coverage_wanted(self, test_files: list[TestFile]) -> bool:
        """Coverage is computed when the batch starts in the coverage category."""
        if not test_files:
            return False
        return test_files[0].path.parent.name == self.config.coverage_category

    def run(self, paths: Iterable, coverage: Optional[bool] = None, buffer: bool = False) -> RunReport:
        """
        Run test files in order and deliver the results.

        Args:
            paths: Test file paths or TestFile objects
            coverage: Force coverage on or off; None decides from the paths
            buffer: Capture output in memory before saving each results file
        """
        test_files = [p if isinstance(p, TestFile) else TestFile(Path(p)) for p in paths]
        if coverage is None:
            coverage = self.coverage_wanted(test_files)

        run_dir = create_results_dir(self.config.results_dir)
        report = RunReport(run_dir=run_dir, coverage_required=coverage)
        start = time.monotonic()
        live = self.config.host_target == HostTarget.DIALOG

        def on_file_complete(test_file: TestFile, outcome):
            if isinstance(outcome, Path):
                parsed = parse_file(outcome, self.config.test_extension)
                results_path = outcome
            else:
                parsed = parse_lines(outcome.splitlines(), self.config.test_extension, unit=test_file.name)
                results_path = run_dir / f"{test_file.name}_results.txt"
            file_report = FileReport(test_file.element_id, results_path, parsed)
            report.add(file_report)
            if live:
                self._push_file(file_report)

        batch = run_tests(test_files, run_dir, buffer=buffer, on_file_complete=on_file_complete)
        report.elapsed = time.monotonic() - start
        report.errors.update(batch.errors)
        return self._finish(report)

    def run_categories(self, names: Iterable[str] = (), coverage: Optional[bool] = None) -> RunReport:
        """Discover the test tree and run the named categories (all when empty)."""
        test_files = find_test_files(self.discover(), names)
        return self.run(test_files, coverage=coverage)

    def collect(self, run_dir: Path, coverage: bool = False) -> RunReport:
        """Build a report from an existing results directory."""
        run_dir = Path(run_dir)
        report = RunReport(run_dir=run_dir, coverage_required=coverage)
        for element_id, parsed in parse_results_dir(run_dir, self.config.test_extension).items():
            file_report = FileReport(element_id, run_dir / f"{parsed.unit}_results.txt", parsed)
            report.add(file_report)
            if self.config.host_target == HostTarget.DIALOG:
                self._push_file(file_report)
        run_times = [f.parsed.run_time for f in report.files.values() if f.parsed.run_time is not None]
        if run_times:
            report.elapsed = sum(run_times)
        return self._finish(report)

    def analyze_coverage(self, outputs: Iterable[ParsedOutput]):
        analyzer = CoverageAnalyzer.from_file(self.config.coverage_list)
        results = [outcome for parsed in outputs for outcome in parsed.outcomes]
        return analyzer.analyze(results)

    def _push_file(self, file_report: FileReport):
        self.surface.set_element_property(file_report.element_id, 'className', file_report.status.value)
        self.surface.set_element_property(
            f"{file_report.element_id}_results", 'innerHTML',
            render_file_output(file_report.parsed, file_report.results_path),
        )

    def _finish(self, report: RunReport) -> RunReport:
        if report.coverage_required:
            coverage = self.analyze_coverage(f.parsed for f in report.files.values())
            report.coverage_total = coverage.total_coverage
            report.coverage_html = write_coverage_html(coverage, self.config.coverage_list)

        logger.info(
            f"Run {report.run_dir.name}: {report.totals.passed} passed, "
            f"{report.totals.failed} failed, {report.totals.warned} warnings, "
            f"{len(report.errors)} files not run"
        )

        if self.config.host_target == HostTarget.DIALOG:
            heads_up = render_heads_up(
                report.totals, report.coverage_total,
                report.coverage_html if report.coverage_required else None, report.elapsed,
            )
            self.surface.set_element_property(HEADS_UP_ID, 'innerHTML', heads_up)
        else:
            page = render_results_page(report)
            (report.run_dir / RESULTS_PAGE).write_text(page, encoding='utf-8')
            self.surface.replace_document(page)
        return report

    def list_runs(self) -> list[Path]:
        """Results directories, newest first."""
        root = self.config.results_dir
        if not root.is_dir():
            return []
        return sorted((p for p in root.iterdir() if p.is_dir()), key=lambda p: p.name, reverse=True)

    def latest_run(self) -> Optional[Path]:
        runs = self.list_runs()
        return runs[0] if runs else None

    def prune_runs(self, keep: int, dry_run: bool = False) -> dict:
        """Delete all but the newest `keep` results directories."""
        runs = self.list_runs()
        result = {
            "runs_kept": [p.name for p in runs[:keep]],
            "runs_removed": [],
            "dry_run": dry_run,
        }
        for run_dir in runs[keep:]:
            if dry_run:
                result["runs_removed"].append({"run": run_dir.name, "status": "would_delete"})
                continue
            try:
                shutil.rmtree(run_dir)
                result["runs_removed"].append({"run": run_dir.name, "status": "deleted"})
                logger.info(f"Deleted results directory {run_dir}")
            except OSError as e:
                result["runs_removed"].append({"run": run_dir.name, "status": "error", "error": str(e)})
                logger.error(f"Failed to delete results directory {run_dir}: {e}")
        return result
