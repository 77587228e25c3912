#!/usr/bin/env python3
"""
Core operations shared between MCP server and CLI.
Contains the business logic for discovery, test runs, coverage and cleanup.
"""

import logging
from pathlib import Path
from typing import Optional

from testup.config import ConfigurationError, TestUpConfig, get_config
from testup.coverage import CoverageAnalyzer, write_coverage_html
from testup.discovery import find_test_files
from testup.handoff import HandoffController, HandoffError, run_manifest
from testup.models import TestFile
from testup.result_parser import parse_file, parse_results_dir
from testup.session import TestUpSession
from testup.surfaces import ReportSurface

logger = logging.getLogger(__name__)


def get_session(config: Optional[TestUpConfig] = None, surface: Optional[ReportSurface] = None) -> TestUpSession:
    """Create a session for the given or the environment's configuration."""
    return TestUpSession(config or get_config(), surface)


def discover_tests(config: Optional[TestUpConfig] = None) -> dict:
    """
    List test categories and their test files.

    Returns:
        dict with the tests root and one entry per category
    """
    try:
        session = get_session(config)
        categories = session.discover()
    except ConfigurationError as e:
        return {"error": str(e)}

    return {
        "tests_dir": str(session.config.tests_dir),
        "categories": [
            {
                "name": c.name,
                "title": c.title,
                "path": str(c.path),
                "tests": [str(f.path) for f in c.files],
                "has_intro": c.intro is not None,
            }
            for c in categories
        ],
    }


def run_tests(
    categories: Optional[list[str]] = None,
    files: Optional[list[str]] = None,
    coverage: Optional[bool] = None,
    buffer: bool = False,
    config: Optional[TestUpConfig] = None,
    surface: Optional[ReportSurface] = None,
) -> dict:
    """
    Run test files, or whole categories, and summarise the results.

    Args:
        categories: Category names to run (all categories when neither
            categories nor files are given)
        files: Explicit test file paths, run in the given order
        coverage: Force coverage analysis on or off (default: decide from paths)
        buffer: Capture output in memory before writing each results file
        config: Configuration (loaded from file/environment if not given)
        surface: Destination for UI updates

    Returns:
        dict with the run report, or an error
    """
    try:
        session = get_session(config, surface)
        if files:
            report = session.run(files, coverage=coverage, buffer=buffer)
        else:
            report = session.run_categories(categories or (), coverage=coverage)
    except ConfigurationError as e:
        return {"error": str(e)}
    return report.to_dict()


def parse_results(path: str, config: Optional[TestUpConfig] = None) -> dict:
    """
    Parse a results file or a whole results directory.

    Args:
        path: A *_results.txt file or a run directory

    Returns:
        dict with per-file outcomes and totals
    """
    try:
        config = config or get_config()
    except ConfigurationError as e:
        return {"error": str(e)}
    target = Path(path)
    if target.is_dir():
        outputs = parse_results_dir(target, config.test_extension)
    elif target.is_file():
        parsed = parse_file(target, config.test_extension)
        outputs = {parsed.element_id: parsed}
    else:
        return {"error": f"No results at: {path}"}

    files = []
    passed = failed = warned = 0
    for element_id, parsed in outputs.items():
        passed += parsed.stats.passed
        failed += parsed.stats.failed
        warned += parsed.stats.warned
        files.append({
            "element_id": element_id,
            "status": parsed.stats.status.value,
            "stats": parsed.stats.to_dict(),
            "run_time": parsed.run_time,
            "tests": [
                {"name": o.qualified_name, "status": o.status.value, "size": o.size.value}
                for o in parsed.outcomes
            ],
        })
    return {"path": str(target), "pass": passed, "fail": failed, "warn": warned, "files": files}


def get_coverage(run: Optional[str] = None, config: Optional[TestUpConfig] = None) -> dict:
    """
    Compute API coverage for a results directory (latest run by default).

    Writes the coverage HTML page beside the reference list.
    """
    try:
        session = get_session(config)
        run_dir = Path(run) if run else session.latest_run()
        if run_dir is None or not run_dir.is_dir():
            return {"error": f"No results directory found: {run or session.config.results_dir}"}
        analyzer = CoverageAnalyzer.from_file(session.config.coverage_list)
    except ConfigurationError as e:
        return {"error": str(e)}

    outputs = parse_results_dir(run_dir, session.config.test_extension)
    report = analyzer.analyze(o for parsed in outputs.values() for o in parsed.outcomes)
    html_path = write_coverage_html(report, session.config.coverage_list)

    result = report.to_dict()
    result["run_dir"] = str(run_dir)
    result["html"] = str(html_path)
    return result


def list_runs(limit: int = 10, config: Optional[TestUpConfig] = None) -> dict:
    """List recent results directories, newest first."""
    try:
        session = get_session(config)
    except ConfigurationError as e:
        return {"error": str(e)}
    runs = session.list_runs()
    return {
        "results_dir": str(session.config.results_dir),
        "total": len(runs),
        "runs": [
            {"run": p.name, "path": str(p), "files": len(list(p.glob("*_results.txt")))}
            for p in runs[:limit]
        ],
    }


def cleanup_runs(keep_runs: Optional[int] = None, dry_run: bool = False,
                 config: Optional[TestUpConfig] = None) -> dict:
    """
    Delete old results directories, keeping the newest N.

    Args:
        keep_runs: Number of runs to keep (default: configured keep_runs)
        dry_run: If True, only report what would be deleted
    """
    try:
        session = get_session(config)
    except ConfigurationError as e:
        return {"error": str(e)}

    keep = session.config.keep_runs if keep_runs is None else keep_runs
    if keep < 0:
        return {"error": f"keep_runs must not be negative, got {keep}"}

    result = session.prune_runs(keep, dry_run=dry_run)
    removed = [r for r in result["runs_removed"] if r["status"] != "error"]
    logger.info(f"Cleanup complete: {len(removed)} runs {'would be ' if dry_run else ''}deleted")
    return result


def run_worker(manifest: str, results_dir: Optional[str] = None, sentinel: Optional[str] = None,
               config: Optional[TestUpConfig] = None) -> dict:
    """Worker side of a cross-process run: execute a manifest and signal completion."""
    try:
        config = config or get_config()
        results_root = Path(results_dir) if results_dir else config.results_dir
        batch = run_manifest(Path(manifest), results_root, Path(sentinel) if sentinel else None)
    except (ConfigurationError, OSError) as e:
        return {"error": str(e)}
    return {
        "run_dir": str(batch.results_dir),
        "results": {k: str(v) for k, v in batch.results.items()},
        "errors": batch.errors,
    }


def launch_tests(
    categories: Optional[list[str]] = None,
    files: Optional[list[str]] = None,
    work_dir: Optional[str] = None,
    command: Optional[list[str]] = None,
    coverage: Optional[bool] = None,
    config: Optional[TestUpConfig] = None,
    surface: Optional[ReportSurface] = None,
) -> dict:
    """
    Run tests in a separate worker process and collect its results.

    The wait uses the configured poll interval and timeout.
    """
    try:
        session = get_session(config, surface)
        if files:
            paths = [Path(f) for f in files]
        else:
            paths = [f.path for f in find_test_files(session.discover(), categories or ())]

        controller = HandoffController(
            work_dir=Path(work_dir) if work_dir else session.config.results_dir.parent,
            results_root=session.config.results_dir,
            interval=session.config.poll_interval,
            timeout=session.config.wait_timeout,
            command=command,
        )
        run_dir = controller.launch(paths)
        if coverage is None:
            coverage = session.coverage_wanted([TestFile(p) for p in paths])
        report = session.collect(run_dir, coverage=coverage)
    except (ConfigurationError, HandoffError) as e:
        return {"error": str(e)}
    return report.to_dict()
