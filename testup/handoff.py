"""
Running tests in a separate worker process.

The controller writes a manifest of test paths and starts the worker. The
worker runs every listed unit into a new results directory and then creates
an empty sentinel file. The controller polls for the sentinel at a fixed
interval, with a timeout and an optional cancellation event.
"""

import logging
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .runner import BatchResult, create_results_dir, run_tests

logger = logging.getLogger(__name__)

MANIFEST_FILE = "test_cases.man"
SENTINEL_FILE = "DONE"


class HandoffError(Exception):
    """The worker process did not deliver results."""


class HandoffTimeout(HandoffError):
    pass


class HandoffCancelled(HandoffError):
    pass


def write_manifest(path: Path, test_paths: Iterable) -> Path:
    path = Path(path)
    lines = [str(p) for p in test_paths]
    path.write_text("\n".join(lines) + ("\n" if lines else ""))
    return path


def read_manifest(path: Path) -> list[Path]:
    """Test paths listed in a manifest, one per line, blank lines ignored."""
    return [Path(line.strip()) for line in Path(path).read_text().splitlines() if line.strip()]


def signal_done(sentinel: Path):
    Path(sentinel).touch()


def run_manifest(manifest: Path, results_root: Path, sentinel: Optional[Path] = None) -> BatchResult:
    """
    Worker side: run the manifest's tests, then create the sentinel.

    The sentinel is written even when the batch raises.
    """
    manifest = Path(manifest)
    sentinel = Path(sentinel) if sentinel else manifest.parent / SENTINEL_FILE
    try:
        paths = read_manifest(manifest)
        logger.info(f"Running {len(paths)} test files from manifest {manifest}")
        results_dir = create_results_dir(results_root)
        return run_tests(paths, results_dir)
    finally:
        signal_done(sentinel)


def wait_for_sentinel(
    sentinel: Path,
    interval: float = 3.0,
    timeout: Optional[float] = 600.0,
    cancel: Optional[threading.Event] = None,
    process: Optional[subprocess.Popen] = None,
) -> float:
    """
    Poll until the sentinel file exists, then delete it.

    Args:
        sentinel: File whose presence means results are ready
        interval: Seconds between checks
        timeout: Seconds before giving up; None waits indefinitely
        cancel: Event that aborts the wait when set
        process: Worker process; exiting without the sentinel is an error

    Returns:
        Seconds waited
    """
    sentinel = Path(sentinel)
    start = time.monotonic()
    while True:
        if sentinel.exists():
            sentinel.unlink()
            waited = time.monotonic() - start
            logger.info(f"Results ready after {waited:.1f}s")
            return waited

        if cancel is not None and cancel.is_set():
            raise HandoffCancelled(f"Cancelled while waiting for {sentinel}")

        if process is not None and process.poll() is not None and not sentinel.exists():
            raise HandoffError(
                f"Worker exited with code {process.returncode} without creating {sentinel}"
            )

        elapsed = time.monotonic() - start
        if timeout is not None and elapsed >= timeout:
            raise HandoffTimeout(f"No results after {timeout:.0f}s (waiting for {sentinel})")

        delay = interval if timeout is None else min(interval, max(timeout - elapsed, 0))
        if cancel is not None:
            cancel.wait(delay)
        else:
            time.sleep(delay)


def run_dirs(results_root: Path) -> set[Path]:
    """Run directories currently under the results root."""
    root = Path(results_root)
    if not root.is_dir():
        return set()
    return {p for p in root.iterdir() if p.is_dir()}


def default_worker_command(manifest: Path, results_root: Path, sentinel: Path) -> list[str]:
    return [
        sys.executable, "-m", "cli", "--results-dir", str(results_root),
        "run-manifest", str(manifest), "--sentinel", str(sentinel),
    ]


class HandoffController:
    """Controller side: launch a worker and wait for its results."""

    def __init__(
        self,
        work_dir: Path,
        results_root: Path,
        interval: float = 3.0,
        timeout: Optional[float] = 600.0,
        command: Optional[Sequence[str]] = None,
    ):
        self.work_dir = Path(work_dir)
        self.results_root = Path(results_root)
        self.interval = interval
        self.timeout = timeout
        self.command = command
        self.manifest = self.work_dir / MANIFEST_FILE
        self.sentinel = self.work_dir / SENTINEL_FILE

    def launch(self, test_paths: Iterable, cancel: Optional[threading.Event] = None) -> Path:
        """
        Run the tests in a worker process and return its results directory.

        Raises:
            HandoffError: the worker failed, timed out or was cancelled
        """
        self.work_dir.mkdir(parents=True, exist_ok=True)
        if self.sentinel.exists():
            # Left over from an aborted run
            self.sentinel.unlink()
        write_manifest(self.manifest, test_paths)

        before = run_dirs(self.results_root)
        command = list(self.command) if self.command else default_worker_command(
            self.manifest, self.results_root, self.sentinel)
        logger.info(f"Starting worker: {' '.join(command)}")
        process = subprocess.Popen(command, cwd=str(self.work_dir))
        exit_code = None
        try:
            wait_for_sentinel(self.sentinel, self.interval, self.timeout, cancel, process)
            # The worker exits right after signalling
            exit_code = process.wait(timeout=10)
        except subprocess.TimeoutExpired:
            logger.warning(f"Worker {process.pid} still running after signalling completion")
        finally:
            if process.poll() is None:
                process.terminate()
                try:
                    process.wait(timeout=10)
                except subprocess.TimeoutExpired:
                    process.kill()
                    process.wait()

        if exit_code:
            raise HandoffError(f"Worker exited with code {exit_code}")

        new_runs = sorted(run_dirs(self.results_root) - before, key=lambda p: p.name)
        if not new_runs:
            raise HandoffError(f"Worker finished but created no results directory in {self.results_root}")

        # Results are available, the manifest has served its purpose
        self.manifest.unlink(missing_ok=True)
        return new_runs[-1]
