"""
Sequential execution of test units into a timestamped results directory.

Every unit writes its verbose console output to
``<results_dir>/<unit>_results.txt``. Units run one at a time, in the order
given, because tests may share mutable state.
"""

import io
import logging
import re
import time
import traceback
import unittest
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, TextIO

from .config import ConfigurationError
from .loader import TestLoadError, TestUnit, load_test_unit
from .models import TestFile

logger = logging.getLogger(__name__)

RESULTS_SUFFIX = "_results.txt"

PASS_MARK = "."
FAIL_MARK = "F"
ERROR_MARK = "E"
SKIP_MARK = "S"

# Holder description of a class or module fixture, e.g. "setUpClass (module.Class)"
_FIXTURE_DESCRIPTION = re.compile(r"^(?P<fixture>\w+) \((?P<target>[^)]*)\)")


def results_file_name(unit_name: str) -> str:
    return unit_name + RESULTS_SUFFIX


def create_results_dir(results_root: Path) -> Path:
    """
    Create a new, uniquely named directory for one test run.

    The results root is created if it does not exist yet. The run directory
    is named after the current time down to the microsecond; a counter is
    appended when that name is already taken.
    """
    results_root = Path(results_root)
    results_root.mkdir(parents=True, exist_ok=True)

    ts = datetime.now()
    base = ts.strftime('%Y-%m-%d-%H-%M-%S-') + f"{ts.microsecond:06d}"
    candidate = results_root / base
    counter = 0
    while True:
        try:
            candidate.mkdir()
            break
        except FileExistsError:
            counter += 1
            candidate = results_root / f"{base}-{counter}"

    logger.info(f"Created results directory {candidate}")
    return candidate


def _describe(test) -> str:
    """Console label for a test: ``method(Class)``."""
    parent = getattr(test, 'test_case', None)
    if parent is not None:
        return f"{_describe(parent)} {test._subDescription()}"
    method = getattr(test, '_testMethodName', None)
    if method is None:
        # Class and module fixture failures are reported through a holder
        return str(test)
    return f"{method}({type(test).__name__})"


class ConsoleResult(unittest.TestResult):
    """Test result writing one status line per test case to a stream."""

    def __init__(self, stream: TextIO, unit_path: Optional[Path] = None, cases: Sequence = ()):
        super().__init__(stream=stream, descriptions=False, verbosity=2)
        self.stream = stream
        self.unit_path = unit_path
        self.cases = list(cases)
        self.problems = []

    def _status(self, test, mark: str):
        self.stream.write(f"{_describe(test)}: {mark}\n")
        self.stream.flush()

    def addSuccess(self, test):
        super().addSuccess(test)
        self._status(test, PASS_MARK)

    def addFailure(self, test, err):
        super().addFailure(test, err)
        self._status(test, FAIL_MARK)
        self.problems.append(("Failure", test, err))

    def addError(self, test, err):
        super().addError(test, err)
        if isinstance(test, unittest.TestCase):
            self._status(test, ERROR_MARK)
        else:
            for label in self._fixture_labels(test):
                self.stream.write(f"{label}: {ERROR_MARK}\n")
            self.stream.flush()
        self.problems.append(("Error", test, err))

    def _fixture_labels(self, holder) -> list[str]:
        """
        Status labels for a class or module fixture error.

        A failed setUpClass or setUpModule is charged to every test it kept
        from running. Any other fixture error gets one line of its own.
        """
        match = _FIXTURE_DESCRIPTION.match(str(holder))
        if match is None:
            return [f"test_fixture({holder})"]
        fixture, target = match.group('fixture'), match.group('target')
        if fixture.startswith('setUp'):
            labels = [
                f"{case.method_name}({case.test_class.__name__})" for case in self.cases
                if target in (case.test_class.__module__,
                              f"{case.test_class.__module__}.{case.test_class.__qualname__}")
            ]
            if labels:
                return labels
        return [f"test_{fixture}({target.rsplit('.', 1)[-1]})"]

    def addSkip(self, test, reason):
        super().addSkip(test, reason)
        self._status(test, SKIP_MARK)

    def addExpectedFailure(self, test, err):
        super().addExpectedFailure(test, err)
        self._status(test, PASS_MARK)

    def addUnexpectedSuccess(self, test):
        super().addUnexpectedSuccess(test)
        self._status(test, FAIL_MARK)
        self.problems.append(("Failure", test, None))

    def addSubTest(self, test, subtest, err):
        super().addSubTest(test, subtest, err)
        if err is None:
            return
        if issubclass(err[0], test.failureException):
            self._status(test, FAIL_MARK)
            self.problems.append(("Failure", subtest, err))
        else:
            self._status(test, ERROR_MARK)
            self.problems.append(("Error", subtest, err))

    def _location(self, err) -> Optional[str]:
        frames = traceback.extract_tb(err[2])
        if not frames:
            return None
        frame = frames[-1]
        if self.unit_path is not None:
            own = [f for f in frames if Path(f.filename) == self.unit_path]
            if own:
                frame = own[-1]
        return f"{frame.filename}:{frame.lineno}"

    def write_problems(self):
        for number, (kind, test, err) in enumerate(self.problems, 1):
            self.stream.write(f"  {number}) {kind}:\n")
            if err is None:
                self.stream.write(f"{_describe(test)}\n")
                self.stream.write("Unexpected success\n\n")
                continue
            if kind == "Failure":
                self.stream.write(f"{_describe(test)}\n")
                location = self._location(err)
                if location:
                    self.stream.write(f"    [{location}]:\n")
                message = "".join(traceback.format_exception_only(err[0], err[1]))
                self.stream.write(message.rstrip("\n") + "\n\n")
            else:
                self.stream.write(f"{_describe(test)}:\n")
                self.stream.write(self._exc_info_to_string(err, test).rstrip("\n") + "\n\n")


def run_unit(unit: TestUnit, stream: TextIO) -> ConsoleResult:
    """Run every test case of a loaded unit, writing verbose output to stream."""
    result = ConsoleResult(stream, unit_path=unit.path, cases=unit.cases)
    stream.write(f"Loaded suite {unit.name}\n")
    stream.write("Started\n")

    start = time.perf_counter()
    unit.suite().run(result)
    elapsed = time.perf_counter() - start

    stream.write(f"\nFinished in {elapsed:.6f} seconds.\n\n")
    result.write_problems()
    stream.write(
        f"{result.testsRun} tests, {len(result.failures) + len(result.unexpectedSuccesses)} failures, "
        f"{len(result.errors)} errors, {len(result.skipped)} skips\n"
    )
    return result


@dataclass
class BatchResult:
    """Outcome of one batch: results per test file and per-file load errors."""
    results_dir: Path
    results: dict = field(default_factory=dict)
    errors: dict = field(default_factory=dict)


def run_tests(
    test_files: Iterable,
    results_dir: Path,
    buffer: bool = False,
    on_file_complete: Optional[Callable[[TestFile, object], None]] = None,
) -> BatchResult:
    """
    Run each test file in order and save its console output.

    Args:
        test_files: TestFile objects or paths, run in the given order
        results_dir: Run directory created by create_results_dir
        buffer: Map each file to its captured text instead of its results path
        on_file_complete: Called with (test_file, result) after each file

    Returns:
        BatchResult keyed by the file's element id (its basename)
    """
    results_dir = Path(results_dir)
    # Already present when resuming a run
    results_dir.mkdir(parents=True, exist_ok=True)
    batch = BatchResult(results_dir=results_dir)

    for item in test_files:
        test_file = item if isinstance(item, TestFile) else TestFile(Path(item))

        try:
            unit = load_test_unit(test_file.path)
        except (ConfigurationError, TestLoadError) as e:
            logger.error(f"Skipping {test_file.path}: {e}")
            batch.errors[test_file.element_id] = str(e)
            continue

        results_path = results_dir / results_file_name(unit.name)
        logger.info(f"Running {len(unit.cases)} tests from {test_file.path}")

        if buffer:
            captured = io.StringIO()
            run_unit(unit, captured)
            text = captured.getvalue()
            # Saved per file, not at the end of the batch
            results_path.write_text(text)
            outcome = text
        else:
            with open(results_path, 'w') as out_file:
                run_unit(unit, out_file)
            outcome = results_path

        batch.results[test_file.element_id] = outcome
        if on_file_complete is not None:
            on_file_complete(test_file, outcome)

    return batch
