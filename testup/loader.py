"""
Loading of test units.

A test unit is executed as a fresh module each time it is loaded so that
edits made between runs are picked up. The loader returns the test cases it
found as an explicit list instead of collecting them through a global hook.
"""

import importlib.util
import inspect
import logging
import re
import sys
import unittest
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from .config import ConfigurationError

logger = logging.getLogger(__name__)

TEST_METHOD_PREFIX = "test"


class TestLoadError(Exception):
    """A test unit could not be imported."""
    __test__ = False


@dataclass(frozen=True)
class TestCaseDescriptor:
    """One runnable test case with references to its fixture methods."""
    __test__ = False

    test_class: type
    method_name: str

    @property
    def name(self) -> str:
        return f"{self.test_class.__name__}.{self.method_name}"

    @property
    def setup(self) -> Callable:
        return self.test_class.setUp

    @property
    def body(self) -> Callable:
        return getattr(self.test_class, self.method_name)

    @property
    def teardown(self) -> Callable:
        return self.test_class.tearDown

    def build(self) -> unittest.TestCase:
        return self.test_class(self.method_name)


@dataclass
class TestUnit:
    """A loaded test unit and the test cases it declares."""
    __test__ = False

    name: str
    path: Path
    cases: list[TestCaseDescriptor] = field(default_factory=list)

    def suite(self) -> unittest.TestSuite:
        return unittest.TestSuite(case.build() for case in self.cases)


def _module_name(path: Path) -> str:
    safe = re.sub(r'\W', '_', path.stem)
    return f"testup_unit_{safe}"


def _test_methods(cls: type) -> list[str]:
    """Test method names in declaration order, own methods before inherited ones."""
    names = []
    for klass in cls.__mro__:
        if klass is unittest.TestCase or klass is object:
            continue
        for attr, value in vars(klass).items():
            if (attr.startswith(TEST_METHOD_PREFIX) and callable(value)
                    and attr not in names):
                names.append(attr)
    return names


def load_test_unit(path: Path) -> TestUnit:
    """
    Execute a test source file and list the test cases it defines.

    Args:
        path: Path to the test unit

    Returns:
        TestUnit with one descriptor per test method, classes in definition
        order and methods in declaration order
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Test file does not exist: {path}")

    module_name = _module_name(path)
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise TestLoadError(f"Cannot load test file: {path}")
    module = importlib.util.module_from_spec(spec)

    # Test units may import helpers that live next to them
    unit_dir = str(path.parent)
    added_to_path = unit_dir not in sys.path
    if added_to_path:
        sys.path.insert(0, unit_dir)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise TestLoadError(f"Failed to load {path}: {e}") from e
    finally:
        if added_to_path:
            sys.path.remove(unit_dir)

    unit = TestUnit(name=path.stem, path=path)
    for _, cls in vars(module).items():
        if not (inspect.isclass(cls) and issubclass(cls, unittest.TestCase)):
            continue
        # Skip test classes imported from elsewhere
        if cls.__module__ != module_name:
            continue
        for method_name in _test_methods(cls):
            unit.cases.append(TestCaseDescriptor(cls, method_name))

    logger.debug(f"Loaded {len(unit.cases)} test cases from {path}")
    return unit
