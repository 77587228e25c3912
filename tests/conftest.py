"""Shared test fixtures for TestUp tests."""

import sys
import textwrap
from pathlib import Path

import pytest

# Add the repository root to path so tests can import testup, core and cli
sys.path.insert(0, str(Path(__file__).parent.parent))

from testup.config import ENV_KEYS, HostTarget, TestUpConfig  # noqa: E402


FACE_UNIT = '''
import unittest


class TC_Face(unittest.TestCase):

    def test_pushpull_api_example(self):
        self.assertTrue(True)

    def test_explode_large(self):
        self.assertEqual(1, 2)

    def test_area_medium(self):
        raise RuntimeError("boom")
'''

EDGE_UNIT = '''
import unittest


class TC_Edge(unittest.TestCase):

    def test_length_simple(self):
        self.assertEqual(2, 1 + 1)

    def test_reversed_when_empty(self):
        self.assertTrue(True)
'''

BROKEN_UNIT = '''
import unittest

this is not python
'''


def write_unit(directory: Path, name: str, source: str) -> Path:
    """Write a test unit source file and return its path."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.py"
    path.write_text(textwrap.dedent(source))
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep TESTUP_* variables and a local testup.yaml out of every test."""
    for env_key in list(ENV_KEYS) + ['TESTUP_CONFIG']:
        monkeypatch.delenv(env_key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def sample_tree(tmp_path):
    """Tests root with an api_classes category, a geometry category and a coverage list."""
    tests_dir = tmp_path / "tests"
    api = tests_dir / "api_classes"
    write_unit(api, "TC_Face", FACE_UNIT)
    (api / "intro.html").write_text("<p>API class tests</p>")
    write_unit(tests_dir / "geometry", "TC_Edge", EDGE_UNIT)

    coverage_list = tmp_path / "coverage" / "api_methods.csv"
    coverage_list.parent.mkdir()
    coverage_list.write_text("Face.pushpull\nFace.explode\n")
    return tmp_path


@pytest.fixture
def config(sample_tree):
    return TestUpConfig(
        tests_dir=sample_tree / "tests",
        results_dir=sample_tree / "results",
        coverage_list=sample_tree / "coverage" / "api_methods.csv",
        host_target=HostTarget.STATIC,
        poll_interval=0.05,
        wait_timeout=30.0,
    )
