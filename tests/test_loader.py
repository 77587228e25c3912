"""Tests for loading test units as fresh modules."""

import pytest

from testup.config import ConfigurationError
from testup.loader import TestLoadError, load_test_unit

from conftest import BROKEN_UNIT, FACE_UNIT, write_unit


def test_cases_in_declaration_order(tmp_path):
    path = write_unit(tmp_path, "TC_Face", FACE_UNIT)

    unit = load_test_unit(path)

    assert unit.name == "TC_Face"
    assert [c.method_name for c in unit.cases] == [
        "test_pushpull_api_example",
        "test_explode_large",
        "test_area_medium",
    ]
    assert unit.cases[0].name == "TC_Face.test_pushpull_api_example"
    assert unit.suite().countTestCases() == 3


def test_classes_in_definition_order_and_inherited_methods(tmp_path):
    path = write_unit(tmp_path, "TC_Multi", '''
        import unittest


        class TC_Zeta(unittest.TestCase):
            def test_one(self):
                pass


        class TC_Alpha(TC_Zeta):
            def test_two(self):
                pass


        def helper():
            pass
    ''')

    unit = load_test_unit(path)

    assert [c.name for c in unit.cases] == [
        "TC_Zeta.test_one",
        "TC_Alpha.test_two",
        "TC_Alpha.test_one",
    ]


def test_imported_test_classes_ignored(tmp_path):
    write_unit(tmp_path, "shared_cases", '''
        import unittest


        class SharedCase(unittest.TestCase):
            def test_shared(self):
                pass
    ''')
    path = write_unit(tmp_path, "TC_Uses", '''
        import unittest

        from shared_cases import SharedCase


        class TC_Uses(unittest.TestCase):
            def test_own(self):
                pass
    ''')

    unit = load_test_unit(path)

    assert [c.name for c in unit.cases] == ["TC_Uses.test_own"]


def test_reload_picks_up_edits(tmp_path):
    path = write_unit(tmp_path, "TC_Edit", '''
        import unittest


        class TC_Edit(unittest.TestCase):
            def test_before(self):
                pass
    ''')
    assert [c.method_name for c in load_test_unit(path).cases] == ["test_before"]

    write_unit(tmp_path, "TC_Edit", '''
        import unittest


        class TC_Edit(unittest.TestCase):
            def test_after(self):
                pass
    ''')
    assert [c.method_name for c in load_test_unit(path).cases] == ["test_after"]


def test_syntax_error_raises_load_error(tmp_path):
    path = write_unit(tmp_path, "TC_Broken", BROKEN_UNIT)

    with pytest.raises(TestLoadError):
        load_test_unit(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigurationError):
        load_test_unit(tmp_path / "TC_Missing.py")


def test_fixture_references_follow_test_class(tmp_path):
    path = write_unit(tmp_path, "TC_Fixtures", '''
        import unittest


        class TC_Fixtures(unittest.TestCase):

            def setUp(self):
                self.value = 1

            def test_value(self):
                self.assertEqual(self.value, 1)
    ''')

    case = load_test_unit(path).cases[0]

    assert case.setup is case.test_class.setUp
    assert case.body is case.test_class.test_value
    assert case.teardown is case.test_class.tearDown
