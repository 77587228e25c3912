"""Tests for test category discovery."""

import logging

import pytest

from testup.config import ConfigurationError
from testup.discovery import discover_categories, find_test_files

from conftest import EDGE_UNIT, write_unit


class TestDiscoverCategories:

    def test_categories_sorted_with_files(self, sample_tree):
        categories = discover_categories(sample_tree / "tests")

        assert [c.name for c in categories] == ["api_classes", "geometry"]
        assert [f.element_id for f in categories[0].files] == ["TC_Face.py"]
        assert categories[0].intro == "<p>API class tests</p>"
        assert categories[1].intro is None
        assert categories[0].title == "api classes"

    def test_hidden_directories_and_plain_files_skipped(self, sample_tree):
        tests_dir = sample_tree / "tests"
        write_unit(tests_dir / ".svn", "TC_Hidden", EDGE_UNIT)
        (tests_dir / "README.txt").write_text("not a category")

        names = [c.name for c in discover_categories(tests_dir)]

        assert names == ["api_classes", "geometry"]

    def test_nested_directories_not_searched(self, sample_tree):
        tests_dir = sample_tree / "tests"
        write_unit(tests_dir / "geometry" / "TC_Edge" / "assets", "TC_Nested", EDGE_UNIT)

        geometry = discover_categories(tests_dir)[1]

        assert [f.element_id for f in geometry.files] == ["TC_Edge.py"]

    def test_only_matching_extension(self, sample_tree):
        geometry = sample_tree / "tests" / "geometry"
        (geometry / "notes.txt").write_text("x")
        (geometry / "TC_Old.rb").write_text("x")

        files = discover_categories(sample_tree / "tests")[1].files
        assert [f.element_id for f in files] == ["TC_Edge.py"]

        ruby = discover_categories(sample_tree / "tests", extension=".rb")[1].files
        assert [f.element_id for f in ruby] == ["TC_Old.rb"]

    def test_empty_category_is_listed(self, sample_tree):
        (sample_tree / "tests" / "empty").mkdir()

        categories = discover_categories(sample_tree / "tests")

        assert categories[1].name == "empty"
        assert categories[1].files == ()

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(ConfigurationError):
            discover_categories(tmp_path / "nowhere")


class TestFindTestFiles:

    def test_all_categories_when_no_names(self, sample_tree):
        files = find_test_files(discover_categories(sample_tree / "tests"))
        assert [f.name for f in files] == ["TC_Face", "TC_Edge"]

    def test_named_category(self, sample_tree):
        files = find_test_files(discover_categories(sample_tree / "tests"), ["geometry"])
        assert [f.name for f in files] == ["TC_Edge"]

    def test_unknown_category_warns(self, sample_tree, caplog):
        with caplog.at_level(logging.WARNING):
            files = find_test_files(discover_categories(sample_tree / "tests"), ["nope"])

        assert files == []
        assert "Unknown test category: nope" in caplog.text
