"""Tests for running test units and writing console results files."""

from testup.models import TestFile, TestStatus
from testup.result_parser import parse_file
from testup.runner import create_results_dir, run_tests

from conftest import BROKEN_UNIT, EDGE_UNIT, FACE_UNIT, write_unit


# ── Results directories ──


def test_results_dirs_unique_within_one_tick(tmp_path):
    dirs = {create_results_dir(tmp_path / "results") for _ in range(5)}

    assert len(dirs) == 5
    assert all(d.is_dir() for d in dirs)


def test_results_root_created(tmp_path):
    run_dir = create_results_dir(tmp_path / "a" / "b")
    assert run_dir.parent == tmp_path / "a" / "b"


# ── Console output ──


class TestConsoleOutput:

    def test_results_file_layout(self, tmp_path):
        unit = write_unit(tmp_path / "api", "TC_Face", FACE_UNIT)
        run_dir = create_results_dir(tmp_path / "results")

        batch = run_tests([unit], run_dir)

        results_path = run_dir / "TC_Face_results.txt"
        assert batch.results == {"TC_Face.py": results_path}
        lines = results_path.read_text().splitlines()
        assert lines[0] == "Loaded suite TC_Face"
        assert lines[1] == "Started"
        assert lines[2] == "test_pushpull_api_example(TC_Face): ."
        assert lines[3] == "test_explode_large(TC_Face): F"
        assert lines[4] == "test_area_medium(TC_Face): E"
        assert lines[-1] == "3 tests, 1 failures, 1 errors, 0 skips"

    def test_failure_block_has_location_and_message(self, tmp_path):
        unit = write_unit(tmp_path / "api", "TC_Face", FACE_UNIT)
        run_dir = create_results_dir(tmp_path / "results")

        run_tests([unit], run_dir)

        text = (run_dir / "TC_Face_results.txt").read_text()
        lines = text.splitlines()
        header = lines.index("  1) Failure:")
        assert lines[header + 1] == "test_explode_large(TC_Face)"
        assert lines[header + 2].startswith(f"    [{unit}:")
        assert lines[header + 2].endswith("]:")
        assert lines[header + 3].startswith("AssertionError: 1 != 2")
        assert "  2) Error:" in lines
        assert "RuntimeError: boom" in text

    def test_skips_and_subtests(self, tmp_path):
        unit = write_unit(tmp_path, "TC_Misc", '''
            import unittest


            class TC_Misc(unittest.TestCase):

                @unittest.skip("not today")
                def test_skipped(self):
                    pass

                def test_values(self):
                    for value in (1, 2):
                        with self.subTest(value=value):
                            self.assertEqual(value, 1)
        ''')
        run_dir = create_results_dir(tmp_path / "results")

        run_tests([unit], run_dir)

        lines = (run_dir / "TC_Misc_results.txt").read_text().splitlines()
        assert "test_skipped(TC_Misc): S" in lines
        assert "test_values(TC_Misc): F" in lines
        assert "test_values(TC_Misc) (value=2)" in lines


# ── Batches ──


class TestBatches:

    def test_files_run_in_given_order(self, tmp_path):
        edge = write_unit(tmp_path / "geometry", "TC_Edge", EDGE_UNIT)
        face = write_unit(tmp_path / "api", "TC_Face", FACE_UNIT)
        run_dir = create_results_dir(tmp_path / "results")
        seen = []

        run_tests([TestFile(face), edge], run_dir,
                  on_file_complete=lambda test_file, outcome: seen.append(test_file.element_id))

        assert seen == ["TC_Face.py", "TC_Edge.py"]

    def test_load_failure_does_not_stop_batch(self, tmp_path):
        broken = write_unit(tmp_path, "TC_Broken", BROKEN_UNIT)
        edge = write_unit(tmp_path, "TC_Edge", EDGE_UNIT)
        run_dir = create_results_dir(tmp_path / "results")

        batch = run_tests([broken, tmp_path / "TC_Missing.py", edge], run_dir)

        assert list(batch.results) == ["TC_Edge.py"]
        assert set(batch.errors) == {"TC_Broken.py", "TC_Missing.py"}
        assert not (run_dir / "TC_Broken_results.txt").exists()

    def test_buffer_returns_text_and_saves_file(self, tmp_path):
        edge = write_unit(tmp_path, "TC_Edge", EDGE_UNIT)
        run_dir = create_results_dir(tmp_path / "results")

        batch = run_tests([edge], run_dir, buffer=True)

        text = batch.results["TC_Edge.py"]
        assert text.startswith("Loaded suite TC_Edge\n")
        assert (run_dir / "TC_Edge_results.txt").read_text() == text


# ── Fixture errors ──


class TestFixtureErrors:

    def test_setup_and_teardown_errors_isolated(self, tmp_path):
        unit = write_unit(tmp_path, "TC_Fixtures", '''
            import unittest


            class TC_Fixtures(unittest.TestCase):

                def setUp(self):
                    if self._testMethodName == "test_a":
                        raise RuntimeError("setup")

                def tearDown(self):
                    if self._testMethodName == "test_b":
                        raise RuntimeError("teardown")

                def test_a(self):
                    pass

                def test_b(self):
                    pass

                def test_c(self):
                    pass
        ''')
        run_dir = create_results_dir(tmp_path / "results")

        run_tests([unit], run_dir)

        parsed = parse_file(run_dir / "TC_Fixtures_results.txt")
        assert [(o.name, o.status) for o in parsed.outcomes] == [
            ("test_a", TestStatus.WARN),
            ("test_b", TestStatus.WARN),
            ("test_c", TestStatus.PASS),
        ]

    def test_set_up_class_error_charged_to_its_tests(self, tmp_path):
        unit = write_unit(tmp_path, "TC_Face", '''
            import unittest


            class TC_Face(unittest.TestCase):

                @classmethod
                def setUpClass(cls):
                    raise RuntimeError("no model")

                def test_area(self):
                    pass

                def test_normal(self):
                    pass


            class TC_Edge(unittest.TestCase):

                def test_length(self):
                    pass
        ''')
        run_dir = create_results_dir(tmp_path / "results")

        run_tests([unit], run_dir)

        text = (run_dir / "TC_Face_results.txt").read_text()
        assert "test_area(TC_Face): E" in text.splitlines()
        assert "RuntimeError: no model" in text
        parsed = parse_file(run_dir / "TC_Face_results.txt")
        assert [(o.qualified_name, o.status) for o in parsed.outcomes] == [
            ("TC_Face.test_area", TestStatus.WARN),
            ("TC_Face.test_normal", TestStatus.WARN),
            ("TC_Edge.test_length", TestStatus.PASS),
        ]
        assert parsed.stats.status == TestStatus.WARN

    def test_set_up_module_error_charged_to_every_test(self, tmp_path):
        unit = write_unit(tmp_path, "TC_Module", '''
            import unittest


            def setUpModule():
                raise RuntimeError("no host")


            class TC_Module(unittest.TestCase):

                def test_one(self):
                    pass

                def test_two(self):
                    pass
        ''')
        run_dir = create_results_dir(tmp_path / "results")

        run_tests([unit], run_dir)

        parsed = parse_file(run_dir / "TC_Module_results.txt")
        assert [o.name for o in parsed.outcomes] == ["test_one", "test_two"]
        assert parsed.stats.warned == 2

    def test_tear_down_class_error_gets_own_line(self, tmp_path):
        unit = write_unit(tmp_path, "TC_Face", '''
            import unittest


            class TC_Face(unittest.TestCase):

                @classmethod
                def tearDownClass(cls):
                    raise RuntimeError("cleanup")

                def test_area(self):
                    pass
        ''')
        run_dir = create_results_dir(tmp_path / "results")

        run_tests([unit], run_dir)

        parsed = parse_file(run_dir / "TC_Face_results.txt")
        assert [(o.name, o.status) for o in parsed.outcomes] == [
            ("test_area", TestStatus.PASS),
            ("test_tearDownClass", TestStatus.WARN),
        ]
