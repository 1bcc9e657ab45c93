"""Tests for the cost model and the settings that tune it."""
from __future__ import annotations

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import accesspath as ap
from accesspath import AccessMethod
from tests import regression_suite


class AccessPathChoiceTests(regression_suite.EstimationTestCase):
    def test_rare_key_uses_index(self) -> None:
        for clustering_factor in (regression_suite.TotalBlocks, regression_suite.TotalRows):
            with self.subTest(clustering_factor=clustering_factor):
                estimate = ap.choose_access_path(clustering_factor, 5, regression_suite.TotalRows,
                                                 regression_suite.TotalBlocks)
                self.assertAccessMethod(estimate, AccessMethod.Index)
                self.assertEqual(estimate.estimated_rows, 5)

    def test_entire_domain_uses_full_scan(self) -> None:
        for clustering_factor in (regression_suite.TotalBlocks, 30000, regression_suite.TotalRows):
            with self.subTest(clustering_factor=clustering_factor):
                estimate = ap.choose_access_path(clustering_factor, regression_suite.TotalRows,
                                                 regression_suite.TotalRows, regression_suite.TotalBlocks)
                self.assertAccessMethod(estimate, AccessMethod.FullScan)

    def test_clustering_factor_decides(self) -> None:
        rows = 2 * 2916
        well_clustered = ap.choose_access_path(regression_suite.TotalBlocks, rows, regression_suite.TotalRows,
                                               regression_suite.TotalBlocks)
        poorly_clustered = ap.choose_access_path(regression_suite.TotalRows, rows, regression_suite.TotalRows,
                                                 regression_suite.TotalBlocks)
        self.assertAccessMethod(well_clustered, AccessMethod.Index)
        self.assertAccessMethod(poorly_clustered, AccessMethod.FullScan)

    def test_equal_costs_use_full_scan(self) -> None:
        settings = ap.CostSettings(multiblock_read_count=1)
        estimate = ap.choose_access_path(100, 1000, 1000, 100, settings=settings)
        self.assertEqual(estimate.estimated_cost, 100)
        self.assertAccessMethod(estimate, AccessMethod.FullScan)

    def test_comparison(self) -> None:
        comparison = ap.compare_access_paths(1000, 100, 1000, 80)
        self.assertEqual(comparison.index_access.method, AccessMethod.Index)
        self.assertEqual(comparison.full_scan.method, AccessMethod.FullScan)
        self.assertEqual(comparison.index_access.estimated_cost, 100)
        self.assertEqual(comparison.full_scan.estimated_cost, 10)
        self.assertIs(comparison.chosen, comparison.full_scan)
        self.assertEqual(comparison.method, AccessMethod.FullScan)

    def test_comparison_json(self) -> None:
        comparison = ap.compare_access_paths(regression_suite.TotalBlocks, 5, regression_suite.TotalRows,
                                             regression_suite.TotalBlocks)
        serialized = json.loads(ap.util.to_json(comparison))
        self.assertEqual(serialized["chosen"]["method"], "INDEX")
        self.assertEqual(serialized["full_scan"]["estimated_cost"], regression_suite.TotalBlocks / 8)


class CostFormulaTests(unittest.TestCase):
    def test_full_scan(self) -> None:
        self.assertEqual(ap.full_scan_cost(1152), 144)
        self.assertEqual(ap.full_scan_cost(1152, ap.CostSettings(multiblock_read_count=16)), 72)

    def test_index_access(self) -> None:
        self.assertAlmostEqual(ap.index_access_cost(72909, 5, 72909), 5)
        self.assertAlmostEqual(ap.index_access_cost(1000, 100, 1000, blevel=2, leaf_blocks=50), 2 + 5 + 100)

    def test_index_cost_adjustment(self) -> None:
        settings = ap.CostSettings(index_cost_adjustment=50)
        self.assertAlmostEqual(ap.index_access_cost(1000, 100, 1000, settings=settings), 50)

    def test_index_cost_adjustment_changes_decision(self) -> None:
        default = ap.choose_access_path(1000, 100, 1000, 800)
        adjusted = ap.choose_access_path(1000, 100, 1000, 800, settings=ap.CostSettings(index_cost_adjustment=50))
        self.assertEqual(default.method, AccessMethod.FullScan)
        self.assertEqual(adjusted.method, AccessMethod.Index)

    def test_cardinality_rounds_up(self) -> None:
        estimate = ap.AccessPathEstimate(AccessMethod.Index, 4.2, 3.0)
        self.assertEqual(estimate.cardinality(), 5)


class InvalidCostInputTests(unittest.TestCase):
    def test_invalid_inputs(self) -> None:
        invalid_inputs = {
            "clustering factor below blocks": dict(clustering_factor=10, estimated_rows=5, total_rows=100,
                                                   total_blocks=20),
            "clustering factor above rows": dict(clustering_factor=101, estimated_rows=5, total_rows=100,
                                                 total_blocks=20),
            "too many rows": dict(clustering_factor=50, estimated_rows=101, total_rows=100, total_blocks=20),
            "negative rows": dict(clustering_factor=50, estimated_rows=-1, total_rows=100, total_blocks=20),
            "empty table": dict(clustering_factor=50, estimated_rows=0, total_rows=0, total_blocks=20),
            "no blocks": dict(clustering_factor=50, estimated_rows=5, total_rows=100, total_blocks=0),
            "more blocks than rows": dict(clustering_factor=100, estimated_rows=5, total_rows=100, total_blocks=200),
            "not a number": dict(clustering_factor="50", estimated_rows=5, total_rows=100, total_blocks=20),
            "nan rows": dict(clustering_factor=50, estimated_rows=float("nan"), total_rows=100, total_blocks=20),
        }
        for label, kwargs in invalid_inputs.items():
            with self.subTest(input=label), self.assertRaises(ap.InvalidInputError):
                ap.compare_access_paths(**kwargs)

    def test_negative_index_metadata(self) -> None:
        with self.assertRaises(ap.InvalidInputError):
            ap.compare_access_paths(50, 5, 100, 20, blevel=-1)
        with self.assertRaises(ap.InvalidInputError):
            ap.compare_access_paths(50, 5, 100, 20, leaf_blocks=-3)


class CostSettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        self.workdir = Path(self._tmpdir.name)

        original_cwd = os.getcwd()
        os.chdir(self.workdir)
        self.addCleanup(os.chdir, original_cwd)

        # keep the user's own settings out of the way
        home_patch = mock.patch("accesspath.costs.apdir", self.workdir / "home")
        home_patch.start()
        self.addCleanup(home_patch.stop)
        env_patch = mock.patch.dict(os.environ)
        env_patch.start()
        self.addCleanup(env_patch.stop)
        os.environ.pop(ap.costs.ConfigEnvVar, None)

    def _write_config(self, path: Path, settings: dict) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(settings, f)
        return path

    def test_defaults(self) -> None:
        self.assertEqual(ap.CostSettings.load(), ap.CostSettings(8, 100))

    def test_explicit_file(self) -> None:
        config_file = self._write_config(self.workdir / "costs.json", {"multiblock_read_count": 16})
        self.assertEqual(ap.CostSettings.load(config_file), ap.CostSettings(multiblock_read_count=16))

    def test_missing_explicit_file(self) -> None:
        with self.assertRaises(ap.InvalidInputError):
            ap.CostSettings.load(self.workdir / "does-not-exist.json")

    def test_working_directory_file(self) -> None:
        self._write_config(self.workdir / ap.costs.DefaultConfigFile, {"index_cost_adjustment": 25})
        self.assertEqual(ap.CostSettings.load().index_cost_adjustment, 25)

    def test_home_directory_file(self) -> None:
        self._write_config(self.workdir / "home" / "config.json", {"multiblock_read_count": 32})
        self.assertEqual(ap.CostSettings.load().multiblock_read_count, 32)

    def test_environment_variable(self) -> None:
        config_file = self._write_config(self.workdir / "env.json", {"multiblock_read_count": 4})
        os.environ[ap.costs.ConfigEnvVar] = str(config_file)
        with self.assertWarns(ap.ConfigurationWarning):
            settings = ap.CostSettings.load()
        self.assertEqual(settings.multiblock_read_count, 4)

    def test_invalid_files(self) -> None:
        unknown_key = self._write_config(self.workdir / "unknown.json", {"db_file_multiblock_read_count": 4})
        invalid_value = self._write_config(self.workdir / "invalid.json", {"multiblock_read_count": 0})
        not_an_object = self._write_config(self.workdir / "list.json", [8, 100])
        malformed = self.workdir / "malformed.json"
        malformed.write_text("{multiblock_read_count: 8")
        for config_file in (unknown_key, invalid_value, not_an_object, malformed):
            with self.subTest(config_file=config_file.name), self.assertRaises(ap.InvalidInputError):
                ap.CostSettings.load(config_file)

    def test_invalid_settings(self) -> None:
        for kwargs in (dict(multiblock_read_count=0), dict(index_cost_adjustment=0),
                       dict(index_cost_adjustment=10001), dict(multiblock_read_count=8.5)):
            with self.subTest(**kwargs), self.assertRaises(ap.InvalidInputError):
                ap.CostSettings(**kwargs)


if __name__ == "__main__":
    unittest.main()
