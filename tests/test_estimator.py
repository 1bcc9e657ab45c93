"""Tests for the end-to-end access path estimation and the statistics it relies on."""
from __future__ import annotations

import io
import json
import tempfile
import unittest
import warnings
from pathlib import Path

import pandas as pd

import accesspath as ap
from accesspath import AccessMethod, EqualityPredicate, PrefixPredicate, RangePredicate
from tests import regression_suite


def _estimator(clustering_factor: int, **kwargs) -> ap.AccessPathEstimator:
    index = ap.IndexStatistics("t1_i1", clustering_factor)
    return ap.AccessPathEstimator(regression_suite.reference_table(), index, regression_suite.letter_histogram(),
                                  settings=ap.CostSettings(), **kwargs)


class AccessPathEstimatorTests(regression_suite.EstimationTestCase):
    def test_rare_key(self) -> None:
        estimator = _estimator(regression_suite.TotalRows)
        estimate = estimator.choose(EqualityPredicate(regression_suite.RareKey))
        self.assertAccessMethod(estimate, AccessMethod.Index)
        self.assertEqual(estimate.cardinality(), 5)

    def test_rare_prefix(self) -> None:
        estimator = _estimator(regression_suite.TotalBlocks)
        self.assertAccessMethod(estimator.choose(PrefixPredicate(regression_suite.RareKey)), AccessMethod.Index)

    def test_entire_domain(self) -> None:
        estimator = _estimator(regression_suite.TotalBlocks)
        for predicate in (RangePredicate(), RangePredicate.between("a", "z")):
            with self.subTest(predicate=str(predicate)):
                comparison = estimator.compare(predicate)
                self.assertAccessMethod(comparison, AccessMethod.FullScan)
                self.assertEqual(comparison.chosen.estimated_rows, regression_suite.TotalRows)

    def test_clustering_factor_decides(self) -> None:
        predicate = RangePredicate.between("a", "b")
        self.assertAccessMethod(_estimator(regression_suite.TotalBlocks).choose(predicate), AccessMethod.Index)
        self.assertAccessMethod(_estimator(regression_suite.TotalRows).choose(predicate), AccessMethod.FullScan)

    def test_index_metadata(self) -> None:
        index = ap.IndexStatistics("t1_i1", regression_suite.TotalBlocks, blevel=1, leaf_blocks=150)
        estimator = ap.AccessPathEstimator(regression_suite.reference_table(), index,
                                           regression_suite.letter_histogram(), settings=ap.CostSettings())
        comparison = estimator.compare(EqualityPredicate("z"))
        expected = 1 + (150 + regression_suite.TotalBlocks) * 2920 / regression_suite.TotalRows
        self.assertAlmostEqual(comparison.index_access.estimated_cost, expected)

    def test_out_of_domain(self) -> None:
        with self.assertRaises(ap.OutOfDomainError):
            _estimator(regression_suite.TotalBlocks).choose(EqualityPredicate("zz"))

    def test_inconsistent_statistics(self) -> None:
        index = ap.IndexStatistics("t2_i1", 50)
        table = ap.TableStatistics("t2", 1000, 10)
        histogram = ap.Histogram.frequencies({"a": 50, "b": 50})
        with self.assertWarns(ap.StatisticsWarning):
            estimator = ap.AccessPathEstimator(table, index, histogram, settings=ap.CostSettings())
        self.assertEqual(estimator.estimate_rows(EqualityPredicate("a")), 500)

    def test_consistent_statistics_do_not_warn(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error", ap.StatisticsWarning)
            _estimator(regression_suite.TotalBlocks)

    def test_invalid_clustering_factor(self) -> None:
        estimator = _estimator(regression_suite.TotalBlocks - 1)
        with self.assertRaises(ap.InvalidInputError):
            estimator.choose(EqualityPredicate("m"))

    def test_verbose_logging(self) -> None:
        estimator = _estimator(regression_suite.TotalBlocks, verbose=True)
        log_output = io.StringIO()
        estimator._log = ap.util.make_logger(True, file=log_output)
        estimator.choose(EqualityPredicate("m"))
        self.assertIn("INDEX", log_output.getvalue())

    def test_describe(self) -> None:
        description = json.loads(ap.util.to_json(_estimator(regression_suite.TotalBlocks).describe()))
        self.assertEqual(description["table"]["name"], "t1")
        self.assertEqual(description["index"]["clustering_factor"], regression_suite.TotalBlocks)
        self.assertEqual(description["histogram_rows"], regression_suite.TotalRows)
        self.assertEqual(description["settings"]["multiblock_read_count"], 8)


class LoggerTests(unittest.TestCase):
    def test_prefix(self) -> None:
        log_output = io.StringIO()
        log = ap.util.make_logger(True, file=log_output, prefix=lambda: "[t1]")
        log("chosen:", AccessMethod.Index)
        self.assertEqual(log_output.getvalue(), "[t1] chosen: INDEX\n")

    def test_disabled(self) -> None:
        log_output = io.StringIO()
        ap.util.make_logger(False, file=log_output)("not written")
        self.assertEqual(log_output.getvalue(), "")


class StatisticsTests(unittest.TestCase):
    def test_from_rows(self) -> None:
        rows = regression_suite.contiguous_rows(num_blocks=5, rows_per_block=10)
        self.assertEqual(ap.TableStatistics.from_rows("t", rows), ap.TableStatistics("t", 50, 5))
        self.assertEqual(ap.IndexStatistics.from_rows("t_i", reversed(rows)).clustering_factor, 5)
        self.assertEqual(ap.IndexStatistics.from_rows("t_i", rows, presorted=True).clustering_factor, 5)

    def test_invalid_table(self) -> None:
        for kwargs in (dict(total_rows=0, total_blocks=1), dict(total_rows=10, total_blocks=0),
                       dict(total_rows=10, total_blocks=11), dict(total_rows="10", total_blocks=1)):
            with self.subTest(**kwargs), self.assertRaises(ap.InvalidInputError):
                ap.TableStatistics("t", **kwargs)

    def test_invalid_index(self) -> None:
        for kwargs in (dict(clustering_factor=0), dict(clustering_factor=10, blevel=-1),
                       dict(clustering_factor=10, leaf_blocks=-1)):
            with self.subTest(**kwargs), self.assertRaises(ap.InvalidInputError):
                ap.IndexStatistics("i", **kwargs)


class StatisticsLoadingTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmpdir.cleanup)
        self.workdir = Path(self._tmpdir.name)

    def _write_json(self, data: object) -> Path:
        path = self.workdir / "stats.json"
        with open(path, "w") as f:
            ap.util.to_json_dump(data, f)
        return path

    def test_load_statistics(self) -> None:
        path = self._write_json({"table": regression_suite.reference_table(),
                                 "index": ap.IndexStatistics("t1_i1", 1160, blevel=1, leaf_blocks=150),
                                 "histogram": regression_suite.letter_histogram()})
        table, index, histogram = ap.load_statistics(path)
        self.assertEqual(table, regression_suite.reference_table())
        self.assertEqual(index.leaf_blocks, 150)
        self.assertEqual(histogram, regression_suite.letter_histogram())

        estimator = ap.AccessPathEstimator(table, index, histogram, settings=ap.CostSettings())
        self.assertEqual(estimator.choose(EqualityPredicate("m")).method, AccessMethod.Index)

    def test_missing_entries(self) -> None:
        complete = {"table": {"name": "t", "total_rows": 10, "total_blocks": 2},
                    "index": {"name": "i", "clustering_factor": 4},
                    "histogram": [{"lower_bound": 1, "frequency": 10}]}
        for missing in complete:
            data = {key: value for key, value in complete.items() if key != missing}
            with self.subTest(missing=missing), self.assertRaises(ap.InvalidInputError):
                ap.load_statistics(self._write_json(data))

    def test_malformed_entries(self) -> None:
        malformed = [
            {"table": {"name": "t", "rows": 10}, "index": {"name": "i", "clustering_factor": 4}, "histogram": []},
            {"table": {"name": "t", "total_rows": 10, "total_blocks": 2}, "index": {"name": "i", "clustering_factor": 4},
             "histogram": [{"lower_bound": 1}]},
        ]
        for data in malformed:
            with self.subTest(data=data), self.assertRaises(ap.InvalidInputError):
                ap.load_statistics(self._write_json(data))

    def test_read_rows(self) -> None:
        path = self.workdir / "rows.csv"
        pd.DataFrame({"key": [3, 1, 2], "block_id": [1, 0, 0]}).to_csv(path, index=False)
        rows = ap.read_rows(path)
        self.assertEqual(rows, [ap.Row(3, 1), ap.Row(1, 0), ap.Row(2, 0)])
        self.assertEqual(ap.clustering_factor_unsorted(rows), 2)

    def test_read_rows_missing_column(self) -> None:
        path = self.workdir / "rows.csv"
        pd.DataFrame({"key": [1, 2]}).to_csv(path, index=False)
        with self.assertRaises(ap.InvalidInputError):
            ap.read_rows(path)


if __name__ == "__main__":
    unittest.main()
