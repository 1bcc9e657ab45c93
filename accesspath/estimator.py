"""Combines histogram estimates, clustering factor and table metadata into an access path decision."""

from __future__ import annotations

import math
import warnings
from typing import Optional

from ._core import AccessPathComparison, AccessPathEstimate, StatisticsWarning
from .costs import CostSettings, compare_access_paths
from .histograms import Histogram, Predicate, estimate_rows, estimate_selectivity
from .stats import IndexStatistics, TableStatistics
from .util.jsonize import jsondict
from .util.logging import make_logger, timestamp


class AccessPathEstimator:
    """Decides how to access the rows of a table that satisfy a predicate on an indexed column.

    The number of qualifying rows is derived from the histogram on the indexed column. If the histogram describes a
    different number of rows than the table statistics (e.g. because it was gathered from a sample or at a different
    point in time), only its selectivity is used and scaled to the table size. A `StatisticsWarning` is emitted in that
    case.

    Parameters
    ----------
    table : TableStatistics
        Size of the table
    index : IndexStatistics
        Metadata of the index on the filtered column
    histogram : Histogram
        Histogram on the filtered column
    settings : Optional[CostSettings], optional
        The cost settings. If omitted, they are loaded via `CostSettings.load`.
    verbose : bool, optional
        Whether all decisions should be logged to stderr. Off by default.
    """

    def __init__(self, table: TableStatistics, index: IndexStatistics, histogram: Histogram, *,
                 settings: Optional[CostSettings] = None, verbose: bool = False) -> None:
        self.table = table
        self.index = index
        self.histogram = histogram
        self.settings = settings if settings is not None else CostSettings.load()
        self._log = make_logger(verbose, prefix=timestamp)

        self._consistent = math.isclose(histogram.total_rows, table.total_rows)
        if not self._consistent:
            warnings.warn(f"Histogram describes {histogram.total_rows} rows, but table {table.name} has "
                          f"{table.total_rows} rows. Estimates are scaled to the table size.",
                          category=StatisticsWarning)

    def estimate_rows(self, predicate: Predicate) -> float:
        """Estimates the number of table rows that satisfy the predicate."""
        if self._consistent:
            return min(estimate_rows(self.histogram, predicate), self.table.total_rows)
        return estimate_selectivity(self.histogram, predicate) * self.table.total_rows

    def compare(self, predicate: Predicate) -> AccessPathComparison:
        """Estimates both access paths for the predicate and selects the cheaper one."""
        estimated_rows = self.estimate_rows(predicate)
        comparison = compare_access_paths(self.index.clustering_factor, estimated_rows, self.table.total_rows,
                                          self.table.total_blocks, blevel=self.index.blevel,
                                          leaf_blocks=self.index.leaf_blocks, settings=self.settings)
        self._log(f"{self.table.name} WHERE {predicate}:", comparison)
        return comparison

    def choose(self, predicate: Predicate) -> AccessPathEstimate:
        return self.compare(predicate).chosen

    def describe(self) -> jsondict:
        """Provides a JSON-serializable representation of the statistics and settings in use."""
        return {"name": "access-path-estimator", "table": self.table, "index": self.index,
                "histogram_buckets": len(self.histogram), "histogram_rows": self.histogram.total_rows,
                "settings": self.settings}

    def __json__(self) -> jsondict:
        return self.describe()

    def __repr__(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"AccessPathEstimator({self.table.name}, {self.index.name})"
