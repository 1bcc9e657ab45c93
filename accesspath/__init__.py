"""accesspath - Estimates whether an index range scan or a full table scan is the cheaper way to read filtered rows.

The package mimics the way a cost-based optimizer such as Oracle's combines two pieces of statistics to select an access
path for a filter predicate on an indexed column:

- the *clustering factor* of the index describes how many table blocks have to be visited when all rows are read in index
  order (see the `clustering` module)
- the *histogram* on the indexed column describes how many rows satisfy the predicate (see the `histograms` module)

The `costs` module turns both numbers into a cost for the index access and compares it to the cost of a full table scan.
All of these computations are pure functions on in-memory values. The `AccessPathEstimator` composes them for a specific
table, index and histogram, while the `stats` module provides containers and loaders for the required metadata.

A typical session looks like this:

>>> import accesspath as ap
>>> histogram = ap.Histogram.frequencies({"a": 60, "m": 5, "z": 35})
>>> rows = ap.estimate_rows(histogram, ap.EqualityPredicate("m"))
>>> ap.choose_access_path(clustering_factor=25, estimated_rows=rows, total_rows=100, total_blocks=20).method
<AccessMethod.Index: 'INDEX'>

Utilities that are not specific to access paths are contained in the `util` package.
"""

from . import clustering, costs, histograms, stats, util
from ._core import (
    AccessMethod,
    AccessPathComparison,
    AccessPathEstimate,
    ConfigurationWarning,
    Cost,
    EstimationError,
    InvalidInputError,
    OutOfDomainError,
    Row,
    StatisticsWarning,
    key_position,
)
from .clustering import (
    ClusteringStatistics,
    clustering_factor,
    clustering_factor_df,
    clustering_factor_unsorted,
    clustering_statistics,
    distinct_blocks,
)
from .costs import (
    CostSettings,
    choose_access_path,
    compare_access_paths,
    full_scan_cost,
    index_access_cost,
)
from .estimator import AccessPathEstimator
from .histograms import (
    EqualityPredicate,
    Histogram,
    HistogramBucket,
    Predicate,
    PrefixPredicate,
    RangePredicate,
    estimate_rows,
    estimate_selectivity,
    read_histogram,
)
from .stats import IndexStatistics, TableStatistics, load_statistics, read_rows

__version__ = "0.1.0"

__all__ = [
    "clustering", "costs", "histograms", "stats", "util",
    "AccessMethod", "AccessPathComparison", "AccessPathEstimate", "Cost", "Row", "key_position",
    "EstimationError", "InvalidInputError", "OutOfDomainError", "StatisticsWarning", "ConfigurationWarning",
    "ClusteringStatistics", "clustering_factor", "clustering_factor_df", "clustering_factor_unsorted",
    "clustering_statistics", "distinct_blocks",
    "CostSettings", "choose_access_path", "compare_access_paths", "full_scan_cost", "index_access_cost",
    "AccessPathEstimator",
    "EqualityPredicate", "Histogram", "HistogramBucket", "Predicate", "PrefixPredicate", "RangePredicate",
    "estimate_rows", "estimate_selectivity", "read_histogram",
    "IndexStatistics", "TableStatistics", "load_statistics", "read_rows",
]
