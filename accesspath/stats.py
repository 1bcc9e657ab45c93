"""Table and index metadata as well as utilities to load them from files."""

from __future__ import annotations

import json
import numbers
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from ._core import InvalidInputError, Row
from .clustering import clustering_factor, clustering_factor_unsorted, distinct_blocks
from .histograms import Histogram
from .util.df import read_df
from .util.jsonize import jsondict


def _check_count(value: object, name: str, *, allow_zero: bool = True) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or value != value:
        raise InvalidInputError(f"{name} must be a number, not {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidInputError(f"{name} must be {'non-negative' if allow_zero else 'positive'}, not {value}")


@dataclass(frozen=True)
class TableStatistics:
    """Size of a table.

    Attributes
    ----------
    name : str
        The table name
    total_rows : int
        The number of rows in the table
    total_blocks : int
        The number of blocks below the table's high water mark
    """

    name: str
    total_rows: int
    total_blocks: int

    @staticmethod
    def from_rows(name: str, rows: Iterable[Row]) -> TableStatistics:
        rows = list(rows)
        return TableStatistics(name, len(rows), distinct_blocks(rows))

    def __post_init__(self) -> None:
        _check_count(self.total_rows, "Total rows", allow_zero=False)
        _check_count(self.total_blocks, "Total blocks", allow_zero=False)
        if self.total_blocks > self.total_rows:
            raise InvalidInputError(f"Table {self.name} cannot occupy more blocks ({self.total_blocks}) "
                                    f"than it has rows ({self.total_rows})")

    def __json__(self) -> jsondict:
        return {"name": self.name, "total_rows": self.total_rows, "total_blocks": self.total_blocks}


@dataclass(frozen=True)
class IndexStatistics:
    """Metadata of a B-tree index.

    Attributes
    ----------
    name : str
        The index name
    clustering_factor : int
        The clustering factor of the index
    blevel : int
        The number of branch levels, i.e. the depth of the tree without the leaf level. Defaults to 0.
    leaf_blocks : int
        The number of leaf blocks. Defaults to 0, which ignores the cost of reading leaf blocks.
    """

    name: str
    clustering_factor: int
    blevel: int = 0
    leaf_blocks: int = 0

    @staticmethod
    def from_rows(name: str, rows: Iterable[Row], *, presorted: bool = False, cached_blocks: int = 1, blevel: int = 0,
                  leaf_blocks: int = 0) -> IndexStatistics:
        """Creates the index metadata by computing the clustering factor of the given rows.

        Unless `presorted` is set, the rows are expected in storage order and sorted by key first.
        """
        factor = (clustering_factor(rows, cached_blocks=cached_blocks) if presorted
                  else clustering_factor_unsorted(rows, cached_blocks=cached_blocks))
        return IndexStatistics(name, factor, blevel, leaf_blocks)

    def __post_init__(self) -> None:
        _check_count(self.clustering_factor, "Clustering factor", allow_zero=False)
        _check_count(self.blevel, "Index blevel")
        _check_count(self.leaf_blocks, "Index leaf blocks")

    def __json__(self) -> jsondict:
        return {"name": self.name, "clustering_factor": self.clustering_factor, "blevel": self.blevel,
                "leaf_blocks": self.leaf_blocks}


def _load_component(data: Mapping, key: str, factory: type):
    if key not in data:
        raise InvalidInputError(f"Statistics are missing the '{key}' entry")
    try:
        return factory(**data[key])
    except TypeError as e:
        raise InvalidInputError(f"Malformed '{key}' statistics: {e}") from e


def load_statistics(path: str | Path) -> tuple[TableStatistics, IndexStatistics, Histogram]:
    """Reads the statistics of a table, its index and the histogram on the indexed column from a JSON file.

    The file has to contain a single object of the following structure:

    .. code-block:: json

        {
            "table": {"name": "t1", "total_rows": 72909, "total_blocks": 1152},
            "index": {"name": "t1_i1", "clustering_factor": 1160, "blevel": 1, "leaf_blocks": 150},
            "histogram": [{"lower_bound": "a", "upper_bound": "a", "frequency": 3000}, ...]
        }

    Raises
    ------
    InvalidInputError
        If the file is not valid JSON or one of the entries is missing or malformed
    """
    with open(path, "r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"Statistics file '{path}' is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidInputError(f"Statistics file '{path}' must contain a JSON object")

    table = _load_component(data, "table", TableStatistics)
    index = _load_component(data, "index", IndexStatistics)
    if "histogram" not in data:
        raise InvalidInputError("Statistics are missing the 'histogram' entry")
    try:
        histogram = Histogram.from_json(data["histogram"])
    except (KeyError, TypeError) as e:
        raise InvalidInputError(f"Malformed histogram: {e}") from e
    return table, index, histogram


def read_rows(path: str | Path, *, key_col: str = "key", block_col: str = "block_id", **kwargs) -> list[Row]:
    """Reads (key, block) pairs from a CSV file, keeping the order of the file.

    Additional arguments are passed to ``pd.read_csv``.
    """
    try:
        df = read_df(path, required_columns=[key_col, block_col], **kwargs)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    return [Row(key, block_id) for key, block_id in zip(df[key_col].tolist(), df[block_col].tolist())]
