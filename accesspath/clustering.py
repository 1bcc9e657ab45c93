"""Computes the clustering factor of an index.

The clustering factor counts how often the block changes while all rows of a table are read in index key order. It
measures how well the physical order of the table matches the order of the index: if rows with neighboring keys reside
in the same block, the clustering factor approaches the number of blocks of the table. If every row is stored in a
different block than its predecessor, the clustering factor equals the number of rows. Hence, the clustering factor
always lies in *[number of blocks, number of rows]*.

The clustering factor is the main input to estimate how many table blocks an index range scan has to visit (see
`accesspath.costs`).
"""

from __future__ import annotations

import collections
import itertools
import numbers
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np
import pandas as pd

from ._core import InvalidInputError, Row, check_comparable
from .util.jsonize import jsondict

MaxCachedBlocks = 255
"""The largest supported number of cached blocks, matching the upper limit of Oracle's *TABLE_CACHED_BLOCKS*."""


@dataclass(frozen=True)
class ClusteringStatistics:
    """Summarizes how well the physical table order matches the order of an index.

    Attributes
    ----------
    clustering_factor : int
        The number of block changes when reading the table in index order
    num_rows : int
        The number of rows of the table
    num_blocks : int
        The number of distinct blocks that contain rows
    """

    clustering_factor: int
    num_rows: int
    num_blocks: int

    @property
    def quality(self) -> float:
        """Normalizes the clustering factor to [0, 1].

        A value of 0 means that the clustering factor is as low as possible (i.e. equal to the number of blocks), whereas
        1 means that the clustering factor is as high as possible (i.e. equal to the number of rows).
        """
        if self.num_rows == self.num_blocks:
            return 0.0
        return (self.clustering_factor - self.num_blocks) / (self.num_rows - self.num_blocks)

    def is_well_clustered(self, threshold: float = 0.5) -> bool:
        return self.quality <= threshold

    def __json__(self) -> jsondict:
        return {"clustering_factor": self.clustering_factor, "num_rows": self.num_rows, "num_blocks": self.num_blocks,
                "quality": self.quality}


def _check_block_id(block_id: object) -> int:
    if isinstance(block_id, bool) or not isinstance(block_id, numbers.Integral):
        raise InvalidInputError(f"Block ids must be integers, not {block_id!r}")
    if block_id < 0:
        raise InvalidInputError(f"Block ids must not be negative, not {block_id}")
    return int(block_id)


def _check_cached_blocks(cached_blocks: int) -> None:
    if isinstance(cached_blocks, bool) or not isinstance(cached_blocks, numbers.Integral):
        raise InvalidInputError(f"Number of cached blocks must be an integer, not {cached_blocks!r}")
    if not 1 <= cached_blocks <= MaxCachedBlocks:
        raise InvalidInputError(f"Number of cached blocks must be in [1, {MaxCachedBlocks}], not {cached_blocks}")


def _check_sorted(rows: Sequence[Row]) -> None:
    for position, (previous, current) in enumerate(itertools.pairwise(rows), start=1):
        check_comparable(previous.key, current.key, context=f"rows {position - 1} and {position}")
        if current.key < previous.key:
            raise InvalidInputError(f"Rows are not sorted by key: row {position} has key {current.key!r} "
                                    f"after key {previous.key!r}")


def _count_block_changes(block_ids: np.ndarray, cached_blocks: int) -> int:
    if cached_blocks == 1:
        return 1 + int(np.count_nonzero(block_ids[1:] != block_ids[:-1]))

    # the most recently visited block is always the last entry
    recent_blocks: collections.OrderedDict[int, None] = collections.OrderedDict()
    changes = 0
    for block_id in block_ids.tolist():
        if block_id in recent_blocks:
            recent_blocks.move_to_end(block_id)
            continue
        changes += 1
        recent_blocks[block_id] = None
        if len(recent_blocks) > cached_blocks:
            recent_blocks.popitem(last=False)
    return changes


def clustering_factor(rows: Iterable[Row], *, cached_blocks: int = 1) -> int:
    """Computes the clustering factor for rows that are already ordered by their index key.

    The clustering factor is the number of positions *i* where the block of row *i* differs from the block of row
    *i - 1*, plus one for the very first row. Rows with equal keys are permitted.

    Parameters
    ----------
    rows : Iterable[Row]
        The rows in index key order
    cached_blocks : int, optional
        The number of most recently visited distinct blocks that are assumed to still be cached. Switching to one of these
        blocks is not counted as a block change. This corresponds to Oracle's *TABLE_CACHED_BLOCKS* statistics preference.
        The default of 1 yields the classic clustering factor.

    Returns
    -------
    int
        The clustering factor

    Raises
    ------
    InvalidInputError
        If there are no rows, if the rows are not sorted by key, if keys cannot be compared, if block ids are not
        non-negative integers, or if `cached_blocks` is not in [1, 255]
    """
    _check_cached_blocks(cached_blocks)
    rows = list(rows)
    if not rows:
        raise InvalidInputError("Cannot compute clustering factor without rows")
    _check_sorted(rows)
    block_ids = np.fromiter((_check_block_id(row.block_id) for row in rows), dtype=np.int64, count=len(rows))
    return _count_block_changes(block_ids, cached_blocks)


def clustering_factor_unsorted(rows: Iterable[Row], *, cached_blocks: int = 1) -> int:
    """Computes the clustering factor for rows in arbitrary (e.g. physical storage) order.

    The rows are first brought into the order in which an index would deliver them. Rows with equal keys are ordered by
    their block, just like index entries with equal keys are ordered by their row address.

    See Also
    --------
    clustering_factor
    """
    rows = list(rows)
    for row in rows:
        _check_block_id(row.block_id)
    try:
        ordered = sorted(rows, key=lambda row: (row.key, row.block_id))
    except TypeError as e:
        raise InvalidInputError("Row keys cannot be compared with each other") from e
    return clustering_factor(ordered, cached_blocks=cached_blocks)


def distinct_blocks(rows: Iterable[Row]) -> int:
    """Counts the number of different blocks that contain at least one of the rows."""
    return len({_check_block_id(row.block_id) for row in rows})


def clustering_statistics(rows: Iterable[Row], *, presorted: bool = True, cached_blocks: int = 1) -> ClusteringStatistics:
    """Computes the clustering factor along with the row and block counts it is bounded by.

    Parameters
    ----------
    rows : Iterable[Row]
        The rows of the table
    presorted : bool, optional
        Whether the rows are already sorted by key. If this is *False*, the rows are sorted first.
    cached_blocks : int, optional
        See `clustering_factor`

    Returns
    -------
    ClusteringStatistics
        The statistics
    """
    rows = list(rows)
    factor = (clustering_factor(rows, cached_blocks=cached_blocks) if presorted
              else clustering_factor_unsorted(rows, cached_blocks=cached_blocks))
    return ClusteringStatistics(factor, len(rows), distinct_blocks(rows))


def clustering_factor_df(df: pd.DataFrame, *, key_col: str = "key", block_col: str = "block_id",
                         cached_blocks: int = 1) -> int:
    """Computes the clustering factor for a table that is given as a data frame in arbitrary order.

    Parameters
    ----------
    df : pd.DataFrame
        The table. Each row of the data frame corresponds to one table row.
    key_col : str, optional
        The column that contains the index key, *key* by default
    block_col : str, optional
        The column that contains the block id, *block_id* by default
    cached_blocks : int, optional
        See `clustering_factor`

    Returns
    -------
    int
        The clustering factor

    Raises
    ------
    InvalidInputError
        If the data frame is empty, lacks one of the columns or contains invalid block ids
    """
    _check_cached_blocks(cached_blocks)
    missing = [col for col in (key_col, block_col) if col not in df.columns]
    if missing:
        raise InvalidInputError(f"Data frame is missing columns {missing}")
    if df.empty:
        raise InvalidInputError("Cannot compute clustering factor without rows")
    if df[key_col].isna().any():
        raise InvalidInputError(f"Column {key_col} contains missing keys")
    block_ids = df[block_col]
    if not pd.api.types.is_integer_dtype(block_ids) or block_ids.isna().any() or (block_ids < 0).any():
        raise InvalidInputError(f"Column {block_col} must contain non-negative integer block ids")

    try:
        ordered = df.sort_values([key_col, block_col], kind="stable")
    except TypeError as e:
        raise InvalidInputError(f"Keys in column {key_col} cannot be compared with each other") from e
    return _count_block_changes(ordered[block_col].to_numpy(dtype=np.int64), cached_blocks)
