"""Cost model to decide between an index range scan and a full table scan.

Both costs are expressed in the number of single-block reads that are necessary to obtain the qualifying rows.

A full table scan reads every block of the table, but it does so with multi-block reads. Therefore, its cost is the
number of table blocks divided by the number of blocks read per request (the *multiblock read count*). Notice that the
cost does not depend on the predicate at all.

An index range scan first descends the index tree (*blevel* reads), then reads the fraction of leaf blocks that contain
matching keys and finally visits the table block of every matching row. The number of table block visits is estimated as
the fraction of the clustering factor that corresponds to the predicate's selectivity: if the table is ordered like the
index, subsequent rows reside in the same block and the clustering factor is low. Otherwise, almost every row requires
another block visit. This is the classic formula that Oracle's optimizer uses::

    cost = blevel + leaf_blocks * selectivity + clustering_factor * selectivity

With default settings and without any index metadata, this reduces to *clustering_factor * estimated_rows / total_rows*.
The index access is chosen if (and only if) its cost is strictly lower than the cost of the full scan. Since the
clustering factor is never smaller than the number of table blocks, a predicate that matches all rows will always lead to
a full scan under the default settings.
"""

from __future__ import annotations

import json
import numbers
import os
import warnings
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from ._base import apdir
from ._core import (
    AccessMethod,
    AccessPathComparison,
    AccessPathEstimate,
    ConfigurationWarning,
    Cost,
    InvalidInputError,
)
from .util.jsonize import jsondict

DefaultConfigFile = ".accesspath_config.json"
"""Name of the settings file that is looked up in the current working directory."""

ConfigEnvVar = "ACCESSPATH_CONFIG"
"""Environment variable that can point to a settings file."""


@dataclass(frozen=True)
class CostSettings:
    """Tuning parameters of the cost model.

    Attributes
    ----------
    multiblock_read_count : int
        The number of blocks that a full table scan reads per I/O request. Defaults to 8.
    index_cost_adjustment : int
        Percentage by which index access costs are scaled, similar to Oracle's *optimizer_index_cost_adj*. The default of
        100 leaves the costs unchanged, smaller values make index access more attractive.
    """

    multiblock_read_count: int = 8
    index_cost_adjustment: int = 100

    @staticmethod
    def from_dict(data: dict) -> CostSettings:
        """Creates settings from a dictionary. Missing keys use their default values.

        Raises
        ------
        InvalidInputError
            If the dictionary contains unknown keys or invalid values
        """
        known_keys = {field.name for field in fields(CostSettings)}
        unknown_keys = set(data) - known_keys
        if unknown_keys:
            raise InvalidInputError(f"Unknown cost settings: {sorted(unknown_keys)}")
        return CostSettings(**data)

    @staticmethod
    def load(config_file: str | Path = "") -> CostSettings:
        """Obtains the cost settings from a JSON configuration file.

        The settings are resolved by trying the following methods in order:

        1. the explicitly supplied `config_file`. If it does not exist, an error is raised.
        2. the file that is referenced by the *ACCESSPATH_CONFIG* environment variable. Since this method is rather
           implicit, a warning is emitted if it is used.
        3. the file *.accesspath_config.json* in the current working directory
        4. the file *config.json* in the *.accesspath* directory of the user's home directory
        5. the default settings

        Parameters
        ----------
        config_file : str | Path, optional
            Path to a JSON file that contains an object with the settings

        Returns
        -------
        CostSettings
            The settings

        Raises
        ------
        InvalidInputError
            If a configuration file was requested but does not exist, or if it contains invalid settings
        """
        if config_file:
            config_file = Path(config_file)
            if not config_file.is_file():
                raise InvalidInputError(f"Failed to load cost settings. The config file '{config_file}' was not found. "
                                        f"Your working directory is {os.getcwd()}.")
        elif os.getenv(ConfigEnvVar):
            config_file = Path(os.environ[ConfigEnvVar])
            warnings.warn(f"Using cost settings from environment variable {ConfigEnvVar}: {config_file}",
                          category=ConfigurationWarning)
            if not config_file.is_file():
                raise InvalidInputError(f"Failed to load cost settings. The config file '{config_file}' from "
                                        f"{ConfigEnvVar} was not found.")
        elif Path(DefaultConfigFile).is_file():
            config_file = Path(DefaultConfigFile)
        elif (apdir / "config.json").is_file():
            config_file = apdir / "config.json"
        else:
            return CostSettings()

        with open(config_file, "r") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise InvalidInputError(f"Config file '{config_file}' is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidInputError(f"Config file '{config_file}' must contain a JSON object")
        return CostSettings.from_dict(data)

    def __post_init__(self) -> None:
        for name in ("multiblock_read_count", "index_cost_adjustment"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise InvalidInputError(f"Setting {name} must be an integer, not {value!r}")
        if self.multiblock_read_count < 1:
            raise InvalidInputError(f"Multiblock read count must be at least 1, not {self.multiblock_read_count}")
        if not 1 <= self.index_cost_adjustment <= 10000:
            raise InvalidInputError(f"Index cost adjustment must be in [1, 10000], not {self.index_cost_adjustment}")

    def __json__(self) -> jsondict:
        return {"multiblock_read_count": self.multiblock_read_count,
                "index_cost_adjustment": self.index_cost_adjustment}


def _check_number(value: object, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or value != value:
        raise InvalidInputError(f"{name} must be a number, not {value!r}")


def _validate_inputs(clustering_factor: float, estimated_rows: float, total_rows: float, total_blocks: float,
                     blevel: float, leaf_blocks: float) -> None:
    for value, name in ((clustering_factor, "Clustering factor"), (estimated_rows, "Estimated rows"),
                        (total_rows, "Total rows"), (total_blocks, "Total blocks"), (blevel, "Index blevel"),
                        (leaf_blocks, "Index leaf blocks")):
        _check_number(value, name)

    if total_rows <= 0:
        raise InvalidInputError(f"Table must contain rows, not {total_rows}")
    if total_blocks <= 0:
        raise InvalidInputError(f"Table must occupy blocks, not {total_blocks}")
    if total_blocks > total_rows:
        raise InvalidInputError(f"Table cannot occupy more blocks ({total_blocks}) than it has rows ({total_rows})")
    if not 0 <= estimated_rows <= total_rows:
        raise InvalidInputError(f"Estimated rows must be in [0, {total_rows}], not {estimated_rows}")
    if not total_blocks <= clustering_factor <= total_rows:
        raise InvalidInputError(f"Clustering factor must be in [{total_blocks}, {total_rows}], not {clustering_factor}")
    if blevel < 0 or leaf_blocks < 0:
        raise InvalidInputError(f"Index metadata must not be negative (blevel={blevel}, leaf_blocks={leaf_blocks})")


def full_scan_cost(total_blocks: float, settings: Optional[CostSettings] = None) -> Cost:
    """Computes the cost of reading all blocks of a table using multi-block reads."""
    settings = settings if settings is not None else CostSettings()
    return total_blocks / settings.multiblock_read_count


def index_access_cost(clustering_factor: float, estimated_rows: float, total_rows: float, *, blevel: float = 0,
                      leaf_blocks: float = 0, settings: Optional[CostSettings] = None) -> Cost:
    """Computes the cost of an index range scan that is followed by a table access for each matching row.

    Parameters
    ----------
    clustering_factor : float
        The clustering factor of the index
    estimated_rows : float
        The number of rows that satisfy the predicate
    total_rows : float
        The total number of rows in the table
    blevel : float, optional
        The number of branch levels of the index, i.e. the reads necessary to reach the first leaf block
    leaf_blocks : float, optional
        The number of leaf blocks of the index
    settings : Optional[CostSettings], optional
        The cost settings, defaults are used if omitted

    Returns
    -------
    Cost
        The cost estimate
    """
    settings = settings if settings is not None else CostSettings()
    selectivity = estimated_rows / total_rows
    cost = blevel + leaf_blocks * selectivity + clustering_factor * selectivity
    return cost * settings.index_cost_adjustment / 100


def compare_access_paths(clustering_factor: float, estimated_rows: float, total_rows: float, total_blocks: float, *,
                         blevel: float = 0, leaf_blocks: float = 0,
                         settings: Optional[CostSettings] = None) -> AccessPathComparison:
    """Estimates the cost of both access paths and selects the cheaper one.

    The index access is only selected if it is strictly cheaper than the full table scan.

    Parameters
    ----------
    clustering_factor : float
        The clustering factor of the index. Has to lie within [`total_blocks`, `total_rows`].
    estimated_rows : float
        The number of rows that satisfy the predicate. Has to lie within [0, `total_rows`].
    total_rows : float
        The total number of rows in the table
    total_blocks : float
        The number of blocks that are occupied by the table
    blevel : float, optional
        The number of branch levels of the index
    leaf_blocks : float, optional
        The number of leaf blocks of the index
    settings : Optional[CostSettings], optional
        The cost settings, defaults are used if omitted

    Returns
    -------
    AccessPathComparison
        The estimates for both access paths and the selected one

    Raises
    ------
    InvalidInputError
        If any of the inputs is out of its permitted range
    """
    _validate_inputs(clustering_factor, estimated_rows, total_rows, total_blocks, blevel, leaf_blocks)
    settings = settings if settings is not None else CostSettings()

    index_access = AccessPathEstimate(AccessMethod.Index, estimated_rows,
                                      index_access_cost(clustering_factor, estimated_rows, total_rows, blevel=blevel,
                                                        leaf_blocks=leaf_blocks, settings=settings))
    full_scan = AccessPathEstimate(AccessMethod.FullScan, estimated_rows, full_scan_cost(total_blocks, settings))
    chosen = index_access if index_access.estimated_cost < full_scan.estimated_cost else full_scan
    return AccessPathComparison(index_access, full_scan, chosen)


def choose_access_path(clustering_factor: float, estimated_rows: float, total_rows: float, total_blocks: float, *,
                       blevel: float = 0, leaf_blocks: float = 0,
                       settings: Optional[CostSettings] = None) -> AccessPathEstimate:
    """Selects the cheaper access path. See `compare_access_paths` for details."""
    return compare_access_paths(clustering_factor, estimated_rows, total_rows, total_blocks, blevel=blevel,
                                leaf_blocks=leaf_blocks, settings=settings).chosen
