from __future__ import annotations

import datetime
import math
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .util.jsonize import jsondict

Cost = float
"""Type alias for a cost estimate."""

Key = Any
"""Type alias for orderable index keys, e.g. numbers, strings or dates."""


class EstimationError(ValueError):
    """Base class for all errors caused by faulty input to the estimators.

    Since these errors are always the user's fault, they are plain `ValueError` subtypes.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)


class InvalidInputError(EstimationError):
    """Indicates malformed input, e.g. an empty or unsorted row sequence or inconsistent table metadata."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)


class OutOfDomainError(EstimationError):
    """Indicates that a predicate references keys outside of the range covered by a histogram.

    Parameters
    ----------
    predicate : object
        The offending predicate
    domain : tuple[Key, Key]
        The smallest and largest key covered by the histogram
    """

    def __init__(self, predicate: object, domain: tuple[Key, Key]) -> None:
        super().__init__(f"Predicate {predicate} lies outside of histogram domain [{domain[0]!r}, {domain[1]!r}]")
        self.predicate = predicate
        self.domain = domain


class StatisticsWarning(UserWarning):
    """Warning to indicate that different statistics do not agree with each other."""

    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class ConfigurationWarning(UserWarning):
    """Warning to indicate that settings have been obtained in an implicit way."""

    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class AccessMethod(Enum):
    """The two access paths that are considered when reading rows from a table."""

    Index = "INDEX"
    FullScan = "SCAN"

    def __json__(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Row:
    """A single table row, reduced to its index key and the block that physically stores it."""

    key: Key
    block_id: int

    def __json__(self) -> jsondict:
        return {"key": self.key, "block_id": self.block_id}


@dataclass(frozen=True)
class AccessPathEstimate:
    """The estimated outcome of reading the qualifying rows with a specific access method.

    Attributes
    ----------
    method : AccessMethod
        The access method
    estimated_rows : float
        The number of rows that are expected to qualify
    estimated_cost : Cost
        The cost of the access method in (single-block read) units
    """

    method: AccessMethod
    estimated_rows: float
    estimated_cost: Cost

    def cardinality(self) -> int:
        """Provides the estimated rows the way an execution plan shows them, i.e. rounded up to whole rows."""
        return math.ceil(self.estimated_rows)

    def __json__(self) -> jsondict:
        return {"method": self.method, "estimated_rows": self.estimated_rows, "estimated_cost": self.estimated_cost}

    def __str__(self) -> str:
        return f"{self.method} (rows={self.cardinality()}, cost={self.estimated_cost:.2f})"


@dataclass(frozen=True)
class AccessPathComparison:
    """Contains the estimates for both access paths as well as the cheaper one.

    Attributes
    ----------
    index_access : AccessPathEstimate
        The estimate for an index range scan followed by table access
    full_scan : AccessPathEstimate
        The estimate for a full table scan
    chosen : AccessPathEstimate
        Whichever of the two estimates has been selected
    """

    index_access: AccessPathEstimate
    full_scan: AccessPathEstimate
    chosen: AccessPathEstimate

    @property
    def method(self) -> AccessMethod:
        return self.chosen.method

    def __json__(self) -> jsondict:
        return {"index_access": self.index_access, "full_scan": self.full_scan, "chosen": self.chosen}

    def __str__(self) -> str:
        return f"{self.chosen} [index: {self.index_access.estimated_cost:.2f}, scan: {self.full_scan.estimated_cost:.2f}]"


StringPositionLength = 16
"""The number of leading characters of a string key that take part in its numeric position."""

_StringPositionBase = 0x110000
"""One more than the largest Unicode code point. Each character forms one digit in this base."""


def key_position(key: Key) -> numbers.Real:
    """Maps an index key to a number such that the distance between two keys can be measured.

    Numbers map to themselves, dates to their ordinal and timestamps to their POSIX timestamp. Strings are treated as
    numbers in base 0x110000 with one digit per character, truncated (or padded) to `StringPositionLength` characters.
    This is similar to the way Oracle encodes string endpoints in its histograms: keys that only differ after the leading
    characters are considered equal.

    Raises
    ------
    InvalidInputError
        If the key type cannot be mapped
    """
    if isinstance(key, bool):
        return int(key)
    if isinstance(key, numbers.Real):
        return key
    if isinstance(key, datetime.datetime):
        return key.timestamp()
    if isinstance(key, datetime.date):
        return key.toordinal()
    if isinstance(key, str):
        position = 0
        for char in key[:StringPositionLength].ljust(StringPositionLength, "\0"):
            position = position * _StringPositionBase + ord(char)
        return position
    raise InvalidInputError(f"Cannot determine position of key {key!r} of type {type(key).__name__}")


def prefix_span(prefix: str) -> tuple[int, int]:
    """Determines the positions of all strings that start with a specific prefix.

    Returns
    -------
    tuple[int, int]
        The position of the prefix itself (inclusive) and the position of the first string after all strings with that
        prefix (exclusive).
    """
    truncated = prefix[:StringPositionLength]
    start = key_position(truncated)
    return start, start + _StringPositionBase ** (StringPositionLength - len(truncated))


def check_comparable(first: Key, second: Key, *, context: Optional[str] = None) -> None:
    """Ensures that two keys can be ordered relative to each other. Raises an `InvalidInputError` otherwise."""
    try:
        first < second
    except TypeError as e:
        context = f" ({context})" if context else ""
        raise InvalidInputError(f"Keys {first!r} and {second!r} cannot be compared{context}") from e
