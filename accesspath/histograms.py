"""Histograms and the selectivity estimation for predicates on the histogram column.

A histogram is an ordered sequence of non-overlapping buckets. Each bucket covers the keys between its lower and upper
bound (both inclusive) and stores the number of rows with such keys. Buckets whose bounds are equal are *point* buckets and
describe the frequency of a single key. Histograms that consist only of point buckets are *frequency histograms*, which
is what Oracle builds for columns with few distinct values.

To estimate the number of rows that match a predicate, the frequencies of all buckets that are entirely covered by the
predicate are summed up. Buckets that are only partially covered contribute a share of their frequency that is linearly
interpolated based on the covered part of their key range. Since interpolation requires a notion of distance between
keys, all keys are mapped to numeric positions first (see `key_position`).

Three kinds of predicates are supported: `EqualityPredicate` (*col = value*), `RangePredicate` (*col BETWEEN a AND b* as
well as all one-sided comparisons) and `PrefixPredicate` (*col LIKE 'abc%'*).
"""

from __future__ import annotations

import abc
import math
import numbers
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, overload

import pandas as pd

from ._core import (
    InvalidInputError,
    Key,
    OutOfDomainError,
    check_comparable,
    key_position,
    prefix_span,
)
from .util.df import as_df, read_df
from .util.jsonize import jsondict


@dataclass(frozen=True)
class HistogramBucket:
    """A single histogram bucket.

    Attributes
    ----------
    lower_bound : Key
        The smallest key in the bucket (inclusive)
    upper_bound : Key
        The largest key in the bucket (inclusive)
    frequency : float
        The number of rows whose key lies in the bucket
    distinct_values : Optional[int]
        The number of different keys in the bucket, if known. Point buckets always contain exactly one key.
    """

    lower_bound: Key
    upper_bound: Key
    frequency: float
    distinct_values: Optional[int] = None

    def __post_init__(self) -> None:
        check_comparable(self.lower_bound, self.upper_bound, context="bucket bounds")
        if self.upper_bound < self.lower_bound:
            raise InvalidInputError(f"Bucket lower bound {self.lower_bound!r} is larger than upper bound "
                                    f"{self.upper_bound!r}")
        if isinstance(self.frequency, bool) or not isinstance(self.frequency, numbers.Real):
            raise InvalidInputError(f"Bucket frequency must be a number, not {self.frequency!r}")
        if math.isnan(self.frequency) or self.frequency < 0:
            raise InvalidInputError(f"Bucket frequency must not be negative, not {self.frequency}")
        if self.distinct_values is not None and self.distinct_values < 1:
            raise InvalidInputError(f"Buckets contain at least one distinct value, not {self.distinct_values}")

    @staticmethod
    def point(key: Key, frequency: float) -> HistogramBucket:
        """Creates a bucket that contains only a single key."""
        return HistogramBucket(key, key, frequency)

    def is_point(self) -> bool:
        return self.lower_bound == self.upper_bound

    def contains(self, key: Key) -> bool:
        return self.lower_bound <= key <= self.upper_bound

    def span(self) -> tuple[numbers.Real, numbers.Real]:
        """Provides the positions of the lower and upper bound."""
        return key_position(self.lower_bound), key_position(self.upper_bound)

    def rows_per_key(self) -> float:
        """Estimates how many rows share the same key, assuming a uniform distribution within the bucket.

        If the number of distinct keys is unknown for a range bucket, all keys are assumed to be unique.
        """
        if self.is_point():
            return self.frequency
        distinct_values = self.distinct_values if self.distinct_values is not None else max(self.frequency, 1)
        return self.frequency / distinct_values

    def __json__(self) -> jsondict:
        return {"lower_bound": self.lower_bound, "upper_bound": self.upper_bound, "frequency": self.frequency,
                "distinct_values": self.distinct_values}

    def __str__(self) -> str:
        bounds = f"[{self.lower_bound!r}]" if self.is_point() else f"[{self.lower_bound!r}, {self.upper_bound!r}]"
        return f"{bounds}: {self.frequency}"


class Histogram(Sequence[HistogramBucket]):
    """An ordered sequence of non-overlapping buckets that describes the key distribution of a column.

    Gaps between buckets are allowed, e.g. a frequency histogram only contains the keys that actually occur. However,
    the buckets have to be sorted and may not share any key. The histogram covers all keys between the lower bound of its
    first bucket and the upper bound of its last bucket.

    Parameters
    ----------
    buckets : Iterable[HistogramBucket]
        The buckets in ascending order

    Raises
    ------
    InvalidInputError
        If there are no buckets, or if the buckets are unordered or overlap
    """

    @staticmethod
    def frequencies(counts: Mapping[Key, float]) -> Histogram:
        """Creates a frequency histogram from a mapping of keys to their number of rows. The keys can be in any order."""
        try:
            keys = sorted(counts)
        except TypeError as e:
            raise InvalidInputError("Histogram keys cannot be compared with each other") from e
        return Histogram(HistogramBucket.point(key, counts[key]) for key in keys)

    @staticmethod
    def from_df(df: pd.DataFrame, *, lower_col: str = "lower_bound", upper_col: str = "upper_bound",
                frequency_col: str = "frequency", distinct_col: str = "distinct_values") -> Histogram:
        """Loads a histogram from a data frame that contains one bucket per row.

        The `upper_col` and `distinct_col` columns are optional. If the upper bound is missing, all buckets are treated as
        point buckets.
        """
        missing = [col for col in (lower_col, frequency_col) if col not in df.columns]
        if missing:
            raise InvalidInputError(f"Data frame is missing columns {missing}")

        lower_bounds = df[lower_col].tolist()
        upper_bounds = df[upper_col].tolist() if upper_col in df.columns else lower_bounds
        frequencies = df[frequency_col].tolist()
        distinct_values = (df[distinct_col].tolist() if distinct_col in df.columns
                           else [None] * len(lower_bounds))

        buckets = []
        for lower, upper, frequency, distinct in zip(lower_bounds, upper_bounds, frequencies, distinct_values):
            distinct = None if distinct is None or pd.isna(distinct) else int(distinct)
            buckets.append(HistogramBucket(lower, upper, frequency, distinct))
        return Histogram(buckets)

    @staticmethod
    def from_json(data: Iterable[Mapping]) -> Histogram:
        """Loads a histogram from its JSON representation, i.e. a list of bucket dictionaries."""
        buckets = []
        for bucket in data:
            lower = bucket["lower_bound"]
            buckets.append(HistogramBucket(lower, bucket.get("upper_bound", lower), bucket["frequency"],
                                           bucket.get("distinct_values")))
        return Histogram(buckets)

    def __init__(self, buckets: Iterable[HistogramBucket]) -> None:
        self._buckets = tuple(buckets)
        if not self._buckets:
            raise InvalidInputError("Histogram requires at least one bucket")

        for position in range(1, len(self._buckets)):
            previous, current = self._buckets[position - 1], self._buckets[position]
            check_comparable(previous.upper_bound, current.lower_bound, context=f"buckets {position - 1} and {position}")
            if not previous.upper_bound < current.lower_bound:
                raise InvalidInputError(f"Buckets {previous} and {current} overlap or are not in ascending order")

        self._total_rows = sum(bucket.frequency for bucket in self._buckets)
        self._hash_val = hash(self._buckets)

    __match_args__ = ("buckets",)

    @property
    def buckets(self) -> tuple[HistogramBucket, ...]:
        return self._buckets

    @property
    def total_rows(self) -> float:
        """The sum of all bucket frequencies."""
        return self._total_rows

    @property
    def domain(self) -> tuple[Key, Key]:
        """The smallest and the largest key covered by the histogram."""
        return self._buckets[0].lower_bound, self._buckets[-1].upper_bound

    def is_frequency_histogram(self) -> bool:
        return all(bucket.is_point() for bucket in self._buckets)

    def lookup(self, key: Key) -> Optional[HistogramBucket]:
        """Provides the bucket that contains a specific key, or *None* if the key falls into a gap."""
        for bucket in self._buckets:
            if bucket.contains(key):
                return bucket
        return None

    def min_frequency(self) -> float:
        """The smallest non-zero bucket frequency, or 0 if all buckets are empty."""
        return min((bucket.frequency for bucket in self._buckets if bucket.frequency > 0), default=0)

    def to_df(self) -> pd.DataFrame:
        return as_df([bucket.__json__() for bucket in self._buckets],
                     columns=["lower_bound", "upper_bound", "frequency", "distinct_values"])

    def __json__(self) -> list[jsondict]:
        return [bucket.__json__() for bucket in self._buckets]

    @overload
    def __getitem__(self, index: int) -> HistogramBucket: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[HistogramBucket]: ...

    def __getitem__(self, index):
        return self._buckets[index]

    def __len__(self) -> int:
        return len(self._buckets)

    def __iter__(self) -> Iterator[HistogramBucket]:
        return iter(self._buckets)

    def __hash__(self) -> int:
        return self._hash_val

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self)) and self._buckets == other._buckets

    def __repr__(self) -> str:
        return f"Histogram({list(self._buckets)!r})"

    def __str__(self) -> str:
        return "; ".join(str(bucket) for bucket in self._buckets)


def read_histogram(path: str | Path, *, lower_col: str = "lower_bound", upper_col: str = "upper_bound",
                   frequency_col: str = "frequency", distinct_col: str = "distinct_values", **kwargs) -> Histogram:
    """Reads a histogram from a CSV file. Additional arguments are passed to ``pd.read_csv``.

    See Also
    --------
    Histogram.from_df
    """
    try:
        df = read_df(path, required_columns=[lower_col, frequency_col], **kwargs)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    return Histogram.from_df(df, lower_col=lower_col, upper_col=upper_col, frequency_col=frequency_col,
                             distinct_col=distinct_col)


def _interpolate(bucket: HistogramBucket, lower: numbers.Real, upper: numbers.Real) -> float:
    """Determines the share of a bucket's frequency whose keys lie between two positions."""
    bucket_lower, bucket_upper = bucket.span()
    if bucket_upper == bucket_lower:
        # keys that only differ after the leading characters share the same position
        return bucket.frequency if lower <= bucket_lower <= upper else 0.0
    covered = min(upper, bucket_upper) - max(lower, bucket_lower)
    if covered <= 0:
        return 0.0
    return bucket.frequency * min(covered / (bucket_upper - bucket_lower), 1.0)


class Predicate(abc.ABC):
    """A filter predicate on the histogram column."""

    @abc.abstractmethod
    def matches(self, key: Key) -> bool:
        """Checks, whether a row with a specific key satisfies the predicate."""
        raise NotImplementedError

    @abc.abstractmethod
    def check_domain(self, histogram: Histogram) -> None:
        """Ensures that the predicate can be estimated with a specific histogram.

        Raises
        ------
        OutOfDomainError
            If the predicate bounds lie outside of the keys covered by the histogram
        InvalidInputError
            If the predicate cannot be compared with the histogram keys
        """
        raise NotImplementedError

    @abc.abstractmethod
    def bucket_rows(self, bucket: HistogramBucket) -> float:
        """Estimates how many rows of a single bucket satisfy the predicate."""
        raise NotImplementedError

    def estimate_rows(self, histogram: Histogram) -> float:
        self.check_domain(histogram)
        return sum(self.bucket_rows(bucket) for bucket in histogram)

    @abc.abstractmethod
    def __json__(self) -> jsondict:
        raise NotImplementedError


@dataclass(frozen=True)
class EqualityPredicate(Predicate):
    """Predicate of the form *col = value*.

    If the value falls into a gap between buckets, it is not a popular value but still might exist in the table. In line
    with Oracle's treatment of values that are missing from a frequency histogram, half the frequency of the least popular
    bucket is assumed in this case.
    """

    value: Key

    def matches(self, key: Key) -> bool:
        return key == self.value

    def check_domain(self, histogram: Histogram) -> None:
        lower, upper = histogram.domain
        check_comparable(self.value, lower, context="predicate value and histogram domain")
        if not lower <= self.value <= upper:
            raise OutOfDomainError(self, histogram.domain)

    def bucket_rows(self, bucket: HistogramBucket) -> float:
        if bucket.is_point():
            return bucket.frequency if self.matches(bucket.lower_bound) else 0.0
        return bucket.rows_per_key() if bucket.contains(self.value) else 0.0

    def estimate_rows(self, histogram: Histogram) -> float:
        self.check_domain(histogram)
        bucket = histogram.lookup(self.value)
        if bucket is None:
            return histogram.min_frequency() / 2
        return self.bucket_rows(bucket)

    def __json__(self) -> jsondict:
        return {"operator": "=", "value": self.value}

    def __str__(self) -> str:
        return f"= {self.value!r}"


@dataclass(frozen=True)
class RangePredicate(Predicate):
    """Predicate that restricts the key to an interval, e.g. *col BETWEEN a AND b* or *col > a*.

    Inside a range bucket, the rows between both bounds are interpolated. Each inclusive bound that falls into the bucket
    adds the rows of a single key on top, similar to Oracle's handling of closed range predicates. Therefore, a range
    that starts and ends on the same key is estimated like the corresponding equality predicate.

    Attributes
    ----------
    lower : Optional[Key]
        The smallest permitted key. *None* leaves the interval open towards the smallest key of the histogram.
    upper : Optional[Key]
        The largest permitted key. *None* leaves the interval open towards the largest key of the histogram.
    lower_inclusive : bool
        Whether the lower bound itself satisfies the predicate
    upper_inclusive : bool
        Whether the upper bound itself satisfies the predicate
    """

    lower: Optional[Key] = None
    upper: Optional[Key] = None
    lower_inclusive: bool = True
    upper_inclusive: bool = True

    @staticmethod
    def between(lower: Key, upper: Key) -> RangePredicate:
        return RangePredicate(lower, upper)

    @staticmethod
    def less_than(upper: Key, *, inclusive: bool = False) -> RangePredicate:
        return RangePredicate(upper=upper, upper_inclusive=inclusive)

    @staticmethod
    def greater_than(lower: Key, *, inclusive: bool = False) -> RangePredicate:
        return RangePredicate(lower=lower, lower_inclusive=inclusive)

    def __post_init__(self) -> None:
        if self.lower is None or self.upper is None:
            return
        check_comparable(self.lower, self.upper, context="predicate bounds")
        if self.upper < self.lower:
            raise InvalidInputError(f"Lower bound {self.lower!r} of range predicate is larger than upper bound "
                                    f"{self.upper!r}")

    def matches(self, key: Key) -> bool:
        if self.lower is not None:
            if key < self.lower or (key == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if key > self.upper or (key == self.upper and not self.upper_inclusive):
                return False
        return True

    def check_domain(self, histogram: Histogram) -> None:
        domain_lower, domain_upper = histogram.domain
        for bound in (self.lower, self.upper):
            if bound is None:
                continue
            check_comparable(bound, domain_lower, context="predicate bound and histogram domain")
            if not domain_lower <= bound <= domain_upper:
                raise OutOfDomainError(self, histogram.domain)

    def bucket_rows(self, bucket: HistogramBucket) -> float:
        if bucket.is_point():
            return bucket.frequency if self.matches(bucket.lower_bound) else 0.0
        if self.lower is not None and self.lower == self.upper:
            if not (self.lower_inclusive and self.upper_inclusive):
                return 0.0
            return EqualityPredicate(self.lower).bucket_rows(bucket)

        lower = key_position(self.lower) if self.lower is not None else -math.inf
        upper = key_position(self.upper) if self.upper is not None else math.inf
        rows = _interpolate(bucket, lower, upper)

        # closed bounds additionally select the rows of the bound key itself
        closed_bounds = [bound for bound, inclusive in ((self.lower, self.lower_inclusive),
                                                        (self.upper, self.upper_inclusive))
                         if bound is not None and inclusive]
        rows += sum(bucket.rows_per_key() for bound in closed_bounds if bucket.contains(bound))
        return min(rows, bucket.frequency)

    def __json__(self) -> jsondict:
        return {"operator": "range", "lower": self.lower, "upper": self.upper,
                "lower_inclusive": self.lower_inclusive, "upper_inclusive": self.upper_inclusive}

    def __str__(self) -> str:
        opening = "[" if self.lower_inclusive else "("
        closing = "]" if self.upper_inclusive else ")"
        lower = "-inf" if self.lower is None else repr(self.lower)
        upper = "inf" if self.upper is None else repr(self.upper)
        return f"in {opening}{lower}, {upper}{closing}"


@dataclass(frozen=True)
class PrefixPredicate(Predicate):
    """Predicate of the form *col LIKE 'prefix%'* on string keys."""

    prefix: str

    def __post_init__(self) -> None:
        if not isinstance(self.prefix, str):
            raise InvalidInputError(f"Prefix predicates require a string prefix, not {self.prefix!r}")
        if not self.prefix:
            raise InvalidInputError("Prefix predicates require a non-empty prefix")

    def matches(self, key: Key) -> bool:
        return isinstance(key, str) and key.startswith(self.prefix)

    def check_domain(self, histogram: Histogram) -> None:
        domain_lower, domain_upper = histogram.domain
        if not isinstance(domain_lower, str) or not isinstance(domain_upper, str):
            raise InvalidInputError(f"Prefix predicates require a histogram on string keys, not {histogram.domain}")
        start, end = prefix_span(self.prefix)
        if end <= key_position(domain_lower) or start > key_position(domain_upper):
            raise OutOfDomainError(self, histogram.domain)

    def bucket_rows(self, bucket: HistogramBucket) -> float:
        if bucket.is_point():
            return bucket.frequency if self.matches(bucket.lower_bound) else 0.0
        start, end = prefix_span(self.prefix)
        return _interpolate(bucket, start, end)

    def __json__(self) -> jsondict:
        return {"operator": "like", "prefix": self.prefix}

    def __str__(self) -> str:
        return f"LIKE '{self.prefix}%'"


def estimate_rows(histogram: Histogram, predicate: Predicate) -> float:
    """Estimates the number of rows that satisfy a predicate.

    Parameters
    ----------
    histogram : Histogram
        The histogram on the predicate column
    predicate : Predicate
        The filter predicate

    Returns
    -------
    float
        The estimated number of rows. This is never larger than the total number of rows in the histogram.

    Raises
    ------
    OutOfDomainError
        If the predicate bounds lie outside of the keys covered by the histogram
    InvalidInputError
        If the predicate keys cannot be compared with the histogram keys
    """
    return min(predicate.estimate_rows(histogram), histogram.total_rows)


def estimate_selectivity(histogram: Histogram, predicate: Predicate) -> float:
    """Estimates the fraction of rows that satisfy a predicate. See `estimate_rows` for details."""
    if histogram.total_rows == 0:
        predicate.check_domain(histogram)
        return 0.0
    return estimate_rows(histogram, predicate) / histogram.total_rows
