#!/usr/bin/env python3
#
# This script walks through the typical accesspath workflow: computing the clustering factor of an index from the physical
# row layout of a table, describing the key distribution with a histogram and letting the estimator decide between an index
# range scan and a full table scan.
#
# Requirements: none, all data is generated in memory.
#

import random
import string

import accesspath as ap

# Our table contains 72909 rows with single-letter keys that are stored in 64-row blocks. Almost all letters occur roughly
# 2900 times, but the letter 'm' is very rare and only shows up 5 times.
frequencies = {letter: 2916 for letter in string.ascii_lowercase}
frequencies["m"] = 5
frequencies["z"] = 2920
keys = [letter for letter, count in frequencies.items() for _ in range(count)]

# We simulate two different physical layouts of the same data: in the first one, the rows have been inserted in key order
# and therefore neighboring keys reside in the same block. In the second layout, the rows have been inserted in random order.
rows_per_block = 64
ordered_rows = [ap.Row(key, position // rows_per_block) for position, key in enumerate(keys)]
shuffled_keys = keys.copy()
random.Random(42).shuffle(shuffled_keys)
scattered_rows = [ap.Row(key, position // rows_per_block) for position, key in enumerate(shuffled_keys)]

table = ap.TableStatistics.from_rows("t1", ordered_rows)
print("Table:", table)

# The clustering factor shows how well the physical layout matches the index order. For the ordered layout, it is close to
# the number of blocks. For the scattered layout, it is close to the number of rows.
well_clustered = ap.IndexStatistics.from_rows("t1_ordered", ordered_rows)
poorly_clustered = ap.IndexStatistics.from_rows("t1_scattered", scattered_rows)
print("Clustering factors:", well_clustered.clustering_factor, "vs.", poorly_clustered.clustering_factor)

# Both layouts share the same key distribution, which we describe with a frequency histogram.
histogram = ap.Histogram.frequencies(frequencies)

predicates = [
    ap.EqualityPredicate("m"),
    ap.PrefixPredicate("m"),
    ap.RangePredicate.between("a", "b"),
    ap.RangePredicate(),
]

for index in (well_clustered, poorly_clustered):
    estimator = ap.AccessPathEstimator(table, index, histogram, settings=ap.CostSettings())
    for predicate in predicates:
        print(f"{index.name:>12} | WHERE key {str(predicate):<18} | {estimator.compare(predicate)}")
