"""Row oriented helpers for the compute engine.

The engine is column major, but some operations
like removing duplicates or comparing the rows of two relations
are expressed in terms of whole rows.

For those we convert the columns to python tuples,
which is slow but keeps the implementation easy to follow.
Python compares ``None == None`` as true, so missing values
are treated as equal to each other, which is the
behavior SQL mandates for ``DISTINCT`` and set operations
(and differs from how ``=`` treats nulls in predicates).
The same goes for NaN, every NaN is replaced by one shared
NaN object so that tuple comparison, which checks identity first,
finds them equal.
"""

import math
from typing import Any, Iterable

import pyarrow as pa

_NAN = float("nan")


def _row_value(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return _NAN
    return value


def row_tuples(batch: pa.RecordBatch) -> list[tuple]:
    """Convert the rows of a batch to python tuples.

    >>> import pyarrow as pa
    >>> row_tuples(pa.record_batch({"a": [1, None], "b": ["x", "y"]}))
    [(1, 'x'), (None, 'y')]
    >>> rows = row_tuples(pa.record_batch({"a": [float("nan"), float("nan")]}))
    >>> rows[0] == rows[1]
    True
    """
    return list(
        zip(*([_row_value(v) for v in column.to_pylist()] for column in batch.columns))
    )


def distinct_indices(rows: Iterable[tuple], exclude: set | None = None) -> list[int]:
    """Indices of the first occurrence of each distinct row.

    :param rows: The rows to deduplicate.
    :param exclude: Rows that must not be emitted at all.

    >>> distinct_indices([(1,), (2,), (1,), (None,), (None,)])
    [0, 1, 3]
    """
    seen = set(exclude or ())
    indices = []
    for idx, row in enumerate(rows):
        if row in seen:
            continue
        seen.add(row)
        indices.append(idx)
    return indices


def take_rows(batch: pa.RecordBatch, indices: list[int | None]) -> pa.RecordBatch:
    """Pick the rows at the given positions.

    A ``None`` position emits a row made only of nulls,
    which is how outer joins pad the side without a match.
    """
    return batch.take(pa.array(indices, type=pa.int64()))
