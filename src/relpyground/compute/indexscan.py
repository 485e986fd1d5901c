"""Query plan node reading a relation through an index.

Instead of emitting all the rows of a relation and filtering them,
when an index on the filtered attribute exists the rows can
be located through the index, reading only the records
that can satisfy the filter.
"""

from typing import Any

import pyarrow as pa

from ..index import TableIndex
from .base import QueryPlanNode


class IndexLookupNode(QueryPlanNode):
    """Emit the rows of an indexed relation with a key equal to or within a range.

    When ``key`` is provided a point lookup is performed,
    otherwise the rows with ``low <= key <= high`` are emitted.

    >>> import pyarrow as pa
    >>> from relpyground.index import DenseIndex
    >>> data = pa.table({"id": [3, 1, 2], "name": ["C", "A", "B"]})
    >>> index = DenseIndex(data, "id", block_size=2)
    >>> next(IndexLookupNode(index, key=2).batches()).to_pydict()
    {'id': [2], 'name': ['B']}
    >>> next(IndexLookupNode(index, low=2).batches()).to_pydict()
    {'id': [2, 3], 'name': ['B', 'C']}
    """

    def __init__(
        self,
        index: TableIndex,
        key: Any = None,
        low: Any = None,
        high: Any = None,
    ) -> None:
        """
        :param index: The index over the relation to read.
        :param key: The key to look for.
        :param low: The lower bound of the range, ``None`` when unbounded.
        :param high: The upper bound of the range, ``None`` when unbounded.
        """
        self.index = index
        self.key = key
        self.low = low
        self.high = high

    def __str__(self) -> str:
        if self.key is not None:
            lookup = f"key={self.key!r}"
        else:
            lookup = f"low={self.low!r}, high={self.high!r}"
        return f"IndexLookupNode({lookup}, index={self.index})"

    def poll_schema(self) -> pa.Schema:
        return self.index.table.schema

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        if self.key is not None:
            rows = self.index.lookup(self.key)
        else:
            rows = self.index.range(self.low, self.high)
        yield pa.RecordBatch.from_arrays(
            [column.combine_chunks() for column in rows.columns], schema=rows.schema
        )
