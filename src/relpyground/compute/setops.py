"""Query plan nodes that implement set operations.

Set operations combine two relations with the same schema,
treating them as sets of rows:

* :class:`UnionNode` emits the rows that appear in either relation
  (``UNION``), or all the rows of both keeping duplicates (``UNION ALL``).
* :class:`DifferenceNode` emits the rows of the left relation
  that don't appear in the right one (``EXCEPT``).
* :class:`IntersectNode` emits the rows appearing in both (``INTERSECT``).

Rows are compared as a whole, and null values are
considered equal to each other, as SQL does for set operations.

>>> import pyarrow as pa
>>> from relpyground.compute import PyArrowTableDataSource
>>> left = PyArrowTableDataSource(pa.record_batch({"name": ["A", "B", "B", None]}))
>>> right = PyArrowTableDataSource(pa.record_batch({"name": ["B", "C", None]}))
>>> next(UnionNode(left, right).batches()).to_pydict()
{'name': ['A', 'B', None, 'C']}
>>> next(DifferenceNode(left, right).batches()).to_pydict()
{'name': ['A']}
>>> next(IntersectNode(left, right).batches()).to_pydict()
{'name': ['B', None]}
"""

import pyarrow as pa

from .base import QueryPlanNode
from .rows import distinct_indices, row_tuples, take_rows


class SetOperationNode(QueryPlanNode):
    """Base class for nodes combining two relations with the same schema."""

    def __init__(self, left_child: QueryPlanNode, right_child: QueryPlanNode) -> None:
        """
        :param left_child: The left relation.
        :param right_child: The right relation, must have the same schema as the left one.
        """
        self.left_child = left_child
        self.right_child = right_child

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(left={self.left_child}, right={self.right_child})"

    def poll_schema(self) -> pa.Schema:
        return self.left_child.poll_schema()


class UnionNode(SetOperationNode):
    """Emit the rows of both children.

    When ``distinct`` is disabled the batches of the children
    are forwarded as they are, otherwise the rows are accumulated
    and each distinct row is emitted once.
    """

    def __init__(
        self, left_child: QueryPlanNode, right_child: QueryPlanNode, distinct: bool = True
    ) -> None:
        """
        :param distinct: If duplicate rows should be removed.
        """
        super().__init__(left_child, right_child)
        self.distinct = distinct

    def __str__(self) -> str:
        return f"UnionNode(distinct={self.distinct}, left={self.left_child}, right={self.right_child})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        schema = self.poll_schema()
        if not self.distinct:
            yield from self.left_child.batches()
            for batch in self.right_child.batches():
                # Align names and field metadata with the left side.
                yield pa.RecordBatch.from_arrays(batch.columns, schema=schema)
            return

        left_rb = self.left_child.materialize()
        right_rb = self.right_child.materialize()
        combined = pa.RecordBatch.from_arrays(
            [
                pa.concat_arrays([lcol, rcol])
                for lcol, rcol in zip(left_rb.columns, right_rb.columns)
            ],
            schema=schema,
        )
        yield take_rows(combined, distinct_indices(row_tuples(combined)))


class DifferenceNode(SetOperationNode):
    """Emit the distinct rows of the left child missing from the right child."""

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        left_rb = self.left_child.materialize()
        excluded = set(row_tuples(self.right_child.materialize()))
        yield take_rows(left_rb, distinct_indices(row_tuples(left_rb), exclude=excluded))


class IntersectNode(SetOperationNode):
    """Emit the distinct rows of the left child that also appear in the right child."""

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        left_rb = self.left_child.materialize()
        present = set(row_tuples(self.right_child.materialize()))
        left_rows = row_tuples(left_rb)
        indices = [
            idx
            for idx in distinct_indices(left_rows)
            if left_rows[idx] in present
        ]
        yield take_rows(left_rb, indices)
