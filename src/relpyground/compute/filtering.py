"""Filtering of rows.

:class:`FilterNode` evaluates the selection operator (σ),
what SQL expresses as a ``WHERE`` clause: every row of the
input is tested against a predicate and only the rows
satisfying it reach the next node of the plan.
"""

import pyarrow as pa

from .base import QueryPlanNode
from .expressions import Expression


class FilterNode(QueryPlanNode):
    """Filter data based on a predicate expression.

    The filter expects an expression that when applied
    to the batch of data being filtered returns ``true``,
    ``false`` or ``null`` for each row in the data to mark which
    rows have to be preserved and which rows have to be discarded.

    Only rows for which the predicate is ``true`` are preserved,
    a ``null`` (unknown) outcome, like the one of comparing
    against a missing value, discards the row as ``false`` would.

    >>> import pyarrow as pa
    >>> import pyarrow.compute as pc
    >>> from relpyground.compute import col, lit, FunctionCallExpression, PyArrowTableDataSource
    >>> data = pa.record_batch({"values": [1, 2, None, 4, 5]})
    >>> predicate = FunctionCallExpression(pc.greater, col("values"), lit(3))
    >>> predicate.apply(data).to_pylist()
    [False, False, None, True, True]
    >>> next(FilterNode(predicate, PyArrowTableDataSource(data)).batches()).to_pydict()
    {'values': [4, 5]}
    """

    def __init__(self, expression: Expression, child: QueryPlanNode) -> None:
        """
        :param expression: The predicate expression to filter with.
        :param child: The node emitting the data to be filtered.
        """
        self.expression = expression
        self.child = child

    def __str__(self) -> str:
        return f"FilterNode(filter={self.expression}, child={self.child})"

    def poll_schema(self) -> pa.Schema:
        return self.child.poll_schema()

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Filter each batch emitted by the child.

        The predicate is evaluated on the whole batch at once,
        producing a boolean mask used to pick the surviving rows.
        """
        for batch in self.child.batches():
            mask = self.expression.apply(batch)
            if isinstance(mask, pa.Scalar):
                # Constant predicates, like those only involving literals.
                mask = pa.array([mask.as_py()] * batch.num_rows, type=pa.bool_())
            yield batch.filter(mask, null_selection_behavior="drop")
