"""Projection of columns.

:class:`ProjectNode` evaluates the projection operator (π),
the list of columns in a SQL ``SELECT`` clause,
optionally removing duplicates as ``SELECT DISTINCT`` does.
"""

import pyarrow as pa

from .base import QueryPlanNode
from .rows import distinct_indices, row_tuples, take_rows


class ProjectNode(QueryPlanNode):
    """Project data by selecting specific columns.

    The projection expects a list of column names to keep,
    the emitted data will contain those columns in the
    requested order.

    When ``distinct`` is requested the duplicate rows
    resulting from the projection are collapsed, like
    ``SELECT DISTINCT`` does. Null values compare equal
    to each other for the purpose of finding duplicates.

    >>> import pyarrow as pa
    >>> from relpyground.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"a": [1, 1, None, None], "b": [4, 5, 6, 7]})
    >>> next(ProjectNode(["a"], PyArrowTableDataSource(data)).batches()).to_pydict()
    {'a': [1, 1, None, None]}
    >>> next(ProjectNode(["a"], PyArrowTableDataSource(data), distinct=True).batches()).to_pydict()
    {'a': [1, None]}
    """

    def __init__(
        self,
        select: list[str],
        child: QueryPlanNode,
        distinct: bool = False,
    ) -> None:
        """
        :param select: The list of column names to keep.
        :param child: The node emitting the data to be projected.
        :param distinct: If duplicate rows should be removed.
        """
        self.select = select
        self.child = child
        self.distinct = distinct

    def __str__(self) -> str:
        return f"ProjectNode(select={self.select}, distinct={self.distinct}, child={self.child})"

    def poll_schema(self) -> pa.Schema:
        child_schema = self.child.poll_schema()
        return pa.schema([child_schema.field(name) for name in self.select])

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Emit the requested columns of each batch from the child.

        Deduplication needs to know about all the rows,
        so when ``distinct`` is requested the projected
        data is accumulated and emitted as a single batch.
        """
        if not self.distinct:
            for batch in self.child.batches():
                yield batch.select(self.select)
            return

        batch = self.child.materialize().select(self.select)
        yield take_rows(batch, distinct_indices(row_tuples(batch)))
