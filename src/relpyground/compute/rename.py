"""Query plan node that renames columns.

Renaming is the way relational algebra disambiguates attributes,
for example before joining a relation with itself,
it's the ``AS`` of SQL queries.
"""

import pyarrow as pa

from .base import QueryPlanNode


class RenameNode(QueryPlanNode):
    """Rename the columns of the data emitted by the child.

    >>> import pyarrow as pa
    >>> from relpyground.compute import PyArrowTableDataSource
    >>> data = pa.record_batch({"id": [1, 2], "name": ["A", "B"]})
    >>> next(RenameNode({"id": "user_id"}, PyArrowTableDataSource(data)).batches()).to_pydict()
    {'user_id': [1, 2], 'name': ['A', 'B']}
    """

    def __init__(self, mapping: dict[str, str], child: QueryPlanNode) -> None:
        """
        :param mapping: The ``{old_name: new_name}`` renames to apply,
                        columns not in the mapping keep their name.
        :param child: The node emitting the data to rename.
        """
        self.mapping = mapping
        self.child = child

    def __str__(self) -> str:
        return f"RenameNode(mapping={self.mapping}, child={self.child})"

    def poll_schema(self) -> pa.Schema:
        return pa.schema(
            [
                field.with_name(self.mapping.get(field.name, field.name))
                for field in self.child.poll_schema()
            ]
        )

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Rename the columns of each batch.

        Renaming is a zero-copy operation, the column
        data is reused as is under the new schema.
        """
        schema = self.poll_schema()
        for batch in self.child.batches():
            yield pa.RecordBatch.from_arrays(batch.columns, schema=schema)
