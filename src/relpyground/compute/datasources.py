"""Leaves of the query plans.

A data source node has no children: it emits the tuples
of a base relation as record batches, which the
rest of the plan then transforms.

Relations are kept in memory as :class:`pyarrow.Table`
or :class:`pyarrow.RecordBatch` objects, whose schema is
the schema of the relation.
"""

from typing import Any, Iterable

import pyarrow as pa

from .base import QueryPlanNode


def relation_from_rows(rows: Iterable[Iterable[Any]], schema: pa.Schema) -> pa.Table:
    """Build a relation out of python tuples.

    Every row must provide exactly one value for
    each attribute of the schema, and each value must
    be convertible to the attribute type.

    >>> import pyarrow as pa
    >>> schema = pa.schema([("ID", pa.int64()), ("Name", pa.string())])
    >>> relation_from_rows([(1, "A"), (2, "B")], schema).to_pydict()
    {'ID': [1, 2], 'Name': ['A', 'B']}
    """
    rows = [tuple(row) for row in rows]
    for row in rows:
        if len(row) != len(schema):
            raise ValueError(
                f"Row {row!r} has {len(row)} values, but the schema has {len(schema)} attributes"
            )
    columns = [
        pa.array([row[idx] for row in rows], type=field.type)
        for idx, field in enumerate(schema)
    ]
    return pa.Table.from_arrays(columns, schema=schema)


class PyArrowTableDataSource(QueryPlanNode):
    """Emit the content of an in-memory Arrow table or record batch.

    Tables are emitted one chunk at a time,
    record batches are emitted as they are.
    """

    def __init__(self, table: pa.Table | pa.RecordBatch) -> None:
        """
        :param table: The table or recordbatch with the data to read.
        """
        self.table = table
        self.is_recordbatch = isinstance(table, pa.RecordBatch)

    def __str__(self) -> str:
        return f"PyArrowTableDataSource(columns={self.table.column_names}, rows={self.table.num_rows})"

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Emit the rows of the relation."""
        if self.is_recordbatch:
            yield self.table
        elif self.table.num_rows == 0:
            # Empty tables have no chunks, emit an empty batch
            # so that consumers still receive the schema.
            yield pa.RecordBatch.from_pylist([], schema=self.table.schema)
        else:
            yield from self.table.to_batches()

    def poll_schema(self) -> pa.Schema:
        """The schema of the wrapped data."""
        return self.table.schema
