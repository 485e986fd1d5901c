"""Interfaces shared by query plan nodes and expressions.

Plan nodes produce data, expressions compute values
out of the data produced by a node. Both are small
abstract classes so that new operators and new kinds of
expressions can be added without touching the existing ones.
"""

import abc
from typing import Any, Iterator

import pyarrow as pa


class QueryPlanNode(abc.ABC):
    """A step of a query plan.

    A plan is a tree: each node consumes the batches
    emitted by its children and emits its own.
    Leaves are data sources, the root emits the query result::

        ProjectNode(["Name"])
            FilterNode(Dept = 'Physics')
                PyArrowTableDataSource(Instructor)

    Most nodes have a single child, joins and set operations
    have two, index lookups and data sources have none.

    Data flows through the plan as :class:`pyarrow.RecordBatch` objects.
    Nodes that can work one batch at a time (filters, projections,
    renames) stream the batches, while nodes that need all the
    rows at once (joins, aggregations, deduplication) call
    :meth:`materialize` on their children first.

    A node that prints the batches it forwards would be::

        class DebugDataNode(QueryPlanNode):
            def __init__(self, child):
                self.child = child

            def batches(self):
                for b in self.child.batches():
                    print(b)
                    yield b

            def poll_schema(self):
                return self.child.poll_schema()

            def __str__(self):
                return f"DebugDataNode({self.child})"
    """

    RecordBatchesGenerator = Iterator[pa.RecordBatch]

    @abc.abstractmethod
    def batches(self) -> RecordBatchesGenerator:
        """Emit the data produced by the node, one batch at a time.

        Batches are produced lazily, consuming the batches
        of the children only when the parent asks for more.
        """
        ...

    @abc.abstractmethod
    def poll_schema(self) -> pa.Schema:
        """The schema of the batches the node will emit.

        Known without executing the node, this allows
        nodes that produce no rows to still provide
        correctly typed (empty) results.
        """
        ...

    @abc.abstractmethod
    def __str__(self) -> str:
        """Human readable representation of the node."""
        ...

    def materialize(self) -> pa.RecordBatch:
        """Consume all the batches and combine them in a single one.

        Operations like joins, set operations and deduplication
        need to see all the rows at once, they rely on this method
        to accumulate the data emitted by their children.
        """
        table = pa.Table.from_batches(list(self.batches()), schema=self.poll_schema())
        return pa.RecordBatch.from_arrays(
            [column.combine_chunks() for column in table.columns], schema=table.schema
        )


class Expression(abc.ABC):
    """A computation over the columns of a RecordBatch.

    The engine is column major, so applying an expression
    to a batch evaluates it for all the rows at once and
    results in a :class:`pyarrow.Array` (or in a :class:`pyarrow.Scalar`
    for constant expressions).

    Predicates are expressions returning booleans, selections
    and join conditions of the algebra use them, and the optimizer
    inspects which columns they read to decide where they can be moved.
    """

    @abc.abstractmethod
    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        """Evaluate the expression over the rows of the batch.

        An expression comparing two columns could look like::

            class GreaterExpression(Expression):
                def __init__(self, left, right):
                    self.left = left
                    self.right = right

                def apply(self, batch):
                    return pyarrow.compute.greater(
                        batch[self.left],
                        batch[self.right]
                    )
        """
        ...

    @abc.abstractmethod
    def columns(self) -> frozenset[str]:
        """Names of the columns the expression reads."""
        ...

    @abc.abstractmethod
    def rename_columns(self, mapping: dict[str, str]) -> "Expression":
        """Return a copy of the expression with its column references renamed.

        Columns that do not appear in ``mapping`` are left untouched.
        """
        ...

    @abc.abstractmethod
    def __str__(self) -> str:
        """Human readable representation of the expression."""
        ...

    def __eq__(self, other: Any) -> bool:
        return type(self) is type(other) and vars(self) == vars(other)

    __hash__ = None

    def __repr__(self) -> str:
        return str(self)


class ColumnRef(Expression):
    """References a column in a record batch.

    When another expression or the engine need
    to operate on a specific column, we will
    need a way to reference that column and its data.

    This expression is aware of the column and when
    applied to a record batch returns the data for
    that column.
    """

    def __init__(self, name: str) -> None:
        """
        :param name: The name of the column being referenced.
        """
        self.name = name

    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        """Get the data for the column."""
        return batch.column(self.name)

    def columns(self) -> frozenset[str]:
        return frozenset((self.name,))

    def rename_columns(self, mapping: dict[str, str]) -> "ColumnRef":
        return ColumnRef(mapping.get(self.name, self.name))

    def __str__(self) -> str:
        return f"ColumnRef({self.name})"


class Literal(Expression):
    """A constant value.

    Applying a literal always returns the same
    :class:`pyarrow.Scalar`, compute functions
    broadcast scalars against the arrays they are combined with.

    >>> Literal(5)
    Literal(<pyarrow.Int64Scalar: 5>)
    """

    def __init__(self, value: Any) -> None:
        """
        :param value: The python value or :class:`pyarrow.Scalar` of the literal.
        """
        if not isinstance(value, pa.Scalar):
            value = pa.scalar(value)
        self.value = value

    def apply(self, batch: pa.RecordBatch) -> pa.Scalar:
        """Get the literal value, the batch is ignored."""
        return self.value

    def columns(self) -> frozenset[str]:
        return frozenset()

    def rename_columns(self, mapping: dict[str, str]) -> "Literal":
        return self

    def __str__(self) -> str:
        return f"Literal({self.value!r})"


col = ColumnRef
lit = Literal
