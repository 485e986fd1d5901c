"""Query plan nodes that implement join operations.

A join combines the rows of two relations, pairing each
row of the left relation with the rows of the right relation
that satisfy the join condition.

The join is implemented as a hash join for the equality
conditions between the two sides (the most common case,
like ``Instructor.ID = Teaches.TID``) followed by a filter for
any other condition. When there is no equality to
hash on, every pair of rows is a candidate and the join
degrades to a nested loop.

Join Kinds
==========

* ``inner``: only the pairs satisfying the condition are emitted.
  An inner join without a condition is the cartesian product.
* ``left``: like inner, plus every left row that found no match,
  padded with nulls for the right columns.
* ``right``: like inner, plus every unmatched right row padded with nulls.
* ``full``: both of the above.

>>> import pyarrow as pa
>>> import pyarrow.compute as pc
>>> from relpyground.compute import JoinNode, PyArrowTableDataSource
>>> from relpyground.compute import FunctionCallExpression, col
>>> left = PyArrowTableDataSource(pa.record_batch({"ID": [1, 2, 3], "Name": ["Einstein", "Curie", "Gauss"]}))
>>> right = PyArrowTableDataSource(pa.record_batch({"TID": [3, 2], "Course": ["MA-101", "PHY-201"]}))
>>> join_node = JoinNode(left, right, FunctionCallExpression(pc.equal, col("ID"), col("TID")))
>>> next(join_node.batches()).to_pydict()
{'ID': [2, 3], 'Name': ['Curie', 'Gauss'], 'TID': [2, 3], 'Course': ['PHY-201', 'MA-101']}
>>> join_node = JoinNode(left, right, FunctionCallExpression(pc.equal, col("ID"), col("TID")), how="left")
>>> next(join_node.batches()).to_pydict()
{'ID': [2, 3, 1], 'Name': ['Curie', 'Gauss', 'Einstein'], 'TID': [2, 3, None], 'Course': ['PHY-201', 'MA-101', None]}
"""

import pyarrow as pa

from .base import QueryPlanNode
from .expressions import Expression, column_equality, conjunction, split_conjunction
from .rows import take_rows

JOIN_KINDS = ("inner", "left", "right", "full")


class JoinNode(QueryPlanNode):
    """Join two data sources.

    Given the relations::

        left:
        +----+----------+
        | ID | Name     |
        +----+----------+
        | 1  | Einstein |
        | 2  | Curie    |
        | 3  | Gauss    |
        +----+----------+

        right:
        +-----+---------+
        | TID | Course  |
        +-----+---------+
        | 3   | MA-101  |
        | 2   | PHY-201 |
        +-----+---------+

    and the condition ``ID = TID`` we would perform the following steps:

    1. Split the condition into the equalities between a left and a
       right column (the join keys) and everything else (the residual)::

        left_keys = ["ID"]
        right_keys = ["TID"]
        residual = None

    2. Build a hash table from the right side keys to the
       positions of the rows holding them::

        {(3,): [0], (2,): [1]}

    3. Probe the hash table with the keys of each left row,
       recording the pairs of positions that matched::

        left_positions  = [1, 2]
        right_positions = [1, 0]

    4. Take the rows at those positions from both sides
       and put their columns side by side::

        +----+-------+-----+---------+
        | ID | Name  | TID | Course  |
        +----+-------+-----+---------+
        | 2  | Curie | 2   | PHY-201 |
        | 3  | Gauss | 3   | MA-101  |
        +----+-------+-----+---------+

    5. If there is a residual condition, apply it to the combined
       rows and only keep the pairs for which it's true.

    6. For outer joins, add the rows that never matched,
       using a null position for the other side, which
       makes :meth:`pyarrow.RecordBatch.take` emit nulls.

    Null keys never match anything, as ``NULL = NULL`` is unknown in SQL.
    """

    def __init__(
        self,
        left_child: QueryPlanNode,
        right_child: QueryPlanNode,
        condition: Expression | None = None,
        how: str = "inner",
    ) -> None:
        """
        :param left_child: The left source of data to join.
        :param right_child: The right source of data to join.
        :param condition: The predicate the pairs of rows must satisfy,
                          ``None`` means every pair is emitted.
        :param how: One of ``inner``, ``left``, ``right`` or ``full``.
        """
        if how not in JOIN_KINDS:
            raise ValueError(f"Unsupported join kind: {how}")
        self.left_child = left_child
        self.right_child = right_child
        self.condition = condition
        self.how = how

        left_names = set(left_child.poll_schema().names)
        right_names = set(right_child.poll_schema().names)
        self.left_keys: list[str] = []
        self.right_keys: list[str] = []
        residual = []
        for conjunct in split_conjunction(condition) if condition is not None else []:
            columns = column_equality(conjunct)
            if columns is not None:
                a, b = columns
                if a in left_names and b in right_names:
                    self.left_keys.append(a)
                    self.right_keys.append(b)
                    continue
                if b in left_names and a in right_names:
                    self.left_keys.append(b)
                    self.right_keys.append(a)
                    continue
            residual.append(conjunct)
        self.residual = conjunction(*residual) if residual else None

    def __str__(self) -> str:
        return f"JoinNode(how={self.how}, condition={self.condition}, left={self.left_child}, right={self.right_child})"

    def poll_schema(self) -> pa.Schema:
        return pa.schema(
            list(self.left_child.poll_schema()) + list(self.right_child.poll_schema())
        )

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Perform the join operation.

        Accumulates all rows of both children to
        perform the join operation, so it is not suitable
        for large datasets.
        """
        left_rb = self.left_child.materialize()
        right_rb = self.right_child.materialize()

        if self.left_keys:
            left_positions, right_positions = self._hash_match(left_rb, right_rb)
        else:
            left_positions = [
                lidx for lidx in range(left_rb.num_rows) for _ in range(right_rb.num_rows)
            ]
            right_positions = list(range(right_rb.num_rows)) * left_rb.num_rows

        if self.residual is not None and left_positions:
            candidates = self._combine(left_rb, right_rb, left_positions, right_positions)
            mask = self.residual.apply(candidates)
            if isinstance(mask, pa.Scalar):
                keep = [mask.as_py() is True] * len(left_positions)
            else:
                keep = [m is True for m in mask.to_pylist()]
            left_positions = [p for p, k in zip(left_positions, keep) if k]
            right_positions = [p for p, k in zip(right_positions, keep) if k]

        if self.how in ("left", "full"):
            matched = set(left_positions)
            unmatched = [i for i in range(left_rb.num_rows) if i not in matched]
            left_positions = left_positions + unmatched
            right_positions = right_positions + [None] * len(unmatched)
        if self.how in ("right", "full"):
            matched = set(p for p in right_positions if p is not None)
            unmatched = [i for i in range(right_rb.num_rows) if i not in matched]
            left_positions = left_positions + [None] * len(unmatched)
            right_positions = right_positions + unmatched

        yield self._combine(left_rb, right_rb, left_positions, right_positions)

    def _hash_match(
        self, left_rb: pa.RecordBatch, right_rb: pa.RecordBatch
    ) -> tuple[list[int], list[int]]:
        """Find the pairs of rows with equal join keys."""
        right_keys = zip(*(right_rb.column(k).to_pylist() for k in self.right_keys))
        hashtable: dict[tuple, list[int]] = {}
        for ridx, key in enumerate(right_keys):
            if None in key:
                continue
            hashtable.setdefault(key, []).append(ridx)

        left_positions: list[int] = []
        right_positions: list[int] = []
        left_keys = zip(*(left_rb.column(k).to_pylist() for k in self.left_keys))
        for lidx, key in enumerate(left_keys):
            if None in key:
                continue
            for ridx in hashtable.get(key, ()):
                left_positions.append(lidx)
                right_positions.append(ridx)
        return left_positions, right_positions

    def _combine(
        self,
        left_rb: pa.RecordBatch,
        right_rb: pa.RecordBatch,
        left_positions: list[int | None],
        right_positions: list[int | None],
    ) -> pa.RecordBatch:
        """Put side by side the rows at the given positions of both batches."""
        left_rows = take_rows(left_rb, left_positions)
        right_rows = take_rows(right_rb, right_positions)
        return pa.RecordBatch.from_arrays(
            left_rows.columns + right_rows.columns, schema=self.poll_schema()
        )
