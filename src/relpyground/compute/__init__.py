"""The RelPyground Compute Engine

The compute engine executes query plans: trees of
plan nodes where every node pulls Arrow record batches
from its children and yields new record batches to its parent::

    DataSource --(RecordBatch)--> FilterNode --(RecordBatch)--> ProjectNode --> ...

Each node knows how to run itself, the logic for evaluating
an operator lives in the node implementing it.

Query plans are usually generated from relational algebra expressions
by :class:`relpyground.evaluator.QueryPlanner`, but they can also
be assembled directly, with data source nodes as the leaves:

>>> import pyarrow as pa
>>> courses = pa.table({
...     "Course": ["CS-101", "PHY-101", "MU-199"],
...     "Credits": [4, 4, 3],
... })
>>> import pyarrow.compute as pc
>>> from relpyground.compute import FilterNode, FunctionCallExpression
>>> from relpyground.compute import PyArrowTableDataSource, col, lit
>>> # SELECT * FROM courses WHERE Credits >= 4
>>> query = FilterNode(
...     FunctionCallExpression(pc.greater_equal, col("Credits"), lit(4)),
...     child=PyArrowTableDataSource(courses),
... )
>>> for batch in query.batches():
...     print(batch.to_pydict())
{'Course': ['CS-101', 'PHY-101'], 'Credits': [4, 4]}
"""

from .aggregate import (
    AggregateNode,
    Aggregation,
    CountAggregation,
    CountAllAggregation,
    MaxAggregation,
    MeanAggregation,
    MinAggregation,
    SumAggregation,
)
from .base import ColumnRef, Expression, Literal, QueryPlanNode, col, lit
from .datasources import PyArrowTableDataSource, relation_from_rows
from .expressions import FunctionCallExpression, conjunction, split_conjunction
from .filtering import FilterNode
from .indexscan import IndexLookupNode
from .join import JoinNode
from .rename import RenameNode
from .selection import ProjectNode
from .setops import DifferenceNode, IntersectNode, UnionNode

__all__ = (
    "QueryPlanNode",
    "Expression",
    "PyArrowTableDataSource",
    "relation_from_rows",
    "FilterNode",
    "FunctionCallExpression",
    "conjunction",
    "split_conjunction",
    "col",
    "lit",
    "ColumnRef",
    "Literal",
    "ProjectNode",
    "JoinNode",
    "RenameNode",
    "UnionNode",
    "DifferenceNode",
    "IntersectNode",
    "IndexLookupNode",
    "AggregateNode",
    "Aggregation",
    "CountAggregation",
    "CountAllAggregation",
    "MaxAggregation",
    "MeanAggregation",
    "MinAggregation",
    "SumAggregation",
)
