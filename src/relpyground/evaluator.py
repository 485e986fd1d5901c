"""Evaluate relational algebra expressions.

The :class:`QueryPlanner` class translates an expression tree
into a compute engine query plan, one plan node per operator,
reading the base relations from in-memory Arrow data.
The :func:`evaluate` function plans and runs a tree in one step:

>>> import pyarrow as pa
>>> import pyarrow.compute as pc
>>> from relpyground.algebra import Projection, Relation, Selection
>>> from relpyground.compute import FunctionCallExpression, col, lit
>>> instructor = pa.table({
...     "ID": [1, 2, 3], "Name": ["A", "B", "C"], "Dept": ["Physics", "Physics", "Math"]
... })
>>> query = Projection(["Name"], Selection(
...     FunctionCallExpression(pc.equal, col("Dept"), lit("Physics")),
...     Relation.of("Instructor", instructor),
... ))
>>> evaluate(query, {"Instructor": instructor}).to_pydict()
{'Name': ['A', 'B']}

When indexes are available for a relation, selections
on the indexed attribute read the relation through the index
instead of scanning it:

>>> from relpyground.index import DenseIndex
>>> planner = QueryPlanner(
...     {"Instructor": instructor},
...     indexes={"Instructor": [DenseIndex(instructor, "Dept")]},
... )
>>> print(planner.plan(query))
ProjectNode(select=['Name'], distinct=False, child=FilterNode(filter=pyarrow.compute.equal(ColumnRef(Dept),Literal(<pyarrow.StringScalar: 'Physics'>)), child=IndexLookupNode(key='Physics', index=DenseIndex(column=Dept, structure=btree, entries=3, block_size=4))))
"""

import logging
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

from .algebra import (
    Aggregate,
    Difference,
    Intersection,
    Join,
    Projection,
    Relation,
    RelationalExpression,
    Rename,
    Selection,
    Union,
)
from .compute import (
    AggregateNode,
    DifferenceNode,
    FilterNode,
    IndexLookupNode,
    IntersectNode,
    JoinNode,
    ProjectNode,
    PyArrowTableDataSource,
    RenameNode,
    UnionNode,
)
from .compute.base import ColumnRef, Expression, Literal, QueryPlanNode
from .compute.expressions import FunctionCallExpression, split_conjunction
from .config import ANSI, Dialect
from .exceptions import SchemaMismatch, UnknownRelation, UnsupportedOperation
from .index import TableIndex

logger = logging.getLogger(__name__)

# Comparisons an index can answer, and the same comparison
# with the operands swapped (5 < x is x > 5).
INDEXABLE_COMPARISONS = {
    pc.equal: pc.equal,
    pc.less: pc.greater,
    pc.less_equal: pc.greater_equal,
    pc.greater: pc.less,
    pc.greater_equal: pc.less_equal,
}


def _signature(schema: pa.Schema) -> list[tuple[str, pa.DataType]]:
    return [(field.name, field.type) for field in schema]


class QueryPlanner:
    """Create a compute engine query plan from a relational algebra expression."""

    def __init__(
        self,
        relations: dict[str, pa.Table | pa.RecordBatch],
        indexes: dict[str, list[TableIndex]] | None = None,
        dialect: Dialect = ANSI,
    ) -> None:
        """
        :param relations: The data of the base relations, by relation name.
        :param indexes: The indexes available over the base relations, by relation name.
                        Each index must have been built over the same data
                        provided for the relation in ``relations``.
        :param dialect: The dialect the expression trees must conform to.
        """
        self.relations = relations
        self.indexes = indexes or {}
        self.dialect = dialect

    def plan(self, tree: RelationalExpression) -> QueryPlanNode:
        """Validate the tree and generate the query plan that evaluates it."""
        tree.schema()
        self.dialect.check(tree)
        plan = self._plan_node(tree)
        logger.debug("Planned %s", plan)
        return plan

    def _plan_node(self, node: RelationalExpression) -> QueryPlanNode:
        if isinstance(node, Relation):
            return self._plan_relation(node)
        elif isinstance(node, Selection):
            return FilterNode(node.predicate, self._plan_selection_input(node))
        elif isinstance(node, Projection):
            return ProjectNode(node.attributes, self._plan_node(node.child), distinct=node.distinct)
        elif isinstance(node, Join):
            return JoinNode(
                self._plan_node(node.left),
                self._plan_node(node.right),
                node.condition,
                how=node.kind,
            )
        elif isinstance(node, Union):
            return UnionNode(
                self._plan_node(node.left), self._plan_node(node.right), distinct=node.distinct
            )
        elif isinstance(node, Difference):
            return DifferenceNode(self._plan_node(node.left), self._plan_node(node.right))
        elif isinstance(node, Intersection):
            return IntersectNode(self._plan_node(node.left), self._plan_node(node.right))
        elif isinstance(node, Rename):
            return RenameNode(node.mapping, self._plan_node(node.child))
        elif isinstance(node, Aggregate):
            return AggregateNode(node.group_by, node.aggregations, self._plan_node(node.child))
        raise UnsupportedOperation(f"Unsupported expression: {node.describe()}")

    def _plan_relation(self, relation: Relation) -> QueryPlanNode:
        return PyArrowTableDataSource(self._relation_data(relation))

    def _relation_data(self, relation: Relation) -> pa.Table | pa.RecordBatch:
        """The data provided for the relation, after checking it matches the relation schema."""
        try:
            data = self.relations[relation.name]
        except KeyError:
            raise UnknownRelation(f"No data provided for relation {relation.name}") from None
        if _signature(data.schema) != _signature(relation.schema()):
            raise SchemaMismatch(
                f"Data for relation {relation.name} has schema {_signature(data.schema)}, "
                f"expected {_signature(relation.schema())}"
            )
        return data

    def _plan_selection_input(self, selection: Selection) -> QueryPlanNode:
        """Plan the input of a selection, reading it through an index when possible.

        The index only narrows down the candidate rows,
        the selection predicate is still applied to them.
        """
        if isinstance(selection.child, Relation):
            lookup = self._index_lookup(selection.child, selection.predicate)
            if lookup is not None:
                return lookup
        return self._plan_node(selection.child)

    def _index_lookup(self, relation: Relation, predicate: Expression) -> IndexLookupNode | None:
        indexes = self.indexes.get(relation.name)
        if not indexes:
            return None
        data = self._relation_data(relation)

        for conjunct in split_conjunction(predicate):
            comparison = self._comparison(conjunct)
            if comparison is None:
                continue
            func, column, value = comparison
            for index in indexes:
                if index.column != column:
                    continue
                if _signature(index.table.schema) != _signature(data.schema):
                    raise SchemaMismatch(
                        f"Index {index} was not built over the data of relation {relation.name}"
                    )
                if func is pc.equal:
                    lookup = IndexLookupNode(index, key=value)
                elif not index.ordered:
                    continue
                elif func in (pc.less, pc.less_equal):
                    lookup = IndexLookupNode(index, high=value)
                else:
                    lookup = IndexLookupNode(index, low=value)
                logger.debug("Reading %s through %s", relation.name, index)
                return lookup
        return None

    @staticmethod
    def _comparison(expression: Expression) -> tuple[Any, str, Any] | None:
        """Recognize ``column <op> literal`` and ``literal <op> column`` comparisons.

        Returns the comparison function (as if the column was
        on the left side), the column name and the literal value.
        """
        if not isinstance(expression, FunctionCallExpression) or expression.options:
            return None
        if expression.func not in INDEXABLE_COMPARISONS or len(expression.args) != 2:
            return None

        left, right = expression.args
        if isinstance(left, ColumnRef) and isinstance(right, Literal):
            func, column, literal = expression.func, left, right
        elif isinstance(left, Literal) and isinstance(right, ColumnRef):
            func, column, literal = INDEXABLE_COMPARISONS[expression.func], right, left
        else:
            return None

        value = literal.value.as_py()
        if value is None:
            # Comparisons with null are never true.
            return None
        return func, column.name, value


def evaluate(
    tree: RelationalExpression,
    relations: dict[str, pa.Table | pa.RecordBatch],
    *,
    indexes: dict[str, list[TableIndex]] | None = None,
    dialect: Dialect | None = None,
) -> pa.Table:
    """Evaluate the expression tree over the given relations.

    :param tree: The expression to evaluate.
    :param relations: The data of the base relations, by relation name.
    :param indexes: The indexes available over the base relations, by relation name.
    :param dialect: The dialect the expression must conform to, ANSI by default.
    """
    plan = QueryPlanner(relations, indexes=indexes, dialect=dialect or ANSI).plan(tree)
    return pa.Table.from_batches(list(plan.batches()), schema=plan.poll_schema())
