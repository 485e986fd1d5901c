"""Configuration of the engine behaviors.

SQL engines don't all support the same operators and
don't all agree on the details of the ones they share.
For example MySQL has no ``FULL OUTER JOIN`` and historically no
``INTERSECT``/``EXCEPT``, while the case sensitivity of ``LIKE``
depends on the engine: PostgreSQL is case sensitive,
MySQL and SQLite are not.

Those differences are modelled as explicit :class:`Dialect`
objects enumerating what each target engine supports.
Passing a dialect to :func:`relpyground.evaluator.evaluate`
rejects expression trees the target engine couldn't run.

>>> import pyarrow as pa
>>> from relpyground.algebra import Intersection, Relation
>>> names = Relation("names", pa.schema([("name", pa.string())]))
>>> MYSQL.check(Intersection(names, names))
Traceback (most recent call last):
  ...
relpyground.exceptions.UnsupportedOperation: The mysql dialect doesn't support intersection
"""

import enum
from dataclasses import dataclass

import pyarrow.compute as pc

from .algebra import (
    Aggregate,
    Difference,
    Intersection,
    Join,
    Projection,
    RelationalExpression,
    Rename,
    Selection,
    Union,
)
from .compute.base import Expression
from .compute.expressions import FunctionCallExpression
from .exceptions import UnsupportedOperation

DEFAULT_MAX_ITERATIONS = 32
"""How many passes the optimizer performs at most before giving up on reaching a fixed point."""


class Operator(enum.Enum):
    """The relational capabilities a dialect can support."""

    SELECTION = "selection"
    PROJECTION = "projection"
    DISTINCT = "distinct"
    CROSS_JOIN = "cross join"
    INNER_JOIN = "inner join"
    LEFT_OUTER_JOIN = "left outer join"
    RIGHT_OUTER_JOIN = "right outer join"
    FULL_OUTER_JOIN = "full outer join"
    UNION = "union"
    UNION_ALL = "union all"
    DIFFERENCE = "difference"
    INTERSECTION = "intersection"
    RENAME = "rename"
    AGGREGATE = "aggregate"


JOIN_OPERATORS = {
    "inner": Operator.INNER_JOIN,
    "left": Operator.LEFT_OUTER_JOIN,
    "right": Operator.RIGHT_OUTER_JOIN,
    "full": Operator.FULL_OUTER_JOIN,
}


def operators_used(tree: RelationalExpression) -> set[Operator]:
    """The operators an expression tree relies on."""
    used = set()
    for node in tree.walk():
        if isinstance(node, Selection):
            used.add(Operator.SELECTION)
        elif isinstance(node, Projection):
            used.add(Operator.PROJECTION)
            if node.distinct:
                used.add(Operator.DISTINCT)
        elif isinstance(node, Join):
            used.add(Operator.CROSS_JOIN if node.is_cartesian else JOIN_OPERATORS[node.kind])
        elif isinstance(node, Union):
            used.add(Operator.UNION if node.distinct else Operator.UNION_ALL)
        elif isinstance(node, Difference):
            used.add(Operator.DIFFERENCE)
        elif isinstance(node, Intersection):
            used.add(Operator.INTERSECTION)
        elif isinstance(node, Rename):
            used.add(Operator.RENAME)
        elif isinstance(node, Aggregate):
            used.add(Operator.AGGREGATE)
    return used


@dataclass(frozen=True)
class Dialect:
    """The operators supported by a target SQL engine and how it behaves."""

    name: str
    operators: frozenset[Operator]
    case_sensitive_like: bool = True

    def supports(self, operator: Operator) -> bool:
        return operator in self.operators

    def check(self, tree: RelationalExpression) -> None:
        """Raise :class:`UnsupportedOperation` if the tree uses operators outside the dialect."""
        for operator in sorted(operators_used(tree), key=lambda o: o.value):
            if not self.supports(operator):
                raise UnsupportedOperation(
                    f"The {self.name} dialect doesn't support {operator.value}"
                )

    def like(self, column: Expression, pattern: str) -> FunctionCallExpression:
        """A ``column LIKE pattern`` predicate, matching case as the dialect does."""
        return FunctionCallExpression(
            pc.match_like, column, pattern=pattern, ignore_case=not self.case_sensitive_like
        )


ALL_OPERATORS = frozenset(Operator)

ANSI = Dialect("ansi", ALL_OPERATORS)
POSTGRESQL = Dialect("postgresql", ALL_OPERATORS)
MYSQL = Dialect(
    "mysql",
    ALL_OPERATORS
    - {Operator.FULL_OUTER_JOIN, Operator.INTERSECTION, Operator.DIFFERENCE},
    case_sensitive_like=False,
)
SQLITE = Dialect(
    "sqlite",
    ALL_OPERATORS - {Operator.RIGHT_OUTER_JOIN, Operator.FULL_OUTER_JOIN},
    case_sensitive_like=False,
)

DIALECTS = {dialect.name: dialect for dialect in (ANSI, POSTGRESQL, MYSQL, SQLITE)}
