"""Relational algebra expressions.

Queries are expressed as trees of relational algebra operators,
each operator consuming one or two relations and producing a new one:

* :class:`Selection` (σ) filters the tuples by a predicate.
* :class:`Projection` (π) keeps some of the attributes.
* :class:`Join` (⋈) combines the tuples of two relations.
* :class:`Union` (∪), :class:`Difference` (−) and :class:`Intersection` (∩)
  combine relations with the same schema as sets.
* :class:`Rename` (ρ) renames attributes.
* :class:`Aggregate` (γ) groups tuples and computes aggregations.
* :class:`Relation` references a base relation and is the leaf of every tree.

Predicates are the same expressions used by the compute engine,
see :mod:`relpyground.compute.expressions`.

For example the SQL query::

    SELECT Name FROM Instructor WHERE Dept = 'Physics'

corresponds to the tree:

>>> import pyarrow as pa
>>> import pyarrow.compute as pc
>>> from relpyground.algebra import Projection, Relation, Selection
>>> from relpyground.compute import FunctionCallExpression, col, lit
>>> instructor = Relation("Instructor", pa.schema([
...     ("ID", pa.int64()), ("Name", pa.string()), ("Dept", pa.string()), ("Salary", pa.int64())
... ]))
>>> query = Projection(["Name"], Selection(
...     FunctionCallExpression(pc.equal, col("Dept"), lit("Physics")), instructor
... ))
>>> query.schema().names
['Name']

Trees are rewritten into equivalent but cheaper ones by
:func:`relpyground.optimizer.optimize` and executed by
:func:`relpyground.evaluator.evaluate`.
"""

from .nodes import (
    JOIN_KINDS,
    Aggregate,
    Difference,
    Intersection,
    Join,
    Projection,
    Relation,
    RelationalExpression,
    Rename,
    Selection,
    SetOperation,
    Union,
    explain,
)

__all__ = (
    "JOIN_KINDS",
    "RelationalExpression",
    "Relation",
    "Selection",
    "Projection",
    "Join",
    "SetOperation",
    "Union",
    "Difference",
    "Intersection",
    "Rename",
    "Aggregate",
    "explain",
)
