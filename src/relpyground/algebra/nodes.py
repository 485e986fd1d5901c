"""Relational algebra operators.

Each operator is a node of an expression tree, the leafs
being references to base relations. Nodes are immutable, the
optimizer builds new trees instead of modifying existing ones,
and two trees built the same way compare equal.

Every node knows its output schema, derived from the
schema of its children. Deriving the schema is also
how a tree gets validated: referencing attributes
that don't exist, joining relations with clashing attribute
names or combining relations with different schemas
in a set operation are all detected by :meth:`RelationalExpression.schema`.
"""

import abc
from typing import Any, Iterator

import pyarrow as pa

from ..compute.aggregate import Aggregation
from ..compute.base import Expression
from ..exceptions import AttributeNotFound, SchemaConflict, SchemaMismatch

JOIN_KINDS = ("inner", "left", "right", "full")


def _check_attributes(names: frozenset[str] | list[str], schema: pa.Schema, context: str) -> None:
    missing = [name for name in names if schema.get_field_index(name) == -1]
    if missing:
        raise AttributeNotFound(
            f"{context} references unknown attributes {sorted(missing)}, available: {schema.names}"
        )


class RelationalExpression(abc.ABC):
    """A node of a relational algebra expression tree."""

    @property
    @abc.abstractmethod
    def children(self) -> tuple["RelationalExpression", ...]:
        """The input expressions of the node."""
        ...

    @abc.abstractmethod
    def with_children(self, *children: "RelationalExpression") -> "RelationalExpression":
        """A copy of the node, operating on different inputs."""
        ...

    @abc.abstractmethod
    def schema(self) -> pa.Schema:
        """The schema of the relation the expression produces."""
        ...

    @abc.abstractmethod
    def describe(self) -> str:
        """Description of the node alone, without its children."""
        ...

    def __str__(self) -> str:
        children = ", ".join(str(child) for child in self.children)
        description = self.describe()
        if not children:
            return description
        return f"{description[:-1]}, {children})"

    __repr__ = __str__

    def __eq__(self, other: Any) -> bool:
        return type(self) is type(other) and vars(self) == vars(other)

    __hash__ = None

    def walk(self) -> Iterator["RelationalExpression"]:
        """Iterate over all the nodes of the tree, parents before children."""
        yield self
        for child in self.children:
            yield from child.walk()


class Relation(RelationalExpression):
    """Reference to a base relation.

    The schema is part of the reference, so that trees can be
    built and validated without having the data at hand.
    The evaluator checks that the data provided
    for the relation has this same schema.
    """

    def __init__(self, name: str, schema: pa.Schema) -> None:
        """
        :param name: The name of the relation.
        :param schema: The attributes of the relation.
        """
        self.name = name
        self.relation_schema = schema

    @classmethod
    def of(cls, name: str, data: pa.Table | pa.RecordBatch) -> "Relation":
        """Reference a relation using the schema of its data."""
        return cls(name, data.schema)

    @property
    def children(self) -> tuple[RelationalExpression, ...]:
        return ()

    def with_children(self, *children: RelationalExpression) -> "Relation":
        return self

    def schema(self) -> pa.Schema:
        return self.relation_schema

    def describe(self) -> str:
        return f"Relation({self.name})"


class Selection(RelationalExpression):
    """Keep only the tuples satisfying a predicate (σ)."""

    def __init__(self, predicate: Expression, child: RelationalExpression) -> None:
        """
        :param predicate: The condition tuples must satisfy.
        :param child: The input relation.
        """
        self.predicate = predicate
        self.child = child

    @property
    def children(self) -> tuple[RelationalExpression, ...]:
        return (self.child,)

    def with_children(self, child: RelationalExpression) -> "Selection":
        return Selection(self.predicate, child)

    def schema(self) -> pa.Schema:
        schema = self.child.schema()
        _check_attributes(self.predicate.columns(), schema, "Selection")
        return schema

    def describe(self) -> str:
        return f"Selection({self.predicate})"


class Projection(RelationalExpression):
    """Keep only some attributes of the tuples (π).

    Relational algebra works on sets, and thus
    removes duplicates after projecting, but SQL keeps them
    unless ``DISTINCT`` is requested. By default the projection
    behaves like SQL, ``distinct=True`` gives the set semantic.
    """

    def __init__(
        self, attributes: list[str], child: RelationalExpression, distinct: bool = False
    ) -> None:
        """
        :param attributes: The attributes to keep, in the order they should have.
        :param child: The input relation.
        :param distinct: If duplicate tuples should be removed.
        """
        if not attributes:
            raise ValueError("A projection must keep at least one attribute")
        self.attributes = list(attributes)
        self.child = child
        self.distinct = distinct

    @property
    def children(self) -> tuple[RelationalExpression, ...]:
        return (self.child,)

    def with_children(self, child: RelationalExpression) -> "Projection":
        return Projection(self.attributes, child, distinct=self.distinct)

    def schema(self) -> pa.Schema:
        schema = self.child.schema()
        _check_attributes(self.attributes, schema, "Projection")
        if len(set(self.attributes)) != len(self.attributes):
            raise SchemaConflict(f"Projection repeats attributes: {self.attributes}")
        return pa.schema([schema.field(name) for name in self.attributes])

    def describe(self) -> str:
        distinct = ", distinct=True" if self.distinct else ""
        return f"Projection({self.attributes}{distinct})"


class Join(RelationalExpression):
    """Combine the tuples of two relations (⋈).

    The output tuples are made of the attributes of the
    left relation followed by those of the right relation,
    attribute names must be distinct across the two,
    use :class:`Rename` to disambiguate them first when they aren't.

    An inner join without a condition is the cartesian product (×).
    Outer joins also emit the tuples that found no match,
    padding the attributes of the other relation with nulls.
    """

    def __init__(
        self,
        left: RelationalExpression,
        right: RelationalExpression,
        condition: Expression | None = None,
        kind: str = "inner",
    ) -> None:
        """
        :param left: The left relation.
        :param right: The right relation.
        :param condition: The predicate pairs of tuples must satisfy.
        :param kind: One of ``inner``, ``left``, ``right``, ``full``.
        """
        if kind not in JOIN_KINDS:
            raise ValueError(f"Unsupported join kind: {kind}")
        if kind != "inner" and condition is None:
            raise ValueError(f"A {kind} outer join requires a condition")
        self.left = left
        self.right = right
        self.condition = condition
        self.kind = kind

    @property
    def is_cartesian(self) -> bool:
        """If the join is a plain cartesian product."""
        return self.kind == "inner" and self.condition is None

    @property
    def children(self) -> tuple[RelationalExpression, ...]:
        return (self.left, self.right)

    def with_children(self, left: RelationalExpression, right: RelationalExpression) -> "Join":
        return Join(left, right, self.condition, self.kind)

    def schema(self) -> pa.Schema:
        left_schema = self.left.schema()
        right_schema = self.right.schema()
        conflicts = set(left_schema.names) & set(right_schema.names)
        if conflicts:
            raise SchemaConflict(
                f"Join of relations sharing attributes {sorted(conflicts)}, rename them first"
            )
        schema = pa.schema(list(left_schema) + list(right_schema))
        if self.condition is not None:
            _check_attributes(self.condition.columns(), schema, "Join condition")
        return schema

    def describe(self) -> str:
        if self.is_cartesian:
            return "Join(cartesian)"
        return f"Join({self.kind}, on={self.condition})"


class SetOperation(RelationalExpression):
    """Base class for operators combining two relations with identical schemas."""

    def __init__(self, left: RelationalExpression, right: RelationalExpression) -> None:
        """
        :param left: The left relation.
        :param right: The right relation, with the same schema as the left one.
        """
        self.left = left
        self.right = right

    @property
    def children(self) -> tuple[RelationalExpression, ...]:
        return (self.left, self.right)

    def with_children(
        self, left: RelationalExpression, right: RelationalExpression
    ) -> "SetOperation":
        return self.__class__(left, right)

    def schema(self) -> pa.Schema:
        left_schema = self.left.schema()
        right_schema = self.right.schema()
        left_signature = [(f.name, f.type) for f in left_schema]
        right_signature = [(f.name, f.type) for f in right_schema]
        if left_signature != right_signature:
            raise SchemaMismatch(
                f"{self.__class__.__name__} requires identical schemas, "
                f"got {left_signature} and {right_signature}"
            )
        return left_schema

    def describe(self) -> str:
        return f"{self.__class__.__name__}()"


class Union(SetOperation):
    """Tuples appearing in either relation (∪).

    ``distinct=False`` keeps the duplicates, like SQL ``UNION ALL``.
    """

    def __init__(
        self, left: RelationalExpression, right: RelationalExpression, distinct: bool = True
    ) -> None:
        super().__init__(left, right)
        self.distinct = distinct

    def with_children(self, left: RelationalExpression, right: RelationalExpression) -> "Union":
        return Union(left, right, distinct=self.distinct)

    def describe(self) -> str:
        if self.distinct:
            return "Union()"
        return "Union(all=True)"


class Difference(SetOperation):
    """Tuples of the left relation not appearing in the right one (−)."""


class Intersection(SetOperation):
    """Tuples appearing in both relations (∩)."""


class Rename(RelationalExpression):
    """Rename attributes (ρ)."""

    def __init__(self, mapping: dict[str, str], child: RelationalExpression) -> None:
        """
        :param mapping: The ``{old_name: new_name}`` renames to apply.
        :param child: The input relation.
        """
        self.mapping = dict(mapping)
        self.child = child

    @classmethod
    def qualified(cls, child: RelationalExpression, prefix: str) -> "Rename":
        """Rename every attribute of the relation to ``prefix.attribute``.

        >>> import pyarrow as pa
        >>> users = Relation("users", pa.schema([("id", pa.int64()), ("name", pa.string())]))
        >>> Rename.qualified(users, "u").schema().names
        ['u.id', 'u.name']
        """
        return cls({name: f"{prefix}.{name}" for name in child.schema().names}, child)

    @property
    def children(self) -> tuple[RelationalExpression, ...]:
        return (self.child,)

    def with_children(self, child: RelationalExpression) -> "Rename":
        return Rename(self.mapping, child)

    def inverse(self) -> dict[str, str]:
        """The mapping from new names back to the original ones."""
        return {new: old for old, new in self.mapping.items()}

    def schema(self) -> pa.Schema:
        schema = self.child.schema()
        _check_attributes(list(self.mapping), schema, "Rename")
        fields = [f.with_name(self.mapping.get(f.name, f.name)) for f in schema]
        names = [f.name for f in fields]
        if len(set(names)) != len(names):
            raise SchemaConflict(f"Rename produces duplicate attributes: {names}")
        return pa.schema(fields)

    def describe(self) -> str:
        return f"Rename({self.mapping})"


class Aggregate(RelationalExpression):
    """Group tuples and compute aggregations over each group (γ).

    The output has one tuple per group, made of the
    grouping attributes followed by one attribute per aggregation.
    Without grouping attributes the whole relation is one group.
    """

    def __init__(
        self,
        group_by: list[str],
        aggregations: dict[str, Aggregation],
        child: RelationalExpression,
    ) -> None:
        """
        :param group_by: The attributes to group by.
        :param aggregations: The ``{output_name: Aggregation}`` to compute.
        :param child: The input relation.
        """
        if not group_by and not aggregations:
            raise ValueError("An aggregate requires grouping attributes or aggregations")
        self.group_by = list(group_by)
        self.aggregations = dict(aggregations)
        self.child = child

    @property
    def children(self) -> tuple[RelationalExpression, ...]:
        return (self.child,)

    def with_children(self, child: RelationalExpression) -> "Aggregate":
        return Aggregate(self.group_by, self.aggregations, child)

    def input_columns(self) -> frozenset[str]:
        """Attributes of the input relation the aggregate reads."""
        columns = set(self.group_by)
        for aggregation in self.aggregations.values():
            columns |= aggregation.columns()
        return frozenset(columns)

    def schema(self) -> pa.Schema:
        schema = self.child.schema()
        _check_attributes(sorted(self.input_columns()), schema, "Aggregate")
        fields = [schema.field(name) for name in self.group_by]
        for name, aggregation in self.aggregations.items():
            fields.append(pa.field(name, aggregation.output_type(schema)))
        names = [f.name for f in fields]
        if len(set(names)) != len(names):
            raise SchemaConflict(f"Aggregate produces duplicate attributes: {names}")
        return pa.schema(fields)

    def describe(self) -> str:
        return f"Aggregate(group_by={self.group_by}, aggregations={self.aggregations})"


def explain(tree: RelationalExpression) -> str:
    """Render a tree one node per line, children indented below their parent.

    >>> import pyarrow as pa
    >>> import pyarrow.compute as pc
    >>> from relpyground.compute import FunctionCallExpression, col, lit
    >>> instructor = Relation("Instructor", pa.schema([("Name", pa.string()), ("Dept", pa.string())]))
    >>> tree = Projection(["Name"], Selection(FunctionCallExpression(pc.equal, col("Dept"), lit("Physics")), instructor))
    >>> print(explain(tree))
    Projection(['Name'])
      Selection(pyarrow.compute.equal(ColumnRef(Dept),Literal(<pyarrow.StringScalar: 'Physics'>)))
        Relation(Instructor)
    """
    lines = []

    def _render(node: RelationalExpression, depth: int) -> None:
        lines.append("  " * depth + node.describe())
        for child in node.children:
            _render(child, depth + 1)

    _render(tree, 0)
    return "\n".join(lines)
