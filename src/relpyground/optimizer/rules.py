"""Heuristic rewrite rules.

Each rule recognizes a pattern in an expression tree
and replaces it with an equivalent one that is expected to be
cheaper to evaluate. The rules don't estimate costs, they rely
on well known heuristics, most of them being variations of
"reduce the size of intermediate results as early as possible":

* :class:`SelectionPushdown` moves filters below joins,
  so that fewer tuples have to be joined.
* :class:`ProjectionPushdown` drops the attributes nobody
  needs before the joins, so that narrower tuples have to be joined.
* :class:`CartesianFusion` turns a cartesian product followed by
  an equality filter into a join on that equality, which
  can be executed as a hash join instead of a nested loop.
* :class:`ConjunctSplitting` splits ``p1 AND p2`` filters in two
  separate filters, that can then be pushed down independently.
* :class:`SetOperationPushdown` moves filters below unions,
  differences and intersections.
"""

import abc
import logging

from ..algebra import (
    Aggregate,
    Join,
    Projection,
    Relation,
    RelationalExpression,
    Rename,
    Selection,
    SetOperation,
)
from ..compute.base import Expression
from ..compute.expressions import column_equality, is_conjunction, split_conjunction

logger = logging.getLogger(__name__)


def selection_chain(
    node: RelationalExpression,
) -> tuple[list[Expression], RelationalExpression]:
    """Collect the predicates of consecutive selections.

    Returns the predicates, outermost first,
    and the first node below them that is not a selection.
    """
    predicates = []
    while isinstance(node, Selection):
        predicates.append(node.predicate)
        node = node.child
    return predicates, node


def stack_selections(
    predicates: list[Expression], child: RelationalExpression
) -> RelationalExpression:
    """Wrap the child in one selection per predicate, the first predicate outermost."""
    for predicate in reversed(predicates):
        child = Selection(predicate, child)
    return child


def replace_children(
    node: RelationalExpression, children: list[RelationalExpression]
) -> RelationalExpression:
    """Rebuild the node only if any of its children changed."""
    if all(new is old for new, old in zip(children, node.children)):
        return node
    return node.with_children(*children)


class RewriteRule(abc.ABC):
    """A rule rewriting expression trees.

    Most rules are local: they look at one node (and
    maybe the nodes right below it) and replace it.
    Those only need to implement :meth:`apply`, the rule will
    be tried on every node of the tree from the root down.
    """

    def __str__(self) -> str:
        return self.__class__.__name__

    def rewrite(self, tree: RelationalExpression) -> RelationalExpression:
        """Apply the rule to the whole tree, return the rewritten tree."""
        rewritten = self.apply(tree)
        if rewritten is not None:
            logger.debug("%s rewrote %s", self, tree.describe())
            tree = rewritten
        return replace_children(tree, [self.rewrite(child) for child in tree.children])

    @abc.abstractmethod
    def apply(self, node: RelationalExpression) -> RelationalExpression | None:
        """Rewrite the node, or return ``None`` when the rule doesn't match it."""
        ...


class SelectionPushdown(RewriteRule):
    """Move selections closer to the relations they filter.

    ``σp(R ⋈ S)`` becomes ``σp(R) ⋈ S`` when ``p`` only references
    attributes of ``R`` (and symmetrically for ``S``).
    Predicates referencing both sides can't move and stay above the join.
    For outer joins only the predicates on the preserved side move,
    filtering the side padded with nulls before the join would
    make the join emit tuples the filter discarded.

    Selections also move below projections and renames, which don't
    change which tuples satisfy the predicate, and below aggregates
    when the predicate only involves the grouping attributes,
    as it then discards whole groups.

    A stack of consecutive selections is handled as a whole, so that a
    predicate that can't move doesn't block the ones below it.
    """

    def apply(self, node: RelationalExpression) -> RelationalExpression | None:
        if not isinstance(node, Selection):
            return None

        predicates, below = selection_chain(node)
        if isinstance(below, Join):
            return self._push_into_join(predicates, below)
        elif isinstance(below, Projection):
            return below.with_children(stack_selections(predicates, below.child))
        elif isinstance(below, Rename):
            inverse = below.inverse()
            renamed = [predicate.rename_columns(inverse) for predicate in predicates]
            return below.with_children(stack_selections(renamed, below.child))
        elif isinstance(below, Aggregate) and below.group_by:
            keys = set(below.group_by)
            movable = [p for p in predicates if p.columns() <= keys]
            if not movable:
                return None
            remaining = [p for p in predicates if not p.columns() <= keys]
            return stack_selections(
                remaining, below.with_children(stack_selections(movable, below.child))
            )
        return None

    def _push_into_join(
        self, predicates: list[Expression], join: Join
    ) -> RelationalExpression | None:
        left_names = set(join.left.schema().names)
        right_names = set(join.right.schema().names)
        push_left = join.kind in ("inner", "left")
        push_right = join.kind in ("inner", "right")

        left_predicates, right_predicates, remaining = [], [], []
        for predicate in predicates:
            columns = predicate.columns()
            if push_left and columns <= left_names:
                left_predicates.append(predicate)
            elif push_right and columns <= right_names:
                right_predicates.append(predicate)
            else:
                remaining.append(predicate)

        if not left_predicates and not right_predicates:
            return None
        return stack_selections(
            remaining,
            join.with_children(
                stack_selections(left_predicates, join.left),
                stack_selections(right_predicates, join.right),
            ),
        )


class ProjectionPushdown(RewriteRule):
    """Project away the attributes that are not needed before joins.

    Starting from the root, the rule tracks which attributes
    are required by the ancestors of each node (attribute liveness):
    a projection requires only its attributes, a selection additionally
    requires those referenced by its predicate, and so on.
    When a join input produces attributes that are not
    required, a projection keeping only the required ones
    is inserted between the join and that input.

    The inserted projections never remove duplicates, the
    number of joined tuples must stay the same.
    Liveness doesn't cross set operations, as projecting
    the inputs of a difference is not the same as projecting its result.
    """

    def rewrite(self, tree: RelationalExpression) -> RelationalExpression:
        return self._prune(tree, None)

    def apply(self, node: RelationalExpression) -> RelationalExpression | None:
        return None

    def _prune(
        self, node: RelationalExpression, required: frozenset[str] | None
    ) -> RelationalExpression:
        """Rewrite the subtree knowing which of its attributes are required.

        ``None`` means all of them are.
        """
        if isinstance(node, Relation):
            return node
        elif isinstance(node, Projection):
            children = [self._prune(node.child, frozenset(node.attributes))]
        elif isinstance(node, Selection):
            if required is not None:
                required = required | node.predicate.columns()
            children = [self._prune(node.child, required)]
        elif isinstance(node, Join):
            if required is None:
                children = [self._prune(node.left, None), self._prune(node.right, None)]
            else:
                needed = required
                if node.condition is not None:
                    needed = needed | node.condition.columns()
                children = [self._restrict(node.left, needed), self._restrict(node.right, needed)]
        elif isinstance(node, Rename):
            if required is not None:
                inverse = node.inverse()
                # The rename reads its source attributes.
                required = frozenset(inverse.get(name, name) for name in required) | frozenset(
                    node.mapping
                )
            children = [self._prune(node.child, required)]
        elif isinstance(node, Aggregate):
            children = [self._prune(node.child, node.input_columns())]
        else:
            children = [self._prune(child, None) for child in node.children]
        return replace_children(node, children)

    def _restrict(
        self, node: RelationalExpression, required: frozenset[str]
    ) -> RelationalExpression:
        """Make a join input produce only the required attributes."""
        names = node.schema().names
        attributes = [name for name in names if name in required]
        if not attributes:
            # Nothing is read from this side, but its tuples still
            # determine how many tuples the join emits.
            return self._prune(node, None)
        if len(attributes) == len(names):
            return self._prune(node, required)

        logger.debug("Projecting %s before joining %s", attributes, node.describe())
        if isinstance(node, Projection) and not node.distinct:
            return self._prune(Projection(attributes, node.child), required)
        return Projection(attributes, self._prune(node, frozenset(attributes)))


class CartesianFusion(RewriteRule):
    """Turn ``σa=b(R × S)`` into ``R ⋈a=b S``.

    Applies when ``a`` is an attribute of one side and ``b`` of the other.
    Only the first such equality becomes the join condition,
    the other predicates stay as selections above the join.
    """

    def apply(self, node: RelationalExpression) -> RelationalExpression | None:
        if not isinstance(node, Selection):
            return None

        predicates, below = selection_chain(node)
        if not isinstance(below, Join) or not below.is_cartesian:
            return None

        left_names = set(below.left.schema().names)
        right_names = set(below.right.schema().names)
        for idx, predicate in enumerate(predicates):
            columns = column_equality(predicate)
            if columns is None:
                continue
            a, b = columns
            if (a in left_names and b in right_names) or (a in right_names and b in left_names):
                remaining = predicates[:idx] + predicates[idx + 1 :]
                return stack_selections(
                    remaining, Join(below.left, below.right, predicate, "inner")
                )
        return None


class ConjunctSplitting(RewriteRule):
    """Turn ``σp1∧p2(R)`` into ``σp1(σp2(R))``."""

    def apply(self, node: RelationalExpression) -> RelationalExpression | None:
        if not isinstance(node, Selection) or not is_conjunction(node.predicate):
            return None
        return stack_selections(split_conjunction(node.predicate), node.child)


class SetOperationPushdown(RewriteRule):
    """Turn ``σp(R ∪ S)`` into ``σp(R) ∪ σp(S)``.

    The same holds for difference and intersection,
    as both sides share the same attributes the predicate
    is valid on either of them.
    """

    def apply(self, node: RelationalExpression) -> RelationalExpression | None:
        if not isinstance(node, Selection) or not isinstance(node.child, SetOperation):
            return None
        setop = node.child
        return setop.with_children(
            Selection(node.predicate, setop.left), Selection(node.predicate, setop.right)
        )
