"""Drive the rewrite rules until the tree stops changing."""

import logging

from ..algebra import RelationalExpression
from ..config import DEFAULT_MAX_ITERATIONS
from .rules import (
    CartesianFusion,
    ConjunctSplitting,
    ProjectionPushdown,
    RewriteRule,
    SelectionPushdown,
    SetOperationPushdown,
)

logger = logging.getLogger(__name__)

DEFAULT_RULES = (
    SelectionPushdown(),
    ProjectionPushdown(),
    CartesianFusion(),
    ConjunctSplitting(),
    SetOperationPushdown(),
)
"""The rules applied by default, in the order they are tried within a pass."""


class Optimizer:
    """Rewrite expression trees into equivalent cheaper ones.

    Each pass applies every rule to the whole tree, in order.
    Passes are repeated until one of them leaves the
    tree unchanged (a fixed point) or ``max_iterations`` passes
    were performed, in which case the last tree is returned as is.
    The rules only produce equivalent trees, so stopping
    early gives a less optimized but still correct tree.
    """

    def __init__(
        self,
        rules: tuple[RewriteRule, ...] | list[RewriteRule] = DEFAULT_RULES,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        """
        :param rules: The rewrite rules to apply, in priority order.
        :param max_iterations: How many passes to perform at most.
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.rules = tuple(rules)
        self.max_iterations = max_iterations

    def optimize(self, tree: RelationalExpression) -> RelationalExpression:
        # Invalid trees are rejected before any rewrite.
        tree.schema()

        for iteration in range(1, self.max_iterations + 1):
            changed = False
            for rule in self.rules:
                rewritten = rule.rewrite(tree)
                if rewritten != tree:
                    logger.debug("Pass %d: applied %s", iteration, rule)
                    tree = rewritten
                    changed = True
            if not changed:
                logger.debug("Fixed point reached after %d passes", iteration)
                return tree

        logger.warning(
            "Optimizer stopped after %d passes without reaching a fixed point",
            self.max_iterations,
        )
        return tree


def optimize(
    tree: RelationalExpression, max_iterations: int = DEFAULT_MAX_ITERATIONS
) -> RelationalExpression:
    """Rewrite the tree with the default rules.

    >>> import pyarrow as pa
    >>> import pyarrow.compute as pc
    >>> from relpyground.algebra import Join, Relation, Selection, explain
    >>> from relpyground.compute import FunctionCallExpression, col, lit
    >>> instructor = Relation("Instructor", pa.schema([("ID", pa.int64()), ("Dept", pa.string())]))
    >>> teaches = Relation("Teaches", pa.schema([("TID", pa.int64()), ("Course", pa.string())]))
    >>> tree = Selection(
    ...     FunctionCallExpression(pc.equal, col("Dept"), lit("Physics")),
    ...     Join(instructor, teaches, FunctionCallExpression(pc.equal, col("ID"), col("TID"))),
    ... )
    >>> print(explain(optimize(tree)))
    Join(inner, on=pyarrow.compute.equal(ColumnRef(ID),ColumnRef(TID)))
      Selection(pyarrow.compute.equal(ColumnRef(Dept),Literal(<pyarrow.StringScalar: 'Physics'>)))
        Relation(Instructor)
      Relation(Teaches)
    """
    return Optimizer(max_iterations=max_iterations).optimize(tree)
