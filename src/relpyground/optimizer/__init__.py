"""Rule based optimizer for relational algebra expressions.

The optimizer rewrites a tree into an equivalent one,
producing the same tuples for any content of the base relations,
that is expected to be cheaper to evaluate.
See :mod:`relpyground.optimizer.rules` for the rewrites performed.
"""

from .optimizer import DEFAULT_RULES, Optimizer, optimize
from .rules import (
    CartesianFusion,
    ConjunctSplitting,
    ProjectionPushdown,
    RewriteRule,
    SelectionPushdown,
    SetOperationPushdown,
)

__all__ = (
    "optimize",
    "Optimizer",
    "DEFAULT_RULES",
    "RewriteRule",
    "SelectionPushdown",
    "ProjectionPushdown",
    "CartesianFusion",
    "ConjunctSplitting",
    "SetOperationPushdown",
)
