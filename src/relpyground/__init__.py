"""RelPyground

A relational query engine built from scratch for learning and teaching purposes.

Queries are expressed as relational algebra trees, rewritten into
cheaper equivalent trees by a rule based optimizer and evaluated
over in-memory Apache Arrow data by a compute engine made of
query plan nodes.

The platform is constituted by multiple components, each isolated within its own
package and each self documented in literate programming style.

The primary components are:

* The Algebra, the relational operators queries are made of.
* The Optimizer, rewriting algebra trees with heuristic rules.
* The Compute Engine, in charge of executing query plans on the data.
* The Evaluator, translating algebra trees into compute engine query plans.
* The Indexes, B+ trees and hash indexes to locate records by key.

For the user guide and code documentation of each component, refer to the
component itself.
"""

from . import algebra, compute, index, optimizer
from .evaluator import QueryPlanner, evaluate
from .optimizer import optimize

__all__ = ("algebra", "compute", "index", "optimizer", "QueryPlanner", "evaluate", "optimize")
