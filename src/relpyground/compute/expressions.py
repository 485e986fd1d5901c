"""Expressions executed by compute engine nodes.

Plan nodes are configured with expressions describing
what to compute on each batch they process. Selections
in particular rely on predicates: expressions that
return ``true``, ``false`` or ``null`` (unknown) for each row.

Predicates follow SQL three-valued logic, a comparison
involving a null value is neither true nor false but unknown.
The conjunctions built by :func:`conjunction` rely on the
Kleene variants of the boolean functions, for which
``false AND null`` is ``false`` and ``true OR null`` is ``true``.

This module also provides the helpers the optimizer
uses to take predicates apart and put them back together.
"""

from typing import Any, Callable

import pyarrow as pa
import pyarrow.compute as pc

from .base import ColumnRef, Expression

CONJUNCTION_FUNCTIONS = (pc.and_kleene, pc.and_)


def apply_expression_if_needed(batch: pa.RecordBatch, o: Expression | Any) -> Any:
    """Resolve a function argument against a batch.

    Expressions are evaluated, anything else
    (literal values or already computed arrays)
    is passed through unchanged.
    """
    if isinstance(o, Expression):
        o = o.apply(batch)
    return o


class FunctionCallExpression(Expression):
    """Call a compute function on its arguments.

    The arguments are evaluated first, so they can be
    nested expressions, and the function is then invoked on the results.

    ``Salary > 90000`` for example is expressed as::

        FunctionCallExpression(pyarrow.compute.greater, ColumnRef("Salary"), Literal(90000))

    Keyword arguments are forwarded to the function as options,
    for example ``ignore_case`` for :func:`pyarrow.compute.match_like`.
    """

    def __init__(self, func: Callable, *args: Expression | Any, **options: Any) -> None:
        """
        :param func: The function accepting the arguments.
        :param *args: The arguments for the function.
        :param **options: Options forwarded to the function as keyword arguments.
        """
        self.func = func
        self.args = args
        self.options = options

    def __str__(self) -> str:
        func_qualname = f"{self.func.__module__}.{self.func.__qualname__}"
        args = [str(arg) for arg in self.args]
        args.extend(f"{k}={v!r}" for k, v in self.options.items())
        return f"{func_qualname}({','.join(args)})"

    def __eq__(self, other: Any) -> bool:
        return (
            type(self) is type(other)
            and self.func is other.func
            and self.args == other.args
            and self.options == other.options
        )

    __hash__ = None

    def apply(self, batch: pa.RecordBatch) -> pa.Array:
        """Evaluate the arguments on the batch, then call the function on them."""
        args = tuple(apply_expression_if_needed(batch, arg) for arg in self.args)
        return self.func(*args, **self.options)

    def columns(self) -> frozenset[str]:
        found: set[str] = set()
        for arg in self.args:
            if isinstance(arg, Expression):
                found |= arg.columns()
        return frozenset(found)

    def rename_columns(self, mapping: dict[str, str]) -> "FunctionCallExpression":
        args = tuple(
            arg.rename_columns(mapping) if isinstance(arg, Expression) else arg
            for arg in self.args
        )
        return FunctionCallExpression(self.func, *args, **self.options)


def conjunction(*predicates: Expression) -> Expression:
    """Combine predicates with a Kleene ``AND``.

    >>> from relpyground.compute import col, lit
    >>> str(conjunction(
    ...     FunctionCallExpression(pc.equal, col("a"), lit(1)),
    ...     FunctionCallExpression(pc.equal, col("b"), lit(2)),
    ... ))
    'pyarrow.compute.and_kleene(pyarrow.compute.equal(ColumnRef(a),Literal(<pyarrow.Int64Scalar: 1>)),pyarrow.compute.equal(ColumnRef(b),Literal(<pyarrow.Int64Scalar: 2>)))'
    """
    if not predicates:
        raise ValueError("At least one predicate is required")
    result = predicates[-1]
    for predicate in reversed(predicates[:-1]):
        result = FunctionCallExpression(pc.and_kleene, predicate, result)
    return result


def is_conjunction(expression: Expression) -> bool:
    """If the expression is an ``AND`` of two predicates."""
    return (
        isinstance(expression, FunctionCallExpression)
        and expression.func in CONJUNCTION_FUNCTIONS
        and len(expression.args) == 2
        and all(isinstance(arg, Expression) for arg in expression.args)
    )


def split_conjunction(expression: Expression) -> list[Expression]:
    """Flatten nested ``AND`` predicates into the list of their conjuncts.

    A row satisfies ``p1 AND p2`` only when it satisfies both,
    so the conjuncts can be applied separately.
    """
    if is_conjunction(expression):
        left, right = expression.args
        return split_conjunction(left) + split_conjunction(right)
    return [expression]


def column_equality(expression: Expression) -> tuple[str, str] | None:
    """Names of the two columns compared by ``a = b``.

    Returns ``None`` when the expression is not an
    equality between two column references.
    """
    if (
        isinstance(expression, FunctionCallExpression)
        and expression.func is pc.equal
        and len(expression.args) == 2
        and all(isinstance(arg, ColumnRef) for arg in expression.args)
    ):
        left, right = expression.args
        return left.name, right.name
    return None
