"""Errors raised by RelPyground components.

All the errors are local and synchronous: they are raised
where the problem is detected (usually while deriving the
schema of an expression tree or while querying an index)
and it's up to the caller to decide how to recover.

The hierarchy is rooted in :class:`RelationalError` so that
callers interested in any failure of the engine can catch
a single exception type.
"""


class RelationalError(Exception):
    """Base class for all the errors raised by RelPyground."""


class SchemaMismatch(RelationalError):
    """Two schemas that were expected to be identical are not.

    Raised by set operations (union, difference, intersection)
    when the two sides don't share the same attributes and types,
    and by the evaluator when the data provided for a relation
    doesn't match the schema the expression tree was built with.
    """


class SchemaConflict(RelationalError):
    """An operation would produce ambiguous attribute names.

    For example joining two relations that both have an ``id``
    attribute without renaming one of them first.
    """


class AttributeNotFound(RelationalError, KeyError):
    """An expression references an attribute that doesn't exist."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class UnknownRelation(RelationalError, KeyError):
    """A relation referenced by an expression tree was not provided."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class UnsupportedOperation(RelationalError):
    """The requested operation is not available.

    Range queries on hash indexes, or operators that the
    target SQL dialect doesn't support.
    """


class NotFound(RelationalError, KeyError):
    """A strict index lookup didn't find the key.

    Point lookups return an empty result on a miss,
    only ``index[key]`` access raises this error.
    """

    def __str__(self) -> str:
        return Exception.__str__(self)
