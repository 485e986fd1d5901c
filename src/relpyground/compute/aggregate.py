"""Query plan nodes that compute aggregations.

The aggregate node implements the γ operator of the algebra
(``GROUP BY`` in SQL): rows sharing the same values for the
grouping columns are collected in a group, and each group
is reduced to a single output row holding the grouping values
followed by one value for each requested aggregation.

Given the salaries of some instructors::

    Dept, Salary
    Physics, 100
    Physics, 90
    Math, 80

grouping by ``Dept`` and summing ``Salary`` gives::

    Dept, total
    Physics, 190
    Math, 80

Aggregations follow SQL rules regarding missing values:
null inputs are ignored by every aggregation,
with the exception of :class:`CountAllAggregation` (``COUNT(*)``)
that counts rows regardless of their content.
An aggregation over no values at all is null, apart from counts which are 0.
"""

import abc
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

from .base import QueryPlanNode
from .rows import row_tuples, take_rows

__all__ = (
    "AggregateNode",
    "Aggregation",
    "SumAggregation",
    "MinAggregation",
    "MaxAggregation",
    "MeanAggregation",
    "CountAggregation",
    "CountAllAggregation",
)


class AggregateNode(QueryPlanNode):
    """Group data and compute aggregations.

    >>> import pyarrow as pa
    >>> from relpyground.compute import SumAggregation, PyArrowTableDataSource
    >>> data = pa.record_batch({
    ...     "Dept": ["Physics", "Physics", "Math", "Music", "Math"],
    ...     "Salary": [95000, 87000, 65000, 40000, 70000],
    ... })
    >>> aggregate = AggregateNode(
    ...     ["Dept"], {"payroll": SumAggregation("Salary")}, PyArrowTableDataSource(data)
    ... )
    >>> next(aggregate.batches()).to_pydict()
    {'Dept': ['Physics', 'Math', 'Music'], 'payroll': [182000, 135000, 40000]}
    """

    def __init__(
        self,
        keys: list[str],
        aggregations: dict[str, "Aggregation"],
        child: QueryPlanNode,
    ) -> None:
        """
        :param keys: The columns to group by, ``[]`` aggregates all rows together.
        :param aggregations: The aggregations to compute in the form of {"new_col_name": Aggregation}.
        :param child: The child node that will provide the data to aggregate.
        """
        self.keys = keys
        self.aggregations = aggregations
        self.child = child

    def __str__(self) -> str:
        return f"AggregateNode(keys={self.keys}, aggregations={self.aggregations}, child={self.child})"

    def poll_schema(self) -> pa.Schema:
        child_schema = self.child.poll_schema()
        fields = [child_schema.field(key) for key in self.keys]
        for name, aggregation in self.aggregations.items():
            fields.append(pa.field(name, aggregation.output_type(child_schema)))
        return pa.schema(fields)

    def batches(self) -> QueryPlanNode.RecordBatchesGenerator:
        """Group the rows and compute the aggregations for each group.

        The rows are grouped with an hash table from the
        values of the key columns to the positions of the rows
        having those values. Groups are emitted in the order
        in which they were first seen in the data and
        rows with a null key end up in the same group.

        Without any key all the rows constitute one single group,
        so exactly one row is emitted even when there is no data.
        """
        batch = self.child.materialize()
        groups: dict[tuple, list[int]] = {}
        if self.keys:
            key_rows = row_tuples(batch.select(self.keys))
            for row_index, keyvalue in enumerate(key_rows):
                groups.setdefault(keyvalue, []).append(row_index)
        else:
            groups[()] = list(range(batch.num_rows))

        # Prepare one column for each key and aggregation
        #   {"Dept": ["Physics", "Math"], "payroll": [182000, 135000]}
        result_data: dict[str, list[Any]] = {
            **{k: [] for k in self.keys},
            **{k: [] for k in self.aggregations.keys()},
        }
        for keyvalue, row_indices in groups.items():
            for key, value in zip(self.keys, keyvalue):
                result_data[key].append(value)
            group = take_rows(batch, row_indices)
            for name, aggregation in self.aggregations.items():
                result_data[name].append(aggregation.compute(group))

        schema = self.poll_schema()
        columns = [
            pa.array(result_data[field.name], type=field.type) for field in schema
        ]
        yield pa.RecordBatch.from_arrays(columns, schema=schema)


class Aggregation(abc.ABC):
    """Base class for aggregations.

    Every aggregation is expected to implement
    a method to compute its result over the rows of a group,
    and to know the type of the values it produces so that
    the schema of an aggregation is known before running it.
    """

    def __init__(self, column: str) -> None:
        self.column = column

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.column})"

    __repr__ = __str__

    def __eq__(self, other: Any) -> bool:
        return type(self) is type(other) and vars(self) == vars(other)

    __hash__ = None

    def columns(self) -> frozenset[str]:
        """The columns the aggregation reads."""
        return frozenset((self.column,))

    def rename_columns(self, mapping: dict[str, str]) -> "Aggregation":
        return self.__class__(mapping.get(self.column, self.column))

    @abc.abstractmethod
    def compute(self, batch: pa.RecordBatch) -> Any:
        """Compute the aggregation over the rows of a group."""
        ...

    @abc.abstractmethod
    def output_type(self, schema: pa.Schema) -> pa.DataType:
        """Type of the aggregation result given the schema of the data."""
        ...


class SimpleAggregation(Aggregation):
    """Provide a base implementation for simple aggregations like min,max,sum.

    Simple aggregations are those computed by applying
    a single compute function to the column being aggregated.
    """

    @abc.abstractmethod
    def _aggregate(self, data: pa.Array) -> pa.Scalar: ...

    def compute(self, batch: pa.RecordBatch) -> Any:
        return self._aggregate(batch.column(self.column)).as_py()

    def output_type(self, schema: pa.Schema) -> pa.DataType:
        return schema.field(self.column).type


class SumAggregation(SimpleAggregation):
    """Compute the sum of an aggregated column."""

    def _aggregate(self, data: pa.Array) -> pa.Scalar:
        return pc.sum(data)

    def output_type(self, schema: pa.Schema) -> pa.DataType:
        input_type = schema.field(self.column).type
        if pa.types.is_boolean(input_type):
            # Summing booleans counts the true values.
            return pa.int64()
        elif pa.types.is_signed_integer(input_type):
            return pa.int64()
        elif pa.types.is_unsigned_integer(input_type):
            return pa.uint64()
        elif pa.types.is_floating(input_type):
            return pa.float64()
        return input_type


class MinAggregation(SimpleAggregation):
    """Compute the min of an aggregated column."""

    def _aggregate(self, data: pa.Array) -> pa.Scalar:
        return pc.min(data)


class MaxAggregation(SimpleAggregation):
    """Compute the max of an aggregated column."""

    def _aggregate(self, data: pa.Array) -> pa.Scalar:
        return pc.max(data)


class MeanAggregation(SimpleAggregation):
    """Compute the mean of an aggregated column."""

    def _aggregate(self, data: pa.Array) -> pa.Scalar:
        return pc.mean(data)

    def output_type(self, schema: pa.Schema) -> pa.DataType:
        input_type = schema.field(self.column).type
        if pa.types.is_decimal(input_type):
            return input_type
        return pa.float64()


class CountAggregation(Aggregation):
    """Count the non-null values of an aggregated column (``COUNT(column)``)."""

    def compute(self, batch: pa.RecordBatch) -> Any:
        return pc.count(batch.column(self.column), mode="only_valid").as_py()

    def output_type(self, schema: pa.Schema) -> pa.DataType:
        return pa.int64()


class CountAllAggregation(Aggregation):
    """Count the rows of each group (``COUNT(*)``), nulls included."""

    def __init__(self) -> None:
        self.column = None

    def __str__(self) -> str:
        return "CountAllAggregation(*)"

    __repr__ = __str__

    def columns(self) -> frozenset[str]:
        return frozenset()

    def rename_columns(self, mapping: dict[str, str]) -> "CountAllAggregation":
        return self

    def compute(self, batch: pa.RecordBatch) -> Any:
        return batch.num_rows

    def output_type(self, schema: pa.Schema) -> pa.DataType:
        return pa.int64()
