import pyarrow as pa
import pytest

from relpyground.compute import PyArrowTableDataSource
from relpyground.compute.aggregate import (
    AggregateNode,
    CountAggregation,
    CountAllAggregation,
    MaxAggregation,
    MeanAggregation,
    MinAggregation,
    SumAggregation,
)

TEST_DATA = pa.record_batch(
    {
        "city": pa.array(
            ["New York", "New York", "Los Angeles", "Los Angeles", "New York"]
        ),
        "shop": pa.array(["Shop A", "Shop B", "Shop A", "Shop A2", "Shop B"]),
        "n_employees": pa.array([10, 15, 8, 12, 20]),
    }
)

NULLS_DATA = pa.record_batch(
    {
        "city": pa.array(["Rome", None, "Rome", None]),
        "n_employees": pa.array([None, 3, 5, None], type=pa.int64()),
    }
)


@pytest.mark.parametrize(
    "aggregation,by_city,by_city_shop",
    [
        (SumAggregation("n_employees"), [45, 20], [10, 35, 8, 12]),
        (MinAggregation("n_employees"), [10, 8], [10, 15, 8, 12]),
        (MaxAggregation("n_employees"), [20, 12], [10, 20, 8, 12]),
        (CountAggregation("n_employees"), [3, 2], [1, 2, 1, 1]),
        (MeanAggregation("n_employees"), [15.0, 10.0], [10.0, 17.5, 8.0, 12.0]),
    ],
)
@pytest.mark.parametrize("keys", [["city"], ["city", "shop"]])
def test_aggregations(keys, aggregation, by_city, by_city_shop):
    aggregate = AggregateNode(
        keys,
        {"result": aggregation},
        PyArrowTableDataSource(TEST_DATA),
    )
    result = next(aggregate.batches())

    assert result.column_names == keys + ["result"]
    if keys == ["city"]:
        assert result.column(0).to_pylist() == ["New York", "Los Angeles"]
        assert result.column(1).to_pylist() == by_city
    else:
        # Groups are emitted in the order they are first seen.
        assert result.column(0).to_pylist() == [
            "New York",
            "New York",
            "Los Angeles",
            "Los Angeles",
        ]
        assert result.column(1).to_pylist() == ["Shop A", "Shop B", "Shop A", "Shop A2"]
        assert result.column(2).to_pylist() == by_city_shop


@pytest.mark.parametrize("keys", [["city"], ["city", "shop"]])
def test_aggregate_node_str(keys):
    aggregate = AggregateNode(
        keys,
        {"total_employees": SumAggregation("n_employees")},
        PyArrowTableDataSource(TEST_DATA),
    )
    assert str(aggregate) == (
        "AggregateNode(keys=%r, aggregations={'total_employees': SumAggregation(n_employees)}, "
        "child=PyArrowTableDataSource(columns=['city', 'shop', 'n_employees'], rows=5))"
        % (keys,)
    )


def test_aggregate_schema_matches_batches():
    aggregate = AggregateNode(
        ["city"],
        {
            "total": SumAggregation("n_employees"),
            "mean": MeanAggregation("n_employees"),
            "shops": CountAllAggregation(),
        },
        PyArrowTableDataSource(TEST_DATA),
    )
    result = next(aggregate.batches())
    assert result.schema == aggregate.poll_schema()
    assert aggregate.poll_schema().types == [pa.string(), pa.int64(), pa.float64(), pa.int64()]


def test_null_keys_form_one_group():
    aggregate = AggregateNode(
        ["city"], {"rows": CountAllAggregation()}, PyArrowTableDataSource(NULLS_DATA)
    )
    assert next(aggregate.batches()).to_pydict() == {"city": ["Rome", None], "rows": [2, 2]}


def test_aggregations_ignore_nulls():
    aggregate = AggregateNode(
        ["city"],
        {
            "total": SumAggregation("n_employees"),
            "counted": CountAggregation("n_employees"),
            "rows": CountAllAggregation(),
        },
        PyArrowTableDataSource(NULLS_DATA),
    )
    assert next(aggregate.batches()).to_pydict() == {
        "city": ["Rome", None],
        "total": [5, 3],
        "counted": [1, 1],
        "rows": [2, 2],
    }


def test_aggregation_over_only_nulls():
    data = pa.record_batch({"n_employees": pa.array([None, None], type=pa.int64())})
    aggregate = AggregateNode(
        [],
        {"total": SumAggregation("n_employees"), "counted": CountAggregation("n_employees")},
        PyArrowTableDataSource(data),
    )
    assert next(aggregate.batches()).to_pydict() == {"total": [None], "counted": [0]}


def test_aggregate_without_keys_on_empty_input():
    empty = TEST_DATA.slice(0, 0)
    aggregate = AggregateNode(
        [],
        {"rows": CountAllAggregation(), "total": SumAggregation("n_employees")},
        PyArrowTableDataSource(empty),
    )
    assert next(aggregate.batches()).to_pydict() == {"rows": [0], "total": [None]}


def test_aggregate_with_keys_on_empty_input():
    empty = TEST_DATA.slice(0, 0)
    aggregate = AggregateNode(
        ["city"], {"rows": CountAllAggregation()}, PyArrowTableDataSource(empty)
    )
    result = next(aggregate.batches())
    assert result.num_rows == 0
    assert result.column_names == ["city", "rows"]


def test_aggregation_columns_and_rename():
    assert SumAggregation("a").columns() == {"a"}
    assert SumAggregation("a").rename_columns({"a": "b"}) == SumAggregation("b")
    assert CountAllAggregation().columns() == frozenset()
    assert CountAllAggregation() == CountAllAggregation()
    assert str(CountAllAggregation()) == "CountAllAggregation(*)"


def test_sum_of_booleans_counts_true_values():
    data = pa.record_batch({"k": ["a", "a", "b", "b"], "flag": [True, True, False, None]})
    aggregate = AggregateNode(
        ["k"], {"n": SumAggregation("flag")}, PyArrowTableDataSource(data)
    )
    assert aggregate.poll_schema().field("n").type == pa.int64()
    assert next(aggregate.batches()).to_pydict() == {"k": ["a", "b"], "n": [2, 0]}


def test_nan_keys_form_one_group():
    data = pa.record_batch({"score": [float("nan"), 1.0, float("nan")], "n": [1, 2, 3]})
    aggregate = AggregateNode(
        ["score"], {"total": SumAggregation("n")}, PyArrowTableDataSource(data)
    )
    result = next(aggregate.batches())
    assert result.num_rows == 2
    assert result.column("total").to_pylist() == [4, 2]
