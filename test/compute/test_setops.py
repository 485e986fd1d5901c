import pyarrow as pa
import pytest

from relpyground.compute import PyArrowTableDataSource
from relpyground.compute.setops import DifferenceNode, IntersectNode, UnionNode

LEFT_DATA = pa.record_batch(
    {
        "city": pa.array(["Rome", "Paris", "Rome", None, "Oslo"]),
        "country": pa.array(["IT", "FR", "IT", "XX", None]),
    }
)
RIGHT_DATA = pa.record_batch(
    {
        "city": pa.array(["Paris", None, "Berlin"]),
        "country": pa.array(["FR", "XX", "DE"]),
    }
)


@pytest.fixture
def left():
    return PyArrowTableDataSource(LEFT_DATA)


@pytest.fixture
def right():
    return PyArrowTableDataSource(RIGHT_DATA)


def test_union_distinct(left, right):
    result = next(UnionNode(left, right).batches())
    assert result.to_pydict() == {
        "city": ["Rome", "Paris", None, "Oslo", "Berlin"],
        "country": ["IT", "FR", "XX", None, "DE"],
    }


def test_union_all(left, right):
    batches = list(UnionNode(left, right, distinct=False).batches())
    result = pa.Table.from_batches(batches)
    assert result.num_rows == LEFT_DATA.num_rows + RIGHT_DATA.num_rows
    assert result.column("city").to_pylist() == [
        "Rome", "Paris", "Rome", None, "Oslo", "Paris", None, "Berlin"
    ]


def test_union_all_uses_left_names(left):
    right = PyArrowTableDataSource(
        pa.record_batch({"town": pa.array(["Kyiv"]), "nation": pa.array(["UA"])})
    )
    batches = list(UnionNode(left, right, distinct=False).batches())
    assert all(batch.schema.names == ["city", "country"] for batch in batches)


def test_difference(left, right):
    result = next(DifferenceNode(left, right).batches())
    assert result.to_pydict() == {"city": ["Rome", "Oslo"], "country": ["IT", None]}


def test_intersection(left, right):
    result = next(IntersectNode(left, right).batches())
    assert result.to_pydict() == {"city": ["Paris", None], "country": ["FR", "XX"]}


def test_setops_with_empty_side(left):
    empty = PyArrowTableDataSource(LEFT_DATA.slice(0, 0))
    assert next(DifferenceNode(left, empty).batches()).num_rows == 4
    assert next(IntersectNode(left, empty).batches()).num_rows == 0
    assert next(UnionNode(empty, left).batches()).num_rows == 4


def test_setops_schema(left, right):
    for node in (UnionNode(left, right), DifferenceNode(left, right), IntersectNode(left, right)):
        assert node.poll_schema() == LEFT_DATA.schema


def test_setops_treat_nan_as_equal():
    nans = PyArrowTableDataSource(pa.record_batch({"x": [float("nan"), 1.0, float("nan")]}))
    only_nan = PyArrowTableDataSource(pa.record_batch({"x": [float("nan")]}))

    assert next(UnionNode(nans, only_nan).batches()).num_rows == 2
    assert next(DifferenceNode(nans, only_nan).batches()).to_pydict() == {"x": [1.0]}
    assert next(IntersectNode(nans, only_nan).batches()).num_rows == 1
