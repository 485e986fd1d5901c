import pyarrow as pa

from relpyground.compute import PyArrowTableDataSource
from relpyground.compute.rename import RenameNode

TEST_DATA = pa.record_batch({"id": [1, 2], "name": ["A", "B"]})


def test_rename_node():
    node = RenameNode({"id": "user_id"}, PyArrowTableDataSource(TEST_DATA))
    result = next(node.batches())
    assert result.schema.names == ["user_id", "name"]
    assert result.column("user_id").to_pylist() == [1, 2]
    assert node.poll_schema() == result.schema


def test_rename_swap():
    node = RenameNode({"id": "name", "name": "id"}, PyArrowTableDataSource(TEST_DATA))
    assert next(node.batches()).to_pydict() == {"name": [1, 2], "id": ["A", "B"]}


def test_rename_keeps_types():
    node = RenameNode({"id": "x"}, PyArrowTableDataSource(TEST_DATA))
    assert node.poll_schema().field("x").type == pa.int64()


def test_rename_node_str():
    node = RenameNode({"id": "user_id"}, PyArrowTableDataSource(TEST_DATA))
    assert str(node) == (
        "RenameNode(mapping={'id': 'user_id'}, "
        "child=PyArrowTableDataSource(columns=['id', 'name'], rows=2))"
    )
