import random

import pytest

from relpyground.exceptions import NotFound, RelationalError
from relpyground.index import BPlusTreeIndex, RecordPointer


def build(keys, order=4):
    index = BPlusTreeIndex(order=order)
    for row, key in enumerate(keys):
        index.insert(key, RecordPointer.for_row(row, 4))
    return index


def test_empty_index():
    index = BPlusTreeIndex()
    assert len(index) == 0
    assert index.height == 1
    assert index.point_lookup(1) == []
    assert list(index.range_lookup()) == []


def test_point_lookup():
    index = build([5, 3, 8])
    assert index.point_lookup(3) == [RecordPointer(0, 1)]
    assert index.point_lookup(4) == []
    assert 8 in index
    assert 4 not in index


def test_duplicate_keys_keep_insertion_order():
    index = build([7, 1, 7, 7])
    assert index.point_lookup(7) == [RecordPointer(0, 0), RecordPointer(0, 2), RecordPointer(0, 3)]
    assert len(index) == 4


def test_getitem_raises_not_found():
    index = build([1, 2])
    assert index[2] == [RecordPointer(0, 1)]
    with pytest.raises(NotFound):
        index[3]
    with pytest.raises(KeyError):
        index[3]
    with pytest.raises(RelationalError):
        index[3]


def test_null_keys_rejected():
    with pytest.raises(ValueError):
        BPlusTreeIndex().insert(None, RecordPointer(0, 0))


def test_order_too_small():
    with pytest.raises(ValueError):
        BPlusTreeIndex(order=2)


def test_root_split_grows_height():
    index = build([1, 2, 3], order=4)
    assert index.height == 1
    index.insert(4, RecordPointer(1, 0))
    assert index.height == 2


@pytest.mark.parametrize("seed", range(5))
@pytest.mark.parametrize("order", [3, 4, 7])
def test_random_inserts_stay_balanced(seed, order):
    rnd = random.Random(seed)
    keys = [rnd.randint(0, 50) for _ in range(200)]
    index = build(keys, order=order)

    assert len(index) == len(keys)
    assert len(index.leaf_depths()) == 1
    assert index.height > 1

    for key in set(keys):
        expected = [RecordPointer.for_row(row, 4) for row, k in enumerate(keys) if k == key]
        assert index.point_lookup(key) == expected
    assert index.point_lookup(51) == []


@pytest.mark.parametrize("seed", range(5))
def test_range_lookup_matches_sorted_scan(seed):
    rnd = random.Random(seed)
    keys = [rnd.randint(0, 100) for _ in range(150)]
    index = build(keys, order=5)
    low, high = sorted(rnd.sample(range(0, 101), 2))

    found = [key for key, _ in index.range_lookup(low, high)]
    assert found == sorted(k for k in keys if low <= k <= high)


def test_range_lookup_unbounded_sides():
    keys = [9, 1, 5, 3, 7]
    index = build(keys, order=3)
    assert [k for k, _ in index.range_lookup()] == [1, 3, 5, 7, 9]
    assert [k for k, _ in index.range_lookup(low=5)] == [5, 7, 9]
    assert [k for k, _ in index.range_lookup(high=5)] == [1, 3, 5]
    assert [k for k, _ in index.range_lookup(4, 4)] == []
    assert [k for k, _ in index.range_lookup(10, 20)] == []


def test_range_lookup_is_lazy():
    index = build(range(100), order=4)
    entries = index.range_lookup(10)
    assert next(entries) == (10, RecordPointer.for_row(10, 4))
    assert next(entries) == (11, RecordPointer.for_row(11, 4))


def test_string_keys():
    index = build(["Physics", "Math", "Biology", "Math"], order=3)
    assert index.point_lookup("Math") == [RecordPointer(0, 1), RecordPointer(0, 3)]
    assert [k for k, _ in index.range_lookup("C", "N")] == ["Math", "Math"]
