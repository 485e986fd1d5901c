import random

import pytest

from relpyground.exceptions import NotFound, UnsupportedOperation
from relpyground.index import HashIndex, RecordPointer


def test_lookup_missing_key_is_empty():
    index = HashIndex()
    index.insert("Physics", RecordPointer(0, 0))
    assert index.point_lookup("Math") == set()
    assert "Math" not in index
    assert "Physics" in index


def test_getitem_raises_not_found():
    index = HashIndex()
    index.insert(1, RecordPointer(0, 0))
    assert index[1] == {RecordPointer(0, 0)}
    with pytest.raises(NotFound):
        index[2]


def test_range_lookup_unsupported():
    index = HashIndex()
    with pytest.raises(UnsupportedOperation):
        index.range_lookup(1, 5)


def test_overflow_chains():
    index = HashIndex(num_buckets=4, bucket_capacity=2)
    for slot in range(5):
        index.insert(0, RecordPointer(0, slot))
    # All entries share the same bucket: 2 per page, so 3 pages.
    assert len(index.buckets[index.bucket_for(0)]) == 3
    assert index.overflow_pages() == 2
    assert index.point_lookup(0) == {RecordPointer(0, slot) for slot in range(5)}


@pytest.mark.parametrize("seed", range(3))
def test_skewed_hash_function_still_finds_keys(seed):
    rnd = random.Random(seed)
    index = HashIndex(num_buckets=8, bucket_capacity=2, hash_function=lambda key: 0)
    keys = [rnd.randint(0, 20) for _ in range(60)]
    for row, key in enumerate(keys):
        index.insert(key, RecordPointer.for_row(row, 4))

    assert len(index) == 60
    assert index.overflow_pages() == 29
    for key in set(keys):
        expected = {RecordPointer.for_row(row, 4) for row, k in enumerate(keys) if k == key}
        assert index.point_lookup(key) == expected
    assert index.point_lookup(21) == set()


def test_invalid_configuration():
    with pytest.raises(ValueError):
        HashIndex(num_buckets=0)
    with pytest.raises(ValueError):
        HashIndex(bucket_capacity=0)
