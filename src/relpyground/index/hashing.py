"""Hash index with overflow chains.

A hash index assigns each entry to a bucket by applying
a hash function to its key. Looking up a key only requires
hashing it and scanning the bucket it maps to, so
the cost of a lookup doesn't depend on the size of the index
as long as keys are evenly spread across the buckets.

Buckets are made of fixed size pages (like disk blocks),
when the page of a bucket is full a new overflow page is
chained to it::

    bucket 0: [k1, k9, k17, k25] -> [k33]
    bucket 1: [k2, k10]
    bucket 2: []
    ...

If the hash function maps most keys to the same bucket
(skew), the overflow chain of that bucket grows and lookups
in it degrade to a linear scan, but they keep working.

As hashing destroys the ordering of the keys,
hash indexes can only answer equality lookups,
range lookups are not supported.

>>> from relpyground.index import HashIndex, RecordPointer
>>> index = HashIndex(num_buckets=4, bucket_capacity=2)
>>> index.insert("Physics", RecordPointer(0, 0))
>>> index.insert("Math", RecordPointer(0, 1))
>>> index.insert("Physics", RecordPointer(1, 0))
>>> sorted(index.point_lookup("Physics"))
[RecordPointer(block=0, slot=0), RecordPointer(block=1, slot=0)]
>>> index.point_lookup("Biology")
set()
"""

from typing import Any, Callable, Hashable, Iterator

from ..exceptions import NotFound, UnsupportedOperation
from .base import Index, IndexEntry, RecordPointer


class HashIndex(Index):
    """An index supporting only equality lookups."""

    def __init__(
        self,
        num_buckets: int = 64,
        bucket_capacity: int = 8,
        hash_function: Callable[[Hashable], int] = hash,
    ) -> None:
        """
        :param num_buckets: How many buckets the keys are spread across.
        :param bucket_capacity: How many entries fit in a single page of a bucket.
        :param hash_function: The function mapping keys to integers.
        """
        if num_buckets < 1 or bucket_capacity < 1:
            raise ValueError("Buckets must exist and be able to hold at least one entry")
        self.num_buckets = num_buckets
        self.bucket_capacity = bucket_capacity
        self.hash_function = hash_function
        # Each bucket is a chain of pages, the first one is the primary page.
        self.buckets: list[list[list[IndexEntry]]] = [[[]] for _ in range(num_buckets)]
        self._size = 0

    def __str__(self) -> str:
        return f"HashIndex(buckets={self.num_buckets}, capacity={self.bucket_capacity}, entries={self._size})"

    def __len__(self) -> int:
        return self._size

    def __getitem__(self, key: Hashable) -> set[RecordPointer]:
        pointers = self.point_lookup(key)
        if not pointers:
            raise NotFound(f"Key not found: {key!r}")
        return pointers

    def bucket_for(self, key: Hashable) -> int:
        """The bucket the key is assigned to."""
        return self.hash_function(key) % self.num_buckets

    def insert(self, key: Hashable, pointer: RecordPointer) -> None:
        """Append the entry to the last page of its bucket, chaining a new page if it's full."""
        chain = self.buckets[self.bucket_for(key)]
        if len(chain[-1]) >= self.bucket_capacity:
            chain.append([])
        chain[-1].append(IndexEntry(key, pointer))
        self._size += 1

    def point_lookup(self, key: Hashable) -> set[RecordPointer]:
        """Pointers of the records with the given key, an empty set when there are none."""
        return {
            entry.pointer
            for page in self.buckets[self.bucket_for(key)]
            for entry in page
            if entry.key == key
        }

    def range_lookup(
        self, low: Any = None, high: Any = None
    ) -> Iterator[tuple[Any, RecordPointer]]:
        raise UnsupportedOperation("Hash indexes don't support range lookups")

    def overflow_pages(self) -> int:
        """Number of pages chained beyond the primary page of each bucket."""
        return sum(len(chain) - 1 for chain in self.buckets)
