"""Base classes and interfaces for index structures.

An index maps search keys to the location of the records
holding those keys, so that finding a record doesn't
require scanning the whole relation.

Records are stored in blocks (the unit of I/O of a real
database), so the location of a record is the block it
lives in and its slot inside that block.
"""

import abc
from typing import Any, Hashable, Iterator, NamedTuple


class RecordPointer(NamedTuple):
    """Location of a record: the block containing it and its slot in the block.

    >>> RecordPointer(block=1, slot=2).row(block_size=4)
    6
    """

    block: int
    slot: int

    @classmethod
    def for_row(cls, row: int, block_size: int) -> "RecordPointer":
        """The location of the row-th record when blocks hold ``block_size`` records."""
        return cls(row // block_size, row % block_size)

    def row(self, block_size: int) -> int:
        """Position of the record in the relation."""
        return self.block * block_size + self.slot


class IndexEntry(NamedTuple):
    """A (search-key, pointer-to-record-location) pair."""

    key: Any
    pointer: RecordPointer


class Index(abc.ABC):
    """Interface implemented by all the index structures.

    Indexes are built once, by inserting all the entries,
    and then only queried.
    """

    @abc.abstractmethod
    def insert(self, key: Hashable, pointer: RecordPointer) -> None:
        """Add an entry to the index."""
        ...

    @abc.abstractmethod
    def point_lookup(self, key: Hashable) -> Any:
        """Find the pointers of the records with the given key.

        A miss is not an error, it results in an empty collection.
        """
        ...

    @abc.abstractmethod
    def range_lookup(
        self, low: Any = None, high: Any = None
    ) -> Iterator[tuple[Any, RecordPointer]]:
        """Iterate over the entries with keys between low and high."""
        ...

    @abc.abstractmethod
    def __len__(self) -> int:
        """Number of entries in the index."""
        ...

    def __contains__(self, key: Hashable) -> bool:
        return bool(self.point_lookup(key))
