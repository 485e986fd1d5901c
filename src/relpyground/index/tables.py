"""Indexes built over the data of a relation.

Given a relation (a :class:`pyarrow.Table`) and the attribute
to use as search key, these classes lay out the records
in blocks of ``block_size`` records and build the index entries
pointing to them.

Dense Index
===========

A dense index holds one entry for every record of the relation,
so any record can be located by looking up the index alone.
The entries can be stored in an ordered structure
(:class:`relpyground.index.BPlusTreeIndex`, which also supports range
lookups) or in an :class:`relpyground.index.HashIndex`.
Records with a null key are not indexed, as no predicate
can ever match them by equality.

Sparse Index
============

A sparse index holds only one entry per block, keyed by the
first key stored in the block. It requires the relation to be
sorted by the search key, so that all the records with a given key
are stored in the same block or in consecutive blocks.
Looking up a key means finding the block where the key
may start and scanning forward from there, reading records
until a greater key is found.

Sparse indexes are much smaller than dense ones, at the cost of
having to scan the blocks.

>>> import pyarrow as pa
>>> from relpyground.index import DenseIndex, SparseIndex
>>> instructors = pa.table({"ID": [1, 2, 3], "Name": ["A", "B", "C"]})
>>> len(DenseIndex(instructors, "ID", block_size=4).entries)
3
>>> len(SparseIndex(instructors, "ID", block_size=4).entries)
1
>>> SparseIndex(instructors, "ID", block_size=4).lookup(2).to_pydict()
{'ID': [2], 'Name': ['B']}
"""

import abc
import bisect
from typing import Any

import pyarrow as pa

from ..exceptions import UnsupportedOperation
from .base import Index, IndexEntry, RecordPointer
from .btree import BPlusTreeIndex
from .hashing import HashIndex

INDEX_STRUCTURES = {
    "btree": BPlusTreeIndex,
    "hash": HashIndex,
}


class TableIndex(abc.ABC):
    """Base class for indexes over the records of a relation."""

    ordered = True

    def __init__(self, table: pa.Table, column: str, block_size: int = 4) -> None:
        """
        :param table: The relation to index.
        :param column: The attribute used as search key.
        :param block_size: How many records fit in a block.
        """
        if block_size < 1:
            raise ValueError("A block must hold at least one record")
        self.table = table
        self.column = column
        self.block_size = block_size
        self.entries: list[IndexEntry] = []

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(column={self.column}, entries={len(self.entries)}, block_size={self.block_size})"

    @abc.abstractmethod
    def point_lookup(self, key: Any) -> list[RecordPointer]:
        """Pointers of the records holding the key, in storage order."""
        ...

    @abc.abstractmethod
    def range_lookup(self, low: Any = None, high: Any = None) -> list[RecordPointer]:
        """Pointers of the records with ``low <= key <= high``, in key order."""
        ...

    def fetch(self, pointers: list[RecordPointer]) -> pa.Table:
        """Read the records at the given locations."""
        rows = [pointer.row(self.block_size) for pointer in pointers]
        return self.table.take(pa.array(rows, type=pa.int64()))

    def lookup(self, key: Any) -> pa.Table:
        """The records holding the key."""
        return self.fetch(self.point_lookup(key))

    def range(self, low: Any = None, high: Any = None) -> pa.Table:
        """The records with a key between low and high, both included."""
        return self.fetch(self.range_lookup(low, high))


class DenseIndex(TableIndex):
    """One index entry per record."""

    def __init__(
        self,
        table: pa.Table,
        column: str,
        block_size: int = 4,
        structure: str = "btree",
    ) -> None:
        """
        :param structure: ``btree`` or ``hash``, the structure storing the entries.
        """
        super().__init__(table, column, block_size)
        if structure not in INDEX_STRUCTURES:
            raise ValueError(f"Unsupported index structure: {structure}")
        self.structure = structure
        self.index: Index = INDEX_STRUCTURES[structure]()
        self.ordered = structure == "btree"

        for row, key in enumerate(table.column(column).to_pylist()):
            if key is None:
                continue
            entry = IndexEntry(key, RecordPointer.for_row(row, block_size))
            self.entries.append(entry)
            self.index.insert(entry.key, entry.pointer)

    def __str__(self) -> str:
        return f"DenseIndex(column={self.column}, structure={self.structure}, entries={len(self.entries)}, block_size={self.block_size})"

    def point_lookup(self, key: Any) -> list[RecordPointer]:
        return sorted(self.index.point_lookup(key))

    def range_lookup(self, low: Any = None, high: Any = None) -> list[RecordPointer]:
        if not self.ordered:
            raise UnsupportedOperation(f"{self.structure} indexes don't support range lookups")
        return [pointer for _, pointer in self.index.range_lookup(low, high)]


class SparseIndex(TableIndex):
    """One index entry per block, for relations sorted by the search key."""

    def __init__(self, table: pa.Table, column: str, block_size: int = 4) -> None:
        super().__init__(table, column, block_size)
        self.values = table.column(column).to_pylist()
        if None in self.values:
            raise ValueError("Sparse indexes require a search key without nulls")
        if any(a > b for a, b in zip(self.values, self.values[1:])):
            raise ValueError(f"Sparse indexes require the relation to be sorted by {column}")

        for row in range(0, len(self.values), block_size):
            self.entries.append(
                IndexEntry(self.values[row], RecordPointer.for_row(row, block_size))
            )
        self.keys = [entry.key for entry in self.entries]

    def _scan(self, low: Any, high: Any) -> list[RecordPointer]:
        """Scan the blocks from where low may start until high is passed."""
        if not self.entries:
            return []
        if low is None:
            block = 0
        else:
            # The key might also be stored at the end of the block
            # before the first one whose entry is equal to it.
            block = max(bisect.bisect_left(self.keys, low) - 1, 0)

        pointers = []
        for row in range(self.entries[block].pointer.row(self.block_size), len(self.values)):
            key = self.values[row]
            if high is not None and key > high:
                break
            if low is None or key >= low:
                pointers.append(RecordPointer.for_row(row, self.block_size))
        return pointers

    def point_lookup(self, key: Any) -> list[RecordPointer]:
        if key is None:
            return []
        return self._scan(key, key)

    def range_lookup(self, low: Any = None, high: Any = None) -> list[RecordPointer]:
        return self._scan(low, high)
