"""Index structures.

Indexes allow to find the records holding a given
search key without having to scan a whole relation.
Two families of structures are provided:

* :class:`BPlusTreeIndex`, an ordered index that keeps its entries
  sorted by key in a balanced tree. It supports both point
  lookups and range lookups in logarithmic time.
* :class:`HashIndex`, which spreads the entries across buckets
  using a hash function. It supports point lookups only,
  range lookups raise :class:`relpyground.exceptions.UnsupportedOperation`.

On top of them :class:`DenseIndex` and :class:`SparseIndex` index the
records of a relation, with one entry per record or one entry per block.

Indexes are built once over a snapshot of the data and
only queried afterwards, they don't support removing entries.
"""

from .base import Index, IndexEntry, RecordPointer
from .btree import BPlusTreeIndex
from .hashing import HashIndex
from .tables import DenseIndex, SparseIndex, TableIndex

__all__ = (
    "Index",
    "IndexEntry",
    "RecordPointer",
    "BPlusTreeIndex",
    "HashIndex",
    "TableIndex",
    "DenseIndex",
    "SparseIndex",
)
