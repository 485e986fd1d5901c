"""Ordered index based on a B+ tree.

A B+ tree is a balanced search tree where all the entries
live in the leaves, while the internal nodes only hold
separator keys used to route searches toward the right leaf::

                      [ 20 | 40 ]
                    /      |      \\
          [5 | 10 | 15] [20 | 30] [40 | 50 | 60]
               ->            ->

Each node holds at most ``order - 1`` keys. When inserting
into a full leaf, the leaf is split in two halves and the first
key of the right half is copied in the parent as a new separator.
If the parent overflows too, it gets split as well and
the split propagates upward, possibly up to the root.
When the root splits a new root is created on top, which
is the only way the tree grows in height: all leaves
are thus always at the same depth and the cost of a
lookup is logarithmic in the number of entries.

The leaves are chained together from left to right,
range lookups find the leaf containing the lower bound and
then just follow the chain until the upper bound is passed.

>>> from relpyground.index import BPlusTreeIndex, RecordPointer
>>> index = BPlusTreeIndex(order=3)
>>> for row, key in enumerate([40, 10, 30, 20, 10]):
...     index.insert(key, RecordPointer(0, row))
>>> index.point_lookup(10)
[RecordPointer(block=0, slot=1), RecordPointer(block=0, slot=4)]
>>> index.point_lookup(99)
[]
>>> [key for key, _ in index.range_lookup(15, 40)]
[20, 30, 40]
"""

import bisect
from typing import Any, Iterator

from ..exceptions import NotFound
from .base import Index, RecordPointer


class _LeafNode:
    """Holds the keys and, for each key, the pointers of the records with that key."""

    def __init__(self) -> None:
        self.keys: list[Any] = []
        self.values: list[list[RecordPointer]] = []
        self.next: "_LeafNode | None" = None


class _InternalNode:
    """Holds separator keys and ``len(keys) + 1`` children.

    The child at position ``i`` contains the keys
    ``keys[i-1] <= key < keys[i]``.
    """

    def __init__(self) -> None:
        self.keys: list[Any] = []
        self.children: list["_InternalNode | _LeafNode"] = []


class BPlusTreeIndex(Index):
    """An ordered index supporting point and range lookups.

    Keys must be comparable with each other, duplicate keys
    are allowed and keep all their pointers in insertion order.
    """

    def __init__(self, order: int = 32) -> None:
        """
        :param order: The maximum number of children of a node, at least 3.
        """
        if order < 3:
            raise ValueError("A B+ tree order must be at least 3")
        self.order = order
        self.root: _InternalNode | _LeafNode = _LeafNode()
        self._size = 0

    def __str__(self) -> str:
        return f"BPlusTreeIndex(order={self.order}, entries={self._size}, height={self.height})"

    def __len__(self) -> int:
        return self._size

    def __getitem__(self, key: Any) -> list[RecordPointer]:
        pointers = self.point_lookup(key)
        if not pointers:
            raise NotFound(f"Key not found: {key!r}")
        return pointers

    @property
    def height(self) -> int:
        """Number of levels of the tree, a tree with only the root leaf has height 1."""
        height = 1
        node = self.root
        while isinstance(node, _InternalNode):
            node = node.children[0]
            height += 1
        return height

    def leaf_depths(self) -> set[int]:
        """Depth of every leaf, a balanced tree has only one."""
        depths = set()
        pending = [(self.root, 1)]
        while pending:
            node, depth = pending.pop()
            if isinstance(node, _LeafNode):
                depths.add(depth)
            else:
                pending.extend((child, depth + 1) for child in node.children)
        return depths

    def insert(self, key: Any, pointer: RecordPointer) -> None:
        """Insert an entry, splitting the nodes that overflow."""
        if key is None:
            raise ValueError("Null keys can't be indexed")
        split = self._insert(self.root, key, pointer)
        if split is not None:
            # The root was split, grow the tree by one level.
            separator, right = split
            new_root = _InternalNode()
            new_root.keys = [separator]
            new_root.children = [self.root, right]
            self.root = new_root
        self._size += 1

    def _insert(
        self, node: _InternalNode | _LeafNode, key: Any, pointer: RecordPointer
    ) -> tuple[Any, _InternalNode | _LeafNode] | None:
        """Insert in the subtree and return the (separator, new node) if it was split."""
        if isinstance(node, _LeafNode):
            pos = bisect.bisect_left(node.keys, key)
            if pos < len(node.keys) and node.keys[pos] == key:
                node.values[pos].append(pointer)
                return None
            node.keys.insert(pos, key)
            node.values.insert(pos, [pointer])
            if len(node.keys) < self.order:
                return None
            return self._split_leaf(node)

        pos = bisect.bisect_right(node.keys, key)
        split = self._insert(node.children[pos], key, pointer)
        if split is None:
            return None
        separator, right = split
        node.keys.insert(pos, separator)
        node.children.insert(pos + 1, right)
        if len(node.children) <= self.order:
            return None
        return self._split_internal(node)

    def _split_leaf(self, leaf: _LeafNode) -> tuple[Any, _LeafNode]:
        middle = len(leaf.keys) // 2
        right = _LeafNode()
        right.keys = leaf.keys[middle:]
        right.values = leaf.values[middle:]
        leaf.keys = leaf.keys[:middle]
        leaf.values = leaf.values[:middle]
        right.next = leaf.next
        leaf.next = right
        # Leaves copy the separator up, the key stays in the right leaf.
        return right.keys[0], right

    def _split_internal(self, node: _InternalNode) -> tuple[Any, _InternalNode]:
        middle = len(node.keys) // 2
        separator = node.keys[middle]
        right = _InternalNode()
        right.keys = node.keys[middle + 1 :]
        right.children = node.children[middle + 1 :]
        node.keys = node.keys[:middle]
        node.children = node.children[: middle + 1]
        # Internal nodes move the separator up, it's no longer needed below.
        return separator, right

    def _find_leaf(self, key: Any) -> _LeafNode:
        node = self.root
        while isinstance(node, _InternalNode):
            node = node.children[bisect.bisect_right(node.keys, key)]
        return node

    def _first_leaf(self) -> _LeafNode:
        node = self.root
        while isinstance(node, _InternalNode):
            node = node.children[0]
        return node

    def point_lookup(self, key: Any) -> list[RecordPointer]:
        """Pointers of the records having exactly the given key.

        An empty list means the key was not found.
        """
        if key is None:
            return []
        leaf = self._find_leaf(key)
        pos = bisect.bisect_left(leaf.keys, key)
        if pos < len(leaf.keys) and leaf.keys[pos] == key:
            return list(leaf.values[pos])
        return []

    def range_lookup(
        self, low: Any = None, high: Any = None
    ) -> Iterator[tuple[Any, RecordPointer]]:
        """Lazily iterate over the entries with ``low <= key <= high`` in ascending order.

        ``None`` for one of the bounds leaves that side unbounded.
        """
        if low is None:
            leaf = self._first_leaf()
            pos = 0
        else:
            leaf = self._find_leaf(low)
            pos = bisect.bisect_left(leaf.keys, low)

        while leaf is not None:
            while pos < len(leaf.keys):
                key = leaf.keys[pos]
                if high is not None and key > high:
                    return
                for pointer in leaf.values[pos]:
                    yield key, pointer
                pos += 1
            leaf = leaf.next
            pos = 0
