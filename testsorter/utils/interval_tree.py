"""Interval tree used by the timeline schedulers.

Bookings on a machine or resource timeline are stored in an AVL tree ordered by
``(start, key)`` where ``key`` is the index of the test owning the interval.
Every node caches the maximum ``end`` of its subtree so overlap queries can skip
subtrees that finish before the queried window begins.

Only the operations the schedulers need are exposed: ``insert``, ``remove``,
``overlaps``, ``overlapping`` and ``copy``.  Updates run in :math:`O(\\log n)`,
``overlapping`` in :math:`O(\\log n + k)` for ``k`` reported intervals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple


Entry = Tuple[int, int, int]  # (start, end, key)


@dataclass(slots=True)
class _Node:
    start: int
    end: int
    key: int
    max_end: int
    height: int = 1
    left: Optional["_Node"] = None
    right: Optional["_Node"] = None

    def update(self) -> None:
        """Recompute the ``max_end`` and ``height`` caches after mutations."""

        candidate = self.end
        height = 0
        if self.left is not None:
            if self.left.max_end > candidate:
                candidate = self.left.max_end
            height = self.left.height
        if self.right is not None:
            if self.right.max_end > candidate:
                candidate = self.right.max_end
            if self.right.height > height:
                height = self.right.height
        self.max_end = candidate
        self.height = height + 1


class IntervalTree:
    """Balanced interval tree of half-open integer intervals ``[start, end)``."""

    __slots__ = ("_root", "_size")

    def __init__(self) -> None:
        self._root: Optional[_Node] = None
        self._size = 0

    def __len__(self) -> int:
        return self._size

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def insert(self, start: int, end: int, key: int) -> None:
        if end <= start:
            raise ValueError("Interval end must be greater than start")
        self._root = self._insert(self._root, start, end, key)
        self._size += 1

    def remove(self, start: int, end: int, key: int) -> bool:
        if self._root is None:
            return False
        size_before = self._size
        self._root = self._remove(self._root, start, end, key)
        return self._size != size_before

    def overlaps(self, start: int, end: int) -> bool:
        if self._root is None or end <= start:
            return False
        node = self._root
        while node is not None:
            if start < node.end and end > node.start:
                return True
            if node.left is not None and node.left.max_end > start:
                node = node.left
            else:
                node = node.right
        return False

    def overlapping(self, start: int, end: int) -> List[Entry]:
        """Return every stored interval intersecting ``[start, end)``, ordered by start."""

        found: List[Entry] = []
        if end > start:
            self._collect(self._root, start, end, found)
        return found

    def iter(self) -> Iterator[Entry]:
        """Yield all intervals in ``(start, key)`` order."""

        yield from self._iter_nodes(self._root)

    def copy(self) -> "IntervalTree":
        clone = IntervalTree()
        clone._root = self._copy_nodes(self._root)
        clone._size = self._size
        return clone

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _insert(self, node: Optional[_Node], start: int, end: int, key: int) -> _Node:
        if node is None:
            return _Node(start=start, end=end, key=key, max_end=end)
        if (start, key) < (node.start, node.key):
            node.left = self._insert(node.left, start, end, key)
        else:
            node.right = self._insert(node.right, start, end, key)
        node.update()
        return self._rebalance(node)

    def _remove(self, node: Optional[_Node], start: int, end: int, key: int) -> Optional[_Node]:
        if node is None:
            return None
        if start == node.start and key == node.key:
            if end != node.end:
                return node
            self._size -= 1
            if node.left is None:
                return node.right
            if node.right is None:
                return node.left
            successor = self._min_node(node.right)
            node.right = self._detach_min(node.right)
            successor.left = node.left
            successor.right = node.right
            successor.update()
            return self._rebalance(successor)
        if (start, key) < (node.start, node.key):
            node.left = self._remove(node.left, start, end, key)
        else:
            node.right = self._remove(node.right, start, end, key)
        node.update()
        return self._rebalance(node)

    def _min_node(self, node: _Node) -> _Node:
        while node.left is not None:
            node = node.left
        return node

    def _detach_min(self, node: _Node) -> Optional[_Node]:
        if node.left is None:
            return node.right
        node.left = self._detach_min(node.left)
        node.update()
        return self._rebalance(node)

    def _collect(self, node: Optional[_Node], start: int, end: int, found: List[Entry]) -> None:
        if node is None or node.max_end <= start:
            return
        self._collect(node.left, start, end, found)
        if node.start < end and node.end > start:
            found.append((node.start, node.end, node.key))
        # Right subtree only holds intervals starting at or after node.start
        if node.start < end:
            self._collect(node.right, start, end, found)

    def _rebalance(self, node: _Node) -> _Node:
        balance = self._height(node.left) - self._height(node.right)
        if balance > 1:
            assert node.left is not None
            if self._height(node.left.left) < self._height(node.left.right):
                node.left = self._rotate_left(node.left)
            return self._rotate_right(node)
        if balance < -1:
            assert node.right is not None
            if self._height(node.right.right) < self._height(node.right.left):
                node.right = self._rotate_right(node.right)
            return self._rotate_left(node)
        return node

    @staticmethod
    def _height(node: Optional[_Node]) -> int:
        return 0 if node is None else node.height

    def _rotate_left(self, node: _Node) -> _Node:
        assert node.right is not None
        new_root = node.right
        node.right = new_root.left
        new_root.left = node
        node.update()
        new_root.update()
        return new_root

    def _rotate_right(self, node: _Node) -> _Node:
        assert node.left is not None
        new_root = node.left
        node.left = new_root.right
        new_root.right = node
        node.update()
        new_root.update()
        return new_root

    def _copy_nodes(self, node: Optional[_Node]) -> Optional[_Node]:
        if node is None:
            return None
        return _Node(
            start=node.start,
            end=node.end,
            key=node.key,
            max_end=node.max_end,
            height=node.height,
            left=self._copy_nodes(node.left),
            right=self._copy_nodes(node.right),
        )

    def _iter_nodes(self, node: Optional[_Node]) -> Iterator[Entry]:
        if node is None:
            return
        yield from self._iter_nodes(node.left)
        yield (node.start, node.end, node.key)
        yield from self._iter_nodes(node.right)
