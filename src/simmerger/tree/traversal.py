"""
simmerger.tree.traversal

Pre-order (depth-first) and parent-chain traversal over a TrackTree.

DownIterator is the live traversal: it keeps only a stack of ancestor ids
and finds the next sibling through the current node's parent link. It
tolerates the following mutations between two steps:

  - clearing the `child_ids` of the node it last returned, as long as this
    happens *before* advancing (the cleared subtree is then skipped);
  - detaching the node it last returned, as long as this happens *after*
    advancing away from it.

Detaching before advancing leaves the iterator without a parent link to find
the next sibling; this is detected and raised as StructureError.

`dfs` returns a full (node, depth) snapshot and is the safe choice whenever
the caller restructures the tree while walking it.
"""
from __future__ import annotations
from typing import Iterator, List, Optional, Tuple, TYPE_CHECKING

from simmerger.diagnostics import LogFn, resolve_log
from simmerger.tree.errors import StructureError
from simmerger.tree.node import Node

if TYPE_CHECKING:
    from simmerger.tree.tree import TrackTree


class DownIterator:
    """
    Pre-order iterator starting (and ending) at `start_id`.

    `depth` is the depth of the node most recently returned, relative to the
    start node (start = 0).
    """

    def __init__(self, tree: "TrackTree", start_id: Optional[int] = None, log: Optional[LogFn] = None):
        self.tree = tree
        self.start_id = tree.root_id if start_id is None else start_id
        self.depth = 0
        self._current: Optional[int] = None
        self._started = False
        self._stack: List[int] = []
        self._log = resolve_log(log)

    def __iter__(self) -> "DownIterator":
        return self

    def __next__(self) -> Node:
        if not self._started:
            self._started = True
            self._current = self.start_id
            return self.tree.get(self.start_id)
        if self._current is None:
            raise StopIteration

        node = self.tree.get(self._current)
        if node.child_ids:
            self._log(f"[traverse] track {node.track_id}: going to first child {node.child_ids[0]}")
            self._stack.append(node.track_id)
            self._current = node.child_ids[0]
            self.depth += 1
            return self.tree.get(self._current)

        self._log(f"[traverse] track {node.track_id}: no children, going to next sibling")
        while True:
            if node.track_id == self.start_id:
                self._log("[traverse] back at the start node; stopping")
                self._current = None
                raise StopIteration
            sibling = self._next_sibling(node)
            if sibling is not None:
                self._log(f"[traverse] has sibling; going to {sibling}")
                self._current = sibling
                return self.tree.get(sibling)
            self._log("[traverse] no sibling; popping stack")
            node = self.tree.get(self._stack.pop())
            self._current = node.track_id
            self.depth -= 1
            self._log(f"[traverse] popped back to track {node.track_id}")

    def _next_sibling(self, node: Node) -> Optional[int]:
        if node.parent_id is None:
            raise StructureError(
                f"Traversal cannot continue from track {node.track_id}: "
                f"it was detached before the iterator advanced",
                node.track_id,
            )
        siblings = self.tree.get(node.parent_id).child_ids
        try:
            i = siblings.index(node.track_id)
        except ValueError:
            raise StructureError(
                f"Track {node.track_id} is not among the children of its parent {node.parent_id}",
                node.track_id,
            ) from None
        if i + 1 < len(siblings):
            return siblings[i + 1]
        return None


def iter_up(tree: "TrackTree", track_id: int) -> Iterator[Node]:
    """Yield the node itself, then every ancestor up to (and including) the root."""
    node: Optional[Node] = tree.get(track_id)
    while node is not None:
        yield node
        node = tree.get(node.parent_id) if node.parent_id is not None else None


def dfs(tree: "TrackTree", start_id: Optional[int] = None) -> List[Tuple[Node, int]]:
    """
    Snapshot of a pre-order traversal as (node, depth) pairs.
    """
    start = tree.root_id if start_id is None else start_id
    out: List[Tuple[Node, int]] = []
    todo: List[Tuple[int, int]] = [(start, 0)]
    while todo:
        tid, depth = todo.pop()
        node = tree.get(tid)
        out.append((node, depth))
        # reversed so the first child is popped first
        todo.extend((c, depth + 1) for c in reversed(node.child_ids))
    return out
