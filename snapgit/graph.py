"""Commit graph traversal: ancestry, common ancestors, history."""

import heapq
import logging
from collections import deque
from typing import Iterator

from .errors import CommitNotFound, NoCommonAncestor
from .object_store import ObjectStore
from .objects import Commit

logger = logging.getLogger(__name__)


class History:
    """Commits from a starting point back to the root, newest first.

    Follows first parents only. Lazy, and restartable: every
    ``iter()`` walks again from the start.
    """

    def __init__(self, objects: ObjectStore, start: str) -> None:
        self._objects = objects
        self.start = start

    def __iter__(self) -> Iterator[Commit]:
        current: str | None = self.start
        while current is not None:
            commit = self._objects.get_commit(current)
            yield commit
            current = commit.parent_id


class CommitGraph:
    """Read-only navigation of the commit DAG stored in an ObjectStore.

    Every traversal that asks about ancestry follows both parents of a
    merge commit and uses an explicit worklist, so long histories do
    not hit the recursion limit.
    """

    def __init__(self, objects: ObjectStore) -> None:
        self.objects = objects
        self._parents: dict[str, tuple[str, ...]] = {}

    def parents(self, commit_id: str) -> tuple[str, ...]:
        """Parent ids of a commit, first parent first."""
        cached = self._parents.get(commit_id)
        if cached is None:
            cached = self.objects.get_commit(commit_id).parents
            self._parents[commit_id] = cached
        return cached

    def ancestors(self, commit_id: str) -> set[str]:
        """Every commit reachable through either parent, including the start."""
        seen: set[str] = {commit_id}
        queue: deque[str] = deque([commit_id])
        while queue:
            current = queue.popleft()
            for p in self.parents(current):
                if p not in seen:
                    seen.add(p)
                    queue.append(p)
        return seen

    def is_ancestor(self, candidate: str, commit_id: str) -> bool:
        """Whether ``candidate`` is ``commit_id`` or one of its ancestors."""
        return candidate in self.ancestors(commit_id)

    def lowest_common_ancestor(self, commit_a: str, commit_b: str) -> str:
        """Find the most recent commit reachable from both commits.

        Collects the ancestors of ``commit_a``, then walks back from
        ``commit_b`` through both parents, newest commit first, and
        returns the first commit seen from both sides. Ties on timestamp
        are broken by discovery order.

        Raises:
            NoCommonAncestor: If the histories never meet.
        """
        if commit_a == commit_b:
            return commit_a

        reachable_a = self.ancestors(commit_a)
        order = 0
        heap: list[tuple[float, int, str]] = [
            (-self.objects.get_commit(commit_b).timestamp, order, commit_b)
        ]
        seen: set[str] = {commit_b}
        while heap:
            _, _, current = heapq.heappop(heap)
            if current in reachable_a:
                logger.debug(
                    "LCA of %s and %s is %s", commit_a[:7], commit_b[:7], current[:7]
                )
                return current
            for p in self.parents(current):
                if p not in seen:
                    seen.add(p)
                    order += 1
                    parent = self.objects.get_commit(p)
                    heapq.heappush(heap, (-parent.timestamp, order, p))

        raise NoCommonAncestor()

    def walk(self, commit_id: str) -> Iterator[Commit]:
        """Breadth-first iteration over the full DAG behind a commit."""
        visited: set[str] = set()
        queue: deque[str] = deque([commit_id])
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            commit = self.objects.get_commit(current)
            yield commit
            for p in commit.parents:
                if p not in visited:
                    queue.append(p)

    def history(self, commit_id: str) -> History:
        """First-parent history from ``commit_id`` back to the root."""
        return History(self.objects, commit_id)

    def find_by_prefix(self, start: str, id_or_prefix: str) -> Commit:
        """Find a commit in the history behind ``start`` by id or prefix.

        Raises:
            CommitNotFound: If no reachable commit matches.
        """
        if id_or_prefix:
            for commit in self.walk(start):
                if commit.id.startswith(id_or_prefix):
                    return commit
        raise CommitNotFound(id_or_prefix)
