"""Staging index: pending additions and removals for the next commit."""

import logging
import pickle
from typing import Mapping

from .errors import NothingToRemove
from .kv.base import KVStore
from .worktree import WorkingTree

ADDITIONS_KEY = "__staged_additions__"
REMOVALS_KEY = "__staged_removals__"

logger = logging.getLogger(__name__)


class StagingIndex:
    """Buffered file changes between commits.

    ``additions`` maps filename -> blob id to record in the next commit;
    ``removals`` maps filename -> the blob id being dropped. A filename
    is never in both at once. Like ``ReferenceStore``, changes stay in
    memory until the repository persists ``pending()``.
    """

    def __init__(self, store: KVStore) -> None:
        self.store = store
        self.additions: dict[str, str] = {}
        self.removals: dict[str, str] = {}
        self._dirty = False
        self.reload()

    def reload(self) -> None:
        """Discard in-memory changes and re-read from the store."""
        raw = self.store.get_many(ADDITIONS_KEY, REMOVALS_KEY)
        self.additions = pickle.loads(raw[ADDITIONS_KEY]) if ADDITIONS_KEY in raw else {}
        self.removals = pickle.loads(raw[REMOVALS_KEY]) if REMOVALS_KEY in raw else {}
        self._dirty = False

    # -- Write operations --

    def stage_add(
        self, filename: str, blob_id: str, tracked: Mapping[str, str]
    ) -> None:
        """Stage a file version for the next commit.

        Args:
            filename: Working file name.
            blob_id: Id of the blob holding its current content.
            tracked: HEAD commit's files. Adding the version HEAD
                already tracks un-stages the file instead.
        """
        if tracked.get(filename) == blob_id:
            self.additions.pop(filename, None)
        else:
            self.additions[filename] = blob_id
        self.removals.pop(filename, None)
        self._dirty = True

    def stage_remove(
        self,
        filename: str,
        tracked: Mapping[str, str],
        worktree: WorkingTree,
    ) -> None:
        """Stage a file for removal, or un-stage a pending addition.

        A file tracked by HEAD is staged for removal and deleted from
        the working directory. A file that is only staged for addition
        is just un-staged.

        Raises:
            NothingToRemove: If the file is neither tracked nor staged.
        """
        if filename in tracked:
            self.additions.pop(filename, None)
            self.removals[filename] = tracked[filename]
            worktree.delete(filename)
        elif filename in self.additions:
            del self.additions[filename]
        else:
            raise NothingToRemove()
        self._dirty = True

    def stage_removal(self, filename: str, blob_id: str) -> None:
        """Record a removal without touching the working directory."""
        self.additions.pop(filename, None)
        self.removals[filename] = blob_id
        self._dirty = True

    def clear(self) -> None:
        if self.additions or self.removals:
            self.additions.clear()
            self.removals.clear()
            self._dirty = True

    # -- Read operations --

    def is_empty(self) -> bool:
        return not self.additions and not self.removals

    def staged_files(self) -> list[str]:
        return sorted(self.additions)

    def removed_files(self) -> list[str]:
        return sorted(self.removals)

    # -- Persistence --

    def pending(self, *, force: bool = False) -> dict[str, bytes]:
        """Records to write, or an empty dict when nothing changed."""
        if not (self._dirty or force):
            return {}
        return {
            ADDITIONS_KEY: pickle.dumps(self.additions),
            REMOVALS_KEY: pickle.dumps(self.removals),
        }

    def mark_clean(self) -> None:
        self._dirty = False
