"""Branch references and the HEAD pointer."""

import logging
import pickle
from typing import NamedTuple

from .errors import BranchNotFound, CannotRemoveCurrentBranch
from .kv.base import KVStore

HEAD_KEY = "__head__"
BRANCHES_KEY = "__branches__"

logger = logging.getLogger(__name__)


class Head(NamedTuple):
    """The checked-out commit and the branch it belongs to."""

    commit_id: str
    branch: str


class ReferenceStore:
    """Branch name -> commit id mappings plus HEAD.

    State is loaded once and changed in memory. ``pending()`` returns
    the records to persist; the repository writes them together with
    the staging index in a single atomic batch.
    """

    def __init__(self, store: KVStore) -> None:
        self.store = store
        self._branches: dict[str, str] = {}
        self._head: Head | None = None
        self._dirty = False
        self.reload()

    @property
    def initialized(self) -> bool:
        """Whether a HEAD record exists."""
        return self._head is not None

    def reload(self) -> None:
        """Discard in-memory changes and re-read from the store."""
        branches_bytes = self.store.get(BRANCHES_KEY)
        self._branches = pickle.loads(branches_bytes) if branches_bytes else {}
        head_bytes = self.store.get(HEAD_KEY)
        self._head = Head(*pickle.loads(head_bytes)) if head_bytes else None
        self._dirty = False

    # -- HEAD --

    def get_head(self) -> Head:
        if self._head is None:
            raise ValueError("HEAD is not set")
        return self._head

    def set_head(self, commit_id: str, branch: str) -> None:
        self._head = Head(commit_id, branch)
        self._dirty = True

    @property
    def current_branch(self) -> str:
        return self.get_head().branch

    # -- Branches --

    def get_branch(self, name: str) -> str:
        """Commit id the branch points at.

        Raises:
            BranchNotFound: If there is no such branch.
        """
        try:
            return self._branches[name]
        except KeyError:
            raise BranchNotFound(name) from None

    def has_branch(self, name: str) -> bool:
        return name in self._branches

    def set_branch(self, name: str, commit_id: str) -> None:
        self._branches[name] = commit_id
        self._dirty = True

    def remove_branch(self, name: str) -> None:
        """Delete a branch pointer. The commits it named are kept.

        Raises:
            CannotRemoveCurrentBranch: If ``name`` is checked out.
            BranchNotFound: If there is no such branch.
        """
        if self._head is not None and self._head.branch == name:
            raise CannotRemoveCurrentBranch()
        if name not in self._branches:
            raise BranchNotFound(name)
        del self._branches[name]
        self._dirty = True

    def list_branches(self) -> list[str]:
        """All branch names, sorted."""
        return sorted(self._branches)

    def advance(self, commit_id: str) -> None:
        """Point the current branch and HEAD at ``commit_id``."""
        branch = self.current_branch
        self.set_branch(branch, commit_id)
        self.set_head(commit_id, branch)
        logger.debug("Advanced %s to %s", branch, commit_id[:7])

    # -- Persistence --

    def pending(self, *, force: bool = False) -> dict[str, bytes]:
        """Records to write, or an empty dict when nothing changed."""
        if not (self._dirty or force):
            return {}
        records = {BRANCHES_KEY: pickle.dumps(self._branches)}
        if self._head is not None:
            records[HEAD_KEY] = pickle.dumps(tuple(self._head))
        return records

    def mark_clean(self) -> None:
        self._dirty = False
