"""Repository: the per-command context bundling every store."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .errors import (
    AlreadyInitialized,
    AlreadyOnBranch,
    BranchExists,
    BranchNotFound,
    FileNotInCommit,
    MergeConflict,
    NoCommitWithMessage,
    NotInitialized,
)
from .graph import CommitGraph, History
from .kv.base import KVStore
from .merge import MergeEngine, MergeResult
from .object_store import ObjectStore
from .objects import Commit, initial_commit, make_blob
from .refs import Head, ReferenceStore
from .snapshot import SnapshotEngine
from .staging import StagingIndex
from .worktree import WorkingTree

DEFAULT_BRANCH = "master"
STORE_DIRNAME = "store"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Status:
    """Snapshot of the repository state shown by ``status``."""

    branches: tuple[str, ...]
    current_branch: str
    staged: tuple[str, ...]
    removed: tuple[str, ...]
    modified: tuple[str, ...]
    """Entries are ``"<name> (modified)"`` or ``"<name> (deleted)"``."""
    untracked: tuple[str, ...]


def _disk_backend(repo_dir: Path) -> KVStore:
    from .kv.disk import Disk

    return Disk(str(repo_dir / STORE_DIRNAME))


class Repository:
    """One repository, opened for the duration of a single command.

    Holds the object store, reference store, staging index and working
    tree, and the engines built on them. Nothing is global: each
    command constructs its own Repository and discards it.

    Every mutating operation writes new objects first and then persists
    HEAD, the branches and the staging index with one ``set_many``, so
    the next invocation sees either all of a command's effects on them
    or none.
    """

    def __init__(self, worktree: WorkingTree, store: KVStore) -> None:
        self.worktree = worktree
        self.store = store
        self.objects = ObjectStore(store)
        self.refs = ReferenceStore(store)
        self.staging = StagingIndex(store)
        self.graph = CommitGraph(self.objects)
        self.snapshots = SnapshotEngine(
            self.objects, self.refs, self.staging, self.worktree
        )
        self.merger = MergeEngine(
            self.objects,
            self.graph,
            self.refs,
            self.staging,
            self.worktree,
            self.snapshots,
        )

    # -- Construction --

    @classmethod
    def init(
        cls,
        path: str | Path = ".",
        *,
        backend: KVStore | None = None,
        branch: str = DEFAULT_BRANCH,
    ) -> "Repository":
        """Create a new repository in ``path``.

        Args:
            path: Working directory root.
            backend: KV store to use (default: a ``Disk`` store inside
                ``<path>/.snapgit``).
            branch: Name of the initial branch.

        Raises:
            AlreadyInitialized: If a repository already exists there.
        """
        worktree = WorkingTree(path)
        if backend is None:
            if worktree.repo_dir.exists():
                raise AlreadyInitialized()
            worktree.repo_dir.mkdir(parents=True)
            backend = _disk_backend(worktree.repo_dir)
        repo = cls(worktree, backend)
        if repo.refs.initialized:
            raise AlreadyInitialized()

        root = initial_commit()
        repo.objects.put(root)
        repo.refs.set_branch(branch, root.id)
        repo.refs.set_head(root.id, branch)
        repo.staging.clear()
        repo.save(force=True)
        logger.info("Initialized empty repository in %s", worktree.repo_dir)
        return repo

    @classmethod
    def open(
        cls, path: str | Path = ".", *, backend: KVStore | None = None
    ) -> "Repository":
        """Open an existing repository.

        Raises:
            NotInitialized: If there is no repository at ``path``.
        """
        worktree = WorkingTree(path)
        if backend is None:
            if not worktree.repo_dir.is_dir():
                raise NotInitialized()
            backend = _disk_backend(worktree.repo_dir)
        repo = cls(worktree, backend)
        if not repo.refs.initialized:
            repo.close()
            raise NotInitialized()
        return repo

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> "Repository":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- Persistence --

    def save(self, *, force: bool = False) -> None:
        """Persist changed mutable state in one atomic batch."""
        batch: dict[str, bytes] = {}
        batch.update(self.refs.pending(force=force))
        batch.update(self.staging.pending(force=force))
        if not batch:
            return
        self.store.set_many(**batch)
        self.refs.mark_clean()
        self.staging.mark_clean()
        logger.debug("Saved state records: %s", sorted(batch))

    # -- Queries --

    @property
    def head(self) -> Head:
        return self.refs.get_head()

    def head_commit(self) -> Commit:
        return self.objects.get_commit(self.head.commit_id)

    def log(self) -> History:
        """First-parent history of HEAD, newest first."""
        return self.graph.history(self.head.commit_id)

    def global_log(self) -> Iterator[Commit]:
        """Every commit ever made, in no particular order."""
        return self.objects.commits()

    def find(self, message: str) -> list[str]:
        """Ids of all commits with exactly this message.

        Raises:
            NoCommitWithMessage: If there are none.
        """
        ids = [c.id for c in self.objects.commits() if c.message == message]
        if not ids:
            raise NoCommitWithMessage()
        return ids

    def status(self) -> Status:
        tracked = self.head_commit().files
        additions = self.staging.additions
        removals = self.staging.removals
        present = set(self.worktree.files())

        modified: list[str] = []
        for name in sorted(set(tracked) | set(additions)):
            if name in removals:
                continue
            if name not in present:
                modified.append(f"{name} (deleted)")
                continue
            current_id = make_blob(name, self.worktree.read(name)).id
            expected = additions.get(name, tracked.get(name))
            if current_id != expected:
                modified.append(f"{name} (modified)")

        untracked = sorted(
            name
            for name in present
            if (name not in tracked and name not in additions) or name in removals
        )
        return Status(
            branches=tuple(self.refs.list_branches()),
            current_branch=self.head.branch,
            staged=tuple(self.staging.staged_files()),
            removed=tuple(self.staging.removed_files()),
            modified=tuple(modified),
            untracked=tuple(untracked),
        )

    # -- Staging --

    def add(self, filename: str) -> str:
        """Stage a working file's current content. Returns its blob id.

        Raises:
            FileNotFound: If the file is not in the working directory.
        """
        blob = make_blob(filename, self.worktree.read(filename))
        self.objects.put(blob)
        self.staging.stage_add(filename, blob.id, self.head_commit().files)
        self.save()
        return blob.id

    def rm(self, filename: str) -> None:
        """Un-stage a file, or stage a tracked file for removal.

        Raises:
            NothingToRemove: If the file is neither tracked nor staged.
        """
        self.staging.stage_remove(filename, self.head_commit().files, self.worktree)
        self.save()

    # -- History --

    def commit(self, message: str, *, timestamp: float | None = None) -> Commit:
        """Commit the staged changes on the current branch."""
        commit = self.snapshots.commit(message, timestamp=timestamp)
        self.save()
        return commit

    def checkout_file(self, filename: str, commit_id: str | None = None) -> None:
        """Restore one file from HEAD or from a commit in HEAD's history.

        The staging index is left alone.

        Raises:
            CommitNotFound: If ``commit_id`` names no reachable commit.
            FileNotInCommit: If the commit does not track ``filename``.
        """
        if commit_id is None:
            commit = self.head_commit()
        else:
            commit = self.graph.find_by_prefix(self.head.commit_id, commit_id)
        blob_id = commit.files.get(filename)
        if blob_id is None:
            raise FileNotInCommit()
        self.worktree.write(filename, self.objects.get_blob(blob_id).content)

    def checkout_branch(self, name: str) -> None:
        """Switch to another branch, replacing the working files.

        Raises:
            BranchNotFound: If there is no such branch.
            AlreadyOnBranch: If ``name`` is checked out already.
            UntrackedConflict: If an untracked file would be overwritten.
        """
        if not self.refs.has_branch(name):
            raise BranchNotFound(name, "No such branch exists.")
        if name == self.head.branch:
            raise AlreadyOnBranch()
        target = self.objects.get_commit(self.refs.get_branch(name))
        self.snapshots.restore_snapshot(target.files, self.head_commit().files)
        self.staging.clear()
        self.refs.set_head(target.id, name)
        self.save()
        logger.info("Switched to branch %s", name)

    def branch(self, name: str) -> None:
        """Create a branch pointing at HEAD. Does not switch to it.

        Raises:
            BranchExists: If the name is taken.
        """
        if self.refs.has_branch(name):
            raise BranchExists()
        self.refs.set_branch(name, self.head.commit_id)
        self.save()

    def rm_branch(self, name: str) -> None:
        """Delete a branch pointer.

        Raises:
            CannotRemoveCurrentBranch: If ``name`` is checked out.
            BranchNotFound: If there is no such branch.
        """
        self.refs.remove_branch(name)
        self.save()

    def reset(self, commit_id: str) -> Commit:
        """Move the current branch to any commit and restore its files.

        Raises:
            CommitNotFound: If no commit matches ``commit_id``.
            UntrackedConflict: If an untracked file would be overwritten.
        """
        target = self.objects.resolve_commit(commit_id)
        self.snapshots.restore_snapshot(target.files, self.head_commit().files)
        self.staging.clear()
        self.refs.advance(target.id)
        self.save()
        logger.info("Reset %s to %s", self.head.branch, target.id[:7])
        return target

    def merge(self, branch: str, *, timestamp: float | None = None) -> MergeResult:
        """Merge ``branch`` into the current branch.

        See ``MergeEngine.merge``. A conflicted merge is committed and
        saved before ``MergeConflict`` propagates.
        """
        try:
            result = self.merger.merge(branch, timestamp=timestamp)
        except MergeConflict:
            self.save()
            raise
        self.save()
        return result
