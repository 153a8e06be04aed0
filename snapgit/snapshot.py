"""Building commits from the staging index and restoring snapshots."""

import logging
from typing import Mapping

from .errors import EmptyMessage, NothingToCommit, UntrackedConflict
from .object_store import ObjectStore
from .objects import Blob, Commit, make_blob, make_commit
from .refs import ReferenceStore
from .staging import StagingIndex
from .worktree import WorkingTree

logger = logging.getLogger(__name__)


class SnapshotEngine:
    """Turns staged changes into commits and commits into working files.

    Mutates the in-memory reference store and staging index only; the
    repository persists them once the whole command has succeeded.
    """

    def __init__(
        self,
        objects: ObjectStore,
        refs: ReferenceStore,
        staging: StagingIndex,
        worktree: WorkingTree,
    ) -> None:
        self.objects = objects
        self.refs = refs
        self.staging = staging
        self.worktree = worktree

    def head_commit(self) -> Commit:
        return self.objects.get_commit(self.refs.get_head().commit_id)

    # -- Commit --

    def commit(
        self,
        message: str,
        second_parent: str | None = None,
        *,
        timestamp: float | None = None,
    ) -> Commit:
        """Create a commit from HEAD plus the staged changes.

        Args:
            message: Commit message; must be non-empty.
            second_parent: Merged-in commit id, for merge commits.
            timestamp: Override the commit time (default: now).

        Returns:
            The new commit, already stored, with the current branch
            and HEAD advanced to it and the staging index cleared.

        Raises:
            EmptyMessage: If ``message`` is empty.
            NothingToCommit: If nothing is staged and this is not a merge.
        """
        if not message:
            raise EmptyMessage()
        if self.staging.is_empty() and second_parent is None:
            raise NothingToCommit()

        head = self.head_commit()

        # Carry forward, apply removals, apply additions
        files = dict(head.files)
        for filename in self.staging.removals:
            files.pop(filename, None)

        new_blobs: list[Blob] = []
        for filename, blob_id in self.staging.additions.items():
            if not self.objects.has_blob(blob_id):
                blob = make_blob(filename, self.worktree.read(filename))
                new_blobs.append(blob)
                blob_id = blob.id
            files[filename] = blob_id

        # Identity is computed here, once, from the final fields
        commit = make_commit(
            message,
            parent_id=head.id,
            second_parent_id=second_parent,
            files=files,
            timestamp=timestamp,
        )
        self.objects.put_many(*new_blobs, commit)

        self.refs.advance(commit.id)
        self.staging.clear()
        logger.debug(
            "Created commit %s (%d files, parents=%s)",
            commit.id[:7],
            len(files),
            ",".join(p[:7] for p in commit.parents),
        )
        return commit

    # -- Restore --

    def untracked_files(self, current_files: Mapping[str, str]) -> set[str]:
        """Working files neither tracked by ``current_files`` nor staged."""
        return {
            name
            for name in self.worktree.files()
            if name not in current_files and name not in self.staging.additions
        }

    def check_untracked(
        self, target_files: Mapping[str, str], current_files: Mapping[str, str]
    ) -> None:
        """Refuse to overwrite untracked files.

        Raises:
            UntrackedConflict: If an untracked working file is also in
                ``target_files``.
        """
        in_the_way = {
            name for name in self.untracked_files(current_files) if name in target_files
        }
        if in_the_way:
            logger.debug("Untracked files in the way: %s", sorted(in_the_way))
            raise UntrackedConflict(in_the_way)

    def restore_snapshot(
        self, target_files: Mapping[str, str], current_files: Mapping[str, str]
    ) -> None:
        """Make the working directory match ``target_files``.

        Files tracked by ``current_files`` but not by the target are
        deleted; every target file is written. Nothing is written if an
        untracked file would be overwritten.
        """
        self.check_untracked(target_files, current_files)
        # Load everything first so a missing blob fails before any write
        blobs = {name: self.objects.get_blob(bid) for name, bid in target_files.items()}
        for filename in current_files:
            if filename not in target_files:
                self.worktree.delete(filename)
        for filename, blob in blobs.items():
            self.worktree.write(filename, blob.content)
        logger.debug("Restored snapshot of %d files", len(blobs))
