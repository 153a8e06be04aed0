"""Three-way merge of a branch into the current branch."""

import logging
from dataclasses import dataclass, field
from typing import Mapping

from .errors import (
    AlreadyAncestor,
    MergeConflict,
    SelfMerge,
    UncommittedChanges,
)
from .graph import CommitGraph
from .object_store import ObjectStore
from .objects import Commit, make_blob
from .refs import ReferenceStore
from .snapshot import SnapshotEngine
from .staging import StagingIndex
from .worktree import WorkingTree

CONFLICT_START = b"<<<<<<< HEAD\n"
CONFLICT_SEPARATOR = b"=======\n"
CONFLICT_END = b">>>>>>>\n"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergePlan:
    """Per-file outcome of a three-way classification.

    Files in none of the mappings keep their current state.
    """

    take: dict[str, str] = field(default_factory=dict)
    """filename -> incoming blob id to stage."""
    remove: dict[str, str] = field(default_factory=dict)
    """filename -> current blob id to stage for removal."""
    conflicts: dict[str, tuple[str | None, str | None]] = field(default_factory=dict)
    """filename -> (current blob id, incoming blob id); None when absent."""

    @property
    def conflicting_files(self) -> frozenset[str]:
        return frozenset(self.conflicts)


@dataclass(frozen=True)
class MergeResult:
    """Result of a merge operation."""

    strategy: str  # "fast_forward", "three_way"
    commit: str


def classify(
    current: Mapping[str, str],
    split: Mapping[str, str],
    incoming: Mapping[str, str],
) -> MergePlan:
    """Decide what happens to every file named by any of the three commits.

    Each mapping is a commit's filename -> blob id. For every file:

    - same on both sides (including absent from both): keep;
    - unchanged in current since the split: take incoming's version,
      or remove it if incoming deleted it;
    - unchanged in incoming since the split: keep current's version;
    - otherwise both sides changed it differently: conflict.
    """
    plan = MergePlan()
    for filename in sorted(set(current) | set(split) | set(incoming)):
        ours = current.get(filename)
        base = split.get(filename)
        theirs = incoming.get(filename)

        if ours == theirs:
            continue
        if base == ours:
            if theirs is None:
                plan.remove[filename] = ours  # type: ignore[assignment]
            else:
                plan.take[filename] = theirs
            continue
        if base == theirs:
            continue
        plan.conflicts[filename] = (ours, theirs)
    return plan


def conflict_content(ours: bytes | None, theirs: bytes | None) -> bytes:
    """Both versions of a file between conflict markers, ours first."""
    return b"".join(
        (CONFLICT_START, ours or b"", CONFLICT_SEPARATOR, theirs or b"", CONFLICT_END)
    )


class MergeEngine:
    """Merges a named branch into the checked-out branch."""

    def __init__(
        self,
        objects: ObjectStore,
        graph: CommitGraph,
        refs: ReferenceStore,
        staging: StagingIndex,
        worktree: WorkingTree,
        snapshots: SnapshotEngine,
    ) -> None:
        self.objects = objects
        self.graph = graph
        self.refs = refs
        self.staging = staging
        self.worktree = worktree
        self.snapshots = snapshots

    def merge(self, branch: str, *, timestamp: float | None = None) -> MergeResult:
        """Merge ``branch`` into the current branch.

        Returns:
            A MergeResult. ``fast_forward`` when the current commit is
            an ancestor of the branch (no new commit), otherwise
            ``three_way`` with the id of the new merge commit.

        Raises:
            BranchNotFound: If ``branch`` does not exist.
            UncommittedChanges: If the staging index is not empty.
            SelfMerge: If ``branch`` is the current branch.
            UntrackedConflict: If an untracked file is in the way.
            AlreadyAncestor: If ``branch`` is already merged.
            MergeConflict: After committing, if any file conflicted.
        """
        head = self.refs.get_head()
        incoming_id = self.refs.get_branch(branch)
        current = self.objects.get_commit(head.commit_id)
        incoming = self.objects.get_commit(incoming_id)

        if not self.staging.is_empty():
            raise UncommittedChanges()
        if branch == head.branch:
            raise SelfMerge()
        self.snapshots.check_untracked(incoming.files, current.files)
        if self.graph.is_ancestor(incoming.id, current.id):
            raise AlreadyAncestor()
        if self.graph.is_ancestor(current.id, incoming.id):
            return self._fast_forward(branch, current, incoming)

        split_id = self.graph.lowest_common_ancestor(current.id, incoming.id)
        split = self.objects.get_commit(split_id)
        plan = classify(current.files, split.files, incoming.files)
        logger.debug(
            "Merge plan for %s: take=%s remove=%s conflicts=%s",
            branch,
            sorted(plan.take),
            sorted(plan.remove),
            sorted(plan.conflicts),
        )
        self._apply(plan, current)

        message = f"Merged {branch} into {head.branch}."
        commit = self.snapshots.commit(
            message, second_parent=incoming.id, timestamp=timestamp
        )
        logger.info("Merged %s into %s as %s", branch, head.branch, commit.id[:7])
        if plan.conflicts:
            raise MergeConflict(plan.conflicting_files, commit.id)
        return MergeResult(strategy="three_way", commit=commit.id)

    def _fast_forward(
        self, branch: str, current: Commit, incoming: Commit
    ) -> MergeResult:
        self.snapshots.restore_snapshot(incoming.files, current.files)
        self.refs.advance(incoming.id)
        self.staging.clear()
        logger.info(
            "Fast-forwarded %s to %s of %s",
            self.refs.current_branch,
            incoming.id[:7],
            branch,
        )
        return MergeResult(strategy="fast_forward", commit=incoming.id)

    def _apply(self, plan: MergePlan, current: Commit) -> None:
        """Stage the plan and update the working directory.

        Conflict files are always written. Taken and removed files only
        reach the working directory when nothing conflicted; otherwise
        they are recorded in the merge commit alone.
        """
        for filename, blob_id in plan.take.items():
            self.staging.stage_add(filename, blob_id, current.files)
        for filename, blob_id in plan.remove.items():
            self.staging.stage_removal(filename, blob_id)

        if not plan.conflicts:
            for filename, blob_id in plan.take.items():
                self.worktree.write(filename, self.objects.get_blob(blob_id).content)
            for filename in plan.remove:
                self.worktree.delete(filename)
            return

        conflict_blobs = []
        for filename, (ours, theirs) in plan.conflicts.items():
            content = conflict_content(
                self.objects.get_blob(ours).content if ours else None,
                self.objects.get_blob(theirs).content if theirs else None,
            )
            blob = make_blob(filename, content)
            conflict_blobs.append(blob)
            self.worktree.write(filename, content)
            self.staging.stage_add(filename, blob.id, current.files)
        self.objects.put_many(*conflict_blobs)
