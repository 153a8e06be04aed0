"""snapgit: a local, content-addressed version-control engine."""

__version__ = "0.1.0"

from .errors import (
    AlreadyAncestor,
    MergeConflict,
    SnapgitError,
    UntrackedConflict,
)
from .graph import CommitGraph, History
from .kv.base import KVStore
from .kv.memory import Memory
from .merge import MergePlan, MergeResult, classify
from .object_store import ObjectStore
from .objects import Blob, Commit, make_blob, make_commit
from .refs import Head, ReferenceStore
from .repository import Repository, Status
from .snapshot import SnapshotEngine
from .staging import StagingIndex
from .worktree import WorkingTree

__all__ = [
    "AlreadyAncestor",
    "Blob",
    "Commit",
    "CommitGraph",
    "Head",
    "History",
    "KVStore",
    "Memory",
    "MergeConflict",
    "MergePlan",
    "MergeResult",
    "ObjectStore",
    "ReferenceStore",
    "Repository",
    "SnapgitError",
    "SnapshotEngine",
    "StagingIndex",
    "Status",
    "UntrackedConflict",
    "WorkingTree",
    "classify",
    "make_blob",
    "make_commit",
]
