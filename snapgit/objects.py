"""Immutable, content-addressed objects: blobs and commits."""

import hashlib
import pickle
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

INITIAL_MESSAGE = "initial commit"


def blob_id(filename: str, content: bytes) -> str:
    """Content hash of a file's name and bytes.

    The filename is part of the identity, so identical content under
    two names is stored twice.
    """
    h = hashlib.sha256()
    h.update(pickle.dumps(filename))
    h.update(content)
    return h.hexdigest()


def commit_id(
    message: str,
    timestamp: float,
    parent_id: str | None,
    second_parent_id: str | None,
    files: Mapping[str, str],
) -> str:
    """Compute a content-addressable commit hash.

    Hashes the parent pointers, the sorted file mapping, the message and
    the timestamp. Must only be called with final field values.
    """
    h = hashlib.sha256()
    h.update(pickle.dumps((parent_id, second_parent_id)))
    h.update(pickle.dumps(sorted(files.items())))
    h.update(pickle.dumps(message))
    h.update(pickle.dumps(float(timestamp)))
    return h.hexdigest()


@dataclass(frozen=True)
class Blob:
    """One file's bytes as they were when staged."""

    id: str
    filename: str
    content: bytes = field(repr=False)


@dataclass(frozen=True)
class Commit:
    """A snapshot of the tracked files plus metadata and parent links.

    Build with ``make_commit``; the id is computed there, once, from
    the final field values. ``files`` is a read-only mapping.
    """

    id: str
    message: str
    timestamp: float
    parent_id: str | None
    second_parent_id: str | None
    files: Mapping[str, str] = field(repr=False, hash=False)

    @property
    def parents(self) -> tuple[str, ...]:
        """Parent ids, first parent first."""
        return tuple(
            p for p in (self.parent_id, self.second_parent_id) if p is not None
        )

    @property
    def is_merge(self) -> bool:
        return self.second_parent_id is not None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def fields(self) -> dict:
        """The hashed fields, in a form suitable for pickling."""
        return {
            "message": self.message,
            "timestamp": self.timestamp,
            "parent_id": self.parent_id,
            "second_parent_id": self.second_parent_id,
            "files": dict(self.files),
        }


def make_blob(filename: str, content: bytes) -> Blob:
    return Blob(id=blob_id(filename, content), filename=filename, content=content)


def make_commit(
    message: str,
    *,
    parent_id: str | None = None,
    second_parent_id: str | None = None,
    files: Mapping[str, str] | None = None,
    timestamp: float | None = None,
) -> Commit:
    """Build an identified, immutable Commit.

    Args:
        message: Commit message.
        parent_id: First parent (None for the root commit).
        second_parent_id: Merged-in parent, for merge commits only.
        files: Final filename -> blob-id mapping. Copied.
        timestamp: POSIX seconds (default: now).

    Returns:
        A Commit whose id is the hash of exactly these fields.
    """
    if second_parent_id is not None and parent_id is None:
        raise ValueError("A merge commit needs a first parent")
    frozen_files = MappingProxyType(dict(files or {}))
    ts = time.time() if timestamp is None else float(timestamp)
    cid = commit_id(message, ts, parent_id, second_parent_id, frozen_files)
    return Commit(
        id=cid,
        message=message,
        timestamp=ts,
        parent_id=parent_id,
        second_parent_id=second_parent_id,
        files=frozen_files,
    )


def initial_commit() -> Commit:
    """The root commit every repository starts from.

    Stamped at the Unix epoch so that all repositories share it.
    """
    return make_commit(INITIAL_MESSAGE, timestamp=0.0)
