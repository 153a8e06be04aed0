"""Write-once storage of blobs and commits by content id."""

import logging
import pickle
from types import MappingProxyType
from typing import Iterator

from .errors import CommitNotFound, ObjectNotFound
from .kv.base import KVStore
from .objects import Blob, Commit

BLOB_KEY = "__blob__%s"
COMMIT_KEY = "__commit__%s"

logger = logging.getLogger(__name__)


class ObjectStore:
    """Persists immutable ``Blob`` and ``Commit`` objects in a KV store.

    Objects are keyed by their id and never updated or deleted.
    Storing an object that is already present is a no-op.
    """

    def __init__(self, store: KVStore) -> None:
        self.store = store

    # -- Write operations --

    def put(self, obj: Blob | Commit) -> str:
        """Store one object, returning its id."""
        self.put_many(obj)
        return obj.id

    def put_many(self, *objects: Blob | Commit) -> list[str]:
        """Store several objects in one batch. Existing ones are skipped."""
        diffs: dict[str, bytes] = {}
        for obj in objects:
            key = self._key(obj)
            if key in diffs or key in self.store:
                continue
            diffs[key] = self._encode(obj)
        if diffs:
            self.store.set_many(**diffs)
            logger.debug("Stored %d new object(s)", len(diffs))
        return [obj.id for obj in objects]

    # -- Read operations --

    def has_blob(self, object_id: str) -> bool:
        return BLOB_KEY % object_id in self.store

    def has_commit(self, object_id: str) -> bool:
        return COMMIT_KEY % object_id in self.store

    def get(self, object_id: str) -> Blob | Commit:
        """Load a blob or commit by id.

        Raises:
            ObjectNotFound: If nothing is stored under ``object_id``.
        """
        if self.has_commit(object_id):
            return self.get_commit(object_id)
        return self.get_blob(object_id)

    def get_blob(self, object_id: str) -> Blob:
        raw = self.store.get(BLOB_KEY % object_id)
        if raw is None:
            raise ObjectNotFound(object_id)
        filename, content = pickle.loads(raw)
        return Blob(id=object_id, filename=filename, content=content)

    def get_commit(self, object_id: str) -> Commit:
        raw = self.store.get(COMMIT_KEY % object_id)
        if raw is None:
            raise CommitNotFound(object_id)
        fields = pickle.loads(raw)
        return Commit(
            id=object_id,
            message=fields["message"],
            timestamp=fields["timestamp"],
            parent_id=fields["parent_id"],
            second_parent_id=fields["second_parent_id"],
            files=MappingProxyType(fields["files"]),
        )

    def commit_ids(self) -> Iterator[str]:
        """Ids of every stored commit, in storage order."""
        prefix = COMMIT_KEY.replace("%s", "")
        for key in self.store.keys_with_prefix(prefix):
            yield key[len(prefix):]

    def commits(self) -> Iterator[Commit]:
        """Every stored commit, whether reachable from a branch or not."""
        for cid in self.commit_ids():
            yield self.get_commit(cid)

    def resolve_commit(self, id_or_prefix: str) -> Commit:
        """Find a commit anywhere in the store by full id or unique prefix.

        Raises:
            CommitNotFound: If no commit matches, or the prefix is
                ambiguous.
        """
        if id_or_prefix and self.has_commit(id_or_prefix):
            return self.get_commit(id_or_prefix)
        if not id_or_prefix:
            raise CommitNotFound(id_or_prefix)
        matches = [cid for cid in self.commit_ids() if cid.startswith(id_or_prefix)]
        if len(matches) != 1:
            if matches:
                logger.debug(
                    "Prefix %s is ambiguous (%d matches)", id_or_prefix, len(matches)
                )
            raise CommitNotFound(id_or_prefix)
        return self.get_commit(matches[0])

    # -- Internal --

    @staticmethod
    def _key(obj: Blob | Commit) -> str:
        if isinstance(obj, Commit):
            return COMMIT_KEY % obj.id
        return BLOB_KEY % obj.id

    @staticmethod
    def _encode(obj: Blob | Commit) -> bytes:
        if isinstance(obj, Commit):
            return pickle.dumps(obj.fields())
        return pickle.dumps((obj.filename, obj.content))
