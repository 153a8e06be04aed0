"""Disk-backed KV store using diskcache."""

import logging
from typing import Iterable, Mapping, cast

from diskcache import Cache as DiskCache

from .base import KVStore, check_bytes

logger = logging.getLogger(__name__)


class Disk(KVStore):
    """KV store backed by diskcache (SQLite + mmap).

    Eviction is disabled: objects are write-once and must live as long
    as the repository, so the cache never culls entries regardless of
    size.
    """

    def __init__(self, directory: str) -> None:
        self.directory = str(directory)
        self.store = DiskCache(self.directory, eviction_policy="none")
        logger.debug("Opened disk store at %s", self.directory)

    def get(self, key: str) -> bytes | None:
        return cast(bytes | None, self.store.get(key))

    def set(self, key: str, value: bytes) -> None:
        check_bytes(value)
        self.store[key] = value

    def get_many(self, *args: str) -> Mapping[str, bytes]:
        return {k: v for k in args if (v := self.get(k)) is not None}

    def set_many(self, **kwargs: bytes) -> None:
        for key, value in kwargs.items():
            check_bytes(value, key)
        # One SQLite transaction: a crash leaves either all or none.
        with self.store.transact():
            for key, value in kwargs.items():
                self.store[key] = value

    def keys(self) -> Iterable[str]:
        for key in self.store.iterkeys():
            yield str(key)

    def __contains__(self, key: str) -> bool:
        return key in self.store

    def close(self) -> None:
        self.store.close()
