"""Abstract KV store interface."""

from abc import ABC, abstractmethod
from typing import Iterable, Mapping


class KVStore(ABC):
    """Key-value store operating on bytes only.

    Objects and repository state are pickled by the layers above
    (``ObjectStore``, ``ReferenceStore``, ``StagingIndex``); backends
    only ever see bytes. ``set_many`` must be all-or-nothing: the
    repository relies on it to replace HEAD, branches and the staging
    index in one step.
    """

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Get bytes value for key, or None if not found."""

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Set bytes value for key."""

    @abstractmethod
    def get_many(self, *args: str) -> Mapping[str, bytes]:
        """Get multiple keys, returning only keys that exist."""

    @abstractmethod
    def set_many(self, **kwargs: bytes) -> None:
        """Atomically set multiple key-value pairs."""

    @abstractmethod
    def keys(self) -> Iterable[str]:
        """Iterate over all keys."""

    @abstractmethod
    def __contains__(self, key: str) -> bool:
        """Check if key exists in store."""

    def keys_with_prefix(self, prefix: str) -> Iterable[str]:
        """Iterate over keys starting with ``prefix``."""
        for key in self.keys():
            if isinstance(key, str) and key.startswith(prefix):
                yield key

    def close(self) -> None:
        """Release any resources held by the backend."""


def check_bytes(value: object, key: str | None = None) -> None:
    if not isinstance(value, bytes):
        where = f" for {key}" if key is not None else ""
        raise TypeError(f"Expected bytes{where}, got {type(value).__name__}")
