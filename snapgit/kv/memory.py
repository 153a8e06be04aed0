"""In-memory KV store."""

from typing import Iterable, Mapping

from .base import KVStore, check_bytes


class Memory(KVStore):
    """A memory-backed KV store.

    Nothing survives the process; share one instance between
    ``Repository`` objects to simulate separate invocations.
    """

    def __init__(self) -> None:
        self.memory: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self.memory.get(key)

    def set(self, key: str, value: bytes) -> None:
        check_bytes(value)
        self.memory[key] = value

    def get_many(self, *args: str) -> Mapping[str, bytes]:
        return {key: val for key in args if (val := self.memory.get(key)) is not None}

    def set_many(self, **kwargs: bytes) -> None:
        # Validate the whole batch before touching anything.
        for key, value in kwargs.items():
            check_bytes(value, key)
        self.memory.update(kwargs)

    def keys(self) -> Iterable[str]:
        return list(self.memory.keys())

    def __contains__(self, key: str) -> bool:
        return key in self.memory
