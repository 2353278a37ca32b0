"""A bounded content-addressed object store with deduplication."""

from __future__ import annotations

from .fnv import fnv1a_64

MAX_OBJECTS = 64
MAX_OBJ_SIZE = 4096


class ObjectStoreFull(Exception):
    """Raised when a new object is stored in a store already at capacity."""


class ObjectStore:
    """Objects keyed by the 64-bit FNV-1a hash of their contents."""

    def __init__(self) -> None:
        self._objects: dict[int, bytes] = {}

    @property
    def capacity(self) -> int:
        """The number of objects the store can hold."""
        return MAX_OBJECTS

    def put(self, data: bytes) -> tuple[int, bool]:
        """Store ``data`` (truncated to 4096 bytes).

        Returns the object id and whether the object was new. Storing
        contents already present succeeds even when the store is full.
        """
        data = bytes(data[:MAX_OBJ_SIZE])
        object_id = fnv1a_64(data)
        if object_id in self._objects:
            return object_id, False
        if len(self._objects) >= MAX_OBJECTS:
            raise ObjectStoreFull("store full")
        self._objects[object_id] = data
        return object_id, True

    def get(self, object_id: int) -> bytes | None:
        """The contents stored under ``object_id``, or None."""
        return self._objects.get(object_id)

    def delete(self, object_id: int) -> None:
        """Remove ``object_id``; raises KeyError when it is absent."""
        try:
            del self._objects[object_id]
        except KeyError:
            raise KeyError(object_id) from None

    def total_bytes(self) -> int:
        """The combined size of all stored objects."""
        return sum(len(data) for data in self._objects.values())

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._objects