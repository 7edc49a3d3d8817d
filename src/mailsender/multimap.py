"""Ordered mapping from keys to several values."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class MultiMap(Generic[K, V]):
    """Insertion-ordered mapping where each key holds a list of values.

    Keys keep the order in which they were first added, and values under a
    key keep the order in which they were put.

    Examples:
        >>> files = MultiMap[str, str]()
        >>> files.put("report.txt", "/tmp/a").put("report.txt", "/tmp/b")
        MultiMap({'report.txt': ['/tmp/a', '/tmp/b']})
        >>> list(files.values())
        ['/tmp/a', '/tmp/b']
    """

    __slots__ = ("_data",)

    def __init__(self) -> None:
        self._data: dict[K, list[V]] = {}

    def put(self, key: K, value: V) -> MultiMap[K, V]:
        """Append ``value`` under ``key`` and return the map."""
        self._data.setdefault(key, []).append(value)
        return self

    def get(self, key: K) -> tuple[V, ...]:
        """Return the values stored under ``key`` (empty when absent)."""
        return tuple(self._data.get(key, ()))

    def remove(self, key: K) -> tuple[V, ...]:
        """Drop ``key`` and return the values it held."""
        return tuple(self._data.pop(key, ()))

    def clear(self) -> None:
        """Remove every key."""
        self._data.clear()

    def keys(self) -> tuple[K, ...]:
        return tuple(self._data)

    def items(self) -> Iterator[tuple[K, tuple[V, ...]]]:
        """Yield ``(key, values)`` pairs in key insertion order."""
        for key, values in self._data.items():
            yield key, tuple(values)

    def entries(self) -> Iterator[tuple[K, V]]:
        """Yield one ``(key, value)`` pair per stored value, in order."""
        for key, values in self._data.items():
            for value in values:
                yield key, value

    def values(self) -> Iterator[V]:
        for _, value in self.entries():
            yield value

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[K]:
        return iter(self._data)

    def __len__(self) -> int:
        """Return the total number of stored values."""
        return sum(len(values) for values in self._data.values())

    def __bool__(self) -> bool:
        return bool(self._data)

    def __repr__(self) -> str:
        return f"MultiMap({self._data!r})"


__all__ = ["MultiMap"]
