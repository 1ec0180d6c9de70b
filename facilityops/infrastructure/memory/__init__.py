"""
In-Memory Store
===============

Process-local key/value tables used when `store_backend=memory` (local demos
and tests). Repositories built on top of it honour the same conditional-update
contract as the SQL implementations.
"""

import asyncio
from collections.abc import Callable, Iterator, MutableMapping
from typing import Any, Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class InMemoryTable(Generic[K, V]):
    """Simple in-memory key/value table."""

    def __init__(self) -> None:
        self._rows: MutableMapping[K, V] = {}

    def put(self, key: K, value: V) -> None:
        self._rows[key] = value

    def get(self, key: K) -> V | None:
        return self._rows.get(key)

    def delete(self, key: K) -> bool:
        return self._rows.pop(key, None) is not None

    def all(self) -> list[V]:
        return list(self._rows.values())

    def where(self, predicate: Callable[[V], bool]) -> list[V]:
        return [v for v in self._rows.values() if predicate(v)]

    def compare_and_set(
        self,
        key: K,
        expected: Callable[[V], bool],
        value: V,
    ) -> bool:
        """
        Replace the row only if the stored value still satisfies `expected`.

        There is no await between the check and the write, so callers on the
        same event loop cannot interleave here.
        """
        current = self._rows.get(key)
        if current is None or not expected(current):
            return False
        self._rows[key] = value
        return True

    def clear(self) -> None:
        self._rows.clear()

    def __iter__(self) -> Iterator[V]:
        return iter(self._rows.values())

    def __len__(self) -> int:
        return len(self._rows)


class InMemoryStore:
    """Named tables shared by every in-memory repository of one application."""

    def __init__(self) -> None:
        self._tables: dict[str, InMemoryTable[Any, Any]] = {}

    def table(self, name: str) -> InMemoryTable[Any, Any]:
        if name not in self._tables:
            self._tables[name] = InMemoryTable()
        return self._tables[name]

    async def suspend(self) -> None:
        """Yield to the event loop the way a real store round-trip would."""
        await asyncio.sleep(0)

    def clear(self) -> None:
        for table in self._tables.values():
            table.clear()
