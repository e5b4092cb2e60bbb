"""Sorted key/value table for keys with tolerance-aware ordering.

Keys only need `<` and `==`. Lookups bisect on `<`, the way a balanced-tree map
does, so keys that compare equal under their tolerance land in one slot.
"""

from __future__ import annotations

import bisect
from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class OrderedTable(Generic[K, V]):
  """Ordered mapping from tolerance-compared keys to values.

  The first key inserted into a neighbourhood is kept; later writes to an equal
  key replace the value only.
  """

  __slots__ = ("_keys", "_values")

  def __init__(self) -> None:
    self._keys: list[K] = []
    self._values: list[V] = []

  def locate(self, key: K) -> tuple[int, bool]:
    """Return the insertion index of `key` and whether an equal key sits there."""
    index = bisect.bisect_left(self._keys, key)
    found = index < len(self._keys) and self._keys[index] == key
    return index, found

  def get(self, key: K, default: V | None = None) -> V | None:
    index, found = self.locate(key)
    return self._values[index] if found else default

  def set(self, key: K, value: V) -> None:
    index, found = self.locate(key)
    if found:
      self._values[index] = value
    else:
      self._keys.insert(index, key)
      self._values.insert(index, value)

  def merge(self, key: K, value: V, combine: Callable[[V, V], V]) -> None:
    """Store `combine(old, value)` if `key` exists, else store `value`."""
    index, found = self.locate(key)
    if found:
      self._values[index] = combine(self._values[index], value)
    else:
      self._keys.insert(index, key)
      self._values.insert(index, value)

  def setdefault(self, key: K, factory: Callable[[], V]) -> V:
    index, found = self.locate(key)
    if not found:
      self._keys.insert(index, key)
      self._values.insert(index, factory())
    return self._values[index]

  def pop(self, key: K) -> V | None:
    index, found = self.locate(key)
    if not found:
      return None
    del self._keys[index]
    return self._values.pop(index)

  def replace_at(self, index: int, value: V) -> None:
    self._values[index] = value

  def key_at(self, index: int) -> K:
    return self._keys[index]

  def value_at(self, index: int) -> V:
    return self._values[index]

  def keys(self) -> list[K]:
    return list(self._keys)

  def values(self) -> list[V]:
    return list(self._values)

  def items(self) -> Iterator[tuple[K, V]]:
    return zip(self._keys, self._values, strict=True)

  def clear(self) -> None:
    self._keys.clear()
    self._values.clear()

  def copy(self) -> OrderedTable[K, V]:
    table: OrderedTable[K, V] = OrderedTable()
    table._keys = list(self._keys)
    table._values = list(self._values)
    return table

  def __len__(self) -> int:
    return len(self._keys)

  def __bool__(self) -> bool:
    return bool(self._keys)
