from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar, overload

T = TypeVar("T")


class OrderedUniqueList(list[T]):
    """List that preserves insertion order while preventing duplicates.

    Mesh objects keep their parent/child relations in these lists: a vertex
    bounds a surface at most once and a body lists each of its surfaces once,
    but the relation order is meaningful (surface order drives neighbour
    ordering, body order drives serialization).
    """

    def __init__(self, iterable: Iterable[T] | None = None):
        super().__init__()
        if iterable is not None:
            self.update(iterable)

    def add(self, item: T) -> bool:
        """Append ``item`` unless present; return whether it was added."""
        if item in self:
            return False
        super().append(item)
        return True

    def update(self, items: Iterable[T]) -> None:
        for item in items:
            self.add(item)

    def discard(self, item: T) -> bool:
        """Remove ``item`` if present; return whether it was removed."""
        if item not in self:
            return False
        super().remove(item)
        return True

    def append(self, item: T) -> None:  # type: ignore[override]
        self.add(item)

    def extend(self, items: Iterable[T]) -> None:  # type: ignore[override]
        self.update(items)

    def insert(self, index: int, item: T) -> None:  # type: ignore[override]
        if item in self:
            return
        super().insert(index, item)

    @overload
    def __getitem__(self, index: int) -> T: ...

    @overload
    def __getitem__(self, index: slice) -> "OrderedUniqueList[T]": ...

    def __getitem__(self, index):  # type: ignore[override]
        out = super().__getitem__(index)
        if isinstance(index, slice):
            return OrderedUniqueList(out)
        return out

    def copy(self) -> "OrderedUniqueList[T]":
        return OrderedUniqueList(self)
