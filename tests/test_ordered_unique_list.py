import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.ordered_unique_list import OrderedUniqueList


def test_add_preserves_order_and_rejects_duplicates():
    items = OrderedUniqueList([3, 1, 3, 2, 1])
    assert list(items) == [3, 1, 2]
    assert items.add(4) is True
    assert items.add(3) is False
    assert list(items) == [3, 1, 2, 4]


def test_list_mutators_keep_items_unique():
    items = OrderedUniqueList()
    items.append("a")
    items.append("a")
    items.extend(["b", "a", "c"])
    items.insert(0, "c")
    items.insert(0, "z")
    assert list(items) == ["z", "a", "b", "c"]


def test_discard_reports_removal():
    items = OrderedUniqueList(["a", "b"])
    assert items.discard("a") is True
    assert items.discard("a") is False
    assert list(items) == ["b"]


def test_slices_and_copies_stay_unique_lists():
    items = OrderedUniqueList([1, 2, 3])
    head = items[:2]
    assert isinstance(head, OrderedUniqueList)
    assert list(head) == [1, 2]
    clone = items.copy()
    clone.add(4)
    assert list(items) == [1, 2, 3]
    assert isinstance(clone, OrderedUniqueList)


def test_objects_without_equality_are_tracked_by_identity():
    class Token:
        pass

    a, b = Token(), Token()
    items = OrderedUniqueList([a, b, a])
    assert len(items) == 2
    assert items.discard(b) is True
    assert items[0] is a
