import random
from dataclasses import dataclass

from rdbkit.toplist import TopList


@dataclass
class Item:
    key: str
    size: int


def test_top_list_matches_sorted():
    rng = random.Random(42)
    top_n = 100
    n = top_n * 10
    objects = [Item(str(i), rng.randrange(n * 10)) for i in range(n)]
    top = TopList(top_n)
    for obj in objects:
        top.add(obj)
    expected = sorted(objects, key=lambda o: o.size, reverse=True)
    assert len(top) == top_n
    assert [o.size for o in top.items] == [o.size for o in expected[:top_n]]


def test_equal_sizes_newest_first():
    top = TopList(5)
    first, second = Item("first", 5), Item("second", 5)
    top.add(first)
    top.add(second)
    assert [o.key for o in top] == ["second", "first"]


def test_capacity_drops_smallest():
    top = TopList(2)
    for size in (3, 9, 1, 7):
        top.add(Item(str(size), size))
    assert [o.size for o in top.items] == [9, 7]


def test_custom_key():
    top = TopList(3, key=len)
    for word in ("aa", "a", "aaaa", "aaa"):
        top.add(word)
    assert top.items == ["aaaa", "aaa", "aa"]


def test_items_is_a_copy():
    top = TopList(3)
    top.add(Item("x", 1))
    snapshot = top.items
    snapshot.clear()
    assert len(top) == 1