"""Radix tree that aggregates key sizes by common prefix."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Iterator


@dataclass(eq=False)
class RadixNode:
    """A tree node holding the totals of every key below its prefix."""

    path: str = ""
    end: bool = False
    children: list[RadixNode] = field(default_factory=list)
    total_size: int = 0
    key_count: int = 0
    fullpath: str = ""

    @property
    def size(self) -> int:
        """Total size of all keys sharing this prefix."""
        return self.total_size


def common_prefix_len(a: str, b: str) -> int:
    """Return the length of the common prefix of ``a`` and ``b``."""
    count = 0
    for left, right in zip(a, b):
        if left != right:
            break
        count += 1
    return count


class RadixTree:
    """Prefix tree whose nodes accumulate key sizes and counts."""

    def __init__(self) -> None:
        self.root = RadixNode()

    def insert(self, word: str, size: int) -> None:
        """Insert ``word`` and add ``size`` to every prefix it passes through."""
        root = self.root
        fullword = word
        node = root
        while True:
            i = common_prefix_len(word, node.path)
            if i < len(node.path):
                split = RadixNode(
                    path=node.path[i:],
                    end=node.end,
                    children=node.children,
                    total_size=node.total_size,
                    key_count=node.key_count,
                    fullpath=node.fullpath,
                )
                node.children = [split]
                node.fullpath = node.fullpath[: len(node.fullpath) - (len(node.path) - i)]
                node.path = node.path[:i]
                node.end = False
            if i > 0 or node is root:
                node.total_size += size
                node.key_count += 1
            if i == len(word):
                node.end = True
                return
            word = word[i:]
            head = word[0]
            following = next((c for c in node.children if c.path[0] == head), None)
            if following is not None:
                node = following
                continue
            node.children.append(
                RadixNode(path=word, end=True, fullpath=fullword, total_size=size, key_count=1)
            )
            return

    def walk(self) -> Iterator[tuple[RadixNode, int]]:
        """Yield ``(node, depth)`` breadth first; the root has depth 1."""
        queue: deque[tuple[RadixNode, int]] = deque([(self.root, 1)])
        while queue:
            node, depth = queue.popleft()
            yield node, depth
            queue.extend((child, depth + 1) for child in node.children)

    def traverse(self, callback: Callable[[RadixNode, int], bool]) -> None:
        """Visit nodes breadth first until ``callback`` returns False."""
        for node, depth in self.walk():
            if not callback(node, depth):
                return


def gen_key(db: int, key: str) -> str:
    """Combine a database index and key into a tree key."""
    return f"{db} {key}"


def parse_node_key(key: str) -> tuple[int, str]:
    """Split a tree key back into ``(db, key)``; an empty key gives ``(-1, "")``."""
    if key == "":
        return -1, ""
    index = key.find(" ")
    if index < 0:
        raise ValueError(f"malformed node key: {key!r}")
    try:
        db = int(key[:index])
    except ValueError:
        db = 0
    return db, key[index + 1:]