"""Build flame graphs of memory use grouped by key segments."""

from __future__ import annotations

from collections import deque
from typing import Any, Iterable, Sequence

from .flameweb import FlameItem, FlameServer, web
from .model import BaseObject

TRIM_THRESHOLD = 1000
"""Minimum number of keys at which small leaves are folded together."""

BIG_NODE_THRESHOLD = 1024 * 1024
"""Leaves at least this large are never folded."""

DEFAULT_PORT = 16379


def split(key: str, separators: Sequence[str] | None = None) -> list[str]:
    """Split ``key`` on any of ``separators``; the default separator is ":"."""
    seps = list(separators or [])
    sep = seps[0] if seps else ":"
    for other in seps[1:]:
        key = key.replace(other, sep)
    if sep == "":
        return list(key)
    return key.split(sep)


def add_object(root: FlameItem, separators: Sequence[str] | None, obj: BaseObject) -> None:
    """Add the size of ``obj`` to every frame on the path of its database and key."""
    node = root
    for part in (f"db:{obj.db}", *split(obj.key, separators)):
        child = node.children.get(part)
        if child is None:
            child = FlameItem(part)
            node.add_child(child)
        node = child
        node.value += obj.size


def trim_data(root: FlameItem) -> None:
    """Fold each frame's small leaves into a single "others" child."""
    queue = deque([root])
    while queue:
        node = queue.popleft()
        leaf_sum = 0
        for name, child in list(node.children.items()):
            if not child.children and child.value < BIG_NODE_THRESHOLD:
                del node.children[name]
                leaf_sum += child.value
            else:
                queue.append(child)
        if leaf_sum > 0:
            node.add_child(FlameItem("others", leaf_sum))


def _collect(objects: Any) -> Iterable[BaseObject]:
    parse = getattr(objects, "parse", None)
    if not callable(parse):
        return objects
    collected: list[BaseObject] = []

    def keep(obj: BaseObject) -> bool:
        collected.append(obj)
        return True

    parse(keep)
    return collected


def build_flame_tree(objects: Any, separators: Sequence[str] | None = None) -> FlameItem:
    """Build the frame tree from objects or from a decoder with a ``parse`` method."""
    root = FlameItem("root")
    count = 0
    for obj in _collect(objects):
        count += 1
        add_object(root, separators, obj)
    root.value = sum(child.value for child in root.children.values())
    if count >= TRIM_THRESHOLD:
        trim_data(root)
    return root


def flame_graph(
    objects: Any,
    port: int = 0,
    separators: Sequence[str] | None = None,
) -> FlameServer:
    """Serve a flame graph of ``objects``; port 0 means the default port."""
    if not port:
        port = DEFAULT_PORT
    root = build_flame_tree(objects, separators)
    return web(root.to_json().encode("utf-8"), port)