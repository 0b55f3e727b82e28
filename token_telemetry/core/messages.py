"""
Message tree traversal.

The chat core supplies conversation history as a nested tree of messages;
cumulative counts need it in conversation order.
"""

from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, TypeVar

T = TypeVar("T")

_EXHAUSTED = object()


def _default_children(node: Any) -> Iterable[Any]:
    if isinstance(node, Mapping):
        return node.get("children") or ()
    return getattr(node, "children", None) or ()


def _field(node: Any, name: str) -> Any:
    if isinstance(node, Mapping):
        return node.get(name)
    return getattr(node, name, None)


def iter_depth_first(
    nodes: Iterable[T], children: Callable[[T], Iterable[T]] = _default_children
) -> Iterator[T]:
    """Yield every node in pre-order, siblings left to right."""
    stack = [iter(nodes)]
    while stack:
        node = next(stack[-1], _EXHAUSTED)
        if node is _EXHAUSTED:
            stack.pop()
            continue
        yield node
        stack.append(iter(children(node)))


def flatten(
    nodes: Iterable[T], children: Callable[[T], Iterable[T]] = _default_children
) -> List[T]:
    """Linear, order-preserving depth-first traversal of a tree."""
    return list(iter_depth_first(nodes, children))


def cumulative_tokens(messages: Optional[Iterable[Any]], message_id: Optional[str]) -> int:
    """Total ``tokenCount`` of the conversation up to and including ``message_id``.

    Messages may be mappings or objects exposing ``messageId``/``message_id``,
    ``tokenCount``/``token_count`` and ``children``. If the id never appears,
    every message is counted.
    """
    if not messages:
        return 0

    total = 0
    for message in iter_depth_first(messages):
        count = _field(message, "tokenCount") or _field(message, "token_count")
        if count:
            total += count
        current = _field(message, "messageId") or _field(message, "message_id")
        if message_id is not None and current == message_id:
            break
    return total
