"""
Document Query Interface - structural queries over a profile page snapshot

The cascade never touches a parser or a browser directly; it talks to a
`Document`. Two implementations exist:

- StaticDocument: selectolax parse of an HTML string (files, httpx fetches).
  There is no rendering engine, so vertical geometry is approximated by
  stacking leaf text elements in document order.
- PageDocument (fetchers/playwright.py): a live Playwright page with real
  bounding boxes.

Mutation notifications are modelled as batches of "nodes added under some
ancestor" delivered to subscribers until the subscription is cancelled.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from selectolax.parser import HTMLParser, Node


LINE_HEIGHT_PX = 24
CHARS_PER_LINE = 80
MIN_VIEWPORT_PX = 800

SKIP_TAGS = {"script", "style", "noscript", "template", "head", "title", "meta", "link"}

# Formatting tags that stay inside one text fragment
INLINE_TAGS = {"br", "wbr", "strong", "b", "em", "i", "u", "a", "small", "mark", "code", "sub", "sup", "abbr"}


@dataclass(frozen=True)
class Fragment:
    """Leaf text fragment with its approximate vertical offset."""
    text: str
    top: float


class Document(Protocol):
    url: str

    def query_first(self, selector: str, root: Any = None) -> Any: ...

    def query_all(self, selector: str, root: Any = None) -> List[Any]: ...

    def text(self, node: Any) -> str: ...

    def attr(self, node: Any, name: str) -> Optional[str]: ...

    def closest(self, node: Any, tag: str) -> Any: ...

    def vertical_offset(self, node: Any) -> Optional[float]: ...

    def viewport_height(self) -> float: ...

    def text_fragments(self) -> List[Fragment]: ...


def normalize_space(s: str | None) -> str:
    return " ".join((s or "").split())


def _element_children(node: Node) -> List[Node]:
    return [c for c in node.iter(include_text=False) if not (c.tag or "").startswith(("-", "_"))]


def _is_text_block(node: Node) -> bool:
    """True when every descendant element is inline formatting (or there is none)."""
    for child in _element_children(node):
        if (child.tag or "").lower() not in INLINE_TAGS or not _is_text_block(child):
            return False
    return True


class StaticDocument:
    """selectolax-backed snapshot of an HTML page."""

    def __init__(self, html: str, url: str = "") -> None:
        self.url = url
        self.parser = HTMLParser(html or "")
        self._offsets: Dict[int, float] | None = None
        self._fragments: List[Fragment] = []
        self._height: float = 0.0

    # -------------------------
    # Structural queries
    # -------------------------
    def query_first(self, selector: str, root: Node | None = None) -> Node | None:
        try:
            if root is None:
                return self.parser.css_first(selector)
            return root.css_first(selector)
        except Exception:
            # Unsupported selector syntax behaves as "no match"
            return None

    def query_all(self, selector: str, root: Node | None = None) -> List[Node]:
        try:
            if root is None:
                return list(self.parser.css(selector))
            return list(root.css(selector))
        except Exception:
            return []

    def text(self, node: Node | None) -> str:
        if node is None:
            return ""
        return normalize_space(node.text(deep=True))

    def attr(self, node: Node | None, name: str) -> Optional[str]:
        if node is None:
            return None
        return (node.attributes or {}).get(name)

    def closest(self, node: Node | None, tag: str) -> Node | None:
        cur = node
        tag = tag.lower()
        while cur is not None:
            if (cur.tag or "").lower() == tag:
                return cur
            cur = cur.parent
        return None

    # -------------------------
    # Approximate geometry
    # -------------------------
    def _layout(self) -> None:
        if self._offsets is not None:
            return
        offsets: Dict[int, float] = {}
        fragments: List[Fragment] = []
        current = 0.0
        root = self.parser.body or self.parser.root
        stack: List[Node] = [root] if root is not None else []
        while stack:
            node = stack.pop()
            tag = (node.tag or "").lower()
            if tag in SKIP_TAGS or tag.startswith(("-", "_")):
                continue
            offsets[node.mem_id] = current
            children = _element_children(node)
            if _is_text_block(node):
                inline = list(children)
                while inline:
                    child = inline.pop()
                    offsets[child.mem_id] = current
                    inline.extend(_element_children(child))
                txt = normalize_space(node.text(deep=True, separator=" "))
                if txt:
                    fragments.append(Fragment(text=txt, top=current))
                    current += LINE_HEIGHT_PX * math.ceil(len(txt) / CHARS_PER_LINE)
                continue
            stack.extend(reversed(children))
        self._offsets = offsets
        self._fragments = fragments
        self._height = max(float(MIN_VIEWPORT_PX), current)

    def vertical_offset(self, node: Node | None) -> Optional[float]:
        if node is None:
            return None
        self._layout()
        return self._offsets.get(node.mem_id)

    def viewport_height(self) -> float:
        """Whole stacked page height; the static page is one tall viewport."""
        self._layout()
        return self._height

    def text_fragments(self) -> List[Fragment]:
        self._layout()
        return list(self._fragments)


@dataclass(frozen=True)
class MutationBatch:
    """A batch of mutation records reduced to what the scheduler needs."""
    added_nodes: int
    target: Optional[str] = None


MutationCallback = Callable[[MutationBatch], None]


class Subscription:
    """Handle returned by a mutation source; cancel() stops delivery."""

    def __init__(self, on_cancel: Callable[["Subscription"], None]) -> None:
        self._on_cancel = on_cancel
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._on_cancel(self)


class ManualMutationSource:
    """In-process mutation source; batches are pushed with emit()."""

    def __init__(self) -> None:
        self._subscribers: Dict[int, MutationCallback] = {}
        self._subs: Dict[int, Subscription] = {}

    def subscribe(self, callback: MutationCallback) -> Subscription:
        sub = Subscription(self._remove)
        self._subscribers[id(sub)] = callback
        self._subs[id(sub)] = sub
        return sub

    def _remove(self, sub: Subscription) -> None:
        self._subscribers.pop(id(sub), None)
        self._subs.pop(id(sub), None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, batch: MutationBatch) -> None:
        for key, cb in list(self._subscribers.items()):
            sub = self._subs.get(key)
            if sub is not None and sub.active:
                cb(batch)
