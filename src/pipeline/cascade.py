"""
Field Selector Cascade - ordered extraction strategies per profile field

Each logical field is described declaratively by a FieldSpec holding an
ordered tuple of Strategy objects. One generic runner per field kind
evaluates the strategies strictly in order and stops at the first result
that qualifies:

- text fields: first non-empty, non-noise candidate that is not owned by a
  section reserved for another field category
- entry fields (experience/education): first container selector with hits,
  then per-entry sub-field cascades with duration/year/location guards
- list fields (skills): first strategy with non-noise items

Earlier strategies are assumed more precise for common markup, so later
strategies are never consulted once one succeeds. The runners are pure
functions of the Document snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .document import Document
from .errors import SelectorExhausted
from .relevance import BIO_SCORE_THRESHOLD, bio_score, is_noise


Predicate = Callable[[str], bool]

TEXT_KIND = "text"
ENTRIES_KIND = "entries"
LIST_KIND = "list"

# Section categories a node can belong to; data-section aliases map onto them
SECTION_CATEGORIES = ("about", "experience", "education", "skills")
SECTION_ALIASES = {"summary": "about"}

# Candidates consumed per strategy for single-valued text fields
TEXT_CANDIDATE_CAP = 5

# Last-resort biography scan
BIO_TOP_MARGIN_PX = 200
BIO_BOTTOM_MARGIN_PX = 200
BIO_MIN_CHARS = 50
BIO_MAX_CHARS = 1000


@dataclass(frozen=True)
class Strategy:
    """One query in a cascade.

    `scope` names an anchor selector; when set, the query runs inside the
    anchor's closest <section> instead of the whole document.
    """
    selector: str
    accept: Optional[Predicate] = None
    scope: Optional[str] = None


@dataclass(frozen=True)
class SubFieldSpec:
    name: str
    strategies: Tuple[Strategy, ...]
    accept: Optional[Predicate] = None
    all_matches: bool = False


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str
    strategies: Tuple[Strategy, ...]
    accept: Optional[Predicate] = None
    filter_noise: bool = True
    max_candidates: int = TEXT_CANDIDATE_CAP
    max_items: int = 1
    subfields: Tuple[SubFieldSpec, ...] = ()
    required: Optional[str] = None
    shared_sections: Tuple[str, ...] = ()
    last_resort: Optional[Callable[[Document], Optional[str]]] = None


@dataclass
class CascadeHit:
    """Winning strategy for a field (index -1 marks the last-resort scan)."""
    field: str
    value: Any
    strategy_index: int
    selector: str


@dataclass
class PrimaryResult:
    values: Dict[str, Any] = field(default_factory=dict)
    hits: Dict[str, CascadeHit] = field(default_factory=dict)
    exhausted: List[str] = field(default_factory=list)


def owning_section(doc: Document, node: Any) -> Optional[str]:
    """Category of the <section> a node sits in, if it is labelled as one."""
    section = doc.closest(node, "section")
    if section is None:
        return None
    label = (doc.attr(section, "data-section") or doc.attr(section, "id") or "").strip().lower()
    label = SECTION_ALIASES.get(label, label)
    if label in SECTION_CATEGORIES:
        return label
    anchors = ", ".join(f"#{c}" for c in SECTION_CATEGORIES)
    anchor = doc.query_first(anchors, root=section)
    if anchor is not None:
        return (doc.attr(anchor, "id") or "").lower() or None
    return None


def _reserved_elsewhere(doc: Document, node: Any, spec: FieldSpec) -> bool:
    owner = owning_section(doc, node)
    if owner is None or owner == spec.name:
        return False
    return owner not in spec.shared_sections


def _strategy_roots(doc: Document, strategy: Strategy) -> List[Any]:
    if not strategy.scope:
        return [None]
    anchor = doc.query_first(strategy.scope)
    if anchor is None:
        return []
    section = doc.closest(anchor, "section")
    return [section] if section is not None else []


def _qualifies(text: str, spec: FieldSpec, strategy: Strategy) -> bool:
    if not text:
        return False
    if spec.filter_noise and is_noise(text):
        return False
    if spec.accept is not None and not spec.accept(text):
        return False
    if strategy.accept is not None and not strategy.accept(text):
        return False
    return True


def run_text_cascade(doc: Document, spec: FieldSpec) -> CascadeHit:
    """First qualifying value for a single-valued text field.

    Raises SelectorExhausted when no strategy (including the last-resort
    hook) produced a qualifying value.
    """
    for idx, strategy in enumerate(spec.strategies):
        for root in _strategy_roots(doc, strategy):
            nodes = doc.query_all(strategy.selector, root=root)[: spec.max_candidates]
            for node in nodes:
                text = doc.text(node)
                if not _qualifies(text, spec, strategy):
                    continue
                if _reserved_elsewhere(doc, node, spec):
                    continue
                return CascadeHit(field=spec.name, value=text, strategy_index=idx, selector=strategy.selector)
    if spec.last_resort is not None:
        value = spec.last_resort(doc)
        if value:
            print(f"[cascade] {spec.name}: selectors exhausted, using text scan @ {doc.url}")
            return CascadeHit(field=spec.name, value=value, strategy_index=-1, selector="<bio-scan>")
    raise SelectorExhausted(spec.name)


def _subfield_value(doc: Document, container: Any, sub: SubFieldSpec) -> str:
    for strategy in sub.strategies:
        if sub.all_matches:
            nodes = doc.query_all(strategy.selector, root=container)
        else:
            first = doc.query_first(strategy.selector, root=container)
            nodes = [first] if first is not None else []
        for node in nodes:
            text = doc.text(node)
            if not text:
                continue
            if sub.accept is not None and not sub.accept(text):
                continue
            if strategy.accept is not None and not strategy.accept(text):
                continue
            return text
    return ""


def run_entry_cascade(doc: Document, spec: FieldSpec) -> CascadeHit:
    """Repeated-entry field: pick the first container selector with hits.

    At most `max_candidates` containers are consumed before filtering;
    entries whose required sub-field is empty are dropped.
    """
    for idx, strategy in enumerate(spec.strategies):
        containers: List[Any] = []
        for root in _strategy_roots(doc, strategy):
            containers.extend(doc.query_all(strategy.selector, root=root))
        if not containers:
            continue
        entries: List[Dict[str, str]] = []
        for container in containers[: spec.max_candidates]:
            entry = {sub.name: _subfield_value(doc, container, sub) for sub in spec.subfields}
            if spec.required and not entry.get(spec.required):
                continue
            entries.append(entry)
        return CascadeHit(field=spec.name, value=entries[: spec.max_items], strategy_index=idx, selector=strategy.selector)
    raise SelectorExhausted(spec.name)


def run_list_cascade(doc: Document, spec: FieldSpec) -> CascadeHit:
    for idx, strategy in enumerate(spec.strategies):
        items: List[str] = []
        for root in _strategy_roots(doc, strategy):
            for node in doc.query_all(strategy.selector, root=root)[: spec.max_candidates]:
                text = doc.text(node)
                if _qualifies(text, spec, strategy) and text not in items:
                    items.append(text)
        if items:
            return CascadeHit(field=spec.name, value=items[: spec.max_items], strategy_index=idx, selector=strategy.selector)
    raise SelectorExhausted(spec.name)


_RUNNERS = {
    TEXT_KIND: run_text_cascade,
    ENTRIES_KIND: run_entry_cascade,
    LIST_KIND: run_list_cascade,
}


def run_field(doc: Document, spec: FieldSpec) -> CascadeHit:
    try:
        runner = _RUNNERS[spec.kind]
    except KeyError:
        raise ValueError(f"unknown field kind: {spec.kind}")
    return runner(doc, spec)


def extract_primary(doc: Document, table: Dict[str, FieldSpec]) -> PrimaryResult:
    """Run every field cascade in the table against one snapshot.

    Exhausted fields resolve to an empty value (None or []).
    """
    result = PrimaryResult()
    for name, spec in table.items():
        try:
            hit = run_field(doc, spec)
        except SelectorExhausted:
            result.exhausted.append(name)
            result.values[name] = None if spec.kind == TEXT_KIND else []
            continue
        result.values[name] = hit.value
        result.hits[name] = hit
    return result


def find_bio_candidate(
    doc: Document,
    *,
    top_margin: float = BIO_TOP_MARGIN_PX,
    bottom_margin: float = BIO_BOTTOM_MARGIN_PX,
    min_chars: int = BIO_MIN_CHARS,
    max_chars: int = BIO_MAX_CHARS,
    threshold: int = BIO_SCORE_THRESHOLD,
) -> Optional[str]:
    """Best-effort biography scan over every leaf text fragment.

    Keeps fragments strictly between the header and footer margins, with
    length in [min_chars, max_chars), that are not noise, and returns the
    highest bio_score above the threshold (first in document order on ties).
    """
    lower = top_margin
    upper = doc.viewport_height() - bottom_margin
    best: Optional[str] = None
    best_score = threshold
    for frag in doc.text_fragments():
        if not (lower < frag.top < upper):
            continue
        if not (min_chars <= len(frag.text) < max_chars):
            continue
        if is_noise(frag.text):
            continue
        score = bio_score(frag.text)
        if score > best_score:
            best, best_score = frag.text, score
    return best
