"""
Text relevance classification for scraped profile fragments.

`is_noise` rejects navigation/boilerplate fragments (counters, buttons,
bare dates). `bio_score` ranks free-text candidates by how much they read
like a self-written biography. The duration/year/location predicates are
the small grammar used to disambiguate sub-fields inside repeated entries.
"""

from __future__ import annotations

import re
from typing import Iterable


BIO_SCORE_THRESHOLD = 3

_MONTHS = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)

# Each pattern must match the whole (trimmed, lower-cased) fragment
_NOISE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"[\d,.]+\+?\s*(followers?|connections?)"),
    re.compile(r"(followers?|connections?)\s*[\d,.]+\+?"),
    re.compile(r"(message|connect|follow|following|more)"),
    re.compile(r"view\s+(full\s+)?profile.*"),
    re.compile(r"see\s+(more|less|all)"),
    re.compile(r"show\s+(more|less|all)"),
    re.compile(r"\d+\s*(years?|yrs?)(\s*\d+\s*(months?|mos?))?"),
    re.compile(r"\d+\s*(months?|mos?)"),
    re.compile(_MONTHS + r"(\s+\d{4})?"),
    re.compile(r"\d{4}\s*[-–—]\s*(\d{4}|present)"),
    re.compile(r"\d{4}"),
    re.compile(r"present"),
    re.compile(r"[•·|]+"),
    re.compile(r"(\.{3,}|…)"),
]

SELF_DESCRIPTIVE_WORDS = [
    'passionate', 'experienced', 'dedicated', 'focused', 'specialized',
    'expertise', 'professional', 'years', 'background', 'skills',
    'leading', 'managing', 'developing', 'creating', 'building',
    'helping', 'working', 'love', 'enjoy', 'enthusiastic',
]

FIRST_PERSON_PHRASES = ['i am', 'i have', 'i work', 'i love', 'my experience', 'my passion']

ROLE_TERMS = [
    'ceo', 'cto', 'manager', 'director', 'engineer', 'developer',
    'consultant', 'analyst', 'specialist', 'coordinator', 'lead',
]


def _compile_terms(terms: Iterable[str]) -> list[re.Pattern[str]]:
    return [re.compile(r"\b" + re.escape(t).replace(r"\ ", r"\s+") + r"\b") for t in terms]


_SELF_DESCRIPTIVE_RE = _compile_terms(SELF_DESCRIPTIVE_WORDS)
_FIRST_PERSON_RE = _compile_terms(FIRST_PERSON_PHRASES)
_ROLE_RE = _compile_terms(ROLE_TERMS)

_DURATION_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\d+\s*(years?|yrs?)\b(\s*\d*\s*(months?|mos?)\b)?", re.I),
    re.compile(r"\d+\s*(months?|mos?)\b", re.I),
    re.compile(r"\d{4}\s*[-–—]\s*\d{4}", re.I),
    re.compile(r"\d{4}\s*[-–—]\s*present", re.I),
    re.compile(r"\b" + _MONTHS + r"\s+\d{4}", re.I),
    re.compile(r"\bpresent\b", re.I),
]

_YEAR_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\b(19|20)\d{2}\b"),
    re.compile(r"\d{4}\s*[-–—]\s*(\d{4}|present)", re.I),
    re.compile(r"\b" + _MONTHS + r"\s+\d{4}", re.I),
]

# "Acme, Inc." is a company, not a place
_CORPORATE_SUFFIX_RE = re.compile(r",\s*(inc|llc|ltd|gmbh|corp|co|plc|ag|s\.a)\.?$", re.I)

_LOCATION_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r",\s*[A-Z]{2}$"),
    re.compile(r",\s*[A-Z][A-Za-z.\- ]+$"),
    re.compile(r"\b(united states|usa|united kingdom|uk|canada|australia|germany|india)\b", re.I),
    re.compile(r"\b(remote|hybrid|on-site|onsite)\b", re.I),
]


def is_noise(text: str | None) -> bool:
    """True when the whole fragment is UI chrome or a bare date/counter.

    Patterns are anchored, so a sentence that merely contains "follow" or
    "2019" is not noise.
    """
    s = " ".join((text or "").split()).lower()
    if not s:
        return True
    return any(p.fullmatch(s) for p in _NOISE_PATTERNS)


def bio_score(text: str | None) -> int:
    """Biographical relevance score (>= 0); accepted as a bio when > 3."""
    low = (text or "").lower()
    if not low:
        return 0
    score = 0
    for p in _SELF_DESCRIPTIVE_RE:
        score += len(p.findall(low))
    for p in _FIRST_PERSON_RE:
        score += 2 * len(p.findall(low))
    for p in _ROLE_RE:
        score += len(p.findall(low))
    return score


def is_bio_candidate(text: str | None) -> bool:
    return bio_score(text) > BIO_SCORE_THRESHOLD


def is_duration_text(text: str | None) -> bool:
    s = (text or "").strip()
    return bool(s) and any(p.search(s) for p in _DURATION_PATTERNS)


def is_year_text(text: str | None) -> bool:
    s = (text or "").strip()
    return bool(s) and any(p.search(s) for p in _YEAR_PATTERNS)


def is_location_text(text: str | None) -> bool:
    s = (text or "").strip()
    if not s or _CORPORATE_SUFFIX_RE.search(s):
        return False
    return any(p.search(s) for p in _LOCATION_PATTERNS)


_DEGREE_RE = re.compile(
    r"\b(bachelor'?s?|master'?s?|mba|ph\.?d|doctor(ate)?|associate'?s?|diploma|certificate|degree"
    r"|b\.?sc|m\.?sc|b\.?a|m\.?a|b\.?s|m\.?s|b\.?eng|m\.?eng|llb|llm|md)\b",
    re.I,
)


def is_degree_text(text: str | None) -> bool:
    """Degree names often end in ", <Field>", which reads like a place."""
    s = (text or "").strip()
    return bool(s) and bool(_DEGREE_RE.search(s))
