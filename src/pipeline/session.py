"""
Extraction Session - one cascade pass plus secondary backfill and merge

Stages: EMPTY -> PRIMARY_EXTRACTED -> (SECONDARY_CONSULTED) -> MERGED -> SCORED

The secondary source is consulted only when the primary pass left the
about text short/absent, the experience list empty or the education list
empty, and only those insufficient fields are backfilled. Fields that
already hold an acceptable value are never overwritten.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .cascade import FieldSpec, PrimaryResult, extract_primary
from .document import Document
from .errors import BoundaryFailure
from .secondary import SecondarySource, extract_about, extract_education, extract_experience, subject_id_from_url
from .selectors import PROFILE_FIELDS
from ..schemas import (
    COMPANY_NOT_SPECIFIED,
    DEGREE_NOT_SPECIFIED,
    DURATION_NOT_SPECIFIED,
    MAX_EDUCATION,
    MAX_EXPERIENCE,
    EducationEntry,
    ExperienceEntry,
    ProfileDraft,
    SessionStage,
    clean_text,
)


DraftSink = Callable[[ProfileDraft], Any]


@dataclass
class SessionResult:
    draft: ProfileDraft
    stage: SessionStage
    is_valid: bool
    secondary_consulted: bool = False
    secondary_available: bool = False
    backfilled: List[str] = field(default_factory=list)
    exhausted: List[str] = field(default_factory=list)
    delivery: Any = None
    delivery_error: Optional[str] = None
    durations: Dict[str, float] = field(default_factory=dict)


def insufficient_fields(draft: ProfileDraft) -> List[str]:
    """Fields the secondary source may backfill for this draft."""
    missing: List[str] = []
    if not draft.about_is_sufficient():
        missing.append("about")
    if not draft.experience:
        missing.append("experience")
    if not draft.education:
        missing.append("education")
    return missing


def build_experience(items: List[Dict[str, str]]) -> List[ExperienceEntry]:
    """Turn raw entry dicts into entries; untitled items are dropped."""
    out: List[ExperienceEntry] = []
    for item in items or []:
        if not clean_text(item.get("title")):
            continue
        out.append(ExperienceEntry(
            title=item["title"],
            company=item.get("company") or None,
            duration=item.get("duration") or None,
            description=item.get("description") or "",
        ))
    return out[:MAX_EXPERIENCE]


def build_education(items: List[Dict[str, str]]) -> List[EducationEntry]:
    out: List[EducationEntry] = []
    for item in items or []:
        if not clean_text(item.get("school")):
            continue
        out.append(EducationEntry(
            school=item["school"],
            degree=item.get("degree") or None,
            year=item.get("year") or "",
        ))
    return out[:MAX_EDUCATION]


def backfill(draft: ProfileDraft, data: Dict[str, Any], needed: List[str]) -> List[str]:
    """Copy secondary values into the insufficient fields only.

    Returns the names of the fields that actually changed.
    """
    filled: List[str] = []
    if "about" in needed and not draft.about_is_sufficient():
        about = extract_about(data)
        if about:
            draft.about = about
            filled.append("about")
    if "experience" in needed and not draft.experience:
        experience = build_experience(extract_experience(data))
        if experience:
            draft.experience = experience
            filled.append("experience")
    if "education" in needed and not draft.education:
        education = build_education(extract_education(data))
        if education:
            draft.education = education
            filled.append("education")
    return filled


def apply_sentinels(draft: ProfileDraft) -> None:
    """Literal placeholders for sub-fields missing inside valid entries."""
    draft.experience = [
        e.model_copy(update={
            "company": e.company or COMPANY_NOT_SPECIFIED,
            "duration": e.duration or DURATION_NOT_SPECIFIED,
        })
        for e in draft.experience[:MAX_EXPERIENCE]
    ]
    draft.education = [
        e.model_copy(update={"degree": e.degree or DEGREE_NOT_SPECIFIED})
        for e in draft.education[:MAX_EDUCATION]
    ]


class ExtractionSession:
    """Runs one extraction pass against the current document snapshot."""

    def __init__(
        self,
        document: Document,
        *,
        table: Optional[Dict[str, FieldSpec]] = None,
        secondary: Optional[SecondarySource] = None,
        sink: Optional[DraftSink] = None,
        subject_id: Optional[str] = None,
    ) -> None:
        self.document = document
        self.table = table if table is not None else PROFILE_FIELDS
        self.secondary = secondary
        self.sink = sink
        self.subject_id = subject_id or subject_id_from_url(document.url or "")
        self.stage = SessionStage.EMPTY
        self.draft = ProfileDraft(source_url=document.url or "")

    def _apply_primary(self, primary: PrimaryResult) -> None:
        v = primary.values
        for name in ("name", "headline", "location", "company", "about"):
            if name in v:
                setattr(self.draft, name, v[name])
        self.draft.experience = build_experience(v.get("experience") or [])
        self.draft.education = build_education(v.get("education") or [])
        self.draft.skills = list(v.get("skills") or [])

    def run(self) -> SessionResult:
        t0 = time.perf_counter()
        durations: Dict[str, float] = {}

        primary = extract_primary(self.document, self.table)
        self._apply_primary(primary)
        self.stage = SessionStage.PRIMARY_EXTRACTED
        durations["primary_s"] = round(time.perf_counter() - t0, 4)

        result = SessionResult(draft=self.draft, stage=self.stage, is_valid=False, exhausted=list(primary.exhausted))

        needed = insufficient_fields(self.draft)
        if needed and self.secondary is not None:
            t_sec = time.perf_counter()
            print(f"[secondary] backfill needed for {', '.join(needed)} @ {self.draft.source_url}")
            data = self.secondary.fetch(self.subject_id)
            result.secondary_consulted = True
            if data is not None:
                result.secondary_available = True
                result.backfilled = backfill(self.draft, data, needed)
            self.stage = SessionStage.SECONDARY_CONSULTED
            durations["secondary_s"] = round(time.perf_counter() - t_sec, 4)

        apply_sentinels(self.draft)
        self.stage = SessionStage.MERGED
        result.is_valid = self.draft.is_valid()

        if self.sink is not None:
            t_sink = time.perf_counter()
            try:
                # The sink receives a detached copy so later passes cannot mutate it
                result.delivery = self.sink(self.draft.model_copy(deep=True))
                self.stage = SessionStage.SCORED
            except BoundaryFailure as e:
                result.delivery_error = str(e)
            durations["sink_s"] = round(time.perf_counter() - t_sink, 4)

        result.stage = self.stage
        durations["total_s"] = round(time.perf_counter() - t0, 4)
        result.durations = durations
        return result
