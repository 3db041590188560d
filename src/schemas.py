"""
Profile Extraction Engine - Pydantic Data Schemas

Core data models for the profile record produced by the extraction
session: ProfileDraft with its ExperienceEntry / EducationEntry items,
plus the plain-dict view handed across the collaborator boundary.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# Sentinels emitted by the merge step for a missing sub-field inside an
# otherwise valid entry. Absent top-level fields stay None.
COMPANY_NOT_SPECIFIED = "Company not specified"
DURATION_NOT_SPECIFIED = "Duration not specified"
DEGREE_NOT_SPECIFIED = "Degree not specified"

MAX_EXPERIENCE = 3
MAX_EDUCATION = 2
MAX_SKILLS = 10
MAX_DESCRIPTION_CHARS = 200

# Validity threshold: about text of at least this many characters
MIN_ABOUT_LENGTH = 30


def clean_text(value: Any) -> Optional[str]:
    """Trim a scraped value; empty or whitespace-only text becomes None."""
    if value is None:
        return None
    s = " ".join(str(value).split())
    return s or None


def truncate_description(text: Optional[str], limit: int = MAX_DESCRIPTION_CHARS) -> str:
    s = clean_text(text) or ""
    if len(s) > limit:
        return s[:limit] + "..."
    return s


class SessionStage(str, Enum):
    """Stages of one extraction session."""
    EMPTY = "empty"
    PRIMARY_EXTRACTED = "primary_extracted"
    SECONDARY_CONSULTED = "secondary_consulted"
    MERGED = "merged"
    SCORED = "scored"


class ExperienceEntry(BaseModel):
    """One work-history item. Entries without a title are never built."""
    title: str = Field(
        ...,
        description="Role title; required"
    )

    company: Optional[str] = Field(
        default=None,
        description="Employer name; sentinel after merge when missing"
    )

    duration: Optional[str] = Field(
        default=None,
        description="Human-readable date range"
    )

    description: str = Field(
        default="",
        description="Role description, truncated to 200 characters"
    )

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        """Title must carry text after trimming."""
        s = clean_text(v)
        if not s:
            raise ValueError('title cannot be empty')
        return s

    @field_validator('company', 'duration')
    @classmethod
    def normalize_optional(cls, v):
        return clean_text(v)

    @field_validator('description')
    @classmethod
    def validate_description(cls, v):
        return truncate_description(v)


class EducationEntry(BaseModel):
    """One education item. Entries without a school are never built."""
    school: str = Field(
        ...,
        description="School name; required"
    )

    degree: Optional[str] = Field(
        default=None,
        description="Degree and field of study"
    )

    year: str = Field(
        default="",
        description="Year or year range, empty when unknown"
    )

    @field_validator('school')
    @classmethod
    def validate_school(cls, v):
        s = clean_text(v)
        if not s:
            raise ValueError('school cannot be empty')
        return s

    @field_validator('degree')
    @classmethod
    def normalize_degree(cls, v):
        return clean_text(v)

    @field_validator('year')
    @classmethod
    def normalize_year(cls, v):
        return clean_text(v) or ""


class ProfileDraft(BaseModel):
    """
    Structured profile record assembled by an extraction session.

    Created empty at session start and filled in place by the cascade,
    the secondary-source backfill and the merge step.
    """
    name: Optional[str] = None
    headline: Optional[str] = None
    location: Optional[str] = None
    company: Optional[str] = None
    about: Optional[str] = Field(
        default=None,
        description="Biography / summary text"
    )
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    source_url: str = Field(
        default="",
        description="Canonical address of the subject"
    )

    model_config = {"validate_assignment": True}

    @field_validator('name', 'headline', 'location', 'company', 'about')
    @classmethod
    def normalize_strings(cls, v):
        """Every populated string field is non-empty and trimmed."""
        return clean_text(v)

    @field_validator('skills')
    @classmethod
    def normalize_skills(cls, v):
        out: List[str] = []
        for item in v or []:
            s = clean_text(item)
            if s and s not in out:
                out.append(s)
        return out[:MAX_SKILLS]

    def about_is_sufficient(self) -> bool:
        return bool(self.about) and len(self.about) >= MIN_ABOUT_LENGTH

    def is_valid(self) -> bool:
        """A record is valid once it carries a usable biography."""
        return self.about_is_sufficient()

    def to_profile_data(self) -> Dict[str, Any]:
        """Plain camelCase dict handed to the completion/scoring collaborators."""
        return {
            "name": self.name,
            "headline": self.headline,
            "location": self.location,
            "company": self.company,
            "about": self.about,
            "experience": [e.model_dump() for e in self.experience],
            "education": [e.model_dump() for e in self.education],
            "skills": list(self.skills),
            "sourceUrl": self.source_url,
        }
