"""
Test suite for the profile record schemas.

Covers trimming/normalization on ProfileDraft and its entries, the
skills cap, validity, and the camelCase view passed to collaborators.
"""

import pytest
from pydantic import ValidationError

from src.schemas import (
    MAX_SKILLS,
    EducationEntry,
    ExperienceEntry,
    ProfileDraft,
    clean_text,
    truncate_description,
)


class TestProfileDraft:
    """Test cases for ProfileDraft."""

    def test_empty_draft_is_invalid(self):
        draft = ProfileDraft()
        assert draft.name is None
        assert draft.experience == []
        assert draft.is_valid() is False

    def test_strings_are_trimmed_and_blank_becomes_none(self):
        draft = ProfileDraft(name="  Jane   Doe ", headline="   ")
        assert draft.name == "Jane Doe"
        assert draft.headline is None

    def test_assignment_is_validated(self):
        draft = ProfileDraft()
        draft.location = "  Berlin,  Germany "
        assert draft.location == "Berlin, Germany"

    def test_about_threshold(self):
        """About text of 30+ characters makes the record valid."""
        assert ProfileDraft(about="x" * 29).is_valid() is False
        assert ProfileDraft(about="x" * 30).is_valid() is True

    def test_skills_deduplicated_and_capped(self):
        skills = ["Python", "Python", " Go "] + [f"Skill {i}" for i in range(20)]
        draft = ProfileDraft(skills=skills)
        assert draft.skills[:2] == ["Python", "Go"]
        assert len(draft.skills) == MAX_SKILLS

    def test_to_profile_data_shape(self):
        draft = ProfileDraft(
            name="Jane Doe",
            experience=[ExperienceEntry(title="Engineer", company="Acme")],
            education=[EducationEntry(school="MIT")],
            source_url="https://www.linkedin.com/in/jane-doe/",
        )
        data = draft.to_profile_data()
        assert data["name"] == "Jane Doe"
        assert data["sourceUrl"] == "https://www.linkedin.com/in/jane-doe/"
        assert data["experience"][0] == {
            "title": "Engineer",
            "company": "Acme",
            "duration": None,
            "description": "",
        }
        assert data["education"][0] == {"school": "MIT", "degree": None, "year": ""}


class TestEntries:
    """Test cases for ExperienceEntry / EducationEntry."""

    def test_title_required(self):
        with pytest.raises(ValidationError, match="title cannot be empty"):
            ExperienceEntry(title="   ")

    def test_school_required(self):
        with pytest.raises(ValidationError, match="school cannot be empty"):
            EducationEntry(school="")

    def test_description_truncated(self):
        entry = ExperienceEntry(title="Engineer", description="a" * 250)
        assert entry.description == "a" * 200 + "..."

    def test_short_description_untouched(self):
        entry = ExperienceEntry(title="Engineer", description="Built things.")
        assert entry.description == "Built things."


def test_clean_text_helpers():
    assert clean_text(None) is None
    assert clean_text(" \n\t ") is None
    assert clean_text(" a \n b ") == "a b"
    assert truncate_description(None) == ""
    assert truncate_description("abcdef", limit=3) == "abc..."
