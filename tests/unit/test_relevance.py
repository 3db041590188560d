import pytest

from src.pipeline.relevance import (
    BIO_SCORE_THRESHOLD,
    bio_score,
    is_bio_candidate,
    is_degree_text,
    is_duration_text,
    is_location_text,
    is_noise,
    is_year_text,
)


@pytest.mark.parametrize("text", [
    "",
    "   ",
    "500+ connections",
    "1,234 followers",
    "Followers 12",
    "Message",
    "Connect",
    "Follow",
    "More",
    "View full profile",
    "See more",
    "Show all",
    "3 yrs 2 mos",
    "5 years",
    "11 months",
    "Mar 2020",
    "January",
    "Sept",
    "Dec. 2020",
    "127 followers",
    "2019 - Present",
    "2015 – 2019",
    "2019 - 2021",
    "2021",
    "Present",
    "•",
    "…",
])
def test_noise_fragments(text):
    assert is_noise(text) is True


@pytest.mark.parametrize("text", [
    "Jane Doe",
    "I follow the latest research in distributed systems.",
    "Joined the team in 2019 to lead platform work.",
    "Senior Engineer",
    "Acme Corp",
    "Marketing",
    "JUnit",
    "Maya",
    "Decorating",
    "Octopus Deploy",
    "I am a passionate software engineer building tools",
])
def test_real_content_is_not_noise(text):
    assert is_noise(text) is False


def test_bio_score_counts_each_signal():
    # 'i am' is first person (+2), 'passionate' self-descriptive (+1), 'engineer' role (+1)
    assert bio_score("I am a passionate engineer") == 4


def test_bio_score_counts_occurrences():
    text = "I love building. I love helping teams."
    # 'i love' x2 (+4), 'love' x2 (+2), 'building' (+1), 'helping' (+1)
    assert bio_score(text) == 8


def test_bio_score_on_typical_summary_sentence():
    # 'i am' (+2), 'passionate', 'years', 'leading' (+1 each), 'engineer' (+1)
    text = "I am a passionate engineer with 10 years of experience leading teams"
    assert bio_score(text) >= 5
    assert bio_score(text) == 6


def test_bio_score_ignores_partial_words():
    # 'leader' / 'developers' / 'directory' are not the listed terms
    assert bio_score("leader of developers directory") == 0


def test_bio_score_zero_for_empty():
    assert bio_score(None) == 0
    assert bio_score("") == 0


def test_bio_candidate_threshold_is_exclusive():
    three = "passionate dedicated experienced"
    assert bio_score(three) == BIO_SCORE_THRESHOLD
    assert is_bio_candidate(three) is False
    assert is_bio_candidate(three + " professional") is True


@pytest.mark.parametrize("text", [
    "Jan 2019 - Present · 5 yrs",
    "2 yrs 3 mos",
    "2015 - 2019",
    "Mar 2020 – Dec 2021",
    "6 months",
    "Sept 2018 - Present",
])
def test_duration_text(text):
    assert is_duration_text(text) is True


@pytest.mark.parametrize("text", ["Acme Corp", "Senior Engineer", "Stanford University", "", "Marketing Manager", "Decorator"])
def test_not_duration_text(text):
    assert is_duration_text(text) is False


def test_year_text():
    assert is_year_text("2015 - 2019") is True
    assert is_year_text("Graduated 2012") is True
    assert is_year_text("Sep 2010") is True
    assert is_year_text("Stanford University") is False


@pytest.mark.parametrize("text", [
    "San Francisco, CA",
    "Berlin, Germany",
    "Remote",
    "London Area, United Kingdom",
])
def test_location_text(text):
    assert is_location_text(text) is True


@pytest.mark.parametrize("text", ["Acme, Inc.", "Globex, LLC", "Acme Corp", "Software Engineer", ""])
def test_not_location_text(text):
    assert is_location_text(text) is False


def test_degree_text():
    assert is_degree_text("Master of Science - MS, Computer Science") is True
    assert is_degree_text("Bachelor's degree, Economics") is True
    assert is_degree_text("PhD, Physics") is True
    assert is_degree_text("Acme Corp") is False
