"""
Default selector table for LinkedIn-style profile pages.

Plain data: field name -> FieldSpec with its ordered strategies. Swap the
table to target another markup vocabulary; the cascade runners do not
depend on any of these selectors.
"""

from __future__ import annotations

from typing import Dict

from .cascade import (
    ENTRIES_KIND,
    LIST_KIND,
    TEXT_KIND,
    FieldSpec,
    Strategy,
    SubFieldSpec,
    find_bio_candidate,
)
from .relevance import is_degree_text, is_duration_text, is_location_text, is_noise, is_year_text
from ..schemas import MAX_EDUCATION, MAX_EXPERIENCE, MAX_SKILLS, MIN_ABOUT_LENGTH


HIDDEN = 'span[aria-hidden="true"]'


def _long_enough_for_about(text: str) -> bool:
    return len(text) >= MIN_ABOUT_LENGTH


def _not_temporal_or_place(text: str) -> bool:
    return not is_duration_text(text) and not is_location_text(text)


def _description_like(text: str) -> bool:
    return len(text) > 50 and not is_noise(text)


def _degree_like(text: str) -> bool:
    if is_duration_text(text):
        return False
    return is_degree_text(text) or not is_location_text(text)


NAME = FieldSpec(
    name="name",
    kind=TEXT_KIND,
    strategies=(
        Strategy("h1.text-heading-xlarge"),
        Strategy("h1.pv-top-card-section__name"),
        Strategy(".pv-text-details__left-panel h1"),
        Strategy(".ph5 h1"),
        Strategy("main h1"),
    ),
    max_candidates=1,
)

HEADLINE = FieldSpec(
    name="headline",
    kind=TEXT_KIND,
    strategies=(
        Strategy(".text-body-medium.break-words"),
        Strategy(".pv-top-card-section__headline"),
        Strategy(".pv-text-details__left-panel .text-body-medium"),
    ),
)

LOCATION = FieldSpec(
    name="location",
    kind=TEXT_KIND,
    strategies=(
        Strategy(".text-body-small.inline.t-black--light.break-words"),
        Strategy(".pv-top-card-section__location"),
        Strategy(".pv-text-details__left-panel .text-body-small"),
    ),
)

COMPANY = FieldSpec(
    name="company",
    kind=TEXT_KIND,
    strategies=(
        Strategy(f'.inline-show-more-text .mr1.hoverable-link-text.t-bold {HIDDEN}'),
        Strategy('.pv-text-details__right-panel .inline-show-more-text'),
        Strategy('button[aria-label^="Current company"] span'),
        Strategy('.pv-top-card--experience-list-item'),
    ),
    # The top-card company can only be read from the current position item
    shared_sections=("experience",),
)

ABOUT = FieldSpec(
    name="about",
    kind=TEXT_KIND,
    strategies=(
        Strategy('.pv-shared-text-with-see-more .full-text'),
        Strategy(f'.pv-shared-text-with-see-more .inline-show-more-text {HIDDEN}'),
        Strategy('.pv-shared-text-with-see-more .visually-hidden'),
        Strategy('#about ~ .pvs-list__container .full-text'),
        Strategy(f'#about ~ .pvs-list__container .inline-show-more-text {HIDDEN}'),
        Strategy(f'#about ~ .pvs-list__container .break-words {HIDDEN}'),
        Strategy('.pv-about-section .pv-about__summary-text .lt-line-clamp__raw-line'),
        Strategy(f'.pv-about-section .inline-show-more-text {HIDDEN}'),
        Strategy(f'[data-field="summary_expanded"] .inline-show-more-text {HIDDEN}'),
        Strategy('[data-field="summary_expanded"] .full-text'),
        Strategy('.pv-text-details__left-panel .pv-shared-text-with-see-more'),
        Strategy(f'.pvs-header + div .inline-show-more-text {HIDDEN}'),
        Strategy(f'section[data-section="summary"] .inline-show-more-text {HIDDEN}'),
        Strategy('section[data-section="summary"] .full-text'),
        Strategy(f'.pvs-list__outer-container .break-words {HIDDEN}'),
        Strategy(f'.profile-section-card .pv-shared-text-with-see-more {HIDDEN}'),
        # Scoped fallbacks: anything text-like inside the section that holds #about
        Strategy(f'.inline-show-more-text {HIDDEN}', scope="#about"),
        Strategy('.full-text', scope="#about"),
        Strategy('.pv-shared-text-with-see-more', scope="#about"),
        Strategy('.lt-line-clamp__raw-line', scope="#about"),
        Strategy(f'.break-words {HIDDEN}', scope="#about"),
        Strategy(f'.pvs-list__container {HIDDEN}', scope="#about"),
        Strategy(f'.pvs-list__outer-container {HIDDEN}', scope="#about"),
    ),
    accept=_long_enough_for_about,
    last_resort=find_bio_candidate,
)

_EXPERIENCE_TITLE = SubFieldSpec(
    name="title",
    strategies=(
        Strategy(f'.mr1.hoverable-link-text.t-bold {HIDDEN}'),
        Strategy(f'.display-flex.align-items-center .mr1.t-bold {HIDDEN}'),
        Strategy(f'.pv-entity__summary-info h3 {HIDDEN}'),
        Strategy(f'.t-16.t-black.t-bold {HIDDEN}'),
        Strategy('h3 .visually-hidden'),
        Strategy('h3'),
    ),
    accept=lambda t: not is_duration_text(t),
)

_EXPERIENCE_COMPANY = SubFieldSpec(
    name="company",
    strategies=(
        Strategy(f'.t-14.t-normal {HIDDEN}'),
        Strategy(f'.pv-entity__secondary-title {HIDDEN}'),
        Strategy(f'.t-14.t-normal.break-words {HIDDEN}'),
        Strategy(f'.inline-show-more-text .t-14 {HIDDEN}'),
        Strategy('.pv-entity__secondary-title'),
    ),
    accept=_not_temporal_or_place,
    all_matches=True,
)

_EXPERIENCE_DURATION = SubFieldSpec(
    name="duration",
    strategies=(
        Strategy(f'.pvs-entity__caption-wrapper'),
        Strategy(f'.t-12.t-black--light {HIDDEN}'),
        Strategy(f'.pv-entity__dates {HIDDEN}'),
        Strategy(f'.t-black--light.t-12 {HIDDEN}'),
        Strategy('.pv-entity__date-range'),
    ),
    accept=is_duration_text,
    all_matches=True,
)

_EXPERIENCE_DESCRIPTION = SubFieldSpec(
    name="description",
    strategies=(
        Strategy(f'.inline-show-more-text--is-expanded {HIDDEN}'),
        Strategy(f'.pv-shared-text-with-see-more {HIDDEN}'),
        Strategy(f'.break-words {HIDDEN}:not(.t-14):not(.t-12)'),
        Strategy('.pv-entity__description'),
    ),
    accept=_description_like,
)

EXPERIENCE = FieldSpec(
    name="experience",
    kind=ENTRIES_KIND,
    strategies=(
        Strategy('#experience ~ .pvs-list__paged-list-item'),
        Strategy('#experience ~ .pvs-list .pvs-list__paged-list-item'),
        Strategy('#experience ~ div .pvs-list__paged-list-item'),
        Strategy('section[data-section="experience"] .pvs-list__paged-list-item'),
        Strategy('.experience-section .pvs-list__paged-list-item'),
        Strategy('.pv-profile-section[data-section="experience"] .pvs-list__paged-list-item'),
        Strategy('.experience-section .pv-position-entity'),
    ),
    max_candidates=5,
    max_items=MAX_EXPERIENCE,
    subfields=(_EXPERIENCE_TITLE, _EXPERIENCE_COMPANY, _EXPERIENCE_DURATION, _EXPERIENCE_DESCRIPTION),
    required="title",
)

_EDUCATION_SCHOOL = SubFieldSpec(
    name="school",
    strategies=(
        Strategy(f'.mr1.hoverable-link-text.t-bold {HIDDEN}'),
        Strategy(f'.display-flex.align-items-center .mr1.t-bold {HIDDEN}'),
        Strategy(f'.pv-entity__school-name {HIDDEN}'),
        Strategy('.pv-entity__school-name'),
        Strategy('h3 .visually-hidden'),
        Strategy('h3'),
    ),
    accept=lambda t: not is_year_text(t),
)

_EDUCATION_DEGREE = SubFieldSpec(
    name="degree",
    strategies=(
        Strategy(f'.t-14.t-normal {HIDDEN}'),
        Strategy(f'.pv-entity__degree-name {HIDDEN}'),
        Strategy(f'.pv-entity__fos {HIDDEN}'),
        Strategy(f'.t-14.t-normal.break-words {HIDDEN}'),
        Strategy('.pv-entity__degree-name'),
    ),
    accept=_degree_like,
    all_matches=True,
)

_EDUCATION_YEAR = SubFieldSpec(
    name="year",
    strategies=(
        Strategy('.pvs-entity__caption-wrapper'),
        Strategy(f'.t-12.t-black--light {HIDDEN}'),
        Strategy(f'.pv-entity__dates {HIDDEN}'),
        Strategy('.pv-entity__dates time'),
    ),
    accept=is_year_text,
    all_matches=True,
)

EDUCATION = FieldSpec(
    name="education",
    kind=ENTRIES_KIND,
    strategies=(
        Strategy('#education ~ .pvs-list__paged-list-item'),
        Strategy('#education ~ .pvs-list .pvs-list__paged-list-item'),
        Strategy('#education ~ div .pvs-list__paged-list-item'),
        Strategy('section[data-section="education"] .pvs-list__paged-list-item'),
        Strategy('.education-section .pvs-list__paged-list-item'),
        Strategy('.pv-profile-section[data-section="education"] .pvs-list__paged-list-item'),
        Strategy('.education-section .pv-education-entity'),
    ),
    max_candidates=3,
    max_items=MAX_EDUCATION,
    subfields=(_EDUCATION_SCHOOL, _EDUCATION_DEGREE, _EDUCATION_YEAR),
    required="school",
)

SKILLS = FieldSpec(
    name="skills",
    kind=LIST_KIND,
    strategies=(
        Strategy(f'#skills ~ .pvs-list .mr1.hoverable-link-text.t-bold {HIDDEN}'),
        Strategy(f'#skills ~ div .mr1.hoverable-link-text.t-bold {HIDDEN}'),
        Strategy(f'section[data-section="skills"] .hoverable-link-text {HIDDEN}'),
        Strategy('.pv-skill-category-entity__name-text'),
    ),
    max_candidates=MAX_SKILLS,
    max_items=MAX_SKILLS,
)


PROFILE_FIELDS: Dict[str, FieldSpec] = {
    spec.name: spec
    for spec in (NAME, HEADLINE, LOCATION, COMPANY, ABOUT, EXPERIENCE, EDUCATION, SKILLS)
}
