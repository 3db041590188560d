"""
Error taxonomy for the extraction engine.

Cascade and secondary-source failures are absorbed where they happen and
degrade to empty/partial data. Only collaborator (completion/scoring)
failures reach the user-visible layer.
"""

from __future__ import annotations


class ExtractionError(Exception):
    """Base class for engine errors."""


class SelectorExhausted(ExtractionError):
    """No strategy in a field's cascade produced a qualifying result."""

    def __init__(self, field: str) -> None:
        super().__init__(f"no strategy matched field '{field}'")
        self.field = field


class SecondarySourceUnavailable(ExtractionError):
    """The alternate structured source could not be used for this session."""

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class AttemptLimitExceeded(ExtractionError):
    """The scheduler gave up on a subject after too many parse attempts."""

    def __init__(self, subject: str, attempts: int, limit: int) -> None:
        super().__init__(f"attempt limit reached for {subject} ({attempts} > {limit})")
        self.subject = subject
        self.attempts = attempts
        self.limit = limit


class BoundaryFailure(ExtractionError):
    """Error reported by an external collaborator; shown to the user verbatim."""


class CompletionBoundaryFailure(BoundaryFailure):
    pass


class ScoringBoundaryFailure(BoundaryFailure):
    pass
