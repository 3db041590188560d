"""
Collaborator Boundary - message envelopes for completion and scoring

The engine never builds prompts or calls a model itself. It hands a
finished ProfileDraft to external handlers through a message-style
request and normalizes what comes back:

    {"action": "generateMessage" | "scoreProfile", "profileData": {...}}
    -> {"success": True, "message": str}
    -> {"success": True, "score": 0..100, "reasons": [str, ...]}
    -> {"success": False, "error": str}

Handler errors are passed through verbatim. The only retry is for a
scoring completion that is not valid JSON: it is parsed once more after
stripping code-fence markers before being treated as fatal.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, List, Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ScoringBoundaryFailure
from ..schemas import ProfileDraft


GENERATE_MESSAGE = "generateMessage"
SCORE_PROFILE = "scoreProfile"
ACTIONS = (GENERATE_MESSAGE, SCORE_PROFILE)

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*|\s*```\s*$")


class ScoreResult(BaseModel):
    """Scoring collaborator output."""
    score: int = Field(..., description="Connect score, clamped to 0..100")
    reasons: List[str] = Field(default_factory=list)

    @field_validator('score', mode='before')
    @classmethod
    def clamp_score(cls, v):
        try:
            n = int(round(float(v)))
        except (TypeError, ValueError):
            raise ValueError('score must be a number')
        return max(0, min(100, n))

    @field_validator('reasons', mode='before')
    @classmethod
    def normalize_reasons(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(r) for r in v if str(r).strip()]


def build_request(action: str, draft: ProfileDraft) -> Dict[str, Any]:
    if action not in ACTIONS:
        raise ValueError(f"unknown action: {action}")
    return {"action": action, "profileData": draft.to_profile_data()}


def strip_code_fences(raw: str) -> str:
    return _FENCE_RE.sub("", raw or "").strip()


def parse_score_payload(raw: str) -> ScoreResult:
    """Parse a scoring completion; one retry after removing ``` fences."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        try:
            data = json.loads(strip_code_fences(raw))
        except (TypeError, ValueError) as e:
            raise ScoringBoundaryFailure(f"Invalid scoring response: {e}")
    if not isinstance(data, dict):
        raise ScoringBoundaryFailure("Invalid scoring response: expected a JSON object")
    try:
        return ScoreResult(**data)
    except ValidationError as e:
        raise ScoringBoundaryFailure(f"Invalid scoring response: {e.errors()[0].get('msg')}")


Handler = Callable[[Dict[str, Any]], Any]


class CollaboratorRouter:
    """Dispatches boundary requests to the completion/scoring handlers."""

    def __init__(self, handlers: Mapping[str, Handler]) -> None:
        self.handlers = dict(handlers)

    def _normalize(self, action: str, result: Any) -> Dict[str, Any]:
        if action == SCORE_PROFILE:
            if isinstance(result, str):
                scored = parse_score_payload(result)
            elif isinstance(result, ScoreResult):
                scored = result
            else:
                scored = ScoreResult(**dict(result))
            return {"success": True, "score": scored.score, "reasons": scored.reasons}
        return {"success": True, "message": str(result).strip()}

    def dispatch(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        action = request.get("action")
        handler = self.handlers.get(action)
        if handler is None:
            return {"success": False, "error": f"Unknown action: {action}"}
        try:
            result = handler(dict(request.get("profileData") or {}))
            return self._normalize(action, result)
        except Exception as e:
            # Surfaced to the user as-is
            return {"success": False, "error": str(e)}


def scoring_sink(router: CollaboratorRouter) -> Callable[[ProfileDraft], Dict[str, Any]]:
    """Session sink that asks the scoring collaborator for a score."""
    def _sink(draft: ProfileDraft) -> Dict[str, Any]:
        response = router.dispatch(build_request(SCORE_PROFILE, draft))
        if not response.get("success"):
            raise ScoringBoundaryFailure(str(response.get("error") or "scoring failed"))
        return response
    return _sink
