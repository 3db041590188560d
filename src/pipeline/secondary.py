from __future__ import annotations

import re
import typing as t
from urllib.parse import unquote, urlparse

import httpx

from .errors import SecondarySourceUnavailable


DEFAULT_SOURCE_ROOT = "https://www.linkedin.com/voyager/api/identity"
DEFAULT_PROTOCOL_VERSION = "2.0.0"
DEFAULT_UA = "PXE-SecondarySource/0.1"

MONTH_ABBREV = ["", "Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

# Entries read from the structured source before the draft caps apply
SECONDARY_ENTRY_LIMIT = 3

_SUBJECT_RE = re.compile(r"/in/([^/?#]+)")
_JSESSIONID_RE = re.compile(r'JSESSIONID\s*=\s*"?([^";]+)')


def subject_id_from_url(url: str) -> str | None:
    """Public profile id: the path segment after /in/."""
    path = urlparse(url).path if "://" in (url or "") else (url or "")
    m = _SUBJECT_RE.search(path)
    if not m:
        return None
    return unquote(m.group(1)) or None


def csrf_token(cookies: t.Mapping[str, str] | str | None) -> str:
    """Session credential derived from the JSESSIONID cookie (quotes stripped)."""
    if not cookies:
        return ""
    if isinstance(cookies, str):
        m = _JSESSIONID_RE.search(cookies)
        return m.group(1) if m else ""
    value = cookies.get("JSESSIONID") or ""
    return value.strip().strip('"')


def _dig(data: t.Any, *keys: str) -> t.Any:
    cur = data
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _text(value: t.Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return " ".join(str(value).split())


def _month_year(date: t.Any) -> str:
    if not isinstance(date, dict) or not date.get("year"):
        return ""
    month = date.get("month") or 1
    try:
        label = MONTH_ABBREV[int(month)] if 1 <= int(month) <= 12 else MONTH_ABBREV[1]
    except (TypeError, ValueError):
        label = MONTH_ABBREV[1]
    return f"{label} {date['year']}"


def format_duration(time_period: t.Any) -> str:
    """'Mar 2019 – Present' style range; empty when there is no start date."""
    start = _month_year(_dig(time_period, "startDate"))
    if not start:
        return ""
    end = _month_year(_dig(time_period, "endDate")) or "Present"
    return f"{start} – {end}"


def extract_about(data: t.Any) -> str:
    return _text(_dig(data, "profileSummary", "text", "text")) or _text(_dig(data, "summary"))


def extract_experience(data: t.Any) -> list[dict[str, str]]:
    positions = _dig(data, "positionView", "elements")
    if not isinstance(positions, list):
        return []
    out: list[dict[str, str]] = []
    for pos in positions[:SECONDARY_ENTRY_LIMIT]:
        if not isinstance(pos, dict):
            continue
        title = _text(pos.get("title"))
        if not title:
            continue
        out.append({
            "title": title,
            "company": _text(pos.get("companyName")) or _text(_dig(pos, "company", "name")),
            "duration": format_duration(pos.get("timePeriod")),
            "description": _text(pos.get("description")),
        })
    return out


def extract_education(data: t.Any) -> list[dict[str, str]]:
    records = _dig(data, "educationView", "elements")
    if not isinstance(records, list):
        records = _dig(data, "educations")
    if not isinstance(records, list):
        return []
    out: list[dict[str, str]] = []
    for ed in records[:SECONDARY_ENTRY_LIMIT]:
        if not isinstance(ed, dict):
            continue
        school = _text(ed.get("schoolName")) or _text(_dig(ed, "school", "name"))
        if not school:
            continue
        degree = ", ".join(p for p in (_text(ed.get("degreeName")), _text(ed.get("fieldOfStudy"))) if p)
        out.append({
            "school": school,
            "degree": degree,
            "year": format_duration(ed.get("timePeriod")),
        })
    return out


class SecondarySource:
    """Authenticated structured profile source with a one-shot cache.

    - Uses httpx for network IO
    - Fails soft: any failure yields None and is never raised to the caller
    - The first outcome (data or None) is cached for the owner's lifetime
    """

    def __init__(
        self,
        *,
        cookies: t.Mapping[str, str] | None = None,
        source_root: str = DEFAULT_SOURCE_ROOT,
        timeout_s: float = 10.0,
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
        user_agent: str = DEFAULT_UA,
        client: httpx.Client | None = None,
    ) -> None:
        self.cookies = dict(cookies or {})
        self.source_root = source_root.rstrip("/")
        self.timeout_s = timeout_s
        self.protocol_version = protocol_version
        self._client = client or httpx.Client(timeout=self.timeout_s, headers={"User-Agent": user_agent})
        self._cached = False
        self._cache: dict | None = None
        self.last_error: SecondarySourceUnavailable | None = None
        self.requests_made = 0

    def close(self) -> None:
        self._client.close()

    @property
    def cached(self) -> bool:
        return self._cached

    def profile_url(self, subject_id: str) -> str:
        return f"{self.source_root}/profiles/{subject_id}/profileView"

    def _headers(self, token: str) -> dict[str, str]:
        headers = {
            "accept": "application/json",
            "csrf-token": token,
            "x-restli-protocol-version": self.protocol_version,
        }
        if self.cookies:
            headers["cookie"] = "; ".join(f"{k}={v}" for k, v in self.cookies.items())
        return headers

    def _request(self, subject_id: str | None) -> dict:
        if not subject_id:
            raise SecondarySourceUnavailable("missing subject id")
        token = csrf_token(self.cookies)
        if not token:
            raise SecondarySourceUnavailable("missing session credential")
        self.requests_made += 1
        try:
            resp = self._client.get(self.profile_url(subject_id), headers=self._headers(token))
        except httpx.HTTPError as e:
            raise SecondarySourceUnavailable(f"network error: {e}")
        if not resp.is_success:
            raise SecondarySourceUnavailable(f"HTTP {resp.status_code}", status_code=resp.status_code)
        try:
            data = resp.json()
        except ValueError:
            raise SecondarySourceUnavailable("malformed payload", status_code=resp.status_code)
        if not isinstance(data, dict):
            raise SecondarySourceUnavailable("malformed payload", status_code=resp.status_code)
        return data

    def fetch(self, subject_id: str | None) -> dict | None:
        """Structured profile for the subject, or None when unavailable."""
        if self._cached:
            return self._cache
        try:
            data: dict | None = self._request(subject_id)
        except SecondarySourceUnavailable as e:
            print(f"[secondary] unavailable for {subject_id}: {e.reason}")
            self.last_error = e
            data = None
        self._cached = True
        self._cache = data
        return data
